"""Currency metadata lookup by symbol."""

from __future__ import annotations

from typing import Iterable

from .config import TokenConfig
from .errors import UnknownCurrency
from .model import ETH_ADDRESS, Currency

ETH = Currency(symbol="ETH", address=ETH_ADDRESS, decimals=18)


class CurrencyRegistry:
    """Resolve symbols to addresses and decimals from configured tokens."""

    def __init__(self, tokens: Iterable[TokenConfig] = ()) -> None:
        self._by_symbol: dict[str, Currency] = {ETH.symbol: ETH}
        for token in tokens:
            self._by_symbol[token.symbol.upper()] = Currency(
                symbol=token.symbol.upper(),
                address=token.address,
                decimals=token.decimals,
            )

    def resolve(self, symbol: str) -> Currency:
        currency = self._by_symbol.get(symbol.strip().upper())
        if currency is None:
            known = ", ".join(sorted(self._by_symbol))
            raise UnknownCurrency(f"Unknown currency {symbol!r}; known currencies: {known}")
        return currency

    def __contains__(self, symbol: str) -> bool:
        return symbol.strip().upper() in self._by_symbol
