"""Shared configuration loader for the nahmii CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml
from eth_utils import is_address

from .errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path.home() / ".nahmii.yaml"
DEFAULT_ENDPOINT = "http://127.0.0.1:8545"
DEFAULT_NETWORK = "ropsten"
_CONFIG_PATH_OVERRIDE: Path | None = None

EXPLORERS = {
    "mainnet": "https://etherscan.io",
    "homestead": "https://etherscan.io",
    "ropsten": "https://ropsten.etherscan.io",
}

CONTRACT_KEYS = ("client_fund", "revenue_token_manager", "token_holder_revenue_fund")


@dataclass
class TokenConfig:
    symbol: str
    address: str
    decimals: int


@dataclass
class NahmiiConfig:
    """Connection, wallet and contract settings for one CLI invocation."""

    endpoint: str
    network: str
    wallet_address: str
    contracts: dict[str, str] = field(default_factory=dict)
    tokens: list[TokenConfig] = field(default_factory=list)
    explorer_url: str | None = None
    request_timeout: float = 30.0

    @property
    def explorer(self) -> str:
        if self.explorer_url:
            return self.explorer_url.rstrip("/")
        return EXPLORERS.get(self.network, EXPLORERS[DEFAULT_NETWORK])

    def contract(self, name: str) -> str:
        address = self.contracts.get(name)
        if not address:
            raise ConfigurationError(
                f"No '{name}' contract address configured for network {self.network}"
            )
        return address


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML mapping")
    return loaded


def _section(config: Mapping[str, Any], name: str, path: Path) -> dict[str, Any]:
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected '{name}' to be a mapping in {path}")
    return section


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _validate_endpoint(raw: str) -> str:
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationError(f"Invalid Ethereum endpoint URL: {raw}")
    return raw


def _resolve_contracts(section: Mapping[str, Any], network: str, path: Path) -> dict[str, str]:
    # Either a flat mapping or one mapping per network name.
    scoped = section.get(network)
    if isinstance(scoped, dict):
        section = scoped
    contracts: dict[str, str] = {}
    for key in CONTRACT_KEYS:
        value = section.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ConfigurationError(f"Contract address contracts.{key} in {path} must be a string")
        contracts[key] = value
    return contracts


def _resolve_tokens(raw: Any, path: Path) -> list[TokenConfig]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigurationError(f"Expected 'tokens' to be a list in {path}")
    tokens: list[TokenConfig] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Token #{index + 1} in {path} must be a mapping")
        # Unquoted 0x... values are read by YAML as integers.
        if "address" in entry and not isinstance(entry["address"], str):
            raise ConfigurationError(f"Token #{index + 1} in {path} must quote its address")
        try:
            tokens.append(
                TokenConfig(
                    symbol=str(entry["symbol"]),
                    address=str(entry["address"]),
                    decimals=int(entry.get("decimals", 18)),
                )
            )
        except KeyError as exc:
            raise ConfigurationError(
                f"Token #{index + 1} in {path} is missing {exc.args[0]!r}"
            ) from exc
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"Token #{index + 1} in {path} has invalid decimals: {entry.get('decimals')!r}"
            ) from exc
    return tokens


def load_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> NahmiiConfig:
    """Load CLI configuration from environment variables and optional YAML."""

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )

    file_config = _load_config_file(path, required=explicit_path)
    ethereum_section = _section(file_config, "ethereum", path)
    wallet_section = _section(file_config, "wallet", path)
    contracts_section = _section(file_config, "contracts", path)

    override_map = dict(overrides or {})

    endpoint = _first_value(
        override_map.get("endpoint"),
        env_map.get("NAHMII_ETH_ENDPOINT"),
        ethereum_section.get("endpoint"),
        DEFAULT_ENDPOINT,
    )
    network = _first_value(
        override_map.get("network"),
        env_map.get("NAHMII_NETWORK"),
        ethereum_section.get("network"),
        DEFAULT_NETWORK,
    )
    wallet_address = _first_value(
        override_map.get("wallet_address"),
        env_map.get("NAHMII_WALLET_ADDRESS"),
        wallet_section.get("address"),
    )
    if not wallet_address:
        raise ConfigurationError(
            "A wallet address must be provided via NAHMII_WALLET_ADDRESS or the 'wallet.address' config entry"
        )
    if not is_address(str(wallet_address)):
        raise ConfigurationError(f"Invalid wallet address: {wallet_address}")
    explorer_url = _first_value(
        override_map.get("explorer_url"),
        env_map.get("NAHMII_EXPLORER_URL"),
        file_config.get("explorer"),
    )
    request_timeout = _first_value(
        override_map.get("request_timeout"), ethereum_section.get("request_timeout"), 30.0
    )
    try:
        request_timeout = float(request_timeout)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid request_timeout in {path}: {request_timeout}") from exc

    return NahmiiConfig(
        endpoint=_validate_endpoint(str(endpoint)),
        network=str(network),
        wallet_address=str(wallet_address),
        contracts=_resolve_contracts(contracts_section, str(network), path),
        tokens=_resolve_tokens(file_config.get("tokens"), path),
        explorer_url=explorer_url,
        request_timeout=request_timeout,
    )
