"""Decide which allowance steps a token deposit still needs."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AllowancePlan:
    clear: bool
    approve: bool


def plan_allowance(current: int, required: int) -> AllowancePlan:
    """Compare the existing allowance with the amount about to be deposited.

    An allowance that already covers ``required`` needs no transaction at
    all. A smaller, non-zero allowance is reset to zero before the new
    approval, since ERC-20 tokens commonly refuse to change one non-zero
    allowance into another.
    """

    if current >= required:
        return AllowancePlan(clear=False, approve=False)
    if current > 0:
        return AllowancePlan(clear=True, approve=True)
    return AllowancePlan(clear=False, approve=True)
