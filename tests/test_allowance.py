from __future__ import annotations

import pytest

from nahmii_cli.allowance import AllowancePlan, plan_allowance


@pytest.mark.parametrize(
    "current, required, expected",
    [
        (100, 100, AllowancePlan(clear=False, approve=False)),
        (150, 100, AllowancePlan(clear=False, approve=False)),
        (0, 0, AllowancePlan(clear=False, approve=False)),
        (0, 70, AllowancePlan(clear=False, approve=True)),
        (1, 70, AllowancePlan(clear=True, approve=True)),
        (69, 70, AllowancePlan(clear=True, approve=True)),
    ],
)
def test_plan_allowance_rules(current, required, expected) -> None:
    assert plan_allowance(current, required) == expected


def test_plan_allowance_partitions_every_case() -> None:
    required = 10
    for current in range(0, 15):
        plan = plan_allowance(current, required)
        if current >= required:
            assert not plan.clear and not plan.approve
        elif current == 0:
            assert plan.approve and not plan.clear
        else:
            assert plan.clear and plan.approve
