import asyncio

import pytest

from conftest import FakeLedger, FakeSwaps
from wallet_pilot.core.actions import NoopAction, Plan, SwapAction, SwapMode, TransferAction
from wallet_pilot.core.executor import ExecutionCoordinator, ExecutionState
from wallet_pilot.core.policy import Policy
from wallet_pilot.errors import (
    ActionExecutionError,
    ConfigurationError,
    LedgerNetworkError,
    PolicyRejectedError,
    TransactionRejectedError,
    UnsupportedActionError,
)

OPEN_POLICY = Policy(allowed_recipients=["0xfriend"], allowed_mints=["A", "B"])


def _plan(*actions) -> Plan:
    return Plan(goal="test", actions=actions)


def test_executes_in_order_and_returns_ids(ledger, swaps, signer):
    coordinator = ExecutionCoordinator(OPEN_POLICY, ledger=ledger, swaps=swaps)
    plan = _plan(
        TransferAction(to="0xfriend", amount="10"),
        NoopAction(),
        SwapAction(input_asset="A", output_asset="B", amount="3", slippage_bps=20, swap_mode=SwapMode.EXACT_IN),
    )

    report = asyncio.run(coordinator.run(plan, signer))

    assert report.state is ExecutionState.COMPLETED
    assert report.signatures == ["0xtransfer1", "0xswap2"]
    assert ledger.calls == [("transfer", "0xfriend", 10, True)]
    assert swaps.calls[0] == ("quote", "A", "B", 3, 20, SwapMode.EXACT_IN)


def test_failure_stops_the_plan_and_keeps_earlier_ids(signer):
    ledger = FakeLedger()
    swaps = FakeSwaps(fail_submit=True)
    coordinator = ExecutionCoordinator(OPEN_POLICY, ledger=ledger, swaps=swaps)
    plan = _plan(
        TransferAction(to="0xfriend", amount="1"),
        SwapAction(input_asset="A", output_asset="B", amount="2"),
        TransferAction(to="0xfriend", amount="3"),
    )

    with pytest.raises(ActionExecutionError) as excinfo:
        asyncio.run(coordinator.execute(plan, signer))

    err = excinfo.value
    assert err.index == 1
    assert err.signatures == ["0xtransfer1"]
    assert isinstance(err.__cause__, TransactionRejectedError)
    assert err.report.state is ExecutionState.FAILED
    assert err.report.failed_index == 1
    # the third action was never attempted
    assert ledger.calls == [("transfer", "0xfriend", 1, True)]


def test_ledger_failure_is_reported_with_its_index(signer):
    ledger = FakeLedger(fail_on=(2,))
    coordinator = ExecutionCoordinator(OPEN_POLICY, ledger=ledger)
    plan = _plan(TransferAction(to="0xfriend", amount="1"), TransferAction(to="0xfriend", amount="2"))

    with pytest.raises(ActionExecutionError) as excinfo:
        asyncio.run(coordinator.execute(plan, signer))
    assert excinfo.value.index == 1
    assert isinstance(excinfo.value.__cause__, LedgerNetworkError)
    assert "actions[1]" in str(excinfo.value)


def test_policy_violation_refuses_whole_plan(ledger, swaps, signer):
    coordinator = ExecutionCoordinator(OPEN_POLICY, ledger=ledger, swaps=swaps)
    plan = _plan(TransferAction(to="0xfriend", amount="1"), TransferAction(to="0xstranger", amount="1"))

    with pytest.raises(PolicyRejectedError) as excinfo:
        asyncio.run(coordinator.execute(plan, signer))

    assert [v.path for v in excinfo.value.violations] == ["actions[1].to"]
    assert excinfo.value.report.state is ExecutionState.REJECTED
    assert "actions[1].to: recipient is not allowlisted" in str(excinfo.value)
    assert ledger.calls == []


def test_declined_action_is_skipped_without_collaborator_calls(ledger, swaps, signer):
    def confirm(action):
        return not isinstance(action, SwapAction)

    coordinator = ExecutionCoordinator(OPEN_POLICY, ledger=ledger, swaps=swaps, confirm=confirm)
    plan = _plan(
        SwapAction(input_asset="A", output_asset="B", amount="2"),
        TransferAction(to="0xfriend", amount="5"),
    )

    report = asyncio.run(coordinator.run(plan, signer))

    assert report.signatures == ["0xtransfer1"]
    assert report.skipped == [0]
    assert swaps.calls == []


def test_async_confirmation_is_awaited(ledger, signer):
    seen = []

    async def confirm(action):
        seen.append(action)
        return False

    coordinator = ExecutionCoordinator(OPEN_POLICY, ledger=ledger, confirm=confirm)
    plan = _plan(TransferAction(to="0xfriend", amount="5"))

    assert asyncio.run(coordinator.execute(plan, signer)) == []
    assert seen == list(plan.actions)
    assert ledger.calls == []


def test_missing_collaborator_is_detected_before_anything_runs(ledger, signer):
    coordinator = ExecutionCoordinator(OPEN_POLICY, ledger=ledger)
    plan = _plan(
        TransferAction(to="0xfriend", amount="1"),
        SwapAction(input_asset="A", output_asset="B", amount="2"),
    )
    with pytest.raises(ConfigurationError):
        asyncio.run(coordinator.execute(plan, signer))
    assert ledger.calls == []


def test_default_slippage_is_capped_by_policy(swaps, signer):
    policy = Policy(allowed_mints=["A", "B"], max_slippage_bps=30)
    coordinator = ExecutionCoordinator(policy, swaps=swaps, default_slippage_bps=50)
    asyncio.run(coordinator.execute(_plan(SwapAction(input_asset="A", output_asset="B", amount="2")), signer))
    assert swaps.calls[0][4] == 30


def test_wait_for_settlement_flag_is_forwarded(ledger, swaps, signer):
    coordinator = ExecutionCoordinator(OPEN_POLICY, ledger=ledger, swaps=swaps, wait_for_settlement=False)
    plan = _plan(TransferAction(to="0xfriend", amount="1"), SwapAction(input_asset="A", output_asset="B", amount="2"))
    asyncio.run(coordinator.execute(plan, signer))
    assert ledger.calls[0][3] is False
    assert swaps.calls[1][2] is False


def test_noop_only_plan_completes_without_ids(signer):
    coordinator = ExecutionCoordinator(Policy())
    report = asyncio.run(coordinator.run(_plan(NoopAction(), NoopAction(reason="idle")), signer))
    assert report.succeeded
    assert report.signatures == []


def test_unknown_action_variant_fails_loudly(ledger, signer):
    plan = Plan.model_construct(goal="g", summary=None, actions=(object(),))
    coordinator = ExecutionCoordinator(Policy(allow_all_transfers=True), ledger=ledger)
    with pytest.raises(UnsupportedActionError):
        asyncio.run(coordinator.execute(plan, signer))
    assert ledger.calls == []


def test_independent_plans_can_run_concurrently(signer):
    ledger_a, ledger_b = FakeLedger(), FakeLedger()
    policy = Policy(allow_all_transfers=True)
    first = ExecutionCoordinator(policy, ledger=ledger_a)
    second = ExecutionCoordinator(policy, ledger=ledger_b)

    async def both():
        return await asyncio.gather(
            first.execute(_plan(TransferAction(to="x", amount="1")), signer),
            second.execute(_plan(TransferAction(to="y", amount="2"), TransferAction(to="y", amount="3")), signer),
        )

    ids_a, ids_b = asyncio.run(both())
    assert ids_a == ["0xtransfer1"]
    assert ids_b == ["0xtransfer1", "0xtransfer2"]
