import pytest

from wallet_pilot.core.actions import NoopAction, Plan, SwapAction, TransferAction
from wallet_pilot.core.policy import Policy, PolicyViolation, parse_u64, validate_plan
from wallet_pilot.errors import UnsupportedActionError

U64_MAX = 2**64 - 1


def _plan(*actions) -> Plan:
    return Plan(goal="test", actions=actions)


def test_noop_never_violates():
    assert validate_plan(_plan(NoopAction(), NoopAction(reason="x")), Policy()) == []


def test_transfers_denied_by_default_regardless_of_amount():
    for amount in ("0", "1", str(U64_MAX)):
        violations = validate_plan(_plan(TransferAction(to="0xabc", amount=amount)), Policy())
        assert violations == [PolicyViolation("actions[0].to", "recipient is not allowlisted")]


def test_allow_all_transfers_skips_recipient_check():
    policy = Policy(allow_all_transfers=True)
    assert validate_plan(_plan(TransferAction(to="0xanyone", amount="5")), policy) == []


def test_allowlist_membership_is_trimmed_exact_match():
    policy = Policy(allowed_recipients=["abc", "def "])
    assert validate_plan(_plan(TransferAction(to="abc", amount="1")), policy) == []
    assert validate_plan(_plan(TransferAction(to=" def", amount="1")), policy) == []
    assert len(validate_plan(_plan(TransferAction(to="ABC", amount="1")), policy)) == 1


def test_transfer_limit_boundary():
    policy = Policy(allowed_recipients=["abc"], max_transfer_lamports=1000)
    assert validate_plan(_plan(TransferAction(to="abc", amount="1000")), policy) == []
    violations = validate_plan(_plan(TransferAction(to="abc", amount="1001")), policy)
    assert [v.path for v in violations] == ["actions[0].amount"]


def test_unparseable_amounts_are_violations_not_crashes():
    policy = Policy(allow_all_transfers=True)
    for amount in ("-1", "1.5", "abc", "", "0x10", str(U64_MAX + 1)):
        violations = validate_plan(_plan(TransferAction(to="abc", amount=amount)), policy)
        assert violations == [
            PolicyViolation("actions[0].amount", "amount is not an unsigned 64-bit integer")
        ]


def test_u64_comparison_near_the_top_of_the_range():
    policy = Policy(allow_all_transfers=True, max_transfer_lamports=U64_MAX - 1)
    assert validate_plan(_plan(TransferAction(to="a", amount=str(U64_MAX - 1))), policy) == []
    assert len(validate_plan(_plan(TransferAction(to="a", amount=str(U64_MAX))), policy)) == 1


def test_swap_sides_are_checked_independently():
    policy = Policy(allowed_mints=["A"])
    only_output_bad = validate_plan(_plan(SwapAction(input_asset="A", output_asset="B", amount="1")), policy)
    assert [v.path for v in only_output_bad] == ["actions[0].outputAsset"]

    both_bad = validate_plan(_plan(SwapAction(input_asset="C", output_asset="B", amount="1")), policy)
    assert [v.path for v in both_bad] == ["actions[0].inputAsset", "actions[0].outputAsset"]


def test_swaps_denied_by_default():
    violations = validate_plan(_plan(SwapAction(input_asset="A", output_asset="B", amount="1")), Policy())
    assert len(violations) == 2


def test_swap_amount_and_slippage_limits():
    policy = Policy(allow_all_swaps=True, max_swap_amount=100, max_slippage_bps=50)
    ok = SwapAction(input_asset="A", output_asset="B", amount="100", slippage_bps=50)
    assert validate_plan(_plan(ok), policy) == []

    too_much = SwapAction(input_asset="A", output_asset="B", amount="101", slippage_bps=51)
    assert [v.path for v in validate_plan(_plan(too_much), policy)] == [
        "actions[0].amount",
        "actions[0].slippageBps",
    ]


def test_slippage_unchecked_without_policy_cap():
    policy = Policy(allow_all_swaps=True)
    action = SwapAction(input_asset="A", output_asset="B", amount="1", slippage_bps=9999)
    assert validate_plan(_plan(action), policy) == []


def test_violations_accumulate_across_actions():
    policy = Policy(allowed_recipients=["abc"], max_transfer_lamports=10)
    plan = _plan(
        TransferAction(to="abc", amount="5"),
        TransferAction(to="evil", amount="50"),
        NoopAction(),
        SwapAction(input_asset="A", output_asset="B", amount="1"),
    )
    assert [v.path for v in validate_plan(plan, policy)] == [
        "actions[1].to",
        "actions[1].amount",
        "actions[3].inputAsset",
        "actions[3].outputAsset",
    ]


def test_validation_is_pure():
    policy = Policy(allowed_recipients=["abc"], max_transfer_lamports=10)
    plan = _plan(TransferAction(to="evil", amount="50"))
    before = plan.model_copy(deep=True)
    assert validate_plan(plan, policy) == validate_plan(plan, policy)
    assert plan == before


def test_unknown_variant_fails_loudly():
    plan = Plan.model_construct(goal="g", summary=None, actions=(NoopAction(), object()))
    with pytest.raises(UnsupportedActionError) as excinfo:
        validate_plan(plan, Policy())
    assert excinfo.value.index == 1


def test_parse_u64():
    assert parse_u64("0") == 0
    assert parse_u64(" 42 ") == 42
    assert parse_u64(str(U64_MAX)) == U64_MAX
    assert parse_u64(str(U64_MAX + 1)) is None
    assert parse_u64("+1") is None
    assert parse_u64(5) is None


def test_policy_strips_allowlist_entries():
    policy = Policy(allowed_mints=[" A ", "B"])
    assert policy.allowed_mints == frozenset({"A", "B"})
