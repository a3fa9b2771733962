"""Core pipeline: action model, policy engine, plan source and executor."""

from wallet_pilot.core.actions import (
    Action,
    NoopAction,
    Plan,
    SwapAction,
    SwapMode,
    TransferAction,
    parse_action,
)
from wallet_pilot.core.executor import ExecutionCoordinator, ExecutionReport, ExecutionState
from wallet_pilot.core.planner import PlanSource, normalize_plan
from wallet_pilot.core.policy import Policy, PolicyViolation, validate_action, validate_plan

__all__ = [
    "Action",
    "ExecutionCoordinator",
    "ExecutionReport",
    "ExecutionState",
    "NoopAction",
    "Plan",
    "PlanSource",
    "Policy",
    "PolicyViolation",
    "SwapAction",
    "SwapMode",
    "TransferAction",
    "normalize_plan",
    "parse_action",
    "validate_action",
    "validate_plan",
]
