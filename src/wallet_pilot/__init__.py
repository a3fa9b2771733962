"""Wallet Pilot - let an LLM propose wallet actions without touching the keys.

Plans flow through a fixed pipeline: propose (model) -> normalize ->
validate (policy) -> confirm (per action) -> sign locally and submit.
"""

from wallet_pilot.core.actions import NoopAction, Plan, SwapAction, SwapMode, TransferAction
from wallet_pilot.core.agent import WalletAgent
from wallet_pilot.core.executor import ExecutionCoordinator, ExecutionReport, ExecutionState
from wallet_pilot.core.planner import PlanSource
from wallet_pilot.core.policy import Policy, PolicyViolation, validate_plan

__version__ = "0.1.0"

__all__ = [
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
    "WalletAgent",
    "validate_plan",
]
