"""Execution coordinator: confirm and dispatch the actions of a plan.

A plan is re-validated before anything runs and is refused as a whole if
any violation exists.  Accepted actions are processed strictly one after
another, in plan order; the first collaborator failure stops the run.
Submitted transactions are never rolled back.

State of one run::

    PENDING -> VALIDATING -> REJECTED
                          -> VALIDATED -> EXECUTING -> COMPLETED
                                                    -> FAILED
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from wallet_pilot.core.actions import Action, NoopAction, Plan, SwapAction, TransferAction
from wallet_pilot.core.interfaces import ConfirmFn, LedgerClient, SwapClient
from wallet_pilot.core.policy import Policy, PolicyViolation, parse_u64, validate_plan
from wallet_pilot.errors import (
    ActionExecutionError,
    ConfigurationError,
    PolicyRejectedError,
    UnsupportedActionError,
)

if TYPE_CHECKING:
    from eth_account.signers.local import LocalAccount

logger = logging.getLogger(__name__)

DEFAULT_SLIPPAGE_BPS = 50


class ExecutionState(str, Enum):
    PENDING = "pending"
    VALIDATING = "validating"
    REJECTED = "rejected"
    VALIDATED = "validated"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ExecutionReport:
    """Progress of a single ``execute`` call.  Owned by that call only."""

    plan: Plan
    state: ExecutionState = ExecutionState.PENDING
    current_index: Optional[int] = None
    signatures: list[str] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    violations: list[PolicyViolation] = field(default_factory=list)
    failed_index: Optional[int] = None
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.state is ExecutionState.COMPLETED


class ExecutionCoordinator:
    """Runs validated plans against the ledger and swap collaborators.

    Parameters
    ----------
    policy:
        Policy every plan is re-checked against before execution.
    ledger, swaps:
        Collaborators for transfers and swaps.  Either may be omitted when
        plans never contain that kind of action.
    confirm:
        Called with each action before dispatch; a falsy result skips the
        action.  May be sync or async.  ``None`` accepts everything.
    wait_for_settlement:
        Wait for each transaction to be mined before moving on.
    default_slippage_bps:
        Slippage used for swaps that do not specify one, capped at the
        policy's ``max_slippage_bps``.
    """

    def __init__(
        self,
        policy: Policy,
        ledger: Optional[LedgerClient] = None,
        swaps: Optional[SwapClient] = None,
        confirm: Optional[ConfirmFn] = None,
        wait_for_settlement: bool = True,
        default_slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
    ):
        self.policy = policy
        self.ledger = ledger
        self.swaps = swaps
        self.confirm = confirm
        self.wait_for_settlement = wait_for_settlement
        self.default_slippage_bps = default_slippage_bps

    async def execute(self, plan: Plan, signer: LocalAccount) -> list[str]:
        """Execute *plan* and return the transaction ids, in order."""
        report = await self.run(plan, signer)
        return list(report.signatures)

    async def run(self, plan: Plan, signer: LocalAccount) -> ExecutionReport:
        """Like :meth:`execute` but return the full report.

        Raises
        ------
        PolicyRejectedError
            The plan has violations; nothing was executed.
        ConfigurationError
            A needed collaborator is missing; nothing was executed.
        ActionExecutionError
            A collaborator failed; earlier transactions stand.
        UnsupportedActionError
            The plan holds an action type the coordinator cannot handle.
        """
        report = ExecutionReport(plan=plan)

        report.state = ExecutionState.VALIDATING
        try:
            violations = validate_plan(plan, self.policy)
        except UnsupportedActionError as exc:
            report.state = ExecutionState.FAILED
            report.failed_index = exc.index
            report.error = exc
            raise
        if violations:
            report.state = ExecutionState.REJECTED
            report.violations = violations
            logger.warning("Refusing plan for %r: %d policy violation(s)", plan.goal, len(violations))
            raise PolicyRejectedError(violations, report)
        report.state = ExecutionState.VALIDATED

        self._require_collaborators(plan)

        report.state = ExecutionState.EXECUTING
        for index, action in enumerate(plan.actions):
            report.current_index = index
            try:
                if not await self._confirm(action):
                    logger.info("actions[%d] (%s) declined; skipping", index, action.type)
                    report.skipped.append(index)
                    continue
                signature = await self._dispatch(action, signer)
            except UnsupportedActionError as exc:
                report.state = ExecutionState.FAILED
                report.failed_index = index
                report.error = exc
                raise UnsupportedActionError(action, index=index) from None
            except Exception as exc:
                report.state = ExecutionState.FAILED
                report.failed_index = index
                report.error = exc
                logger.error("actions[%d] (%s) failed: %s", index, action.type, exc)
                raise ActionExecutionError(index, action, report, exc) from exc

            if signature is not None:
                logger.info("actions[%d] (%s) submitted: tx=%s", index, action.type, signature)
                report.signatures.append(signature)

        report.current_index = None
        report.state = ExecutionState.COMPLETED
        return report

    def _require_collaborators(self, plan: Plan) -> None:
        for action in plan.actions:
            if isinstance(action, TransferAction) and self.ledger is None:
                raise ConfigurationError("Plan contains transfers but no ledger is configured.")
            if isinstance(action, SwapAction) and self.swaps is None:
                raise ConfigurationError("Plan contains swaps but no swap aggregator is configured.")

    async def _confirm(self, action: Action) -> bool:
        if self.confirm is None:
            return True
        result = self.confirm(action)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    def _slippage_for(self, action: SwapAction) -> int:
        if action.slippage_bps is not None:
            return action.slippage_bps
        if self.policy.max_slippage_bps is not None:
            return min(self.default_slippage_bps, self.policy.max_slippage_bps)
        return self.default_slippage_bps

    async def _dispatch(self, action: Action, signer: LocalAccount) -> str | None:
        if isinstance(action, NoopAction):
            return None

        if isinstance(action, TransferAction):
            return await self.ledger.transfer(
                signer,
                action.to.strip(),
                _amount(action.amount),
                wait=self.wait_for_settlement,
            )

        if isinstance(action, SwapAction):
            quote = await self.swaps.quote(
                action.input_asset.strip(),
                action.output_asset.strip(),
                _amount(action.amount),
                self._slippage_for(action),
                action.swap_mode,
            )
            return await self.swaps.build_and_execute_swap(quote, signer, wait=self.wait_for_settlement)

        raise UnsupportedActionError(action)


def _amount(text: str) -> int:
    value = parse_u64(text)
    if value is None:
        raise ValueError(f"amount {text!r} is not an unsigned 64-bit integer")
    return value
