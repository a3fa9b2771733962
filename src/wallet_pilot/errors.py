"""Exception hierarchy for Wallet Pilot."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from wallet_pilot.core.executor import ExecutionReport
    from wallet_pilot.core.policy import PolicyViolation


class WalletPilotError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(WalletPilotError):
    """A required collaborator or setting is missing."""


class LLMResponseFormatError(WalletPilotError):
    """The model answered, but not with parseable JSON."""


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class LedgerError(WalletPilotError):
    """Base class for ledger (chain) failures."""


class InvalidAddressError(LedgerError):
    pass


class InsufficientFundsError(LedgerError):
    pass


class TransactionRejectedError(LedgerError):
    """The node refused the transaction, or it reverted on-chain."""


class LedgerNetworkError(LedgerError):
    """Transport failure or settlement timeout."""


# ---------------------------------------------------------------------------
# Swap aggregator
# ---------------------------------------------------------------------------


class SwapAggregatorError(WalletPilotError):
    """Non-2xx or malformed response from the swap aggregator."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


class PolicyRejectedError(WalletPilotError):
    """Raised by ``execute`` when the plan fails policy validation.

    No action has been attempted when this is raised.
    """

    def __init__(
        self,
        violations: list[PolicyViolation],
        report: ExecutionReport | None = None,
    ):
        self.violations = list(violations)
        self.report = report
        detail = "; ".join(f"{v.path}: {v.message}" for v in self.violations)
        super().__init__(f"Plan violates policy: {detail}")


class ActionExecutionError(WalletPilotError):
    """A collaborator failed while executing the action at ``index``.

    Actions before ``index`` have already been submitted and are not rolled
    back; their transaction ids are in ``report.signatures``.
    """

    def __init__(self, index: int, action: Any, report: ExecutionReport, cause: BaseException):
        self.index = index
        self.action = action
        self.report = report
        super().__init__(f"actions[{index}] failed: {cause}")

    @property
    def signatures(self) -> list[str]:
        return list(self.report.signatures)


class UnsupportedActionError(WalletPilotError):
    """An action variant reached a consumer that does not handle it."""

    def __init__(self, action: Any, index: int | None = None):
        self.action = action
        self.index = index
        where = f"actions[{index}]: " if index is not None else ""
        super().__init__(f"{where}unsupported action {action!r}")
