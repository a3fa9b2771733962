"""WalletAgent - the propose / validate / execute pipeline behind one object."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from wallet_pilot.core.actions import Plan
from wallet_pilot.core.executor import DEFAULT_SLIPPAGE_BPS, ExecutionCoordinator, ExecutionReport
from wallet_pilot.core.interfaces import ConfirmFn, LedgerClient, SwapClient
from wallet_pilot.core.planner import DEFAULT_MAX_ACTIONS, PlanSource
from wallet_pilot.core.policy import Policy, PolicyViolation, validate_plan
from wallet_pilot.errors import ConfigurationError

if TYPE_CHECKING:
    from eth_account.signers.local import LocalAccount

    from wallet_pilot.config import PilotConfig
    from wallet_pilot.llm.base import BaseLLMProvider
    from wallet_pilot.wallet.ledger import TokenBalance

logger = logging.getLogger(__name__)


class WalletAgent:
    """Asks a model for a plan and executes it under a policy.

    The model never sees key material: it only proposes JSON plans, which
    are normalized, checked against the policy, confirmed action by action,
    and only then signed locally.

    Without a *provider* every proposal is a single noop.  Without a
    *policy* the default (deny everything but noops) applies.
    """

    def __init__(
        self,
        provider: Optional[BaseLLMProvider] = None,
        policy: Optional[Policy] = None,
        ledger: Optional[LedgerClient] = None,
        swaps: Optional[SwapClient] = None,
        confirm: Optional[ConfirmFn] = None,
        max_actions: int = DEFAULT_MAX_ACTIONS,
        wait_for_settlement: bool = True,
        default_slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
    ):
        self.policy = policy if policy is not None else Policy()
        self.ledger = ledger
        self.planner = PlanSource(provider, max_actions=max_actions)
        self.coordinator = ExecutionCoordinator(
            self.policy,
            ledger=ledger,
            swaps=swaps,
            confirm=confirm,
            wait_for_settlement=wait_for_settlement,
            default_slippage_bps=default_slippage_bps,
        )

    @classmethod
    def from_config(cls, config: PilotConfig, confirm: Optional[ConfirmFn] = None) -> WalletAgent:
        """Build an agent and its collaborators from configuration.

        The LLM provider is only created when the default provider has an
        API key; the swap client only when ``swap.enabled`` is set.
        """
        from wallet_pilot.llm.router import LLMRouter
        from wallet_pilot.swap.aggregator import SwapAggregator
        from wallet_pilot.wallet.ledger import Web3Ledger

        router = LLMRouter(config.llm)
        provider = router.get_provider() if router.is_configured() else None
        if provider is None:
            logger.info("No LLM provider configured; proposals will be noop plans")

        ledger = Web3Ledger(
            config.ledger.chain,
            rpc_url=config.ledger.rpc_url,
            settlement_timeout=config.ledger.settlement_timeout,
        )
        swaps = None
        if config.swap.enabled:
            swaps = SwapAggregator(
                ledger,
                base_url=config.swap.base_url,
                api_key=config.swap.api_key or None,
                timeout=config.swap.timeout,
            )

        return cls(
            provider=provider,
            policy=config.policy,
            ledger=ledger,
            swaps=swaps,
            confirm=confirm,
            max_actions=config.agent.max_actions,
            wait_for_settlement=config.ledger.wait_for_settlement,
            default_slippage_bps=config.swap.default_slippage_bps,
        )

    async def propose_plan(
        self,
        goal: str,
        context: dict[str, Any] | None = None,
        max_actions: int | None = None,
    ) -> Plan:
        """Ask the model to propose a plan.  Always validate before executing."""
        return await self.planner.propose(goal, context=context, max_actions=max_actions)

    def validate(self, plan: Plan) -> list[PolicyViolation]:
        """Check *plan* against this agent's policy."""
        violations = validate_plan(plan, self.policy)
        if violations:
            logger.info("Plan for %r has %d violation(s)", plan.goal, len(violations))
        return violations

    async def execute(self, plan: Plan, signer: LocalAccount) -> list[str]:
        """Execute *plan*, returning transaction ids in action order.

        See :meth:`ExecutionCoordinator.run` for the errors raised.
        """
        return await self.coordinator.execute(plan, signer)

    async def run(self, plan: Plan, signer: LocalAccount) -> ExecutionReport:
        return await self.coordinator.run(plan, signer)

    async def get_balance(self, address: str) -> int:
        """Native balance of *address* in the chain's smallest unit."""
        if self.ledger is None:
            raise ConfigurationError("No ledger configured.")
        return await self.ledger.get_balance(address)

    async def get_token_balance(self, owner: str, token: str) -> TokenBalance:
        """ERC-20 balance of *owner* for the token contract *token*."""
        if self.ledger is None:
            raise ConfigurationError("No ledger configured.")
        return await self.ledger.get_token_balance(owner, token)
