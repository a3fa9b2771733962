"""Plan source: turn a goal into a candidate plan.

Whatever the model returns is untrusted.  ``normalize_plan`` coerces it
into a structurally valid :class:`Plan` (or a harmless noop plan); semantic
safety is left to the policy engine.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from wallet_pilot.core.actions import Plan, parse_action
from wallet_pilot.errors import LLMResponseFormatError
from wallet_pilot.llm.base import BaseLLMProvider

logger = logging.getLogger(__name__)

DEFAULT_MAX_ACTIONS = 3

NO_INFERENCE_SUMMARY = "no inference configured"
INVALID_PLAN_SUMMARY = "invalid plan"

SYSTEM_PROMPT = "\n".join(
    [
        "You are an automated wallet assistant for an EVM-compatible chain.",
        "You MUST output ONLY valid JSON, no markdown.",
        "You propose actions, but you DO NOT have access to private keys.",
        "Use conservative defaults and prefer a noop action when unsure.",
    ]
)

# Informal schema shown to the model.
PLAN_SCHEMA_HINT: dict[str, Any] = {
    "goal": "string",
    "summary": "string",
    "actions": [
        {"type": "noop", "reason": "string?"},
        {"type": "transfer", "to": "0x address", "amount": "string u64 (wei)"},
        {
            "type": "swap",
            "inputAsset": "token address",
            "outputAsset": "token address",
            "amount": "string u64 raw units",
            "slippageBps": "number?",
            "swapMode": '"ExactIn" | "ExactOut"?',
        },
    ],
}


def build_user_prompt(goal: str, context: dict[str, Any] | None, max_actions: int) -> str:
    return "\n".join(
        [
            f"Goal: {goal}",
            "",
            "Constraints:",
            f"- Return at most {max_actions} actions.",
            "- If you do not have enough info, return a single noop action.",
            "",
            "Context (JSON):",
            json.dumps(context or {}, indent=2, default=str),
            "",
            "Output JSON schema (informal):",
            json.dumps(PLAN_SCHEMA_HINT, indent=2),
            "",
            "Return ONLY a JSON object with keys: goal, summary, actions.",
        ]
    )


def normalize_plan(raw: Any, goal: str, max_actions: int) -> Plan:
    """Coerce an untrusted proposal into a well-formed plan.

    - a non-object becomes the ``invalid plan`` noop plan
    - a non-list ``actions`` becomes a single noop
    - actions beyond *max_actions* are dropped
    - any entry that does not parse as an action invalidates the whole plan
    """
    if not isinstance(raw, dict):
        logger.warning("Proposal is not a JSON object (%s); using noop plan", type(raw).__name__)
        return Plan.noop(goal, INVALID_PLAN_SUMMARY)

    summary = raw.get("summary")
    if not isinstance(summary, str):
        summary = None

    entries = raw.get("actions")
    if not isinstance(entries, list):
        entries = [{"type": "noop"}]

    try:
        actions = tuple(parse_action(entry) for entry in entries[:max_actions])
    except ValidationError as exc:
        logger.warning("Proposal contains a malformed action; using noop plan: %s", exc)
        return Plan.noop(goal, INVALID_PLAN_SUMMARY)

    if len(entries) > max_actions:
        logger.info("Dropped %d proposed actions beyond the cap of %d", len(entries) - max_actions, max_actions)
    return Plan(goal=goal, summary=summary, actions=actions)


class PlanSource:
    """Proposes plans through an LLM provider, or a noop fallback without one."""

    def __init__(
        self,
        provider: Optional[BaseLLMProvider] = None,
        max_actions: int = DEFAULT_MAX_ACTIONS,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        if max_actions < 1:
            raise ValueError("max_actions must be at least 1")
        self.provider = provider
        self.max_actions = max_actions
        self.system_prompt = system_prompt

    async def propose(
        self,
        goal: str,
        context: dict[str, Any] | None = None,
        max_actions: int | None = None,
    ) -> Plan:
        """Ask the model for a plan toward *goal*.

        Provider transport errors propagate; a non-JSON answer degrades to
        the noop plan.
        """
        cap = self.max_actions if max_actions is None else max_actions
        if cap < 1:
            raise ValueError("max_actions must be at least 1")

        if self.provider is None:
            return Plan.noop(goal, NO_INFERENCE_SUMMARY)

        prompt = build_user_prompt(goal, context, cap)
        try:
            raw = await self.provider.complete_json(self.system_prompt, prompt)
        except LLMResponseFormatError as exc:
            logger.warning("Unparseable proposal for goal %r: %s", goal, exc)
            return Plan.noop(goal, INVALID_PLAN_SUMMARY)

        plan = normalize_plan(raw, goal, cap)
        logger.info("Proposed plan for %r with %d action(s)", goal, len(plan.actions))
        return plan
