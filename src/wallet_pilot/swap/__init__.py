"""Swap aggregator collaborator."""

from wallet_pilot.swap.aggregator import SwapAggregator, SwapQuote, SwapTransaction

__all__ = ["SwapAggregator", "SwapQuote", "SwapTransaction"]
