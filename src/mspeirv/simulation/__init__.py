"""Module to hold the MSPEIRV rate function, SIA operator and solvers."""

from .odes import build_save_times, simulate, simulate_with_campaigns
from .rates import (
    MSPEIRVRates,
    aging_inflow,
    get_rates,
    routine_coverage,
    seasonal_forcing,
)
from .sia import apply_campaign, apply_sia

__all__ = [
    "MSPEIRVRates",
    "get_rates",
    "seasonal_forcing",
    "routine_coverage",
    "aging_inflow",
    "apply_sia",
    "apply_campaign",
    "simulate",
    "simulate_with_campaigns",
    "build_save_times",
]
