"""MSPEIRV configuration module."""

from .bins import AgeBin, Bin
from .dimension import AgeDimension
from .params import (
    MATRIX_PARAMETERS,
    PER_STRATUM_PARAMETERS,
    ModelParameters,
    MSPEIRVParams,
    SIACampaign,
    SolverParams,
)

__all__ = [
    "Bin",
    "AgeBin",
    "AgeDimension",
    "ModelParameters",
    "MSPEIRVParams",
    "SIACampaign",
    "SolverParams",
    "PER_STRATUM_PARAMETERS",
    "MATRIX_PARAMETERS",
]
