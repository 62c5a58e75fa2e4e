"""Module for declaring types and errors used throughout MSPEIRV."""

from typing import Callable

import jax
from annotated_types import Ge, Le
from jaxtyping import PyTree
from typing_extensions import Annotated

__all__ = [
    "StateVector",
    "StateGradients",
    "UnitIntervalFloat",
    "ODE_Eqns",
    "UnknownNameError",
    "OutOfRangeError",
    "InvalidCoverageError",
]

# flat state vector, one contiguous block of age strata per compartment
StateVector = jax.Array
StateGradients = jax.Array

UnitIntervalFloat = Annotated[float, Ge(0.0), Le(1.0)]

ODE_Eqns = Callable[
    [jax.typing.ArrayLike, StateVector, PyTree],
    StateGradients,
]


class UnknownNameError(KeyError):
    """Raised when a compartment or parameter name is absent from a layout."""

    pass


class OutOfRangeError(IndexError):
    """Raised when an age stratum index or stratum range is out of bounds."""

    pass


class InvalidCoverageError(ValueError):
    """Raised when a vaccination coverage lies outside of [0, 1]."""

    pass
