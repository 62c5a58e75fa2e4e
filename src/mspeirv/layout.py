"""Mappings between symbolic names and offsets within flat model vectors.

`StateLayout` describes the state vector, one contiguous block of
`num_stages` age strata per compartment. `ParameterLayout` describes a flat,
labelled parameter vector as handed over by a parameter provider. Both resolve
names once and fail fast on anything they do not know about.
"""

import logging
import re
from collections import OrderedDict
from functools import cached_property
from typing import TYPE_CHECKING, Dict, Iterable, List, Sequence, Tuple

import jax.numpy as jnp
from jax import Array
from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator
from typing_extensions import Self

from .typing import OutOfRangeError, StateVector, UnknownNameError

if TYPE_CHECKING:
    from .config.dimension import AgeDimension

__all__ = [
    "StateLayout",
    "ParameterLayout",
    "COMPARTMENTS",
    "NUM_CLASSES",
    "INFECTIOUS",
    "VACCINATED",
    "VACCINE_ELIGIBLE",
]

logger = logging.getLogger("mspeirv")

# maternally immune, susceptible, susceptible pregnant (3 stages), exposed,
# exposed pregnant, infectious, recovered, vaccinated
COMPARTMENTS: Tuple[str, ...] = (
    "M",
    "S",
    "SP1",
    "SP2",
    "SP3",
    "E",
    "EP",
    "I",
    "R",
    "V",
)
NUM_CLASSES = len(COMPARTMENTS)
INFECTIOUS = "I"
VACCINATED = "V"
# everyone but the infectious and already vaccinated can be vaccinated
VACCINE_ELIGIBLE: Tuple[str, ...] = tuple(
    c for c in COMPARTMENTS if c not in (INFECTIOUS, VACCINATED)
)

_LABEL = re.compile(r"^(?P<name>.+)_(?P<idx>\d+)$")


def _split_label(label: str) -> Tuple[str, int | None]:
    """Split `"name_k"` into `("name", k)`, bare names into `(name, None)`."""
    match = _LABEL.match(label)
    if match is None:
        return label, None
    return match.group("name"), int(match.group("idx"))


def _group_blocks(labels: Sequence[str]) -> "OrderedDict[str, Tuple[int, int]]":
    """Group labels into contiguous named blocks of (offset, length).

    Raises
    ------
    ValueError
        if a name appears twice, its entries are interleaved with another
        name's, or its indices do not ascend from 0 one at a time.
    """
    blocks: "OrderedDict[str, Tuple[int, int]]" = OrderedDict()
    previous = None
    for position, label in enumerate(labels):
        name, idx = _split_label(label)
        if name not in blocks:
            if idx not in (None, 0):
                raise ValueError(
                    f"block {name} must start at {name}_0, found {label}"
                )
            blocks[name] = (position, 1)
        else:
            offset, length = blocks[name]
            if previous != name or idx is None or idx != length:
                raise ValueError(
                    f"found {label} at position {position}, entries of {name} "
                    "must be contiguous, unique and in ascending order."
                )
            blocks[name] = (offset, length + 1)
        previous = name
    return blocks


class StateLayout(BaseModel):
    """Layout of the flat state vector, shared by the rate function and SIA operator."""

    model_config = ConfigDict(frozen=True)
    compartments: Tuple[str, ...] = Field(
        default=COMPARTMENTS,
        description="""Compartment names in the order their blocks appear
        within the state vector, must be unique.""",
    )
    num_stages: PositiveInt = Field(
        description="""Number of age strata, the length of each compartment block."""
    )

    @field_validator("compartments", mode="after")
    @classmethod
    def _check_compartments(cls, compartments: Tuple[str, ...]):
        assert len(compartments) > 0, "can not have a layout with no compartments"
        assert len(set(compartments)) == len(
            compartments
        ), f"compartment names must be unique, found {compartments}"
        return compartments

    @cached_property
    def offsets(self) -> Dict[str, int]:
        """Base offset of every compartment block."""
        return {
            name: position * self.num_stages
            for position, name in enumerate(self.compartments)
        }

    @property
    def num_classes(self) -> int:
        """Number of compartments."""
        return len(self.compartments)

    @property
    def size(self) -> int:
        """Length of a state vector following this layout."""
        return self.num_classes * self.num_stages

    def resolve(self, name: str) -> int:
        """Get the offset of stratum 0 of compartment `name`.

        Raises
        ------
        UnknownNameError
            if `name` is not a compartment of this layout.
        """
        try:
            return self.offsets[name]
        except KeyError:
            raise UnknownNameError(
                f"compartment {name} not found in layout {self.compartments}"
            ) from None

    def index(self, compartment: str, stratum: int) -> int:
        """Get the state vector index of `compartment` within age `stratum`.

        Raises
        ------
        UnknownNameError
            if `compartment` is not a compartment of this layout.
        OutOfRangeError
            if `stratum` is outside of [0, num_stages).
        """
        base = self.resolve(compartment)
        if not 0 <= stratum < self.num_stages:
            raise OutOfRangeError(
                f"stratum {stratum} outside of [0, {self.num_stages})"
            )
        return base + stratum

    def labels(self) -> List[str]:
        """Labels of every state entry, `"<compartment>_<stratum>"`."""
        return [
            f"{name}_{stratum}"
            for name in self.compartments
            for stratum in range(self.num_stages)
        ]

    def build_state(self, **compartments: Iterable[float]) -> StateVector:
        """Assemble a state vector from per-compartment populations.

        Parameters
        ----------
        **compartments : Iterable[float]
            population of each age stratum keyed by compartment name,
            compartments not passed are filled with zeros.

        Returns
        -------
        StateVector
            flat vector of length `self.size`.

        Raises
        ------
        UnknownNameError
            if a keyword does not name a compartment of this layout.
        ValueError
            if a population does not have `num_stages` entries.
        """
        for name in compartments:
            self.resolve(name)
        blocks = []
        for name in self.compartments:
            values = jnp.asarray(
                compartments.get(name, jnp.zeros(self.num_stages)),
                dtype=float,
            )
            if values.shape != (self.num_stages,):
                raise ValueError(
                    f"compartment {name} requires {self.num_stages} strata, "
                    f"got shape {values.shape}"
                )
            blocks.append(values)
        return jnp.concatenate(blocks)

    def split(self, state: StateVector) -> Dict[str, Array]:
        """View a state vector as a dict of per-compartment arrays."""
        self.check_state(state)
        return {
            name: state[offset : offset + self.num_stages]
            for name, offset in self.offsets.items()
        }

    def check_state(self, state: StateVector) -> None:
        """Raise ValueError unless `state` is a flat vector matching this layout."""
        if jnp.shape(state) != (self.size,):
            raise ValueError(
                f"state of shape {jnp.shape(state)} does not match layout "
                f"with {self.num_classes} compartments and "
                f"{self.num_stages} strata"
            )

    @classmethod
    def from_labels(cls, labels: Sequence[str]) -> Self:
        """Rebuild a layout from the labels of a state vector.

        Raises
        ------
        ValueError
            if compartment blocks are not contiguous, do not ascend from
            stratum 0, or have differing numbers of strata.
        """
        blocks = _group_blocks(labels)
        strata = {name: length for name, (_, length) in blocks.items()}
        lengths = set(strata.values())
        if len(lengths) != 1:
            raise ValueError(
                "all compartments must have the same number of strata, "
                f"found {strata}"
            )
        layout = cls(compartments=tuple(blocks.keys()), num_stages=lengths.pop())
        logger.debug(
            f"Built state layout {layout.compartments} with "
            f"{layout.num_stages} strata from {len(labels)} labels."
        )
        return layout

    @classmethod
    def from_age_dimension(
        cls,
        dimension: "AgeDimension",
        compartments: Tuple[str, ...] = COMPARTMENTS,
    ) -> Self:
        """Create a layout with one stratum per age bin of `dimension`."""
        return cls(compartments=compartments, num_stages=len(dimension))


class ParameterLayout:
    """Offsets of named blocks within a flat, labelled parameter vector.

    Vector and matrix parameters are labelled `"<name>_<k>"` for their
    `k`-th entry, scalars by their bare name.
    """

    def __init__(self, names: Sequence[str]):
        """Resolve every named block of `names` once.

        Raises
        ------
        ValueError
            if a name is duplicated or its entries are not contiguous.
        """
        self.names = tuple(names)
        self._blocks = _group_blocks(self.names)
        logger.debug(
            f"Resolved {len(self._blocks)} parameter blocks from "
            f"{len(self.names)} names."
        )

    def __contains__(self, name: str) -> bool:
        return name in self._blocks

    def resolve(self, name: str) -> int:
        """Get the offset of the first entry of parameter `name`.

        Raises
        ------
        UnknownNameError
            if `name` is not present in the parameter vector.
        """
        try:
            return self._blocks[name][0]
        except KeyError:
            raise UnknownNameError(
                f"parameter {name} not found in parameter vector"
            ) from None

    def length(self, name: str) -> int:
        """Number of entries in the block of parameter `name`."""
        self.resolve(name)
        return self._blocks[name][1]

    def block(self, values: Sequence[float], name: str) -> List[float]:
        """Slice the entries of parameter `name` out of `values`."""
        offset = self.resolve(name)
        return [float(v) for v in values[offset : offset + self.length(name)]]

    def scalar(self, values: Sequence[float], name: str) -> float:
        """Get the single value of scalar parameter `name` out of `values`."""
        return float(values[self.resolve(name)])
