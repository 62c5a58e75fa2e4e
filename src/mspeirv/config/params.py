"""Module containing Parameter classes for storing MSPEIRV parameters."""

import logging
from typing import List, Optional, Sequence, Tuple

import chex
import jax.numpy as jnp
import numpy as np
from diffrax import AbstractSolver, Tsit5
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    NonNegativeInt,
    PositiveFloat,
    PositiveInt,
    field_validator,
    model_validator,
)
from typing_extensions import Self

from ..layout import NUM_CLASSES, ParameterLayout, StateLayout
from ..typing import UnitIntervalFloat

logger = logging.getLogger("mspeirv")

# parameters holding one value per age stratum
PER_STRATUM_PARAMETERS: Tuple[str, ...] = (
    "b",
    "mu",
    "theta",
    "sigma",
    "gamma",
    "omega",
    "f",
    "delta1",
    "delta2",
    "delta3",
    "N",
)
# parameters holding a (num_stages, num_stages) matrix, [infecting, receiving]
MATRIX_PARAMETERS: Tuple[str, ...] = ("beta", "alpha")


@chex.dataclass
class MSPEIRVParams:
    """The internal representation of parameters passed to the rate function.

    Every per-stratum rate is a vector of shape (num_stages,), `beta` and
    `alpha` are indexed [infecting stratum, receiving stratum].
    """

    b: chex.ArrayDevice
    mu: chex.ArrayDevice
    theta: chex.ArrayDevice
    sigma: chex.ArrayDevice
    gamma: chex.ArrayDevice
    omega: chex.ArrayDevice
    f: chex.ArrayDevice
    delta1: chex.ArrayDevice
    delta2: chex.ArrayDevice
    delta3: chex.ArrayDevice
    N: chex.ArrayDevice
    beta: chex.ArrayDevice
    alpha: chex.ArrayDevice
    eps: chex.ArrayDevice
    db: chex.ArrayDevice
    routine_vaccination: chex.ArrayDevice
    pv: chex.ArrayDevice
    routine_vaccination_entry_stratum: chex.ArrayDevice


class SolverParams(BaseModel):
    """Parameters used by the ODE solver."""

    model_config = ConfigDict(arbitrary_types_allowed=True)
    solver_method: AbstractSolver = Field(
        default_factory=lambda: Tsit5(),
        description="""What sort of differential equation solver you wish to
        use to solve ODEs, defaults to Tsit5(), a general solver good for
        non-stiff problems. For more information on picking a solver see:
        https://docs.kidger.site/diffrax/usage/how-to-choose-a-solver/""",
    )
    ode_solver_rel_tolerance: PositiveFloat = Field(
        default=1e-5,
        description="""Solver relative tolerance, used by the adaptive step
        sizer. Use constant_step_size to switch to constant solver mode.""",
    )
    ode_solver_abs_tolerance: PositiveFloat = Field(
        default=1e-6,
        description="""Solver absolute tolerance, used by the adaptive step
        sizer. Use constant_step_size to switch to constant solver mode.""",
    )
    max_steps: PositiveInt = Field(
        default=int(1e6),
        description="""The maximum number of steps the ode solver will take
        before raising an error. For long multi-year runs use higher number.""",
    )
    constant_step_size: NonNegativeFloat = Field(
        default=0,
        description="""If non-zero, solver will use constant step size
        equal to the value set. If 0 solver will use adaptive step size with
        ode_solver_rel/abs_tolerance""",
    )
    discontinuity_points: list[float] = Field(
        default_factory=lambda: [],
        description="""Simulation days at which the rates jump, for example
        the first day of each year of routine vaccination coverage `pv`.""",
    )


class SIACampaign(BaseModel):
    """A supplementary immunization activity scheduled at a single instant."""

    first_stratum: NonNegativeInt = Field(
        description="""Youngest age stratum targeted, 0-based inclusive."""
    )
    last_stratum: NonNegativeInt = Field(
        description="""Oldest age stratum targeted, 0-based inclusive."""
    )
    coverage: UnitIntervalFloat = Field(
        description="""Fraction of the eligible population vaccinated."""
    )
    trigger_time: NonNegativeFloat = Field(
        description="""Simulation day the campaign is conducted on."""
    )

    @model_validator(mode="after")
    def _check_stratum_range(self) -> Self:
        assert self.first_stratum <= self.last_stratum, (
            f"first_stratum {self.first_stratum} must not exceed "
            f"last_stratum {self.last_stratum}"
        )
        return self


class ModelParameters(BaseModel):
    """Validated parameters of the age-stratified MSPEIRV model.

    Rates are per day. Each per-stratum parameter holds one value per age
    stratum, `beta` and `alpha` hold a `num_stages` x `num_stages` matrix
    indexed [infecting stratum, receiving stratum].
    """

    num_stages: PositiveInt = Field(description="Number of age strata.")
    num_classes: PositiveInt = Field(
        default=NUM_CLASSES,
        description="Number of compartments, the model defines exactly 10.",
    )
    b: List[NonNegativeFloat] = Field(description="Birth rate.")
    mu: List[NonNegativeFloat] = Field(description="Background mortality.")
    theta: List[NonNegativeFloat] = Field(
        description="Rate of aging out of each stratum into the next."
    )
    sigma: List[NonNegativeFloat] = Field(
        description="Rate exposed individuals become infectious."
    )
    gamma: List[NonNegativeFloat] = Field(description="Recovery rate.")
    omega: List[NonNegativeFloat] = Field(
        description="Waning rate of maternal immunity."
    )
    f: List[NonNegativeFloat] = Field(
        description="Rate susceptible individuals become pregnant."
    )
    delta1: List[NonNegativeFloat] = Field(
        description="Rate from first to second pregnancy stage."
    )
    delta2: List[NonNegativeFloat] = Field(
        description="Rate from second to third pregnancy stage."
    )
    delta3: List[NonNegativeFloat] = Field(
        description="Rate pregnancies end, returning to susceptible."
    )
    N: List[NonNegativeFloat] = Field(
        description="""Target population size of each stratum, anchors force
        of infection and pregnancy entry to a reference population."""
    )
    beta: List[List[NonNegativeFloat]] = Field(
        description="Transmission rate matrix [infecting, receiving]."
    )
    alpha: List[List[float]] = Field(
        description="Seasonal amplitude matrix [infecting, receiving]."
    )
    eps: NonNegativeFloat = Field(
        default=0.0,
        description="Per capita rate of externally introduced infections.",
    )
    db: float = Field(
        default=0.0,
        gt=-1.0,
        description="""Per day secular trend of birth and pregnancy rates,
        both are scaled by (1 + db) ** t.""",
    )
    sim_type: int = Field(
        default=0,
        description="0 for no routine vaccination, anything else enables it.",
    )
    pv: List[UnitIntervalFloat] = Field(
        default_factory=lambda: [],
        description="""Routine vaccination coverage of each simulation year,
        indexed by floor(t / 365).""",
    )
    routine_vaccination_entry_stratum: Optional[PositiveInt] = Field(
        default=None,
        description="""Stratum whose incoming cohort is routinely vaccinated,
        the first vaccination-eligible age group.""",
    )

    @field_validator(
        *PER_STRATUM_PARAMETERS, *MATRIX_PARAMETERS, "pv", mode="before"
    )
    @classmethod
    def _array_to_list(cls, value):
        if hasattr(value, "shape"):
            return np.asarray(value).tolist()
        return value

    @field_validator("num_classes", mode="after")
    @classmethod
    def _check_num_classes(cls, num_classes: int) -> int:
        assert (
            num_classes == NUM_CLASSES
        ), f"model requires {NUM_CLASSES} compartments, got {num_classes}"
        return num_classes

    @model_validator(mode="after")
    def _check_shapes(self) -> Self:
        for name in PER_STRATUM_PARAMETERS:
            values = getattr(self, name)
            assert len(values) == self.num_stages, (
                f"{name} requires one value per stratum ({self.num_stages}), "
                f"got {len(values)}"
            )
        for name in MATRIX_PARAMETERS:
            matrix = getattr(self, name)
            assert len(matrix) == self.num_stages and all(
                len(row) == self.num_stages for row in matrix
            ), f"{name} must be a {self.num_stages}x{self.num_stages} matrix"
        return self

    @model_validator(mode="after")
    def _check_routine_vaccination(self) -> Self:
        if self.sim_type != 0:
            assert (
                len(self.pv) > 0
            ), "routine vaccination requires at least one year of coverage pv"
            assert self.routine_vaccination_entry_stratum is not None, (
                "routine vaccination requires "
                "routine_vaccination_entry_stratum"
            )
        if self.routine_vaccination_entry_stratum is not None:
            assert self.routine_vaccination_entry_stratum < self.num_stages, (
                f"routine_vaccination_entry_stratum "
                f"{self.routine_vaccination_entry_stratum} outside of "
                f"[1, {self.num_stages})"
            )
        return self

    @property
    def routine_vaccination(self) -> bool:
        """Whether routine vaccination is active for this run."""
        return self.sim_type != 0

    def state_layout(self) -> StateLayout:
        """Default state layout with this parameter set's number of strata."""
        return StateLayout(num_stages=self.num_stages)

    def to_ode_params(self) -> MSPEIRVParams:
        """Vectorize parameters into jax arrays for the rate function."""
        per_stratum = {
            name: jnp.array(getattr(self, name), dtype=float)
            for name in PER_STRATUM_PARAMETERS
        }
        # an unused single year keeps indexing valid without routine vaccination
        pv = self.pv if len(self.pv) > 0 else [0.0]
        entry = self.routine_vaccination_entry_stratum
        return MSPEIRVParams(
            **per_stratum,
            beta=jnp.array(self.beta, dtype=float),
            alpha=jnp.array(self.alpha, dtype=float),
            eps=jnp.array(self.eps, dtype=float),
            db=jnp.array(self.db, dtype=float),
            routine_vaccination=jnp.array(self.routine_vaccination),
            pv=jnp.array(pv, dtype=float),
            routine_vaccination_entry_stratum=jnp.array(
                -1 if entry is None else entry
            ),
        )

    def to_named_vector(self) -> Tuple[List[str], List[float]]:
        """Flatten into the labelled vector read by `from_named_vector`."""
        names: List[str] = []
        values: List[float] = []
        for name in PER_STRATUM_PARAMETERS:
            for k, value in enumerate(getattr(self, name)):
                names.append(f"{name}_{k}")
                values.append(value)
        for name in MATRIX_PARAMETERS:
            flat = np.asarray(getattr(self, name), dtype=float).ravel()
            for k, value in enumerate(flat):
                names.append(f"{name}_{k}")
                values.append(float(value))
        for k, value in enumerate(self.pv):
            names.append(f"pv_{k}")
            values.append(value)
        scalars = {
            "eps": self.eps,
            "db": self.db,
            "sim_type": self.sim_type,
            "num_stages": self.num_stages,
            "num_classes": self.num_classes,
        }
        if self.routine_vaccination_entry_stratum is not None:
            scalars["routine_vaccination_entry_stratum"] = (
                self.routine_vaccination_entry_stratum
            )
        for name, value in scalars.items():
            names.append(name)
            values.append(float(value))
        return names, values

    @classmethod
    def from_named_vector(
        cls, names: Sequence[str], values: Sequence[float]
    ) -> Self:
        """Parse a flat, labelled parameter vector.

        Vector and matrix parameters are labelled `"<name>_<k>"` for their
        `k`-th entry (matrices flattened row-major), scalars by their bare
        name. `pv` and `routine_vaccination_entry_stratum` are required
        when `sim_type` is non-zero, otherwise only read when present.

        Parameters
        ----------
        names : Sequence[str]
            label of every entry of `values`.
        values : Sequence[float]
            the parameter vector.

        Returns
        -------
        ModelParameters
            validated parameters.

        Raises
        ------
        UnknownNameError
            if a required parameter is absent from `names`, including
            `pv` or `routine_vaccination_entry_stratum` when `sim_type` is
            non-zero.
        ValueError
            if `names` and `values` differ in length or a matrix does not
            hold num_stages ** 2 entries.
        pydantic.ValidationError
            if the parameters fail validation.
        """
        if len(names) != len(values):
            raise ValueError(
                f"got {len(names)} names for {len(values)} parameter values"
            )
        layout = ParameterLayout(names)
        num_stages = int(layout.scalar(values, "num_stages"))
        fields = {
            "num_stages": num_stages,
            "num_classes": int(layout.scalar(values, "num_classes")),
            "eps": layout.scalar(values, "eps"),
            "db": layout.scalar(values, "db"),
            "sim_type": int(layout.scalar(values, "sim_type")),
        }
        for name in PER_STRATUM_PARAMETERS:
            fields[name] = layout.block(values, name)
        for name in MATRIX_PARAMETERS:
            flat = layout.block(values, name)
            if len(flat) != num_stages**2:
                raise ValueError(
                    f"{name} requires {num_stages ** 2} entries, got {len(flat)}"
                )
            fields[name] = np.reshape(flat, (num_stages, num_stages)).tolist()
        # both are required names once routine vaccination is enabled
        if fields["sim_type"] != 0 or "pv" in layout:
            fields["pv"] = layout.block(values, "pv")
        if (
            fields["sim_type"] != 0
            or "routine_vaccination_entry_stratum" in layout
        ):
            fields["routine_vaccination_entry_stratum"] = int(
                layout.scalar(values, "routine_vaccination_entry_stratum")
            )
        logger.debug(
            f"Parsed parameters for {num_stages} strata from "
            f"{len(names)} named values."
        )
        return cls(**fields)
