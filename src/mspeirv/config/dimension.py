"""Age dimension shared by every compartment of the model."""

from typing import List

import jax.numpy as jnp
from jax import Array
from pydantic import BaseModel, Field, field_validator

from ..typing import OutOfRangeError
from .bins import AgeBin

DAYS_PER_MONTH = 365.0 / 12.0


class AgeDimension(BaseModel):
    """Ordered, contiguous age strata individuals age through."""

    name: str = Field(
        default="age", description="""Dimension name, "age" by default."""
    )
    bins: List[AgeBin] = Field(
        description="""Age strata, youngest first once validated."""
    )

    def __len__(self):
        """Get number of age strata."""
        return len(self.bins)

    @field_validator("bins", mode="after")
    @classmethod
    def _check_bin_names_unique(cls, bins: list[AgeBin]) -> list[AgeBin]:
        assert len(bins) > 0, "can not have dimension with no bins"
        names = [b.name for b in bins]
        assert len(set(names)) == len(
            names
        ), "Dimension of age bins must have unique bin names."
        return bins

    @field_validator("bins", mode="after")
    @classmethod
    def sort_age_bins(cls, bins: list[AgeBin]) -> list[AgeBin]:
        """Sort bins youngest first, asserting they neither overlap nor leave gaps."""
        bins_sorted = sorted(bins, key=lambda b: b.min_value)
        assert all(
            [
                bins_sorted[i].max_value + 1 == bins_sorted[i + 1].min_value
                for i in range(len(bins_sorted) - 1)
            ]
        ), "AgeBins within a dimension can not overlap or leave gaps."
        return bins_sorted

    def stratum_for_age(self, age: float) -> int:
        """Get the index of the stratum containing `age` in months.

        Raises
        ------
        OutOfRangeError
            if no bin of this dimension contains `age`.
        """
        for idx, age_bin in enumerate(self.bins):
            if age in age_bin:
                return idx
        raise OutOfRangeError(
            f"age {age} not within [{self.bins[0].min_value}, "
            f"{self.bins[-1].max_value + 1})"
        )

    def aging_rates(self, days_per_month: float = DAYS_PER_MONTH) -> Array:
        """Per-day rate at which individuals leave each stratum for the next.

        Parameters
        ----------
        days_per_month : float, optional
            length of a month in simulation days, by default 365 / 12.

        Returns
        -------
        jax.Array
            `1 / width` of each bin in days, the oldest stratum does not
            age out so its rate is 0. Shape=(len(self),)
        """
        widths = jnp.array([b.width for b in self.bins], dtype=float)
        rates = 1.0 / (widths * days_per_month)
        return rates.at[-1].set(0.0)
