"""Bin types describing the age strata of the model."""

from pydantic import BaseModel, Field, NonNegativeInt, model_validator
from typing_extensions import Self


class Bin(BaseModel):
    """A catch-all bin class meant to represent a single age stratum."""

    name: str = Field(description="bin name, must be unique to the dimension.")


class AgeBin(Bin):
    """Age bin with inclusive min and max age in whole months."""

    min_value: NonNegativeInt = Field(
        description="Youngest age in months contained by this bin, inclusive."
    )
    max_value: NonNegativeInt = Field(
        description="Oldest age in months contained by this bin, inclusive."
    )

    def __init__(self, min_value, max_value, name=None):
        """Initialize an age bin with inclusive min/max and sensible default name.

        Parameters
        ----------
        min_value : int
            youngest age in months contained by the bin (inclusive)
        max_value : int
            oldest age in months contained by the bin (inclusive)
        name : str, optional
            name of the bin, by default f"{min_value}_{max_value}" if None
        """
        if name is None:
            name = f"{min_value}_{max_value}"
        super().__init__(name=name, min_value=min_value, max_value=max_value)

    @model_validator(mode="after")
    def _bin_valid_side(self) -> Self:
        """Assert that min_value <= max_value."""
        assert self.min_value <= self.max_value
        return self

    @property
    def width(self) -> int:
        """Number of whole months covered by this bin."""
        return self.max_value - self.min_value + 1

    def __contains__(self, age: float) -> bool:
        return self.min_value <= age < self.max_value + 1
