import pytest

from mspeirv.config import (
    MATRIX_PARAMETERS,
    PER_STRATUM_PARAMETERS,
    ModelParameters,
)
from mspeirv.layout import StateLayout


@pytest.fixture
def make_parameters():
    """Build ModelParameters with every rate 0 unless overridden."""

    def _make(num_stages, **overrides):
        fields = {name: [0.0] * num_stages for name in PER_STRATUM_PARAMETERS}
        for name in MATRIX_PARAMETERS:
            fields[name] = [[0.0] * num_stages for _ in range(num_stages)]
        fields.update(overrides)
        return ModelParameters(num_stages=num_stages, **fields)

    return _make


@pytest.fixture
def two_stage_layout():
    return StateLayout(num_stages=2)
