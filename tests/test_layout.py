import jax.numpy as jnp
import pytest
from pydantic import ValidationError

from mspeirv.config import AgeBin, AgeDimension
from mspeirv.layout import (
    COMPARTMENTS,
    VACCINE_ELIGIBLE,
    ParameterLayout,
    StateLayout,
)
from mspeirv.typing import OutOfRangeError, UnknownNameError


def test_default_layout_offsets():
    layout = StateLayout(num_stages=4)
    assert layout.compartments == COMPARTMENTS
    assert layout.num_classes == 10
    assert layout.size == 40
    for position, name in enumerate(COMPARTMENTS):
        assert layout.resolve(name) == position * 4
    assert layout.index("S", 2) == 6
    assert layout.index("V", 3) == 39


def test_vaccine_eligible_excludes_infectious_and_vaccinated():
    assert "I" not in VACCINE_ELIGIBLE
    assert "V" not in VACCINE_ELIGIBLE
    assert len(VACCINE_ELIGIBLE) == 8


def test_resolve_unknown_name():
    layout = StateLayout(num_stages=2)
    with pytest.raises(UnknownNameError):
        layout.resolve("Q")
    # still a KeyError for callers treating layouts as mappings
    with pytest.raises(KeyError):
        layout.index("Q", 0)


@pytest.mark.parametrize("stratum", [-1, 3, 10])
def test_index_out_of_range(stratum):
    layout = StateLayout(num_stages=3)
    with pytest.raises(OutOfRangeError):
        layout.index("S", stratum)


def test_invalid_compartments():
    with pytest.raises(ValidationError):
        StateLayout(compartments=("S", "S"), num_stages=2)
    with pytest.raises(ValidationError):
        StateLayout(compartments=(), num_stages=2)
    with pytest.raises(ValidationError):
        StateLayout(num_stages=0)


def test_layout_is_immutable():
    layout = StateLayout(num_stages=2)
    with pytest.raises(ValidationError):
        layout.num_stages = 3


def test_labels_round_trip_custom_order():
    order = tuple(reversed(COMPARTMENTS))
    layout = StateLayout(compartments=order, num_stages=3)
    labels = layout.labels()
    assert labels[:4] == ["V_0", "V_1", "V_2", "R_0"]
    assert labels[layout.index("SP2", 1)] == "SP2_1"
    rebuilt = StateLayout.from_labels(labels)
    assert rebuilt.compartments == order
    assert rebuilt.num_stages == 3


@pytest.mark.parametrize(
    "labels",
    [
        ["S_0", "I_0", "S_1", "I_1"],  # interleaved
        ["S_1", "S_2", "I_1", "I_2"],  # not starting at 0
        ["S_0", "S_1", "I_0"],  # uneven strata
        ["S_0", "S_0", "I_0", "I_1"],  # duplicated
    ],
)
def test_from_labels_rejects_bad_layouts(labels):
    with pytest.raises(ValueError):
        StateLayout.from_labels(labels)


def test_build_and_split_state():
    layout = StateLayout(num_stages=2)
    state = layout.build_state(S=[10.0, 20.0], I=[1.0, 2.0])
    assert state.shape == (20,)
    assert float(jnp.sum(state)) == 33.0
    assert float(state[layout.index("S", 1)]) == 20.0
    assert float(state[layout.index("I", 0)]) == 1.0
    parts = layout.split(state)
    assert set(parts) == set(COMPARTMENTS)
    assert jnp.array_equal(parts["S"], jnp.array([10.0, 20.0]))
    assert jnp.array_equal(parts["V"], jnp.zeros(2))


def test_build_state_errors():
    layout = StateLayout(num_stages=2)
    with pytest.raises(UnknownNameError):
        layout.build_state(Q=[1.0, 2.0])
    with pytest.raises(ValueError):
        layout.build_state(S=[1.0, 2.0, 3.0])
    with pytest.raises(ValueError):
        layout.split(jnp.zeros(19))


def test_layout_from_age_dimension():
    dimension = AgeDimension(
        bins=[AgeBin(0, 8), AgeBin(9, 11), AgeBin(12, 59)]
    )
    layout = StateLayout.from_age_dimension(dimension)
    assert layout.num_stages == 3
    assert layout.compartments == COMPARTMENTS


def test_parameter_layout_resolution():
    names = ["mu_0", "mu_1", "beta_0", "beta_1", "beta_2", "beta_3", "eps"]
    layout = ParameterLayout(names)
    assert layout.resolve("mu") == 0
    assert layout.resolve("beta") == 2
    assert layout.resolve("eps") == 6
    assert layout.length("beta") == 4
    assert layout.length("eps") == 1
    assert "mu" in layout
    assert "pv" not in layout
    values = [0.1, 0.2, 1.0, 2.0, 3.0, 4.0, 0.5]
    assert layout.block(values, "beta") == [1.0, 2.0, 3.0, 4.0]
    assert layout.scalar(values, "eps") == 0.5


def test_parameter_layout_unknown_name():
    layout = ParameterLayout(["mu_0", "eps"])
    with pytest.raises(UnknownNameError):
        layout.resolve("gamma")
    with pytest.raises(UnknownNameError):
        layout.length("gamma")


@pytest.mark.parametrize(
    "names",
    [
        ["eps", "eps"],
        ["mu_0", "gamma_0", "mu_1"],
        ["mu_0", "mu_2"],
    ],
)
def test_parameter_layout_rejects_bad_vectors(names):
    with pytest.raises(ValueError):
        ParameterLayout(names)
