"""MSPEIRV, an age-stratified rubella transmission model.

MSPEIRV computes the instantaneous rates of change of a ten compartment
(maternally immune, susceptible, three susceptible pregnant stages, exposed,
exposed pregnant, infectious, recovered, vaccinated) model over age strata,
and applies mass vaccination campaigns (SIAs) to its state.
"""

import importlib

import jax

# rates of small strata are summed against whole population births
jax.config.update("jax_enable_x64", True)

from . import config, layout, simulation, typing, utils  # noqa: E402

# Defines all the different modules able to be imported from src
__all__ = ["config", "layout", "simulation", "typing", "utils"]
submodules = ["config", "layout", "simulation", "typing", "utils"]
# Append the __all__ of all submodules to the main __all__
for submodule in submodules:
    module = importlib.import_module(f".{submodule}", package="mspeirv")
    if hasattr(module, "__all__"):
        for attr in module.__all__:
            globals()[attr] = getattr(module, attr)
            __all__.append(attr)
# effectively flattens all submodules into mspeirv namespace.
