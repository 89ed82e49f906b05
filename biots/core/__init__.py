# SPDX-License-Identifier: MIT
"""
Configuration and services around the simulation.

The backend lives in `biots.core.simulation_backend` and is imported from
there; it depends on `biots.sim`, which in turn reads the config classes
exported here.
"""

from .config import (  # noqa: F401
    AlgaeConfig,
    CellConfig,
    EnvironmentConfig,
    GenomeConfig,
    PopulationConfig,
    SimulationConfig,
    SimulationMode,
    WorldConfig,
    load_config,
)
