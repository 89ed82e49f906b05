# SPDX-License-Identifier: MIT
"""
Simulation modules: genome, inference, cell lifecycle, population and world.
"""

from .genome import (  # noqa: F401
    Genome,
    GenomeFormatError,
    Species,
    derive_child,
    load_genomes,
    save_genomes,
)
from .inference import Inference  # noqa: F401
from .cell import Cell, CellState  # noqa: F401
from .population import PopulationManager  # noqa: F401
from .world import World  # noqa: F401

__all__ = [
    "Cell",
    "CellState",
    "Genome",
    "GenomeFormatError",
    "Inference",
    "PopulationManager",
    "Species",
    "World",
    "derive_child",
    "load_genomes",
    "save_genomes",
]
