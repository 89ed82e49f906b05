from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np
import pytest

from biots.core.config import SimulationConfig
from biots.sim.genome import Genome, Species


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def config() -> SimulationConfig:
    cfg = SimulationConfig()
    cfg.population.minimum_count = 4
    cfg.population.maximum_count = 8
    cfg.population.dispense_delay = 0
    cfg.population.dispense_interval = 1
    cfg.algae.target_supply = 400.0
    return cfg


def make_genome(rng: np.random.Generator, species: Species = Species.PREY, generation: int = 0) -> Genome:
    genome = Genome.create(species, 10, [8], 8, rng=rng)
    genome.generation = generation
    return genome


class FakeResource:
    def __init__(self, id: int, energy: float) -> None:
        self.id = id
        self.energy = energy
        self.bites = 0

    def bitten(self) -> None:
        self.bites += 1


class FakeContext:
    """Records what a cell asks of its world."""

    def __init__(self, config: Optional[SimulationConfig] = None, seed: int = 7) -> None:
        self.config = config or SimulationConfig()
        self.rng = np.random.default_rng(seed)
        self.resources: List[FakeResource] = []
        self.full = False
        self.spawned: List[Tuple[Genome, Tuple[float, float], float]] = []
        self.deposits: List[Tuple[float, Tuple[float, float]]] = []
        self.removed = []
        self.has_contacts = True

    def contacted_resources(self, cell):
        return list(self.resources) if self.has_contacts else None

    def at_capacity(self) -> bool:
        return self.full

    def spawn(self, genome, position, heading) -> None:
        self.spawned.append((genome, position, heading))

    def add_resource(self, energy, position) -> None:
        self.deposits.append((energy, position))

    def remove_on_next_update(self, cell) -> None:
        self.removed.append(cell)


@pytest.fixture
def context() -> FakeContext:
    return FakeContext()
