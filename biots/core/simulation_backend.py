from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

import numpy as np
import pandas as pd
from loguru import logger

from biots.sim.genome import Genome, load_genomes, save_genomes
from biots.sim.world import World

from .config import SimulationConfig


@dataclass
class SimulationState:
    tick: int = 0
    population: int = 0
    mean_energy: float = 0.0
    births: int = 0
    deaths: int = 0
    algae_count: int = 0
    unborn_count: int = 0
    telemetry: Dict = field(default_factory=dict)


class SimulationBackend(Protocol):
    """Interface a driver uses to control a simulation implementation."""

    def configure(self, config: SimulationConfig) -> None:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def step(self) -> SimulationState:
        ...

    def snapshot(self) -> Dict:
        ...

    def save_genomes(self, path: Path) -> Path:
        ...

    def load_genomes(self, path: Path) -> None:
        ...


class BiotSimulationBackend:
    """
    Drives a `World` through the backend protocol and keeps a per-step stats
    history that can be exported as CSV.
    """

    def __init__(
        self,
        *,
        seed: Optional[int] = None,
        seed_genomes: Sequence[Genome] = (),
        substeps: int = 1,
        sleep_interval: float = 0.0,
    ) -> None:
        self._config = SimulationConfig()
        self._seed = seed
        self._seed_genomes: List[Genome] = list(seed_genomes)
        self._world: Optional[World] = None
        self._state = SimulationState()
        self._history: List[Dict] = []
        self._lock = threading.Lock()
        self._running = False
        self._sleep_interval = max(0.0, float(sleep_interval))
        self._substeps = max(1, int(substeps))

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def world(self) -> World:
        with self._lock:
            return self._ensure_world()

    @property
    def history(self) -> List[Dict]:
        with self._lock:
            return list(self._history)

    def configure(self, config: SimulationConfig) -> None:
        config.validate()
        with self._lock:
            self._config = config
            self._world = self._create_world()
            self._state = SimulationState()
            self._history = []

    def start(self) -> None:
        with self._lock:
            self._ensure_world()
            self._running = True

    def stop(self) -> None:
        with self._lock:
            self._running = False

    def step(self) -> SimulationState:
        if self._sleep_interval:
            time.sleep(self._sleep_interval)
        with self._lock:
            world = self._ensure_world()
            if self._running:
                world.tick(substeps=self._substeps)
            stats = world.stats()
            cells = world.live_cells
            self._state.tick = world.frame
            self._state.population = stats.population
            self._state.mean_energy = float(np.mean([c.energy for c in cells])) if cells else 0.0
            self._state.births = world.births
            self._state.deaths = world.deaths
            self._state.algae_count = stats.algae_count
            self._state.unborn_count = stats.unborn_count
            self._state.telemetry = stats.to_dict()
            if self._running:
                self._history.append(stats.to_dict())
            return self._state

    def snapshot(self) -> Dict:
        with self._lock:
            world = self._ensure_world()
            return {
                "config": self._config.to_dict(),
                "state": {
                    "tick": world.frame,
                    "population": len(world.live_cells),
                    "mean_energy": self._state.mean_energy,
                    "births": world.births,
                    "deaths": world.deaths,
                },
                "resources": {
                    "algae": len(world.algae),
                    "unborn": len(world.population.unborn_genomes),
                },
                "cells": [self._capture_cell(c) for c in world.live_cells],
                "telemetry": world.stats().to_dict(),
            }

    def save_genomes(self, path: Path) -> Path:
        with self._lock:
            world = self._ensure_world()
            ranked = sorted(world.live_cells, key=lambda c: c.genome.generation, reverse=True)
            return save_genomes(path, [c.genome for c in ranked])

    def load_genomes(self, path: Path) -> None:
        resolved = Path(path).expanduser().resolve()
        if not resolved.exists():
            raise FileNotFoundError(resolved)
        genomes = load_genomes(resolved)
        with self._lock:
            self._seed_genomes = genomes
            self._world = self._create_world()
            self._state = SimulationState()
            self._history = []

    def export_stats(self, path: Path) -> Path:
        resolved = Path(path).expanduser()
        df = pd.DataFrame(self.history)
        df.to_csv(resolved, index=False)
        logger.info(f"wrote {len(df)} stats rows -> {resolved}")
        return resolved

    # ----- internals -----
    def _create_world(self) -> World:
        return World(self._config, self._seed_genomes, seed=self._seed)

    def _ensure_world(self) -> World:
        if self._world is None:
            self._world = self._create_world()
        return self._world

    @staticmethod
    def _capture_cell(cell) -> Dict:
        return {
            "id": cell.genome.id,
            "generation": cell.genome.generation,
            "species": cell.genome.species.value,
            "x": float(cell.x),
            "y": float(cell.y),
            "heading": float(cell.heading),
            "age": float(cell.age),
            "energy": float(cell.energy),
            "stamina": float(cell.stamina),
            "health": float(cell.health),
            "pregnant": cell.is_pregnant,
            "spawn_count": cell.spawn_count,
            "state": cell.state.value,
        }
