# SPDX-License-Identifier: MIT
"""
Headless world that hosts cells, algae and the population manager.

The world is the explicit context passed to `Cell.update`; it replaces the
process-wide managers of a scene graph with one object that owns the random
generator, the configuration and the entity lists. Contact detection and
movement are deliberately simple: a radius test and straight-line
kinematics inside a circular arena.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from biots.core.config import SimulationConfig

from .cell import Cell
from .evaluator import DenseNetworkEvaluator, NetworkEvaluator
from .genome import Genome, Species
from .population import PopulationManager


@dataclass
class Algae:
    id: int
    x: float
    y: float
    energy: float
    bite_count: int = 0

    def bitten(self) -> None:
        self.bite_count += 1


@dataclass
class BiotStats:
    frame: int = 0
    population: int = 0
    predators: int = 0
    prey: int = 0
    min_gen: int = 0
    max_gen: int = 0
    avg_energy: float = 0.0
    avg_stamina: float = 0.0
    avg_health: float = 0.0
    pregnant_percent: float = 0.0
    spawn_average: float = 0.0
    unborn_count: int = 0
    algae_count: int = 0
    algae_supply: float = 0.0
    births: int = 0
    deaths: int = 0

    def to_dict(self) -> Dict:
        return asdict(self)


class World:
    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        seed_genomes: Sequence[Genome] = (),
        *,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
        evaluator: Optional[NetworkEvaluator] = None,
    ) -> None:
        self.config = config or SimulationConfig()
        self.config.validate()
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.evaluator: NetworkEvaluator = evaluator or DenseNetworkEvaluator()
        self.population = PopulationManager(self.config.population, self.config.genome, seed_genomes)
        self.cells: List[Cell] = []
        self.algae: List[Algae] = []
        self.frame = 0
        self.births = 0
        self.deaths = 0
        self._pending_removals: List[Cell] = []
        self._next_algae_id = 0
        self._replenish_algae(limit=None)

    # ---------- context for cells ----------
    def contacted_resources(self, cell: Cell) -> Iterable[Algae]:
        reach = cell.config.radius + self.config.algae.radius
        reach_sq = reach * reach
        return [
            a for a in self.algae
            if a.energy > 0 and (a.x - cell.x) ** 2 + (a.y - cell.y) ** 2 <= reach_sq
        ]

    def at_capacity(self) -> bool:
        return len(self.live_cells) >= self.config.population.maximum_count

    def spawn(self, genome: Genome, position: Tuple[float, float], heading: float) -> None:
        if self.at_capacity():
            self.population.add_unborn(genome)
            return
        self.add_cell(genome, position=position, heading=heading)
        self.births += 1

    def add_resource(self, energy: float, position: Tuple[float, float]) -> Algae:
        algae = Algae(self._next_algae_id, float(position[0]), float(position[1]), float(energy))
        self._next_algae_id += 1
        self.algae.append(algae)
        return algae

    def remove_on_next_update(self, cell: Cell) -> None:
        self._pending_removals.append(cell)

    # ---------- entities ----------
    @property
    def live_cells(self) -> List[Cell]:
        return [c for c in self.cells if not c.expired]

    def add_cell(
        self,
        genome: Genome,
        *,
        position: Optional[Tuple[float, float]] = None,
        heading: Optional[float] = None,
    ) -> Cell:
        if position is None:
            position = self._random_position(
                self.config.world.spawn_min_radius_fraction, self.config.world.spawn_max_radius_fraction
            )
        if heading is None:
            heading = float(self.rng.uniform(0, math.tau))
        cell = Cell(
            genome,
            self.config.cell,
            x=position[0],
            y=position[1],
            heading=heading,
            frame=int(self.rng.integers(100)),
        )
        self._keep_in_bounds(cell)
        self.cells.append(cell)
        return cell

    def counts_by_species(self) -> Dict[str, int]:
        cells = self.live_cells
        predators = sum(1 for c in cells if c.genome.is_predator)
        return {Species.PREDATOR.value: predators, Species.PREY.value: len(cells) - predators}

    def _random_position(self, min_fraction: float, max_fraction: float) -> Tuple[float, float]:
        radius = self.config.world.world_radius
        distance = self.rng.uniform(radius * min_fraction, radius * max_fraction)
        angle = self.rng.uniform(0, math.tau)
        return distance * math.cos(angle), distance * math.sin(angle)

    def _replenish_algae(self, limit: Optional[int]) -> None:
        cfg = self.config.algae
        supply = sum(a.energy for a in self.algae)
        added = 0
        while supply < cfg.target_supply and (limit is None or added < limit):
            self.add_resource(cfg.energy, self._random_position(cfg.min_radius_fraction, cfg.max_radius_fraction))
            supply += cfg.energy
            added += 1

    def _flush_removals(self) -> None:
        if not self._pending_removals:
            return
        removed = {id(c) for c in self._pending_removals}
        self.cells = [c for c in self.cells if id(c) not in removed]
        self.deaths += len(self._pending_removals)
        self._pending_removals.clear()

    # ---------- per-cell steps ----------
    def senses(self, cell: Cell) -> np.ndarray:
        cfg = self.config
        radius = cfg.world.world_radius
        food_dist, food_sin, food_cos = 1.0, 0.0, 0.0
        if self.algae:
            pos = np.array([(a.x, a.y) for a in self.algae], dtype=np.float64)
            delta = pos - np.array(cell.position)
            dist = np.hypot(delta[:, 0], delta[:, 1])
            nearest = int(np.argmin(dist))
            food_dist = float(min(1.0, dist[nearest] / radius))
            bearing = math.atan2(delta[nearest, 1], delta[nearest, 0]) - cell.heading
            food_sin, food_cos = math.sin(bearing), math.cos(bearing)
        features = [
            cell.energy / cell.maximum_energy,
            cell.stamina,
            cell.health,
            cell.visibility,
            1.0 if cell.on_top_of_food else 0.0,
            cell.age / cell.config.old_age,
            food_dist,
            food_sin,
            food_cos,
            math.hypot(cell.x, cell.y) / radius,
        ]
        inputs = np.zeros(cell.genome.input_count, dtype=np.float64)
        n = min(len(features), inputs.size)
        inputs[:n] = features[:n]
        return inputs

    def _think(self, cell: Cell) -> None:
        outputs = self.evaluator.evaluate(cell.genome, self.senses(cell))
        if outputs is None:
            logger.warning(f"no evaluator result for {cell.genome.id_formatted}, keeping previous actuators")
            return
        cell.inference.infer(outputs)

    def _move(self, cell: Cell) -> None:
        cfg = self.config.world
        left, right = cell.inference.thrust.average
        speed = cfg.speed * (cfg.speed_boost_multiplier if cell.inference.speed_boost else 1.0)
        forward = (left + right) / 2 * speed
        cell.heading = (cell.heading + (right - left) * 0.1) % math.tau
        cell.x += math.cos(cell.heading) * forward
        cell.y += math.sin(cell.heading) * forward
        self._keep_in_bounds(cell)

    def _keep_in_bounds(self, cell: Cell) -> None:
        radius = self.config.world.world_radius
        distance = math.hypot(cell.x, cell.y)
        if distance > radius:
            scale = radius / distance
            cell.x *= scale
            cell.y *= scale

    def _mate_contacts(self) -> None:
        cells = [c for c in self.live_cells if c.can_mate and c.can_interact]
        reach_sq = (self.config.cell.radius * 2) ** 2
        for i, a in enumerate(cells):
            for b in cells[i + 1:]:
                if a.is_pregnant or b.is_pregnant:
                    continue
                if a.genome.is_predator != b.genome.is_predator:
                    continue
                if (a.x - b.x) ** 2 + (a.y - b.y) ** 2 > reach_sq:
                    continue
                a.start_interacting()
                b.start_interacting()
                a.mate(b.genome)
                b.mate(a.genome)
                logger.debug(f"{a.genome.id_formatted} mated with {b.genome.id_formatted}")

    # ---------- tick ----------
    def tick(self, substeps: int = 1) -> None:
        for _ in range(max(1, int(substeps))):
            self._flush_removals()
            self._replenish_algae(limit=self.config.algae.spawn_per_tick)

            if self.population.should_top_off(self.frame):
                genome = self.population.top_off(self.counts_by_species(), self.rng)
                if genome is not None:
                    self.add_cell(genome)

            for cell in list(self.cells):
                if cell.expired:
                    continue
                self._think(cell)
                self._move(cell)
                cell.update(self)

            if self.config.environment.mating_enabled:
                self._mate_contacts()

            self.algae = [a for a in self.algae if a.energy > 0]
            self.frame += 1

    # ---------- stats ----------
    def stats(self) -> BiotStats:
        cells = self.live_cells
        counts = self.counts_by_species()
        stats = BiotStats(
            frame=self.frame,
            population=len(cells),
            predators=counts[Species.PREDATOR.value],
            prey=counts[Species.PREY.value],
            unborn_count=len(self.population.unborn_genomes),
            algae_count=len(self.algae),
            algae_supply=float(sum(a.energy for a in self.algae)),
            births=self.births,
            deaths=self.deaths,
        )
        if cells:
            generations = [c.genome.generation for c in cells]
            stats.min_gen = min(generations)
            stats.max_gen = max(generations)
            stats.avg_energy = float(np.mean([c.energy / c.maximum_energy for c in cells]))
            stats.avg_stamina = float(np.mean([c.stamina for c in cells]))
            stats.avg_health = float(np.mean([c.health for c in cells]))
            stats.pregnant_percent = float(np.mean([1.0 if c.is_pregnant else 0.0 for c in cells]))
            stats.spawn_average = float(np.mean([c.spawn_count for c in cells]))
        return stats


__all__ = ["Algae", "BiotStats", "World"]
