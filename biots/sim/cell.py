# SPDX-License-Identifier: MIT
"""
Per-agent lifecycle: aging, energy and stamina accounting, feeding, mating,
spawning and expiry.

A `Cell` is stepped once per tick through `Cell.update(context)`, where the
context is the world it lives in (see `CellContext`). Every collaborator
call goes through the context, so a cell can also be stepped with no
context at all; the steps that need one are skipped with a warning.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Dict, Iterable, Optional, Protocol, Tuple

import numpy as np
from loguru import logger

from biots.core.config import CellConfig, SimulationConfig

from .genome import Genome, derive_child, mutation_rate_for
from .inference import Inference


class Resource(Protocol):
    id: int
    energy: float

    def bitten(self) -> None:
        ...


class CellContext(Protocol):
    """What a cell needs from the world around it."""

    config: SimulationConfig
    rng: np.random.Generator

    def contacted_resources(self, cell: "Cell") -> Optional[Iterable[Resource]]:
        ...

    def at_capacity(self) -> bool:
        ...

    def spawn(self, genome: Genome, position: Tuple[float, float], heading: float) -> None:
        ...

    def add_resource(self, energy: float, position: Tuple[float, float]) -> None:
        ...

    def remove_on_next_update(self, cell: "Cell") -> None:
        ...


class CellState(str, Enum):
    GROWING = "growing"
    MATURE = "mature"
    PREGNANT = "pregnant"
    EXPIRED = "expired"


SPAWN_ANGLE = math.pi / 8


class Cell:
    def __init__(
        self,
        genome: Genome,
        config: Optional[CellConfig] = None,
        *,
        initial_energy: Optional[float] = None,
        x: float = 0.0,
        y: float = 0.0,
        heading: float = 0.0,
        frame: int = 0,
    ) -> None:
        self.config = config or CellConfig()
        self.genome = genome
        self.expired = False

        self.energy = float(self.config.initial_energy if initial_energy is None else initial_energy)
        self.stamina = 1.0

        self.age = 0.0
        self.last_spawned_age = 0.0
        self.last_pregnant_age = 0.0
        self.last_interacted_age = 0.0
        self.last_blink_age = 0.0

        self.spawn_count = 0
        self.mated_count = 0
        self.mating_genome: Optional[Genome] = None

        self.x = float(x)
        self.y = float(y)
        self.heading = float(heading)
        self.frame = int(frame)
        self.inference = Inference()
        self.on_top_of_food = False
        # resource id -> age of the last bite
        self._bite_contacts: Dict[int, float] = {}

        self.energy = min(self.energy, self.maximum_energy)

    def __repr__(self) -> str:
        return f"Cell({self.genome.id_formatted}, age={self.age:.0f}, health={self.health:.2f}, state={self.state.value})"

    # ---------- derived state ----------
    @property
    def position(self) -> Tuple[float, float]:
        return self.x, self.y

    @property
    def is_pregnant(self) -> bool:
        return self.mating_genome is not None

    @property
    def maximum_energy(self) -> float:
        return self.config.maximum_energy * 2 if self.is_pregnant else self.config.maximum_energy

    @property
    def health(self) -> float:
        return self.energy / self.maximum_energy - (1 - self.stamina)

    @property
    def visibility(self) -> float:
        blink_age = self.config.blink_age
        delta = float(np.clip(self.age - self.last_blink_age, 0, blink_age))
        return 1 - delta / blink_age

    @property
    def effective_visibility(self) -> float:
        visibility = self.visibility
        return 1.0 if visibility > 0.5 else visibility

    @property
    def is_mature(self) -> bool:
        return self.age > self.config.mature_age

    @property
    def can_interact(self) -> bool:
        return (
            not self.expired
            and self.is_mature
            and self.age - self.last_interacted_age > self.config.interaction_age
        )

    @property
    def can_mate(self) -> bool:
        return not self.expired and self.is_mature and not self.is_pregnant and self.health > self.config.mate_health

    @property
    def can_spawn(self) -> bool:
        return (
            self.is_pregnant
            and self.age - self.last_pregnant_age > self.config.gestation_age
            and self.health >= self.config.spawn_health
        )

    @property
    def state(self) -> CellState:
        if self.expired:
            return CellState.EXPIRED
        if self.is_pregnant:
            return CellState.PREGNANT
        if self.is_mature:
            return CellState.MATURE
        return CellState.GROWING

    # ---------- energy ----------
    def incur_energy_change(self, delta: float) -> None:
        self.energy = float(np.clip(self.energy + delta, 0.0, self.maximum_energy))

    def incur_stamina_change(self, delta: float) -> None:
        self.stamina = float(np.clip(self.stamina - delta, 0.0, 1.0))

    def kill(self) -> None:
        self.energy = 0.0
        self.stamina = 0.0

    def start_interacting(self) -> None:
        self.last_interacted_age = self.age

    # ---------- feeding ----------
    def bite(self, resource: Resource) -> bool:
        bite = self.config.bite
        if self.energy + bite / 4 >= self.maximum_energy:
            return False
        self.incur_energy_change(bite)
        resource.energy -= bite
        if resource.energy < bite:
            resource.energy = 0.0
        resource.bitten()
        return True

    def check_resource_contacts(self, context: CellContext) -> None:
        interval = self.config.time_between_bites
        if self.frame % self.config.contact_purge_interval == 0:
            self._bite_contacts = {
                rid: when for rid, when in self._bite_contacts.items() if self.age - when <= interval
            }

        self.on_top_of_food = False
        resources = context.contacted_resources(self)
        if resources is None:
            logger.warning(f"no contact information for {self.genome.id_formatted}, skipping feeding")
            return
        for resource in resources:
            if resource.energy <= 0:
                continue
            self.on_top_of_food = True
            last_bite = self._bite_contacts.get(resource.id)
            if last_bite is None or self.age - last_bite > interval:
                self._bite_contacts[resource.id] = self.age
                self.bite(resource)

    # ---------- actions ----------
    def blink(self) -> bool:
        if self.age - self.last_blink_age <= self.config.blink_cooldown:
            return False
        self.last_blink_age = self.age
        self.incur_energy_change(-self.config.blink_exertion)
        return True

    def mate(self, other_genome: Genome) -> bool:
        if self.is_pregnant:
            return False
        self.mating_genome = other_genome.clone()
        self.last_pregnant_age = self.age
        self.mated_count += 1
        return True

    def spawn_children(self, context: CellContext) -> bool:
        mating_genome = self.mating_genome
        if mating_genome is None:
            return False

        if context.at_capacity():
            logger.warning(f"population at capacity, {self.genome.id_formatted} aborts pregnancy")
            self.mating_genome = None
            self.last_pregnant_age = 0.0
            return False

        self.energy *= self.config.spawn_energy_fraction
        self.incur_stamina_change(self.config.spawn_stamina_cost)
        self.spawn_count += 1

        genome_config = context.config.genome
        for parent, angle in ((self.genome, -SPAWN_ANGLE), (mating_genome, SPAWN_ANGLE)):
            direction = self.heading + angle
            distance = self.config.radius * 2
            position = (self.x - math.cos(direction) * distance, self.y - math.sin(direction) * distance)
            rate = mutation_rate_for(parent.generation, genome_config.mutation_rate_schedule)
            child = derive_child(parent, rate, context.rng, markers_in_effect=genome_config.markers_in_effect)
            logger.debug(f"{self.genome.id_formatted} spawned {child!r}")
            context.spawn(child, position, direction + math.pi)

        self.mating_genome = None
        self.energy = min(self.energy, self.maximum_energy)
        return True

    def expire(self, context: Optional[CellContext]) -> None:
        if self.expired:
            return
        self.expired = True
        if context is None:
            logger.warning(f"{self.genome.id_formatted} expired without a world, nothing to remove")
            return
        context.remove_on_next_update(self)
        world_radius = context.config.world.world_radius
        if math.hypot(self.x, self.y) < world_radius * self.config.donation_radius_fraction:
            context.add_resource(self.config.bite * self.config.donation_bites, self.position)

    # ---------- tick ----------
    def update(self, context: Optional[CellContext]) -> None:
        if self.expired:
            return
        self.age += 1

        if context is None:
            logger.warning(f"{self.genome.id_formatted} updated without a world, skipping interactions")
        else:
            self.check_resource_contacts(context)

        # old age or malnutrition
        if self.age >= self.config.old_age or self.health <= 0:
            self.expire(context)
            return

        if context is not None:
            self._check_self_replication(context)
            if self.can_spawn:
                self.spawn_children(context)
                self.last_spawned_age = self.age

        self._apply_actuators()
        self.frame += 1

    def _check_self_replication(self, context: CellContext) -> None:
        environment = context.config.environment
        if not environment.self_replication:
            return
        if self.frame % self.config.self_replication_interval != 0:
            return
        if (
            not self.is_pregnant
            and self.can_mate
            and self.spawn_count < self.config.max_spawn_count
            and self.age - self.last_spawned_age > self.config.gestation_age
            and self.genome.generation <= environment.generation_training_threshold
            and self.age > self.config.self_replication_age
        ):
            self.mate(self.genome)

    def _apply_actuators(self) -> None:
        inference = self.inference
        if inference.blink:
            self.blink()
        cost = self.config.metabolic_cost
        if inference.speed_boost:
            cost += self.config.speed_boost_cost
        self.incur_energy_change(-cost)
        self.incur_stamina_change(-self.config.stamina_recovery)
