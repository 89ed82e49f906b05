from __future__ import annotations

import json
import math
from dataclasses import dataclass, asdict, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, Tuple


class SimulationMode(str, Enum):
    NORMAL = "normal"
    RANDOM = "random"
    PREDATOR_PREY = "predator_prey"


@dataclass
class GenomeConfig:
    input_count: int = 10
    hidden_counts: List[int] = field(default_factory=lambda: [8])
    output_count: int = 8
    max_weight: float = 1.0
    markers_in_effect: int = 0
    # (min_generation, mutation_rate) steps, rate 1.0 -> up to 3 weight mutations
    mutation_rate_schedule: List[Tuple[int, float]] = field(
        default_factory=lambda: [(0, 1.0), (51, 0.5), (201, 0.0)]
    )


@dataclass
class CellConfig:
    radius: float = 24.0
    maximum_energy: float = 100.0
    initial_energy: float = 50.0
    mature_age: float = 200.0
    interaction_age: float = 100.0
    mate_health: float = 0.7
    spawn_health: float = 0.4
    gestation_age: float = 300.0
    old_age: float = 3200.0
    self_replication_age: float = 400.0
    self_replication_interval: int = 10
    max_spawn_count: int = 5
    spawn_energy_fraction: float = 0.5
    spawn_stamina_cost: float = 0.1
    blink_age: float = 60.0
    blink_cooldown: float = 30.0
    blink_exertion: float = 0.5
    bite: float = 10.0
    time_between_bites: float = 20.0
    contact_purge_interval: int = 30
    donation_bites: float = 5.0
    donation_radius_fraction: float = 0.5
    metabolic_cost: float = 0.02
    speed_boost_cost: float = 0.02
    stamina_recovery: float = 0.001


@dataclass
class EnvironmentConfig:
    self_replication: bool = True
    mating_enabled: bool = False
    generation_training_threshold: int = 1000


@dataclass
class PopulationConfig:
    simulation_mode: str = SimulationMode.NORMAL.value
    minimum_count: int = 12
    maximum_count: int = 24
    predator_fraction: float = 0.34
    prey_fraction: float = 0.66
    unborn_cache_capacity: int = 20
    dispense_delay: int = 100
    dispense_interval: int = 50
    min_seed_generation: int = 0


@dataclass
class WorldConfig:
    world_radius: float = 1500.0
    speed: float = 4.0
    speed_boost_multiplier: float = 2.0
    spawn_min_radius_fraction: float = 0.35
    spawn_max_radius_fraction: float = 0.9


@dataclass
class AlgaeConfig:
    target_supply: float = 4000.0
    energy: float = 40.0
    radius: float = 10.0
    spawn_per_tick: int = 2
    min_radius_fraction: float = 0.15
    max_radius_fraction: float = 0.9


@dataclass
class SimulationConfig:
    genome: GenomeConfig = field(default_factory=GenomeConfig)
    cell: CellConfig = field(default_factory=CellConfig)
    environment: EnvironmentConfig = field(default_factory=EnvironmentConfig)
    population: PopulationConfig = field(default_factory=PopulationConfig)
    world: WorldConfig = field(default_factory=WorldConfig)
    algae: AlgaeConfig = field(default_factory=AlgaeConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def update_from_mapping(self, data: Dict[str, Any]) -> None:
        """Merge settings from a nested mapping into the config."""
        for section_name, section_values in data.items():
            section = getattr(self, section_name, None)
            if section is None:
                continue
            if not isinstance(section_values, dict):
                continue
            for key, value in section_values.items():
                if hasattr(section, key):
                    setattr(section, key, value)
        # JSON has no tuples
        self.genome.mutation_rate_schedule = [
            (int(step[0]), float(step[1])) for step in self.genome.mutation_rate_schedule
        ]

    def iter_sections(self) -> Iterable[Tuple[str, Any]]:
        yield "genome", self.genome
        yield "cell", self.cell
        yield "environment", self.environment
        yield "population", self.population
        yield "world", self.world
        yield "algae", self.algae

    def validate(self) -> None:
        pop = self.population
        try:
            SimulationMode(pop.simulation_mode)
        except ValueError as exc:
            raise ValueError(f"Unknown simulation mode: {pop.simulation_mode!r}") from exc
        if not math.isclose(pop.predator_fraction + pop.prey_fraction, 1.0, abs_tol=1e-9):
            raise ValueError(
                "predator_fraction and prey_fraction must sum to 1.0, "
                f"got {pop.predator_fraction} + {pop.prey_fraction}"
            )
        if pop.minimum_count > pop.maximum_count:
            raise ValueError("minimum_count must not exceed maximum_count")
        if pop.unborn_cache_capacity < 1:
            raise ValueError("unborn_cache_capacity must be at least 1")
        if pop.dispense_interval < 1:
            raise ValueError("dispense_interval must be at least 1")
        if not self.genome.hidden_counts:
            raise ValueError("genome.hidden_counts needs at least one hidden layer")
        if self.genome.max_weight <= 0:
            raise ValueError("genome.max_weight must be positive")


def load_config(path: Path) -> SimulationConfig:
    """Read a JSON config file on top of the defaults."""
    try:
        data = json.loads(Path(path).read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Config JSON parse error in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Config JSON must be an object at the top level.")
    config = SimulationConfig()
    config.update_from_mapping(data)
    config.validate()
    return config


def schedule_steps(schedule: Sequence[Sequence[float]]) -> List[Tuple[int, float]]:
    return sorted((int(step[0]), float(step[1])) for step in schedule)
