# SPDX-License-Identifier: MIT
"""
Population replenishment policy: quotas, the unborn genome cache and seed
genome pools with per-pool dispense cursors.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Dict, List, Mapping, Optional, Sequence

import numpy as np
from loguru import logger

from biots.core.config import GenomeConfig, PopulationConfig, SimulationMode

from .genome import Genome, Species

# Needed-species key for modes without predator/prey quotas.
ANY = "any"


class PopulationManager:
    """
    Decides which genome enters the world next.

    Holds no random state of its own; the generator is passed to `top_off`
    and only used in random mode.
    """

    def __init__(
        self,
        config: Optional[PopulationConfig] = None,
        genome_config: Optional[GenomeConfig] = None,
        seed_genomes: Sequence[Genome] = (),
    ) -> None:
        self.config = config or PopulationConfig()
        self.genome_config = genome_config or GenomeConfig()
        self.unborn_genomes: Deque[Genome] = deque()
        self.pools: Dict[str, List[Genome]] = {}
        self.cursors: Dict[str, int] = {ANY: 0, Species.PREY.value: 0, Species.PREDATOR.value: 0}
        self.set_seed_genomes(seed_genomes)

    @property
    def mode(self) -> SimulationMode:
        return SimulationMode(self.config.simulation_mode)

    def set_seed_genomes(self, genomes: Sequence[Genome]) -> None:
        eligible = [g for g in genomes if g.generation >= self.config.min_seed_generation]
        self.pools = {
            ANY: eligible,
            Species.PREY.value: [g for g in eligible if not g.is_predator],
            Species.PREDATOR.value: [g for g in eligible if g.is_predator],
        }

    def reset(self) -> None:
        self.unborn_genomes.clear()
        for key in self.cursors:
            self.cursors[key] = 0

    # ---------- quotas ----------
    def should_top_off(self, frame: int) -> bool:
        cfg = self.config
        return frame >= cfg.dispense_delay and frame % cfg.dispense_interval == 0

    def quota(self, species: str) -> int:
        cfg = self.config
        if species == Species.PREDATOR.value:
            return int(cfg.minimum_count * cfg.predator_fraction)
        if species == Species.PREY.value:
            return int(cfg.minimum_count * cfg.prey_fraction)
        return cfg.minimum_count

    def needed_species(self, counts: Mapping[str, int]) -> List[str]:
        if self.mode != SimulationMode.PREDATOR_PREY:
            total = sum(counts.values())
            return [ANY] if total < self.quota(ANY) else []
        needed = []
        for species in (Species.PREDATOR.value, Species.PREY.value):
            if counts.get(species, 0) < self.quota(species):
                needed.append(species)
        return needed

    # ---------- dispensing ----------
    def top_off(self, counts: Mapping[str, int], rng: np.random.Generator) -> Optional[Genome]:
        """Return the next genome to add to the world, or None when no species is short."""
        needed = self.needed_species(counts)
        if not needed:
            return None

        if self.mode == SimulationMode.RANDOM:
            species = Species.PREDATOR if rng.random() < 0.5 else Species.PREY
            genome = Genome.new_random(self.genome_config, rng, species)
            logger.info(f"created random genome: {genome!r}")
            return genome

        for species in needed:
            genome = self._take_unborn(species)
            if genome is not None:
                logger.info(f"decanting unborn genome: {genome!r}, cache size: {len(self.unborn_genomes)}")
                return genome

        # pools are tried prey first
        for species in sorted(needed, key=_pool_order):
            genome = self._dispense_from_pool(species)
            if genome is not None:
                logger.info(f"dispensing genome from pool: {genome!r}")
                return genome
        return None

    def _take_unborn(self, species: str) -> Optional[Genome]:
        candidates = [g for g in self.unborn_genomes if _matches(g, species)]
        if not candidates:
            return None
        # max() keeps the first of equal generations, i.e. cache order
        genome = max(candidates, key=lambda g: g.generation)
        self.unborn_genomes.remove(genome)
        return genome

    def _dispense_from_pool(self, species: str) -> Optional[Genome]:
        pool = self.pools.get(species, [])
        if not pool:
            logger.warning(f"no {species} genomes in seed pool")
            return None
        cursor = self.cursors[species]
        genome = pool[cursor % len(pool)].clone()
        genome.id = f"{genome.id}-{cursor}"
        self.cursors[species] = cursor + 1
        return genome

    # ---------- unborn cache ----------
    def add_unborn(self, genome: Genome) -> None:
        if len(self.unborn_genomes) >= self.config.unborn_cache_capacity:
            evicted = self.unborn_genomes.popleft()
            logger.debug(f"unborn cache full, evicted {evicted!r}")
        self.unborn_genomes.append(genome)
        logger.info(f"added 1 unborn genome: {genome!r}, cache size: {len(self.unborn_genomes)}")


def _pool_order(species: str) -> int:
    return 0 if species == Species.PREY.value else 1


def _matches(genome: Genome, species: str) -> bool:
    if species == Species.PREDATOR.value:
        return genome.is_predator
    if species == Species.PREY.value:
        return not genome.is_predator
    return True


__all__ = ["ANY", "PopulationManager"]
