# SPDX-License-Identifier: MIT
"""
Genetic encoding of a feed-forward network and its mutation operators.

A genome stores the topology ``[input, *hidden, output]`` plus one flat
weight array per edge between consecutive layers and one bias array per
non-input layer. Index 0 of both lists is an empty placeholder so layer
indices line up with ``node_counts``.
"""

from __future__ import annotations

import json
import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from loguru import logger

from biots.core.config import GenomeConfig, schedule_steps


class Species(str, Enum):
    NEUTRAL = "neutral"
    PREY = "prey"
    PREDATOR = "predator"


class GenomeFormatError(ValueError):
    """A genome record does not satisfy the layer size invariants."""


def new_genome_id(rng: np.random.Generator) -> str:
    return str(uuid.UUID(bytes=rng.bytes(16), version=4))


def mutation_rate_for(generation: int, schedule: Sequence[Sequence[float]]) -> float:
    rate = 1.0
    for min_generation, step_rate in schedule_steps(schedule):
        if generation >= min_generation:
            rate = step_rate
    return float(np.clip(rate, 0.0, 1.0))


def mutate_value(value: float, rng: np.random.Generator, max_weight: float = 1.0) -> float:
    selector = int(rng.integers(6))
    if selector == 0:
        return value / 2
    if selector == 1:
        return float(np.clip(value + value, -max_weight, max_weight))
    if selector == 2:
        return float(rng.uniform(-max_weight, max_weight))
    # 3..5: half of all draws
    step = rng.uniform(max_weight * 0.25, max_weight * 0.5)
    sign = 1.0 if rng.random() < 0.5 else -1.0
    return float(np.clip(value + step * sign, -max_weight, max_weight))


class Genome:
    def __init__(
        self,
        *,
        id: str,
        generation: int,
        species: Species,
        input_count: int,
        hidden_counts: Sequence[int],
        output_count: int,
        weights: List[np.ndarray],
        biases: List[np.ndarray],
        markers: Optional[Sequence[bool]] = None,
        max_weight: float = 1.0,
    ) -> None:
        self.id = id
        self.generation = int(generation)
        self.species = Species(species)
        self.markers: List[bool] = [bool(m) for m in (markers or [])]
        self.input_count = int(input_count)
        self.hidden_counts = [int(n) for n in hidden_counts]
        self.output_count = int(output_count)
        self.weights = weights
        self.biases = biases
        self.max_weight = float(max_weight)

    # ---------- topology ----------
    @property
    def node_counts(self) -> List[int]:
        return [self.input_count, *self.hidden_counts, self.output_count]

    @property
    def weight_counts(self) -> List[int]:
        nodes = self.node_counts
        return [0] + [nodes[i] * nodes[i - 1] for i in range(1, len(nodes))]

    @property
    def bias_counts(self) -> List[int]:
        return [0] + self.node_counts[1:]

    @property
    def is_predator(self) -> bool:
        return self.species == Species.PREDATOR

    @property
    def id_formatted(self) -> str:
        return self.id[:8]

    def __repr__(self) -> str:
        return (
            f"Genome(id={self.id_formatted}, gen={self.generation}, species={self.species.value}, "
            f"nodes={self.node_counts})"
        )

    # ---------- creation ----------
    @classmethod
    def create(
        cls,
        species: Species,
        input_count: int,
        hidden_counts: Sequence[int],
        output_count: int,
        *,
        rng: np.random.Generator,
        max_weight: float = 1.0,
        randomize: bool = True,
        markers: int = 0,
    ) -> "Genome":
        genome = cls(
            id=new_genome_id(rng),
            generation=0,
            species=species,
            input_count=input_count,
            hidden_counts=hidden_counts,
            output_count=output_count,
            weights=[],
            biases=[],
            markers=[bool(rng.random() < 0.5) for _ in range(markers)],
            max_weight=max_weight,
        )
        genome.weights = [genome._initial_layer(n, rng, randomize) for n in genome.weight_counts]
        genome.biases = [genome._initial_layer(n, rng, randomize) for n in genome.bias_counts]
        return genome

    @classmethod
    def new_random(cls, config: GenomeConfig, rng: np.random.Generator, species: Species) -> "Genome":
        return cls.create(
            species,
            config.input_count,
            config.hidden_counts,
            config.output_count,
            rng=rng,
            max_weight=config.max_weight,
            markers=config.markers_in_effect,
        )

    def _initial_layer(self, count: int, rng: np.random.Generator, randomize: bool) -> np.ndarray:
        if randomize:
            return rng.uniform(-self.max_weight, self.max_weight, size=count)
        return np.zeros(count, dtype=np.float64)

    def clone(self) -> "Genome":
        return Genome(
            id=self.id,
            generation=self.generation,
            species=self.species,
            input_count=self.input_count,
            hidden_counts=list(self.hidden_counts),
            output_count=self.output_count,
            weights=[w.copy() for w in self.weights],
            biases=[b.copy() for b in self.biases],
            markers=list(self.markers),
            max_weight=self.max_weight,
        )

    # ---------- mutation ----------
    def mutate(self, mutation_rate: float, rng: np.random.Generator) -> int:
        """Apply 0..3 weight and 0..1 bias mutations; returns how many were applied."""
        rate = float(np.clip(mutation_rate, 0.0, 1.0))
        weight_chances = int(rng.integers(0, int(2 + 2 * rate)))
        bias_chances = 0 if rng.random() < 0.5 else 1
        applied = 0
        for _ in range(weight_chances):
            applied += self._mutate_layer(self.weights, "weights", rng)
        for _ in range(bias_chances):
            applied += self._mutate_layer(self.biases, "biases", rng)
        return applied

    def _mutate_layer(self, layers: List[np.ndarray], kind: str, rng: np.random.Generator) -> int:
        if len(layers) < 2:
            logger.warning(f"could not mutate {kind} of {self.id_formatted}: no non-input layers")
            return 0
        layer_index = int(rng.integers(1, len(layers)))
        layer = layers[layer_index]
        if layer.size == 0:
            logger.warning(f"could not mutate {kind} of {self.id_formatted}: layer {layer_index} is empty")
            return 0
        index = int(rng.integers(0, layer.size))
        layer[index] = mutate_value(float(layer[index]), rng, self.max_weight)
        return 1

    # ---------- validation ----------
    def validate(self) -> None:
        if not self.hidden_counts:
            raise GenomeFormatError(f"genome {self.id}: needs at least one hidden layer")
        if len(self.weights) != len(self.node_counts) or len(self.biases) != len(self.node_counts):
            raise GenomeFormatError(
                f"genome {self.id}: expected {len(self.node_counts)} layers, "
                f"got {len(self.weights)} weight and {len(self.biases)} bias layers"
            )
        for layer, (w, b) in enumerate(zip(self.weights, self.biases)):
            if w.size != self.weight_counts[layer] or b.size != self.bias_counts[layer]:
                raise GenomeFormatError(
                    f"genome {self.id}: layer {layer} has {w.size} weights/{b.size} biases, "
                    f"expected {self.weight_counts[layer]}/{self.bias_counts[layer]}"
                )
            for kind, values in (("weights", w), ("biases", b)):
                if not np.all(np.isfinite(values)):
                    raise GenomeFormatError(f"genome {self.id}: non-finite {kind} in layer {layer}")
                if np.any(np.abs(values) > self.max_weight):
                    raise GenomeFormatError(
                        f"genome {self.id}: {kind} in layer {layer} exceed max weight {self.max_weight}"
                    )

    # ---------- serialization ----------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "generation": self.generation,
            "species": self.species.value,
            "isPredator": self.is_predator,
            "markers": list(self.markers),
            "inputCount": self.input_count,
            "hiddenCounts": list(self.hidden_counts),
            "outputCount": self.output_count,
            "maxWeight": self.max_weight,
            "weights": [w.tolist() for w in self.weights],
            "biases": [b.tolist() for b in self.biases],
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Genome":
        if not isinstance(d, dict):
            raise GenomeFormatError(f"genome record must be an object, got {type(d).__name__}")
        try:
            data = upgrade_legacy_record(d)
            species = data.get("species")
            if species is None:
                species = Species.PREDATOR if data.get("isPredator", False) else Species.NEUTRAL
            genome = Genome(
                id=str(data["id"]),
                generation=int(data["generation"]),
                species=Species(species),
                input_count=data["inputCount"],
                hidden_counts=data["hiddenCounts"],
                output_count=data["outputCount"],
                weights=[np.asarray(w, dtype=np.float64).reshape(-1) for w in data["weights"]],
                biases=[np.asarray(b, dtype=np.float64).reshape(-1) for b in data["biases"]],
                markers=data.get("markers", []),
                max_weight=data.get("maxWeight", 1.0),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise GenomeFormatError(f"malformed genome record: {exc}") from exc
        genome.validate()
        return genome


def derive_child(
    parent: Genome,
    mutation_rate: float,
    rng: np.random.Generator,
    *,
    markers_in_effect: int = 0,
) -> Genome:
    child = parent.clone()
    child.id = new_genome_id(rng)
    child.generation = parent.generation + 1
    for i in range(min(markers_in_effect, len(child.markers))):
        if rng.integers(3) == 0:
            child.markers[i] = not child.markers[i]
    child.mutate(mutation_rate, rng)
    return child


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def upgrade_legacy_record(d: Dict[str, Any]) -> Dict[str, Any]:
    """Convert single-hidden-layer records (``hiddenCount`` and marker1/2) to the general schema."""
    if "hiddenCounts" in d or "hiddenCount" not in d:
        return d
    data = dict(d)
    data["hiddenCounts"] = [int(data.pop("hiddenCount"))]
    markers = [_as_bool(data.pop(key)) for key in ("marker1", "marker2") if key in data]
    data.setdefault("markers", markers)
    logger.debug(f"upgraded legacy genome record {data.get('id')}")
    return data


# ---------- genome pool files ----------
def load_genomes(path: Path, min_generation: int = 0) -> List[Genome]:
    resolved = Path(path).expanduser()
    data = json.loads(resolved.read_text())
    if isinstance(data, dict):
        data = data.get("genomes", [])
    if not isinstance(data, list):
        raise GenomeFormatError(f"{resolved}: expected a list of genome records")
    genomes: List[Genome] = []
    for record in data:
        try:
            genome = Genome.from_dict(record)
        except GenomeFormatError as exc:
            logger.warning(f"skipping genome record in {resolved}: {exc}")
            continue
        if genome.generation >= min_generation:
            genomes.append(genome)
    logger.info(f"loaded {len(genomes)} genomes from {resolved}")
    return genomes


def save_genomes(path: Path, genomes: Sequence[Genome]) -> Path:
    resolved = Path(path).expanduser()
    resolved.write_text(json.dumps([g.to_dict() for g in genomes]))
    logger.info(f"saved {len(genomes)} genomes -> {resolved}")
    return resolved


__all__ = [
    "Genome",
    "GenomeFormatError",
    "Species",
    "derive_child",
    "load_genomes",
    "mutate_value",
    "mutation_rate_for",
    "save_genomes",
    "upgrade_legacy_record",
]
