from __future__ import annotations

import numpy as np

from biots.sim.evaluator import DenseNetworkEvaluator
from biots.sim.genome import Genome, Species


def test_output_matches_topology(rng):
    genome = Genome.create(Species.PREY, 10, [8, 6], 8, rng=rng)
    outputs = DenseNetworkEvaluator().evaluate(genome, rng.uniform(-1, 1, 10))
    assert outputs.shape == (8,)
    assert np.all(np.abs(outputs) <= 1.0)


def test_zero_genome_outputs_zero(rng):
    genome = Genome.create(Species.PREY, 3, [2], 8, rng=rng, randomize=False)
    outputs = DenseNetworkEvaluator().evaluate(genome, [1.0, 2.0, 3.0])
    assert np.array_equal(outputs, np.zeros(8))


def test_wrong_input_length_returns_none(rng):
    genome = Genome.create(Species.PREY, 10, [8], 8, rng=rng)
    assert DenseNetworkEvaluator().evaluate(genome, np.zeros(9)) is None
