# SPDX-License-Identifier: MIT
"""
Network evaluators turn a genome plus a sense vector into raw outputs.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

import numpy as np
from loguru import logger

from .genome import Genome


class NetworkEvaluator(Protocol):
    """Interface the world uses to run a genome's network."""

    def evaluate(self, genome: Genome, inputs: Sequence[float]) -> Optional[np.ndarray]:
        ...


class DenseNetworkEvaluator:
    """Plain dense forward pass with tanh on every non-input layer."""

    def evaluate(self, genome: Genome, inputs: Sequence[float]) -> Optional[np.ndarray]:
        x = np.asarray(inputs, dtype=np.float64).reshape(-1)
        if x.size != genome.input_count:
            logger.warning(
                f"input count mismatch for {genome.id_formatted}: expected {genome.input_count}, got {x.size}"
            )
            return None
        nodes = genome.node_counts
        for layer in range(1, len(nodes)):
            w = genome.weights[layer].reshape(nodes[layer], nodes[layer - 1])
            x = np.tanh(w @ x + genome.biases[layer])
        return x
