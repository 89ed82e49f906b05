from __future__ import annotations

import pandas as pd
import pytest

from biots.core.simulation_backend import BiotSimulationBackend
from biots.sim.genome import load_genomes, save_genomes

from conftest import make_genome


@pytest.fixture
def backend(config, rng):
    backend = BiotSimulationBackend(seed=3, seed_genomes=[make_genome(rng)])
    backend.configure(config)
    return backend


def test_step_only_advances_while_running(backend):
    state = backend.step()
    assert state.tick == 0
    assert backend.history == []

    backend.start()
    for _ in range(5):
        state = backend.step()
    assert state.tick == 5
    assert state.population == 4
    assert len(backend.history) == 5

    backend.stop()
    assert backend.step().tick == 5


def test_configure_rejects_invalid_config(backend, config):
    config.population.minimum_count = 99
    with pytest.raises(ValueError):
        backend.configure(config)


def test_configure_resets_world(backend, config):
    backend.start()
    backend.step()
    backend.configure(config)
    assert backend.world.frame == 0
    assert backend.history == []


def test_snapshot_layout(backend):
    backend.start()
    for _ in range(3):
        backend.step()
    snap = backend.snapshot()
    assert set(snap) == {"config", "state", "resources", "cells", "telemetry"}
    assert snap["state"]["tick"] == 3
    assert len(snap["cells"]) == 3
    assert {"id", "generation", "species", "x", "y", "health", "state"} <= set(snap["cells"][0])


def test_export_stats_writes_history(backend, tmp_path):
    backend.start()
    for _ in range(4):
        backend.step()
    path = backend.export_stats(tmp_path / "stats.csv")
    df = pd.read_csv(path)
    assert len(df) == 4
    assert list(df["frame"]) == [1, 2, 3, 4]
    assert {"population", "births", "deaths", "avg_health"} <= set(df.columns)


def test_save_and_reload_genomes(backend, tmp_path):
    backend.start()
    for _ in range(4):
        backend.step()
    path = backend.save_genomes(tmp_path / "survivors.json")
    saved = load_genomes(path)
    assert len(saved) == 4

    backend.load_genomes(path)
    assert backend.world.frame == 0
    assert len(backend.world.population.pools["any"]) == 4


def test_load_missing_genomes_raises(backend, tmp_path):
    with pytest.raises(FileNotFoundError):
        backend.load_genomes(tmp_path / "missing.json")


def test_loaded_pool_seeds_population(config, rng, tmp_path):
    path = save_genomes(tmp_path / "pool.json", [make_genome(rng, generation=6)])
    backend = BiotSimulationBackend(seed=1)
    backend.configure(config)
    backend.load_genomes(path)
    backend.start()
    backend.step()
    assert [c.genome.generation for c in backend.world.live_cells] == [6]
