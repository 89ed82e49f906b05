from __future__ import annotations

import math

import pytest

from biots.core.config import CellConfig
from biots.sim.cell import Cell, CellState

from conftest import FakeResource, make_genome


@pytest.fixture
def cell(rng) -> Cell:
    config = CellConfig()
    return Cell(make_genome(rng), config, initial_energy=config.maximum_energy)


def test_health_tracks_energy_and_stamina(cell):
    assert cell.health == pytest.approx(1.0)
    cell.incur_energy_change(-cell.config.maximum_energy / 2)
    assert cell.health == pytest.approx(0.5)
    cell.incur_stamina_change(0.25)
    assert cell.health == pytest.approx(0.25)


def test_energy_and_stamina_are_clamped(cell):
    cell.incur_energy_change(1e6)
    assert cell.energy == cell.maximum_energy
    cell.incur_energy_change(-1e6)
    assert cell.energy == 0.0
    cell.incur_stamina_change(-5)
    assert cell.stamina == 1.0
    cell.incur_stamina_change(5)
    assert cell.stamina == 0.0


def test_zero_health_expires_next_tick(cell):
    cell.kill()
    cell.update(None)
    assert cell.expired
    assert cell.state == CellState.EXPIRED


def test_old_age_expires_at_full_health(cell, context):
    cell.age = cell.config.old_age - 1
    cell.update(context)
    assert cell.age == cell.config.old_age
    assert cell.expired
    assert context.removed == [cell]


def test_expired_cell_is_not_processed_again(cell, context):
    cell.kill()
    cell.update(context)
    age = cell.age
    cell.update(context)
    cell.expire(context)
    assert cell.age == age
    assert context.removed == [cell]


def test_expiry_donates_energy_near_the_centre(cell, context):
    cell.x, cell.y = 10.0, 0.0
    cell.kill()
    cell.update(context)
    assert context.deposits == [(cell.config.bite * cell.config.donation_bites, (10.0, 0.0))]


def test_expiry_far_out_donates_nothing(cell, context):
    cell.x = context.config.world.world_radius * 0.9
    cell.kill()
    cell.update(context)
    assert cell.expired
    assert context.deposits == []


def test_states_progress(cell, rng):
    assert cell.state == CellState.GROWING
    cell.age = cell.config.mature_age + 1
    assert cell.state == CellState.MATURE
    cell.mate(make_genome(rng))
    assert cell.state == CellState.PREGNANT


def test_maximum_energy_doubles_while_pregnant(cell, rng):
    base = cell.maximum_energy
    cell.mate(make_genome(rng))
    assert cell.maximum_energy == base * 2
    assert cell.health == pytest.approx(0.5)


def test_mate_copies_partner_and_ignores_second_partner(cell, rng):
    partner = make_genome(rng)
    assert cell.mate(partner)
    assert cell.mating_genome is not partner
    assert cell.mating_genome.id == partner.id
    assert not cell.mate(make_genome(rng))
    assert cell.mating_genome.id == partner.id
    assert cell.mated_count == 1


def test_can_mate_requires_maturity_and_health(cell, rng):
    assert not cell.can_mate
    cell.age = cell.config.mature_age + 1
    assert cell.can_mate
    cell.incur_energy_change(-cell.config.maximum_energy * 0.5)
    assert not cell.can_mate


def test_visibility_decays_after_blink(cell):
    cell.age = 100
    assert cell.blink()
    assert cell.visibility == 1.0
    cell.age += cell.config.blink_age / 4
    assert cell.visibility == pytest.approx(0.75)
    assert cell.effective_visibility == 1.0
    cell.age += cell.config.blink_age
    assert cell.visibility == 0.0


def test_blink_cooldown_and_cost(cell):
    cell.age = 100
    assert cell.blink()
    energy = cell.energy
    cell.age += cell.config.blink_cooldown
    assert not cell.blink()
    assert cell.energy == energy
    cell.age += 1
    assert cell.blink()
    assert cell.energy == pytest.approx(energy - cell.config.blink_exertion)


def test_feeding_bites_once_per_interval(rng, context):
    cell = Cell(make_genome(rng), CellConfig(), initial_energy=20.0)
    food = FakeResource(1, 100.0)
    context.resources = [food]
    cell.update(context)
    assert food.bites == 1
    assert food.energy == pytest.approx(90.0)
    for _ in range(int(cell.config.time_between_bites)):
        cell.update(context)
    assert food.bites == 1
    cell.update(context)
    assert food.bites == 2
    assert cell.on_top_of_food


def test_bite_consumes_small_resource_and_caps_energy(rng):
    cell = Cell(make_genome(rng), CellConfig(), initial_energy=98.0)
    crumbs = FakeResource(2, 15.0)
    assert cell.bite(crumbs) is False
    assert crumbs.bites == 0
    cell.energy = 92.0
    assert cell.bite(crumbs)
    assert cell.energy == cell.maximum_energy
    assert crumbs.energy == 0.0


def test_empty_resources_are_ignored(rng, context):
    cell = Cell(make_genome(rng), CellConfig(), initial_energy=20.0)
    empty = FakeResource(3, 0.0)
    context.resources = [empty]
    cell.update(context)
    assert empty.bites == 0
    assert not cell.on_top_of_food


def test_missing_contacts_skip_feeding(rng, context):
    cell = Cell(make_genome(rng), CellConfig(), initial_energy=20.0)
    context.has_contacts = False
    cell.update(context)
    assert cell.age == 1
    assert not cell.expired


def test_stale_contacts_are_purged(rng, context):
    cell = Cell(make_genome(rng), CellConfig(), initial_energy=20.0, frame=1)
    context.resources = [FakeResource(9, 100.0)]
    cell.update(context)
    context.resources = []
    while cell.frame % cell.config.contact_purge_interval != 0 or cell.age <= cell.config.time_between_bites + 1:
        cell.update(context)
    cell.update(context)
    assert cell._bite_contacts == {}


def test_spawn_produces_two_independent_children(cell, context, rng):
    cell.heading = 0.0
    partner = make_genome(rng, generation=4)
    cell.mate(partner)
    energy = cell.energy
    assert cell.spawn_children(context)

    assert len(context.spawned) == 2
    (own, own_pos, own_heading), (mate, mate_pos, mate_heading) = context.spawned
    assert own.generation == cell.genome.generation + 1
    assert mate.generation == partner.generation + 1
    assert own.node_counts == cell.genome.node_counts
    for a, b in zip(own.weights + own.biases, mate.weights + mate.biases):
        assert a is not b
    assert own_pos[0] == pytest.approx(mate_pos[0])
    assert own_pos[1] == pytest.approx(-mate_pos[1])
    assert math.hypot(*own_pos) == pytest.approx(cell.config.radius * 2)
    assert own_heading == pytest.approx(-math.pi / 8 + math.pi)
    assert mate_heading == pytest.approx(math.pi / 8 + math.pi)

    assert cell.energy == pytest.approx(energy * cell.config.spawn_energy_fraction)
    assert cell.stamina == pytest.approx(1 - cell.config.spawn_stamina_cost)
    assert cell.spawn_count == 1
    assert not cell.is_pregnant


def test_twins_from_self_mating_are_deep_copies(cell, context):
    cell.mate(cell.genome)
    cell.spawn_children(context)
    (a, _, _), (b, _, _) = context.spawned
    a.weights[1][0] = 123.0
    assert b.weights[1][0] != 123.0
    assert cell.genome.weights[1][0] != 123.0


def test_spawn_aborts_at_capacity(cell, context, rng):
    cell.mate(make_genome(rng))
    context.full = True
    energy, stamina = cell.energy, cell.stamina
    assert not cell.spawn_children(context)
    assert context.spawned == []
    assert cell.energy == energy
    assert cell.stamina == stamina
    assert not cell.is_pregnant
    assert cell.spawn_count == 0


def test_pregnancy_spawns_after_gestation(cell, context, rng):
    cell.config.metabolic_cost = 0.0
    cell.age = cell.config.mature_age + 1
    cell.mate(make_genome(rng))
    for _ in range(int(cell.config.gestation_age)):
        cell.update(context)
        assert context.spawned == []
    cell.update(context)
    assert len(context.spawned) == 2
    assert cell.last_spawned_age == cell.age


def test_self_replication_makes_cell_pregnant(cell, context):
    cell.age = cell.config.self_replication_age + 100
    cell.frame = cell.config.self_replication_interval
    cell.update(context)
    assert cell.is_pregnant
    assert cell.mating_genome is not cell.genome
    assert cell.mating_genome.id == cell.genome.id


def test_self_replication_respects_switch_and_threshold(cell, context):
    cell.age = cell.config.self_replication_age + 100
    cell.frame = cell.config.self_replication_interval
    context.config.environment.self_replication = False
    cell.update(context)
    assert not cell.is_pregnant

    context.config.environment.self_replication = True
    context.config.environment.generation_training_threshold = -1
    cell.frame = cell.config.self_replication_interval
    cell.update(context)
    assert not cell.is_pregnant


def test_actuators_apply_blink_and_metabolism(cell, context):
    cell.age = 100
    cell.inference.infer([0, 0, 0, 0, 0, 1.0, 1.0, 0])
    energy = cell.energy
    cell.update(context)
    expected = energy - cell.config.blink_exertion - cell.config.metabolic_cost - cell.config.speed_boost_cost
    assert cell.energy == pytest.approx(expected)
    assert cell.last_blink_age == cell.age


def test_stamina_recovers(cell):
    cell.stamina = 0.5
    cell.update(None)
    assert cell.stamina == pytest.approx(0.5 + cell.config.stamina_recovery)
