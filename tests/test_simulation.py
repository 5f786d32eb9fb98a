"""
Tests for the physics simulation and locomotion fitness.

Run with: python -m pytest tests/test_simulation.py -v
"""

import pytest
import math
import random
import numpy as np
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from spring_creatures.core.config import CreatureConfig
from spring_creatures.core.creature import (
    Creature,
    MUSCLE_NONE,
    create_random_creature,
    mutate_creature,
)
from spring_creatures.core.integration import (
    euler_method,
    get_integrator,
    midpoint_method,
)
from spring_creatures.core.simulation import Simulator
from spring_creatures.core.vector import (
    add,
    dot,
    is_nan,
    is_zero,
    iszero,
    length,
    multiply,
    normalize,
    subtract,
    vector,
)


def small_config(**overrides) -> CreatureConfig:
    settings = dict(
        min_nodes=4,
        max_nodes=6,
        max_actions=16,
        behavior_time=0.25,
        fitness_trials=2,
        settle_max_time=2.0,
    )
    settings.update(overrides)
    return CreatureConfig(**settings)


def make_creature(config, positions, muscles=()):
    """Build a creature by hand from node positions and (first, second) pairs."""
    creature = Creature.empty(config)
    creature.n_nodes = len(positions)
    creature.n_muscles = len(muscles)
    for i, position in enumerate(positions):
        creature.initial[i] = position
        creature.position[i] = position
    for i, (first, second) in enumerate(muscles):
        creature.first[i] = first
        creature.second[i] = second
        creature.extended[i] = 1.0
        creature.contracted[i] = 0.5
        creature.strength[i] = 10.0
    return creature


class TestVector:
    """Tests for the vector helpers."""

    def test_arithmetic(self):
        a = vector(1.0, 2.0, 3.0)
        b = vector(0.5, -1.0, 2.0)
        np.testing.assert_allclose(add(a, b), [1.5, 1.0, 5.0])
        np.testing.assert_allclose(subtract(a, b), [0.5, 3.0, 1.0])
        np.testing.assert_allclose(multiply(a, 2.0), [2.0, 4.0, 6.0])
        assert dot(a, b) == pytest.approx(4.5)
        assert length(vector(3.0, 4.0, 0.0)) == pytest.approx(5.0)
        assert iszero(1e-9)
        assert not iszero(1e-3)

    def test_normalize(self):
        np.testing.assert_allclose(normalize(vector(3.0, 0.0, 4.0)), [0.6, 0.0, 0.8])
        assert is_zero(normalize(vector()))

    def test_normalize_batch_keeps_zero_rows(self):
        batch = np.array([[0.0, 0.0, 2.0], [0.0, 0.0, 0.0]])
        np.testing.assert_allclose(normalize(batch), [[0.0, 0.0, 1.0], [0.0, 0.0, 0.0]])

    def test_is_nan(self):
        assert is_nan(vector(0.0, float('nan'), 0.0))
        assert not is_nan(vector(1.0, 2.0, 3.0))


class TestIntegrators:
    """Tests for the numerical integrators."""

    def _fall(self, integrator, steps=10, dt=0.1):
        position = np.zeros((1, 3))
        velocity = np.zeros((1, 3))
        acceleration = np.array([[0.0, -1.0, 0.0]])
        for _ in range(steps):
            integrator(position, velocity, acceleration, dt)
        return position, velocity

    def test_midpoint_exact_for_constant_acceleration(self):
        position, velocity = self._fall(midpoint_method)
        assert position[0, 1] == pytest.approx(-0.5)
        assert velocity[0, 1] == pytest.approx(-1.0)

    def test_euler(self):
        position, velocity = self._fall(euler_method)
        assert position[0, 1] == pytest.approx(-0.55)
        assert velocity[0, 1] == pytest.approx(-1.0)

    def test_lookup(self):
        assert get_integrator('midpoint') is midpoint_method
        assert get_integrator('euler') is euler_method
        with pytest.raises(ValueError, match="Unknown integrator"):
            get_integrator('verlet')


class TestPhysics:
    """Tests for single physics steps."""

    def test_zero_strength_muscle_is_inert(self):
        config = small_config()
        creature = make_creature(config, [[0, 1, 0], [2, 1, 0]], [(0, 1)])
        creature.strength[0] = 0.0

        Simulator(config).update_full(creature, config.time_step)

        np.testing.assert_allclose(creature.acceleration[0], config.gravity_vector)
        np.testing.assert_allclose(creature.acceleration[1], config.gravity_vector)

    def test_stretched_muscle_pulls_nodes_together(self):
        config = small_config(gravity=0.0)
        creature = make_creature(config, [[0, 1, 0], [2, 1, 0]], [(0, 1)])

        Simulator(config).update_full(creature, config.time_step)

        assert creature.acceleration[0, 0] > 0
        assert creature.acceleration[1, 0] < 0
        assert creature.acceleration[0, 0] == pytest.approx(-creature.acceleration[1, 0])
        # Relaxed muscles spend no energy
        assert creature.energy == 0.0

    def test_contracted_muscle_spends_energy(self):
        config = small_config(gravity=0.0)
        creature = make_creature(config, [[0, 1, 0], [1, 1, 0]], [(0, 1)])
        creature.is_contracted[0] = True

        Simulator(config).update_full(creature, config.time_step)

        assert creature.energy > 0.0
        assert creature.acceleration[0, 0] > 0

    def test_update_full_never_toggles_muscles(self):
        config = small_config()
        creature = create_random_creature(config, random.Random(3))
        creature.is_contracted[0] = True
        before = creature.is_contracted.copy()

        simulator = Simulator(config)
        for _ in range(50):
            simulator.update_full(creature, config.time_step)

        np.testing.assert_array_equal(creature.is_contracted, before)

    def test_update_splits_into_micro_steps(self, monkeypatch):
        config = small_config()
        simulator = Simulator(config)
        creature = create_random_creature(config, random.Random(4))
        steps = []
        monkeypatch.setattr(simulator, 'update_full', lambda c, dt: steps.append(dt))

        simulator.update(creature, 0.0125)

        assert steps == pytest.approx([0.005, 0.005, 0.0025])

    def test_dropped_node_comes_to_rest(self):
        """With gravity only a falling node ends at y=0 with no velocity."""
        config = small_config()
        creature = make_creature(config, [[0, 1, 0]])

        Simulator(config).update(creature, 20.0)

        assert creature.position[0, 1] == 0.0
        assert creature.velocity[0, 1] == 0.0

    def test_nodes_never_go_below_ground(self):
        config = small_config()
        simulator = Simulator(config)
        creature = make_creature(
            config,
            [[0, 0.5, 0], [1, 0.5, 0], [0.5, 1, 0.5]],
            [(1, 0), (2, 0), (2, 1)],
        )
        creature.actions[:] = 0

        for _ in range(20):
            simulator.animate(creature, 0.05)
            assert np.all(creature.position[:creature.n_nodes, 1] >= 0.0)

    def test_friction_slows_grounded_node(self):
        config = small_config()
        creature = make_creature(config, [[0, 0, 0]])
        creature.friction[0] = 1.0
        creature.velocity[0] = [1.0, 0.0, 0.0]

        Simulator(config).update(creature, 0.5)

        assert 0.0 <= creature.velocity[0, 0] < 0.1
        assert creature.position[0, 1] == 0.0


class TestAnimation:
    """Tests for behavior playback."""

    def _creature(self, config):
        creature = create_random_creature(config, random.Random(6))
        creature.actions[:] = MUSCLE_NONE
        return creature

    def test_clock_accounting(self):
        config = small_config(max_energy=None)
        simulator = Simulator(config)
        creature = self._creature(config)

        for dt in (0.01, 0.037, config.action_time, 0.2):
            simulator.animate(creature, dt)

        assert creature.clock == pytest.approx(0.01 + 0.037 + config.action_time + 0.2)

    def test_toggles_once_per_period(self):
        config = small_config(max_energy=None)
        simulator = Simulator(config)
        creature = self._creature(config)
        creature.actions[1] = 0

        simulator.animate(creature, config.behavior_time)
        assert creature.is_contracted[0]
        assert creature.clock == pytest.approx(config.behavior_time)

        simulator.animate(creature, config.behavior_time)
        assert not creature.is_contracted[0]

    def test_chunked_playback_matches_boundaries(self):
        """Playing a period in small chunks fires the same actions."""
        config = small_config(max_energy=None)
        simulator = Simulator(config)
        creature = self._creature(config)
        creature.actions[3] = 0
        creature.actions[5] = 1
        creature.actions[7] = 1

        chunk = config.action_time / 3
        for _ in range(3 * config.max_actions):
            simulator.animate(creature, chunk)

        assert creature.is_contracted[0]
        assert not creature.is_contracted[1]

    def test_exhausted_creature_relaxes(self):
        config = small_config(max_energy=1e-9)
        simulator = Simulator(config)
        creature = self._creature(config)
        creature.actions[:] = 0
        creature.is_contracted[0] = True

        simulator.animate(creature, 0.1)

        assert simulator.is_exhausted(creature)
        assert not creature.is_contracted.any()
        assert creature.clock == pytest.approx(0.1)

    def test_unlimited_energy(self):
        config = small_config(max_energy=None)
        creature = self._creature(config)
        creature.energy = 1e12
        assert not Simulator(config).is_exhausted(creature)


class TestRestAndFitness:
    """Tests for settling and the memoized fitness."""

    def test_reset(self):
        config = small_config()
        simulator = Simulator(config)
        creature = create_random_creature(config, random.Random(7))
        creature.actions[:] = 0
        simulator.animate(creature, 0.1)

        simulator.reset(creature)

        assert creature.clock == 0.0
        assert creature.energy == 0.0
        assert not creature.is_contracted.any()
        np.testing.assert_array_equal(creature.position, creature.initial)
        assert simulator.is_resting(creature)

    def test_settle(self):
        config = small_config()
        simulator = Simulator(config)
        creature = create_random_creature(config, random.Random(8))

        elapsed = simulator.settle(creature)

        assert 0.0 < elapsed <= config.settle_max_time + 1e-9
        n = creature.n_nodes
        assert np.all(creature.initial[:n, 1] >= 0.0)
        np.testing.assert_array_equal(creature.position, creature.initial)
        assert is_zero(simulator.mean_velocity(creature))

    def test_fitness_is_finite_and_memoized(self):
        config = small_config()
        simulator = Simulator(config)
        creature = create_random_creature(config, random.Random(9))

        fitness = simulator.fitness(creature)

        assert not math.isnan(fitness)
        assert creature.fitness == fitness
        assert creature.clock == 0.0

    def test_memo_skips_simulation(self, monkeypatch):
        config = small_config()
        simulator = Simulator(config)
        creature = create_random_creature(config, random.Random(10))

        calls = []
        original = simulator.update_full

        def counting(c, dt):
            calls.append(dt)
            original(c, dt)

        monkeypatch.setattr(simulator, 'update_full', counting)

        first = simulator.fitness(creature)
        n_calls = len(calls)
        assert n_calls > 0

        second = simulator.fitness(creature)
        assert second == first
        assert len(calls) == n_calls

        mutate_creature(creature, config, random.Random(0))
        simulator.fitness(creature)
        assert len(calls) > n_calls

    def test_walk_fitness_sign(self):
        """A creature pushed forward scores below zero."""
        config = small_config(settle_max_time=0.1, fitness_trials=1)
        simulator = Simulator(config)
        creature = make_creature(config, [[0, 0, 0], [1, 0, 0]], [(0, 1)])
        creature.strength[0] = 0.0

        class Pushing(Simulator):
            def animate(self, c, dt):
                c.position[:c.n_nodes, 0] += 1.0
                c.clock += dt

        pushed = Pushing(config)
        assert pushed.walk_fitness(creature) == pytest.approx(-1.0)
        assert simulator.walk_fitness(creature) == pytest.approx(0.0, abs=1e-9)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
