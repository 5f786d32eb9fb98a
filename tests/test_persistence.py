"""
Tests for raw creature records and run checkpoints.

Run with: python -m pytest tests/test_persistence.py -v
"""

import pytest
import random
import numpy as np
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from spring_creatures.core.config import CreatureConfig
from spring_creatures.core.creature import create_random_creature
from spring_creatures.core.persistence import (
    creature_from_bytes,
    creature_to_bytes,
    load_creature,
    record_dtype,
    save_creature,
)
from spring_creatures.core.simulation import Simulator
from spring_creatures.evolution.checkpoint import (
    EvolutionCheckpoint,
    EvolutionHistory,
    GenerationStats,
    generate_run_id,
)


def small_config(**overrides) -> CreatureConfig:
    settings = dict(min_nodes=4, max_nodes=6, max_actions=32)
    settings.update(overrides)
    return CreatureConfig(**settings)


class TestRawRecord:
    """Tests for the binary creature record."""

    def test_record_size_follows_config(self):
        small = record_dtype(small_config())
        large = record_dtype(CreatureConfig())
        assert small.itemsize < large.itemsize
        assert small.names[:5] == ('n_nodes', 'n_muscles', 'clock', 'energy', 'fitness')
        assert small.names[-1] == 'actions'

    def test_roundtrip_is_bit_identical(self):
        config = small_config()
        creature = create_random_creature(config, random.Random(1))
        creature.is_contracted[1] = True
        Simulator(config).animate(creature, 0.05)

        data = creature_to_bytes(creature, config)
        restored = creature_from_bytes(data, config)

        assert creature_to_bytes(restored, config) == data
        assert restored.n_nodes == creature.n_nodes
        assert restored.n_muscles == creature.n_muscles
        assert restored.clock == creature.clock
        assert restored.energy == creature.energy
        np.testing.assert_array_equal(restored.position, creature.position)
        np.testing.assert_array_equal(restored.is_contracted, creature.is_contracted)
        np.testing.assert_array_equal(restored.actions, creature.actions)

    def test_missing_fitness(self):
        config = small_config()
        creature = create_random_creature(config, random.Random(2))

        assert creature_from_bytes(creature_to_bytes(creature, config), config).fitness is None

        creature.fitness = -0.75
        assert creature_from_bytes(creature_to_bytes(creature, config), config).fitness == -0.75

    def test_size_mismatch(self):
        config = small_config()
        data = creature_to_bytes(create_random_creature(config, random.Random(3)), config)

        with pytest.raises(ValueError):
            creature_from_bytes(data[:-1], config)
        with pytest.raises(ValueError):
            creature_from_bytes(data, CreatureConfig())

    def test_save_and_load(self, tmp_path):
        config = small_config()
        creature = create_random_creature(config, random.Random(4))
        creature.fitness = -1.5
        path = tmp_path / 'runs' / 'best.creature'

        save_creature(path, creature, config)
        loaded = load_creature(path, config)

        assert path.stat().st_size == record_dtype(config).itemsize
        assert loaded.fitness == -1.5
        assert loaded.to_dict() == creature.to_dict()


class TestCheckpoint:
    """Tests for evolution history and checkpoints."""

    def test_evolution_history(self):
        history = EvolutionHistory()

        stats = history.record_generation(
            generation=1,
            fitnesses=[3.0, -1.0, 2.0, 0.0],
            newborns=2,
            randomized=0,
        )

        assert isinstance(stats, GenerationStats)
        assert stats.best_fitness == -1.0
        assert stats.worst_fitness == 3.0
        assert stats.mean_fitness == pytest.approx(1.0)
        assert stats.population_size == 4
        assert history.fitness_trajectory == [-1.0]

    def test_improvement_rate(self):
        history = EvolutionHistory()
        assert history.get_improvement_rate(window=3) == float('inf')

        for generation, best in enumerate([0.0, -0.5, -1.0, -1.5], start=1):
            history.record_generation(generation, [best, best + 1.0], 0, 0)
        assert history.get_improvement_rate(window=3) == pytest.approx(0.5)

        # Plateau
        history.record_generation(5, [-1.5, 0.0], 0, 0)
        assert history.get_improvement_rate(window=1) == pytest.approx(0.0)

    def test_history_roundtrip(self):
        history = EvolutionHistory()
        history.record_generation(1, [1.0, 2.0], 0, 1)
        history.record_generation(2, [0.5, 2.0], 0, 1)

        restored = EvolutionHistory.from_dict(history.to_dict())

        assert restored.fitness_trajectory == [1.0, 0.5]
        assert restored.generations[1].best_fitness == 0.5
        assert restored.generations[0].randomized == 1

    def test_evolution_checkpoint(self, tmp_path):
        config = small_config()
        rng = random.Random(5)
        population = [create_random_creature(config, rng) for _ in range(3)]
        population[0].fitness = -2.0

        checkpoint = EvolutionCheckpoint(
            run_id=generate_run_id(),
            generation=5,
            population=[c.to_dict() for c in population],
            best=population[0].to_dict(),
            best_fitness=-2.0,
            history={'generations': [], 'fitness_trajectory': [-2.0]},
            config=config.to_dict(),
            timestamp='2024-01-01T00:00:00',
        )

        checkpoint_path = tmp_path / 'checkpoint.json'
        checkpoint.save(checkpoint_path)
        loaded = EvolutionCheckpoint.load(checkpoint_path)

        assert loaded.run_id.startswith('evo_')
        assert loaded.generation == 5
        assert loaded.get_config() == config
        assert len(loaded.get_population()) == 3
        assert loaded.get_population()[1].to_dict() == population[1].to_dict()
        assert loaded.get_best().fitness == -2.0


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
