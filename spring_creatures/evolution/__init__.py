"""
Evolution of walking creatures.

This module provides a generic genetic engine plus the bindings that let
it evolve mass-spring creatures.

Key components:
- GeneticEngine: Truncation-selection loop over any entity type
- CreatureModel: randomize/breed/fitness callbacks for creatures
- EvolutionHistory / EvolutionCheckpoint: run statistics and snapshots

Example usage:
    from spring_creatures.core import CreatureConfig
    from spring_creatures.evolution import create_creature_engine

    engine, model = create_creature_engine(population_size=40, seed=1)
    with engine:
        generations = engine.solve(target_fitness=-2.0, max_generations=50)
        best = engine.best_snapshot()

    print(f"Best fitness after {generations} generations: {best.fitness:.3f}")
"""

from .engine import (
    AllocationError,
    GeneticConfig,
    GeneticEngine,
    TIMEOUT_NONE,
    newborn_count,
)
from .creature_model import CreatureModel, create_creature_engine
from .checkpoint import (
    EvolutionCheckpoint,
    EvolutionHistory,
    GenerationStats,
    generate_run_id,
)

__all__ = [
    # Engine
    'GeneticEngine',
    'GeneticConfig',
    'AllocationError',
    'TIMEOUT_NONE',
    'newborn_count',
    # Creatures
    'CreatureModel',
    'create_creature_engine',
    # Checkpointing
    'EvolutionCheckpoint',
    'EvolutionHistory',
    'GenerationStats',
    'generate_run_id',
]
