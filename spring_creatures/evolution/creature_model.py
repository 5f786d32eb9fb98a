"""
Binds creatures to the generic genetic engine.

CreatureModel supplies the randomize, breed and fitness callbacks for
mass-spring creatures, sharing one CreatureConfig, one random source and
one Simulator between them.
"""

import random
from typing import Optional, Tuple

from ..core.config import CreatureConfig
from ..core.creature import Creature, breed_creatures, create_random_creature
from ..core.integration import Integrator
from ..core.simulation import Simulator
from .engine import GeneticConfig, GeneticEngine


class CreatureModel:
    """Creature callbacks for GeneticEngine."""

    def __init__(
        self,
        config: Optional[CreatureConfig] = None,
        rng: Optional[random.Random] = None,
        integrator: Optional[Integrator] = None,
    ):
        self.config = config or CreatureConfig()
        self.rng = rng or random.Random()
        self.simulator = Simulator(self.config, integrator)

    def randomize(self) -> Creature:
        return create_random_creature(self.config, self.rng)

    def breed(self, mother: Creature, father: Creature) -> Tuple[Creature, Creature]:
        """Two children: one favouring each parent's behavior prefix."""
        son = breed_creatures(mother, father, self.config, self.rng)
        daughter = breed_creatures(father, mother, self.config, self.rng)
        return son, daughter

    def fitness(self, creature: Creature) -> float:
        return self.simulator.fitness(creature)

    def genetic_config(self, population_size: int) -> GeneticConfig[Creature]:
        return GeneticConfig(
            population_size=population_size,
            randomize=self.randomize,
            breed=self.breed,
            fitness=self.fitness,
        )


def create_creature_engine(
    population_size: int,
    config: Optional[CreatureConfig] = None,
    seed: Optional[int] = None,
    integrator: Optional[Integrator] = None,
) -> Tuple[GeneticEngine[Creature], CreatureModel]:
    """
    Create a genetic engine that evolves walking creatures.

    Args:
        population_size: Number of creatures
        config: Creature configuration (default: CreatureConfig())
        seed: Random seed for reproducibility
        integrator: Integration strategy override

    Returns:
        (engine, model) tuple
    """
    model = CreatureModel(config, random.Random(seed), integrator)
    engine = GeneticEngine(model.genetic_config(population_size))
    return engine, model
