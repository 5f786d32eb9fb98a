"""
Generic genetic engine.

The engine knows nothing about what it evolves. It works through three
callbacks bound in a GeneticConfig:

- randomize() -> entity: create a fresh random individual
- breed(mother, father) -> (son, daughter): produce two offspring
- fitness(entity) -> float: score an individual (lower is fitter)

Each generation:
1. Rank the whole population by fitness
2. Breed the fittest pairs into the newborn buffer (parents survive)
3. Overwrite the worst individuals with the newborns
4. Re-randomize whatever is left in between (parity remainder)

The population size never changes.
"""

from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, Tuple, TypeVar
import copy
import heapq
import logging
import math

from .checkpoint import EvolutionHistory

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Generation cap meaning "run until the target is reached"
TIMEOUT_NONE = 0


class AllocationError(MemoryError):
    """Raised when the engine cannot allocate its population buffers."""


def newborn_count(population_size: int) -> int:
    """Number of individuals replaced by offspring each generation."""
    return 2 * (population_size // 4)


@dataclass
class GeneticConfig(Generic[T]):
    """Population size plus the callbacks the engine evolves through."""
    population_size: int
    randomize: Callable[[], T]
    breed: Callable[[T, T], Tuple[T, T]]
    fitness: Callable[[T], float]

    def __post_init__(self):
        if self.population_size < 2:
            raise ValueError(
                f"population_size must be at least 2, got {self.population_size}"
            )
        for name in ('randomize', 'breed', 'fitness'):
            if not callable(getattr(self, name)):
                raise ValueError(f"{name} must be callable")


class GeneticEngine(Generic[T]):
    """
    Truncation-selection genetic algorithm over a fixed-size population.

    The best individual of the last generation is available as best_entity.
    That is the live object in the population, which the next call to
    generation() may overwrite; use best_snapshot() to keep a copy.
    """

    def __init__(self, config: GeneticConfig[T]):
        """
        Allocate the population and seed every slot with randomize().

        Raises:
            AllocationError: If the buffers could not be allocated
        """
        self.config = config
        self.history = EvolutionHistory()
        self.generations = 0
        self._best_index: Optional[int] = None
        self._best_fitness = math.inf
        self._closed = False

        size = config.population_size
        try:
            self.population: List[Optional[T]] = [None] * size
            self._newborns: List[Optional[T]] = [None] * newborn_count(size)
            self._ranking: List[Tuple[float, int]] = []
            for i in range(size):
                self.population[i] = config.randomize()
        except MemoryError as e:
            self._release()
            raise AllocationError(
                f"Could not allocate a population of {size}"
            ) from e

        logger.info(
            "Created population of %d (%d newborns per generation)",
            size, len(self._newborns),
        )

    def _release(self) -> None:
        self.population = []
        self._newborns = []
        self._ranking = []

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("GeneticEngine has been closed")

    @property
    def best_index(self) -> Optional[int]:
        """Population index of the last generation's best (None before any)."""
        return self._best_index

    @property
    def best_entity(self) -> Optional[T]:
        if self._best_index is None:
            return None
        return self.population[self._best_index]

    @property
    def best_fitness(self) -> float:
        """Fitness of the last generation's best (inf before any)."""
        return self._best_fitness

    def best_snapshot(self) -> Optional[T]:
        """Independent copy of the best individual."""
        return copy.deepcopy(self.best_entity)

    def generation(self) -> None:
        """
        Run one generation: rank, breed, replace.

        Exceptions raised by the fitness or breed callbacks propagate and
        leave the population as it was before the failing call.
        """
        self._check_open()
        config = self.config
        population = self.population
        newborns = self._newborns

        # Reuse the ranking storage every generation
        ranking = self._ranking
        ranking.clear()
        for index, entity in enumerate(population):
            heapq.heappush(ranking, (config.fitness(entity), index))
        fitnesses = [fitness for fitness, _ in ranking]

        self._best_fitness, self._best_index = ranking[0]

        # Fittest pairs become parents and survive
        for slot in range(0, len(newborns), 2):
            _, mother = heapq.heappop(ranking)
            _, father = heapq.heappop(ranking)
            newborns[slot], newborns[slot + 1] = config.breed(
                population[mother], population[father]
            )

        # Without any parents the best still survives
        if not newborns:
            heapq.heappop(ranking)

        # Drain the rest from fittest to least fit
        remaining = [heapq.heappop(ranking)[1] for _ in range(len(ranking))]
        n_random = len(remaining) - len(newborns)
        for index in remaining[:n_random]:
            population[index] = config.randomize()
        for index, child in zip(remaining[n_random:], newborns):
            population[index] = child
        for slot in range(len(newborns)):
            newborns[slot] = None

        self.generations += 1
        stats = self.history.record_generation(
            generation=self.generations,
            fitnesses=fitnesses,
            newborns=len(newborns),
            randomized=n_random,
        )
        logger.debug(
            "Generation %d: best %.4f, mean %.4f",
            stats.generation, stats.best_fitness, stats.mean_fitness,
        )

    def solve(self, target_fitness: float, max_generations: int = TIMEOUT_NONE) -> int:
        """
        Run generations until the best fitness reaches the target.

        Args:
            target_fitness: Stop once best_fitness <= this
            max_generations: Generation cap (TIMEOUT_NONE for no cap)

        Returns:
            Number of generations run
        """
        generation = 0
        while max_generations == TIMEOUT_NONE or generation < max_generations:
            self.generation()
            generation += 1
            if self._best_fitness <= target_fitness:
                return generation
        return generation

    def close(self) -> None:
        """Release the population. The engine cannot be used afterwards."""
        self._release()
        self._best_index = None
        self._closed = True

    def __enter__(self) -> 'GeneticEngine[T]':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
