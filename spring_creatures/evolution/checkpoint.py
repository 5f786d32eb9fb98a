"""
Checkpointing for evolutionary runs.

Enables:
- Recording per-generation fitness statistics
- Saving the population and best creature of a run to JSON
- Reloading a saved population to inspect or replay it
"""

from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional, Sequence
from pathlib import Path
from datetime import datetime
import json
import uuid

import numpy as np
from filelock import FileLock

from ..core.config import CreatureConfig
from ..core.creature import Creature


@dataclass
class GenerationStats:
    """Statistics for a single generation (lower fitness is better)."""
    generation: int
    best_fitness: float
    mean_fitness: float
    worst_fitness: float
    std_fitness: float
    population_size: int
    newborns: int
    randomized: int
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EvolutionHistory:
    """
    Tracks evolution progress over generations.

    Records per-generation statistics for analysis and plotting.
    """

    def __init__(self):
        self.generations: List[GenerationStats] = []
        self.fitness_trajectory: List[float] = []

    def record_generation(
        self,
        generation: int,
        fitnesses: Sequence[float],
        newborns: int,
        randomized: int,
    ) -> GenerationStats:
        """
        Record statistics for a completed generation.

        Args:
            generation: Generation number (1-based)
            fitnesses: Fitness of every individual before replacement
            newborns: Individuals replaced by offspring
            randomized: Individuals replaced by fresh random ones

        Returns:
            GenerationStats for this generation
        """
        values = np.asarray(fitnesses, dtype=np.float64)
        stats = GenerationStats(
            generation=generation,
            best_fitness=float(values.min()),
            mean_fitness=float(np.mean(values)),
            worst_fitness=float(values.max()),
            std_fitness=float(np.std(values)),
            population_size=len(values),
            newborns=newborns,
            randomized=randomized,
            timestamp=datetime.now().isoformat(),
        )

        self.generations.append(stats)
        self.fitness_trajectory.append(stats.best_fitness)
        return stats

    def to_dict(self) -> Dict[str, Any]:
        """Convert history to dictionary for serialization."""
        return {
            'generations': [g.to_dict() for g in self.generations],
            'fitness_trajectory': self.fitness_trajectory,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvolutionHistory':
        """Restore history from dictionary."""
        history = cls()
        history.generations = [
            GenerationStats(**g) for g in data.get('generations', [])
        ]
        history.fitness_trajectory = data.get('fitness_trajectory', [])
        return history

    def get_improvement_rate(self, window: int = 5) -> float:
        """
        Calculate recent improvement rate.

        Args:
            window: Number of recent generations to consider

        Returns:
            How much the best fitness dropped (positive = improving)
        """
        if len(self.fitness_trajectory) < window + 1:
            return float('inf')  # Not enough data

        recent = self.fitness_trajectory[-window:]
        older = self.fitness_trajectory[-(window + 1):-1]

        return min(older) - min(recent)


@dataclass
class EvolutionCheckpoint:
    """
    Snapshot of an evolutionary run.

    Creatures are stored as genome dictionaries (see Creature.to_dict), so a
    checkpoint can only be loaded with the creature config it was saved with.
    The config is stored alongside for that reason.
    """
    run_id: str
    generation: int
    population: List[Dict[str, Any]]
    best: Optional[Dict[str, Any]]
    best_fitness: float
    history: Dict[str, List[Any]]
    config: Dict[str, Any]
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvolutionCheckpoint':
        """Create from dictionary."""
        return cls(**data)

    def save(self, path: Path) -> None:
        """Save checkpoint to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(str(path) + '.lock'):
            with open(path, 'w') as f:
                json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Path) -> 'EvolutionCheckpoint':
        """Load checkpoint from JSON file."""
        path = Path(path)
        with FileLock(str(path) + '.lock'):
            with open(path, 'r') as f:
                data = json.load(f)
        return cls.from_dict(data)

    def get_config(self) -> CreatureConfig:
        return CreatureConfig.from_dict(self.config)

    def get_population(self) -> List[Creature]:
        """Deserialize population to Creature objects."""
        config = self.get_config()
        return [Creature.from_dict(c, config) for c in self.population]

    def get_best(self) -> Optional[Creature]:
        if self.best is None:
            return None
        return Creature.from_dict(self.best, self.get_config())


def generate_run_id() -> str:
    """Generate unique run identifier."""
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    short_uuid = uuid.uuid4().hex[:6]
    return f"evo_{timestamp}_{short_uuid}"
