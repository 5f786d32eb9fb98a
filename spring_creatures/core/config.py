"""
Configuration for creature generation and physics.

All constants are fixed when a CreatureConfig is built; nothing here is meant
to change in the middle of a run.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional

import numpy as np


@dataclass
class CreatureConfig:
    """Body-plan bounds, physical constants and fitness settings."""
    # Node amounts
    min_nodes: int = 4
    max_nodes: int = 16

    # Capacities (default: 2 * max_nodes muscles, max_muscles ** 2 actions)
    max_muscles: Optional[int] = None
    max_actions: Optional[int] = None

    # Node properties
    min_position: float = -1.0
    max_position: float = 1.0
    min_friction: float = 0.0
    max_friction: float = 1.0

    # Muscle properties
    min_strength: float = 0.001
    max_strength: float = 100.0
    min_contracted_length: float = 0.25
    min_extended_length: float = 0.5
    max_muscle_length: float = 2.0

    # Behavior playback
    behavior_time: float = 1.0
    action_density: float = 0.5

    # Physics
    time_step: float = 0.005
    restitution: float = 0.6
    gravity: float = -1.0
    damping: float = 1.5
    friction_scale: float = 20.0
    normalize_friction: bool = False
    integrator: str = 'midpoint'

    # Breeding
    max_mutations: int = 4

    # Fitness evaluation
    fitness_trials: int = 10
    max_energy: Optional[float] = 65536.0

    # Settling to rest before evaluation
    settle_interval: float = 0.1
    settle_tolerance: float = 1e-4
    settle_max_time: float = 10.0

    def __post_init__(self):
        if self.max_muscles is None:
            self.max_muscles = 2 * self.max_nodes
        if self.max_actions is None:
            self.max_actions = self.max_muscles * self.max_muscles

        if self.min_nodes < 2:
            raise ValueError(f"min_nodes must be at least 2, got {self.min_nodes}")
        if self.max_nodes < self.min_nodes:
            raise ValueError(
                f"max_nodes ({self.max_nodes}) must be >= min_nodes ({self.min_nodes})"
            )
        if self.max_muscles < self.max_nodes:
            raise ValueError(
                f"max_muscles ({self.max_muscles}) must be >= max_nodes ({self.max_nodes})"
            )
        if self.max_actions < 1:
            raise ValueError(f"max_actions must be positive, got {self.max_actions}")
        if self.min_position > self.max_position or self.max_position <= 0:
            raise ValueError(
                f"Invalid position range [{self.min_position}, {self.max_position}]"
            )
        if not 0.0 <= self.min_friction <= self.max_friction:
            raise ValueError(
                f"Invalid friction range [{self.min_friction}, {self.max_friction}]"
            )
        if not 0.0 < self.min_strength <= self.max_strength:
            raise ValueError(
                f"Invalid strength range [{self.min_strength}, {self.max_strength}]"
            )
        if not (0.0 < self.min_contracted_length <= self.min_extended_length
                <= self.max_muscle_length):
            raise ValueError(
                "Muscle lengths must satisfy 0 < min_contracted_length <= "
                "min_extended_length <= max_muscle_length"
            )
        if not 0.0 <= self.action_density <= 1.0:
            raise ValueError(f"action_density {self.action_density} out of range [0, 1]")
        for name in ('behavior_time', 'time_step', 'settle_interval', 'settle_max_time'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.fitness_trials < 1:
            raise ValueError(f"fitness_trials must be positive, got {self.fitness_trials}")
        if self.max_mutations < 0:
            raise ValueError(f"max_mutations must be >= 0, got {self.max_mutations}")

    @property
    def action_time(self) -> float:
        """Duration of a single action slot in seconds."""
        return self.behavior_time / self.max_actions

    @property
    def gravity_vector(self) -> np.ndarray:
        return np.array([0.0, self.gravity, 0.0])

    @property
    def rest_contact_speed(self) -> float:
        """Rebound speeds below this are treated as resting contact."""
        # One step of free fall can add up to |g| * dt to the impact speed
        return 2.0 * abs(self.gravity) * self.time_step

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CreatureConfig':
        return cls(**data)
