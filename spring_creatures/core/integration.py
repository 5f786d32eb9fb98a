"""
Fixed-step numerical integrators for the mass-spring simulation.

An integrator advances velocity and position arrays in place given the
current acceleration and a time delta. The simulator picks one strategy at
construction time and uses it for every node.

Integrators are only stable for small steps, so callers must never pass a
dt larger than the configured micro-step (see Simulator.update).
"""

import numpy as np
from typing import Callable, Dict

Integrator = Callable[[np.ndarray, np.ndarray, np.ndarray, float], None]


def euler_method(
    position: np.ndarray,
    velocity: np.ndarray,
    acceleration: np.ndarray,
    dt: float,
) -> None:
    """Semi-implicit Euler: update velocity first, then move with it."""
    velocity += acceleration * dt
    position += velocity * dt


def midpoint_method(
    position: np.ndarray,
    velocity: np.ndarray,
    acceleration: np.ndarray,
    dt: float,
) -> None:
    """Midpoint rule: move with the average of the start and end velocities."""
    start = velocity.copy()
    velocity += acceleration * dt
    position += 0.5 * (start + velocity) * dt


INTEGRATORS: Dict[str, Integrator] = {
    'euler': euler_method,
    'midpoint': midpoint_method,
}


def get_integrator(name: str) -> Integrator:
    """Get an integrator by name."""
    if name not in INTEGRATORS:
        available = ', '.join(INTEGRATORS.keys())
        raise ValueError(f"Unknown integrator '{name}'. Available: {available}")
    return INTEGRATORS[name]
