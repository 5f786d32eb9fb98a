"""
Physical simulation and locomotion fitness for mass-spring creatures.

The Simulator owns the physical constants and the integrator strategy; the
creatures it steps carry only their own state. All nodes have unit mass, so
forces are applied directly as accelerations.

Time handling:
- update_full() takes one micro-step of at most config.time_step seconds
- update() splits any interval into whole micro-steps plus a remainder
- animate() additionally plays back the behavior, toggling muscles at every
  action boundary the biological clock crosses
"""

import logging
import math
from typing import Optional

import numpy as np

from .config import CreatureConfig
from .creature import Creature, MUSCLE_NONE
from .integration import Integrator, get_integrator
from .vector import EPSILON, dot, length, normalize, is_nan

logger = logging.getLogger(__name__)

# Intervals shorter than this are not worth a physics step
_MIN_INTERVAL = 1e-12


class Simulator:
    """
    Steps creatures through time and scores how well they walk.

    Fitness follows the engine convention: smaller is better.
    """

    def __init__(
        self,
        config: Optional[CreatureConfig] = None,
        integrator: Optional[Integrator] = None,
    ):
        """
        Args:
            config: Physical constants and fitness settings
            integrator: Integration strategy (default: config.integrator by name)
        """
        self.config = config or CreatureConfig()
        self.integrator = integrator or get_integrator(self.config.integrator)

    # =========================================================================
    # Physics
    # =========================================================================

    def update_full(self, creature: Creature, dt: float) -> None:
        """
        Advance the mass-spring system by one micro-step.

        Muscle contraction flags are read but never changed here.
        """
        config = self.config
        n = creature.n_nodes
        m = creature.n_muscles
        position = creature.position[:n]
        velocity = creature.velocity[:n]
        acceleration = creature.acceleration[:n]

        acceleration[:] = config.gravity_vector

        # Spring forces. Muscles without strength or without length exert nothing.
        idx = np.flatnonzero(np.abs(creature.strength[:m]) >= EPSILON)
        first = creature.first[idx]
        second = creature.second[idx]
        delta = position[second] - position[first]
        lengths = length(delta)
        keep = lengths >= EPSILON
        if not np.all(keep):
            idx, first, second = idx[keep], first[keep], second[keep]
            delta, lengths = delta[keep], lengths[keep]

        if idx.size:
            direction = delta / lengths[:, np.newaxis]
            contracting = creature.is_contracted[idx]
            target = np.where(contracting, creature.contracted[idx], creature.extended[idx])

            # Strength is per unit of target length
            magnitude = -(creature.strength[idx] / target) * (target - lengths)
            if config.damping:
                closing = dot(direction, velocity[first]) - dot(direction, velocity[second])
                magnitude -= config.damping * closing

            force = direction * magnitude[:, np.newaxis]
            np.add.at(acceleration, first, force)
            np.subtract.at(acceleration, second, force)

            creature.energy += dt * float(np.sum(np.abs(magnitude[contracting])))

        # Ground friction opposes horizontal motion of nodes touching the ground
        grounded = (
            (np.abs(position[:, 1]) < EPSILON)
            & (np.abs(creature.friction[:n]) >= EPSILON)
            & np.any(np.abs(velocity) >= EPSILON, axis=1)
        )
        if np.any(grounded):
            friction = velocity[grounded].copy()
            if config.normalize_friction:
                friction = normalize(friction)
            friction *= -(config.friction_scale * creature.friction[:n][grounded])[:, np.newaxis]
            friction[:, 1] = 0.0
            acceleration[grounded] += friction

        self.integrator(position, velocity, acceleration, dt)

        # Ground collision
        below = position[:, 1] <= EPSILON
        if np.any(below):
            position[below, 1] = 0.0
            falling = below & (velocity[:, 1] < 0.0)
            bounce = -config.restitution * velocity[falling, 1]
            bounce[bounce < config.rest_contact_speed] = 0.0
            velocity[falling, 1] = bounce

    def update(self, creature: Creature, dt: float) -> None:
        """Advance the physics by any interval using bounded micro-steps."""
        step = self.config.time_step
        full_steps = int(dt // step)
        remainder = dt - full_steps * step
        for _ in range(full_steps):
            self.update_full(creature, step)
        if remainder > _MIN_INTERVAL:
            self.update_full(creature, remainder)

    # =========================================================================
    # Behavior playback
    # =========================================================================

    def is_exhausted(self, creature: Creature) -> bool:
        max_energy = self.config.max_energy
        return max_energy is not None and creature.energy > max_energy

    def animate(self, creature: Creature, dt: float) -> None:
        """
        Play back the creature's behavior for dt seconds.

        Action boundaries sit at whole multiples of config.action_time on the
        biological clock. Each boundary reached toggles the muscle named by
        the action at that tick (modulo the behavior length). Once the
        creature runs out of energy every muscle relaxes and no further
        actions fire.
        """
        action_time = self.config.action_time
        remaining = dt

        while remaining > _MIN_INTERVAL:
            if self.is_exhausted(creature):
                creature.is_contracted[:] = False
                self.update(creature, remaining)
                creature.clock += remaining
                return

            tick = math.floor(creature.clock / action_time + 1e-9) + 1
            to_boundary = tick * action_time - creature.clock
            if to_boundary > remaining + _MIN_INTERVAL:
                self.update(creature, remaining)
                creature.clock += remaining
                return

            self.update(creature, to_boundary)
            creature.clock = tick * action_time
            remaining -= to_boundary
            self._fire_action(creature, tick % creature.max_actions)

    def _fire_action(self, creature: Creature, index: int) -> None:
        action = int(creature.actions[index])
        if action != MUSCLE_NONE and action < creature.n_muscles:
            creature.is_contracted[action] = not creature.is_contracted[action]

    # =========================================================================
    # Rest state
    # =========================================================================

    def reset(self, creature: Creature) -> None:
        """Put the creature back at its rest pose with relaxed muscles."""
        n = creature.n_nodes
        creature.clock = 0.0
        creature.energy = 0.0
        creature.is_contracted[:] = False
        creature.position[:n] = creature.initial[:n]
        creature.velocity[:n] = 0.0
        creature.acceleration[:n] = 0.0

    def is_resting(self, creature: Creature) -> bool:
        """Whether no node is moving horizontally."""
        horizontal = creature.velocity[:creature.n_nodes][:, [0, 2]]
        return bool(np.all(np.abs(horizontal) < EPSILON))

    def settle(self, creature: Creature) -> float:
        """
        Let the creature sag under gravity until it stops moving.

        Steps in chunks of config.settle_interval until the mean node
        velocity changes by less than config.settle_tolerance, then stores
        the settled pose as the new rest positions.

        Returns:
            Simulated seconds spent settling
        """
        config = self.config
        self.reset(creature)

        max_chunks = max(1, math.ceil(config.settle_max_time / config.settle_interval - 1e-9))
        previous = self.mean_velocity(creature)
        for chunk in range(1, max_chunks + 1):
            self.update(creature, config.settle_interval)
            current = self.mean_velocity(creature)
            if length(current - previous) < config.settle_tolerance:
                break
            previous = current
        else:
            logger.debug(
                "Creature still moving after %.1fs of settling",
                max_chunks * config.settle_interval,
            )

        n = creature.n_nodes
        creature.initial[:n] = creature.position[:n]
        self.reset(creature)
        return chunk * config.settle_interval

    def centroid(self, creature: Creature) -> np.ndarray:
        """Average node position."""
        return creature.position[:creature.n_nodes].mean(axis=0)

    def mean_velocity(self, creature: Creature) -> np.ndarray:
        """Average node velocity."""
        return creature.velocity[:creature.n_nodes].mean(axis=0)

    # =========================================================================
    # Fitness
    # =========================================================================

    def walk_fitness(self, creature: Creature) -> float:
        """
        Score the creature walking forward along +X (no memo).

        The behavior is played for config.fitness_trials periods in a row.
        Each trial adds the forward displacement of the centroid and
        subtracts the absolute vertical and lateral displacement. The average
        is negated so that better walkers score lower.
        """
        config = self.config
        self.settle(creature)

        forward = 0.0
        vertical = 0.0
        lateral = 0.0
        start = self.centroid(creature)
        for _ in range(config.fitness_trials):
            self.animate(creature, config.behavior_time)
            end = self.centroid(creature)
            delta = end - start
            forward += delta[0]
            vertical += abs(delta[1])
            lateral += abs(delta[2])
            start = end

        score = np.array([forward - vertical - lateral]) / config.fitness_trials
        if is_nan(score):
            logger.warning("Simulation diverged for %r, scoring as unfit", creature)
            return math.inf
        return -float(score[0])

    def fitness(self, creature: Creature) -> float:
        """
        Memoized locomotion fitness (smaller is better).

        The creature is left at its rest pose either way. A memoized score is
        returned without running any simulation.
        """
        if creature.fitness is None:
            creature.fitness = self.walk_fitness(creature)
        self.reset(creature)
        return creature.fitness
