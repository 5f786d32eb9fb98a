"""
Mass-spring creatures and their genetic operators.

A creature is a set of point-mass nodes joined by spring muscles, plus a
cyclic behavior: a fixed-length list of actions, each either a muscle index
(flip that muscle between contracted and extended) or MUSCLE_NONE.

Storage is structure-of-arrays with fixed capacities taken from the
CreatureConfig, so every creature built from the same config has the same
shape regardless of how many nodes and muscles are actually in use.

Structural invariants kept by every operator here:
- min_nodes <= n_nodes <= max_nodes and n_nodes <= n_muscles <= max_muscles
- muscle endpoints are distinct and < n_nodes
- muscle i (1 <= i < n_nodes) joins node i to an earlier node, which keeps
  the body connected
- actions are MUSCLE_NONE or < n_muscles
"""

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Iterator, List, NamedTuple, Optional

import numpy as np

from .config import CreatureConfig

logger = logging.getLogger(__name__)

# Signals that an action slot does nothing
MUSCLE_NONE = -1


class Node(NamedTuple):
    """Read-only view of one node."""
    index: int
    initial: np.ndarray
    position: np.ndarray
    velocity: np.ndarray
    friction: float


class Muscle(NamedTuple):
    """Read-only view of one muscle."""
    index: int
    first: int
    second: int
    extended: float
    contracted: float
    strength: float
    is_contracted: bool


@dataclass(eq=False)
class Creature:
    """
    One virtual mass-spring creature.

    Attributes:
        n_nodes: Number of nodes in use
        n_muscles: Number of muscles in use
        initial: Rest position of each node, shape (max_nodes, 3)
        position, velocity, acceleration: Current node state, shape (max_nodes, 3)
        friction: Ground friction coefficient per node
        first, second: Node indices joined by each muscle
        extended, contracted: Muscle target lengths
        strength: Muscle stiffness
        is_contracted: Current contraction flag per muscle
        actions: Behavior stream, shape (max_actions,)
        clock: Biological clock in simulated seconds
        energy: Muscular energy spent since the last reset
        fitness: Memoized fitness (None if not yet computed)
    """
    n_nodes: int
    n_muscles: int
    initial: np.ndarray
    position: np.ndarray
    velocity: np.ndarray
    acceleration: np.ndarray
    friction: np.ndarray
    first: np.ndarray
    second: np.ndarray
    extended: np.ndarray
    contracted: np.ndarray
    strength: np.ndarray
    is_contracted: np.ndarray
    actions: np.ndarray
    clock: float = 0.0
    energy: float = 0.0
    fitness: Optional[float] = None

    @classmethod
    def empty(cls, config: CreatureConfig) -> 'Creature':
        """Allocate a creature with no nodes or muscles in use."""
        max_nodes = config.max_nodes
        max_muscles = config.max_muscles
        return cls(
            n_nodes=0,
            n_muscles=0,
            initial=np.zeros((max_nodes, 3)),
            position=np.zeros((max_nodes, 3)),
            velocity=np.zeros((max_nodes, 3)),
            acceleration=np.zeros((max_nodes, 3)),
            friction=np.zeros(max_nodes),
            first=np.zeros(max_muscles, dtype=np.int64),
            second=np.zeros(max_muscles, dtype=np.int64),
            extended=np.zeros(max_muscles),
            contracted=np.zeros(max_muscles),
            strength=np.zeros(max_muscles),
            is_contracted=np.zeros(max_muscles, dtype=bool),
            actions=np.full(config.max_actions, MUSCLE_NONE, dtype=np.int64),
        )

    @property
    def max_nodes(self) -> int:
        return self.initial.shape[0]

    @property
    def max_muscles(self) -> int:
        return self.first.shape[0]

    @property
    def max_actions(self) -> int:
        return self.actions.shape[0]

    def node(self, index: int) -> Node:
        if not 0 <= index < self.n_nodes:
            raise IndexError(f"Node index {index} out of range [0, {self.n_nodes - 1}]")
        return Node(
            index=index,
            initial=self.initial[index].copy(),
            position=self.position[index].copy(),
            velocity=self.velocity[index].copy(),
            friction=float(self.friction[index]),
        )

    def muscle(self, index: int) -> Muscle:
        if not 0 <= index < self.n_muscles:
            raise IndexError(f"Muscle index {index} out of range [0, {self.n_muscles - 1}]")
        return Muscle(
            index=index,
            first=int(self.first[index]),
            second=int(self.second[index]),
            extended=float(self.extended[index]),
            contracted=float(self.contracted[index]),
            strength=float(self.strength[index]),
            is_contracted=bool(self.is_contracted[index]),
        )

    def nodes(self) -> Iterator[Node]:
        for i in range(self.n_nodes):
            yield self.node(i)

    def muscles(self) -> Iterator[Muscle]:
        for i in range(self.n_muscles):
            yield self.muscle(i)

    def copy(self) -> 'Creature':
        """Create a deep copy of this creature."""
        return Creature(
            n_nodes=self.n_nodes,
            n_muscles=self.n_muscles,
            initial=self.initial.copy(),
            position=self.position.copy(),
            velocity=self.velocity.copy(),
            acceleration=self.acceleration.copy(),
            friction=self.friction.copy(),
            first=self.first.copy(),
            second=self.second.copy(),
            extended=self.extended.copy(),
            contracted=self.contracted.copy(),
            strength=self.strength.copy(),
            is_contracted=self.is_contracted.copy(),
            actions=self.actions.copy(),
            clock=self.clock,
            energy=self.energy,
            fitness=self.fitness,
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to JSON-serializable dictionary.

        Only the genome and memo are stored; motion state is rebuilt from the
        rest positions on load.
        """
        return {
            'n_nodes': self.n_nodes,
            'n_muscles': self.n_muscles,
            'nodes': [
                {
                    'initial': self.initial[i].tolist(),
                    'friction': float(self.friction[i]),
                }
                for i in range(self.n_nodes)
            ],
            'muscles': [
                {
                    'first': int(self.first[i]),
                    'second': int(self.second[i]),
                    'extended': float(self.extended[i]),
                    'contracted': float(self.contracted[i]),
                    'strength': float(self.strength[i]),
                }
                for i in range(self.n_muscles)
            ],
            'actions': self.actions.tolist(),
            'fitness': self.fitness,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], config: CreatureConfig) -> 'Creature':
        """Create a Creature from a dictionary produced by to_dict()."""
        creature = cls.empty(config)
        if len(data['actions']) != creature.max_actions:
            raise ValueError(
                f"Expected {creature.max_actions} actions, got {len(data['actions'])}"
            )
        creature.n_nodes = data['n_nodes']
        creature.n_muscles = data['n_muscles']
        for i, node in enumerate(data['nodes']):
            creature.initial[i] = node['initial']
            creature.friction[i] = node['friction']
        for i, muscle in enumerate(data['muscles']):
            creature.first[i] = muscle['first']
            creature.second[i] = muscle['second']
            creature.extended[i] = muscle['extended']
            creature.contracted[i] = muscle['contracted']
            creature.strength[i] = muscle['strength']
        creature.actions[:] = data['actions']
        creature.position[:] = creature.initial
        creature.fitness = data.get('fitness')
        return creature

    def __repr__(self) -> str:
        fitness_str = f", fitness={self.fitness:.4f}" if self.fitness is not None else ""
        return f"Creature(nodes={self.n_nodes}, muscles={self.n_muscles}{fitness_str})"


def format_creature(creature: Creature) -> str:
    """Human-readable dump of a creature's nodes and muscles."""
    lines = [f"Creature: {creature.n_nodes} nodes, {creature.n_muscles} muscles"]
    for node in creature.nodes():
        x, y, z = node.initial
        lines.append(
            f"  Node {node.index}: at <{x:.2f}, {y:.2f}, {z:.2f}>, "
            f"friction {node.friction:f}"
        )
    lines.append('')
    for muscle in creature.muscles():
        state = '(contracting)' if muscle.is_contracted else '(extending)'
        lines.append(
            f"  Muscle {muscle.index} ({muscle.first} to {muscle.second}): "
            f"length {muscle.contracted:.2f} to {muscle.extended:.2f} {state}, "
            f"strength {muscle.strength:.2f}"
        )
    return '\n'.join(lines)


# =============================================================================
# Random generation
# =============================================================================

def _random_position(config: CreatureConfig, rng) -> List[float]:
    # Nodes start inside the box above the ground plane
    return [
        rng.uniform(config.min_position, config.max_position),
        rng.uniform(0.0, config.max_position),
        rng.uniform(config.min_position, config.max_position),
    ]


def _generate_node(creature: Creature, index: int, config: CreatureConfig, rng) -> None:
    creature.initial[index] = _random_position(config, rng)
    creature.position[index] = creature.initial[index]
    creature.velocity[index] = 0.0
    creature.acceleration[index] = 0.0
    creature.friction[index] = rng.uniform(config.min_friction, config.max_friction)


def _generate_muscle(creature: Creature, index: int, config: CreatureConfig, rng) -> None:
    """
    Generate a random muscle.

    Muscle i < n_nodes always attaches node i to an earlier node. By
    induction on i this keeps the whole body connected.
    """
    n_nodes = creature.n_nodes
    if index < n_nodes:
        first = index
        second = rng.randint(0, index - 1) if index > 0 else 0
    else:
        first = rng.randint(0, n_nodes - 1)
        second = rng.randint(0, n_nodes - 1)

    # No self-edges
    if first == second:
        second = (second + 1) % n_nodes

    creature.first[index] = first
    creature.second[index] = second

    # Extended length follows the rest separation of the two nodes
    rest_length = float(np.linalg.norm(creature.initial[second] - creature.initial[first]))
    extended = min(max(rest_length, config.min_extended_length), config.max_muscle_length)
    creature.extended[index] = extended
    creature.contracted[index] = rng.uniform(
        max(config.min_contracted_length, extended / 2.0), extended
    )
    creature.strength[index] = rng.uniform(config.min_strength, config.max_strength)
    creature.is_contracted[index] = False


def randomize_creature(
    creature: Creature,
    config: CreatureConfig,
    rng: Optional[random.Random] = None,
) -> None:
    """Overwrite a creature in place with an entirely random one."""
    rng = rng or random

    creature.n_nodes = rng.randint(config.min_nodes, config.max_nodes)
    creature.n_muscles = rng.randint(creature.n_nodes, config.max_muscles)
    creature.clock = 0.0
    creature.energy = 0.0
    creature.fitness = None

    # Unused slots are zeroed so equal creatures have equal records
    for array in (creature.initial, creature.position, creature.velocity,
                  creature.acceleration, creature.friction, creature.first,
                  creature.second, creature.extended, creature.contracted,
                  creature.strength, creature.is_contracted):
        array.fill(0)

    for i in range(creature.n_nodes):
        _generate_node(creature, i, config, rng)
    for i in range(creature.n_muscles):
        _generate_muscle(creature, i, config, rng)

    for i in range(creature.max_actions):
        if rng.random() < config.action_density:
            creature.actions[i] = rng.randint(0, creature.n_muscles - 1)
        else:
            creature.actions[i] = MUSCLE_NONE


def create_random_creature(
    config: Optional[CreatureConfig] = None,
    rng: Optional[random.Random] = None,
) -> Creature:
    """Create an entirely random creature."""
    config = config or CreatureConfig()
    creature = Creature.empty(config)
    randomize_creature(creature, config, rng)
    return creature


# =============================================================================
# Repair
# =============================================================================

def fix_muscles(creature: Creature) -> None:
    """
    Repair muscles after the node count changed or muscles were copied
    from a creature with a different body plan.

    Endpoints that no longer exist are remapped modulo n_nodes and any
    self-loop is broken by moving the second endpoint forward. Base muscles
    (1 <= i < n_nodes) that stopped joining node i to an earlier node are
    re-anchored so the body stays connected. Applying this twice is the same
    as applying it once.
    """
    n_nodes = creature.n_nodes
    for i in range(creature.n_muscles):
        first = int(creature.first[i])
        second = int(creature.second[i])
        if first >= n_nodes or second >= n_nodes:
            first %= n_nodes
            second %= n_nodes
        if first == second:
            second = (second + 1) % n_nodes
        creature.first[i] = first
        creature.second[i] = second

    for i in range(1, min(n_nodes, creature.n_muscles)):
        first = int(creature.first[i])
        second = int(creature.second[i])
        if (first == i and second < i) or (second == i and first < i):
            continue
        other = second if first == i else (first if second == i else second)
        creature.first[i] = i
        creature.second[i] = other % i


def fix_actions(creature: Creature) -> None:
    """Remap actions that point past the last muscle."""
    stale = creature.actions >= creature.n_muscles
    creature.actions[stale] %= creature.n_muscles


def is_connected(creature: Creature) -> bool:
    """Whether every node can reach every other node through muscles."""
    parent = list(range(creature.n_nodes))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    for i in range(creature.n_muscles):
        a = find(int(creature.first[i]))
        b = find(int(creature.second[i]))
        if a != b:
            parent[a] = b

    roots = {find(i) for i in range(creature.n_nodes)}
    return len(roots) <= 1


# =============================================================================
# Mutation
# =============================================================================

class Mutation(Enum):
    """All the possible single-step mutations."""
    NODE_ADD = 'node_add'
    NODE_REMOVE = 'node_remove'
    NODE_POSITION = 'node_position'
    NODE_FRICTION = 'node_friction'
    MUSCLE_ANCHOR = 'muscle_anchor'
    MUSCLE_EXTENDED = 'muscle_extended'
    MUSCLE_CONTRACTED = 'muscle_contracted'
    MUSCLE_STRENGTH = 'muscle_strength'
    MUSCLE_ADD = 'muscle_add'
    MUSCLE_REMOVE = 'muscle_remove'
    BEHAVIOR_ADD = 'behavior_add'
    BEHAVIOR_REMOVE = 'behavior_remove'


MUTATIONS = list(Mutation)


def mutate_creature(
    creature: Creature,
    config: CreatureConfig,
    rng: Optional[random.Random] = None,
    mutation: Optional[Mutation] = None,
) -> Mutation:
    """
    Apply one random mutation in place.

    Args:
        creature: Creature to mutate
        config: Bounds for the mutated values
        rng: Random source (defaults to the global random module)
        mutation: Force a specific mutation kind instead of picking one

    Returns:
        The mutation that was applied
    """
    rng = rng or random
    if mutation is None:
        mutation = rng.choice(MUTATIONS)

    node = rng.randint(0, creature.n_nodes - 1)
    muscle = rng.randint(0, creature.n_muscles - 1)
    action = rng.randint(0, creature.max_actions - 1)

    if mutation is Mutation.NODE_POSITION:
        creature.initial[node] = _random_position(config, rng)
        creature.position[node] = creature.initial[node]

    elif mutation is Mutation.NODE_FRICTION:
        creature.friction[node] = rng.uniform(config.min_friction, config.max_friction)

    elif mutation is Mutation.NODE_ADD:
        # The new node needs a muscle of its own to stay attached
        if creature.n_nodes < config.max_nodes and creature.n_muscles < config.max_muscles:
            _generate_node(creature, creature.n_nodes, config, rng)
            creature.n_nodes += 1
            _generate_muscle(creature, creature.n_muscles, config, rng)
            creature.n_muscles += 1
            fix_muscles(creature)

    elif mutation is Mutation.NODE_REMOVE:
        if creature.n_nodes > config.min_nodes:
            creature.n_nodes -= 1
            fix_muscles(creature)

    elif mutation is Mutation.MUSCLE_ANCHOR:
        second = rng.randint(0, creature.n_nodes - 1)
        if second == creature.first[muscle]:
            second = (second + 1) % creature.n_nodes
        creature.second[muscle] = second
        fix_muscles(creature)

    elif mutation is Mutation.MUSCLE_EXTENDED:
        low = max(creature.contracted[muscle], config.min_extended_length)
        creature.extended[muscle] = rng.uniform(low, config.max_muscle_length)

    elif mutation is Mutation.MUSCLE_CONTRACTED:
        creature.contracted[muscle] = rng.uniform(
            config.min_contracted_length, creature.extended[muscle]
        )

    elif mutation is Mutation.MUSCLE_STRENGTH:
        creature.strength[muscle] = rng.uniform(config.min_strength, config.max_strength)

    elif mutation is Mutation.MUSCLE_ADD:
        if creature.n_muscles < config.max_muscles:
            _generate_muscle(creature, creature.n_muscles, config, rng)
            creature.n_muscles += 1

    elif mutation is Mutation.MUSCLE_REMOVE:
        # Base muscles (one per node) are never removed
        if creature.n_muscles > creature.n_nodes:
            creature.n_muscles -= 1
            creature.is_contracted[creature.n_muscles] = False
            fix_actions(creature)

    elif mutation is Mutation.BEHAVIOR_ADD:
        creature.actions[action] = rng.randint(0, creature.n_muscles - 1)

    elif mutation is Mutation.BEHAVIOR_REMOVE:
        creature.actions[action] = MUSCLE_NONE

    creature.fitness = None
    logger.debug("Applied mutation %s", mutation.value)
    return mutation


# =============================================================================
# Breeding
# =============================================================================

def breed_creatures(
    mother: Creature,
    father: Creature,
    config: CreatureConfig,
    rng: Optional[random.Random] = None,
) -> Creature:
    """
    Recombine two parents into a new child.

    The body-plan size comes whole from one parent. Each node and muscle is
    then inherited from either parent by coin flip, falling back to the
    other parent when the chosen one lacks that index. The behavior stream
    uses single-point crossover (mother before the cut, father after), and
    the child finally receives 0..max_mutations random mutations.

    Args:
        mother: First parent (not modified)
        father: Second parent (not modified)
        config: Creature configuration shared by both parents
        rng: Random source

    Returns:
        A new child creature at its rest pose with no memoized fitness
    """
    rng = rng or random
    child = Creature.empty(config)

    plan = mother if rng.randint(0, 1) else father
    child.n_nodes = plan.n_nodes
    child.n_muscles = plan.n_muscles

    for i in range(child.n_nodes):
        if (rng.randint(0, 1) == 0 and i < mother.n_nodes) or i >= father.n_nodes:
            selected = mother
        else:
            selected = father
        child.initial[i] = selected.initial[i]
        child.friction[i] = selected.friction[i]
    child.position[:] = child.initial

    for i in range(child.n_muscles):
        if (rng.randint(0, 1) == 0 and i < mother.n_muscles) or i >= father.n_muscles:
            selected = mother
        else:
            selected = father
        child.first[i] = selected.first[i]
        child.second[i] = selected.second[i]
        child.extended[i] = selected.extended[i]
        child.contracted[i] = selected.contracted[i]
        child.strength[i] = selected.strength[i]

    # Muscles copied from the other body plan may point at missing nodes
    fix_muscles(child)

    crossover = rng.randint(0, child.max_actions - 1)
    child.actions[:crossover] = mother.actions[:crossover]
    child.actions[crossover:] = father.actions[crossover:]
    fix_actions(child)

    for _ in range(rng.randint(0, config.max_mutations)):
        mutate_creature(child, config, rng)

    child.clock = 0.0
    child.energy = 0.0
    child.fitness = None
    return child
