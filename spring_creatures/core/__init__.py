"""Core creature model and physics."""

from .config import CreatureConfig
from .creature import (
    MUSCLE_NONE,
    MUTATIONS,
    Creature,
    Muscle,
    Mutation,
    Node,
    breed_creatures,
    create_random_creature,
    fix_actions,
    fix_muscles,
    format_creature,
    is_connected,
    mutate_creature,
    randomize_creature,
)
from .integration import INTEGRATORS, get_integrator
from .simulation import Simulator
from .persistence import load_creature, save_creature

__all__ = [
    'CreatureConfig',
    'Creature',
    'Node',
    'Muscle',
    'MUSCLE_NONE',
    'Mutation',
    'MUTATIONS',
    'create_random_creature',
    'randomize_creature',
    'mutate_creature',
    'breed_creatures',
    'fix_muscles',
    'fix_actions',
    'is_connected',
    'format_creature',
    'INTEGRATORS',
    'get_integrator',
    'Simulator',
    'save_creature',
    'load_creature',
]
