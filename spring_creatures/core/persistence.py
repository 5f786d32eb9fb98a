"""
Raw binary records for creatures.

A record is one numpy structured scalar with a fixed field order:

    n_nodes, n_muscles, clock, energy, fitness,
    node block, muscle block, actions

Array capacities come from the CreatureConfig, so records are only
exchangeable between processes built with the same config. There is no
version header; a record of the wrong size is rejected.
"""

from pathlib import Path
from typing import Union

import numpy as np
from filelock import FileLock

from .config import CreatureConfig
from .creature import Creature


def record_dtype(config: CreatureConfig) -> np.dtype:
    """Structured dtype of one creature record for the given capacities."""
    max_nodes = config.max_nodes
    max_muscles = config.max_muscles
    return np.dtype([
        ('n_nodes', '<i8'),
        ('n_muscles', '<i8'),
        ('clock', '<f8'),
        ('energy', '<f8'),
        ('fitness', '<f8'),
        # Node block
        ('initial', '<f8', (max_nodes, 3)),
        ('position', '<f8', (max_nodes, 3)),
        ('velocity', '<f8', (max_nodes, 3)),
        ('acceleration', '<f8', (max_nodes, 3)),
        ('friction', '<f8', (max_nodes,)),
        # Muscle block
        ('first', '<i8', (max_muscles,)),
        ('second', '<i8', (max_muscles,)),
        ('extended', '<f8', (max_muscles,)),
        ('contracted', '<f8', (max_muscles,)),
        ('strength', '<f8', (max_muscles,)),
        ('is_contracted', '?', (max_muscles,)),
        ('actions', '<i8', (config.max_actions,)),
    ])


_ARRAY_FIELDS = (
    'initial', 'position', 'velocity', 'acceleration', 'friction',
    'first', 'second', 'extended', 'contracted', 'strength',
    'is_contracted', 'actions',
)


def creature_to_bytes(creature: Creature, config: CreatureConfig) -> bytes:
    """Pack a creature into its raw record. A missing fitness is stored as NaN."""
    record = np.zeros((), dtype=record_dtype(config))
    record['n_nodes'] = creature.n_nodes
    record['n_muscles'] = creature.n_muscles
    record['clock'] = creature.clock
    record['energy'] = creature.energy
    record['fitness'] = np.nan if creature.fitness is None else creature.fitness
    for name in _ARRAY_FIELDS:
        record[name] = getattr(creature, name)
    return record.tobytes()


def creature_from_bytes(data: bytes, config: CreatureConfig) -> Creature:
    """
    Unpack a raw record.

    Raises:
        ValueError: If the data is not exactly one record for this config
    """
    dtype = record_dtype(config)
    if len(data) != dtype.itemsize:
        raise ValueError(
            f"Creature record must be {dtype.itemsize} bytes, got {len(data)}"
        )
    record = np.frombuffer(data, dtype=dtype)[0]

    creature = Creature.empty(config)
    creature.n_nodes = int(record['n_nodes'])
    creature.n_muscles = int(record['n_muscles'])
    creature.clock = float(record['clock'])
    creature.energy = float(record['energy'])
    fitness = float(record['fitness'])
    creature.fitness = None if np.isnan(fitness) else fitness
    for name in _ARRAY_FIELDS:
        getattr(creature, name)[...] = record[name]
    return creature


def save_creature(path: Union[str, Path], creature: Creature, config: CreatureConfig) -> None:
    """Write a creature record to disk."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with FileLock(str(path) + '.lock'):
        path.write_bytes(creature_to_bytes(creature, config))


def load_creature(path: Union[str, Path], config: CreatureConfig) -> Creature:
    """Read a creature record from disk."""
    path = Path(path)
    with FileLock(str(path) + '.lock'):
        data = path.read_bytes()
    return creature_from_bytes(data, config)
