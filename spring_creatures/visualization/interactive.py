"""
Frame data for interactive creature playback.

These functions generate JSON-serializable data structures for an external
renderer. They read creature state and never change the genome; only
generate_animation_data steps a copy of the creature through time.
"""

from typing import Dict, List, Tuple, Optional, Any

from ..core.creature import Creature
from ..core.simulation import Simulator

# Nodes lower than this are drawn as touching the ground
GROUND_HEIGHT = 0.1

# Muscle shadows sit just below the ground plane
SHADOW_HEIGHT = -0.01


def node_color(
    creature: Creature,
    index: int,
    max_energy: Optional[float] = None,
) -> Tuple[float, float, float]:
    """
    RGB color of a node.

    Red if the creature has spent all its energy, blue if the node is on the
    ground (both combine), white otherwise.
    """
    red = 1.0 if max_energy is not None and creature.energy >= max_energy else 0.0
    blue = 1.0 if creature.position[index, 1] < GROUND_HEIGHT else 0.0
    if not red and not blue:
        return (1.0, 1.0, 1.0)
    return (red, 0.0, blue)


def generate_creature_frame(
    creature: Creature,
    max_energy: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Snapshot a creature's current pose.

    Returns:
        Dict with node positions and colors, muscle segments with their
        ground shadows, and the clock and energy
    """
    positions = creature.position[:creature.n_nodes]

    muscles = []
    for muscle in creature.muscles():
        start = positions[muscle.first]
        end = positions[muscle.second]
        muscles.append({
            'first': muscle.first,
            'second': muscle.second,
            'start': start.tolist(),
            'end': end.tolist(),
            'shadow': [
                [float(start[0]), SHADOW_HEIGHT, float(start[2])],
                [float(end[0]), SHADOW_HEIGHT, float(end[2])],
            ],
            'color': list(node_color(creature, muscle.first, max_energy)),
            'contracted': muscle.is_contracted,
        })

    return {
        'clock': creature.clock,
        'energy': creature.energy,
        'nodes': [
            {
                'position': positions[i].tolist(),
                'color': list(node_color(creature, i, max_energy)),
            }
            for i in range(creature.n_nodes)
        ],
        'muscles': muscles,
    }


def generate_animation_data(
    simulator: Simulator,
    creature: Creature,
    duration: float = 5.0,
    fps: int = 30,
) -> Dict[str, Any]:
    """
    Play a creature's behavior and record frames at a fixed rate.

    The creature passed in is not modified; a copy is reset to its rest
    pose and animated.

    Args:
        simulator: Simulator holding the physical constants
        creature: Creature to play back
        duration: Simulated seconds to record
        fps: Frames per simulated second

    Returns:
        Dict with the frame list and playback metadata
    """
    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}")

    actor = creature.copy()
    simulator.reset(actor)
    max_energy = simulator.config.max_energy

    dt = 1.0 / fps
    n_frames = int(round(duration * fps))
    frames: List[Dict[str, Any]] = [generate_creature_frame(actor, max_energy)]
    for _ in range(n_frames):
        simulator.animate(actor, dt)
        frames.append(generate_creature_frame(actor, max_energy))

    return {
        'fps': fps,
        'duration': duration,
        'n_nodes': creature.n_nodes,
        'n_muscles': creature.n_muscles,
        'fitness': creature.fitness,
        'frames': frames,
    }
