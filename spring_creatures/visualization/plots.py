"""
Matplotlib-based visualization for creatures and evolution runs.

These functions create static plots for analysis and documentation.
"""

from pathlib import Path
from typing import Optional, Tuple, Union

# Matplotlib imports with non-GUI backend
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from ..core.creature import Creature
from ..evolution.checkpoint import EvolutionHistory
from .interactive import SHADOW_HEIGHT, node_color


def plot_creature(
    creature: Creature,
    max_energy: Optional[float] = None,
    figsize: Tuple[int, int] = (6, 6),
    title: Optional[str] = None,
) -> plt.Figure:
    """
    Plot a creature's current pose as a 3D wire frame.

    Muscles are drawn in the color of their first node, with a dark shadow
    on the ground plane. The y axis of the creature (up) is plotted as the
    vertical axis.

    Args:
        creature: Creature to draw
        max_energy: Energy ceiling used for node coloring
        figsize: Figure size
        title: Plot title

    Returns:
        matplotlib Figure
    """
    fig = plt.figure(figsize=figsize)
    ax = fig.add_subplot(111, projection='3d')

    positions = creature.position[:creature.n_nodes]
    for muscle in creature.muscles():
        start = positions[muscle.first]
        end = positions[muscle.second]
        ax.plot(
            [start[0], end[0]], [start[2], end[2]], [SHADOW_HEIGHT, SHADOW_HEIGHT],
            color='#2c3e50', alpha=0.4, linewidth=1,
        )
        ax.plot(
            [start[0], end[0]], [start[2], end[2]], [start[1], end[1]],
            color=node_color(creature, muscle.first, max_energy),
            linewidth=3 if muscle.is_contracted else 1.5,
        )

    colors = [node_color(creature, i, max_energy) for i in range(creature.n_nodes)]
    ax.scatter(
        positions[:, 0], positions[:, 2], positions[:, 1],
        c=colors, edgecolors='black', s=40, depthshade=False,
    )

    ax.set_xlabel('x')
    ax.set_ylabel('z')
    ax.set_zlabel('y')
    ax.set_zlim(bottom=SHADOW_HEIGHT)
    ax.set_title(title or repr(creature))

    plt.tight_layout()
    return fig


def plot_fitness_history(
    history: EvolutionHistory,
    figsize: Tuple[int, int] = (8, 4),
    title: Optional[str] = None,
) -> plt.Figure:
    """
    Plot best and mean fitness per generation (lower is better).

    Args:
        history: Recorded evolution history
        figsize: Figure size
        title: Plot title

    Returns:
        matplotlib Figure
    """
    fig, ax = plt.subplots(figsize=figsize)

    generations = [g.generation for g in history.generations]
    best = [g.best_fitness for g in history.generations]
    mean = [g.mean_fitness for g in history.generations]

    ax.plot(generations, best, 'b-', linewidth=2, label='Best')
    ax.plot(generations, mean, 'g--', linewidth=1.5, label='Mean')
    ax.set_xlabel('Generation')
    ax.set_ylabel('Fitness')
    ax.set_title(title or 'Fitness over Generations')
    ax.grid(True, alpha=0.3)
    ax.legend()

    plt.tight_layout()
    return fig


def save_figure(fig: plt.Figure, path: Union[str, Path], dpi: int = 100) -> None:
    """Save a figure to disk and close it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=dpi, bbox_inches='tight')
    plt.close(fig)
