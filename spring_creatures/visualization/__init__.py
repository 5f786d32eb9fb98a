"""Visualization utilities for creatures."""

from .plots import (
    plot_creature,
    plot_fitness_history,
    save_figure,
)
from .interactive import (
    node_color,
    generate_creature_frame,
    generate_animation_data,
)

__all__ = [
    'plot_creature',
    'plot_fitness_history',
    'save_figure',
    'node_color',
    'generate_creature_frame',
    'generate_animation_data',
]
