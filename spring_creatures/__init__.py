"""
Spring Creatures - virtual mass-spring creatures that evolve to walk.

Subpackages:
- core: creature genome, physics simulation and raw records
- evolution: generic genetic engine and creature bindings
- visualization: frame data and matplotlib plots
"""

__version__ = '0.1.0'
