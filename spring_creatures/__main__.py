"""
Command-line driver for evolving and replaying creatures.

Usage:
    python -m spring_creatures evolve [options]     Evolve a population of walkers
    python -m spring_creatures simulate PATH        Record playback frames as JSON
    python -m spring_creatures show PATH            Describe (and optionally plot) a creature

Creature files are raw records whose layout depends on the creature config,
so the same --config must be given when loading a creature as when it was
saved.
"""

import argparse
import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from .core.config import CreatureConfig
from .core.creature import format_creature
from .core.persistence import load_creature, save_creature
from .core.simulation import Simulator
from .evolution.checkpoint import EvolutionCheckpoint, generate_run_id
from .evolution.creature_model import create_creature_engine
from .evolution.engine import TIMEOUT_NONE


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='spring_creatures',
        description='Evolve virtual mass-spring creatures that learn to walk'
    )
    parser.add_argument(
        '--config', type=str, default=None,
        help='JSON file with CreatureConfig overrides'
    )
    parser.add_argument(
        '--verbose', action='store_true',
        help='Enable debug logging'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    evolve = subparsers.add_parser('evolve', help='Evolve a population')
    evolve.add_argument(
        '--population', type=int, default=100,
        help='Population size (default: 100)'
    )
    evolve.add_argument(
        '--generations', type=int, default=50,
        help='Maximum number of generations, 0 for no limit (default: 50)'
    )
    evolve.add_argument(
        '--seed', type=int, default=None,
        help='Random seed for reproducibility'
    )
    evolve.add_argument(
        '--target', type=float, default=float('-inf'),
        help='Stop once the best fitness is at or below this'
    )
    evolve.add_argument(
        '--output', type=str, default='best.creature',
        help='Where to save the best creature (default: best.creature)'
    )
    evolve.add_argument(
        '--checkpoint-dir', type=str, default=None,
        help='Directory for JSON checkpoints (default: none)'
    )
    evolve.add_argument(
        '--checkpoint-every', type=int, default=10,
        help='Generations between checkpoints (default: 10)'
    )

    simulate = subparsers.add_parser('simulate', help='Record playback frames')
    simulate.add_argument('path', type=str, help='Creature file')
    simulate.add_argument(
        '--duration', type=float, default=5.0,
        help='Simulated seconds to record (default: 5)'
    )
    simulate.add_argument(
        '--fps', type=int, default=30,
        help='Frames per simulated second (default: 30)'
    )
    simulate.add_argument(
        '--output', type=str, default='frames.json',
        help='Output JSON file (default: frames.json)'
    )

    show = subparsers.add_parser('show', help='Describe a creature')
    show.add_argument('path', type=str, help='Creature file')
    show.add_argument(
        '--png', type=str, default=None,
        help='Also render the rest pose to this PNG file'
    )

    return parser.parse_args(argv)


def load_config(path: Optional[str]) -> CreatureConfig:
    if path is None:
        return CreatureConfig()
    with open(path, 'r') as f:
        return CreatureConfig.from_dict(json.load(f))


def print_banner():
    print("=" * 60)
    print("   SPRING CREATURES - Evolving Walkers")
    print("=" * 60)


def save_checkpoint(engine, run_id: str, config: CreatureConfig, directory: Path) -> Path:
    best = engine.best_entity
    checkpoint = EvolutionCheckpoint(
        run_id=run_id,
        generation=engine.generations,
        population=[c.to_dict() for c in engine.population],
        best=best.to_dict() if best is not None else None,
        best_fitness=engine.best_fitness,
        history=engine.history.to_dict(),
        config=config.to_dict(),
        timestamp=datetime.now().isoformat(),
    )
    path = directory / f"{run_id}_gen{engine.generations:04d}.json"
    checkpoint.save(path)
    return path


def run_evolve(args, config: CreatureConfig) -> int:
    if args.population < 2:
        print(f"Error: population must be at least 2, got {args.population}")
        return 1
    if args.generations < 0:
        print(f"Error: generations must be >= 0, got {args.generations}")
        return 1
    if args.checkpoint_every < 1:
        print(f"Error: checkpoint-every must be positive, got {args.checkpoint_every}")
        return 1

    print_banner()
    print("\nConfiguration:")
    print(f"   Population size:    {args.population}")
    print(f"   Generations:        {args.generations or 'unlimited'}")
    print(f"   Target fitness:     {args.target}")
    print(f"   Nodes:              [{config.min_nodes}, {config.max_nodes}]")
    print(f"   Integrator:         {config.integrator}")
    print(f"   Seed:               {args.seed}")

    run_id = generate_run_id()
    checkpoint_dir = Path(args.checkpoint_dir) if args.checkpoint_dir else None

    print("\n   Initializing population...")
    engine, _ = create_creature_engine(args.population, config, args.seed)
    start_time = time.time()

    with engine:
        while args.generations == TIMEOUT_NONE or engine.generations < args.generations:
            engine.generation()
            stats = engine.history.generations[-1]
            print(
                f"   Gen {stats.generation:4d} | "
                f"Best: {stats.best_fitness:9.4f} | "
                f"Mean: {stats.mean_fitness:9.4f}",
                flush=True
            )

            if checkpoint_dir and engine.generations % args.checkpoint_every == 0:
                save_checkpoint(engine, run_id, config, checkpoint_dir)

            if engine.best_fitness <= args.target:
                print(f"\n   Target reached after {engine.generations} generations")
                break

        if checkpoint_dir:
            path = save_checkpoint(engine, run_id, config, checkpoint_dir)
            print(f"\n   Checkpoint: {path}")

        best = engine.best_snapshot()

    runtime = time.time() - start_time
    save_creature(args.output, best, config)

    print(f"\n{'=' * 60}")
    print(f"   Run:            {run_id}")
    print(f"   Generations:    {len(engine.history.generations)}")
    print(f"   Best fitness:   {best.fitness:.4f}")
    print(f"   Runtime:        {runtime:.1f}s")
    print(f"   Saved to:       {args.output}")
    print(f"{'=' * 60}")
    return 0


def run_simulate(args, config: CreatureConfig) -> int:
    from .visualization.interactive import generate_animation_data

    creature = load_creature(args.path, config)
    simulator = Simulator(config)
    data = generate_animation_data(simulator, creature, args.duration, args.fps)

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, 'w') as f:
        json.dump(data, f)

    print(f"Recorded {len(data['frames'])} frames to {output}")
    return 0


def run_show(args, config: CreatureConfig) -> int:
    creature = load_creature(args.path, config)
    print(format_creature(creature))
    if creature.fitness is not None:
        print(f"\nFitness: {creature.fitness:.4f}")

    if args.png:
        from .visualization.plots import plot_creature, save_figure

        Simulator(config).reset(creature)
        save_figure(plot_creature(creature, config.max_energy), args.png)
        print(f"Saved plot to {args.png}")
    return 0


COMMANDS = {
    'evolve': run_evolve,
    'simulate': run_simulate,
    'show': run_show,
}


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(name)s %(levelname)s: %(message)s',
    )

    try:
        config = load_config(args.config)
        return COMMANDS[args.command](args, config)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
