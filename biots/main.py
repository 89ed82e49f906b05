from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from loguru import logger

from biots.core.config import SimulationConfig, SimulationMode, load_config
from biots.core.logger_setup import setup_logger
from biots.core.simulation_backend import BiotSimulationBackend
from biots.sim.genome import load_genomes


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Headless biots evolution run")
    parser.add_argument("--ticks", type=int, default=10000, help="Number of ticks to simulate")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible run")
    parser.add_argument("--config", type=str, help="JSON config file merged over the defaults")
    parser.add_argument("--genomes", type=str, help="Seed genome pool (JSON)")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in SimulationMode],
        help="Override population.simulation_mode",
    )
    parser.add_argument("--save-genomes", type=str, help="Write the surviving genomes here at the end")
    parser.add_argument("--stats-csv", type=str, help="Write the per-tick stats history here")
    parser.add_argument("--report-every", type=int, default=500, help="Log a stats line every N ticks")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-dir", type=str, help="Also log to a timestamped file in this directory")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> SimulationConfig:
    config = load_config(Path(args.config)) if args.config else SimulationConfig()
    if args.mode:
        config.population.simulation_mode = args.mode
    config.validate()
    return config


def run(args: argparse.Namespace) -> BiotSimulationBackend:
    config = build_config(args)
    seed_genomes = []
    if args.genomes:
        seed_genomes = load_genomes(Path(args.genomes), config.population.min_seed_generation)

    backend = BiotSimulationBackend(seed=args.seed, seed_genomes=seed_genomes)
    backend.configure(config)
    backend.start()
    for _ in range(max(0, args.ticks)):
        state = backend.step()
        if args.report_every > 0 and state.tick % args.report_every == 0:
            t = state.telemetry
            logger.info(
                f"tick {state.tick}: population {state.population} "
                f"(gen {t['min_gen']}-{t['max_gen']}), health {t['avg_health']:.2f}, "
                f"births {state.births}, deaths {state.deaths}, unborn {state.unborn_count}"
            )
    backend.stop()

    if args.save_genomes:
        backend.save_genomes(Path(args.save_genomes))
    if args.stats_csv:
        backend.export_stats(Path(args.stats_csv))
    return backend


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(list(argv if argv is not None else sys.argv[1:]))
    setup_logger(log_dir=args.log_dir, level=args.log_level)
    try:
        run(args)
    except (FileNotFoundError, ValueError) as exc:
        logger.error(f"run aborted: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
