#!/usr/bin/env python
"""Run simulated Werewolf matches against stub agents.

Usage:
    werewolf-match                         # One match on the virtual clock
    werewolf-match --seed 42               # Reproducible match
    werewolf-match --games 100             # Winner distribution over 100 matches
    werewolf-match --missing-rate 0.2      # Agents stay silent 20% of the time
    werewolf-match --save-log match.yaml   # Export the event log as YAML
"""

import argparse
import asyncio
import logging
import random
from collections import Counter
from typing import Optional

from rich.console import Console
from rich.panel import Panel

from werewolf_match.ai import StubAgentGateway
from werewolf_match.engine import EngineConfig
from werewolf_match.events import MatchEventLog
from werewolf_match.models import MatchState, Phase, PlayerSeed
from werewolf_match.runtime import (
    AsyncioScheduler,
    MatchRuntime,
    VirtualClock,
    VirtualScheduler,
    system_clock,
)
from werewolf_match.storage import InMemoryMatchStore

logger = logging.getLogger(__name__)

PLAYER_NAMES = ["Alice", "Bob", "Carol", "Dave", "Erin", "Frank", "Grace", "Heidi"]


def create_player_seeds() -> list[PlayerSeed]:
    return [
        PlayerSeed(player_id=f"p:{seat}", display_name=name)
        for seat, name in enumerate(PLAYER_NAMES, start=1)
    ]


async def simulate_match(
    seed: int,
    config: EngineConfig,
    missing_rate: float = 0.0,
    realtime: bool = False,
) -> tuple[MatchEventLog, MatchState]:
    """Run one match to the end. Returns its event log and final state."""
    store = InMemoryMatchStore()
    gateway = StubAgentGateway(seed=seed, missing_rate=missing_rate)
    if realtime:
        clock = system_clock
        scheduler = AsyncioScheduler()
    else:
        clock = VirtualClock()
        scheduler = VirtualScheduler(clock)
    runtime = MatchRuntime(store, scheduler, gateway, config, clock)

    match_id = await runtime.service.create_match(create_player_seeds(), role_seed=seed)
    for player in create_player_seeds():
        await runtime.service.ready(match_id, player.player_id)

    if realtime:
        try:
            while (await store.load_snapshot(match_id)).state.phase != Phase.ENDED:
                await asyncio.sleep(0.1)
        finally:
            await scheduler.close()
    else:
        await scheduler.run_until_idle()

    state = (await store.load_snapshot(match_id)).state
    log = await runtime.export_log(match_id, metadata={"seed": seed})
    return log, state


def print_result(console: Console, state: MatchState) -> None:
    winner = state.winner.value if state.winner else "none"
    survivors = ", ".join(p.display_name for p in state.alive_players()) or "none"
    console.print(Panel(
        f"[bold]Match Over[/bold]\n\n"
        f"Winner: {winner}\n"
        f"Days: {state.day_number}\n"
        f"Survivors: {survivors}\n\n"
        f"{state.public_summary}",
        title="Result",
    ))


async def run_single(args: argparse.Namespace, config: EngineConfig, console: Console) -> None:
    console.print(f"\n[bold]Running match (seed {args.seed})...[/bold]\n")
    log, state = await simulate_match(args.seed, config, args.missing_rate, args.realtime)

    for line in log.lines(include_private=args.spoilers):
        console.print(line, markup=False)
    print_result(console, state)

    if args.save_log:
        try:
            log.save_to_file(args.save_log, include_private=args.spoilers)
            console.print(f"Event log saved to {args.save_log}")
        except OSError as e:
            console.print(f"[red]Failed to save log: {e}[/red]")


async def run_many(args: argparse.Namespace, config: EngineConfig, console: Console) -> None:
    console.print(f"\n[bold]Running {args.games} matches...[/bold]")
    console.print(f"Seed base: {args.seed}")
    console.print("-" * 50)

    winners: Counter = Counter()
    errors = []
    for i in range(args.games):
        seed = args.seed + i
        try:
            _, state = await simulate_match(seed, config, args.missing_rate, args.realtime)
        except Exception as e:
            logger.exception("Match with seed %d failed", seed)
            errors.append((seed, str(e)))
            continue
        winners[state.winner.value if state.winner else "NONE"] += 1

    console.print(f"\nMatches run: {args.games}")
    console.print(f"Completed: {sum(winners.values())}")
    console.print(f"Errors: {len(errors)}")
    console.print("\nWinner Distribution:")
    total = sum(winners.values()) or 1
    for winner, count in winners.most_common():
        console.print(f"  {winner}: {count} ({100 * count / total:.1f}%)")
    for seed, error in errors:
        console.print(f"  [red]Seed {seed}: {error}[/red]")


def build_config(args: argparse.Namespace) -> EngineConfig:
    if args.config:
        return EngineConfig.from_yaml(args.config)
    if args.fast:
        return EngineConfig.fast()
    return EngineConfig()


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Werewolf match engine simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for roles and stub agents (random if omitted)",
    )
    parser.add_argument(
        "--games",
        type=int,
        default=1,
        help="Number of matches to run (prints a winner distribution when > 1)",
    )
    parser.add_argument(
        "--fast",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Use short phase and round durations (default: on)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML file with engine configuration (overrides --fast)",
    )
    parser.add_argument(
        "--missing-rate",
        type=float,
        default=0.0,
        help="Probability that a stub agent stays silent in a round",
    )
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Run on real event-loop timers instead of the virtual clock",
    )
    parser.add_argument(
        "--spoilers",
        action="store_true",
        help="Include wolf chat and private events in the transcript and log",
    )
    parser.add_argument(
        "--save-log",
        type=str,
        default=None,
        help="Save the event log of a single match as YAML",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Log phase changes (-v) or every prompt and reply (-vv)",
    )
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(name)s: %(message)s")

    if args.games < 1:
        print("Error: --games must be a positive integer")
        return 1
    if not 0.0 <= args.missing_rate <= 1.0:
        print("Error: --missing-rate must be between 0 and 1")
        return 1
    if args.seed is None:
        args.seed = random.randint(1, 1000000)

    console = Console()
    config = build_config(args)
    if args.games > 1:
        asyncio.run(run_many(args, config, console))
    else:
        asyncio.run(run_single(args, config, console))
    return 0


if __name__ == "__main__":
    exit(main())
