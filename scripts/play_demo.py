from __future__ import annotations

import argparse
import logging
import random

from polypuzzle.engine import Engine
from polypuzzle.generator import generate_random_level
from polypuzzle.state import GameConfig
from polypuzzle.viz import render_board, render_tray


def play_random(
    level_id: str | None = None,
    seed: int = 7,
    drops: int = 20,
    visualize: bool = False,
) -> None:
    rng = random.Random(seed)
    config = GameConfig(seed=seed)
    engine = Engine(config)
    if level_id is None:
        level = generate_random_level("random", "Random Level", 6, 5, rng=rng)
        state = engine.load_level(level)
    else:
        state = engine.load_level(level_id)
    level = state.level
    print(f"Level {level.id}: {level.name}")
    for row in level.rows_as_strings():
        print("  " + row)
    print(f"Pieces: {len(state.pieces)}")

    for i in range(drops):
        if engine.is_complete(state):
            break
        unplaced = [p for p in state.pieces if not p.is_placed]
        piece = rng.choice(unplaced)
        for _ in range(rng.randrange(4)):
            state = engine.rotate(state, piece.id)
        if rng.random() > 0.5:
            state = engine.flip(state, piece.id)
        point = (
            rng.uniform(0, level.cols * config.cell_size),
            rng.uniform(0, level.rows * config.cell_size),
        )
        state, outcome = engine.attempt_placement(state, piece.id, point)
        print(f"  Drop {i + 1}: {outcome.message}")

    placed = sum(1 for s in engine.pieces(state) if s.is_placed)
    print(f"Placed {placed}/{len(state.pieces)} pieces, phase={state.phase.value}")
    if visualize:
        render_board(state)
        render_tray(state, cell_size=config.cell_size)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Drop pieces at random spots")
    parser.add_argument("--level", default=None, help="Bundled level id (default: random level)")
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--drops", type=int, default=20)
    parser.add_argument("--visualize", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    play_random(args.level, seed=args.seed, drops=args.drops, visualize=args.visualize)
