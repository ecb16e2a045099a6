from __future__ import annotations

import matplotlib.pyplot as plt
import numpy as np

from polypuzzle.level import BLOCKER, EMPTY
from polypuzzle.state import GameState

_BLOCKER_COLOR = "#333333"
_EMPTY_COLOR = "#f0f0f0"
_TARGET_COLOR = "#dddddd"


def _finish(fig, save_path: str | None) -> None:
    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        print(f"Saved to {save_path}")
    else:
        plt.show()
    plt.close(fig)


def render_board(state: GameState, save_path: str | None = None) -> None:
    """
    Render the grid with blockers and placed pieces.

    Args:
        state: Current game state
        save_path: Path to save figure (optional)
    """
    level = state.level
    h, w = level.rows, level.cols
    fig, ax = plt.subplots(figsize=(6, 6 * h / max(w, 1)))
    for y in range(h):
        for x in range(w):
            label = level.label_at(x, y)
            if label == BLOCKER:
                facecolor = _BLOCKER_COLOR
            elif label == EMPTY:
                facecolor = _EMPTY_COLOR
            else:
                facecolor = _TARGET_COLOR
            ax.add_patch(
                plt.Rectangle(
                    (x, h - 1 - y),
                    1,
                    1,
                    facecolor=facecolor,
                    edgecolor="#cccccc",
                    linewidth=0.5,
                )
            )
    for piece in state.pieces:
        for x, y in piece.covered_cells():
            ax.add_patch(
                plt.Rectangle(
                    (x, h - 1 - y),
                    1,
                    1,
                    facecolor=piece.color,
                    edgecolor="black",
                    linewidth=1,
                )
            )
    ax.set_xlim(0, w)
    ax.set_ylim(0, h)
    ax.set_aspect("equal")
    ax.axis("off")
    status = "complete" if state.all_placed() else state.phase.value
    ax.set_title(f"{level.name or level.id} ({status})", fontsize=12)
    _finish(fig, save_path)


def render_tray(state: GameState, cell_size: int = 60, save_path: str | None = None) -> None:
    """
    Render unplaced pieces at their tray positions.

    Args:
        state: Current game state
        cell_size: Pixel size of one cell, matching the tray layout
        save_path: Path to save figure (optional)
    """
    unplaced = [p for p in state.pieces if not p.is_placed]
    fig, ax = plt.subplots(figsize=(8, 3))
    max_x, max_y = cell_size, cell_size
    for piece in unplaced:
        tx, ty = piece.tray_position
        ys, xs = np.nonzero(piece.shape())
        for y, x in zip(ys, xs):
            px = tx + x * cell_size
            py = ty + y * cell_size
            ax.add_patch(
                plt.Rectangle(
                    (px, -py - cell_size),
                    cell_size,
                    cell_size,
                    facecolor=piece.color,
                    edgecolor="black",
                    linewidth=0.5,
                )
            )
            max_x = max(max_x, px + cell_size)
            max_y = max(max_y, py + cell_size)
        ax.text(tx, -ty + 4, piece.id, fontsize=7)
    ax.set_xlim(0, max_x)
    ax.set_ylim(-max_y, 20)
    ax.set_aspect("equal")
    ax.axis("off")
    ax.set_title(f"Tray ({len(unplaced)} pieces)", fontsize=12)
    _finish(fig, save_path)
