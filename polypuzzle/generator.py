"""Random level generator.

Authoring helper only: it lays down blockers, grows a handful of small
polyominoes and clears part of them back to empty cells.
"""

from __future__ import annotations

import logging
import random
from typing import List

from polypuzzle.level import BLOCKER, EMPTY, Level

logger = logging.getLogger(__name__)

BLOCKER_PERCENT = 12
PIECE_CELL_PERCENT = 30
AVERAGE_PIECE_CELLS = 4
CLEAR_PERCENT = 20
MAX_START_TRIES = 100


def generate_random_level(
    level_id: str,
    name: str,
    width: int,
    height: int,
    rng: random.Random | None = None,
    seed: int | None = None,
) -> Level:
    """指定サイズのランダムなレベルを生成する。

    1. 盤面の約12%にブロッカーを落とす（重複あり）
    2. 最大min(9, floor(w*h*0.075))個のピースを2〜4セルまで成長させる
    3. 先頭から floor(w*h*0.2) 個のラベル付きセルを空セルに戻す

    Args:
        level_id: 生成するレベルのID
        name: レベル名
        width: 列数
        height: 行数
        rng: 乱数生成器（Noneの場合はseedから生成）
        seed: rngが未指定のときの乱数シード

    Returns:
        生成されたLevel

    Raises:
        ValueError: width/heightが正でない場合
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"width and height must be positive, got {width}x{height}")
    if rng is None:
        rng = random.Random(seed)

    grid: List[List[str]] = [[EMPTY] * width for _ in range(height)]
    area = width * height

    for _ in range(area * BLOCKER_PERCENT // 100):
        grid[rng.randrange(height)][rng.randrange(width)] = BLOCKER

    max_piece_types = min(9, area * PIECE_CELL_PERCENT // (100 * AVERAGE_PIECE_CELLS))
    for piece_type in range(1, max_piece_types + 1):
        label = str(piece_type)
        target_size = rng.randint(2, 4)

        start = None
        for _ in range(MAX_START_TRIES):
            x, y = rng.randrange(width), rng.randrange(height)
            if grid[y][x] == EMPTY:
                start = (x, y)
                break
        if start is None:
            logger.debug("No free start cell for piece %s", label)
            continue

        grid[start[1]][start[0]] = label
        size = 1
        while size < target_size:
            frontier = _growth_points(grid, label)
            if not frontier:
                break
            gx, gy = rng.choice(frontier)
            grid[gy][gx] = label
            size += 1

    # 一部のピースセルを空きに戻して解ける盤面にする
    to_clear = area * CLEAR_PERCENT // 100
    cleared = 0
    for row in grid:
        for x, cell in enumerate(row):
            if cleared >= to_clear:
                break
            if cell not in (EMPTY, BLOCKER):
                row[x] = EMPTY
                cleared += 1
        if cleared >= to_clear:
            break

    rows = ["".join(row) for row in grid]
    return Level(
        id=level_id,
        name=name,
        grid=rows,
        description=f"A {width}x{height} puzzle board with various candy pieces.",
    )


def _growth_points(grid: List[List[str]], label: str) -> List[tuple]:
    height = len(grid)
    width = len(grid[0])
    points = []
    for y in range(height):
        for x in range(width):
            if grid[y][x] != label:
                continue
            if y > 0 and grid[y - 1][x] == EMPTY:
                points.append((x, y - 1))
            if y < height - 1 and grid[y + 1][x] == EMPTY:
                points.append((x, y + 1))
            if x > 0 and grid[y][x - 1] == EMPTY:
                points.append((x - 1, y))
            if x < width - 1 and grid[y][x + 1] == EMPTY:
                points.append((x + 1, y))
    return points
