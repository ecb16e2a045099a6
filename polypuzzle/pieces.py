from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass, replace
from typing import List, Tuple

import numpy as np

from polypuzzle.level import Level
from polypuzzle.shapes import ORIENTATIONS, Mask, cell_count, freeze, transform

logger = logging.getLogger(__name__)

Cell = Tuple[int, int]
Point = Tuple[float, float]

# ラベルごとの色（ラベルの文字コード和で決定的に選ぶ）
PALETTE: Tuple[str, ...] = (
    "#FF9AA2",  # light pink
    "#FFB7B2",  # light salmon
    "#FFDAC1",  # light peach
    "#E2F0CB",  # light lime
    "#B5EAD7",  # light mint
    "#C7CEEA",  # light blue
    "#F8C8DC",  # pastel pink
    "#FDFD96",  # pastel yellow
    "#B4F8C8",  # pastel green
    "#BCD4E6",  # pastel blue
    "#C3B1E1",  # lavender
    "#CCCCFF",  # periwinkle
    "#FFD1DC",  # pink
    "#FFC8A2",  # peach
    "#D4F0F0",  # light teal
    "#FFFFD8",  # light yellow
    "#FFE4E1",  # misty rose
    "#E6E6FA",  # lavender blush
)

_NEIGHBORS = ((1, 0), (-1, 0), (0, 1), (0, -1))


def color_for_label(label: str) -> str:
    """ラベルから決定的に色を選ぶ。同じラベルは常に同じ色になる。"""
    return PALETTE[sum(ord(ch) for ch in label) % len(PALETTE)]


@dataclass(frozen=True, eq=False)
class Piece:
    """盤面から切り出されたポリオミノピース。

    Attributes:
        id: 一意な識別子（"<label>#<ordinal>"）
        label: 元のグループラベル（"1".."9"）
        base_shape: 抽出時に確定する正規化済みの基本形状（書き込み不可）
        rotation: 現在の回転角度（0, 90, 180, 270）
        flipped: 左右反転しているか
        color: ラベルから決まる表示色
        origin: 抽出元コンポーネントのバウンディングボックス左上セル(x, y)
        is_placed: 盤面に配置済みか
        cell: 配置済みの場合の左上グリッドセル(x, y)、未配置ならNone
        tray_position: トレイ内の左上ピクセル座標
    """
    id: str
    label: str
    base_shape: Mask
    rotation: int
    flipped: bool
    color: str
    origin: Cell
    is_placed: bool = False
    cell: Cell | None = None
    tray_position: Point = (0.0, 0.0)

    def shape(self) -> Mask:
        """現在の向きを適用した形状を返す。"""
        return transform(self.base_shape, self.rotation, self.flipped)

    @property
    def size(self) -> int:
        """ピースのサイズ（セル数）を返す。"""
        return cell_count(self.base_shape)

    @property
    def footprint(self) -> Tuple[int, int]:
        """現在の向きでの(幅, 高さ)をセル単位で返す。"""
        h, w = self.base_shape.shape
        if self.rotation in (90, 270):
            return h, w
        return w, h

    def with_orientation(self, rotation: int, flipped: bool) -> "Piece":
        return replace(self, rotation=rotation, flipped=flipped)

    def placed_at(self, cell: Cell) -> "Piece":
        return replace(self, is_placed=True, cell=cell)

    def unplaced(self) -> "Piece":
        return replace(self, is_placed=False, cell=None)

    def covered_cells(self) -> List[Cell]:
        """配置済みピースが覆うグリッドセル(x, y)のリストを返す。"""
        if not self.is_placed or self.cell is None:
            return []
        gx, gy = self.cell
        ys, xs = np.nonzero(self.shape())
        return [(gx + int(x), gy + int(y)) for y, x in zip(ys, xs)]


def _component_mask(cells: List[Cell]) -> Tuple[Mask, Cell]:
    xs = [c[0] for c in cells]
    ys = [c[1] for c in cells]
    min_x, min_y = min(xs), min(ys)
    mask = np.zeros((max(ys) - min_y + 1, max(xs) - min_x + 1), dtype=bool)
    for x, y in cells:
        mask[y - min_y, x - min_x] = True
    return mask, (min_x, min_y)


def extract_pieces(
    level: Level,
    rng: random.Random | None = None,
    seed: int | None = None,
) -> List[Piece]:
    """レベルのグリッドから初期ピース集合を抽出する。

    ラベルごとに行優先で走査し、未訪問セルから4近傍BFSで連結成分を集める。
    訪問済みフラグは抽出全体で1本のフラットな配列（y * cols + x）を共有する。
    各成分はバウンディングボックスに切り詰めて基本形状とする。

    初期の向きはD4の8要素から一様に選ぶ。向き以外の出力は
    グリッドだけで決まる。

    Args:
        level: 抽出元のレベル
        rng: 向きの抽選に使う乱数生成器（Noneの場合はseedから生成）
        seed: rngが未指定のときに使う乱数シード

    Returns:
        抽出順に並んだ未配置ピースのリスト
    """
    if rng is None:
        rng = random.Random(seed)
    rows, cols = level.rows, level.cols
    flat = level.grid.ravel()
    visited = np.zeros(rows * cols, dtype=bool)
    pieces: List[Piece] = []

    for label in level.piece_labels:
        for start in np.flatnonzero(flat == label):
            start = int(start)
            if visited[start]:
                continue
            cells: List[Cell] = []
            queue = deque([start])
            visited[start] = True
            while queue:
                idx = queue.popleft()
                y, x = divmod(idx, cols)
                cells.append((x, y))
                for dx, dy in _NEIGHBORS:
                    nx, ny = x + dx, y + dy
                    if not (0 <= nx < cols and 0 <= ny < rows):
                        continue
                    n_idx = ny * cols + nx
                    if not visited[n_idx] and flat[n_idx] == label:
                        visited[n_idx] = True
                        queue.append(n_idx)

            mask, origin = _component_mask(cells)
            rotation, flipped = ORIENTATIONS[rng.randrange(len(ORIENTATIONS))]
            pieces.append(
                Piece(
                    id=f"{label}#{len(pieces)}",
                    label=label,
                    base_shape=freeze(mask),
                    rotation=rotation,
                    flipped=flipped,
                    color=color_for_label(label),
                    origin=origin,
                )
            )

    logger.debug("Extracted %d pieces from level %s", len(pieces), level.id)
    return pieces
