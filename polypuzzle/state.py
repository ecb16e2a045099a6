from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

import numpy as np

from polypuzzle.level import Level
from polypuzzle.pieces import Cell, Piece, Point
from polypuzzle.shapes import mask_to_rows

Rows = Tuple[Tuple[bool, ...], ...]


class UnknownPieceError(KeyError):
    """現在の状態に存在しないピースIDが指定された場合の例外。"""


class Phase(Enum):
    """完了判定の状態機械。"""
    LOADING = "loading"
    PLAYING = "playing"
    COMPLETE = "complete"


@dataclass(frozen=True)
class GameConfig:
    """パズルエンジンの設定。

    Attributes:
        cell_size: グリッド1セルのピクセルサイズ（ドロップ座標の換算に使用）
        tray_width: トレイ領域の幅（ピクセル）。外部のレンダラーが決める
        tray_margin: トレイ内のピース間マージン（ピクセル）
        tray_header: トレイ上部のヘッダー帯の高さ（ピクセル）
        seed: 初期向きの乱数シード。Noneの場合は毎回ランダム
    """
    cell_size: int = 60
    tray_width: int = 600
    tray_margin: int = 10
    tray_header: int = 20
    seed: int | None = None

    def __post_init__(self) -> None:
        if self.cell_size <= 0:
            raise ValueError(f"cell_size must be positive, got {self.cell_size}")
        if self.tray_width <= 0:
            raise ValueError(f"tray_width must be positive, got {self.tray_width}")
        if self.tray_margin < 0:
            raise ValueError(f"tray_margin must be non-negative, got {self.tray_margin}")
        if self.tray_header < 0:
            raise ValueError(f"tray_header must be non-negative, got {self.tray_header}")


@dataclass(frozen=True)
class PieceSnapshot:
    """外部に渡すピースの読み取り専用コピー。

    Attributes:
        id: ピースID
        label: グループラベル
        rotation: 回転角度
        flipped: 反転しているか
        base_shape: 正規化済みの基本形状
        shape: 現在の向きを適用した形状
        color: 表示色
        is_placed: 配置済みか
        position: 配置済みならグリッドセル、未配置なら最後に割り当てたトレイ内ピクセル座標
            （ドロップ失敗後の画面上の位置は呼び出し側が管理する）
    """
    id: str
    label: str
    rotation: int
    flipped: bool
    base_shape: Rows
    shape: Rows
    color: str
    is_placed: bool
    position: Cell | Point

    @property
    def orientation(self) -> Tuple[int, bool]:
        return (self.rotation, self.flipped)

    @classmethod
    def of(cls, piece: Piece) -> "PieceSnapshot":
        position = piece.cell if piece.is_placed and piece.cell is not None else piece.tray_position
        return cls(
            id=piece.id,
            label=piece.label,
            rotation=piece.rotation,
            flipped=piece.flipped,
            base_shape=mask_to_rows(piece.base_shape),
            shape=mask_to_rows(piece.shape()),
            color=piece.color,
            is_placed=piece.is_placed,
            position=position,
        )


@dataclass
class GameState:
    """パズルの現在の状態。

    Attributes:
        level: 現在のレベル（不変）
        pieces: 挿入順のピースリスト
        phase: 完了判定の状態
    """
    level: Level
    pieces: List[Piece] = field(default_factory=list)
    phase: Phase = Phase.LOADING

    @classmethod
    def new(cls, level: Level) -> "GameState":
        return cls(level=level, pieces=[], phase=Phase.LOADING)

    def clone(self) -> "GameState":
        """この状態のコピーを作成する。

        レベルとピースは不変なので、リストだけを複製すれば十分。
        """
        return GameState(level=self.level, pieces=list(self.pieces), phase=self.phase)

    def index_of(self, piece_id: str) -> int:
        for i, piece in enumerate(self.pieces):
            if piece.id == piece_id:
                return i
        raise UnknownPieceError(f"unknown piece id {piece_id!r}")

    def get_piece(self, piece_id: str) -> Piece:
        """IDからピースを取得する。

        Raises:
            UnknownPieceError: IDが存在しない場合
        """
        return self.pieces[self.index_of(piece_id)]

    def occupancy(self, exclude: str | None = None) -> np.ndarray:
        """配置済みピースが覆うセルのマスクを返す。

        Args:
            exclude: 判定から除外するピースID（自分自身の再配置用）

        Returns:
            (rows, cols)のブールマスク
        """
        occupied = np.zeros((self.level.rows, self.level.cols), dtype=bool)
        for piece in self.pieces:
            if piece.id == exclude:
                continue
            for x, y in piece.covered_cells():
                occupied[y, x] = True
        return occupied

    def all_placed(self) -> bool:
        return all(piece.is_placed for piece in self.pieces)
