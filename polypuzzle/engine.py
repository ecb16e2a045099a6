from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Sequence, Tuple

import numpy as np

from polypuzzle.level import Level, LevelCatalog
from polypuzzle.pieces import Cell, Piece, Point, extract_pieces
from polypuzzle.shapes import ROTATIONS
from polypuzzle.state import GameConfig, GameState, Phase, PieceSnapshot

logger = logging.getLogger(__name__)

# ドロップ地点の周囲を探索する順序（近い順、同距離なら軸方向→斜め）
SNAP_OFFSETS: Tuple[Cell, ...] = (
    (0, 0),
    (-1, 0),
    (1, 0),
    (0, -1),
    (0, 1),
    (-1, -1),
    (1, -1),
    (-1, 1),
    (1, 1),
    (-2, 0),
    (2, 0),
    (0, -2),
    (0, 2),
)


class PlacementStatus(Enum):
    PLACED = "placed"
    ILLEGAL_PLACEMENT = "illegal_placement"
    OFF_BOARD = "off_board"


@dataclass(frozen=True)
class PlacementOutcome:
    """配置試行の結果。

    Attributes:
        status: 結果の種別
        cell: 配置されたグリッドセル（失敗時はNone）
        offset: 磁気スナップ地点から採用したオフセット（失敗時はNone）
        message: ログ・表示用のメッセージ
    """
    status: PlacementStatus
    cell: Cell | None = None
    offset: Cell | None = None
    message: str = ""

    @property
    def success(self) -> bool:
        return self.status is PlacementStatus.PLACED


def magnetic_round(value: float) -> int:
    """端数が0.5以下なら切り捨て、0.5より大きければ切り上げる。"""
    base = math.floor(value)
    return base if value - base <= 0.5 else base + 1


def magnetic_cell(point: Point, cell_size: float) -> Cell:
    """ボード内ピクセル座標を最も近いセル境界のグリッドセルに変換する。"""
    px, py = point
    return magnetic_round(px / cell_size), magnetic_round(py / cell_size)


def drop_is_over_board(
    point: Point, footprint: Tuple[int, int], level: Level, cell_size: float
) -> bool:
    """ピースの左上がpointにあるとき、ピース全体がボード上に収まるか判定する。

    Args:
        point: ボード左上を原点とするピースの左上ピクセル座標
        footprint: 現在の向きでのピースの(幅, 高さ)（セル単位）
        level: 現在のレベル
        cell_size: セルのピクセルサイズ

    Returns:
        ボード上に収まる場合True
    """
    px, py = point
    w, h = footprint
    return (
        px >= 0
        and py >= 0
        and px + w * cell_size <= level.cols * cell_size
        and py + h * cell_size <= level.rows * cell_size
    )


def layout_tray(
    footprints: Sequence[Tuple[int, int]],
    cell_size: int,
    tray_width: int,
    margin: int,
    header: int = 0,
) -> List[Point]:
    """ピースをトレイに左から右、上から下へ並べる。

    各ピースは現在の向きの(幅×高さ)×cell_sizeにマージンを足した領域を使う。
    次のピースがトレイの有効幅を超える場合は改行し、行の高さは
    その行で最も高いピースに合わせる。空の行では改行しない。

    Args:
        footprints: 各ピースの(幅, 高さ)（セル単位、挿入順）
        cell_size: セルのピクセルサイズ
        tray_width: トレイの幅（ピクセル）
        margin: マージン（ピクセル）
        header: トレイ上部のヘッダー帯の高さ（ピクセル）

    Returns:
        各ピースのトレイ内左上ピクセル座標
    """
    positions: List[Point] = []
    row_x = margin
    row_y = margin
    row_height = 0
    for w, h in footprints:
        piece_w = w * cell_size + margin
        piece_h = h * cell_size + margin
        if row_x > margin and row_x + piece_w > tray_width - margin:
            row_x = margin
            row_y += row_height + margin
            row_height = 0
        positions.append((float(row_x), float(header + row_y)))
        row_x += piece_w
        row_height = max(row_height, piece_h)
    return positions


class Engine:
    """パズルエンジン（ピース抽出・配置判定・スナップ・コマンド処理）。

    全てのコマンドはGameStateを受け取り新しいGameStateを返す。
    入力の状態は変更しない。

    Attributes:
        config: エンジン設定
        catalog: レベルIDからレベルを引くカタログ
        rng: ピースの初期向きに使う乱数生成器
    """

    def __init__(
        self,
        config: GameConfig | None = None,
        catalog: LevelCatalog | None = None,
        rng: random.Random | None = None,
    ):
        """エンジンを初期化する。

        Args:
            config: エンジン設定（Noneの場合はデフォルト）
            catalog: レベルカタログ（Noneの場合は同梱レベル）
            rng: 乱数生成器（Noneの場合はconfig.seedから生成）
        """
        self.config = config if config is not None else GameConfig()
        self.catalog = catalog if catalog is not None else LevelCatalog()
        self.rng = rng if rng is not None else random.Random(self.config.seed)

    # ------------------------------------------------------------------
    # Level loading

    def load_level(self, level: Level | str) -> GameState:
        """レベルを読み込み、新しいピース集合で状態を作り直す。

        Args:
            level: Levelオブジェクト、またはカタログのレベルID

        Returns:
            全ピースが未配置でトレイに並んだ新しい状態

        Raises:
            UnknownLevelError: カタログにIDが存在しない場合
            LevelLoadError: レベルのスキーマが不正な場合
        """
        if isinstance(level, str):
            level = self.catalog.get(level)
        state = GameState.new(level)
        state.pieces = extract_pieces(level, rng=self.rng)
        state.pieces = self._lay_out_tray(state.pieces)
        state.phase = Phase.COMPLETE if state.all_placed() else Phase.PLAYING
        logger.info(
            "Loaded level %s (%dx%d) with %d pieces",
            level.id,
            level.cols,
            level.rows,
            len(state.pieces),
        )
        return state

    # ------------------------------------------------------------------
    # Orientation commands

    def rotate(self, state: GameState, piece_id: str) -> GameState:
        """未配置のピースを時計回りに90度回転する。配置済みなら何もしない。

        Raises:
            UnknownPieceError: IDが存在しない場合
            ValueError: cell_sizeが正でない場合
        """
        new_state = state.clone()
        idx = new_state.index_of(piece_id)
        piece = new_state.pieces[idx]
        if piece.is_placed:
            return new_state
        rotation = ROTATIONS[(ROTATIONS.index(piece.rotation) + 1) % len(ROTATIONS)]
        new_state.pieces[idx] = piece.with_orientation(rotation, piece.flipped)
        return new_state

    def flip(self, state: GameState, piece_id: str) -> GameState:
        """未配置のピースを左右反転する。配置済みなら何もしない。

        Raises:
            UnknownPieceError: IDが存在しない場合
        """
        new_state = state.clone()
        idx = new_state.index_of(piece_id)
        piece = new_state.pieces[idx]
        if piece.is_placed:
            return new_state
        new_state.pieces[idx] = piece.with_orientation(piece.rotation, not piece.flipped)
        return new_state

    # ------------------------------------------------------------------
    # Placement

    def can_place(
        self,
        state: GameState,
        piece: Piece,
        cell: Cell,
        occupied: np.ndarray | None = None,
    ) -> bool:
        """ピースを現在の向きで指定セル（左上）に置けるか判定する。

        以下のいずれかに該当すると不可:
        - グリッドからはみ出す
        - 埋まったセルがブロッカー（X）に重なる
        - 埋まったセルが他の配置済みピースに重なる

        ピースのラベルとグリッドのラベルの一致は確認しない。

        Args:
            state: 現在の状態
            piece: 判定するピース
            cell: 左上のグリッドセル(x, y)
            occupied: 他ピースの占有マスク（Noneの場合は計算する）

        Returns:
            配置可能ならTrue
        """
        mask = piece.shape()
        h, w = mask.shape
        gx, gy = cell
        level = state.level
        if gx < 0 or gy < 0 or gx + w > level.cols or gy + h > level.rows:
            return False
        if np.any(mask & level.blocked[gy : gy + h, gx : gx + w]):
            return False
        if occupied is None:
            occupied = state.occupancy(exclude=piece.id)
        if np.any(mask & occupied[gy : gy + h, gx : gx + w]):
            return False
        return True

    def resolve_snap(
        self, state: GameState, piece: Piece, point: Point, cell_size: float | None = None
    ) -> Tuple[Cell, Cell] | None:
        """ドロップ地点から配置先のセルを決める。

        磁気丸めで得たセルを起点に、SNAP_OFFSETSの順に最初の合法セルを探す。

        Args:
            state: 現在の状態
            piece: ドロップされたピース
            point: ボード左上を原点とするピクセル座標
            cell_size: セルのピクセルサイズ（Noneの場合はconfig.cell_size）

        Returns:
            (配置セル, 採用したオフセット)。合法セルがなければNone

        Raises:
            ValueError: cell_sizeが正でない場合
        """
        size = cell_size if cell_size is not None else self.config.cell_size
        if size <= 0:
            raise ValueError(f"cell_size must be positive, got {size}")
        gx, gy = magnetic_cell(point, size)
        occupied = state.occupancy(exclude=piece.id)
        for dx, dy in SNAP_OFFSETS:
            candidate = (gx + dx, gy + dy)
            if self.can_place(state, piece, candidate, occupied):
                return candidate, (dx, dy)
        return None

    def attempt_placement(
        self,
        state: GameState,
        piece_id: str,
        point: Point | None,
        cell_size: float | None = None,
    ) -> Tuple[GameState, PlacementOutcome]:
        """ピースのドロップを処理する。

        成功時はスナップしたセルに配置して完了判定を更新する。
        失敗時（合法セルなし、またはpointがNone=ボード外）は配置を解除する。
        tray_positionは最後にトレイへ並べたときの位置のまま更新しない。
        ドロップ地点に留めるかトレイへ戻すかといった画面上の位置は呼び出し側が持つ。

        Args:
            state: 現在の状態
            piece_id: ドロップされたピースのID
            point: ボード左上を原点とするピクセル座標。ボード外ならNone
            cell_size: セルのピクセルサイズ（Noneの場合はconfig.cell_size）

        Returns:
            (新しい状態, 配置結果)

        Raises:
            UnknownPieceError: IDが存在しない場合
            ValueError: cell_sizeが正でない場合
        """
        new_state = state.clone()
        idx = new_state.index_of(piece_id)
        piece = new_state.pieces[idx]

        if point is None:
            new_state.pieces[idx] = piece.unplaced()
            self._update_phase(new_state)
            logger.debug("Piece %s dropped off board", piece_id)
            return new_state, PlacementOutcome(
                status=PlacementStatus.OFF_BOARD,
                message=f"Piece {piece_id} returned to tray",
            )

        snapped = self.resolve_snap(new_state, piece, point, cell_size)
        if snapped is None:
            new_state.pieces[idx] = piece.unplaced()
            self._update_phase(new_state)
            logger.debug("No legal cell for piece %s near %s", piece_id, point)
            return new_state, PlacementOutcome(
                status=PlacementStatus.ILLEGAL_PLACEMENT,
                message=f"No legal cell for piece {piece_id}",
            )

        cell, offset = snapped
        new_state.pieces[idx] = piece.placed_at(cell)
        self._update_phase(new_state)
        logger.debug("Piece %s snapped to %s (offset %s)", piece_id, cell, offset)
        return new_state, PlacementOutcome(
            status=PlacementStatus.PLACED,
            cell=cell,
            offset=offset,
            message=f"Piece {piece_id} placed at {cell}",
        )

    def dislodge(self, state: GameState, piece_id: str) -> GameState:
        """配置済みのピースを拾い上げて未配置に戻す。

        Raises:
            UnknownPieceError: IDが存在しない場合
        """
        new_state = state.clone()
        idx = new_state.index_of(piece_id)
        new_state.pieces[idx] = new_state.pieces[idx].unplaced()
        self._update_phase(new_state)
        return new_state

    def reset(self, state: GameState) -> GameState:
        """全ピースを未配置に戻し、現在の向きのままトレイに並べ直す。"""
        new_state = state.clone()
        new_state.pieces = self._lay_out_tray([p.unplaced() for p in new_state.pieces])
        self._update_phase(new_state)
        logger.info("Reset level %s", state.level.id)
        return new_state

    # ------------------------------------------------------------------
    # Queries

    def is_complete(self, state: GameState) -> bool:
        """全てのピースが配置済みならTrue。"""
        return state.all_placed()

    def pieces(self, state: GameState) -> List[PieceSnapshot]:
        """挿入順のピーススナップショットを返す。"""
        return [PieceSnapshot.of(piece) for piece in state.pieces]

    # ------------------------------------------------------------------

    def _lay_out_tray(self, pieces: List[Piece]) -> List[Piece]:
        positions = layout_tray(
            [piece.footprint for piece in pieces],
            self.config.cell_size,
            self.config.tray_width,
            self.config.tray_margin,
            self.config.tray_header,
        )
        return [replace(piece, tray_position=pos) for piece, pos in zip(pieces, positions)]

    def _update_phase(self, state: GameState) -> None:
        previous = state.phase
        state.phase = Phase.COMPLETE if state.all_placed() else Phase.PLAYING
        if previous is not Phase.COMPLETE and state.phase is Phase.COMPLETE:
            logger.info("Level %s complete", state.level.id)
