from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

BLOCKER = "X"
EMPTY = "0"
PIECE_LABELS: Tuple[str, ...] = tuple("123456789")
CELL_LABELS = frozenset((BLOCKER, EMPTY) + PIECE_LABELS)

LEVELS_DIR = Path(__file__).resolve().parent / "levels"


class LevelLoadError(ValueError):
    """レベルを読み込めない、またはスキーマ検証に失敗した場合の例外。"""


class UnknownLevelError(LevelLoadError):
    """カタログに存在しないレベルIDが指定された場合の例外。"""


@dataclass(frozen=True, eq=False)
class Level:
    """パズルの1レベル（不変）。

    Attributes:
        id: 安定したレベル識別子
        name: 表示用の名前
        grid: セルラベルの2次元配列（rows×cols、書き込み不可）
        description: 任意の説明文
    """
    id: str
    name: str
    grid: np.ndarray
    description: str | None = None

    def __post_init__(self) -> None:
        """グリッドを検証し、呼び出し側と共有しない書き込み不可のコピーに置き換える。

        Raises:
            LevelLoadError: グリッドが2次元の矩形でない、または許可されていないラベルがある場合
        """
        raw = self.grid
        if isinstance(raw, np.ndarray):
            if raw.ndim != 2:
                raise LevelLoadError(
                    f"level {self.id}: grid must be 2-dimensional, got ndim={raw.ndim}"
                )
            raw = raw.tolist()
        object.__setattr__(self, "grid", parse_grid(raw, level_id=self.id))

    @property
    def rows(self) -> int:
        return int(self.grid.shape[0])

    @property
    def cols(self) -> int:
        return int(self.grid.shape[1])

    @property
    def blocked(self) -> np.ndarray:
        """ブロッカー（X）セルがTrueのブールマスクを返す。"""
        return self.grid == BLOCKER

    @property
    def piece_labels(self) -> Tuple[str, ...]:
        """グリッドに現れるピースラベルを行優先の出現順で返す。"""
        seen: List[str] = []
        for label in self.grid.ravel():
            if label in PIECE_LABELS and label not in seen:
                seen.append(str(label))
        return tuple(seen)

    def label_at(self, x: int, y: int) -> str:
        return str(self.grid[y, x])

    def rows_as_strings(self) -> List[str]:
        return ["".join(row) for row in self.grid]

    def to_dict(self) -> Dict[str, Any]:
        """JSONに書き出せる辞書に変換する。"""
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "grid": [list(row) for row in self.rows_as_strings()],
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Level":
        """シリアライズされたレコードからレベルを構築する。

        gridの各行は1文字の文字列のリスト、または同じ長さの文字列のどちらでもよい。

        Args:
            data: id, name, grid, description（任意）を持つ辞書

        Returns:
            検証済みのLevel

        Raises:
            LevelLoadError: フィールドの欠落・型違い、空のグリッド、
                行の長さの不一致、許可されていないラベルがある場合
        """
        if not isinstance(data, Mapping):
            raise LevelLoadError(f"level record must be an object, got {type(data).__name__}")
        for key in ("id", "name", "grid"):
            if key not in data:
                raise LevelLoadError(f"level record is missing '{key}'")
        level_id = data["id"]
        name = data["name"]
        description = data.get("description")
        if not isinstance(level_id, str) or not level_id:
            raise LevelLoadError(f"level id must be a non-empty string, got {level_id!r}")
        if not isinstance(name, str):
            raise LevelLoadError(f"level {level_id}: name must be a string")
        if description is not None and not isinstance(description, str):
            raise LevelLoadError(f"level {level_id}: description must be a string")
        return cls(id=level_id, name=name, grid=data["grid"], description=description)


def parse_grid(raw_rows: Any, level_id: str = "<anonymous>") -> np.ndarray:
    """生のグリッド表現を検証し、書き込み不可の文字配列に変換する。

    Raises:
        LevelLoadError: グリッドが不正な場合
    """
    if isinstance(raw_rows, str) or not isinstance(raw_rows, Sequence):
        raise LevelLoadError(f"level {level_id}: grid must be a list of rows")
    if len(raw_rows) == 0:
        raise LevelLoadError(f"level {level_id}: grid has no rows")

    rows: List[List[str]] = []
    for y, raw in enumerate(raw_rows):
        if isinstance(raw, str):
            row = list(raw)
        elif isinstance(raw, Sequence):
            row = list(raw)
        else:
            raise LevelLoadError(f"level {level_id}: row {y} must be a string or a list")
        if len(row) == 0:
            raise LevelLoadError(f"level {level_id}: row {y} is empty")
        for x, cell in enumerate(row):
            if not isinstance(cell, str) or cell not in CELL_LABELS:
                raise LevelLoadError(
                    f"level {level_id}: illegal cell {cell!r} at ({x}, {y})"
                )
        rows.append(row)

    width = len(rows[0])
    for y, row in enumerate(rows):
        if len(row) != width:
            raise LevelLoadError(
                f"level {level_id}: jagged grid, row {y} has {len(row)} cells, expected {width}"
            )

    grid = np.array(rows, dtype="<U1")
    grid.flags.writeable = False
    return grid


def level_from_rows(
    rows: Sequence[Any],
    level_id: str = "inline",
    name: str = "",
    description: str | None = None,
) -> Level:
    """行のリストから直接レベルを作る（テストやジェネレータ用）。"""
    return Level(id=level_id, name=name, grid=rows, description=description)


def load_level_file(path: str | Path) -> Level:
    """JSONファイルからレベルを読み込む。

    Raises:
        LevelLoadError: ファイルを読めない、JSONとして不正、またはスキーマ違反の場合
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise LevelLoadError(f"cannot read level file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise LevelLoadError(f"invalid JSON in level file {path}: {e}") from e
    return Level.from_dict(data)


class LevelCatalog:
    """ディレクトリ内の`<id>.json`からレベルを引くカタログ。

    Attributes:
        directory: レベルJSONを置くディレクトリ
    """

    def __init__(self, directory: str | Path = LEVELS_DIR):
        self.directory = Path(directory)

    def level_ids(self) -> List[str]:
        """利用可能なレベルIDをソート順で返す。"""
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))

    def __contains__(self, level_id: str) -> bool:
        return level_id in self.level_ids()

    def get(self, level_id: str) -> Level:
        """IDからレベルを読み込む。

        Raises:
            UnknownLevelError: IDに対応するファイルがない場合
            LevelLoadError: ファイルの内容が不正な場合
        """
        path = self.directory / f"{level_id}.json"
        if level_id not in self.level_ids():
            raise UnknownLevelError(f"unknown level id {level_id!r} in {self.directory}")
        level = load_level_file(path)
        if level.id != level_id:
            logger.warning("Level file %s declares id %r", path.name, level.id)
        return level
