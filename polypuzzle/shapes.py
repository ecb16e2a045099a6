from __future__ import annotations

from typing import List, Tuple

import numpy as np

Mask = np.ndarray
Orientation = Tuple[int, bool]

ROTATIONS: Tuple[int, ...] = (0, 90, 180, 270)
ORIENTATIONS: Tuple[Orientation, ...] = tuple(
    (rotation, flipped) for flipped in (False, True) for rotation in ROTATIONS
)


def as_mask(rows) -> Mask:
    """入れ子のシーケンスをブールマスクに変換する。

    Args:
        rows: 行ごとの真偽値（0/1も可）のシーケンス

    Returns:
        2次元のブール配列（入力とは独立したコピー）

    Raises:
        ValueError: 2次元の矩形でない場合
    """
    mask = np.array(rows, dtype=bool)
    if mask.ndim != 2:
        raise ValueError(f"mask must be 2-dimensional, got ndim={mask.ndim}")
    return mask


def flip_h(mask: Mask) -> Mask:
    """マスクを左右反転する（各行を逆順にする）。

    M'[y][x] = M[y][W-1-x]
    """
    return mask[:, ::-1].copy()


def rot90(mask: Mask) -> Mask:
    """マスクを時計回りに90度回転する。

    (H, W)のマスクは(W, H)になり、M'[x][H-1-y] = M[y][x]。
    """
    return np.rot90(mask, k=-1).copy()


def rot180(mask: Mask) -> Mask:
    return rot90(rot90(mask))


def rot270(mask: Mask) -> Mask:
    return rot90(rot90(rot90(mask)))


def transform(mask: Mask, rotation: int, flipped: bool) -> Mask:
    """向き（回転・反転）をマスクに適用する。

    反転を先に適用し、その後に時計回りの回転を適用する。

    Args:
        mask: 元のブールマスク
        rotation: 回転角度（0, 90, 180, 270）
        flipped: 左右反転するか

    Returns:
        変換後の新しいマスク（入力と共有しない）

    Raises:
        ValueError: rotationが90度単位でない場合
    """
    if rotation not in ROTATIONS:
        raise ValueError(f"rotation must be one of {ROTATIONS}, got {rotation}")
    result = flip_h(mask) if flipped else np.array(mask, dtype=bool, copy=True)
    for _ in range(rotation // 90):
        result = rot90(result)
    return result


def orbit(mask: Mask) -> List[Mask]:
    """8通りの向き全てを適用した結果を返す（対称形なら重複を含む）。"""
    return [transform(mask, rotation, flipped) for rotation, flipped in ORIENTATIONS]


def cell_count(mask: Mask) -> int:
    return int(np.count_nonzero(mask))


def is_normalized(mask: Mask) -> bool:
    """マスクが自身のバウンディングボックスと一致するか判定する。

    先頭行・末尾行・先頭列・末尾列のいずれにも埋まったセルがあればTrue。
    """
    if mask.size == 0:
        return False
    return bool(
        mask[0, :].any() and mask[-1, :].any() and mask[:, 0].any() and mask[:, -1].any()
    )


def normalize(mask: Mask) -> Mask:
    """マスクを埋まったセルの最小バウンディングボックスに切り詰める。

    Raises:
        ValueError: 埋まったセルが1つもない場合
    """
    ys, xs = np.nonzero(mask)
    if len(ys) == 0:
        raise ValueError("cannot normalize an empty mask")
    cropped = mask[ys.min() : ys.max() + 1, xs.min() : xs.max() + 1]
    return np.array(cropped, dtype=bool, copy=True)


def mask_to_rows(mask: Mask) -> Tuple[Tuple[bool, ...], ...]:
    """スナップショット用にマスクを不変なタプルへ変換する。"""
    return tuple(tuple(bool(v) for v in row) for row in mask)


def freeze(mask: Mask) -> Mask:
    """書き込み不可のコピーを返す。"""
    frozen = np.array(mask, dtype=bool, copy=True)
    frozen.flags.writeable = False
    return frozen
