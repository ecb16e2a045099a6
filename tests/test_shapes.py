"""Unit tests for mask transforms."""

from __future__ import annotations

import numpy as np
import pytest

from polypuzzle.shapes import (
    ORIENTATIONS,
    as_mask,
    cell_count,
    flip_h,
    is_normalized,
    mask_to_rows,
    normalize,
    orbit,
    rot90,
    rot180,
    rot270,
    transform,
)

L_TROMINO = as_mask([[1, 0], [1, 1]])


def random_masks(count: int = 50, seed: int = 0):
    """Yield random non-empty boolean masks of varying size."""
    rng = np.random.default_rng(seed)
    for _ in range(count):
        h, w = rng.integers(1, 6, size=2)
        mask = rng.random((h, w)) < 0.5
        mask[rng.integers(h), rng.integers(w)] = True
        yield mask


class TestBasicTransforms:
    """Test the individual transforms on known shapes."""

    def test_flip_h_reverses_rows(self):
        """Test that a flip mirrors every row."""
        mask = as_mask([[1, 0, 0], [1, 1, 0]])
        expected = as_mask([[0, 0, 1], [0, 1, 1]])
        assert np.array_equal(flip_h(mask), expected)

    def test_rot90_is_clockwise(self):
        """Test that rot90 turns a row into a column, top to bottom."""
        mask = as_mask([[1, 1, 0]])
        assert np.array_equal(rot90(mask), as_mask([[1], [1], [0]]))

    def test_rot90_l_tromino(self):
        """Test clockwise rotation of the L tromino."""
        assert np.array_equal(rot90(L_TROMINO), as_mask([[1, 1], [1, 0]]))

    def test_rot180_l_tromino(self):
        """Test half turn of the L tromino."""
        assert np.array_equal(rot180(L_TROMINO), as_mask([[1, 1], [0, 1]]))

    def test_rot270_is_inverse_of_rot90(self):
        """Test that rot270 undoes rot90."""
        for mask in random_masks(20):
            assert np.array_equal(rot270(rot90(mask)), mask)

    def test_rot90_swaps_dimensions(self):
        """Test that (H, W) becomes (W, H)."""
        mask = np.ones((2, 5), dtype=bool)
        assert rot90(mask).shape == (5, 2)

    def test_as_mask_rejects_1d(self):
        """Test that non-2D input is rejected."""
        with pytest.raises(ValueError, match="2-dimensional"):
            as_mask([1, 0, 1])


class TestTransform:
    """Test orientation application."""

    def test_identity_equals_input(self):
        """Test that (0, False) leaves the mask unchanged."""
        assert np.array_equal(transform(L_TROMINO, 0, False), L_TROMINO)

    def test_identity_does_not_alias(self):
        """Test that the identity transform returns a fresh array."""
        mask = L_TROMINO.copy()
        result = transform(mask, 0, False)
        result[0, 1] = True
        assert not mask[0, 1]

    def test_flip_on_single_column_does_not_alias(self):
        """Test that flipping a one-column mask still copies."""
        mask = as_mask([[1], [1]])
        assert not np.shares_memory(flip_h(mask), mask)

    def test_flip_applied_before_rotation(self):
        """Test that transform flips first, then rotates."""
        for rotation, flipped in ORIENTATIONS:
            expected = flip_h(L_TROMINO) if flipped else L_TROMINO
            for _ in range(rotation // 90):
                expected = rot90(expected)
            assert np.array_equal(transform(L_TROMINO, rotation, flipped), expected)

    def test_invalid_rotation(self):
        """Test that a non right-angle rotation is rejected."""
        with pytest.raises(ValueError, match="rotation must be one of"):
            transform(L_TROMINO, 45, False)


class TestGroupProperties:
    """Test the D4 properties over random masks."""

    def test_rotation_has_order_four(self):
        """Test that four quarter turns give back the input."""
        for mask in random_masks():
            assert np.array_equal(rot90(rot90(rot90(rot90(mask)))), mask)

    def test_flip_is_involution(self):
        """Test that flipping twice gives back the input."""
        for mask in random_masks():
            assert np.array_equal(flip_h(flip_h(mask)), mask)

    def test_cell_count_preserved(self):
        """Test that every orientation keeps the number of filled cells."""
        for mask in random_masks():
            for rotation, flipped in ORIENTATIONS:
                assert cell_count(transform(mask, rotation, flipped)) == cell_count(mask)

    def test_orbit_of_asymmetric_shape(self):
        """Test that the F-like pentomino has eight distinct orientations."""
        mask = as_mask([[0, 1, 1], [1, 1, 0], [0, 1, 0]])
        distinct = {mask_to_rows(m) for m in orbit(mask)}
        assert len(distinct) == 8

    def test_orbit_of_square(self):
        """Test that a square is invariant under D4."""
        mask = np.ones((2, 2), dtype=bool)
        distinct = {mask_to_rows(m) for m in orbit(mask)}
        assert len(distinct) == 1


class TestNormalization:
    """Test bounding box helpers."""

    def test_is_normalized(self):
        """Test detection of tight bounding boxes."""
        assert is_normalized(L_TROMINO)
        assert not is_normalized(as_mask([[0, 0], [1, 1]]))
        assert not is_normalized(as_mask([[1, 0], [1, 0]]))

    def test_normalize_crops(self):
        """Test cropping to the filled cells."""
        mask = as_mask([[0, 0, 0], [0, 1, 0], [0, 1, 1]])
        assert np.array_equal(normalize(mask), as_mask([[1, 0], [1, 1]]))

    def test_normalize_empty(self):
        """Test that an empty mask cannot be normalized."""
        with pytest.raises(ValueError, match="empty mask"):
            normalize(np.zeros((2, 2), dtype=bool))

    def test_transforms_keep_normalization(self):
        """Test that transforms of a normalized mask stay normalized."""
        for mask in random_masks():
            base = normalize(mask)
            for m in orbit(base):
                assert is_normalized(m)
