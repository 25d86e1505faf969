"""
Unit tests for box decoding and the frame cache.
"""

import numpy as np
import pytest

from yolact_toolbox.process import (
    AnchorTable,
    BoxDecoder,
    CacheInvariantError,
    FrameCache,
    center_to_corner,
)


@pytest.fixture(scope="module")
def anchors():
    return AnchorTable()


@pytest.fixture
def decoder(anchors):
    return BoxDecoder(anchors)


class TestBoxDecoder:
    """Test cases for BoxDecoder.decode."""

    def test_identity_decode(self, anchors, decoder):
        corners = center_to_corner(anchors.boxes.astype(np.float64))
        inside = np.nonzero(np.all((corners >= 0.0) & (corners <= 1.0), axis=1))[0]
        assert inside.size > 0

        boxes = decoder.decode(inside, np.zeros((inside.size, 4)))

        np.testing.assert_allclose(boxes, anchors.boxes[inside], rtol=0, atol=1e-7)

    def test_center_offset(self, decoder, anchor_index):
        index = anchor_index(4, 2, 2)
        prior = 384 / 550
        box = decoder.decode([index], [[1.0, 0.0, 0.0, 0.0]])[0]
        np.testing.assert_allclose(
            box, [0.5 + 0.1 * prior, 0.5, prior, prior], rtol=0, atol=1e-6
        )

    def test_size_offset(self, decoder, anchor_index):
        index = anchor_index(3, 4, 4)
        prior = 192 / 550
        box = decoder.decode([index], [[0.0, 0.0, 1.0, -1.0]])[0]
        np.testing.assert_allclose(
            box,
            [0.5, 0.5, prior * np.exp(0.2), prior * np.exp(-0.2)],
            rtol=0,
            atol=1e-6,
        )

    def test_clamp_reclamps_center(self, decoder, anchor_index):
        # The ratio-2 anchor of the central level-4 cell covers more than the image
        index = anchor_index(4, 2, 2, ratio=2)
        box = decoder.decode([index], [[0.0, 0.0, 0.0, 0.0]])[0]
        np.testing.assert_allclose(box, [0.5, 0.5, 1.0, 1.0], atol=1e-6)

    def test_clamp_property(self, anchors, decoder):
        rng = np.random.default_rng(42)
        indices = np.arange(len(anchors))
        offsets = rng.uniform(-50.0, 50.0, size=(len(anchors), 4))
        # Overflowing exponents must saturate, not produce NaN
        offsets[::7, 2:] = 1e4

        boxes = decoder.decode(indices, offsets).astype(np.float64)

        assert not np.any(np.isnan(boxes))
        assert np.all(boxes[:, 2:] >= 0.0)
        corners = center_to_corner(boxes)
        assert np.all(corners >= -1e-6)
        assert np.all(corners <= 1.0 + 1e-6)

    def test_output_dtype(self, decoder):
        boxes = decoder.decode(np.array([0, 1]), np.zeros((2, 4), dtype=np.float32))
        assert boxes.dtype == np.float32
        assert boxes.shape == (2, 4)


class TestFrameCache:
    """Test cases for FrameCache and BoxDecoder.decode_into."""

    @pytest.fixture
    def feed_arrays(self):
        rng = np.random.default_rng(1)
        location = rng.normal(size=(19248, 4)).astype(np.float32)
        coefficients = rng.normal(size=(19248, 32)).astype(np.float32)
        return location, coefficients

    def test_decode_once(self, decoder, feed_arrays):
        location, coefficients = feed_arrays
        cache = FrameCache()

        assert decoder.decode_into(cache, np.array([5, 9, 5]), location, coefficients) == 2
        assert decoder.decode_into(cache, np.array([9, 12]), location, coefficients) == 1
        assert len(cache) == 3
        assert 12 in cache
        assert 13 not in cache

    def test_cached_values(self, decoder, feed_arrays):
        location, coefficients = feed_arrays
        cache = FrameCache()
        decoder.decode_into(cache, np.array([100]), location, coefficients)

        np.testing.assert_array_equal(
            cache.box(100), decoder.decode([100], location[[100]])[0]
        )
        np.testing.assert_array_equal(cache.coefficients(100), coefficients[100])

    def test_coefficients_copied(self, decoder, feed_arrays):
        location, coefficients = feed_arrays
        cache = FrameCache()
        decoder.decode_into(cache, np.array([3]), location, coefficients)
        expected = coefficients[3].copy()

        coefficients[3] = 0.0

        np.testing.assert_array_equal(cache.coefficients(3), expected)

    def test_missing(self):
        cache = FrameCache()
        cache.boxes[4] = np.zeros(4, dtype=np.float32)
        np.testing.assert_array_equal(cache.missing([7, 4, 2, 7]), [7, 2])

    def test_cache_miss_raises(self):
        cache = FrameCache()
        with pytest.raises(CacheInvariantError) as exc_info:
            cache.box(17)
        assert exc_info.value.anchor_index == 17
        with pytest.raises(CacheInvariantError):
            cache.coefficients(17)

    def test_clear(self, decoder, feed_arrays):
        location, coefficients = feed_arrays
        cache = FrameCache()
        decoder.decode_into(cache, np.array([1, 2]), location, coefficients)
        cache.clear()
        assert len(cache) == 0
        assert cache.mask_coefficients == {}
