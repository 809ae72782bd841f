"""
Tests for histogram computation and change detection.
"""

import pytest
import numpy as np

from pixelfruit.processing.histogram import HistogramAnalyzer, compute_histogram, sample_hash


class TestComputeHistogram:
    """Test bin counting."""

    def test_solid_color(self, make_solid):
        """A uniform image fills exactly one bin per channel."""
        hist = compute_histogram(make_solid(4, 4, (10, 20, 30)))
        assert hist.r[10] == 16
        assert hist.g[20] == 16
        assert hist.b[30] == 16
        # 0.299 * 10 + 0.587 * 20 + 0.114 * 30 = 18.15
        assert hist.luminance[18] == 16

    def test_counts_sum_to_pixel_count(self, random_image):
        """Every channel counts every pixel once."""
        hist = compute_histogram(random_image)
        total = random_image.shape[0] * random_image.shape[1]
        for counts in (hist.r, hist.g, hist.b, hist.luminance):
            assert counts.shape == (256,)
            assert counts.sum() == total

    def test_alpha_ignored(self, make_solid):
        """Transparent pixels are still counted."""
        hist = compute_histogram(make_solid(2, 2, (0, 0, 0), alpha=0))
        assert hist.luminance[0] == 4

    def test_white_luminance(self, make_solid):
        """Pure white lands in the top bin."""
        hist = compute_histogram(make_solid(1, 1, (255, 255, 255)))
        assert hist.luminance[255] == 1

    def test_max_count(self, make_solid):
        """Peak bins are reported per display mode."""
        pixels = make_solid(3, 1, (10, 20, 30))
        pixels[0, 2, :3] = (200, 20, 30)
        hist = compute_histogram(pixels)
        assert hist.max_count('rgb') == 3
        assert hist.max_count('luminance') == 2
        with pytest.raises(ValueError):
            hist.max_count('hsv')

    def test_as_dict(self, make_solid):
        """Serialized histograms are plain lists."""
        data = compute_histogram(make_solid(1, 1, (1, 2, 3))).as_dict()
        assert set(data) == {'r', 'g', 'b', 'luminance'}
        assert len(data['r']) == 256
        assert data['r'][1] == 1


class TestHistogramAnalyzer:
    """Test histogram reuse."""

    def test_unchanged_content_reuses_result(self, random_image):
        """Identical content returns the same histogram object."""
        analyzer = HistogramAnalyzer()
        first = analyzer.compute(random_image)
        second = analyzer.compute(random_image.copy())
        assert second is first
        assert analyzer.get_stats()['cache_hits'] == 1
        assert analyzer.get_stats()['calls'] == 2

    def test_reused_counts_are_read_only(self, random_image):
        """Callers cannot corrupt a histogram shared through the cache."""
        analyzer = HistogramAnalyzer()
        first = analyzer.compute(random_image)
        expected = first.luminance.copy()

        with pytest.raises(ValueError):
            first.luminance[0] = 0
        with pytest.raises(ValueError):
            first.r += 1

        second = analyzer.compute(random_image)
        np.testing.assert_array_equal(second.luminance, expected)
        # Normalizing works on a copy
        assert (second.luminance / second.max_count()).max() == 1.0

    def test_changed_content_recomputes(self, make_solid):
        """Different content produces a fresh histogram."""
        analyzer = HistogramAnalyzer()
        first = analyzer.compute(make_solid(4, 4, (10, 10, 10)))
        second = analyzer.compute(make_solid(4, 4, (90, 90, 90)))
        assert second is not first
        assert second.r[90] == 16

    def test_shape_is_part_of_hash(self, make_solid):
        """Same bytes in a different shape are not confused."""
        assert sample_hash(make_solid(4, 2, (5, 5, 5))) != sample_hash(make_solid(2, 4, (5, 5, 5)))

    def test_invalidate(self, random_image):
        """Invalidation forces a recompute."""
        analyzer = HistogramAnalyzer()
        first = analyzer.compute(random_image)
        analyzer.invalidate()
        assert analyzer.compute(random_image) is not first
