"""
Tests for sharpening, noise reduction and skin brightening.
"""

import pytest
import numpy as np

from pixelfruit.processing.detail import (
    DenoiseAlgorithm, DenoiseSettings, QualityHint, SharpenSettings, Sharpener,
    brighten_skin, denoise, sharpen, skin_likelihood
)


class TestSharpening:
    """Test the unsharp mask."""

    @pytest.mark.parametrize("amount", [0, -10])
    def test_non_positive_amount_is_noop(self, random_image, amount):
        """Zero or negative amounts leave the buffer unchanged."""
        np.testing.assert_array_equal(sharpen(random_image, amount), random_image)

    def test_uniform_image_unchanged(self, make_solid):
        """Flat regions have nothing to sharpen."""
        pixels = make_solid(6, 6, (90, 120, 150))
        np.testing.assert_array_equal(sharpen(pixels, 100), pixels)

    def test_spike_is_amplified(self, spike_image):
        """The centre pulls away from its neighbour mean."""
        result = sharpen(spike_image, 100)
        # 255 + (255 - 100) clamps to 255
        assert tuple(result[2, 2, :3]) == (255, 255, 255)
        # Ring mean is (255 + 7 * 100) / 8 = 119.375, so 100 - 19.375
        assert tuple(result[1, 1, :3]) == (81, 81, 81)

    def test_border_and_alpha_untouched(self, random_image):
        """The one-pixel border and alpha never change."""
        result = sharpen(random_image, 80)
        np.testing.assert_array_equal(result[0], random_image[0])
        np.testing.assert_array_equal(result[-1], random_image[-1])
        np.testing.assert_array_equal(result[:, 0], random_image[:, 0])
        np.testing.assert_array_equal(result[:, -1], random_image[:, -1])
        np.testing.assert_array_equal(result[..., 3], random_image[..., 3])

    def test_draft_quality_skips_alternate_pixels(self, random_image):
        """Draft quality only touches every second interior row and column."""
        full = sharpen(random_image, 80, QualityHint.FULL)
        draft = sharpen(random_image, 80, "draft")

        np.testing.assert_array_equal(draft[1:-1:2, 1:-1:2], full[1:-1:2, 1:-1:2])
        np.testing.assert_array_equal(draft[2:-1:2], random_image[2:-1:2])
        np.testing.assert_array_equal(draft[:, 2:-1:2], random_image[:, 2:-1:2])

    def test_texture_adds_to_strength(self, spike_image):
        """Texture alone sharpens when amount is zero."""
        result = Sharpener().apply(spike_image, {'amount': 0, 'texture': 50})
        # 100 - 19.375 * 0.5 = 90.3125
        assert result[1, 1, 0] == 90

    def test_tiny_images(self, make_solid):
        """Images without interior pixels are returned unchanged."""
        pixels = make_solid(2, 2, (10, 20, 30))
        np.testing.assert_array_equal(sharpen(pixels, 100), pixels)

    def test_settings_validation(self):
        """Unknown parameters and quality hints are rejected."""
        with pytest.raises(ValueError):
            SharpenSettings.from_params({'radius': 2})
        with pytest.raises(ValueError):
            SharpenSettings(amount=10, quality_hint='ultra')


class TestNoiseReduction:
    """Test the three denoise kernels."""

    def test_zero_strength_is_noop(self, random_image):
        """Strength zero leaves the buffer unchanged."""
        np.testing.assert_array_equal(denoise(random_image, 0, 'median'), random_image)

    def test_unknown_algorithm(self):
        """Unknown algorithm names raise ValueError."""
        with pytest.raises(ValueError):
            DenoiseSettings(strength=50, algorithm='bilateral')

    def test_algorithm_parse(self):
        """Algorithm names are case insensitive."""
        assert DenoiseAlgorithm.parse('Gaussian') == DenoiseAlgorithm.GAUSSIAN

    def test_median_full_strength(self, spike_image):
        """A full-strength median removes an isolated spike."""
        result = denoise(spike_image, 100, DenoiseAlgorithm.MEDIAN)
        assert tuple(result[2, 2, :3]) == (100, 100, 100)

    def test_median_low_strength_half_blend(self, spike_image):
        """Below 50% the median is blended in at half strength."""
        result = denoise(spike_image, 40, 'median')
        # mix 0.2: 255 * 0.8 + 100 * 0.2
        assert result[2, 2, 0] == 224

    def test_gaussian(self, spike_image):
        """Gaussian weights the centre by 4/16."""
        result = denoise(spike_image, 100, 'gaussian')
        # (255 * 4 + 100 * 12) / 16 = 138.75
        assert result[2, 2, 0] == 139
        # Neighbour: (255 * 2 + 100 * 14) / 16 = 119.375
        assert result[2, 1, 0] == 119

    def test_mean_without_detail_preservation(self, spike_image):
        """With preservation off the mean replaces the pixel fully."""
        result = denoise(spike_image, 100, 'mean', detail_preservation=0)
        # (255 + 8 * 100) / 9 = 117.2
        assert result[2, 2, 0] == 117

    def test_mean_preserves_edges(self, spike_image):
        """Edge pixels are smoothed less when detail is preserved."""
        result = denoise(spike_image, 100, 'mean')
        assert result[2, 2, 0] == 192

    def test_border_and_alpha_untouched(self, random_image):
        """Every algorithm leaves the border and alpha alone."""
        for algorithm in DenoiseAlgorithm:
            result = denoise(random_image, 80, algorithm)
            np.testing.assert_array_equal(result[0], random_image[0])
            np.testing.assert_array_equal(result[:, -1], random_image[:, -1])
            np.testing.assert_array_equal(result[..., 3], random_image[..., 3])

    def test_reduces_variance(self, random_image):
        """Denoising a noisy image lowers its interior variance."""
        for algorithm in DenoiseAlgorithm:
            result = denoise(random_image, 100, algorithm, detail_preservation=0)
            assert result[1:-1, 1:-1, :3].std() < random_image[1:-1, 1:-1, :3].std()


class TestSkinBrightening:
    """Test skin detection and brightening."""

    SKIN = (220, 170, 140)
    SKY = (30, 60, 200)

    def test_skin_likelihood(self, make_solid):
        """A typical skin tone passes every rule; blue passes none."""
        pixels = make_solid(2, 1, self.SKIN)
        pixels[0, 1, :3] = self.SKY
        likelihood = skin_likelihood(pixels)
        assert likelihood[0, 0] == pytest.approx(1.0)
        assert likelihood[0, 1] == 0.0

    def test_likelihood_bounded(self, random_image):
        """Likelihood stays within [0, 1]."""
        likelihood = skin_likelihood(random_image)
        assert likelihood.min() >= 0.0
        assert likelihood.max() <= 1.0

    def test_zero_strength_is_noop(self, make_solid):
        """Strength zero leaves the buffer unchanged."""
        pixels = make_solid(4, 4, self.SKIN)
        np.testing.assert_array_equal(brighten_skin(pixels, 0, 50), pixels)

    def test_brightens_skin(self, make_solid):
        """Full strength skin is brightened, de-reddened and desaturated."""
        pixels = make_solid(4, 4, self.SKIN)
        result = brighten_skin(pixels, 100, smoothness=0)
        assert tuple(result[0, 0, :3]) == (225, 220, 213)
        np.testing.assert_array_equal(result[..., 3], pixels[..., 3])

    def test_non_skin_unchanged(self, make_solid):
        """Pixels with zero likelihood are not modified."""
        pixels = make_solid(4, 4, self.SKY)
        np.testing.assert_array_equal(brighten_skin(pixels, 100, 0), pixels)

    def test_smoothness_spreads_mask(self, make_solid):
        """A blurred mask reaches neighbours of skin pixels."""
        pixels = make_solid(9, 9, self.SKY)
        pixels[4, 4, :3] = self.SKIN

        sharp = brighten_skin(pixels, 100, smoothness=0)
        smooth = brighten_skin(pixels, 100, smoothness=40)

        np.testing.assert_array_equal(sharp[4, 5], pixels[4, 5])
        assert not np.array_equal(smooth[4, 5], pixels[4, 5])
        # Radius 2 does not reach three pixels away
        np.testing.assert_array_equal(smooth[4, 7], pixels[4, 7])
