"""Tests for trichromatic hue mixing and HCL -> sRGB conversion."""

import re

import numpy as np
import pytest

from huemix import (
    DEFAULT_SEXTANT_VALUES,
    hcl_to_hex,
    hcl_to_hex_batch,
    hcl_to_rgb255,
    mix_hues,
    parse_color_spec,
    primary_hues,
)

HEX_RE = re.compile(r"^#[0-9a-f]{6}$")


class TestParseColorSpec:
    def test_hex_forms(self) -> None:
        assert parse_color_spec("ff0000") == "#FF0000"
        assert parse_color_spec("#abcDEF") == "#ABCDEF"
        assert parse_color_spec("  #01A0C6 ") == "#01A0C6"

    @pytest.mark.parametrize("spec", ["", "#fff", "red", "#GG0000", None, 255])
    def test_rejects(self, spec) -> None:
        with pytest.raises(ValueError):
            parse_color_spec(spec)

    def test_default_palette_is_well_formed(self) -> None:
        assert len(DEFAULT_SEXTANT_VALUES) == 6
        assert [parse_color_spec(v) for v in DEFAULT_SEXTANT_VALUES] == list(DEFAULT_SEXTANT_VALUES)


class TestMixHues:
    def test_primaries(self) -> None:
        np.testing.assert_allclose(primary_hues(80.0), [80.0, 200.0, 320.0])

    def test_balanced_composition_is_grey(self) -> None:
        h, c, l = mix_hues(np.array([[1 / 3, 1 / 3, 1 / 3]]), 80.0, 140.0, 80.0, 0.4)
        assert c[0] == pytest.approx(0.0, abs=1e-9)
        assert l[0] == pytest.approx(0.6 * 80.0)

    @pytest.mark.parametrize(
        "p, hue",
        [((1.0, 0.0, 0.0), 80.0), ((0.0, 1.0, 0.0), 200.0), ((0.0, 0.0, 1.0), 320.0)],
    )
    def test_pure_part_takes_its_primary(self, p, hue) -> None:
        h, c, l = mix_hues(np.array([p]), 80.0, 140.0, 80.0, 0.4)
        assert h[0] == pytest.approx(hue)
        # full chroma: contrast factor is exactly 1
        assert c[0] == pytest.approx(140.0)
        assert l[0] == pytest.approx(80.0)

    def test_hue_range(self) -> None:
        rng = np.random.default_rng(11)
        P = rng.dirichlet([0.5, 0.5, 0.5], size=300)
        h, _, _ = mix_hues(P, 350.0, 140.0, 80.0, 0.4)
        assert np.all((h >= 0.0) & (h < 360.0))

    def test_zero_contrast_keeps_lightness(self) -> None:
        rng = np.random.default_rng(5)
        P = rng.dirichlet([1.0, 1.0, 1.0], size=100)
        _, _, l = mix_hues(P, 80.0, 140.0, 72.0, 0.0)
        np.testing.assert_allclose(l, 72.0)

    def test_full_contrast_follows_chroma(self) -> None:
        P = np.array([[0.5, 0.25, 0.25]])
        h, c, l = mix_hues(P, 80.0, 140.0, 80.0, 1.0)
        mixed = 0.25 * 140.0  # |0.5 - 0.25| * chroma
        assert l[0] == pytest.approx(mixed / 140.0 * 80.0)
        assert c[0] == pytest.approx(mixed * mixed / 140.0)

    def test_nan_rows(self) -> None:
        h, c, l = mix_hues(np.array([[np.nan, np.nan, np.nan]]), 80.0, 140.0, 80.0, 0.4)
        assert np.isnan(h[0]) and np.isnan(c[0]) and np.isnan(l[0])


class TestHclToHex:
    def test_white_and_black(self) -> None:
        assert hcl_to_hex(0.0, 0.0, 100.0) == "#ffffff"
        assert hcl_to_hex(0.0, 0.0, 0.0) == "#000000"

    def test_format(self) -> None:
        for h in range(0, 360, 30):
            assert HEX_RE.match(hcl_to_hex(float(h), 60.0, 60.0))

    def test_clamping(self) -> None:
        assert hcl_to_hex(40.0, 500.0, 70.0) == hcl_to_hex(40.0, 230.0, 70.0)
        assert hcl_to_hex(40.0, 50.0, 130.0) == hcl_to_hex(40.0, 50.0, 100.0)
        assert hcl_to_hex(40.0, -5.0, 50.0) == hcl_to_hex(40.0, 0.0, 50.0)

    def test_hue_wraps(self) -> None:
        assert hcl_to_hex(400.0, 50.0, 60.0) == hcl_to_hex(40.0, 50.0, 60.0)

    @pytest.mark.parametrize(
        "hcl, expected",
        [
            ((0.0, 0.0, 50.0), "#777777"),
            ((0.0, 0.0, 48.0), "#727272"),
            ((0.0, 50.0, 50.0), "#c24f79"),
        ],
    )
    def test_reference_colors(self, hcl, expected) -> None:
        assert hcl_to_hex(*hcl) == expected

    def test_reddish_hue(self) -> None:
        r, g, b = hcl_to_rgb255(20.0, 80.0, 55.0)
        assert r > g and r > b

    def test_non_finite(self) -> None:
        with pytest.raises(ValueError, match="finite"):
            hcl_to_hex(float("nan"), 10.0, 50.0)

    def test_batch(self) -> None:
        h = np.array([0.0, np.nan, 120.0])
        c = np.array([0.0, 10.0, 40.0])
        l = np.array([100.0, 50.0, 60.0])
        out = hcl_to_hex_batch(h, c, l)
        assert out[0] == "#ffffff"
        assert out[1] is None
        assert out[2] == hcl_to_hex(120.0, 40.0, 60.0)
