import math
import re

import numpy as np

DEFAULT_SEXTANT_VALUES = ("#FFFF00", "#B3DCC3", "#01A0C6", "#B8B3D8", "#F11D8C", "#FFB3B3")

# HCL inputs are clamped to these before conversion
MAX_CHROMA = 230.0
MAX_LIGHTNESS = 100.0

# D65 reference white
XN = 0.95047
YN = 1.0
ZN = 1.08883

# CIE companding breakpoint (6/29) and linear-branch slope
LAB_EPSILON = 0.206893034
LAB_KAPPA = 7.787

# linear sRGB from XYZ
XYZ_TO_RGB = np.array(
    [
        [3.2406, -1.5372, -0.4986],
        [-0.9689, 1.8758, 0.0415],
        [0.0557, -0.2040, 1.0570],
    ],
    dtype=np.float64,
)

_HEX_RE = re.compile(r"^[0-9a-fA-F]{6}$")

# ---------------------------------------------------------------------------
# Color specs
# ---------------------------------------------------------------------------

def parse_color_spec(spec: str) -> str:
    """
    Normalize a color spec to "#RRGGBB".

    Accepts:
        - "RRGGBB" hex
        - "#RRGGBB" hex
    """
    if not isinstance(spec, str):
        raise ValueError(f"color spec must be a string, got {spec!r}")
    s = spec.strip()
    if s.startswith("#"):
        s = s[1:]
    if not _HEX_RE.match(s):
        raise ValueError(f"Invalid color spec {spec!r} (expected RRGGBB or #RRGGBB)")
    return "#" + s.upper()

# ---------------------------------------------------------------------------
# Trichromatic hue mixing
# ---------------------------------------------------------------------------

def primary_hues(hue: float) -> np.ndarray:
    """The three primary hues (degrees) for the three parts."""
    return np.array([hue, hue + 120.0, hue + 240.0], dtype=np.float64)


def mix_hues(
    P: np.ndarray,
    hue: float,
    chroma: float,
    lightness: float,
    contrast: float,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Mix three primaries weighted by the parts of each composition.

    Each part scales a vector of length `chroma` pointing at its primary hue;
    the vector sum gives the mixed hue (angle) and chroma (length). A
    balanced composition cancels out to a grey. Contrast then couples
    lightness and chroma to the distance from grey:

        f = c * contrast / chroma + 1 - contrast
        L = f * lightness,  C = f * c

    Args:
        P: (N,3) closed, centered compositions; NaN rows stay NaN.

    Returns:
        h, c, l : float64 (N,) arrays, h in [0,360)
    """
    P = np.asarray(P, dtype=np.float64).reshape(-1, 3)
    C = P * chroma
    phi = np.deg2rad(primary_hues(hue))

    re_ = C @ np.cos(phi)
    im_ = C @ np.sin(phi)

    h = (np.rad2deg(np.arctan2(im_, re_)) + 360.0) % 360.0
    c = np.hypot(re_, im_)

    cfactor = c * contrast / chroma + 1.0 - contrast
    l = cfactor * lightness
    return h, cfactor * c, l

# ---------------------------------------------------------------------------
# HCL -> sRGB
# ---------------------------------------------------------------------------

def _lab_finv(t: np.ndarray) -> np.ndarray:
    return np.where(t > LAB_EPSILON, t ** 3, (t - 16.0 / 116.0) / LAB_KAPPA)


def _srgb_gamma(v: np.ndarray) -> np.ndarray:
    # clip below keeps the power branch away from negative bases
    return np.where(
        v > 0.0031308,
        1.055 * np.maximum(v, 0.0031308) ** (1.0 / 2.4) - 0.055,
        12.92 * v,
    )


def hcl_to_rgb01(h, c, l) -> np.ndarray:
    """
    Vectorized HCL (CIE LCh, D65) -> gamma-encoded sRGB in [0,1]. Returns (...,3).
    """
    h = np.asarray(h, dtype=np.float64) % 360.0
    c = np.clip(np.asarray(c, dtype=np.float64), 0.0, MAX_CHROMA)
    l = np.clip(np.asarray(l, dtype=np.float64), 0.0, MAX_LIGHTNESS)

    h_rad = np.deg2rad(h)
    a = np.cos(h_rad) * c
    b = np.sin(h_rad) * c

    fy = (l + 16.0) / 116.0
    fx = a / 500.0 + fy
    fz = fy - b / 200.0

    xyz = np.stack(
        [XN * _lab_finv(fx), YN * _lab_finv(fy), ZN * _lab_finv(fz)],
        axis=-1,
    )
    rgb_lin = xyz @ XYZ_TO_RGB.T
    return np.clip(_srgb_gamma(rgb_lin), 0.0, 1.0)


def hcl_to_rgb255(h, c, l) -> np.ndarray:
    """HCL -> uint8 sRGB (...,3); halves round up."""
    rgb = hcl_to_rgb01(h, c, l)
    return np.floor(rgb * 255.0 + 0.5).astype(np.uint8)


def rgb255_to_hex(rgb) -> str:
    r, g, b = (int(v) for v in rgb)
    return f"#{r:02x}{g:02x}{b:02x}"


def hcl_to_hex(h: float, c: float, l: float) -> str:
    """Single HCL triple -> "#rrggbb"."""
    if not all(math.isfinite(float(v)) for v in (h, c, l)):
        raise ValueError(f"HCL values must be finite, got {(h, c, l)!r}")
    return rgb255_to_hex(hcl_to_rgb255(h, c, l))


def hcl_to_hex_batch(h: np.ndarray, c: np.ndarray, l: np.ndarray) -> list:
    """
    Vectorized HCL -> list of "#rrggbb"; entries with a non-finite input are None.
    """
    h = np.asarray(h, dtype=np.float64)
    c = np.asarray(c, dtype=np.float64)
    l = np.asarray(l, dtype=np.float64)
    ok = np.isfinite(h) & np.isfinite(c) & np.isfinite(l)

    out: list = [None] * h.shape[0]
    if np.any(ok):
        rgb = hcl_to_rgb255(h[ok], c[ok], l[ok])
        for i, px in zip(np.flatnonzero(ok), rgb):
            out[i] = rgb255_to_hex(px)
    return out
