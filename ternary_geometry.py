# ternary_geometry.py
import math
import numpy as np
from numba import njit, prange

from composition import as_compositions, invalid_mask

SQRT3_2 = math.sqrt(3.0) / 2.0

# sextant id for points that sit on the center lines (or carry no value)
SEXTANT_UNDEFINED = 0

# "greater than center" pattern, encoded as 4*g1 + 2*g2 + g3 -> sextant id
_SEXTANT_LOOKUP = np.array([0, 5, 3, 4, 1, 6, 2, 0], dtype=np.int64)

# ========================================
# mesh subdivision
# ========================================

def _isqrt(x: np.ndarray) -> np.ndarray:
    """Exact floor(sqrt(x)) for a non-negative int64 array."""
    g = np.floor(np.sqrt(x.astype(np.float64))).astype(np.int64)
    g -= (g * g > x).astype(np.int64)
    g += ((g + 1) * (g + 1) <= x).astype(np.int64)
    return g

def _check_rows(k) -> int:
    if isinstance(k, bool) or not float(k).is_integer() or k < 1:
        raise ValueError(f"mesh rows must be a positive integer, got {k!r}")
    return int(k)

def _centroid_numerators(k: int) -> np.ndarray:
    """Centroids scaled by 6k, as exact integers. Row id-1 holds cell id."""
    K = k * k
    ids = np.arange(1, K + 1, dtype=np.int64)
    g = _isqrt(K - ids)
    gsq = g * g
    r = (-K + ids + gsq + 2 * g + 1) % 2  # 1 for upward cells, 0 for downward
    n1 = r - 3 * gsq - 3 * ids + 3 * K + 1
    n2 = -2 * (r + 3 * g - 3 * k + 1)
    n3 = r + 3 * gsq + 6 * g + 3 * ids - 3 * K + 1
    return np.stack([n1, n2, n3], axis=1)

def ternary_mesh_centroids(k: int) -> np.ndarray:
    """
    Centroids of the k*k sub-triangles of a simplex cut into k rows.

    Row j from the p1 apex holds 2j-1 triangles. Returns float64 (k*k, 3);
    row i is the centroid of mesh cell id i+1.
    """
    k = _check_rows(k)
    return _centroid_numerators(k) / (6.0 * k)

def ternary_mesh_vertices(centroids: np.ndarray) -> np.ndarray:
    """
    Vertices of the mesh cells whose centroids are given (as returned by
    ternary_mesh_centroids).

    Returns float64 (k*k, 3, 3): [cell, vertex, part]. Vertex m is the corner
    opposite to the side facing part m. Corners shared by neighbouring cells
    are bit-identical since they come from integer numerators over 6k.
    """
    C = np.asarray(centroids, dtype=np.float64)
    if C.ndim != 2 or C.shape[1] != 3:
        raise ValueError(f"centroids must have shape (K,3), got {C.shape}")
    K = C.shape[0]
    k = math.isqrt(K)
    if k * k != K or k < 1:
        raise ValueError(f"number of centroids must be a square, got {K}")

    denom = 6 * k
    num = np.rint(C * denom).astype(np.int64)

    ids = np.arange(1, K + 1, dtype=np.int64)
    j = k - _isqrt(k * k - ids)
    i = ids - (j - 1) * (2 * k - j + 1)
    s = np.where(i % 2 == 1, -1, 1).astype(np.int64)

    # 2s/(3k) off the own part, s/(3k) onto the two others
    shift = np.full((3, 3), 2, dtype=np.int64)
    np.fill_diagonal(shift, -4)
    verts = num[:, None, :] + s[:, None, None] * shift[None, :, :]
    return verts / float(denom)

# ========================================
# nearest mesh cell
# ========================================

def ternary_distance(p, C) -> np.ndarray:
    """
    Distance of composition p to every row of C: -(q2*q3 + q3*q1 + q1*q2), q = p - c.

    Smaller is nearer.
    """
    p = np.asarray(p, dtype=np.float64).reshape(1, 3)
    q = p - np.asarray(C, dtype=np.float64).reshape(-1, 3)
    return -(q[:, 1] * q[:, 2] + q[:, 2] * q[:, 0] + q[:, 0] * q[:, 1])

@njit(cache=True, nogil=True, parallel=True)
def nearest_index(P, C):
    """
    Index into C of the nearest candidate for every row of P, or -1 for rows
    holding a non-finite part. Ties go to the lowest index.
    """
    n = P.shape[0]; m = C.shape[0]
    out = np.empty(n, np.int64)
    for i in prange(n):
        p1 = P[i, 0]; p2 = P[i, 1]; p3 = P[i, 2]
        best_j = -1
        if math.isfinite(p1) and math.isfinite(p2) and math.isfinite(p3):
            best = np.inf
            for j in range(m):
                q1 = p1 - C[j, 0]; q2 = p2 - C[j, 1]; q3 = p3 - C[j, 2]
                d = -(q2 * q3 + q3 * q1 + q1 * q2)
                if d < best:
                    best = d; best_j = j
        out[i] = best_j
    return out

def ternary_nearest(P, C) -> np.ndarray:
    """
    Replace each composition by its nearest row of C (see ternary_distance).

    Rows without a value stay all-NaN.
    """
    P = np.ascontiguousarray(as_compositions(P))
    C = np.ascontiguousarray(np.asarray(C, dtype=np.float64))
    if C.ndim != 2 or C.shape[1] != 3 or C.shape[0] == 0:
        raise ValueError(f"candidates must have shape (M,3) with M >= 1, got {C.shape}")

    idx = nearest_index(P, C)
    out = np.full_like(P, np.nan)
    hit = idx >= 0
    out[hit] = C[idx[hit]]
    return out

# ========================================
# sextants
# ========================================

def ternary_sextant_vertices(center) -> list[np.ndarray]:
    """
    Polygons of the six sextants around `center`.

    Returns a list of six closed vertex arrays (first row == last row ==
    center); entry i is sextant id i+1. Odd sextants reach a simplex corner
    and have 5 rows, even sextants have 4.
    """
    c = np.asarray(center, dtype=np.float64).reshape(3)
    C = tuple(c)

    p1 = (1.0, 0.0, 0.0)
    p2 = (0.0, 1.0, 0.0)
    p3 = (0.0, 0.0, 1.0)

    # where the level line of each part through the center meets the edges
    a1 = (c[0], 1.0 - c[0], 0.0)
    a2 = (c[0], 0.0, 1.0 - c[0])
    b1 = (0.0, c[1], 1.0 - c[1])
    b2 = (1.0 - c[1], c[1], 0.0)
    c1 = (1.0 - c[2], 0.0, c[2])
    c2 = (0.0, 1.0 - c[2], c[2])

    polygons = [
        [C, c1, p1, b2, C],
        [C, b2, a1, C],
        [C, a1, p2, c2, C],
        [C, c2, b1, C],
        [C, b1, p3, a2, C],
        [C, a2, c1, C],
    ]
    return [np.asarray(poly, dtype=np.float64) for poly in polygons]

def ternary_surrounding_sextant(P, center) -> np.ndarray:
    """
    Sextant id (1..6) of every composition relative to `center`.

    A part counts as "larger" only when strictly greater than the center's.
    Patterns outside the six sextants (the center itself, points on two
    center lines) and rows without a value give SEXTANT_UNDEFINED.
    """
    P = as_compositions(P)
    c = np.asarray(center, dtype=np.float64).reshape(1, 3)
    larger = P > c
    code = 4 * larger[:, 0] + 2 * larger[:, 1] + larger[:, 2]
    ids = _SEXTANT_LOOKUP[code.astype(np.int64)]
    ids[invalid_mask(P)] = SEXTANT_UNDEFINED
    return ids

# ========================================
# projection
# ========================================

def ternary_to_cartesian(P) -> np.ndarray:
    """(N,3) compositions -> (N,2) points in the unit equilateral triangle."""
    P = as_compositions(P)
    x = P[:, 2] + 0.5 * P[:, 1]
    y = SQRT3_2 * P[:, 1]
    return np.stack([x, y], axis=1)

def cartesian_to_ternary(xy) -> np.ndarray:
    """Inverse of ternary_to_cartesian."""
    xy = np.asarray(xy, dtype=np.float64).reshape(-1, 2)
    p2 = xy[:, 1] / SQRT3_2
    p3 = xy[:, 0] - 0.5 * p2
    p1 = 1.0 - p2 - p3
    return np.stack([p1, p2, p3], axis=1)

def ternary_limits(P) -> tuple[np.ndarray, np.ndarray]:
    """Per-part (lower, upper) over the compositions that carry a value."""
    P = as_compositions(P)
    P = P[~invalid_mask(P)]
    lower = np.ones(3, dtype=np.float64)
    upper = np.zeros(3, dtype=np.float64)
    if P.shape[0]:
        lower = np.minimum(lower, P.min(axis=0))
        upper = np.maximum(upper, P.max(axis=0))
    return lower, upper

# ---------- warmup ----------

def warmup_ternary_kernels():
    try:
        P = np.array([[0.2, 0.3, 0.5], [np.nan, np.nan, np.nan]], np.float64)
        nearest_index(P, ternary_mesh_centroids(2))
    except Exception as e:
        print(f"[jit] ternary warmup skipped: {e}")
