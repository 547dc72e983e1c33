import math
import numbers

import numpy as np

# Closed compositions sum to 1 within this tolerance.
CLOSURE_TOL = 1e-9

DEFAULT_CENTER = (1.0 / 3.0, 1.0 / 3.0, 1.0 / 3.0)

# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------

def _as_component(v) -> float:
    if isinstance(v, bool) or not isinstance(v, numbers.Real):
        return math.nan
    return float(v)


def as_compositions(P) -> np.ndarray:
    """
    Coerce raw input into a float64 (N,3) composition batch.

    Accepts an (N,3) array-like or a sequence of rows. A row that is None or
    does not have exactly 3 entries becomes an all-NaN row (the "no value"
    marker carried through every stage); non-numeric entries become NaN.
    Only arrays with more than 2 dimensions are rejected.
    """
    if isinstance(P, np.ndarray) and P.dtype.kind in "fiu":
        if P.ndim == 1 and P.size == 0:
            return np.empty((0, 3), dtype=np.float64)
        if P.ndim == 2 and P.shape[1] == 3:
            return np.array(P, dtype=np.float64)
        if P.ndim == 1 and P.shape[0] == 3:
            return np.asarray(P, dtype=np.float64).reshape(1, 3)
        # wrong arity: every row is present but has no value
        if P.ndim == 2:
            return np.full((P.shape[0], 3), np.nan, dtype=np.float64)
        if P.ndim == 1:
            return np.full((1, 3), np.nan, dtype=np.float64)
        raise ValueError(f"composition array must have shape (N,3), got {P.shape}")

    rows = list(P)
    out = np.full((len(rows), 3), np.nan, dtype=np.float64)
    for i, row in enumerate(rows):
        if row is None or isinstance(row, (str, bytes)):
            continue
        try:
            vals = list(row)
        except TypeError:
            continue
        if len(vals) != 3:
            continue
        out[i] = [_as_component(v) for v in vals]
    return out


def is_valid_ternary(p) -> bool:
    """True if p has exactly three finite numeric components."""
    if p is None or isinstance(p, (str, bytes)):
        return False
    try:
        vals = list(p)
    except TypeError:
        return False
    if len(vals) != 3:
        return False
    return all(math.isfinite(_as_component(v)) for v in vals)


def invalid_mask(P: np.ndarray) -> np.ndarray:
    """Rows holding any non-finite component, i.e. rows without a value."""
    return ~np.all(np.isfinite(P), axis=1)


def _mark_invalid(P: np.ndarray) -> np.ndarray:
    P[invalid_mask(P)] = np.nan
    return P

# ---------------------------------------------------------------------------
# Compositional algebra
# ---------------------------------------------------------------------------

def _reclose(raw: np.ndarray) -> np.ndarray:
    with np.errstate(invalid="ignore", divide="ignore", over="ignore"):
        out = raw / raw.sum(axis=1, keepdims=True)
    return _mark_invalid(out)


def close(P) -> np.ndarray:
    """
    Rescale every composition so its parts sum to 1.

    Rows without three finite parts come back as all-NaN rows. Negative
    parts are not rejected here; see validate_ternary_points.
    """
    P = _mark_invalid(as_compositions(P))
    return _reclose(P)


def geometric_mean(x, remove_zeros: bool = True) -> float:
    """
    Geometric mean computed as exp(mean(log(x))).

    With remove_zeros, exact zeros are dropped from the product and from the
    count. Returns 0 when no values remain.
    """
    v = np.asarray(x, dtype=np.float64).ravel()
    if remove_zeros:
        v = v[v != 0.0]
    if v.size == 0:
        return 0.0
    with np.errstate(invalid="ignore", divide="ignore"):
        return float(np.exp(np.log(v).sum() / v.size))


def centre(P) -> np.ndarray:
    """
    Compositional center of a dataset: closed vector of per-part geometric means.

    Rows without a value are ignored. Returns an all-NaN row if nothing is left.
    """
    P = as_compositions(P)
    P = P[~invalid_mask(P)]
    if P.shape[0] == 0:
        return np.full(3, np.nan)
    g = np.array([geometric_mean(P[:, j]) for j in range(3)], dtype=np.float64)
    return _reclose(g.reshape(1, 3))[0]


def perturbe(P, c=DEFAULT_CENTER) -> np.ndarray:
    """
    Perturb compositions by the vector c (component-wise product, re-closed).

    Perturbing by the reciprocal of a center moves that center to (1/3,1/3,1/3).
    """
    P = as_compositions(P)
    c = np.asarray(c, dtype=np.float64).reshape(1, 3)
    with np.errstate(invalid="ignore", over="ignore"):
        raw = P * c
    return _reclose(raw)


def power_scale(P, scale: float = 1.0) -> np.ndarray:
    """Raise every part to `scale` and re-close."""
    P = as_compositions(P)
    with np.errstate(invalid="ignore", divide="ignore", over="ignore"):
        raw = np.power(P, float(scale))
    return _reclose(raw)

# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_ternary_points(P) -> None:
    """
    Raise ValueError for the first composition that is not a point on the simplex.

    Rows that are None or hold a non-finite part carry no value and are
    skipped. A row fails if it does not have exactly 3 parts, has a negative
    part, or does not sum to 1 within CLOSURE_TOL.
    """
    if isinstance(P, np.ndarray):
        if P.ndim != 2 or P.shape[1] != 3:
            raise ValueError(f"Ternary point must have exactly 3 components, got shape {P.shape}")
        rows = P.tolist()
    else:
        rows = list(P)

    for i, p in enumerate(rows):
        if p is None:
            continue
        vals = list(p)
        if len(vals) != 3:
            raise ValueError(
                f"Ternary point #{i} must have exactly 3 components, got {len(vals)}"
            )
        vals = [_as_component(v) for v in vals]
        if not all(math.isfinite(v) for v in vals):
            continue
        if any(v < 0.0 for v in vals):
            raise ValueError(f"Ternary point #{i} contains negative values: {vals}")
        s = vals[0] + vals[1] + vals[2]
        if abs(s - 1.0) > CLOSURE_TOL:
            raise ValueError(f"Ternary point #{i} components must sum to 1, got {s}: {vals}")
