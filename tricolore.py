#!/usr/bin/env python
"""
tricolore.py

Color-code three-part compositions (p1, p2, p3 summing to 1) for maps.

Two schemes:

1) Balance scheme (tricolore):
     - close the compositions
     - optionally snap them to the centroids of a k-row triangular mesh
       (breaks < 100 gives a discrete legend, breaks=None/inf is continuous)
     - perturb by 1/center so the chosen center becomes (1/3,1/3,1/3)
     - power-scale by `spread`
     - mix three primaries (hue, hue+120, hue+240) weighted by the parts,
       couple lightness to the mixed chroma via `contrast`, and convert the
       HCL result to sRGB hex

   The center maps to grey; dominance of one part pulls toward its primary.

2) Sextant scheme:
     - split the simplex into six regions by comparing every part against
       the center, and give each region one of six fixed colors

Invalid compositions (wrong arity, NaN/inf parts) never raise: their result
records come back with every color field set to None.

This script is both:
- a CLI tool (CSV in, colors out; or a legend key table)
- an importable module with config dataclasses + a Pipeline builder
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import math
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from composition import DEFAULT_CENTER, as_compositions, centre, close, invalid_mask, perturbe, power_scale
from huemix import DEFAULT_SEXTANT_VALUES, hcl_to_hex_batch, mix_hues, parse_color_spec
from ternary_geometry import (
    SEXTANT_UNDEFINED,
    ternary_mesh_centroids,
    ternary_mesh_vertices,
    ternary_nearest,
    ternary_sextant_vertices,
    ternary_surrounding_sextant,
    ternary_to_cartesian,
    warmup_ternary_kernels,
)

# breaks at or above this are treated as a continuous scale
CONTINUOUS_BREAKS_THRESHOLD = 100

# mesh rows used to draw the key of a continuous scale
KEY_CONTINUOUS_BREAKS = 100

Center = Tuple[float, float, float]


# ----------------------------
# Results
# ----------------------------

@dataclass(frozen=True)
class TricoloreResult:
    p1: float
    p2: float
    p3: float
    h: Optional[float] = None
    c: Optional[float] = None
    l: Optional[float] = None
    rgb: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.rgb is not None


@dataclass(frozen=True)
class SextantResult:
    p1: float
    p2: float
    p3: float
    sextant: Optional[int] = None
    rgb: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.rgb is not None


# ----------------------------
# Parameter checks
# ----------------------------

def _check_center(center) -> Center:
    try:
        vals = [float(v) for v in center]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"center must be 3 numbers, got {center!r}") from exc
    if len(vals) != 3:
        raise ValueError(f"center must have exactly 3 components, got {len(vals)}")
    if not all(math.isfinite(v) and v >= 0.0 for v in vals) or sum(vals) <= 0.0:
        raise ValueError(f"center must be finite, non-negative and not all zero, got {vals}")
    return vals[0], vals[1], vals[2]


def _check_sextant_values(values) -> Tuple[str, ...]:
    values = tuple(values)
    if len(values) != 6:
        raise ValueError(f"Invalid palette: sextant values must have exactly 6 elements, got {len(values)}")
    return values


def _is_discrete(breaks) -> bool:
    return breaks is not None and math.isfinite(breaks) and breaks < CONTINUOUS_BREAKS_THRESHOLD


# ----------------------------
# Modular pipeline
# ----------------------------

Step = Callable[[np.ndarray, Dict[str, Any]], np.ndarray]


class Pipeline:
    def __init__(self) -> None:
        self.steps: List[Step] = []

    def add(self, step: Step) -> "Pipeline":
        self.steps.append(step)
        return self

    def run(self, P: np.ndarray, return_debug: bool = False) -> Union[np.ndarray, Tuple[np.ndarray, Dict[str, Any]]]:
        dbg: Dict[str, Any] = {}
        out = P
        for s in self.steps:
            out = s(out, dbg)
        return (out, dbg) if return_debug else out


def step_discretize(breaks: int) -> Step:
    """Snap every composition to the nearest centroid of a `breaks`-row mesh."""
    centroids = ternary_mesh_centroids(breaks)

    def _step(P: np.ndarray, dbg: Dict[str, Any]) -> np.ndarray:
        if dbg is not None:
            dbg.update({
                "discrete": True,
                "breaks": int(breaks),
                "n_centroids": int(centroids.shape[0]),
            })
        return ternary_nearest(P, centroids)

    return _step


def step_recenter(center: Center) -> Step:
    """Perturb by the reciprocal of `center`, moving it to the barycenter."""
    with np.errstate(divide="ignore"):
        inv = 1.0 / np.asarray(center, dtype=np.float64)

    def _step(P: np.ndarray, dbg: Dict[str, Any]) -> np.ndarray:
        if dbg is not None:
            dbg["center"] = tuple(float(v) for v in center)
        return perturbe(P, inv)

    return _step


def step_power_scale(spread: float) -> Step:
    def _step(P: np.ndarray, dbg: Dict[str, Any]) -> np.ndarray:
        if dbg is not None:
            dbg["spread"] = float(spread)
        return power_scale(P, spread)
    return _step


# ----------------------------
# Configuration
# ----------------------------

@dataclass
class TricoloreConfig:
    center: Center = DEFAULT_CENTER
    breaks: Optional[float] = 4  # None or inf for a continuous scale
    hue: float = 80.0  # degrees, primary hue of p1
    chroma: float = 140.0  # max chroma
    lightness: float = 80.0
    contrast: float = 0.4  # 0: flat lightness, 1: lightness follows chroma
    spread: float = 1.0  # >1 pushes colors away from the center

    def __post_init__(self) -> None:
        self.center = _check_center(self.center)
        if self.breaks is not None:
            self.breaks = float(self.breaks)
            if math.isnan(self.breaks):
                raise ValueError("breaks must be a number, None or inf")
        if self.is_discrete and (self.breaks < 1 or not self.breaks.is_integer()):
            raise ValueError(f"discrete breaks must be an integer >= 1, got {self.breaks:g}")
        if not (math.isfinite(self.chroma) and self.chroma > 0.0):
            raise ValueError(f"chroma must be positive, got {self.chroma}")
        if not (math.isfinite(self.spread) and self.spread > 0.0):
            raise ValueError(f"spread must be positive, got {self.spread}")

    @property
    def is_discrete(self) -> bool:
        return _is_discrete(self.breaks)

    def build_pipeline(self) -> Pipeline:
        p = Pipeline()
        if self.is_discrete:
            p.add(step_discretize(int(self.breaks)))
        p.add(step_recenter(self.center))
        p.add(step_power_scale(self.spread))
        return p


@dataclass
class SextantConfig:
    center: Center = DEFAULT_CENTER
    values: Sequence[str] = DEFAULT_SEXTANT_VALUES

    def __post_init__(self) -> None:
        self.center = _check_center(self.center)
        self.values = _check_sextant_values(self.values)


def _resolve(cfg, cls, overrides: Dict[str, Any]):
    cfg = cls() if cfg is None else cfg
    return dataclasses.replace(cfg, **overrides) if overrides else cfg


# ----------------------------
# Color mapping
# ----------------------------

def process_compositions(
    P,
    cfg: TricoloreConfig,
    *,
    return_debug: bool = False,
) -> Union[List[TricoloreResult], Tuple[List[TricoloreResult], Dict[str, Any]]]:
    """
    Balance-scheme colors for every composition, in input order.

    Records report the closed input parts (before snapping to the mesh);
    rows without a value report their raw parts and None color fields.
    """
    raw = as_compositions(P)
    reported = close(raw)
    closed = close(raw)

    scaled, dbg = cfg.build_pipeline().run(closed, return_debug=True)
    dbg.setdefault("discrete", False)
    dbg["breaks"] = dbg.get("breaks", cfg.breaks)

    h, c, l = mix_hues(scaled, cfg.hue, cfg.chroma, cfg.lightness, cfg.contrast)
    hexes = hcl_to_hex_batch(h, c, l)
    bad = invalid_mask(scaled)
    dbg["n"] = int(raw.shape[0])
    dbg["n_invalid"] = int(bad.sum())

    out: List[TricoloreResult] = []
    for i in range(raw.shape[0]):
        if bad[i]:
            out.append(TricoloreResult(*(float(v) for v in raw[i])))
            continue
        p = reported[i]
        out.append(TricoloreResult(
            float(p[0]), float(p[1]), float(p[2]),
            h=float(h[i]), c=float(c[i]), l=float(l[i]), rgb=hexes[i],
        ))
    return (out, dbg) if return_debug else out


def color_map_tricolore(
    P,
    center=DEFAULT_CENTER,
    breaks: Optional[float] = 4,
    hue: float = 80.0,
    chroma: float = 140.0,
    lightness: float = 80.0,
    contrast: float = 0.4,
    spread: float = 1.0,
) -> List[TricoloreResult]:
    cfg = TricoloreConfig(
        center=center,
        breaks=breaks,
        hue=hue,
        chroma=chroma,
        lightness=lightness,
        contrast=contrast,
        spread=spread,
    )
    return process_compositions(P, cfg)


def color_map_sextant(P, center=DEFAULT_CENTER, values=DEFAULT_SEXTANT_VALUES) -> List[SextantResult]:
    """
    Sextant-scheme colors: values[s-1] for a composition in sextant s.

    Compositions on the center lines get sextant None and rgb None.
    """
    values = _check_sextant_values(values)

    raw = as_compositions(P)
    closed = close(raw)
    ids = ternary_surrounding_sextant(closed, center)
    bad = invalid_mask(closed)

    out: List[SextantResult] = []
    for i in range(raw.shape[0]):
        if bad[i]:
            out.append(SextantResult(*(float(v) for v in raw[i])))
            continue
        p = closed[i]
        sid = int(ids[i])
        if sid == SEXTANT_UNDEFINED:
            out.append(SextantResult(float(p[0]), float(p[1]), float(p[2])))
        else:
            out.append(SextantResult(float(p[0]), float(p[1]), float(p[2]), sextant=sid, rgb=values[sid - 1]))
    return out


# ----------------------------
# High-level API
# ----------------------------

def tricolore_detailed(data, cfg: Optional[TricoloreConfig] = None, **overrides) -> List[TricoloreResult]:
    cfg = _resolve(cfg, TricoloreConfig, overrides)
    return process_compositions(data, cfg)


def tricolore(data, cfg: Optional[TricoloreConfig] = None, **overrides) -> List[Optional[str]]:
    return [r.rgb for r in tricolore_detailed(data, cfg, **overrides)]


def tricolore_sextant_detailed(data, cfg: Optional[SextantConfig] = None, **overrides) -> List[SextantResult]:
    cfg = _resolve(cfg, SextantConfig, overrides)
    return color_map_sextant(data, cfg.center, cfg.values)


def tricolore_sextant(data, cfg: Optional[SextantConfig] = None, **overrides) -> List[Optional[str]]:
    return [r.rgb for r in tricolore_sextant_detailed(data, cfg, **overrides)]


# ----------------------------
# Legend keys
# ----------------------------

def _polygon_record(pid: int, rgb: Optional[str], verts: np.ndarray) -> Dict[str, Any]:
    return {
        "id": pid,
        "rgb": rgb,
        "vertices": verts.tolist(),
        "xy": ternary_to_cartesian(verts).tolist(),
    }


def tricolore_key(cfg: Optional[TricoloreConfig] = None, **overrides) -> List[Dict[str, Any]]:
    """
    Mesh polygons of the color key, one record per cell:
    {"id", "rgb", "vertices" (3x3 barycentric), "xy" (3x2 cartesian)}.

    Cells are colored from their centroids on a continuous scale; a
    continuous config is drawn on a KEY_CONTINUOUS_BREAKS-row mesh.
    """
    cfg = _resolve(cfg, TricoloreConfig, overrides)
    k = int(cfg.breaks) if cfg.is_discrete else KEY_CONTINUOUS_BREAKS
    centroids = ternary_mesh_centroids(k)
    verts = ternary_mesh_vertices(centroids)
    colors = process_compositions(centroids, dataclasses.replace(cfg, breaks=None))
    return [_polygon_record(i + 1, colors[i].rgb, verts[i]) for i in range(centroids.shape[0])]


def sextant_key(cfg: Optional[SextantConfig] = None, **overrides) -> List[Dict[str, Any]]:
    """Sextant polygons of the color key, one record per sextant (closed rings)."""
    cfg = _resolve(cfg, SextantConfig, overrides)
    polygons = ternary_sextant_vertices(cfg.center)
    return [_polygon_record(i + 1, cfg.values[i], poly) for i, poly in enumerate(polygons)]


# ----------------------------
# CLI
# ----------------------------

def load_compositions_csv(path: str, columns: Optional[List[str]] = None, delimiter: str = ",") -> np.ndarray:
    """
    Read three composition columns from a CSV with a header row.

    Empty or non-numeric cells become NaN, so their rows carry no value.
    Header names are kept as written, minus surrounding whitespace.
    """
    src = sys.stdin if path == "-" else path
    table = np.atleast_1d(np.genfromtxt(
        src, delimiter=delimiter, names=True, dtype=np.float64, encoding="utf-8",
        deletechars="", replace_space=" ",
    ))
    names = list(table.dtype.names or ())
    if columns is None:
        if len(names) < 3:
            raise ValueError(f"CSV needs at least 3 columns, got {names}")
        columns = names[:3]
    missing = [c for c in columns if c not in names]
    if missing:
        raise ValueError(f"Unknown columns {missing}. Available: {', '.join(names)}")
    if len(columns) != 3:
        raise ValueError(f"Exactly 3 columns are needed, got {columns}")
    return np.stack([np.asarray(table[c], dtype=np.float64) for c in columns], axis=1)


def _parse_center(s: str) -> Union[str, Center]:
    if s.strip().lower() == "auto":
        return "auto"
    parts = [x.strip() for x in s.split(",") if x.strip()]
    if len(parts) != 3:
        raise argparse.ArgumentTypeError("center must be 'auto' or P1,P2,P3, e.g. 0.5,0.3,0.2")
    try:
        return float(parts[0]), float(parts[1]), float(parts[2])
    except ValueError as exc:
        raise argparse.ArgumentTypeError("center must hold numeric values") from exc


def _parse_breaks(s: str) -> Optional[float]:
    if s.strip().lower() in ("inf", "none", "continuous"):
        return None
    try:
        return float(s)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("breaks must be a number or 'inf'") from exc


def _parse_values(s: str) -> Tuple[str, ...]:
    parts = [x.strip() for x in s.split(",") if x.strip()]
    try:
        return tuple(parse_color_spec(x) for x in parts)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _fmt(v: Any) -> str:
    if v is None:
        return "NA"
    if isinstance(v, float):
        return f"{v:.6g}"
    return str(v)


def _json_record(r) -> Dict[str, Any]:
    # JSON has no NaN; missing parts are written as null
    return {
        k: (None if isinstance(v, float) and not math.isfinite(v) else v)
        for k, v in dataclasses.asdict(r).items()
    }


def _cli_export_results(results: list, *, fmt: str, detailed: bool) -> str:
    if fmt == "json":
        if detailed:
            return json.dumps([_json_record(r) for r in results], indent=2, allow_nan=False) + "\n"
        return json.dumps([r.rgb for r in results], indent=2, allow_nan=False) + "\n"

    if not detailed:
        lines = [_fmt(r.rgb) for r in results]
        if fmt == "tsv":
            lines = ["rgb"] + lines
        return "\n".join(lines) + ("\n" if lines else "")

    fields = [f.name for f in dataclasses.fields(results[0])] if results else ["rgb"]
    sep = "\t" if fmt == "tsv" else " "
    out = [sep.join(fields)] if fmt == "tsv" else []
    out += [sep.join(_fmt(getattr(r, f)) for f in fields) for r in results]
    return "\n".join(out) + ("\n" if out else "")


def main(argv=None) -> int:
    p = argparse.ArgumentParser(prog="tricolore.py", description="Color-code ternary compositions.")
    p.add_argument("input", nargs="?", help="CSV with a header row ('-' for stdin).")
    p.add_argument("--columns", help="Three comma-separated column names (default: first three).")
    p.add_argument("--delimiter", default=",", help="CSV delimiter (default ',').")

    p.add_argument("--mode", default="tricolore", choices=["tricolore", "sextant"])
    p.add_argument("--export", choices=["colors", "key"], default="colors",
                   help="colors: one color per input row; key: legend polygons as JSON.")
    p.add_argument("--format", default="lines", choices=["lines", "tsv", "json"],
                   help="Output format for colors (default: lines).")
    p.add_argument("--detailed", action="store_true", help="Include parts and HCL / sextant fields.")
    p.add_argument("--dump", action="store_true", help="Print pipeline debug info to stderr.")

    p.add_argument("--center", type=_parse_center, default=DEFAULT_CENTER,
                   help="P1,P2,P3 or 'auto' (compositional center of the data).")
    p.add_argument("--breaks", type=_parse_breaks, default=4, help="Mesh rows, or 'inf' for continuous.")
    p.add_argument("--hue", type=float, default=80.0)
    p.add_argument("--chroma", type=float, default=140.0)
    p.add_argument("--lightness", type=float, default=80.0)
    p.add_argument("--contrast", type=float, default=0.4)
    p.add_argument("--spread", type=float, default=1.0)
    p.add_argument("--values", type=_parse_values, default=DEFAULT_SEXTANT_VALUES,
                   help="Six comma-separated hex colors for the sextant mode.")

    args = p.parse_args(argv)

    data = None
    if args.input:
        columns = [c.strip() for c in args.columns.split(",")] if args.columns else None
        try:
            data = load_compositions_csv(args.input, columns=columns, delimiter=args.delimiter)
        except (OSError, ValueError) as exc:
            p.error(str(exc))
    elif args.export == "colors":
        p.error("colors export requires an INPUT csv")

    center = args.center
    if center == "auto":
        if data is None:
            p.error("--center auto requires an INPUT csv")
        center = tuple(float(v) for v in centre(close(data)))

    try:
        if args.mode == "sextant":
            cfg = SextantConfig(center=center, values=args.values)
        else:
            cfg = TricoloreConfig(
                center=center,
                breaks=args.breaks,
                hue=args.hue,
                chroma=args.chroma,
                lightness=args.lightness,
                contrast=args.contrast,
                spread=args.spread,
            )
    except ValueError as exc:
        p.error(str(exc))

    if args.export == "key":
        key = sextant_key(cfg) if args.mode == "sextant" else tricolore_key(cfg)
        sys.stdout.write(json.dumps(key) + "\n")
        return 0

    if args.mode == "sextant":
        results = tricolore_sextant_detailed(data, cfg)
        dbg = {"center": cfg.center, "n": len(results),
               "n_unassigned": sum(r.sextant is None for r in results)}
    else:
        if cfg.is_discrete:
            warmup_ternary_kernels()
        results, dbg = process_compositions(data, cfg, return_debug=True)

    if args.dump:
        for k in sorted(dbg.keys()):
            print(f"{k}: {dbg[k]}", file=sys.stderr)

    sys.stdout.write(_cli_export_results(results, fmt=args.format, detailed=args.detailed))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
