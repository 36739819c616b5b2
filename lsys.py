#!/usr/bin/env python3
"""lsys.py

Render 2D L-systems to SVG.

The pipeline has three stages:
- Grammar expansion: the axiom is rewritten in lock-step, one generation
  built from the previous one, for a fixed number of iterations.
- Turtle interpretation: the expanded word drives a cursor that emits one
  line segment per draw-symbol and supports branching via push/pop.
- Viewport fitting: the drawing is scaled uniformly and centered inside the
  canvas, then written out as SVG polylines.

Run:
  python lsys.py draw F F 90 4 "F=>F+F-F-F+F" -o koch.svg
  python lsys.py render example/plant.json -o plant.svg
  python lsys.py preset hilbert --width 200 --height 200 -o hilbert.svg
  python lsys.py --help
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import os
import sys
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, TextIO, cast

logger = logging.getLogger(__name__)

Point = tuple[float, float]
Segment = tuple[Point, Point]

CONTROL_SYMBOLS = frozenset("+-|[]")
RULE_SEPARATOR = "=>"
SVG_UNITS = ("px", "mm", "cm", "in", "pt", "pc")


# -------------------------
# Errors / Validation
# -------------------------


class ConfigError(ValueError):
    pass


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigError(msg)


def _as_float(x: Any, path: str) -> float:
    _require(
        isinstance(x, (int, float)) and not isinstance(x, bool),
        f"{path} must be a number",
    )
    try:
        value = float(x)
    except OverflowError as e:
        raise ConfigError(f"{path} is out of range") from e
    _require(math.isfinite(value), f"{path} must be finite")
    return value


def _as_int(x: Any, path: str) -> int:
    _require(
        isinstance(x, int) and not isinstance(x, bool), f"{path} must be an integer"
    )
    return int(x)


def _as_str(x: Any, path: str) -> str:
    _require(isinstance(x, str), f"{path} must be a string")
    return cast(str, x)


def _as_bool(x: Any, path: str) -> bool:
    _require(isinstance(x, bool), f"{path} must be a boolean")
    return cast(bool, x)


def _as_dict(x: Any, path: str) -> dict[str, Any]:
    _require(isinstance(x, dict), f"{path} must be an object")
    return cast(dict[str, Any], x)


# -------------------------
# Grammar engine
# -------------------------


def parse_rule(text: str) -> tuple[str, str]:
    """Parse one ``"X=>replacement"`` rule string."""
    symbol, sep, replacement = text.partition(RULE_SEPARATOR)
    _require(sep == RULE_SEPARATOR, f"rule {text!r} must contain '=>'")
    _require(
        len(symbol) == 1, f"rule {text!r}: '=>' must be preceded by a single character"
    )
    _require(
        len(replacement) > 0, f"rule {text!r}: '=>' must be followed by a replacement"
    )
    return symbol, replacement


def parse_rules(texts: Iterable[str]) -> dict[str, str]:
    rules: dict[str, str] = {}
    for text in texts:
        symbol, replacement = parse_rule(text)
        _require(symbol not in rules, f"duplicate rule for {symbol!r}")
        rules[symbol] = replacement
    return rules


def rewrite(word: str, rules: Mapping[str, str]) -> str:
    """Produce the next generation: every symbol is replaced simultaneously.

    Symbols without a rule are copied through unchanged.
    """
    get = rules.get
    return "".join([get(ch, ch) for ch in word])


def expand(axiom: str, rules: Mapping[str, str], iterations: int) -> str:
    _require(iterations >= 0, "iterations must be >= 0")
    word = axiom
    if not rules:
        return word
    for i in range(iterations):
        word = rewrite(word, rules)
        logger.debug("generation %d: %d symbols", i + 1, len(word))
    return word


def expanded_length(axiom: str, rules: Mapping[str, str], iterations: int) -> int:
    """Length of ``expand(axiom, rules, iterations)`` without building it.

    Tracks, per rule symbol, how long its expansion is after k iterations.
    Symbols without a rule always have length 1.
    """
    _require(iterations >= 0, "iterations must be >= 0")
    lengths: dict[str, int] = {}
    for _ in range(iterations):
        lengths = {
            symbol: sum(lengths.get(ch, 1) for ch in replacement)
            for symbol, replacement in rules.items()
        }
    return sum(lengths.get(ch, 1) for ch in axiom)


@dataclass(frozen=True)
class Grammar:
    axiom: str
    rules: Mapping[str, str] = field(default_factory=dict)
    iterations: int = 0

    def __post_init__(self) -> None:
        _require(isinstance(self.axiom, str), "axiom must be a string")
        _require(
            isinstance(self.iterations, int) and not isinstance(self.iterations, bool),
            "iterations must be an integer",
        )
        _require(self.iterations >= 0, "iterations must be >= 0")
        for symbol, replacement in self.rules.items():
            _require(
                isinstance(symbol, str) and len(symbol) == 1,
                f"rule symbol {symbol!r} must be a single character",
            )
            _require(
                isinstance(replacement, str),
                f"replacement for {symbol!r} must be a string",
            )
        # Snapshot the rules so later changes to the caller's dict can't leak in.
        object.__setattr__(self, "rules", MappingProxyType(dict(self.rules)))

    @classmethod
    def from_strings(cls, axiom: str, rules: Iterable[str], iterations: int) -> Grammar:
        return cls(axiom=axiom, rules=parse_rules(rules), iterations=iterations)

    def expand(self) -> str:
        return expand(self.axiom, self.rules, self.iterations)

    def expanded_length(self) -> int:
        return expanded_length(self.axiom, self.rules, self.iterations)


# -------------------------
# Turtle interpreter
# -------------------------


@dataclass(frozen=True)
class Cursor:
    """Turtle position and heading in drawing space.

    Drawing space is Cartesian (Y grows upward). A heading of 0 degrees
    points along +X and 90 degrees along +Y; the default cursor points up.
    """

    x: float = 0.0
    y: float = 0.0
    heading_deg: float = 90.0

    @property
    def position(self) -> Point:
        return (self.x, self.y)

    def forward(self, step: float) -> Cursor:
        rad = math.radians(self.heading_deg)
        return Cursor(
            self.x + step * math.cos(rad),
            self.y + step * math.sin(rad),
            self.heading_deg,
        )

    def turn(self, delta_deg: float) -> Cursor:
        return Cursor(self.x, self.y, self.heading_deg + delta_deg)


@dataclass
class TurtleResult:
    segments: list[Segment]
    cursor: Cursor
    unbalanced_pops: int = 0


def interpret(
    symbols: Iterable[str],
    draw: Collection[str],
    angle_deg: float,
    *,
    step: float = 1.0,
    start: Cursor | None = None,
) -> TurtleResult:
    """Walk ``symbols`` left to right and collect the drawn segments.

    - a symbol in ``draw``: move forward one step and emit a segment
    - ``+`` / ``-``: turn by +angle_deg / -angle_deg (counter-clockwise is +)
    - ``|``: negate the heading (mirror it across the X axis)
    - ``[`` / ``]``: push / pop the cursor
    - anything else: ignored

    Draw-set membership is checked first, so a control character listed in
    ``draw`` draws instead of acting as a control. A ``]`` with nothing to pop
    leaves the cursor unchanged and is reported once as a warning.
    """
    _require(math.isfinite(step) and step > 0, "step must be > 0")
    _require(math.isfinite(angle_deg), "angle must be finite")

    cursor = start if start is not None else Cursor()
    stack: list[Cursor] = []
    segments: list[Segment] = []
    ignored_pops = 0

    for sym in symbols:
        if sym in draw:
            moved = cursor.forward(step)
            segments.append((cursor.position, moved.position))
            cursor = moved
        elif sym == "+":
            cursor = cursor.turn(angle_deg)
        elif sym == "-":
            cursor = cursor.turn(-angle_deg)
        elif sym == "|":
            cursor = Cursor(cursor.x, cursor.y, -cursor.heading_deg)
        elif sym == "[":
            stack.append(cursor)
        elif sym == "]":
            if stack:
                cursor = stack.pop()
            else:
                ignored_pops += 1

    if ignored_pops:
        logger.warning("ignored %d unbalanced ']' with an empty stack", ignored_pops)
    if stack:
        logger.debug("%d unclosed '[' left on the stack", len(stack))

    return TurtleResult(segments=segments, cursor=cursor, unbalanced_pops=ignored_pops)


# -------------------------
# Viewport fitting
# -------------------------


@dataclass(frozen=True)
class CanvasSpec:
    """Target canvas. ``margin`` is a fraction of the smaller side."""

    width: float
    height: float
    margin: float = 0.05
    units: str = "mm"

    def __post_init__(self) -> None:
        for name in ("width", "height", "margin"):
            _as_float(getattr(self, name), f"canvas {name}")
        _require(self.width > 0, "canvas width must be > 0")
        _require(self.height > 0, "canvas height must be > 0")
        _require(0 <= self.margin < 0.5, "canvas margin must be in [0, 0.5)")
        _require(
            self.units in SVG_UNITS,
            f"canvas units must be one of {', '.join(SVG_UNITS)}",
        )

    @property
    def margin_size(self) -> float:
        return self.margin * min(self.width, self.height)

    @property
    def center(self) -> Point:
        return (self.width / 2, self.height / 2)


@dataclass(frozen=True)
class BoundingBox:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Point:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)


def compute_bounds(segments: Iterable[Segment]) -> BoundingBox | None:
    """Axis-aligned bounds of all endpoints, or None when there are none."""
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for segment in segments:
        for x, y in segment:
            if x < min_x:
                min_x = x
            if x > max_x:
                max_x = x
            if y < min_y:
                min_y = y
            if y > max_y:
                max_y = y
    if min_x > max_x:
        return None
    return BoundingBox(min_x, min_y, max_x, max_y)


@dataclass(frozen=True)
class ViewportTransform:
    """Uniform scale, optional Y flip, then translation."""

    scale: float
    offset_x: float
    offset_y: float
    flip_y: bool = True

    def apply(self, point: Point) -> Point:
        x, y = point
        if self.flip_y:
            y = -y
        return (x * self.scale + self.offset_x, y * self.scale + self.offset_y)


def fit_transform(
    bounds: BoundingBox | None, canvas: CanvasSpec, *, flip_y: bool = True
) -> ViewportTransform:
    cx, cy = canvas.center
    if bounds is None:
        # Nothing to fit: drawing-space origin lands on the canvas center.
        return ViewportTransform(1.0, cx, cy, flip_y)

    inner_w = canvas.width - 2 * canvas.margin_size
    inner_h = canvas.height - 2 * canvas.margin_size
    sx = inner_w / bounds.width if bounds.width > 0 else None
    sy = inner_h / bounds.height if bounds.height > 0 else None
    if sx is not None and sy is not None:
        scale = min(sx, sy)
    elif sx is not None:
        scale = sx
    elif sy is not None:
        scale = sy
    else:
        scale = 1.0

    bx, by = bounds.center
    if flip_y:
        by = -by
    return ViewportTransform(scale, cx - bx * scale, cy - by * scale, flip_y)


def fit_segments(
    segments: list[Segment], canvas: CanvasSpec, *, flip_y: bool = True
) -> list[Segment]:
    """Map drawing-space segments into canvas space, centered with margin."""
    transform = fit_transform(compute_bounds(segments), canvas, flip_y=flip_y)
    logger.debug(
        "viewport: scale=%g offset=(%g, %g) flip_y=%s",
        transform.scale,
        transform.offset_x,
        transform.offset_y,
        flip_y,
    )
    apply = transform.apply
    return [(apply(start), apply(end)) for start, end in segments]


# -------------------------
# Pipeline
# -------------------------


@dataclass(frozen=True)
class LSystem:
    grammar: Grammar
    draw: frozenset[str]
    angle: float

    @classmethod
    def from_strings(
        cls,
        axiom: str,
        rules: Iterable[str],
        draw: Iterable[str],
        angle: float,
        iterations: int,
    ) -> LSystem:
        return cls(
            grammar=Grammar.from_strings(axiom, rules, iterations),
            draw=frozenset(draw),
            angle=float(angle),
        )

    def expand(self) -> str:
        return self.grammar.expand()

    def interpret(self, *, step: float = 1.0) -> TurtleResult:
        return interpret(self.expand(), self.draw, self.angle, step=step)

    def segments(self, *, step: float = 1.0) -> list[Segment]:
        return self.interpret(step=step).segments

    def fit(self, canvas: CanvasSpec, *, flip_y: bool = True) -> list[Segment]:
        return fit_segments(self.segments(), canvas, flip_y=flip_y)


def check_symbols(lsystem: LSystem) -> None:
    """Log notes about symbols that are probably configuration mistakes."""
    grammar = lsystem.grammar
    seen = set(grammar.axiom)
    seen.update(grammar.rules)
    for replacement in grammar.rules.values():
        seen.update(replacement)

    for sym in sorted(set(grammar.axiom) | lsystem.draw):
        if sym not in grammar.rules and sym not in CONTROL_SYMBOLS:
            logger.info(
                "no rule for %r; assuming self-replacement (%s=>%s)", sym, sym, sym
            )
    for sym in sorted(lsystem.draw - seen):
        logger.warning("draw symbol %r never occurs in the axiom or rules", sym)
    for sym in sorted(lsystem.draw & CONTROL_SYMBOLS):
        logger.warning("draw symbol %r is also a control symbol; it will draw", sym)


# -------------------------
# SVG writing
# -------------------------


@dataclass(frozen=True)
class SvgStyle:
    stroke: str = "#000"
    # None means 0.1% of the smaller canvas side.
    stroke_width: float | None = None
    fill: str = "none"
    stroke_linecap: str = "round"
    stroke_linejoin: str = "round"


def default_stroke_width(canvas: CanvasSpec) -> float:
    return min(canvas.width, canvas.height) * 0.001


def chain_segments(segments: Iterable[Segment]) -> list[list[Point]]:
    """Join segments into polylines where each starts at the previous end."""
    polylines: list[list[Point]] = []
    for start, end in segments:
        if polylines and polylines[-1][-1] == start:
            polylines[-1].append(end)
        else:
            polylines.append([start, end])
    return polylines


def _ensure_parent_dir(path: str) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)) or ".", exist_ok=True)


def _fmt(x: float, precision: int) -> str:
    s = f"{x:.{precision}f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    # Normalise -0 so it never shows up in the output.
    if s in ("-0", ""):
        s = "0"
    return s


def _escape(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def render_svg(
    segments: list[Segment],
    canvas: CanvasSpec,
    *,
    style: SvgStyle | None = None,
    precision: int = 3,
    background: str | None = None,
    title: str | None = None,
) -> str:
    """Serialise canvas-space segments as an SVG document."""
    _require(0 <= precision <= 10, "precision must be between 0 and 10")
    if style is None:
        style = SvgStyle()
    stroke_width = style.stroke_width
    if stroke_width is None:
        stroke_width = default_stroke_width(canvas)
    _require(stroke_width > 0, "stroke width must be > 0")

    w = _fmt(canvas.width, precision)
    h = _fmt(canvas.height, precision)

    lines: list[str] = []
    lines.append('<?xml version="1.0" encoding="UTF-8"?>')
    lines.append(
        "<svg xmlns=\"http://www.w3.org/2000/svg\" version=\"1.1\" "
        f"width=\"{w}{canvas.units}\" height=\"{h}{canvas.units}\" "
        f"viewBox=\"0 0 {w} {h}\">"
    )

    if title:
        lines.append(f"  <title>{_escape(title)}</title>")

    if background and background.lower() != "none":
        lines.append(
            f'  <rect x="0" y="0" width="{w}" height="{h}" '
            f'fill="{_escape(background)}" />'
        )

    polylines = chain_segments(segments)
    if polylines:
        lines.append(
            f'  <g stroke="{_escape(style.stroke)}" '
            f'stroke-width="{_fmt(stroke_width, precision)}" '
            f'fill="{_escape(style.fill)}" '
            f'stroke-linecap="{_escape(style.stroke_linecap)}" '
            f'stroke-linejoin="{_escape(style.stroke_linejoin)}">'
        )
        for pl in polylines:
            pts = " ".join(f"{_fmt(x, precision)},{_fmt(y, precision)}" for x, y in pl)
            lines.append(f'    <polyline points="{pts}" />')
        lines.append("  </g>")

    lines.append("</svg>")
    return "\n".join(lines) + "\n"


def write_svg(
    segments: list[Segment],
    canvas: CanvasSpec,
    *,
    out: str | TextIO,
    style: SvgStyle | None = None,
    precision: int = 3,
    background: str | None = None,
    title: str | None = None,
) -> None:
    document = render_svg(
        segments,
        canvas,
        style=style,
        precision=precision,
        background=background,
        title=title,
    )
    if isinstance(out, str):
        _ensure_parent_dir(out)
        with open(out, "w", encoding="utf-8") as f:
            f.write(document)
        logger.info("wrote %d segments to %s", len(segments), out)
    else:
        out.write(document)


# -------------------------
# Config parsing
# -------------------------


@dataclass(frozen=True)
class RenderConfig:
    name: str
    lsystem: LSystem
    canvas: CanvasSpec
    flip_y: bool = True
    precision: int = 3
    style: SvgStyle = field(default_factory=SvgStyle)
    background: str | None = None


def _parse_rules_field(value: Any) -> dict[str, str]:
    if isinstance(value, list):
        texts = [_as_str(v, f"rules[{i}]") for i, v in enumerate(value)]
        return parse_rules(texts)
    rules_obj = _as_dict(value, "rules")
    rules: dict[str, str] = {}
    for k, v in rules_obj.items():
        _require(len(k) == 1, "rules keys must be single-character strings")
        replacement = _as_str(v, f"rules['{k}']")
        _require(len(replacement) > 0, f"rules['{k}'] must be non-empty")
        rules[k] = replacement
    return rules


def parse_config(obj: dict[str, Any]) -> RenderConfig:
    obj = _as_dict(obj, "root")

    name = _as_str(obj.get("name", "L-System"), "name")
    axiom = _as_str(obj.get("axiom", ""), "axiom")
    iterations = _as_int(obj.get("iterations", 0), "iterations")
    _require(iterations >= 0, "iterations must be >= 0")
    rules = _parse_rules_field(obj.get("rules", {}))
    draw = _as_str(obj.get("draw", "F"), "draw")
    angle = _as_float(obj.get("angle", 90), "angle")

    svg = _as_dict(obj.get("svg", {}), "svg")
    units = _as_str(svg.get("units", "mm"), "svg.units")
    _require(units in SVG_UNITS, f"svg.units must be one of {', '.join(SVG_UNITS)}")
    canvas = CanvasSpec(
        width=_as_float(svg.get("width", 100), "svg.width"),
        height=_as_float(svg.get("height", 100), "svg.height"),
        margin=_as_float(svg.get("margin", 0.05), "svg.margin"),
        units=units,
    )

    precision = _as_int(svg.get("precision", 3), "svg.precision")
    _require(0 <= precision <= 10, "svg.precision must be between 0 and 10")
    flip_y = _as_bool(svg.get("flip_y", True), "svg.flip_y")

    stroke_width = svg.get("stroke_width")
    if stroke_width is not None:
        stroke_width = _as_float(stroke_width, "svg.stroke_width")
        _require(stroke_width > 0, "svg.stroke_width must be > 0")
    style = SvgStyle(
        stroke=_as_str(svg.get("stroke", "#000"), "svg.stroke"),
        stroke_width=stroke_width,
    )

    background = svg.get("background")
    if background is not None:
        background = _as_str(background, "svg.background")

    return RenderConfig(
        name=name,
        lsystem=LSystem(
            grammar=Grammar(axiom=axiom, rules=rules, iterations=iterations),
            draw=frozenset(draw),
            angle=angle,
        ),
        canvas=canvas,
        flip_y=flip_y,
        precision=precision,
        style=style,
        background=background,
    )


def load_json(path: str) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        try:
            return cast(dict[str, Any], json.load(f))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e


# -------------------------
# Presets
# -------------------------


@dataclass(frozen=True)
class Preset:
    name: str
    axiom: str
    draw: str
    rules: tuple[str, ...]
    angle: float
    iterations: int

    def to_lsystem(self, iterations: int | None = None) -> LSystem:
        if iterations is None:
            iterations = self.iterations
        return LSystem.from_strings(
            self.axiom, self.rules, self.draw, self.angle, iterations
        )


PRESETS: tuple[Preset, ...] = (
    Preset("Koch", "F", "F", ("F=>F+F-F-F+F",), 90, 4),
    Preset("Sierpinski Triangle", "F-G-G", "FG", ("F=>F-G+F+G-F", "G=>GG"), 120, 6),
    Preset("Sierpinski Arrowhead", "A", "AB", ("A=>B-A-B", "B=>A+B+A"), 60, 7),
    Preset("Dragon", "FX", "F", ("X=>X+YF+", "Y=>-FX-Y", "F=>F"), 90, 12),
    Preset("Plant", "X", "F", ("X=>F-[[X]+X]+F[+FX]-X", "F=>FF"), 25, 5),
    Preset(
        "Moore",
        "LFL+F+LFL",
        "F",
        ("L=>-RF+LFL+FR-", "R=>+LF-RFR-FL+", "F=>F"),
        90,
        5,
    ),
    Preset("Hilbert", "A", "F", ("A=>-BF+AFA+FB-", "B=>+AF-BFB-FA+", "F=>F"), 90, 6),
    Preset("Sierpinski Carpet", "F+F+F+F", "F", ("F=>FF+F+F+F+FF",), 90, 4),
    Preset("Snowflake", "F++F++F", "F", ("F=>F-F++F-F",), 60, 4),
    Preset(
        "Gosper",
        "XF",
        "F",
        ("X=>X+YF++YF-FX--FXFX-YF+", "Y=>-FX+YFYF++YF+FX--FX-Y", "F=>F"),
        60,
        5,
    ),
    Preset(
        "Kolam",
        "-D--D",
        "F",
        (
            "A=>F++FFFF--F--FFFF++F++FFFF--F",
            "B=>F--FFFF++F++FFFF--F--FFFF++F",
            "C=>BFA--BFA",
            "D=>CFC--CFC",
            "F=>F",
        ),
        45,
        7,
    ),
    Preset("Crystal", "F+F+F+F", "F", ("F=>FF+F++F+F",), 90, 4),
)


def _preset_key(name: str) -> str:
    return " ".join(name.lower().replace("-", " ").replace("_", " ").split())


def get_preset(name: str) -> Preset:
    key = _preset_key(name)
    for preset in PRESETS:
        if _preset_key(preset.name) == key:
            return preset
    raise ConfigError(
        f"unknown preset {name!r}; choose from: "
        + ", ".join(p.name for p in PRESETS)
    )


# -------------------------
# CLI / Help
# -------------------------

HELP_EPILOG = r"""
RULES

  Each rule is written SYMBOL=>REPLACEMENT, e.g. "F=>F+F-F-F+F".
  The left side must be a single character. Symbols without a rule
  rewrite to themselves.

TURTLE ALPHABET

  draw symbols   move forward one step and draw a segment
  +              turn counter-clockwise by the angle
  -              turn clockwise by the angle
  |              negate the heading (pointing up becomes pointing down)
  [              save the current position and heading
  ]              restore the last saved position and heading
                 (an unmatched ] is ignored with a warning)
  anything else  no effect on the drawing

  The turtle starts at the origin pointing up.

CANVAS

  The drawing is scaled uniformly and centered in a WIDTH x HEIGHT canvas
  with a margin of MARGIN times the smaller side on every edge.

Examples

  python lsys.py draw F F 90 4 "F=>F+F-F-F+F" -o koch.svg
  python lsys.py draw X F 25 5 "X=>F-[[X]+X]+F[+FX]-X" "F=>FF" -o plant.svg
  python lsys.py preset "sierpinski triangle" --width 297 --height 210 -o s.svg

  An axiom that starts with '-' must follow a '--' separator:

  python lsys.py draw --width 150 -- -D--D F 45 3 ...
"""

_VALIDATE_SYMBOL_LIMIT = 1_000_000


def _add_canvas_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--width", type=float, default=100.0, help="Canvas width.")
    p.add_argument("--height", type=float, default=100.0, help="Canvas height.")
    p.add_argument(
        "--units", choices=SVG_UNITS, default="mm", help="Canvas units (default mm)."
    )
    p.add_argument(
        "--margin",
        type=float,
        default=0.05,
        help="Margin as a fraction of the smaller canvas side (default 0.05).",
    )
    p.add_argument(
        "--stroke-width",
        type=float,
        default=None,
        help="Stroke width in canvas units (default 0.1%% of the smaller side).",
    )
    p.add_argument(
        "--precision", type=int, default=3, help="Coordinate decimals (default 3)."
    )
    p.add_argument(
        "--no-flip-y",
        dest="flip_y",
        action="store_false",
        help="Keep drawing-space Y pointing down the page.",
    )
    p.add_argument(
        "-o", "--out", default=None, help="Write the SVG here instead of stdout."
    )


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="lsys",
        description="Render 2D L-systems to SVG.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=HELP_EPILOG,
    )
    p.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    pd = sub.add_parser(
        "draw",
        help="Render an L-system given on the command line.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    pd.add_argument("axiom", help="Initial word.")
    pd.add_argument("draw", help="Symbols that draw a segment, e.g. 'FG'.")
    pd.add_argument("angle", type=float, help="Turn angle in degrees.")
    pd.add_argument("iterations", type=int, help="Number of rewriting steps.")
    pd.add_argument("rules", nargs="*", help="Rules such as 'F=>F+F'.")
    _add_canvas_arguments(pd)

    pr = sub.add_parser(
        "render",
        help="Render a JSON config to SVG.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    pr.add_argument("config", help="Path to the input JSON config.")
    pr.add_argument(
        "-o", "--out", default=None, help="Write the SVG here instead of stdout."
    )

    pv = sub.add_parser(
        "validate",
        help="Validate a JSON config and print a brief summary.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    pv.add_argument("config", help="Path to the input JSON config.")

    pp = sub.add_parser(
        "preset",
        help="Render a built-in L-system.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    pp.add_argument("name", help="Preset name (see 'presets').")
    pp.add_argument(
        "--iterations", type=int, default=None, help="Override the iteration count."
    )
    _add_canvas_arguments(pp)

    sub.add_parser("presets", help="List the built-in L-systems.")

    return p


# -------------------------
# Commands
# -------------------------


def _output(out: str | None) -> str | TextIO:
    return out if out is not None else sys.stdout


def _render(
    lsystem: LSystem,
    canvas: CanvasSpec,
    *,
    out: str | TextIO,
    flip_y: bool,
    precision: int,
    style: SvgStyle,
    background: str | None = None,
    title: str | None = None,
) -> None:
    check_symbols(lsystem)
    segments = lsystem.fit(canvas, flip_y=flip_y)
    if not segments:
        logger.info("no drawable geometry; writing an empty canvas")
    write_svg(
        segments,
        canvas,
        out=out,
        style=style,
        precision=precision,
        background=background,
        title=title,
    )


def _canvas_from_args(args: argparse.Namespace) -> CanvasSpec:
    return CanvasSpec(
        width=args.width, height=args.height, margin=args.margin, units=args.units
    )


def _style_from_args(args: argparse.Namespace) -> SvgStyle:
    if args.stroke_width is not None:
        _require(args.stroke_width > 0, "--stroke-width must be > 0")
    return SvgStyle(stroke_width=args.stroke_width)


def cmd_draw(args: argparse.Namespace) -> None:
    lsystem = LSystem.from_strings(
        args.axiom, args.rules, args.draw, args.angle, args.iterations
    )
    _render(
        lsystem,
        _canvas_from_args(args),
        out=_output(args.out),
        flip_y=args.flip_y,
        precision=args.precision,
        style=_style_from_args(args),
    )


def cmd_render(config_path: str, output_path: str | None) -> None:
    cfg = parse_config(load_json(config_path))
    _render(
        cfg.lsystem,
        cfg.canvas,
        out=_output(output_path),
        flip_y=cfg.flip_y,
        precision=cfg.precision,
        style=cfg.style,
        background=cfg.background,
        title=cfg.name,
    )


def cmd_validate(config_path: str) -> None:
    cfg = parse_config(load_json(config_path))
    grammar = cfg.lsystem.grammar
    check_symbols(cfg.lsystem)

    print(f"name: {cfg.name}")
    print(f"axiom length: {len(grammar.axiom)}")
    print(f"iterations: {grammar.iterations}")
    print(f"rules: {len(grammar.rules)}")
    print(f"draw: {''.join(sorted(cfg.lsystem.draw))} angle={cfg.lsystem.angle}")
    print(
        f"canvas: {_fmt(cfg.canvas.width, 3)}x{_fmt(cfg.canvas.height, 3)}"
        f"{cfg.canvas.units} margin={cfg.canvas.margin}"
    )

    length = grammar.expanded_length()
    print(f"symbols: {length}")
    if length > _VALIDATE_SYMBOL_LIMIT:
        print(
            f"warning: expansion exceeds {_VALIDATE_SYMBOL_LIMIT} symbols; "
            "skipping the interpretation check"
        )
        return
    result = cfg.lsystem.interpret()
    print(f"segments: {len(result.segments)}")
    if result.unbalanced_pops:
        print(f"warning: {result.unbalanced_pops} unbalanced ']' ignored")


def cmd_preset(args: argparse.Namespace) -> None:
    preset = get_preset(args.name)
    _render(
        preset.to_lsystem(args.iterations),
        _canvas_from_args(args),
        out=_output(args.out),
        flip_y=args.flip_y,
        precision=args.precision,
        style=_style_from_args(args),
        title=preset.name,
    )


def cmd_presets() -> None:
    for preset in PRESETS:
        rules = " ".join(preset.rules)
        print(
            f"{preset.name}: axiom={preset.axiom} draw={preset.draw} "
            f"angle={_fmt(preset.angle, 3)} iterations={preset.iterations} "
            f"rules={rules}"
        )


def main(argv: list[str] | None = None) -> int:
    ap = build_argparser()
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    try:
        if args.cmd == "draw":
            cmd_draw(args)
        elif args.cmd == "render":
            cmd_render(args.config, args.out)
        elif args.cmd == "validate":
            cmd_validate(args.config)
        elif args.cmd == "preset":
            cmd_preset(args)
        elif args.cmd == "presets":
            cmd_presets()
        else:
            raise AssertionError("unreachable")
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(f"File error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
