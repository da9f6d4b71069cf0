# ui_band_renderer.py
from __future__ import annotations
import enum
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from bollinger_chart.indicators.bollinger import BandPoint
from bollinger_chart.ui_band_styles import BandStyle, LineStyle, resolve_band_styles
from bollinger_chart.ui_base import DrawingSurface

Point = Tuple[float, float]


class DrawOutcome(enum.Enum):
    """What the host should do with its own line drawing after `draw_bollinger`."""
    DEFER_TO_HOST = False
    HANDLED_BY_PLUGIN = True

    def __bool__(self) -> bool:
        return self.value


@dataclass
class BandDrawContext:
    surface: DrawingSurface
    result: Sequence[BandPoint]
    x_of: Callable[[int], float]
    y_of: Callable[[float], float]
    visible_from: int
    visible_to: int
    style: Optional[Mapping[str, Any]] = None
    extend_data: Optional[Mapping[str, Any]] = None
    defaults: Optional[Mapping[str, Any]] = None


@dataclass
class SegmentBuilder:
    """
    Accumulates pixel points of the current gap-free run of bars.

    `flush` turns the run into one closed polygon (upper band left to
    right, then lower band right to left) and starts a new run. Runs of
    fewer than two bars cannot enclose an area and are dropped.
    """
    upper: List[Point] = field(default_factory=list)
    lower: List[Point] = field(default_factory=list)
    polygons: List[List[Point]] = field(default_factory=list)

    def add(self, x: float, y_up: float, y_dn: float) -> None:
        self.upper.append((x, y_up))
        self.lower.append((x, y_dn))

    def flush(self) -> None:
        if len(self.upper) >= 2:
            self.polygons.append(self.upper + self.lower[::-1])
        self.upper = []
        self.lower = []


def _clamped_range(result: Sequence[BandPoint], start: int, stop: int) -> range:
    return range(max(start, 0), min(stop, len(result)))


def fill_polygons(result: Sequence[BandPoint], x_of, y_of, start: int, stop: int) -> List[List[Point]]:
    builder = SegmentBuilder()
    for i in _clamped_range(result, start, stop):
        item = result[i]
        if item.up is None or item.dn is None:
            builder.flush()
            continue
        builder.add(x_of(i), y_of(item.up), y_of(item.dn))
    builder.flush()
    return builder.polygons


def _paint_fill(surface: DrawingSurface, polygons: List[List[Point]], color: str) -> None:
    surface.save()
    # Paint under whatever is already on the surface (candles).
    surface.set_draw_behind(True)
    for poly in polygons:
        surface.begin_path()
        surface.move_to(*poly[0])
        for x, y in poly[1:]:
            surface.line_to(x, y)
        surface.close_path()
        surface.fill(color)
    surface.set_draw_behind(False)
    surface.restore()


def _paint_line(ctx: BandDrawContext, line: LineStyle) -> None:
    surface = ctx.surface
    surface.set_stroke(line.color, line.size, join="round")
    surface.set_line_dash(line.dash)
    surface.begin_path()
    started = False
    for i in _clamped_range(ctx.result, ctx.visible_from, ctx.visible_to):
        val = getattr(ctx.result[i], line.key)
        if val is None:
            started = False
            continue
        x, y = ctx.x_of(i), ctx.y_of(val)
        if started:
            surface.line_to(x, y)
        else:
            surface.move_to(x, y)
            started = True
    surface.stroke()


def draw_bollinger(ctx: BandDrawContext) -> DrawOutcome:
    """
    Paint the band fill and, when any line is hidden, the visible lines.

    Returns DEFER_TO_HOST when there is nothing to draw or all three
    lines are visible (the host's native line pipeline draws them).
    Returns HANDLED_BY_PLUGIN when lines were taken over here and the
    host must skip its own line drawing.
    """
    if len(ctx.result) == 0 or ctx.visible_from >= ctx.visible_to:
        return DrawOutcome.DEFER_TO_HOST

    styles: BandStyle = resolve_band_styles(ctx.style, ctx.extend_data, ctx.defaults)

    if styles.fill_visible:
        polygons = fill_polygons(ctx.result, ctx.x_of, ctx.y_of, ctx.visible_from, ctx.visible_to)
        if polygons:
            _paint_fill(ctx.surface, polygons, styles.fill_color)

    if styles.all_lines_visible:
        return DrawOutcome.DEFER_TO_HOST

    ctx.surface.save()
    for line in styles.lines:
        if line.visible:
            _paint_line(ctx, line)
    ctx.surface.restore()
    return DrawOutcome.HANDLED_BY_PLUGIN
