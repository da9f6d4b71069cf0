# ui_qt_surface.py

import re
from typing import Sequence

from PyQt5 import QtCore
from pyqtgraph.Qt import QtGui

from bollinger_chart.ui_base import DrawingSurface

_RGBA_RE = re.compile(r"^\s*rgba?\(\s*([^)]*)\)\s*$", re.IGNORECASE)

_JOINS = {
    "round": QtCore.Qt.RoundJoin,
    "miter": QtCore.Qt.MiterJoin,
    "bevel": QtCore.Qt.BevelJoin,
}


def parse_css_color(text) -> QtGui.QColor:
    """QColor from '#RRGGBB', an SVG color name, or CSS 'rgb(...)' / 'rgba(...)'."""
    if isinstance(text, QtGui.QColor):
        return QtGui.QColor(text)
    m = _RGBA_RE.match(str(text))
    if m:
        parts = [p.strip() for p in m.group(1).split(",")]
        if len(parts) not in (3, 4):
            raise ValueError(f"Unsupported color: {text!r}")
        r, g, b = (int(float(v)) for v in parts[:3])
        color = QtGui.QColor(r, g, b)
        if len(parts) == 4:
            color.setAlphaF(max(0.0, min(1.0, float(parts[3]))))
        return color
    color = QtGui.QColor(str(text))
    if not color.isValid():
        raise ValueError(f"Unsupported color: {text!r}")
    return color


class QPainterSurface(DrawingSurface):
    """DrawingSurface over an active QPainter. Coordinates are device pixels."""

    def __init__(self, painter: QtGui.QPainter):
        self.painter = painter
        self.path = QtGui.QPainterPath()
        self.pen = QtGui.QPen()
        self._dash = ()

    def save(self):
        self.painter.save()

    def restore(self):
        self.painter.restore()

    def set_draw_behind(self, enabled: bool):
        mode = (QtGui.QPainter.CompositionMode_DestinationOver if enabled
                else QtGui.QPainter.CompositionMode_SourceOver)
        self.painter.setCompositionMode(mode)

    def begin_path(self):
        self.path = QtGui.QPainterPath()

    def move_to(self, x: float, y: float):
        self.path.moveTo(QtCore.QPointF(x, y))

    def line_to(self, x: float, y: float):
        self.path.lineTo(QtCore.QPointF(x, y))

    def close_path(self):
        self.path.closeSubpath()

    def fill(self, color: str):
        self.painter.fillPath(self.path, QtGui.QBrush(parse_css_color(color)))

    def set_stroke(self, color: str, width: float, join: str = "round"):
        self.pen = QtGui.QPen(parse_css_color(color))
        self.pen.setWidthF(float(width))
        self.pen.setJoinStyle(_JOINS.get(join, QtCore.Qt.RoundJoin))
        self._apply_dash()

    def set_line_dash(self, pattern: Sequence[float]):
        self._dash = tuple(float(v) for v in pattern)
        self._apply_dash()

    def _apply_dash(self):
        if not self._dash:
            self.pen.setStyle(QtCore.Qt.SolidLine)
            return
        dash = list(self._dash)
        if len(dash) % 2:
            dash = dash * 2
        # Qt dash lengths are in units of the pen width.
        width = self.pen.widthF() or 1.0
        self.pen.setDashPattern([max(v / width, 1e-3) for v in dash])

    def stroke(self):
        self.painter.setPen(self.pen)
        self.painter.setBrush(QtCore.Qt.NoBrush)
        self.painter.drawPath(self.path)
