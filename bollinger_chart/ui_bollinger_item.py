# ui_bollinger_item.py

from PyQt5 import QtCore
from pyqtgraph.Qt import QtGui
import pyqtgraph as pg
import numpy as np

from bollinger_chart.indicators.bollinger import BOLLINGER_TEMPLATE, format_legend
from bollinger_chart.ui_band_renderer import BandDrawContext, DrawOutcome
from bollinger_chart.ui_band_styles import resolve_band_styles
from bollinger_chart.ui_qt_surface import QPainterSurface, parse_css_color


def visible_index_range(timestamps, x_min, x_max):
    """
    Half-open [from, to) of bar indices to draw for the view [x_min, x_max].

    One bar beyond each edge is included so segments reach the viewport
    border; a view between two bars still yields both of them.
    """
    ts = np.asarray(timestamps, dtype="float64")
    start = max(int(np.searchsorted(ts, x_min, side="left")) - 1, 0)
    stop = min(int(np.searchsorted(ts, x_max, side="right")) + 1, ts.size)
    return start, stop


def band_pen(line):
    pen = pg.mkPen(color=parse_css_color(line.color), width=line.size)
    if line.dashed:
        pen.setStyle(QtCore.Qt.CustomDashLine)
        pen.setDashPattern([max(v / (line.size or 1.0), 1e-3) for v in line.dash_pattern])
    return pen


class BollingerBandsItem(pg.GraphicsObject):
    """
    Chart overlay for the BOLL indicator.

    Every paint renders into a transparent layer the size of the viewport:
    first the `backdrop` item (the candles), then `draw_bollinger` in device
    pixels, so the draw-behind fill slides under the candles and not under
    the plot background. The layer is then composited onto the view.

    The three `native_lines` are the chart's own line items. They are shown
    only while every line is visible, i.e. while the renderer leaves line
    drawing to the host.
    """

    def __init__(self, timestamps=None, result=None, style=None, extend_data=None,
                 defaults=None, backdrop=None):
        super().__init__()
        self.style = style
        self.extend_data = extend_data if extend_data is not None else {}
        self.defaults = defaults
        self.backdrop = backdrop
        self.last_outcome = DrawOutcome.DEFER_TO_HOST
        self.native_lines = {
            fig.key: pg.PlotDataItem(connect="finite", name=fig.title.rstrip(": "))
            for fig in BOLLINGER_TEMPLATE.figures
        }
        self.timestamps = np.empty(0)
        self.result = []
        self._bounds = QtCore.QRectF(0, 0, 1, 1)
        self.set_data(timestamps if timestamps is not None else [], result or [])

    def set_data(self, timestamps, result):
        self.prepareGeometryChange()
        self.timestamps = np.asarray(timestamps, dtype="float64")
        self.result = result
        self._bounds = self._compute_bounds()
        self._update_native_lines()
        self.update()

    def set_style(self, style=None, extend_data=None):
        self.style = style
        if extend_data is not None:
            self.extend_data = extend_data
        self._update_native_lines()
        self.update()

    def legend_text(self, index=None):
        if not self.result:
            return format_legend(None, BOLLINGER_TEMPLATE.precision)
        idx = len(self.result) - 1 if index is None else index
        return format_legend(self.result[idx], BOLLINGER_TEMPLATE.precision)

    def _compute_bounds(self):
        ups = [pt.up for pt in self.result if pt.up is not None]
        dns = [pt.dn for pt in self.result if pt.dn is not None]
        if not ups or self.timestamps.size == 0:
            return QtCore.QRectF(0, 0, 1, 1)
        x0, x1 = float(self.timestamps.min()), float(self.timestamps.max())
        y0, y1 = min(dns), max(ups)
        return QtCore.QRectF(x0, y0, max(x1 - x0, 1.0), max(y1 - y0, 1e-8))

    def _update_native_lines(self):
        styles = resolve_band_styles(self.style, self.extend_data, self.defaults)
        for line in styles.lines:
            item = self.native_lines[line.key]
            y = np.array([np.nan if getattr(pt, line.key) is None else getattr(pt, line.key)
                          for pt in self.result], dtype="float64")
            if y.size == 0:
                item.setData([], [])
            else:
                item.setData(self.timestamps[:y.size], y, connect="finite")
            item.setPen(band_pen(line))
        # With any line hidden the renderer strokes the visible ones itself.
        show = styles.all_lines_visible
        for item in self.native_lines.values():
            if item.isVisible() != show:
                item.setVisible(show)

    @staticmethod
    def _new_layer(painter):
        device = painter.device()
        if device is None or device.width() <= 0 or device.height() <= 0:
            return None
        ratio = device.devicePixelRatioF()
        layer = QtGui.QImage(int(round(device.width() * ratio)), int(round(device.height() * ratio)),
                             QtGui.QImage.Format_ARGB32_Premultiplied)
        layer.setDevicePixelRatio(ratio)
        layer.fill(QtCore.Qt.transparent)
        return layer

    def paint(self, painter, *args):
        vb = self.getViewBox()
        if vb is None:
            return
        layer = self._new_layer(painter)
        if layer is None:
            return
        x_min, x_max = vb.viewRange()[0]
        start, stop = visible_index_range(self.timestamps, x_min, x_max)
        # Axis-aligned view: x depends only on time, y only on price.
        tr = painter.transform()
        ts = self.timestamps

        def x_of(i):
            return tr.map(QtCore.QPointF(ts[i], 0.0)).x()

        def y_of(value):
            return tr.map(QtCore.QPointF(0.0, value)).y()

        layer_painter = QtGui.QPainter(layer)
        layer_painter.setRenderHints(painter.renderHints())
        if self.backdrop is not None and self.backdrop.isVisible():
            # Backdrop shares this item's parent, so the same transform applies.
            layer_painter.setTransform(tr)
            self.backdrop.paint(layer_painter)
            layer_painter.resetTransform()
        ctx = BandDrawContext(
            surface=QPainterSurface(layer_painter),
            result=self.result,
            x_of=x_of,
            y_of=y_of,
            visible_from=start,
            visible_to=stop,
            style=self.style,
            extend_data=self.extend_data,
            defaults=self.defaults,
        )
        self.last_outcome = BOLLINGER_TEMPLATE.draw(ctx)
        layer_painter.end()

        painter.save()
        painter.resetTransform()
        painter.setCompositionMode(QtGui.QPainter.CompositionMode_SourceOver)
        painter.drawImage(QtCore.QPointF(0.0, 0.0), layer)
        painter.restore()

    def boundingRect(self):
        return self._bounds
