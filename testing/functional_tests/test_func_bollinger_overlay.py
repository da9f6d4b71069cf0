# Usage: QT_QPA_PLATFORM=offscreen PYTHONPATH=. pytest testing/functional_tests/test_func_bollinger_overlay.py
import os
import tempfile

import numpy as np
import pandas as pd
import pytest
import yaml

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from bollinger_chart.chart_environment import ChartEnvironment
from bollinger_chart.indicators.bollinger import BOLLINGER_TEMPLATE
from bollinger_chart.ui_band_renderer import BandDrawContext, DrawOutcome
from bollinger_chart.ui_base import DrawingSurface
from bollinger_chart.ui_bollinger_item import visible_index_range


class CountingSurface(DrawingSurface):
    def __init__(self):
        self.counts = {}
        self.depth = 0

    def _hit(self, name):
        self.counts[name] = self.counts.get(name, 0) + 1

    def save(self): self.depth += 1; self._hit("save")
    def restore(self): self.depth -= 1; self._hit("restore")
    def set_draw_behind(self, enabled): self._hit("behind")
    def begin_path(self): self._hit("begin")
    def move_to(self, x, y): self._hit("move")
    def line_to(self, x, y): self._hit("line")
    def close_path(self): self._hit("close")
    def fill(self, color): self._hit("fill")
    def set_stroke(self, color, width, join="round"): self._hit("stroke_style")
    def set_line_dash(self, pattern): self._hit("dash")
    def stroke(self): self._hit("stroke")


def make_env(tmpdir, num_rows=60, extend_data=None, defaults=None):
    ts = pd.date_range(start="2024-01-01", periods=num_rows, freq="D")
    close = 100 + np.sin(np.arange(num_rows) / 4.0) * 5
    pd.DataFrame({
        "date": ts, "open": close - 0.5, "high": close + 1, "low": close - 1, "close": close,
    }).to_csv(os.path.join(tmpdir, "ES.csv"), index=False)
    config = {
        "bollinger": {"period": 20, "multiplier": 2.0},
        "styles": {"extend_data": extend_data or {}, "defaults": defaults or {}},
        "assets": [{"symbol": "ES", "file": "ES.csv"}],
    }
    path = os.path.join(tmpdir, "chart.yaml")
    with open(path, "w") as f:
        yaml.safe_dump(config, f)
    return ChartEnvironment.from_yaml(path)


def draw_frame(env, symbol, x_min, x_max, surface):
    df = env.get_data(symbol)
    ts = df["timestamp"].to_numpy(dtype="float64")
    start, stop = visible_index_range(ts, x_min, x_max)
    ctx = BandDrawContext(
        surface=surface,
        result=env.get_bollinger(symbol),
        x_of=lambda i: float(i) * 8.0,
        y_of=lambda v: 500.0 - v,
        visible_from=start,
        visible_to=stop,
        style=env.config.style,
        extend_data=env.config.extend_data,
        defaults=env.config.style_defaults,
    )
    return BOLLINGER_TEMPLATE.draw(ctx)


def test_frames_reuse_cached_result_and_respect_visibility():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = make_env(tmpdir, extend_data={"mid_visible": False})
    ts = env.get_data("ES")["timestamp"]

    surface = CountingSurface()
    outcome = draw_frame(env, "ES", ts.iloc[0], ts.iloc[-1], surface)
    assert outcome is DrawOutcome.HANDLED_BY_PLUGIN
    assert surface.counts["fill"] == 1
    assert surface.counts["stroke"] == 2
    assert surface.depth == 0

    # second frame, panned into the warm-up area only: nothing defined to fill or stroke
    surface2 = CountingSurface()
    draw_frame(env, "ES", ts.iloc[0], ts.iloc[10], surface2)
    assert "fill" not in surface2.counts
    assert surface2.counts.get("move", 0) == 0
    assert env.recompute_count == 1


def test_view_past_last_bar_keeps_only_the_edge_bar():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = make_env(tmpdir, extend_data={"up_visible": False})
    ts = env.get_data("ES")["timestamp"]
    far_right = float(ts.iloc[-1]) + 10 * 86400
    surface = CountingSurface()
    assert draw_frame(env, "ES", far_right, far_right + 86400, surface) is DrawOutcome.HANDLED_BY_PLUGIN
    # a single bar cannot close a fill polygon
    assert "fill" not in surface.counts
    assert surface.depth == 0


def test_empty_result_defers_to_host():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = make_env(tmpdir, extend_data={"up_visible": False})
    env.set_data("EMPTY", pd.DataFrame({"timestamp": [], "close": []}))
    surface = CountingSurface()
    assert draw_frame(env, "EMPTY", 0.0, 86400.0, surface) is DrawOutcome.DEFER_TO_HOST
    assert surface.counts == {}


def test_view_between_two_bars_still_fills():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = make_env(tmpdir, extend_data={"up_visible": False})
    ts = env.get_data("ES")["timestamp"]
    # zoomed in so far that no bar timestamp lies inside the view
    x_min = float(ts.iloc[40]) + 3600
    x_max = float(ts.iloc[40]) + 7200
    surface = CountingSurface()
    assert draw_frame(env, "ES", x_min, x_max, surface) is DrawOutcome.HANDLED_BY_PLUGIN
    assert surface.counts["fill"] == 1
    assert surface.counts["stroke"] == 2


def test_chart_widget_builds_overlay():
    QtWidgets = pytest.importorskip("PyQt5.QtWidgets")
    from bollinger_chart.ui_asset_viewer import CandlestickChartWidget

    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    with tempfile.TemporaryDirectory() as tmpdir:
        env = make_env(tmpdir)
    widget = CandlestickChartWidget("ES", env)
    item = widget.band_item
    assert len(item.result) == 60
    assert item.legend_text().startswith("UP: ")
    assert widget.legend_label.text() == item.legend_text()
    assert set(item.native_lines) == {"up", "mid", "dn"}
    assert item.result[18].mid is None and item.result[19].mid is not None

    env.set_bollinger_params(10, 1.0)
    assert len(widget.band_item.result) == 60
    assert widget.band_item.result[9].mid is not None
    widget.close()
    app.processEvents()


def count_differing_pixels(a, b, step=4):
    assert a.size() == b.size()
    return sum(
        1
        for x in range(0, a.width(), step)
        for y in range(0, a.height(), step)
        if a.pixel(x, y) != b.pixel(x, y)
    )


def test_band_fill_is_visible_on_rendered_chart():
    QtWidgets = pytest.importorskip("PyQt5.QtWidgets")
    from bollinger_chart.ui_asset_viewer import CandlestickChartWidget

    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    with tempfile.TemporaryDirectory() as tmpdir:
        env = make_env(tmpdir, defaults={"fill": {"color": "rgba(255,0,255,1)"}})
    widget = CandlestickChartWidget("ES", env)
    widget.resize(900, 600)
    widget.show()
    app.processEvents()
    shown = widget.plotWidget.grab().toImage()

    item = widget.band_item
    item.set_style(item.style, {"fill_visible": False})
    app.processEvents()
    hidden = widget.plotWidget.grab().toImage()

    assert item.last_outcome is DrawOutcome.DEFER_TO_HOST
    assert count_differing_pixels(shown, hidden) > 0
    widget.close()
    app.processEvents()


def test_chart_window_lists_environment_symbols():
    QtWidgets = pytest.importorskip("PyQt5.QtWidgets")
    from bollinger_chart.ui_asset_viewer import ChartWindow

    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    with tempfile.TemporaryDirectory() as tmpdir:
        env = make_env(tmpdir)
    win = ChartWindow(env)
    combo = win.symbol_combo
    assert [combo.itemText(i) for i in range(combo.count())] == ["ES"]
    assert win.chart.symbol == "ES"
    assert win.windowTitle() == "ES - BOLL(20, 2)"

    nq = env.get_data("ES").iloc[:30].copy()
    env.set_data("NQ", nq)
    assert combo.findText("NQ") >= 0

    combo.setCurrentText("NQ")
    assert win.chart.symbol == "NQ"
    assert len(win.chart.band_item.result) == 30
    assert win.windowTitle() == "NQ - BOLL(20, 2)"

    env.set_bollinger_params(10, 1.5)
    assert win.windowTitle() == "NQ - BOLL(10, 1.5)"
    win.close()
    app.processEvents()
