# ui_asset_viewer.py

import sys
from PyQt5 import QtWidgets, QtCore
import pyqtgraph as pg
from pyqtgraph.Qt import QtGui
from pyqtgraph import DateAxisItem
import numpy as np
import pandas as pd

from bollinger_chart.ui_bollinger_item import BollingerBandsItem


class CandlestickItem(pg.GraphicsObject):
    def __init__(self, df):
        super().__init__()
        self.df = df.reset_index(drop=True)
        self.picture = QtGui.QPicture()
        self.generatePicture()

    def _bar_width(self):
        timestamps = self.df['timestamp'].to_numpy(dtype="float64")
        if len(timestamps) > 1:
            intervals = np.diff(timestamps)
            positive = intervals[intervals > 0]
            if positive.size:
                return max(float(np.median(positive)), 1.0)
        return 86400.0

    def generatePicture(self):
        self.picture = QtGui.QPicture()
        painter = QtGui.QPainter(self.picture)
        df = self.df
        if df.empty or 'timestamp' not in df.columns:
            painter.end()
            return

        w = self._bar_width()
        up_brush, down_brush = pg.mkBrush('g'), pg.mkBrush('r')
        painter.setPen(pg.mkPen('w', width=0.8))
        for row in df.itertuples(index=False):
            t, open_, high, low, close = row.timestamp, row.open, row.high, row.low, row.close
            if any(pd.isna(v) for v in (open_, high, low, close)):
                continue
            painter.drawLine(QtCore.QPointF(t, low), QtCore.QPointF(t, high))
            painter.setBrush(up_brush if close >= open_ else down_brush)
            body_bottom = min(open_, close)
            height = max(abs(close - open_), 1e-8)
            painter.drawRect(QtCore.QRectF(t - w / 3, body_bottom, 2 * w / 3, height))
        painter.end()

    def paint(self, painter, *args):
        painter.drawPicture(0, 0, self.picture)

    def boundingRect(self):
        df = self.df
        if df.empty or 'timestamp' not in df.columns:
            return QtCore.QRectF(0, 0, 1, 1)
        min_x, max_x = float(df['timestamp'].min()), float(df['timestamp'].max())
        min_price, max_price = float(df['low'].min()), float(df['high'].max())
        price_buffer = (max_price - min_price) * 0.05 if (max_price - min_price) else 1
        return QtCore.QRectF(min_x, min_price - price_buffer,
                             max_x - min_x, (max_price - min_price) + 2 * price_buffer)

    def update_data(self, df):
        self.prepareGeometryChange()
        self.df = df.reset_index(drop=True)
        self.generatePicture()
        self.update()


class BandSettingsDialog(QtWidgets.QDialog):
    """Period/multiplier and the legacy visibility toggles of the BOLL overlay."""

    TOGGLES = (
        ('fill_visible', 'Fill'),
        ('up_visible', 'UP line'),
        ('mid_visible', 'MID line'),
        ('dn_visible', 'DN line'),
    )

    def __init__(self, params, extend_data, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Bollinger Bands")
        layout = QtWidgets.QFormLayout(self)

        self.period_box = QtWidgets.QSpinBox()
        self.period_box.setRange(1, 500)
        self.period_box.setValue(int(params.period))
        self.mult_box = QtWidgets.QDoubleSpinBox()
        self.mult_box.setRange(0.0, 10.0)
        self.mult_box.setSingleStep(0.1)
        self.mult_box.setValue(float(params.multiplier))
        layout.addRow("Period:", self.period_box)
        layout.addRow("Std Dev ×:", self.mult_box)

        self.checks = {}
        for key, label in self.TOGGLES:
            cb = QtWidgets.QCheckBox(label)
            cb.setChecked(bool(extend_data.get(key, True)))
            self.checks[key] = cb
            layout.addRow(cb)

        btns = QtWidgets.QDialogButtonBox(QtWidgets.QDialogButtonBox.Ok | QtWidgets.QDialogButtonBox.Cancel)
        btns.accepted.connect(self.accept)
        btns.rejected.connect(self.reject)
        layout.addRow(btns)

    def values(self):
        toggles = {key: cb.isChecked() for key, cb in self.checks.items()}
        return self.period_box.value(), self.mult_box.value(), toggles


class CandlestickChartWidget(QtWidgets.QWidget):
    chart_updated = QtCore.pyqtSignal()

    MAX_BARS_ON_SCREEN = 2000

    def __init__(self, symbol, chart_env, parent=None):
        super().__init__(parent)
        self.symbol = symbol
        self.chart_env = chart_env
        config = chart_env.config

        layout = QtWidgets.QVBoxLayout(self)
        self.bands_btn = QtWidgets.QPushButton("Bollinger…")
        self.bands_btn.setMaximumWidth(160)
        self.bands_btn.clicked.connect(self.show_band_settings)
        self.legend_label = QtWidgets.QLabel("")
        top_bar = QtWidgets.QHBoxLayout()
        top_bar.addWidget(self.bands_btn)
        top_bar.addWidget(self.legend_label)
        top_bar.addStretch(1)
        layout.addLayout(top_bar)

        self.plotWidget = pg.PlotWidget(axisItems={'bottom': DateAxisItem()})
        layout.addWidget(self.plotWidget, stretch=1)
        self.setLayout(layout)
        self.setMinimumWidth(800)

        self.candle_item = CandlestickItem(pd.DataFrame())
        self.candle_item.setZValue(0)
        # The band item repaints the candles into its own layer so its
        # draw-behind fill ends up between them and the plot background.
        self.band_item = BollingerBandsItem(
            style=config.style,
            extend_data=dict(config.extend_data),
            defaults=config.style_defaults,
            backdrop=self.candle_item,
        )
        self.band_item.setZValue(10)
        self.plotWidget.addItem(self.candle_item)
        self.plotWidget.addItem(self.band_item)
        for line in self.band_item.native_lines.values():
            line.setZValue(20)
            self.plotWidget.addItem(line)

        self.plotWidget.showGrid(x=True, y=True)
        self.plotWidget.setLabel('bottom', 'Date')
        self.plotWidget.setLabel('left', 'Price')
        self.plotWidget.setMouseEnabled(x=True, y=True)

        chart_env.data_updated.connect(self._on_data_updated)
        self.set_symbol(symbol)

    def _on_data_updated(self, symbol):
        if symbol == self.symbol:
            self.update_chart()

    def set_symbol(self, symbol):
        self.symbol = symbol
        self.plotWidget.setTitle(f"{symbol} Candlestick Chart")
        self.plotWidget.enableAutoRange()
        self.update_chart()

    def update_chart(self):
        df = self.chart_env.get_latest_data(self.symbol, window_size=None)
        if df is None or df.empty or 'timestamp' not in df.columns:
            print(f"[ERROR] No valid data available for {self.symbol}.")
            return

        self.candle_item.update_data(df)
        result = self.chart_env.get_bollinger(self.symbol)
        self.band_item.set_data(df['timestamp'].to_numpy(), result)
        self.legend_label.setText(self.band_item.legend_text())

        if len(df) > self.MAX_BARS_ON_SCREEN:
            x_min = float(df['timestamp'].iloc[-self.MAX_BARS_ON_SCREEN])
            self.plotWidget.setXRange(x_min, float(df['timestamp'].iloc[-1]), padding=0.02)

        self.plotWidget.getPlotItem().update()
        self.chart_updated.emit()

    def show_band_settings(self):
        dialog = BandSettingsDialog(self.chart_env.params, self.band_item.extend_data, self)
        if dialog.exec_() == QtWidgets.QDialog.Accepted:
            period, multiplier, toggles = dialog.values()
            extend_data = dict(self.band_item.extend_data)
            extend_data.update(toggles)
            self.band_item.set_style(self.band_item.style, extend_data)
            if (period, multiplier) != tuple(self.chart_env.params):
                # Emits data_updated, which redraws this chart.
                self.chart_env.set_bollinger_params(period, multiplier)


class ChartWindow(QtWidgets.QWidget):
    """
    Single chart window with a symbol picker. The picker lists every
    symbol the environment holds and grows when a new symbol is loaded;
    switching symbols reuses the same chart widget.
    """

    def __init__(self, chart_env, symbol=None):
        super().__init__()
        self.chart_env = chart_env
        symbols = chart_env.get_asset_list()
        symbol = symbol or (symbols[0] if symbols else "")

        layout = QtWidgets.QVBoxLayout(self)
        picker = QtWidgets.QHBoxLayout()
        picker.addWidget(QtWidgets.QLabel("Symbol:"))
        self.symbol_combo = QtWidgets.QComboBox()
        self.symbol_combo.addItems(symbols)
        if symbol in symbols:
            self.symbol_combo.setCurrentText(symbol)
        picker.addWidget(self.symbol_combo)
        picker.addStretch(1)
        layout.addLayout(picker)

        self.chart = CandlestickChartWidget(symbol, chart_env)
        layout.addWidget(self.chart, stretch=1)
        self.setLayout(layout)
        self.resize(1200, 700)

        self.symbol_combo.currentTextChanged.connect(self._on_symbol_selected)
        chart_env.data_updated.connect(self._on_data_updated)
        self._refresh_title()

    def _on_data_updated(self, symbol):
        if self.symbol_combo.findText(symbol) < 0:
            self.symbol_combo.addItem(symbol)
        self._refresh_title()

    def _on_symbol_selected(self, symbol):
        if symbol and symbol != self.chart.symbol:
            self.chart.set_symbol(symbol)
            self._refresh_title()

    def _refresh_title(self):
        period, multiplier = self.chart_env.params
        self.setWindowTitle(f"{self.chart.symbol} - BOLL({period}, {multiplier:g})")


def launch_chart_gui(chart_env, symbol=None):
    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication(sys.argv)
    win = ChartWindow(chart_env, symbol)
    win.setAttribute(QtCore.Qt.WA_DeleteOnClose, True)
    win.show()
    return app.exec_()
