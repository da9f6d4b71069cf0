# bollinger_chart/chart_environment.py
import hashlib
import os

import numpy as np
import pandas as pd
from PyQt5 import QtCore

from bollinger_chart.chart_config import ChartConfig, load_chart_config
from bollinger_chart.indicators.bollinger import (
    BOLLINGER_TEMPLATE, BollingerParams, bollinger_full,
)


# ---- CSV helpers ----
_EPOCH = pd.Timestamp("1970-01-01", tz="UTC")


def _epoch_seconds(dates: pd.Series) -> pd.Series:
    return (dates - _EPOCH) // pd.Timedelta(seconds=1)


def ensure_timestamp(df: pd.DataFrame) -> pd.DataFrame:
    if "timestamp" not in df.columns and "date" in df.columns:
        df["date"] = pd.to_datetime(df["date"], utc=True)
        df["timestamp"] = _epoch_seconds(df["date"])
    return df


def load_tradestation_csv(filepath):
    df = pd.read_csv(filepath)
    df = df.rename(columns={
        "Open": "open", "High": "high", "Low": "low", "Close": "close",
        "TotalVolume": "volume", "TimeStamp": "date",
    })
    df["date"] = pd.to_datetime(df["date"], utc=True)
    df["timestamp"] = _epoch_seconds(df["date"])
    return df


def load_price_csv(filepath: str) -> pd.DataFrame:
    """Generic OHLC loader: TradeStation exports or plain date/timestamp + open/high/low/close."""
    if not os.path.exists(filepath):
        print(f"[WARNING] File not found: {filepath}")
        return pd.DataFrame()
    header = pd.read_csv(filepath, nrows=0).columns
    if "TimeStamp" in header:
        df = load_tradestation_csv(filepath)
    else:
        df = pd.read_csv(filepath)
        df.columns = [c.lower() for c in df.columns]
        df = ensure_timestamp(df)
    if "close" not in df.columns:
        raise ValueError(f"CSV {filepath} has no 'close' column")
    if "timestamp" in df.columns:
        df = df.sort_values("timestamp")
    return df.reset_index(drop=True)


def _closes_digest(df: pd.DataFrame) -> str:
    closes = np.ascontiguousarray(df["close"].to_numpy(dtype="float64"))
    return hashlib.sha1(closes.tobytes()).hexdigest()


# ----------------------------------------------------------------------
# MAIN CLASS
# ----------------------------------------------------------------------
class ChartEnvironment(QtCore.QObject):
    """
    Owns the price frames of every charted symbol and the cached Bollinger
    result per symbol. The result is recomputed only when the closes or
    the parameters change; the chart widgets read it once per frame.
    """
    data_updated = QtCore.pyqtSignal(str)

    def __init__(self, config: ChartConfig = None):
        super().__init__()
        self.config = config or ChartConfig()
        self.params = self.config.params
        self.debug = self.config.debug
        self.assets = {}
        self._result_cache = {}
        self.recompute_count = 0

    @classmethod
    def from_yaml(cls, config_path):
        env = cls(load_chart_config(config_path))
        env.load_assets()
        return env

    def load_assets(self):
        for asset in self.config.assets:
            df = load_price_csv(asset.file)
            if df.empty:
                print(f"[ERROR] No data loaded for {asset.symbol}")
            self.set_data(asset.symbol, df)

    # ---- data ----
    def set_data(self, symbol, df: pd.DataFrame):
        self.assets[symbol] = df
        self.data_updated.emit(symbol)

    def append_bar(self, symbol, bar: dict):
        df = self.get_data(symbol)
        self.assets[symbol] = pd.concat([df, pd.DataFrame([bar])], ignore_index=True)
        self.data_updated.emit(symbol)

    def get_asset_list(self):
        return list(self.assets)

    def get_data(self, symbol) -> pd.DataFrame:
        if symbol not in self.assets:
            raise KeyError(f"Unknown symbol: {symbol}")
        return self.assets[symbol]

    def get_latest_data(self, symbol, window_size=256):
        df = self.assets.get(symbol)
        if df is None or df.empty:
            return pd.DataFrame()
        return df.iloc[-window_size:] if window_size else df

    # ---- bollinger ----
    def set_bollinger_params(self, period: int, multiplier: float):
        self.params = BollingerParams(int(period), float(multiplier))
        for symbol in self.assets:
            self.data_updated.emit(symbol)

    def get_bollinger(self, symbol):
        df = self.get_data(symbol)
        if df.empty:
            return []
        key = (tuple(self.params), _closes_digest(df))
        cached = self._result_cache.get(symbol)
        if cached is not None and cached[0] == key:
            return cached[1]
        result = BOLLINGER_TEMPLATE.calc(df, self.params)
        self._result_cache[symbol] = (key, result)
        self.recompute_count += 1
        if self.debug:
            print(f"[BOLL] {symbol}: recomputed {len(result)} bars with params {tuple(self.params)}")
        return result

    def bollinger_frame(self, symbol, prefix="bb") -> pd.DataFrame:
        df = self.get_data(symbol).copy()
        bollinger_full(df, window=self.params.period, std_mult=self.params.multiplier, prefix=prefix)
        return df
