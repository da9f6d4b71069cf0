# bollinger_chart/indicators/bollinger.py
from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Any, Callable, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype


@dataclass(frozen=True)
class BandPoint:
    """Bollinger result for one bar. All three fields are None until the window is full."""
    up: Optional[float] = None
    mid: Optional[float] = None
    dn: Optional[float] = None

    @property
    def defined(self) -> bool:
        return self.up is not None and self.mid is not None and self.dn is not None


class BollingerParams(NamedTuple):
    period: int = 20
    multiplier: float = 2.0


class FigureSpec(NamedTuple):
    key: str
    title: str
    type: str = "line"


_EMPTY = BandPoint()


def _close_values(prices: Any) -> np.ndarray:
    """Extract closing prices as a float array without touching the caller's data."""
    if isinstance(prices, pd.DataFrame):
        return prices["close"].to_numpy(dtype="float64", copy=True)
    if isinstance(prices, pd.Series):
        return prices.to_numpy(dtype="float64", copy=True)
    if isinstance(prices, np.ndarray):
        return prices.astype("float64", copy=True)
    closes = []
    for bar in prices:
        if isinstance(bar, (int, float, np.number)):
            closes.append(float(bar))
        elif hasattr(bar, "get"):
            closes.append(float(bar.get("close")))
        else:
            closes.append(float(bar.close))
    return np.asarray(closes, dtype="float64")


def _window_deviation(window: np.ndarray, mean: float) -> float:
    diff = window - mean
    sq_sum = abs(float(np.dot(diff, diff)))
    return math.sqrt(sq_sum / window.size)


def calculate_bollinger(prices: Any, params: Sequence = BollingerParams()) -> List[BandPoint]:
    """
    Bollinger Bands over the closing prices of `prices`.

    Middle band is the simple moving average of the last `period` closes,
    upper/lower are mid +/- multiplier * population standard deviation.
    The SMA uses a running sum that is accumulated then evicted, so the
    mean costs O(1) per bar. Bars before the window fills get an empty
    BandPoint (all fields None).

    Precondition: period >= 1. Not checked here.
    """
    period, multiplier = int(params[0]), float(params[1])
    closes = _close_values(prices)
    out: List[BandPoint] = []
    p = period - 1
    close_sum = 0.0
    for i, close in enumerate(closes):
        close_sum += close
        if i < p:
            out.append(_EMPTY)
            continue
        mid = close_sum / period
        md = _window_deviation(closes[i - p:i + 1], mid)
        out.append(BandPoint(up=mid + multiplier * md, mid=mid, dn=mid - multiplier * md))
        close_sum -= closes[i - p]
    return out


def format_legend(point: Optional[BandPoint], precision: int = 2) -> str:
    parts = []
    for fig in BOLLINGER_FIGURES:
        val = getattr(point, fig.key, None) if point is not None else None
        parts.append(f"{fig.title}{'--' if val is None else f'{val:.{precision}f}'}")
    return " ".join(parts)


def bollinger_full(df: pd.DataFrame, window: int = 20, std_mult: float = 2.0, prefix: str = "bb") -> None:
    if df is None or df.empty or "close" not in df.columns or not is_numeric_dtype(df["close"]):
        return
    if not df.index.is_monotonic_increasing:
        raise ValueError("DataFrame index must be monotonically increasing for Bollinger Bands calculation.")
    points = calculate_bollinger(df, BollingerParams(window, std_mult))
    for key, name in (("up", "upper"), ("mid", "mid"), ("dn", "lower")):
        vals = [getattr(pt, key) for pt in points]
        df[f"{prefix}_{name}_{window}"] = np.array(
            [np.nan if v is None else v for v in vals], dtype="float64"
        )


def band_columns(window: int = 20, prefix: str = "bb") -> Tuple[str, str, str]:
    return f"{prefix}_upper_{window}", f"{prefix}_mid_{window}", f"{prefix}_lower_{window}"


BOLLINGER_FIGURES: Tuple[FigureSpec, ...] = (
    FigureSpec("up", "UP: "),
    FigureSpec("mid", "MID: "),
    FigureSpec("dn", "DN: "),
)


@dataclass(frozen=True)
class IndicatorTemplate:
    name: str
    short_name: str
    series: str
    calc_params: Tuple[int, float]
    precision: int
    should_ohlc: bool
    figures: Tuple[FigureSpec, ...]
    calc: Callable[..., List[BandPoint]]
    draw: Optional[Callable[..., Any]] = None


def _draw(ctx):
    # Late import keeps the calculator free of UI modules.
    from bollinger_chart.ui_band_renderer import draw_bollinger
    return draw_bollinger(ctx)


BOLLINGER_TEMPLATE = IndicatorTemplate(
    name="BOLL",
    short_name="BOLL",
    series="price",
    calc_params=(20, 2),
    precision=2,
    should_ohlc=True,
    figures=BOLLINGER_FIGURES,
    calc=calculate_bollinger,
    draw=_draw,
)
