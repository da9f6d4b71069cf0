# bollinger_chart/chart_config.py
from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from bollinger_chart.indicators.bollinger import BollingerParams
from bollinger_chart.ui_band_styles import merge_defaults


@dataclass
class AssetConfig:
    symbol: str
    file: str


@dataclass
class ChartConfig:
    params: BollingerParams = field(default_factory=BollingerParams)
    style: Optional[Dict[str, Any]] = None
    extend_data: Dict[str, Any] = field(default_factory=dict)
    style_defaults: Dict[str, Any] = field(default_factory=lambda: merge_defaults(None))
    assets: List[AssetConfig] = field(default_factory=list)
    debug: bool = False

    @staticmethod
    def from_dict(config: Optional[Dict[str, Any]], base_dir: str = ".") -> "ChartConfig":
        config = config or {}
        boll = config.get("bollinger") or {}
        period = int(boll.get("period", 20))
        multiplier = float(boll.get("multiplier", 2.0))
        if period <= 0:
            raise ValueError(f"[CONFIG ERROR] bollinger.period must be >= 1, got {period}")
        if multiplier < 0:
            raise ValueError(f"[CONFIG ERROR] bollinger.multiplier must be >= 0, got {multiplier}")

        styles = config.get("styles") or {}
        assets = []
        for i, asset in enumerate(config.get("assets") or []):
            symbol, path = asset.get("symbol"), asset.get("file")
            if not symbol or not path:
                raise ValueError(f"[CONFIG ERROR] asset #{i} needs both 'symbol' and 'file'")
            if not os.path.isabs(path):
                path = os.path.join(base_dir, path)
            assets.append(AssetConfig(symbol=str(symbol), file=path))

        return ChartConfig(
            params=BollingerParams(period, multiplier),
            style=styles.get("style"),
            extend_data=dict(styles.get("extend_data") or {}),
            style_defaults=merge_defaults(styles.get("defaults")),
            assets=assets,
            debug=bool(config.get("debug", False)),
        )


def load_chart_config(config_path: str) -> ChartConfig:
    with open(config_path, "r") as f:
        config = yaml.safe_load(f)
    base_dir = os.path.dirname(os.path.abspath(config_path))
    return ChartConfig.from_dict(config, base_dir=base_dir)
