# ui_band_styles.py
from __future__ import annotations
import copy
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple

LINE_KEYS = ("up", "mid", "dn")

DEFAULT_BAND_STYLE = {
    "fill": {"show": True, "color": "rgba(33, 150, 243, 0.1)"},
    "lines": [
        {"show": True, "color": "#2196F3", "size": 1, "style": "solid", "dashed_value": [6, 4]},
        {"show": True, "color": "#FF6D00", "size": 1, "style": "solid", "dashed_value": [6, 4]},
        {"show": True, "color": "#00BCD4", "size": 1, "style": "solid", "dashed_value": [6, 4]},
    ],
}


def first_defined(*sources: Any) -> Any:
    """Return the first source that is not None (None if all are)."""
    for value in sources:
        if value is not None:
            return value
    return None


def merge_defaults(overrides: Optional[Mapping[str, Any]]) -> dict:
    """DEFAULT_BAND_STYLE with `overrides` applied (from the YAML `styles.defaults` block)."""
    merged = copy.deepcopy(DEFAULT_BAND_STYLE)
    if not overrides:
        return merged
    fill = overrides.get("fill") or {}
    merged["fill"].update({k: v for k, v in fill.items() if v is not None})
    for i, line in enumerate((overrides.get("lines") or [])[:len(LINE_KEYS)]):
        merged["lines"][i].update({k: v for k, v in (line or {}).items() if v is not None})
    return merged


def _get(record: Optional[Mapping[str, Any]], key: str) -> Any:
    if not record:
        return None
    return record.get(key)


def _line(style: Optional[Mapping[str, Any]], idx: int) -> Optional[Mapping[str, Any]]:
    lines = _get(style, "lines")
    if not lines or idx >= len(lines):
        return None
    return lines[idx]


@dataclass(frozen=True)
class LineStyle:
    key: str
    visible: bool
    color: str
    size: float
    dashed: bool
    dash_pattern: Tuple[float, ...]

    @property
    def dash(self) -> Tuple[float, ...]:
        return self.dash_pattern if self.dashed else ()


@dataclass(frozen=True)
class BandStyle:
    fill_visible: bool
    fill_color: str
    lines: Tuple[LineStyle, LineStyle, LineStyle]

    @property
    def all_lines_visible(self) -> bool:
        return all(line.visible for line in self.lines)


def resolve_band_styles(
    style: Optional[Mapping[str, Any]] = None,
    extend_data: Optional[Mapping[str, Any]] = None,
    defaults: Optional[Mapping[str, Any]] = None,
) -> BandStyle:
    """
    Resolve every visual property as explicit style > extend data > default.

    Called on every draw; style records belong to the host and may change
    between frames.
    """
    if defaults is None:
        defaults = DEFAULT_BAND_STYLE
    fill = _get(style, "fill")
    default_fill = defaults["fill"]
    fill_visible = first_defined(_get(fill, "show"), _get(extend_data, "fill_visible"), default_fill["show"])
    fill_color = first_defined(_get(fill, "color"), _get(extend_data, "fill_color"), default_fill["color"])

    lines = []
    for idx, key in enumerate(LINE_KEYS):
        explicit = _line(style, idx)
        default = defaults["lines"][idx]
        visible = first_defined(_get(explicit, "show"), _get(extend_data, f"{key}_visible"), default["show"])
        dash_style = first_defined(_get(explicit, "style"), _get(extend_data, f"{key}_style"), default["style"])
        dash_pattern: Sequence[float] = first_defined(
            _get(explicit, "dashed_value"), _get(extend_data, f"{key}_dashed_value"),
            default.get("dashed_value"), (6, 4),
        )
        lines.append(LineStyle(
            key=key,
            visible=bool(visible),
            color=first_defined(_get(explicit, "color"), _get(extend_data, f"{key}_color"), default["color"]),
            size=float(first_defined(_get(explicit, "size"), _get(extend_data, f"{key}_size"), default["size"])),
            dashed=dash_style == "dashed",
            dash_pattern=tuple(float(v) for v in dash_pattern),
        ))
    return BandStyle(fill_visible=bool(fill_visible), fill_color=fill_color, lines=tuple(lines))
