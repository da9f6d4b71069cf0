# ui_base.py

from abc import ABC, abstractmethod
from typing import Sequence


class DrawingSurface(ABC):
    """Canvas-like surface the band renderer paints on (pixel coordinates)."""

    @abstractmethod
    def save(self):
        pass

    @abstractmethod
    def restore(self):
        pass

    @abstractmethod
    def set_draw_behind(self, enabled: bool):
        pass

    @abstractmethod
    def begin_path(self):
        pass

    @abstractmethod
    def move_to(self, x: float, y: float):
        pass

    @abstractmethod
    def line_to(self, x: float, y: float):
        pass

    @abstractmethod
    def close_path(self):
        pass

    @abstractmethod
    def fill(self, color: str):
        pass

    @abstractmethod
    def set_stroke(self, color: str, width: float, join: str = "round"):
        pass

    @abstractmethod
    def set_line_dash(self, pattern: Sequence[float]):
        pass

    @abstractmethod
    def stroke(self):
        pass
