"""
Chart.js-shaped payload builders.

Colors come from a palette object so that the numeric parts of analytics can
be tested without randomness.
"""
import random
from typing import Any, Dict, List, Optional, Protocol, Sequence

BLACK = "#000000"
NO_DATA_TITLE = "No Questions Found"


class ColorPalette(Protocol):
    def colors(self, count: int, include_black: bool = False) -> List[str]: ...


class RandomColorPalette:
    """Uniform ``#RRGGBB`` colors; the last one is black when an overflow bucket is shown."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def colors(self, count: int, include_black: bool = False) -> List[str]:
        out = ["#%06x" % self.rng.randint(0, 0xFFFFFF) for _ in range(count)]
        if include_black and out:
            out[-1] = BLACK
        return out


def _title(text: str, size: int) -> Dict[str, Any]:
    return {"display": True, "text": text, "font": {"size": size, "weight": "bold"}}


def doughnut_chart(labels: Sequence[str], values: Sequence[float], palette: ColorPalette,
                   include_black: bool = False, title: Optional[str] = None,
                   title_size: int = 22) -> Dict[str, Any]:
    plugins: Dict[str, Any] = {"legend": {"position": "right"}}
    if title is not None:
        plugins["title"] = _title(title, title_size)
    return {
        "data": {
            "labels": list(labels),
            "datasets": [{
                "data": list(values),
                "backgroundColor": palette.colors(len(labels), include_black),
            }],
        },
        "options": {"responsive": True, "maintainAspectRatio": True, "plugins": plugins},
    }


def bar_chart(labels: Sequence[str], values: Sequence[float], palette: ColorPalette,
              dataset_label: str, title: str, title_size: int = 22) -> Dict[str, Any]:
    return {
        "data": {
            "labels": list(labels),
            "datasets": [{
                "label": dataset_label,
                "data": list(values),
                "backgroundColor": palette.colors(len(values)),
            }],
        },
        "options": {
            "responsive": True,
            "maintainAspectRatio": True,
            "scales": {"x": {"grid": {"display": False}}, "y": {"grid": {"display": False}}},
            "plugins": {"title": _title(title, title_size), "legend": {"display": False}},
        },
    }


def titled(empty: bool, text: str) -> str:
    return NO_DATA_TITLE if empty else text
