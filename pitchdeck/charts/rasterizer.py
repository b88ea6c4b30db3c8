"""Chart rasterization.

``Rasterizer`` is the boundary between chart specs and pixels. The
shipped ``MatplotlibRasterizer`` draws a static frame with the Agg
backend. ``rasterize_charts`` runs all specs concurrently with a per-chart
timeout so a stuck renderer surfaces as an error instead of a hang.
"""

from __future__ import annotations

import asyncio
import io
import logging
import threading
from dataclasses import dataclass
from typing import Protocol

import matplotlib
import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure
from matplotlib.ticker import FuncFormatter

from pitchdeck.charts.specs import (
    GRAY,
    GRID,
    PRIMARY,
    ChartKind,
    ChartSpecification,
    ChartType,
    SeriesType,
)
from pitchdeck.config import DeckConfig
from pitchdeck.errors import RasterizerUnavailableError

logger = logging.getLogger(__name__)

_DPI = 100
_TITLE_FONT = {"family": "serif", "size": 14, "weight": "bold", "color": PRIMARY}


@dataclass(frozen=True)
class RasterizedChart:
    """PNG image of one chart, ready to embed in a slide."""

    kind: ChartKind
    slide_title: str
    png: bytes
    width: int
    height: int
    notes: str = ""


class Rasterizer(Protocol):
    """Interface for turning a chart spec into PNG bytes."""

    async def rasterize(self, spec: ChartSpecification, width: int, height: int) -> bytes:
        """Render ``spec`` to a PNG of the given pixel size."""
        ...


# ---------------------------------------------------------------------------
# Matplotlib implementation
# ---------------------------------------------------------------------------


def _style_axes(ax: Axes) -> None:
    for side in ("top", "right"):
        ax.spines[side].set_visible(False)
    ax.tick_params(colors=GRAY, labelsize=9)
    ax.grid(axis="y", color=GRID, linewidth=0.8)
    ax.set_axisbelow(True)


def _tick_formatter(pattern: str) -> FuncFormatter:
    return FuncFormatter(lambda value, _pos: pattern.format(value))


def _sparse_ticks(ax: Axes, labels: tuple[str, ...], max_ticks: int = 10) -> None:
    """Show at most ``max_ticks`` evenly spaced category labels."""
    if not labels:
        return
    step = max(1, len(labels) // max_ticks)
    positions = list(range(0, len(labels), step))
    ax.set_xticks(positions)
    ax.set_xticklabels([labels[i] for i in positions], rotation=0)


def _as_array(values: tuple[float | None, ...]) -> np.ndarray:
    return np.array([np.nan if v is None else v for v in values], dtype=float)


def _draw_line(fig: Figure, spec: ChartSpecification) -> None:
    ax = fig.add_subplot()
    _style_axes(ax)
    x = np.arange(len(spec.labels))
    for series in spec.series:
        ax.plot(x, _as_array(series.values), color=series.color, linewidth=2, label=series.label)
    ax.axhline(y=100, color=GRAY, linewidth=0.8, linestyle="--")
    if spec.axes:
        ax.set_ylabel(spec.axes[0].title, color=GRAY)
    _sparse_ticks(ax, spec.labels)
    ax.legend(loc="upper left", frameon=False, fontsize=9)
    ax.set_title(spec.title, fontdict=_TITLE_FONT, pad=15)


def _draw_combo(fig: Figure, spec: ChartSpecification) -> None:
    ax = fig.add_subplot()
    _style_axes(ax)
    ax_right = ax.twinx()
    ax_right.spines["top"].set_visible(False)

    axes_by_position = {"left": ax, "right": ax_right}
    x = np.arange(len(spec.labels))
    handles = []
    for series in spec.series:
        target = axes_by_position.get(series.axis, ax)
        values = _as_array(series.values)
        if series.series_type is SeriesType.BAR:
            handles.append(target.bar(x, values, color=series.color, width=0.6, label=series.label))
        else:
            (line,) = target.plot(
                x, values, color=series.color, linewidth=2, marker="o", label=series.label
            )
            handles.append(line)

    for axis in spec.axes:
        target = axes_by_position.get(axis.position, ax)
        target.set_ylabel(axis.title, color=GRAY)
        target.yaxis.set_major_formatter(_tick_formatter(axis.tick_format))

    ax.set_xticks(x)
    ax.set_xticklabels(spec.labels)
    ax.legend(handles=handles, loc="upper left", frameon=False, fontsize=9)
    ax.set_title(spec.title, fontdict=_TITLE_FONT, pad=15)


def _draw_pie(fig: Figure, spec: ChartSpecification) -> None:
    ax = fig.add_subplot()
    values = _as_array(spec.series[0].values) if spec.series else np.array([])
    wedges, _texts, _autotexts = ax.pie(
        values,
        colors=list(spec.colors) or None,
        autopct="%1.1f%%",
        startangle=90,
        counterclock=False,
        wedgeprops={"edgecolor": "white", "linewidth": 2},
        textprops={"fontsize": 9, "color": "white"},
    )
    ax.axis("equal")
    ax.legend(
        wedges,
        spec.labels,
        loc="center left",
        bbox_to_anchor=(1.0, 0.5),
        frameon=False,
        fontsize=9,
    )
    ax.set_title(spec.title, fontdict=_TITLE_FONT, pad=15)


_DRAWERS = {
    ChartType.LINE: _draw_line,
    ChartType.COMBO: _draw_combo,
    ChartType.PIE: _draw_pie,
}


class MatplotlibRasterizer:
    """Rasterize chart specs with matplotlib's non-interactive Agg backend.

    Figures are built with the object-oriented API (no pyplot state) and
    rendering is serialized with a lock, since matplotlib is not
    thread-safe and each render runs in a worker thread.

    Raises:
        RasterizerUnavailableError: If the Agg backend cannot be loaded.
    """

    def __init__(self) -> None:
        try:
            matplotlib.use("Agg", force=True)
        except (ImportError, ValueError) as e:
            raise RasterizerUnavailableError(f"matplotlib Agg backend unavailable: {e}") from e
        self._lock = threading.Lock()

    async def rasterize(self, spec: ChartSpecification, width: int, height: int) -> bytes:
        return await asyncio.to_thread(self.render, spec, width, height)

    def render(self, spec: ChartSpecification, width: int, height: int) -> bytes:
        """Draw ``spec`` synchronously and return PNG bytes."""
        with self._lock:
            fig = Figure(figsize=(width / _DPI, height / _DPI), dpi=_DPI)
            fig.patch.set_facecolor("white")
            _DRAWERS[spec.chart_type](fig, spec)
            fig.tight_layout()

            buf = io.BytesIO()
            fig.savefig(buf, format="png", dpi=_DPI, facecolor="white")
            return buf.getvalue()


# ---------------------------------------------------------------------------
# Synchronization
# ---------------------------------------------------------------------------


async def rasterize_charts(
    specs: list[ChartSpecification],
    rasterizer: Rasterizer | None,
    config: DeckConfig,
) -> list[RasterizedChart]:
    """Rasterize all specs concurrently.

    Waits ``config.settle_delay`` before capture starts, then renders every
    spec with a ``config.rasterize_timeout`` limit each.

    Args:
        specs: Chart specs in deck order.
        rasterizer: Renderer to use; None means no rendering capability.
        config: Deck configuration.

    Returns:
        One RasterizedChart per successfully drawn spec, in input order.
        A chart whose drawing raised is logged and left out.

    Raises:
        RasterizerUnavailableError: No rasterizer, or a render timed out.
    """
    if not specs:
        return []
    if rasterizer is None:
        raise RasterizerUnavailableError("No chart rasterizer is available")

    await asyncio.sleep(config.settle_delay)

    async def _one(spec: ChartSpecification) -> RasterizedChart | None:
        try:
            png = await asyncio.wait_for(
                rasterizer.rasterize(spec, spec.width, spec.height),
                timeout=config.rasterize_timeout,
            )
        except asyncio.TimeoutError:
            raise RasterizerUnavailableError(
                f"Rendering {spec.slide_title!r} timed out after {config.rasterize_timeout:.0f}s"
            ) from None
        except RasterizerUnavailableError:
            raise
        except Exception:
            logger.exception("Failed to render chart %s", spec.kind.value)
            return None

        logger.debug("Rendered %s (%d bytes)", spec.kind.value, len(png))
        return RasterizedChart(
            kind=spec.kind,
            slide_title=spec.slide_title,
            png=png,
            width=spec.width,
            height=spec.height,
            notes=spec.notes,
        )

    results = await asyncio.gather(*(_one(spec) for spec in specs))
    return [r for r in results if r is not None]
