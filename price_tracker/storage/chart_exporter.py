# price_tracker/storage/chart_exporter.py

"""Render the canonical series as an animated Plotly HTML chart."""

import importlib
import logging
import webbrowser
from datetime import datetime
from pathlib import Path
from types import ModuleType
from typing import Any

from price_tracker.models.price_point import MSRP, SALE
from price_tracker.storage.series_store import SeriesStore, display_key

logger = logging.getLogger("price_tracker.chart")

_TRACE_LABELS: dict[str, str] = {SALE: "Sale", MSRP: "MSRP"}


def _get_plotly_go() -> ModuleType:
    """Import plotly.graph_objects lazily."""
    return importlib.import_module("plotly.graph_objects")


def _ensure_charts_dir(charts_dir: Path) -> Path:
    """Create charts directory if it doesn't exist."""
    charts_dir.mkdir(parents=True, exist_ok=True)
    return charts_dir


def chart_rows(
    document: dict[str, Any],
) -> list[tuple[str, str, float, str]]:
    """Flatten the artifact into ``(date, kind, amount, source)`` rows.

    Amounts are taken in the display currency, falling back to the
    native amount for points that carry no converted price.
    """
    currency = str(document.get("product", {}).get("currencyDisplay", ""))
    key = display_key(currency) if currency else ""
    rows: list[tuple[str, str, float, str]] = []
    for point in document.get("series", []):
        converted = point.get(key) or {}
        amount = converted.get("amount", point["price"]["amount"])
        rows.append(
            (point["date"], point["kind"], float(amount), point["sourceId"])
        )
    return rows


def build_series_figure(document: dict[str, Any]) -> Any:
    """Build a line chart that draws itself date by date.

    Returns None when the artifact has no points.
    """
    rows = chart_rows(document)
    if not rows:
        return None

    go = _get_plotly_go()
    product = document.get("product", {})
    currency = product.get("currencyDisplay", "")
    dates = sorted({r[0] for r in rows})
    amounts = [r[2] for r in rows]
    pad = max((max(amounts) - min(amounts)) * 0.1, 5.0)

    def traces_until(cutoff: str) -> list[Any]:
        traces = []
        for kind, label in _TRACE_LABELS.items():
            subset = [r for r in rows if r[1] == kind and r[0] <= cutoff]
            traces.append(go.Scatter(
                x=[r[0] for r in subset],
                y=[r[2] for r in subset],
                mode="lines+markers",
                name=label,
                text=[r[3] for r in subset],
                hovertemplate=(
                    "%{x}<br>"
                    f"{label}: %{{y:.2f}} {currency}<br>"
                    "%{text}<extra></extra>"
                ),
            ))
        return traces

    fig: Any = go.Figure(
        data=traces_until(dates[0]),
        frames=[
            go.Frame(data=traces_until(d), name=d) for d in dates
        ],
    )
    fig.update_layout(
        title=f"Price History: {product.get('name', '')} "
        f"({product.get('color', '')})",
        xaxis={"title": "Date", "range": [dates[0], dates[-1]]},
        yaxis={
            "title": f"Price ({currency})",
            "range": [min(amounts) - pad, max(amounts) + pad],
        },
        hovermode="x unified",
        template="plotly_white",
        updatemenus=[{
            "type": "buttons",
            "showactive": False,
            "buttons": [{
                "label": "Play",
                "method": "animate",
                "args": [None, {
                    "frame": {"duration": 300, "redraw": True},
                    "fromcurrent": True,
                }],
            }],
        }],
        sliders=[{
            "steps": [
                {
                    "label": d,
                    "method": "animate",
                    "args": [[d], {"mode": "immediate"}],
                }
                for d in dates
            ],
        }],
    )
    return fig


def export_series_chart(
    store: SeriesStore | None = None,
    open_browser: bool = True,
    charts_dir: Path | None = None,
) -> Path | None:
    """Export the last written artifact as an HTML chart.

    Charts land in ``<data_dir>/charts`` unless *charts_dir* is given.
    """
    store = store or SeriesStore()
    document = store.load_series()
    if document is None:
        logger.warning("No price series written yet; run an update first")
        return None

    fig = build_series_figure(document)
    if fig is None:
        logger.warning("Price series is empty; nothing to chart")
        return None

    target_dir = _ensure_charts_dir(charts_dir or store.data_dir / "charts")
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = target_dir / f"price_series_{stamp}.html"
    fig.write_html(str(filepath), auto_play=False)
    logger.info("Chart saved to %s", filepath)

    if open_browser:
        webbrowser.open(filepath.as_uri())

    return filepath
