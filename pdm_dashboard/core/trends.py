"""
Trend analysis over one asset's time window.

Turns a chronological (oldest-first) sequence of readings into:
  - half-to-half statistics: mean / max / min of the older and newer half
    plus the percentage rate of change between them;
  - fixed-size chunks ("periods") with per-metric mean and rate of change,
    labelled relative to the end of the window.

Everything here is pure: no I/O, no clock, no randomness. Aggregates that
cannot be computed (empty half, zero denominator) come back as None.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple, Sequence

import polars as pl

from pdm_dashboard.schemas import (
    Chunk,
    HalfMetrics,
    HalfToHalf,
    MetricValues,
    Reading,
    TrendAnalysis,
)

METRICS: tuple[str, ...] = ("temperature", "pressure", "vibration")
AGGREGATES: tuple[str, ...] = ("mean", "max", "min")
SUPPORTED_HOURS: tuple[int, ...] = (1, 4, 8, 12, 24)
READINGS_PER_HOUR = 60

_CENT = Decimal("0.01")


class ChunkConfig(NamedTuple):
    size: int  # minutes == readings at one reading per minute
    unit: str


_CHUNK_TABLE: dict[int, ChunkConfig] = {
    1: ChunkConfig(15, "15min"),
    4: ChunkConfig(60, "1hr"),
    8: ChunkConfig(60, "1hr"),
    12: ChunkConfig(120, "2hr"),
    24: ChunkConfig(180, "3hr"),
}
DEFAULT_CHUNK = ChunkConfig(60, "1hr")


def chunk_config(hours: int) -> ChunkConfig:
    return _CHUNK_TABLE.get(hours, DEFAULT_CHUNK)


def readings_budget(hours: int) -> int:
    """How many readings to fetch for a window of `hours`."""
    return hours * READINGS_PER_HOUR


def round2(value: float | None) -> float | None:
    """Half-up rounding to two decimals on the exact binary value."""
    if value is None:
        return None
    rounded = float(Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP))
    return rounded if rounded != 0 else 0.0


def rate_of_change(first: float | None, last: float | None) -> float | None:
    """(last - first) / first as a percentage; None when not computable."""
    if first is None or last is None or first == 0:
        return None
    return round2((last - first) / first * 100)


def chronological(readings_newest_first: Sequence[Reading]) -> list[Reading]:
    return list(reversed(readings_newest_first))


def _frame(readings: Sequence[Reading]) -> pl.DataFrame:
    return pl.DataFrame(
        {metric: [getattr(r, metric) for r in readings] for metric in METRICS},
        schema={metric: pl.Float64 for metric in METRICS},
    )


# ---------------------------------------------------------------------------
# Half-to-half
# ---------------------------------------------------------------------------
def _half_metrics(frame: pl.DataFrame) -> HalfMetrics:
    # mean/max/min of an empty column are null, which is the "not available" value.
    row = frame.select(
        *[
            getattr(pl.col(metric), agg)().alias(f"{metric}_{agg}")
            for metric in METRICS
            for agg in AGGREGATES
        ]
    ).row(0, named=True)
    return HalfMetrics(
        **{
            agg: MetricValues(**{m: round2(row[f"{m}_{agg}"]) for m in METRICS})
            for agg in AGGREGATES
        }
    )


def half_to_half(readings: Sequence[Reading]) -> HalfToHalf:
    """Compare the older half of the window with the newer half."""
    frame = _frame(readings)
    midpoint = frame.height // 2
    first = _half_metrics(frame.slice(0, midpoint))
    second = _half_metrics(frame.slice(midpoint))

    roc = HalfMetrics(
        **{
            agg: MetricValues(
                **{
                    m: rate_of_change(
                        getattr(getattr(first, agg), m),
                        getattr(getattr(second, agg), m),
                    )
                    for m in METRICS
                }
            )
            for agg in AGGREGATES
        }
    )
    return HalfToHalf(
        first_count=midpoint,
        second_count=frame.height - midpoint,
        first_half=first,
        second_half=second,
        roc=roc,
    )


def describe_change(first: float | None, second: float | None) -> str:
    """Current value with the previous one in parentheses, e.g. "172.40 (was 165.10)"."""
    if first is None or second is None:
        return "N/A"
    return f"{second:.2f} (was {first:.2f})"


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------
def period_label(index: int, num_chunks: int, hours: int, config: ChunkConfig) -> str:
    """Label a chunk by how long before the end of the window it covers."""
    hours_ago_end = ((num_chunks - index - 1) * config.size) // 60
    hours_ago_start = ((num_chunks - index) * config.size) // 60

    if hours_ago_end == 0:
        return f"Last {config.unit}"
    if hours == 1:
        mins_ago_end = (num_chunks - index - 1) * 15
        mins_ago_start = (num_chunks - index) * 15
        return f"{mins_ago_start}-{mins_ago_end} mins ago"
    # Unreachable with the table's 60/120/180 minute chunks; kept for other sizes.
    if hours_ago_start == hours_ago_end:
        return f"{hours_ago_end}hr ago"
    return f"{hours_ago_start}-{hours_ago_end}hrs ago"


def _chunk_roc(count: int, first: float, last: float) -> float | None:
    if count < 2:
        return 0.0
    return rate_of_change(first, last)


def chunk_readings(readings: Sequence[Reading], hours: int) -> list[Chunk]:
    """Split the window into fixed-size periods, newest period first."""
    if not readings:
        return []

    config = chunk_config(hours)
    frame = _frame(readings)
    num_chunks = math.ceil(frame.height / config.size)

    summary = (
        frame.with_row_index("row")
        .group_by((pl.col("row") // config.size).alias("chunk"), maintain_order=True)
        .agg(
            pl.len().alias("count"),
            *[pl.col(m).mean().alias(f"{m}_mean") for m in METRICS],
            *[pl.col(m).first().alias(f"{m}_first") for m in METRICS],
            *[pl.col(m).last().alias(f"{m}_last") for m in METRICS],
        )
        .sort("chunk")
    )

    chunks: list[Chunk] = []
    for row in summary.iter_rows(named=True):
        index = int(row["chunk"])
        count = int(row["count"])
        chunks.append(
            Chunk(
                index=index,
                label=period_label(index, num_chunks, hours, config),
                unit=config.unit,
                count=count,
                mean=MetricValues(**{m: round2(row[f"{m}_mean"]) for m in METRICS}),
                roc=MetricValues(
                    **{
                        m: _chunk_roc(count, row[f"{m}_first"], row[f"{m}_last"])
                        for m in METRICS
                    }
                ),
            )
        )

    # Most recent period first; charts flip it back with chart_series().
    chunks.reverse()
    return chunks


def chart_series(chunks: Sequence[Chunk]) -> list[Chunk]:
    """Chronological (oldest-first) view of a newest-first chunk list."""
    return list(reversed(chunks))


def analyze(readings: Sequence[Reading], hours: int) -> TrendAnalysis:
    config = chunk_config(hours)
    return TrendAnalysis(
        hours=hours,
        reading_count=len(readings),
        chunk_size=config.size,
        unit=config.unit,
        half_to_half=half_to_half(readings),
        chunks=chunk_readings(readings, hours),
    )
