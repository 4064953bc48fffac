from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from gami_vaults.core.constants.base import SECONDS_PER_DAY, SECONDS_PER_YEAR
from gami_vaults.core.models import PeriodSummary, YieldMetrics

WINDOW_30D_S = 30 * SECONDS_PER_DAY
WINDOW_7D_S = 7 * SECONDS_PER_DAY

HISTORY_PERIODS: dict[str, int | None] = {
    "7d": WINDOW_7D_S,
    "30d": WINDOW_30D_S,
    "all": None,
}


def price_per_share(
    assets: int, supply: int, *, asset_decimals: int = 18, share_decimals: int = 18
) -> float:
    """Assets per share in whole-token units. ``0.0`` when undefined."""
    if supply <= 0 or assets < 0:
        return 0.0
    try:
        pps = (assets / supply) * (10 ** (int(share_decimals) - int(asset_decimals)))
    except (ZeroDivisionError, OverflowError):
        return 0.0
    return pps if math.isfinite(pps) else 0.0


def linear_apr(p0: float, p1: float, window_s: float) -> float:
    if p0 <= 0 or p1 <= 0 or window_s <= 0:
        return 0.0
    try:
        apr = ((p1 - p0) / p0) * (SECONDS_PER_YEAR / window_s)
    except (ZeroDivisionError, OverflowError):
        return 0.0
    return apr if math.isfinite(apr) else 0.0


def compounded_apy(p0: float, p1: float, window_s: float) -> float:
    if p0 <= 0 or p1 <= 0 or window_s <= 0:
        return 0.0
    try:
        apy = (p1 / p0) ** (SECONDS_PER_YEAR / window_s) - 1
    except (ZeroDivisionError, OverflowError):
        return 0.0
    if isinstance(apy, complex) or not math.isfinite(apy):
        return 0.0
    return apy


def interpolate(p_start: float, p_end: float, start: int, duration: int, t: int) -> float:
    """Linear interpolation of a value over ``[start, start + duration]``."""
    if duration <= 0:
        return p_start
    if t <= start:
        return p_start
    if t >= start + duration:
        return p_end
    return p_start + (t - start) / duration * (p_end - p_start)


@dataclass(frozen=True)
class _Prices:
    asset_decimals: int
    share_decimals: int

    def start(self, s: PeriodSummary) -> float:
        return price_per_share(
            s.total_assets_at_start,
            s.total_supply_at_start,
            asset_decimals=self.asset_decimals,
            share_decimals=self.share_decimals,
        )

    def end(self, s: PeriodSummary) -> float:
        return price_per_share(
            s.total_assets_at_end,
            s.supply_at_end,
            asset_decimals=self.asset_decimals,
            share_decimals=self.share_decimals,
        )


def latest_completed(summaries: Iterable[PeriodSummary]) -> PeriodSummary | None:
    completed = [s for s in summaries if s.is_completed]
    if not completed:
        return None
    return max(completed, key=lambda s: s.start_timestamp)


def earliest_valid_start(summaries: Iterable[PeriodSummary]) -> PeriodSummary | None:
    valid = [s for s in summaries if s.has_valid_start]
    if not valid:
        return None
    return min(valid, key=lambda s: s.start_timestamp)


def containing_summary(
    summaries: Iterable[PeriodSummary], t: int
) -> PeriodSummary | None:
    """Newest summary whose closed interval ``[start, end]`` contains ``t``."""
    candidates = [
        s
        for s in summaries
        if s.duration_seconds > 0 and s.start_timestamp <= t <= s.end_timestamp
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda s: s.start_timestamp)


def _fixed_window(
    summaries: list[PeriodSummary],
    latest: PeriodSummary,
    window_s: int,
    prices: _Prices,
) -> tuple[float, float]:
    target = latest.end_timestamp - window_s
    if target < 0:
        return 0.0, 0.0
    period = containing_summary(summaries, target)
    if period is None:
        return 0.0, 0.0
    p0 = interpolate(
        prices.start(period),
        prices.end(period),
        period.start_timestamp,
        period.duration_seconds,
        target,
    )
    p1 = prices.end(latest)
    return linear_apr(p0, p1, window_s), compounded_apy(p0, p1, window_s)


def compute_yield_windows(
    summaries: Iterable[PeriodSummary],
    *,
    asset_decimals: int = 18,
    share_decimals: int = 18,
) -> YieldMetrics:
    """
    APR/APY over the full history and over trailing 30d/7d windows.

    All windows end at the close of the most recent *completed* period, so an
    open period that is still accruing never skews the result. Summaries may
    arrive in any order. Missing history yields zeros, never an error.

    Fixed windows interpolate price-per-share linearly inside the single
    period that contains the window start, including when the whole window
    lies inside that one period.
    """
    summaries = list(summaries)
    prices = _Prices(asset_decimals=asset_decimals, share_decimals=share_decimals)

    latest = latest_completed(summaries)
    if latest is None:
        return YieldMetrics()

    apr_all = apy_all = 0.0
    earliest = earliest_valid_start(summaries)
    if earliest is not None:
        window_s = latest.end_timestamp - earliest.start_timestamp
        if window_s > 0:
            p0 = prices.start(earliest)
            p1 = prices.end(latest)
            apr_all = linear_apr(p0, p1, window_s)
            apy_all = compounded_apy(p0, p1, window_s)

    apr_30d, apy_30d = _fixed_window(summaries, latest, WINDOW_30D_S, prices)
    apr_7d, apy_7d = _fixed_window(summaries, latest, WINDOW_7D_S, prices)

    return YieldMetrics(
        apr_all=apr_all,
        apr_30d=apr_30d,
        apr_7d=apr_7d,
        apy_all=apy_all,
        apy_30d=apy_30d,
        apy_7d=apy_7d,
    )


def vault_age_days(summaries: Iterable[PeriodSummary], now: int) -> int | None:
    earliest = earliest_valid_start(summaries)
    if earliest is None or earliest.start_timestamp <= 0:
        return None
    return max(0, int(now) - earliest.start_timestamp) // SECONDS_PER_DAY


# -- historical series ---------------------------------------------------------


@dataclass(frozen=True)
class SeriesPoint:
    timestamp: int
    apy: float
    assets: int
    price: float


def _lerp_int(a: int, b: int, start: int, end: int, t: int) -> int:
    if end <= start:
        return a
    return a + (b - a) * (t - start) // (end - start)


def state_at(
    summaries: list[PeriodSummary], t: int
) -> tuple[int, int] | None:
    """Interpolated ``(assets, supply)`` at timestamp ``t``."""
    oldest = earliest_valid_start(summaries)
    if oldest is not None and t < oldest.start_timestamp:
        return oldest.total_assets_at_start, oldest.total_supply_at_start

    period = containing_summary(summaries, t)
    if period is not None:
        return (
            _lerp_int(
                period.total_assets_at_start,
                period.total_assets_at_end,
                period.start_timestamp,
                period.end_timestamp,
                t,
            ),
            _lerp_int(
                period.total_supply_at_start,
                period.supply_at_end,
                period.start_timestamp,
                period.end_timestamp,
                t,
            ),
        )

    latest = latest_completed(summaries)
    if latest is not None:
        return latest.total_assets_at_end, latest.supply_at_end
    return None


def historical_series(
    summaries: Iterable[PeriodSummary],
    window_s: int | None,
    *,
    asset_decimals: int = 18,
    share_decimals: int = 18,
) -> list[SeriesPoint]:
    """
    One point at the window start followed by one point per period end.

    Each period point carries that period's own annualized APY. ``window_s``
    of ``None`` covers the full history.
    """
    summaries = list(summaries)
    prices = _Prices(asset_decimals=asset_decimals, share_decimals=share_decimals)
    latest = latest_completed(summaries)
    if latest is None:
        return []

    latest_end = latest.end_timestamp
    if window_s is None:
        oldest = earliest_valid_start(summaries)
        if oldest is not None:
            start_ts = oldest.start_timestamp
        else:
            start_ts = min(s.start_timestamp for s in summaries)
        lower_bound = 0
    else:
        start_ts = max(0, latest_end - window_s)
        lower_bound = start_ts

    relevant = sorted(
        (
            s
            for s in summaries
            if s.duration_seconds > 0 and lower_bound <= s.end_timestamp <= latest_end
        ),
        key=lambda s: s.start_timestamp,
    )
    if not relevant:
        return []

    start_state = state_at(summaries, start_ts)
    if start_state is None or start_state[1] == 0:
        return []

    points = [
        SeriesPoint(
            timestamp=start_ts,
            apy=0.0,
            assets=start_state[0],
            price=price_per_share(
                start_state[0],
                start_state[1],
                asset_decimals=asset_decimals,
                share_decimals=share_decimals,
            ),
        )
    ]

    for period in relevant:
        if period.supply_at_end == 0:
            continue
        p_start = prices.start(period)
        p_end = prices.end(period)
        points.append(
            SeriesPoint(
                timestamp=period.end_timestamp,
                apy=compounded_apy(p_start, p_end, period.duration_seconds),
                assets=period.total_assets_at_end,
                price=p_end,
            )
        )
    return points
