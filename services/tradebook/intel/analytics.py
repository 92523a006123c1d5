# services/tradebook/intel/analytics.py
"""Dashboard analytics for the tradebook service."""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from .db import TradebookDB
from .metrics import DisplayRow, round_half_up
from .projection import RowProjection


@dataclass
class DashboardSummary:
    """Headline performance numbers for the dashboard."""
    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    breakeven: int = 0
    open_trades: int = 0
    win_rate: int = 0
    total_pnl: float = 0.0
    best_trade: float = 0.0
    worst_trade: float = 0.0
    avg_completeness: int = 0
    recent_trades: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _recent(rows: List[DisplayRow], limit: int) -> List[DisplayRow]:
    dated = sorted((r for r in rows if r.date), key=lambda r: r.date, reverse=True)
    undated = [r for r in rows if not r.date]
    return (dated + undated)[:limit]


def summarize(rows: List[DisplayRow], recent_limit: int = 5) -> DashboardSummary:
    """Build the dashboard summary from projected rows (derived results)."""
    summary = DashboardSummary(total_trades=len(rows))
    if not rows:
        return summary

    for row in rows:
        if row.result == 'Win':
            summary.wins += 1
        elif row.result == 'Loss':
            summary.losses += 1
        elif row.result == 'Breakeven':
            summary.breakeven += 1
        else:
            summary.open_trades += 1

    pnls = [row.pnl for row in rows]
    summary.win_rate = int(round_half_up(summary.wins / summary.total_trades * 100, 0))
    summary.total_pnl = round_half_up(sum(pnls), 2)
    # best is never below 0, worst never above 0
    summary.best_trade = max(pnls + [0.0])
    summary.worst_trade = min(pnls + [0.0])
    summary.avg_completeness = int(round_half_up(
        sum(row.completeness for row in rows) / len(rows), 0
    ))
    summary.recent_trades = [r.to_dict() for r in _recent(rows, recent_limit)]
    return summary


def pair_breakdown(rows: List[DisplayRow]) -> Dict[str, Dict[str, Any]]:
    """Per-pair trade counts, P&L and win rate."""
    pairs: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        pair = row.pair or 'Unknown'
        stats = pairs.setdefault(pair, {'trades': 0, 'wins': 0, 'losses': 0, 'pnl': 0.0})
        stats['trades'] += 1
        stats['pnl'] += row.pnl
        if row.result == 'Win':
            stats['wins'] += 1
        elif row.result == 'Loss':
            stats['losses'] += 1

    for stats in pairs.values():
        stats['pnl'] = round_half_up(stats['pnl'], 2)
        stats['win_rate'] = int(round_half_up(stats['wins'] / stats['trades'] * 100, 0))
    return pairs


def daily_pnl(rows: List[DisplayRow], days: Optional[int] = None) -> List[Dict[str, Any]]:
    """P&L per trade date, oldest first; undated trades are left out."""
    totals: Dict[str, float] = {}
    for row in rows:
        if row.date:
            totals[row.date] = totals.get(row.date, 0.0) + row.pnl

    result = [{'date': day, 'pnl': round_half_up(totals[day], 2)} for day in sorted(totals)]
    if days:
        return result[-days:]
    return result


class Analytics:
    """Performance analytics over a user's projected trades."""

    def __init__(self, db: TradebookDB):
        self.db = db

    def _rows(self, user_id: str) -> List[DisplayRow]:
        return RowProjection().refresh(self.db.list_trades(user_id))

    def get_summary(self, user_id: str) -> DashboardSummary:
        return summarize(self._rows(user_id))

    def get_pair_breakdown(self, user_id: str) -> Dict[str, Dict[str, Any]]:
        return pair_breakdown(self._rows(user_id))

    def get_daily_pnl(self, user_id: str, days: Optional[int] = None) -> List[Dict[str, Any]]:
        return daily_pnl(self._rows(user_id), days)
