# services/tradebook/intel/metrics.py
"""Derived display metrics for trade records.

Every function here is total: malformed or missing prices degrade to
``None`` / ``0.0`` / ``''`` and nothing raises. This is a display layer,
not a validating ledger.
"""

import math
from dataclasses import dataclass, asdict
from typing import Any, Optional, Union

from .models import Trade


JPY_PIP = 0.01
STANDARD_PIP = 0.0001
# Quotes at or above this are treated as index/metal prices
LARGE_QUOTE_THRESHOLD = 100

JPY_PIP_VALUE = 1
STANDARD_PIP_VALUE = 10
DEFAULT_LOTS = 0.1

COMPLETENESS_FIELDS = (
    'reason_for_entry',
    'risk_reward_ratio',
    'stop_loss_reason',
    'take_profit_reason',
    'actual_entry_price',
    'rr_achieved',
    'pips_gained_lost',
    'what_went_well',
    'what_went_wrong',
    'mood_before_trade',
    'thing_to_improve',
)


def round_half_up(value: float, digits: int = 1) -> float:
    """Round with ties going toward +infinity."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def parse_price(value: Any) -> Optional[float]:
    """Parse a decimal string (or number) into a float, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _present(value: Any) -> Optional[float]:
    """A usable price: parseable and non-zero."""
    number = parse_price(value)
    if number is None or number == 0:
        return None
    return number


def _text(value: Any) -> str:
    """Display text for a stored field that may hold any JSON type."""
    if value is None:
        return ''
    return str(value)


def is_jpy(pair: Any) -> bool:
    return 'JPY' in _text(pair).upper()


def pip_unit(pair: Optional[str], entry_price: Any = None) -> float:
    """Pip size for a pair: 0.01 for JPY pairs and large quotes, else 0.0001."""
    if is_jpy(pair):
        return JPY_PIP
    entry = parse_price(entry_price)
    if entry is not None and entry >= LARGE_QUOTE_THRESHOLD:
        return JPY_PIP
    return STANDARD_PIP


def pip_distance(pair: Optional[str], entry_price: Any, exit_price: Any) -> Optional[float]:
    """Signed pips from entry to exit, one decimal; None when a price is unusable."""
    entry = _present(entry_price)
    exit_ = _present(exit_price)
    if entry is None or exit_ is None:
        return None
    raw = (exit_ - entry) / pip_unit(pair, entry)
    return round_half_up(raw, 1)


def classify_result(trade: Trade) -> str:
    """Stored result when set; otherwise Win/Loss/Breakeven from prices; otherwise Open."""
    if trade.result and str(trade.result).strip():
        return _text(trade.result)

    entry = _present(trade.entry_price)
    exit_ = _present(trade.exit_price)
    if entry is None or exit_ is None:
        return 'Open'
    if exit_ > entry:
        return 'Win'
    if exit_ < entry:
        return 'Loss'
    return 'Breakeven'


def pip_value_per_lot(pair: Optional[str]) -> int:
    return JPY_PIP_VALUE if is_jpy(pair) else STANDARD_PIP_VALUE


def realized_pnl(trade: Trade, pips: Optional[float] = None) -> float:
    """
    Realized P&L for a trade.

    Recorded partial exits take precedence: their ``profit_loss`` values are
    summed. Without exits the P&L is approximated from the pip distance as
    ``pips * pip_value_per_lot * lots``.
    """
    if trade.exits:
        total = sum(parse_price(e.profit_loss) or 0.0 for e in trade.exits)
        return round_half_up(total, 2)

    if pips is None:
        pips = pip_distance(trade.pair, trade.entry_price, trade.exit_price)
    if pips is None:
        return 0.0

    lots = parse_price(trade.lots) or DEFAULT_LOTS
    return round_half_up(pips * pip_value_per_lot(trade.pair) * lots, 2)


def display_rr(trade: Trade, result: str) -> str:
    if result == 'Breakeven':
        return '0'
    return str(trade.rr_achieved or '')


def completeness(trade: Trade) -> int:
    """Percentage of the journal analysis fields that have been filled in."""
    filled = sum(
        1 for name in COMPLETENESS_FIELDS
        if str(getattr(trade, name, None) or '').strip()
    )
    return int(round_half_up(filled / len(COMPLETENESS_FIELDS) * 100, 0))


@dataclass
class DisplayRow:
    """One grid row: raw position columns plus derived metrics."""
    id: str
    date: str
    pair: str
    direction: str
    timeframe: str
    setup: str
    trigger: str
    entry_price: str
    stop_loss: str
    take_profit: str
    exit_price: str
    lots: str
    result: str
    pips: Optional[float]
    rr: str
    pnl: float
    completeness: int
    image_count: int
    status: str

    def to_dict(self) -> dict:
        return asdict(self)


def project(trade: Union[Trade, dict]) -> DisplayRow:
    """Project a stored trade into a display row."""
    if isinstance(trade, dict):
        trade = Trade.from_dict(trade)

    pips = pip_distance(trade.pair, trade.entry_price, trade.exit_price)
    result = classify_result(trade)

    return DisplayRow(
        id=trade.id,
        date=_text(trade.date)[:10],
        pair=_text(trade.pair),
        direction=_text(trade.direction),
        timeframe=_text(trade.timeframe),
        setup=_text(trade.strategy),
        trigger=_text(trade.trigger),
        entry_price=str(trade.entry_price or ''),
        stop_loss=str(trade.stop_loss or ''),
        take_profit=str(trade.take_profit or ''),
        exit_price=str(trade.exit_price or ''),
        lots=str(trade.lots or ''),
        result=result,
        pips=pips,
        rr=display_rr(trade, result),
        pnl=realized_pnl(trade, pips),
        completeness=completeness(trade),
        image_count=len(trade.images),
        status=_text(trade.status) or ('closed' if result != 'Open' else 'open'),
    )
