# services/tradebook/intel/projection.py
"""Grid row projection over the trade collection."""

from typing import Any, Dict, Iterable, List, Optional, Union

from .metrics import DisplayRow, parse_price, project
from .models import Trade


# Grid column -> trade field for inline-editable cells
EDITABLE_COLUMNS: Dict[str, str] = {
    'pair': 'pair',
    'direction': 'direction',
    'timeframe': 'timeframe',
    'setup': 'strategy',
    'entry_price': 'entry_price',
    'stop_loss': 'stop_loss',
    'take_profit': 'take_profit',
    'exit_price': 'exit_price',
    'result': 'result',
    'lots': 'lots',
}

PRICE_COLUMNS = frozenset({'entry_price', 'stop_loss', 'take_profit', 'exit_price'})
NUMERIC_COLUMNS = frozenset({'pips', 'pnl', 'completeness', 'image_count'}) | PRICE_COLUMNS | {'lots'}


def parse_cell(column: str, new_value: Any, old_value: Any) -> Any:
    """
    Normalise an edited cell value.

    Price cells keep the previous value when the input is not a non-zero
    number; everything else is stored as the trimmed text.
    """
    if column in PRICE_COLUMNS:
        if not parse_price(new_value):
            return old_value
        return str(new_value).strip()
    if isinstance(new_value, str):
        return new_value.strip()
    return new_value


def _sort_key(row: DisplayRow, column: str):
    value = getattr(row, column)
    if column in NUMERIC_COLUMNS:
        return parse_price(value)
    if value is None or value == '':
        return None
    return str(value).lower()


class RowProjection:
    """
    Display rows for the trade grid.

    ``refresh`` recomputes every row from the collection; the date filter and
    column sort only change what ``visible`` returns, never ``rows``.
    """

    def __init__(self):
        self.rows: List[DisplayRow] = []
        self.date_filter: Optional[str] = None
        self.sort_column: Optional[str] = None
        self.sort_descending = False

    def refresh(self, trades: Iterable[Union[Trade, dict]]) -> List[DisplayRow]:
        self.rows = [project(t) for t in trades]
        return self.rows

    def find(self, trade_id: str) -> Optional[DisplayRow]:
        for row in self.rows:
            if row.id == trade_id:
                return row
        return None

    def get_cell(self, trade_id: str, column: str) -> Any:
        row = self.find(trade_id)
        if row is None:
            raise KeyError(trade_id)
        return getattr(row, column)

    def set_cell(self, trade_id: str, column: str, value: Any) -> Any:
        """Overwrite one displayed cell and return its previous value."""
        row = self.find(trade_id)
        if row is None:
            raise KeyError(trade_id)
        if not hasattr(row, column):
            raise KeyError(column)
        previous = getattr(row, column)
        setattr(row, column, value)
        return previous

    def dates(self) -> List[str]:
        """Distinct trade dates, newest first."""
        return sorted({row.date for row in self.rows if row.date}, reverse=True)

    def set_date_filter(self, day: Optional[str]):
        self.date_filter = day or None

    def set_sort(self, column: Optional[str], descending: bool = False):
        if column is not None and column not in DisplayRow.__dataclass_fields__:
            raise KeyError(column)
        self.sort_column = column
        self.sort_descending = descending

    def visible(self) -> List[DisplayRow]:
        rows = self.rows
        if self.date_filter:
            rows = [r for r in rows if r.date == self.date_filter]
        else:
            rows = list(rows)

        if self.sort_column:
            keyed = [(_sort_key(r, self.sort_column), r) for r in rows]
            present = [item for item in keyed if item[0] is not None]
            missing = [r for key, r in keyed if key is None]
            present.sort(key=lambda item: item[0], reverse=self.sort_descending)
            # Blank cells always sink to the bottom
            rows = [r for _, r in present] + missing

        return rows
