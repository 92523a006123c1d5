# services/tradebook/client/draft.py
"""Edit session state for the multi-tab trade form.

A draft is a flat copy of every editable trade field plus presentation
state (active tab, which record is being edited). It holds no derived
values; results, pips and P&L are computed after commit by projection.
"""

import copy
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from services.tradebook.intel.models import Trade


class DraftValidationError(ValueError):
    """A required field is missing; raised before any network call."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


# Every editable field and its empty-form value. Used for reset and for
# filling gaps when a stored record is loaded into the form.
DRAFT_DEFAULTS: Dict[str, Any] = {
    # Trade details
    'date': '',
    'pair': '',
    'direction': '',
    'timeframe': '',
    'entry_time': '',
    'exit_time': '',
    'position_size': '',
    'broker': '',
    'lots': '',
    'result': '',

    # Strategy
    'strategy': '',
    'trigger': '',
    'trend_direction': '',
    'htf_bias': '',
    'support_resistance': '',
    'volatility': '',
    'strategy_checklist': {},

    # Prices & levels
    'entry_price': '',
    'exit_price': '',
    'stop_loss': '',
    'take_profit': '',

    # Exit management
    'exits': [],

    # Notes & analysis
    'notes': '',
    'images': [],
    'reason_for_entry': '',
    'risk_reward_ratio': '',
    'stop_loss_reason': '',
    'take_profit_reason': '',
    'aligned_with_plan': '',
    'criteria_check1': False,
    'criteria_check2': False,
    'criteria_check3': False,
    'criteria_check4': False,
    'criteria_check5': False,

    # Execution
    'actual_entry_price': '',
    'actual_stop_loss': '',
    'actual_take_profit': '',
    'slippage': '',
    'followed_plan': 'Yes',
    'entry_timing': 'On Time',
    'fomo_entry': 'No',

    # Outcome
    'rr_achieved': '',
    'pips_gained_lost': '',
    'profit_loss_amount': '',
    'time_in_trade': '',

    # Post-analysis
    'what_went_well': '',
    'what_went_wrong': '',
    'exit_according_to_plan': 'Yes',
    'early_exit_emotions': 'No',
    'moved_stop_too_soon': 'No',
    'held_too_long': 'No',
    'market_behavior_alignment': 'Yes',
    'would_take_again': 'Yes',
    'emotional_factors': [],

    # Psychology
    'mood_before_trade': '',
    'confidence_level': '5',
    'distraction_level': 'Low',
    'emotional_triggers': '',

    # Lessons
    'thing_to_improve': '',
    'followed_rules': 'Yes',
    'plan_update_required': 'No',
    'mistake_patterns': '',
}

REQUIRED_FIELDS = [
    ('pair', 'Please select a currency pair'),
    ('entry_price', 'Entry price is required'),
    ('exit_price', 'Exit price is required'),
    ('stop_loss', 'Stop loss is required'),
    ('take_profit', 'Take profit is required'),
]

FORM_TABS = [
    'trade_details',
    'strategy',
    'prices_levels',
    'exit_management',
    'notes_analysis',
    'execution',
    'outcome',
    'post_analysis',
    'psychology',
    'lessons',
]
# Only offered once the chosen strategy has checklist items
CHECKLIST_TAB = 'strategy_checklist'

EXIT_FIELDS = ('price', 'lots', 'profit_loss', 'time')


def blank_values() -> Dict[str, Any]:
    return copy.deepcopy(DRAFT_DEFAULTS)


class EditDraft:
    """In-memory form state, independent of the committed trade list."""

    def __init__(self, values: Optional[Dict[str, Any]] = None, editing_id: Optional[str] = None):
        self.values = blank_values()
        self.editing_id = editing_id
        self.active_tab = FORM_TABS[0]
        if values:
            self.update(values)

    @classmethod
    def new(cls, today: Optional[date] = None) -> 'EditDraft':
        """Empty draft for a new trade, dated today."""
        draft = cls()
        draft.values['date'] = (today or date.today()).isoformat()
        return draft

    @classmethod
    def from_trade(cls, trade: Trade) -> 'EditDraft':
        """Draft pre-filled from a stored trade; absent fields take their defaults."""
        draft = cls(editing_id=trade.id)
        for field, default in DRAFT_DEFAULTS.items():
            value = getattr(trade, field, None)
            if value is None:
                value = copy.deepcopy(default)
            elif field == 'exits':
                value = [e.to_dict() for e in value]
            else:
                value = copy.deepcopy(value)
            draft.values[field] = value
        return draft

    @property
    def is_new(self) -> bool:
        return self.editing_id is None

    # ---------------------------------------------------------------
    # Field access
    # ---------------------------------------------------------------

    def get(self, field: str) -> Any:
        return self.values[field]

    def set(self, field: str, value: Any):
        if field not in DRAFT_DEFAULTS:
            raise KeyError(f"'{field}' is not a form field")
        self.values[field] = value

    def update(self, fields: Dict[str, Any]):
        for field, value in fields.items():
            self.set(field, value)

    def reset(self):
        self.values = blank_values()
        self.editing_id = None
        self.active_tab = FORM_TABS[0]

    # ---------------------------------------------------------------
    # Lists
    # ---------------------------------------------------------------

    def add_images(self, urls: Iterable[str]):
        self.values['images'] = self.values['images'] + [u for u in urls if u]

    def remove_image(self, index: int) -> str:
        images = list(self.values['images'])
        if not 0 <= index < len(images):
            raise IndexError(f"no image at position {index}")
        removed = images.pop(index)
        self.values['images'] = images
        return removed

    def add_exit(self, **fields) -> Dict[str, Any]:
        unknown = set(fields) - set(EXIT_FIELDS)
        if unknown:
            raise KeyError(f"unknown exit fields: {sorted(unknown)}")
        exit_ = {name: fields.get(name, '') for name in EXIT_FIELDS}
        self.values['exits'] = self.values['exits'] + [exit_]
        return exit_

    def remove_exit(self, index: int):
        exits = list(self.values['exits'])
        if not 0 <= index < len(exits):
            raise IndexError(f"no exit at position {index}")
        exits.pop(index)
        self.values['exits'] = exits

    def apply_checklist(self, checklist: Dict[str, bool]):
        """Replace the strategy checklist (e.g. after choosing a strategy)."""
        self.values['strategy_checklist'] = dict(checklist)

    def toggle_checklist(self, item: str) -> bool:
        checklist = dict(self.values['strategy_checklist'])
        if item not in checklist:
            raise KeyError(f"'{item}' is not on the strategy checklist")
        checklist[item] = not checklist[item]
        self.values['strategy_checklist'] = checklist
        return checklist[item]

    # ---------------------------------------------------------------
    # Tabs
    # ---------------------------------------------------------------

    @property
    def tabs(self) -> List[str]:
        tabs = list(FORM_TABS)
        if self.values['strategy'] and self.values['strategy_checklist']:
            tabs.insert(tabs.index('strategy') + 1, CHECKLIST_TAB)
        return tabs

    def go_to_tab(self, tab: str):
        if tab not in self.tabs:
            raise ValueError(f"unknown tab '{tab}'")
        self.active_tab = tab

    def _step(self, offset: int) -> str:
        tabs = self.tabs
        current = tabs.index(self.active_tab) if self.active_tab in tabs else 0
        self.active_tab = tabs[max(0, min(len(tabs) - 1, current + offset))]
        return self.active_tab

    def next_tab(self) -> str:
        return self._step(1)

    def previous_tab(self) -> str:
        return self._step(-1)

    # ---------------------------------------------------------------
    # Commit
    # ---------------------------------------------------------------

    def validate(self):
        """Raise DraftValidationError for the first missing required field."""
        for field, message in REQUIRED_FIELDS:
            if not str(self.values.get(field) or '').strip():
                raise DraftValidationError(field, message)

    def to_fields(self) -> Dict[str, Any]:
        """Every draft field, as sent to the store."""
        return copy.deepcopy(self.values)

    def to_trade(self, trade_id: Optional[str] = None) -> Trade:
        doc = self.to_fields()
        doc['id'] = trade_id or self.editing_id or Trade.new_id()
        return Trade.from_dict(doc)
