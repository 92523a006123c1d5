# services/tradebook/intel/models.py
"""Data models for the tradebook service."""

from dataclasses import dataclass, field, asdict, fields
from datetime import date, datetime, timedelta
from typing import Any, ClassVar, Dict, List, Optional, Union
import uuid


RESULTS = ('Open', 'Win', 'Loss', 'Breakeven')
DIRECTIONS = ('Long', 'Short')
STATUSES = ('open', 'closed')


def _now() -> str:
    return datetime.utcnow().isoformat()


def _as_list(value: Any) -> list:
    """Wrap a lone value in a list; None and empty values become []."""
    if value is None or value == '':
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


# ==================== Trades ====================

@dataclass
class PartialExit:
    """One scaled-out portion of a position."""
    price: Optional[str] = None
    lots: Optional[str] = None
    profit_loss: Optional[Any] = None  # number or decimal string, as entered
    time: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> 'PartialExit':
        return cls(
            price=d.get('price'),
            lots=d.get('lots'),
            profit_loss=d.get('profit_loss'),
            time=d.get('time'),
        )


@dataclass
class TradeReview:
    """Free-form post-trade review attached to a trade."""
    notes: str = ''
    html: Optional[str] = None
    images: List[str] = field(default_factory=list)
    updated_at: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> 'TradeReview':
        return cls(
            notes=d.get('notes') or '',
            html=d.get('html'),
            images=list(d.get('images') or []),
            updated_at=d.get('updated_at'),
        )


@dataclass
class Trade:
    """A single journaled trade.

    Stored as a free-form document: every field except ``id`` may be absent
    (``None``), and keys this class does not know are kept in ``extra`` so they
    survive a load/save cycle untouched. Prices are decimal strings exactly as
    the trader typed them; numeric interpretation happens in ``metrics``.
    """
    id: str
    user_id: Optional[str] = None

    # Position
    pair: Optional[str] = None
    direction: Optional[str] = None  # Long/Short
    timeframe: Optional[str] = None
    strategy: Optional[str] = None
    trigger: Optional[str] = None
    entry_price: Optional[str] = None
    exit_price: Optional[str] = None
    stop_loss: Optional[str] = None
    take_profit: Optional[str] = None
    lots: Optional[str] = None
    position_size: Optional[str] = None
    broker: Optional[str] = None
    entry_time: Optional[str] = None
    exit_time: Optional[str] = None
    date: Optional[str] = None

    # Outcome
    result: Optional[str] = None  # Open/Win/Loss/Breakeven, None = derive
    status: Optional[str] = None  # open/closed
    exits: List[PartialExit] = field(default_factory=list)

    # Pre-trade analysis
    trend_direction: Optional[str] = None
    htf_bias: Optional[str] = None
    support_resistance: Optional[str] = None
    volatility: Optional[str] = None
    reason_for_entry: Optional[str] = None
    risk_reward_ratio: Optional[str] = None
    stop_loss_reason: Optional[str] = None
    take_profit_reason: Optional[str] = None
    aligned_with_plan: Optional[str] = None
    criteria_check1: Optional[bool] = None
    criteria_check2: Optional[bool] = None
    criteria_check3: Optional[bool] = None
    criteria_check4: Optional[bool] = None
    criteria_check5: Optional[bool] = None
    strategy_checklist: Optional[Dict[str, bool]] = None

    # Execution
    actual_entry_price: Optional[str] = None
    actual_stop_loss: Optional[str] = None
    actual_take_profit: Optional[str] = None
    slippage: Optional[str] = None
    followed_plan: Optional[str] = None
    entry_timing: Optional[str] = None
    fomo_entry: Optional[str] = None

    # Post-trade
    rr_achieved: Optional[str] = None
    pips_gained_lost: Optional[str] = None
    profit_loss_amount: Optional[str] = None
    time_in_trade: Optional[str] = None
    what_went_well: Optional[str] = None
    what_went_wrong: Optional[str] = None
    exit_according_to_plan: Optional[str] = None
    early_exit_emotions: Optional[str] = None
    moved_stop_too_soon: Optional[str] = None
    held_too_long: Optional[str] = None
    market_behavior_alignment: Optional[str] = None
    would_take_again: Optional[str] = None
    emotional_factors: List[str] = field(default_factory=list)

    # Psychology
    mood_before_trade: Optional[str] = None
    confidence_level: Optional[str] = None
    distraction_level: Optional[str] = None
    emotional_triggers: Optional[str] = None

    # Lessons
    thing_to_improve: Optional[str] = None
    followed_rules: Optional[str] = None
    plan_update_required: Optional[str] = None
    mistake_patterns: Optional[str] = None

    # Metadata
    notes: Optional[str] = None
    images: List[str] = field(default_factory=list)
    review: Optional[TradeReview] = None

    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    extra: Dict[str, Any] = field(default_factory=dict)

    # Never changed by an update once the record exists
    PROTECTED_FIELDS: ClassVar[tuple] = ('id', 'user_id', 'created_at')

    @staticmethod
    def new_id() -> str:
        """Generate a new client-side trade ID."""
        return uuid.uuid4().hex

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls) if f.name != 'extra']

    def to_dict(self) -> dict:
        """Convert to a JSON-ready document (unknown keys merged back in)."""
        d = asdict(self)
        extra = d.pop('extra')
        for key, value in extra.items():
            d.setdefault(key, value)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> 'Trade':
        """Create from a stored document or request body."""
        d = dict(d)  # Copy to avoid mutating original
        d.pop('_id', None)
        known = set(cls.field_names())

        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in d.items():
            if key in known:
                kwargs[key] = value
            else:
                extra[key] = value

        kwargs['id'] = str(kwargs.get('id') or '')
        kwargs['exits'] = [
            e if isinstance(e, PartialExit) else PartialExit.from_dict(e)
            for e in _as_list(kwargs.get('exits'))
            if isinstance(e, (PartialExit, dict))
        ]
        review = kwargs.get('review')
        if isinstance(review, dict):
            kwargs['review'] = TradeReview.from_dict(review)
        elif not isinstance(review, TradeReview):
            kwargs['review'] = None
        kwargs['images'] = _as_list(kwargs.get('images'))
        kwargs['emotional_factors'] = _as_list(kwargs.get('emotional_factors'))
        checklist = kwargs.get('strategy_checklist')
        kwargs['strategy_checklist'] = dict(checklist) if isinstance(checklist, dict) else None

        return cls(**kwargs, extra=extra)

    def with_updates(self, updates: Dict[str, Any]) -> 'Trade':
        """Return a copy with ``updates`` merged in; protected fields are ignored."""
        doc = self.to_dict()
        for key, value in updates.items():
            if key in self.PROTECTED_FIELDS:
                continue
            doc[key] = value
        return Trade.from_dict(doc)


# ==================== Weekly Analysis ====================

TRENDS = ('Uptrend', 'Downtrend', 'Ranging', '')
BIASES = ('Bullish', 'Bearish', 'Neutral')
LEVEL_TYPES = ('Supply', 'Demand', 'Order Block', 'Imbalance', 'Other')
REVIEW_TIMEFRAMES = ('monthly', 'weekly', 'daily')


def week_key_for(value: Union[str, date, datetime]) -> str:
    """ISO date of the Monday starting the week that contains ``value``."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if isinstance(value, datetime):
        value = value.date()
    monday = value - timedelta(days=value.weekday())
    return monday.isoformat()


@dataclass
class CurrencyPair:
    """A pair on the weekly watch list with its reference quote."""
    pair: str
    bid: str = ''
    ask: str = ''
    created_at: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> 'CurrencyPair':
        if not d.get('pair'):
            raise ValueError('pair is required')
        return cls(
            pair=str(d['pair']).upper(),
            bid=str(d.get('bid') or ''),
            ask=str(d.get('ask') or ''),
            created_at=d.get('created_at'),
        )


@dataclass
class TimeframeAnalysis:
    trend: str = ''
    notes: str = ''

    @classmethod
    def from_dict(cls, d: dict) -> 'TimeframeAnalysis':
        trend = d.get('trend') or ''
        if trend not in TRENDS:
            raise ValueError(f'Invalid trend {trend!r}. Must be one of: {list(TRENDS)}')
        return cls(trend=trend, notes=d.get('notes') or '')


@dataclass
class TradingLevel:
    id: int
    type: str = 'Other'
    note: str = ''

    @classmethod
    def from_dict(cls, d: dict) -> 'TradingLevel':
        level_type = d.get('type') or 'Other'
        if level_type not in LEVEL_TYPES:
            raise ValueError(f'Invalid level type {level_type!r}. Must be one of: {list(LEVEL_TYPES)}')
        return cls(id=int(d.get('id') or 0), type=level_type, note=d.get('note') or '')


@dataclass
class PairReview:
    """Top-down analysis and weekly plan for one pair."""
    timeframes: Dict[str, TimeframeAnalysis] = field(default_factory=dict)
    bias: Optional[str] = None
    levels: List[TradingLevel] = field(default_factory=list)
    observations: str = ''
    plan: Dict[str, str] = field(default_factory=dict)
    progress: Dict[str, Dict[str, bool]] = field(default_factory=dict)  # day -> checklist id -> done
    review: Dict[str, Any] = field(default_factory=dict)
    updated_at: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> 'PairReview':
        bias = d.get('bias') or None
        if bias is not None and bias not in BIASES:
            raise ValueError(f'Invalid bias {bias!r}. Must be one of: {list(BIASES)}')
        timeframes = {
            name: TimeframeAnalysis.from_dict(tf or {})
            for name, tf in (d.get('timeframes') or {}).items()
            if name in REVIEW_TIMEFRAMES
        }
        progress = d.get('progress') or {}
        # Older documents nest the per-day map under a "daily" key
        if isinstance(progress.get('daily'), dict):
            progress = progress['daily']
        return cls(
            timeframes=timeframes,
            bias=bias,
            levels=[TradingLevel.from_dict(level) for level in d.get('levels') or []],
            observations=d.get('observations') or '',
            plan={k: str(v) for k, v in (d.get('plan') or {}).items() if v is not None},
            progress={day: {k: bool(v) for k, v in items.items()} for day, items in progress.items()},
            review=dict(d.get('review') or {}),
            updated_at=d.get('updated_at'),
        )


@dataclass
class WeeklyAnalysis:
    """One week of pair analysis, keyed by the Monday of the week."""
    week_key: str
    user_id: Optional[str] = None
    pairs: List[CurrencyPair] = field(default_factory=list)
    reviews: Dict[str, PairReview] = field(default_factory=dict)

    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> 'WeeklyAnalysis':
        if not d.get('week_key'):
            raise ValueError('week_key is required')
        pairs = [CurrencyPair.from_dict(p) for p in d.get('pairs') or []]
        return cls(
            week_key=week_key_for(d['week_key']),
            user_id=d.get('user_id'),
            pairs=pairs,
            reviews={
                str(pair).upper(): PairReview.from_dict(review or {})
                for pair, review in (d.get('reviews') or {}).items()
            },
            created_at=d.get('created_at') or _now(),
            updated_at=d.get('updated_at') or _now(),
        )


# ==================== Strategy Playbook ====================

@dataclass
class NoteCard:
    """Free text with an optional illustrative image."""
    id: str
    title: str = ''
    text: str = ''
    image: Optional[str] = None
    kind: ClassVar[str] = 'note'


@dataclass
class ChecklistCard:
    """Ordered checklist; its items feed the trade form's strategy checklist."""
    id: str
    title: str = ''
    items: List[str] = field(default_factory=list)
    kind: ClassVar[str] = 'checklist'


@dataclass
class RuleCard:
    """A named trading rule shown as a coloured pin on the board."""
    id: str
    title: str = ''
    text: str = ''
    color: str = ''
    kind: ClassVar[str] = 'rule'


Card = Union[NoteCard, ChecklistCard, RuleCard]

CARD_TYPES: Dict[str, type] = {
    NoteCard.kind: NoteCard,
    ChecklistCard.kind: ChecklistCard,
    RuleCard.kind: RuleCard,
}


def new_card_id() -> str:
    return uuid.uuid4().hex[:12]


def card_from_dict(d: dict) -> Card:
    """Build the card variant named by ``kind``."""
    kind = d.get('kind')
    card_cls = CARD_TYPES.get(kind)
    if card_cls is None:
        raise ValueError(f'Invalid card kind {kind!r}. Must be one of: {sorted(CARD_TYPES)}')
    names = {f.name for f in fields(card_cls)}
    kwargs = {k: v for k, v in d.items() if k in names}
    kwargs['id'] = str(kwargs.get('id') or new_card_id())
    if card_cls is ChecklistCard:
        kwargs['items'] = [str(item) for item in kwargs.get('items') or [] if str(item).strip()]
    return card_cls(**kwargs)


def card_to_dict(card: Card) -> dict:
    d = asdict(card)
    d['kind'] = card.kind
    return d


@dataclass
class Section:
    """A named column of cards on a strategy board."""
    id: str
    name: str
    cards: List[Card] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'cards': [card_to_dict(c) for c in self.cards],
        }

    @classmethod
    def from_dict(cls, d: dict) -> 'Section':
        if not d.get('id') or not d.get('name'):
            raise ValueError('section id and name are required')
        return cls(
            id=str(d['id']),
            name=str(d['name']),
            cards=[card_from_dict(c) for c in d.get('cards') or []],
        )

    def find_card(self, card_id: str) -> Optional[Card]:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None


@dataclass
class Strategy:
    """A strategy board in the playbook."""
    id: str
    name: str
    user_id: Optional[str] = None
    description: str = ''
    category: str = ''
    win_rate: str = ''
    risk_reward: str = ''
    sections: List[Section] = field(default_factory=list)

    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    @staticmethod
    def new_id() -> str:
        return str(uuid.uuid4())

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'user_id': self.user_id,
            'description': self.description,
            'category': self.category,
            'win_rate': self.win_rate,
            'risk_reward': self.risk_reward,
            'sections': [s.to_dict() for s in self.sections],
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> 'Strategy':
        if not d.get('name'):
            raise ValueError('name is required')
        return cls(
            id=str(d.get('id') or cls.new_id()),
            name=str(d['name']),
            user_id=d.get('user_id'),
            description=d.get('description') or '',
            category=d.get('category') or '',
            win_rate=d.get('win_rate') or '',
            risk_reward=d.get('risk_reward') or '',
            sections=[Section.from_dict(s) for s in d.get('sections') or []],
            created_at=d.get('created_at') or _now(),
            updated_at=d.get('updated_at') or _now(),
        )

    def find_section(self, section_id: str) -> Optional[Section]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None
