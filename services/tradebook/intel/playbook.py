# services/tradebook/intel/playbook.py
"""Strategy playbook: default boards, card operations, checklist extraction."""

from typing import Any, Dict, List, Optional

from .models import (
    Card, ChecklistCard, RuleCard, Section, Strategy,
    card_from_dict, card_to_dict,
)


class BoardLookupError(LookupError):
    """A section or card id does not exist on the board."""


# Rule stages shown as coloured pins on a strategy's Rules section
RULE_STAGES = [
    ('market-condition', 'Market Condition', '#FF6B6B'),
    ('potential-setup', 'When Setup Looks Like Potential', '#4ECDC4'),
    ('ongoing-development', 'Ongoing Development', '#45B7D1'),
    ('real-candidate', 'Real Candidate', '#96CEB4'),
    ('entry-condition', 'Entry Condition', '#FFEAA7'),
    ('exit-condition', 'Exit Condition', '#DDA0DD'),
    ('trade-management', 'Trade Management', '#98D8C8'),
]

DEFAULT_STRATEGIES: List[Dict[str, Any]] = [
    {
        'name': 'Daily Pull back',
        'description': 'Trade pullbacks in daily trend',
        'category': 'Pullback',
        'win_rate': '68%',
        'risk_reward': '1:3',
        'sections': [('setup', 'Setup Description'), ('rules', 'Rules'), ('examples', 'Examples')],
        'rule_stages': True,
    },
    {
        'name': 'Support/Resistance Breakout',
        'description': 'Trade breakouts from key levels',
        'category': 'Breakout',
        'win_rate': '58%',
        'risk_reward': '1:3',
        'sections': [('setup', 'Setup Description'), ('rules', 'Rules'), ('backtest', 'Backtest Results')],
    },
    {
        'name': 'Price Action Reversal',
        'description': 'Candlestick pattern reversals',
        'category': 'Reversal',
        'win_rate': '72%',
        'risk_reward': '1:2',
        'sections': [('setup', 'Setup Description'), ('rules', 'Rules'), ('patterns', 'Patterns')],
    },
    {
        'name': 'Fibonacci Retracement',
        'description': 'Trade retracements at key fib levels',
        'category': 'Retracement',
        'win_rate': '61%',
        'risk_reward': '1:2.8',
        'sections': [('setup', 'Setup Description'), ('rules', 'Rules'), ('levels', 'Key Levels')],
    },
]


def default_strategies(user_id: str) -> List[Strategy]:
    """Fresh copies of the starter boards for one user."""
    strategies = []
    for seed in DEFAULT_STRATEGIES:
        sections = []
        for section_id, name in seed['sections']:
            cards: List[Card] = []
            if section_id == 'rules' and seed.get('rule_stages'):
                cards = [RuleCard(id=stage_id, title=title, color=color)
                         for stage_id, title, color in RULE_STAGES]
            sections.append(Section(id=section_id, name=name, cards=cards))

        strategies.append(Strategy(
            id=Strategy.new_id(),
            name=seed['name'],
            user_id=user_id,
            description=seed['description'],
            category=seed['category'],
            win_rate=seed['win_rate'],
            risk_reward=seed['risk_reward'],
            sections=sections,
        ))
    return strategies


def seed_strategies(db, user_id: str, force: bool = False) -> List[Strategy]:
    """
    Give a user the starter boards.

    Without ``force`` an owner who already has boards keeps them untouched;
    with ``force`` their boards are replaced.
    """
    existing = db.list_strategies(user_id)
    if existing and not force:
        return existing

    for strategy in existing:
        db.delete_strategy(user_id, strategy.id)

    seeded = default_strategies(user_id)
    for strategy in seeded:
        db.create_strategy(strategy)
    return seeded


# ==================== Card Operations ====================

def _section(strategy: Strategy, section_id: str) -> Section:
    section = strategy.find_section(section_id)
    if section is None:
        raise BoardLookupError(f"Section '{section_id}' not found")
    return section


def _card_index(section: Section, card_id: str) -> int:
    for index, card in enumerate(section.cards):
        if card.id == card_id:
            return index
    raise BoardLookupError(f"Card '{card_id}' not found in section '{section.id}'")


def add_section(strategy: Strategy, section_id: str, name: str) -> Section:
    if strategy.find_section(section_id):
        raise ValueError(f"Section '{section_id}' already exists")
    section = Section(id=section_id, name=name)
    strategy.sections.append(section)
    return section


def add_card(strategy: Strategy, section_id: str, data: Dict[str, Any]) -> Card:
    section = _section(strategy, section_id)
    card = card_from_dict(data)
    if section.find_card(card.id):
        raise ValueError(f"Card '{card.id}' already exists")
    section.cards.append(card)
    return card


def update_card(strategy: Strategy, section_id: str, card_id: str, updates: Dict[str, Any]) -> Card:
    """Merge updates into a card. Its id and kind never change."""
    section = _section(strategy, section_id)
    index = _card_index(section, card_id)
    current = section.cards[index]

    merged = {**card_to_dict(current), **updates, 'id': current.id, 'kind': current.kind}
    card = card_from_dict(merged)
    section.cards[index] = card
    return card


def remove_card(strategy: Strategy, section_id: str, card_id: str) -> Card:
    section = _section(strategy, section_id)
    return section.cards.pop(_card_index(section, card_id))


def move_card(strategy: Strategy, section_id: str, card_id: str, position: int) -> Card:
    """Move a card within its section; the position is clamped to the card list."""
    section = _section(strategy, section_id)
    card = section.cards.pop(_card_index(section, card_id))
    position = max(0, min(position, len(section.cards)))
    section.cards.insert(position, card)
    return card


# ==================== Trade Form Checklist ====================

def checklist_items(strategy: Strategy) -> List[str]:
    """Every checklist item on the board, in board order, without duplicates."""
    seen = set()
    items = []
    for section in strategy.sections:
        for card in section.cards:
            if not isinstance(card, ChecklistCard):
                continue
            for item in card.items:
                if item not in seen:
                    seen.add(item)
                    items.append(item)
    return items


def strategy_checklist(strategy: Strategy, current: Optional[Dict[str, bool]] = None) -> Dict[str, bool]:
    """
    Checklist map for the trade form.

    Items keep their ticked state from ``current``; items no longer on the
    board are dropped.
    """
    current = current or {}
    return {item: bool(current.get(item, False)) for item in checklist_items(strategy)}
