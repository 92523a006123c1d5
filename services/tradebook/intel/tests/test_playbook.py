"""
Strategy playbook — Unit Tests
"""
import pytest

from services.tradebook.intel.db import TradebookDB
from services.tradebook.intel.models import ChecklistCard, NoteCard, RuleCard, Section, Strategy
from services.tradebook.intel.playbook import (
    RULE_STAGES,
    BoardLookupError,
    add_card,
    add_section,
    checklist_items,
    default_strategies,
    move_card,
    remove_card,
    seed_strategies,
    strategy_checklist,
    update_card,
)


@pytest.fixture
def board():
    return Strategy(id='s1', name='Breakout', user_id='u1', sections=[
        Section(id='setup', name='Setup', cards=[
            NoteCard(id='n1', title='Context'),
            ChecklistCard(id='c1', title='Pre-entry', items=['Trend aligned', 'Level tested']),
        ]),
        Section(id='rules', name='Rules', cards=[
            ChecklistCard(id='c2', items=['Level tested', 'Risk under 1%']),
            RuleCard(id='r1', title='No news'),
        ]),
    ])


class TestSeeding:
    def test_default_boards(self):
        strategies = default_strategies('u1')
        assert [s.name for s in strategies] == [
            'Daily Pull back', 'Support/Resistance Breakout', 'Price Action Reversal', 'Fibonacci Retracement',
        ]
        assert all(s.user_id == 'u1' for s in strategies)

        rules = strategies[0].find_section('rules')
        assert [c.id for c in rules.cards] == [stage[0] for stage in RULE_STAGES]
        assert strategies[1].find_section('rules').cards == []

    def test_seed_is_non_destructive(self, tmp_path):
        db = TradebookDB(str(tmp_path / 'tb.db'))
        db.create_strategy(Strategy(id='mine', name='My board', user_id='u1'))

        kept = seed_strategies(db, 'u1')
        assert [s.id for s in kept] == ['mine']

        seeded = seed_strategies(db, 'u1', force=True)
        assert len(seeded) == 4
        assert db.get_strategy('u1', 'mine') is None
        assert len(db.list_strategies('u1')) == 4

    def test_seed_empty_owner(self, tmp_path):
        db = TradebookDB(str(tmp_path / 'tb.db'))
        assert len(seed_strategies(db, 'u2')) == 4


class TestCards:
    def test_add_section_and_card(self, board):
        add_section(board, 'examples', 'Examples')
        card = add_card(board, 'examples', {'kind': 'note', 'title': 'EURUSD 4H'})
        assert board.find_section('examples').cards == [card]

        with pytest.raises(ValueError):
            add_section(board, 'examples', 'Again')

    def test_add_card_to_missing_section(self, board):
        with pytest.raises(BoardLookupError):
            add_card(board, 'nope', {'kind': 'note'})

    def test_update_keeps_id_and_kind(self, board):
        card = update_card(board, 'rules', 'r1', {'id': 'x', 'kind': 'note', 'text': 'Flat before NFP'})
        assert isinstance(card, RuleCard)
        assert card.id == 'r1'
        assert card.title == 'No news'
        assert card.text == 'Flat before NFP'

    def test_remove(self, board):
        removed = remove_card(board, 'setup', 'n1')
        assert removed.id == 'n1'
        assert [c.id for c in board.find_section('setup').cards] == ['c1']
        with pytest.raises(BoardLookupError):
            remove_card(board, 'setup', 'n1')

    @pytest.mark.parametrize('position,expected', [
        (1, ['c1', 'n1']),
        (99, ['c1', 'n1']),
        (-5, ['n1', 'c1']),
    ])
    def test_move_is_clamped(self, board, position, expected):
        move_card(board, 'setup', 'n1', position)
        assert [c.id for c in board.find_section('setup').cards] == expected


class TestChecklist:
    def test_items_in_board_order_without_duplicates(self, board):
        assert checklist_items(board) == ['Trend aligned', 'Level tested', 'Risk under 1%']

    def test_keeps_ticks_and_drops_stale_items(self, board):
        checklist = strategy_checklist(board, {'Level tested': True, 'Old item': True})
        assert checklist == {'Trend aligned': False, 'Level tested': True, 'Risk under 1%': False}
