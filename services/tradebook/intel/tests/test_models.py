"""
Tradebook models — Unit Tests
"""
from datetime import date

import pytest

from services.tradebook.intel.models import (
    ChecklistCard,
    NoteCard,
    PairReview,
    PartialExit,
    RuleCard,
    Strategy,
    Trade,
    WeeklyAnalysis,
    card_from_dict,
    card_to_dict,
    week_key_for,
)


class TestTrade:
    def test_unknown_keys_survive_round_trip(self):
        doc = {'id': 't1', 'pair': 'EURUSD', 'customTag': 'london', '_id': 'mongo'}
        trade = Trade.from_dict(doc)
        assert trade.extra == {'customTag': 'london'}

        out = trade.to_dict()
        assert out['customTag'] == 'london'
        assert '_id' not in out
        assert 'extra' not in out

    def test_nested_values_are_typed(self):
        trade = Trade.from_dict({
            'id': 't1',
            'exits': [{'price': '1.1', 'profit_loss': 12}, 'junk'],
            'review': {'notes': 'held too long'},
        })
        assert trade.exits == [PartialExit(price='1.1', profit_loss=12)]
        assert trade.review.notes == 'held too long'

    def test_missing_fields_are_none(self):
        trade = Trade.from_dict({'id': 't1'})
        assert trade.result is None
        assert trade.images == []

    def test_lone_values_in_list_fields_are_wrapped(self):
        trade = Trade.from_dict({
            'id': 't1',
            'images': 'https://img.example/a.png',
            'emotional_factors': 'FOMO',
            'exits': 5,
            'strategy_checklist': 'yes',
        })
        assert trade.images == ['https://img.example/a.png']
        assert trade.emotional_factors == ['FOMO']
        assert trade.exits == []
        assert trade.strategy_checklist is None

    def test_with_updates_protects_identity(self):
        trade = Trade(id='t1', user_id='u1', created_at='2024-01-01', pair='EURUSD')
        updated = trade.with_updates({'id': 'x', 'user_id': 'u2', 'created_at': 'now', 'pair': 'GBPUSD'})
        assert (updated.id, updated.user_id, updated.created_at) == ('t1', 'u1', '2024-01-01')
        assert updated.pair == 'GBPUSD'
        assert trade.pair == 'EURUSD'

    def test_new_ids_are_unique(self):
        assert Trade.new_id() != Trade.new_id()


class TestWeekly:
    @pytest.mark.parametrize('value,expected', [
        ('2024-03-06', '2024-03-04'),
        ('2024-03-04T23:00:00Z', '2024-03-04'),
        (date(2024, 3, 10), '2024-03-04'),
    ])
    def test_week_key_is_monday(self, value, expected):
        assert week_key_for(value) == expected

    def test_from_dict_normalises(self):
        weekly = WeeklyAnalysis.from_dict({
            'week_key': '2024-03-07',
            'pairs': [{'pair': 'eurusd', 'bid': 1.08}],
            'reviews': {'eurusd': {'bias': 'Bullish'}},
        })
        assert weekly.week_key == '2024-03-04'
        assert weekly.pairs[0].pair == 'EURUSD'
        assert weekly.pairs[0].bid == '1.08'
        assert weekly.reviews['EURUSD'].bias == 'Bullish'

    def test_week_key_required(self):
        with pytest.raises(ValueError):
            WeeklyAnalysis.from_dict({'pairs': []})

    def test_invalid_bias(self):
        with pytest.raises(ValueError):
            PairReview.from_dict({'bias': 'Sideways'})

    def test_invalid_level_type(self):
        with pytest.raises(ValueError):
            PairReview.from_dict({'levels': [{'id': 1, 'type': 'Pivot'}]})

    def test_legacy_progress_shape(self):
        review = PairReview.from_dict({'progress': {'daily': {'mon': {'plan': 1}}}})
        assert review.progress == {'mon': {'plan': True}}


class TestCards:
    def test_variant_by_kind(self):
        assert isinstance(card_from_dict({'kind': 'note', 'text': 'x'}), NoteCard)
        assert isinstance(card_from_dict({'kind': 'rule', 'color': '#fff'}), RuleCard)

    def test_checklist_drops_blank_items(self):
        card = card_from_dict({'kind': 'checklist', 'items': ['Trend', ' ', 'Level']})
        assert isinstance(card, ChecklistCard)
        assert card.items == ['Trend', 'Level']

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            card_from_dict({'kind': 'video'})

    def test_to_dict_carries_kind(self):
        d = card_to_dict(RuleCard(id='r1', title='Wait'))
        assert d['kind'] == 'rule'
        assert card_from_dict(d) == RuleCard(id='r1', title='Wait')


class TestStrategy:
    def test_name_required(self):
        with pytest.raises(ValueError):
            Strategy.from_dict({'description': 'no name'})

    def test_sections_and_cards(self):
        strategy = Strategy.from_dict({
            'name': 'Breakout',
            'sections': [{'id': 's1', 'name': 'Entry', 'cards': [{'kind': 'note', 'id': 'n1'}]}],
        })
        assert strategy.id
        assert strategy.find_section('s1').find_card('n1') == NoteCard(id='n1')
        assert strategy.find_section('nope') is None
