"""
EditDraft — Unit Tests
"""
from datetime import date

import pytest

from services.tradebook.client.draft import (
    CHECKLIST_TAB,
    DRAFT_DEFAULTS,
    FORM_TABS,
    DraftValidationError,
    EditDraft,
)
from services.tradebook.intel.models import PartialExit, Trade


def filled_draft() -> EditDraft:
    draft = EditDraft.new(date(2024, 3, 4))
    draft.update({
        'pair': 'EURUSD',
        'entry_price': '1.1000',
        'exit_price': '1.1050',
        'stop_loss': '1.0950',
        'take_profit': '1.1100',
    })
    return draft


class TestConstruction:
    def test_new_is_dated_and_blank(self):
        draft = EditDraft.new(date(2024, 3, 4))
        assert draft.is_new
        assert draft.get('date') == '2024-03-04'
        assert draft.get('pair') == ''
        assert draft.get('followed_plan') == 'Yes'
        assert draft.active_tab == FORM_TABS[0]

    def test_defaults_are_not_shared(self):
        first, second = EditDraft(), EditDraft()
        first.add_images(['a.png'])
        assert second.get('images') == []
        assert DRAFT_DEFAULTS['images'] == []

    def test_from_trade_fills_gaps(self):
        trade = Trade(id='t1', pair='USDJPY', confidence_level='8',
                      exits=[PartialExit(price='110.2', lots='0.5', profit_loss=25)])
        draft = EditDraft.from_trade(trade)
        assert draft.editing_id == 't1'
        assert not draft.is_new
        assert draft.get('pair') == 'USDJPY'
        assert draft.get('confidence_level') == '8'
        assert draft.get('distraction_level') == 'Low'
        assert draft.get('exits') == [{'price': '110.2', 'lots': '0.5', 'profit_loss': 25, 'time': None}]

    def test_draft_is_independent_of_trade(self):
        trade = Trade(id='t1', images=['a.png'])
        draft = EditDraft.from_trade(trade)
        draft.remove_image(0)
        assert trade.images == ['a.png']


class TestFields:
    def test_unknown_field(self):
        with pytest.raises(KeyError):
            EditDraft().set('volume', 1)

    def test_reset(self):
        draft = filled_draft()
        draft.editing_id = 't1'
        draft.go_to_tab('outcome')
        draft.reset()
        assert draft.get('pair') == ''
        assert draft.is_new
        assert draft.active_tab == FORM_TABS[0]

    def test_exits(self):
        draft = EditDraft()
        draft.add_exit(price='1.105', lots='0.05')
        draft.add_exit(price='1.108')
        draft.remove_exit(0)
        assert draft.get('exits') == [{'price': '1.108', 'lots': '', 'profit_loss': '', 'time': ''}]
        with pytest.raises(KeyError):
            draft.add_exit(volume=1)
        with pytest.raises(IndexError):
            draft.remove_exit(5)

    def test_images(self):
        draft = EditDraft()
        draft.add_images(['a.png', '', 'b.png'])
        assert draft.remove_image(0) == 'a.png'
        assert draft.get('images') == ['b.png']
        with pytest.raises(IndexError):
            draft.remove_image(3)


class TestChecklistAndTabs:
    def test_checklist_tab_appears_with_strategy(self):
        draft = EditDraft()
        assert CHECKLIST_TAB not in draft.tabs

        draft.set('strategy', 'Daily Pull back')
        draft.apply_checklist({'Trend aligned': False})
        assert draft.tabs[draft.tabs.index('strategy') + 1] == CHECKLIST_TAB

    def test_toggle(self):
        draft = EditDraft()
        draft.apply_checklist({'Trend aligned': False})
        assert draft.toggle_checklist('Trend aligned') is True
        assert draft.toggle_checklist('Trend aligned') is False
        with pytest.raises(KeyError):
            draft.toggle_checklist('Missing')

    def test_tab_navigation_is_clamped(self):
        draft = EditDraft()
        assert draft.previous_tab() == FORM_TABS[0]
        for _ in range(len(FORM_TABS) + 3):
            draft.next_tab()
        assert draft.active_tab == FORM_TABS[-1]

    def test_unknown_tab(self):
        with pytest.raises(ValueError):
            EditDraft().go_to_tab(CHECKLIST_TAB)


class TestCommit:
    @pytest.mark.parametrize('field,message', [
        ('pair', 'Please select a currency pair'),
        ('entry_price', 'Entry price is required'),
        ('exit_price', 'Exit price is required'),
        ('stop_loss', 'Stop loss is required'),
        ('take_profit', 'Take profit is required'),
    ])
    def test_required_fields(self, field, message):
        draft = filled_draft()
        draft.set(field, '  ')
        with pytest.raises(DraftValidationError) as info:
            draft.validate()
        assert info.value.field == field
        assert str(info.value) == message

    def test_first_missing_field_wins(self):
        with pytest.raises(DraftValidationError) as info:
            EditDraft().validate()
        assert info.value.field == 'pair'

    def test_valid(self):
        filled_draft().validate()

    def test_to_trade(self):
        trade = filled_draft().to_trade('new-id')
        assert trade.id == 'new-id'
        assert trade.pair == 'EURUSD'
        assert trade.result == ''
        assert trade.extra == {}
