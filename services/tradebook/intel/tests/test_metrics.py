"""
Derived metrics — Unit Tests

Pure functions, no IO. Covers pip units, pip distance, result
classification, realized P&L, displayed RR and completeness.
"""
import pytest

from services.tradebook.intel.metrics import (
    COMPLETENESS_FIELDS,
    classify_result,
    completeness,
    display_rr,
    parse_price,
    pip_distance,
    pip_unit,
    project,
    realized_pnl,
    round_half_up,
)
from services.tradebook.intel.models import PartialExit, Trade


def make_trade(**fields) -> Trade:
    return Trade(id=fields.pop('id', 't1'), **fields)


class TestParsePrice:
    def test_decimal_string(self):
        assert parse_price('1.1050') == pytest.approx(1.105)

    def test_numbers_pass_through(self):
        assert parse_price(110) == 110.0

    @pytest.mark.parametrize('value', [None, '', '   ', 'abc', '1.2.3', 'nan', 'inf', True])
    def test_unusable_values_are_none(self, value):
        assert parse_price(value) is None


class TestRoundHalfUp:
    def test_ties_round_up(self):
        assert round_half_up(0.25, 1) == pytest.approx(0.3)
        assert round_half_up(-0.25, 1) == pytest.approx(-0.2)

    def test_whole_numbers(self):
        assert round_half_up(45.5, 0) == 46


class TestPipUnit:
    def test_jpy_pair(self):
        assert pip_unit('USDJPY', 110.00) == 0.01

    def test_standard_pair(self):
        assert pip_unit('EURUSD', 1.2345) == 0.0001

    def test_large_quote_heuristic(self):
        """Index and metal quotes at or above 100 use 0.01."""
        assert pip_unit('SPX500', 4500) == 0.01
        assert pip_unit('XAUUSD', '1950.25') == 0.01

    def test_jpy_wins_without_entry(self):
        assert pip_unit('gbpjpy') == 0.01

    def test_missing_everything(self):
        assert pip_unit(None, None) == 0.0001


class TestPipDistance:
    def test_eurusd_win(self):
        assert pip_distance('EURUSD', '1.1000', '1.1050') == 50.0

    def test_usdjpy_loss(self):
        assert pip_distance('USDJPY', '110.00', '109.50') == -50.0

    def test_one_decimal(self):
        assert pip_distance('EURUSD', '1.10000', '1.10123') == pytest.approx(12.3)

    @pytest.mark.parametrize('entry,exit_', [
        ('', '1.1'), ('1.1', None), ('abc', '1.1'), ('1.1', '0'),
    ])
    def test_unusable_prices(self, entry, exit_):
        assert pip_distance('EURUSD', entry, exit_) is None


class TestClassifyResult:
    @pytest.mark.parametrize('entry,exit_,expected', [
        ('1.1000', '1.1050', 'Win'),
        ('1.1000', '1.0950', 'Loss'),
        ('1.1000', '1.1000', 'Breakeven'),
        ('1.1000', '1.10', 'Breakeven'),
    ])
    def test_derived_from_prices(self, entry, exit_, expected):
        trade = make_trade(pair='EURUSD', entry_price=entry, exit_price=exit_)
        assert classify_result(trade) == expected

    @pytest.mark.parametrize('stored', ['Win', 'Loss', 'Breakeven', 'Open'])
    def test_stored_result_wins(self, stored):
        """A stored result is shown verbatim even when prices disagree."""
        trade = make_trade(entry_price='1.1000', exit_price='1.0900', result=stored)
        assert classify_result(trade) == stored

    def test_stored_result_is_not_overwritten(self):
        trade = make_trade(entry_price='1.1000', exit_price='1.0900', result='Win')
        project(trade)
        assert trade.result == 'Win'

    def test_empty_stored_result_is_derived(self):
        trade = make_trade(entry_price='1.1000', exit_price='1.2000', result='')
        assert classify_result(trade) == 'Win'

    def test_open_without_exit(self):
        assert classify_result(make_trade(entry_price='1.1000')) == 'Open'


class TestRealizedPnl:
    def test_pip_approximation(self):
        trade = make_trade(pair='EURUSD', entry_price='1.1000', exit_price='1.1050', lots='1')
        assert realized_pnl(trade) == pytest.approx(500.0)

    def test_default_lots(self):
        trade = make_trade(pair='EURUSD', entry_price='1.1000', exit_price='1.1050')
        assert realized_pnl(trade) == pytest.approx(50.0)

    def test_jpy_pip_value(self):
        trade = make_trade(pair='USDJPY', entry_price='110.00', exit_price='109.50', lots='2')
        assert realized_pnl(trade) == pytest.approx(-100.0)

    def test_partial_exits_take_precedence(self):
        trade = make_trade(
            pair='EURUSD', entry_price='1.1000', exit_price='1.1050',
            exits=[PartialExit(profit_loss='25.5'), PartialExit(profit_loss=-5), PartialExit(profit_loss='n/a')],
        )
        assert realized_pnl(trade) == pytest.approx(20.5)

    def test_no_prices_no_pnl(self):
        assert realized_pnl(make_trade(pair='EURUSD')) == 0.0


class TestDisplayRr:
    def test_breakeven_is_zero(self):
        assert display_rr(make_trade(rr_achieved='2.5'), 'Breakeven') == '0'

    def test_recorded_rr(self):
        assert display_rr(make_trade(rr_achieved='2.5'), 'Win') == '2.5'

    def test_missing_rr(self):
        assert display_rr(make_trade(), 'Loss') == ''


class TestCompleteness:
    def test_empty(self):
        assert completeness(make_trade()) == 0

    def test_full(self):
        trade = make_trade(**{name: 'x' for name in COMPLETENESS_FIELDS})
        assert completeness(trade) == 100

    def test_whitespace_does_not_count(self):
        assert completeness(make_trade(reason_for_entry='   ')) == 0

    def test_rounding(self):
        """1 of 11 is 9.09% -> 9; 6 of 11 is 54.5% -> 55."""
        assert completeness(make_trade(reason_for_entry='x')) == 9
        fields = {name: 'x' for name in COMPLETENESS_FIELDS[:6]}
        assert completeness(make_trade(**fields)) == 55

    def test_monotonic(self):
        """Filling any empty tracked field never lowers the score."""
        trade = make_trade()
        previous = completeness(trade)
        for name in COMPLETENESS_FIELDS:
            setattr(trade, name, 'filled')
            score = completeness(trade)
            assert score >= previous
            previous = score
        assert previous == 100


class TestProject:
    def test_eurusd_scenario(self):
        row = project(make_trade(
            pair='EURUSD', entry_price='1.1000', exit_price='1.1050',
            stop_loss='1.0950', take_profit='1.1100',
        ))
        assert row.result == 'Win'
        assert row.pips == 50.0
        assert row.pnl == pytest.approx(50.0)

    def test_usdjpy_scenario(self):
        trade = make_trade(pair='USDJPY', entry_price='110.00', exit_price='109.50')
        row = project(trade)
        assert pip_unit(trade.pair, trade.entry_price) == 0.01
        assert row.pips == -50.0
        assert row.result == 'Loss'

    def test_accepts_documents(self):
        row = project({'id': 'x', 'pair': 'EURUSD', 'strategy': 'Daily Pull back', 'images': ['a', 'b']})
        assert row.setup == 'Daily Pull back'
        assert row.image_count == 2
        assert row.result == 'Open'
        assert row.pips is None
        assert row.pnl == 0.0

    def test_never_raises_on_garbage(self):
        row = project(make_trade(pair=None, entry_price='??', exit_price='', lots='lots'))
        assert row.result == 'Open'
        assert row.rr == ''

    def test_non_string_text_fields_are_displayed_as_text(self):
        row = project({'id': 'x', 'pair': 123, 'date': 20240301, 'direction': 1,
                       'entry_price': '1.1', 'exit_price': '1.2'})
        assert (row.pair, row.date, row.direction) == ('123', '20240301', '1')
        assert row.result == 'Win'

    def test_numeric_jpy_check_does_not_raise(self):
        assert pip_unit(7, '1.1000') == 0.0001

    def test_breakeven_rr(self):
        row = project(make_trade(pair='EURUSD', entry_price='1.1', exit_price='1.1', rr_achieved='1.5'))
        assert row.result == 'Breakeven'
        assert row.rr == '0'
