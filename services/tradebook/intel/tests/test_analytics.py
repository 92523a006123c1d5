"""
Dashboard analytics — Unit Tests
"""
import pytest

from services.tradebook.intel.analytics import Analytics, daily_pnl, pair_breakdown, summarize
from services.tradebook.intel.db import TradebookDB
from services.tradebook.intel.models import Trade
from services.tradebook.intel.projection import RowProjection


TRADES = [
    Trade(id='t1', user_id='u1', date='2024-03-04', pair='EURUSD', entry_price='1.1000', exit_price='1.1050'),
    Trade(id='t2', user_id='u1', date='2024-03-05', pair='USDJPY', entry_price='110.00', exit_price='109.50', lots='1'),
    Trade(id='t3', user_id='u1', date='2024-03-05', pair='EURUSD', entry_price='1.1000', exit_price='1.1000'),
    Trade(id='t4', user_id='u1', pair='GBPUSD', reason_for_entry='Break of structure'),
]


@pytest.fixture
def rows():
    return RowProjection().refresh(TRADES)


class TestSummarize:
    def test_counts(self, rows):
        summary = summarize(rows)
        assert summary.total_trades == 4
        assert (summary.wins, summary.losses, summary.breakeven, summary.open_trades) == (1, 1, 1, 1)
        assert summary.win_rate == 25

    def test_pnl(self, rows):
        summary = summarize(rows)
        assert summary.total_pnl == pytest.approx(0.0)
        assert summary.best_trade == pytest.approx(50.0)
        assert summary.worst_trade == pytest.approx(-50.0)

    def test_recent_newest_first(self, rows):
        recent = summarize(rows, recent_limit=3).recent_trades
        assert [r['id'] for r in recent] == ['t2', 't3', 't1']

    def test_best_never_negative(self):
        rows = RowProjection().refresh([TRADES[1]])
        summary = summarize(rows)
        assert summary.best_trade == 0.0
        assert summary.worst_trade == pytest.approx(-50.0)

    def test_empty(self):
        summary = summarize([])
        assert summary.total_trades == 0
        assert summary.win_rate == 0
        assert summary.recent_trades == []


class TestBreakdowns:
    def test_pairs(self, rows):
        pairs = pair_breakdown(rows)
        assert pairs['EURUSD']['trades'] == 2
        assert pairs['EURUSD']['win_rate'] == 50
        assert pairs['EURUSD']['pnl'] == pytest.approx(50.0)
        assert pairs['USDJPY']['losses'] == 1

    def test_daily(self, rows):
        assert daily_pnl(rows) == [
            {'date': '2024-03-04', 'pnl': pytest.approx(50.0)},
            {'date': '2024-03-05', 'pnl': pytest.approx(-50.0)},
        ]
        assert [d['date'] for d in daily_pnl(rows, days=1)] == ['2024-03-05']


class TestAnalyticsService:
    def test_reads_owner_trades(self, tmp_path):
        db = TradebookDB(str(tmp_path / 'tb.db'))
        for trade in TRADES:
            db.create_trade(Trade.from_dict(trade.to_dict()))
        db.create_trade(Trade(id='x', user_id='u2', entry_price='1.1', exit_price='1.2'))

        analytics = Analytics(db)
        assert analytics.get_summary('u1').total_trades == 4
        assert analytics.get_summary('u2').wins == 1
        assert set(analytics.get_pair_breakdown('u1')) == {'EURUSD', 'USDJPY', 'GBPUSD'}
        assert len(analytics.get_daily_pnl('u1')) == 2
