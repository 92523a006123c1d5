# services/tradebook/intel/db.py
"""SQLite document store for the tradebook service.

Each record is a JSON document in a ``doc`` column, keyed by ``(user_id, id)``
so every read and write is scoped to its owner. Documents keep whatever shape
they were written with; the dataclasses in ``models`` decide how to read them.
"""

import json
import os
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import Strategy, Trade, WeeklyAnalysis


class DuplicateRecordError(Exception):
    """A record with the same id already exists for this owner."""


class TradebookDB:
    """SQLite manager for trades, weekly analyses and strategy boards."""

    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            # Default to services/tradebook/data/tradebook.db
            base = Path(__file__).resolve().parents[1]
            db_path = str(base / "data" / "tradebook.db")

        self.db_path = db_path
        self._ensure_dir()
        self._init_schema()

    def _ensure_dir(self):
        """Ensure the database directory exists."""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def _get_conn(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self):
        """Initialize the database schema."""
        conn = self._get_conn()
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS trades (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    doc TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE (user_id, id)
                );

                CREATE TABLE IF NOT EXISTS weekly (
                    user_id TEXT NOT NULL,
                    week_key TEXT NOT NULL,
                    doc TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (user_id, week_key)
                );

                CREATE TABLE IF NOT EXISTS strategies (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    doc TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE (user_id, id)
                );

                CREATE INDEX IF NOT EXISTS idx_trades_user ON trades(user_id);
                CREATE INDEX IF NOT EXISTS idx_strategies_user ON strategies(user_id);
            """)
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _now() -> str:
        return datetime.utcnow().isoformat()

    @staticmethod
    def _dump(doc: Dict[str, Any]) -> str:
        return json.dumps(doc, separators=(",", ":"))

    # ==================== Trades ====================

    def create_trade(self, trade: Trade) -> Trade:
        """Insert a new trade. Raises DuplicateRecordError if the id is taken."""
        now = self._now()
        trade.created_at = trade.created_at or now
        trade.updated_at = now

        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO trades (id, user_id, doc, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (trade.id, trade.user_id, self._dump(trade.to_dict()), trade.created_at, trade.updated_at)
            )
            conn.commit()
            return trade
        except sqlite3.IntegrityError:
            raise DuplicateRecordError(f"trade {trade.id} already exists")
        finally:
            conn.close()

    def get_trade(self, user_id: str, trade_id: str) -> Optional[Trade]:
        """Get a single trade by ID."""
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT doc FROM trades WHERE user_id = ? AND id = ?",
                (user_id, trade_id)
            ).fetchone()

            if row:
                return Trade.from_dict(json.loads(row['doc']))
            return None
        finally:
            conn.close()

    def list_trades(self, user_id: str) -> List[Trade]:
        """All of an owner's trades in insertion order."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT doc FROM trades WHERE user_id = ? ORDER BY seq ASC",
                (user_id,)
            ).fetchall()
            return [Trade.from_dict(json.loads(row['doc'])) for row in rows]
        finally:
            conn.close()

    def update_trade(self, user_id: str, trade_id: str, updates: Dict[str, Any]) -> Optional[Trade]:
        """Merge ``updates`` into a trade. Returns None when it does not exist."""
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT doc FROM trades WHERE user_id = ? AND id = ?",
                (user_id, trade_id)
            ).fetchone()
            if not row:
                return None

            trade = Trade.from_dict(json.loads(row['doc'])).with_updates(updates)
            trade.updated_at = self._now()

            conn.execute(
                "UPDATE trades SET doc = ?, updated_at = ? WHERE user_id = ? AND id = ?",
                (self._dump(trade.to_dict()), trade.updated_at, user_id, trade_id)
            )
            conn.commit()
            return trade
        finally:
            conn.close()

    def delete_trade(self, user_id: str, trade_id: str) -> bool:
        """Delete a trade."""
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                "DELETE FROM trades WHERE user_id = ? AND id = ?",
                (user_id, trade_id)
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    # ==================== Weekly Analysis ====================

    def get_weekly(self, user_id: str, week_key: str) -> Optional[WeeklyAnalysis]:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT doc FROM weekly WHERE user_id = ? AND week_key = ?",
                (user_id, week_key)
            ).fetchone()
            if row:
                return WeeklyAnalysis.from_dict(json.loads(row['doc']))
            return None
        finally:
            conn.close()

    def upsert_weekly(self, weekly: WeeklyAnalysis) -> WeeklyAnalysis:
        """Insert or replace the owner's document for a week."""
        conn = self._get_conn()
        try:
            existing = conn.execute(
                "SELECT created_at FROM weekly WHERE user_id = ? AND week_key = ?",
                (weekly.user_id, weekly.week_key)
            ).fetchone()

            weekly.updated_at = self._now()
            if existing:
                weekly.created_at = existing['created_at']

            conn.execute(
                """
                INSERT INTO weekly (user_id, week_key, doc, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (user_id, week_key)
                DO UPDATE SET doc = excluded.doc, updated_at = excluded.updated_at
                """,
                (weekly.user_id, weekly.week_key, self._dump(weekly.to_dict()),
                 weekly.created_at, weekly.updated_at)
            )
            conn.commit()
            return weekly
        finally:
            conn.close()

    def list_week_keys(self, user_id: str) -> List[str]:
        """Weeks with saved analysis, newest first."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT week_key FROM weekly WHERE user_id = ? ORDER BY week_key DESC",
                (user_id,)
            ).fetchall()
            return [row['week_key'] for row in rows]
        finally:
            conn.close()

    # ==================== Strategies ====================

    def create_strategy(self, strategy: Strategy) -> Strategy:
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO strategies (id, user_id, doc, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (strategy.id, strategy.user_id, self._dump(strategy.to_dict()),
                 strategy.created_at, strategy.updated_at)
            )
            conn.commit()
            return strategy
        except sqlite3.IntegrityError:
            raise DuplicateRecordError(f"strategy {strategy.id} already exists")
        finally:
            conn.close()

    def get_strategy(self, user_id: str, strategy_id: str) -> Optional[Strategy]:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT doc FROM strategies WHERE user_id = ? AND id = ?",
                (user_id, strategy_id)
            ).fetchone()
            if row:
                return Strategy.from_dict(json.loads(row['doc']))
            return None
        finally:
            conn.close()

    def list_strategies(self, user_id: str) -> List[Strategy]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT doc FROM strategies WHERE user_id = ? ORDER BY seq ASC",
                (user_id,)
            ).fetchall()
            return [Strategy.from_dict(json.loads(row['doc'])) for row in rows]
        finally:
            conn.close()

    def save_strategy(self, strategy: Strategy) -> bool:
        """Replace a stored strategy document. Returns False if it is missing."""
        strategy.updated_at = self._now()
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                "UPDATE strategies SET doc = ?, updated_at = ? WHERE user_id = ? AND id = ?",
                (self._dump(strategy.to_dict()), strategy.updated_at, strategy.user_id, strategy.id)
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def update_strategy(self, user_id: str, strategy_id: str, updates: Dict[str, Any]) -> Optional[Strategy]:
        """Merge top-level fields into a strategy; id, owner and created_at never change."""
        strategy = self.get_strategy(user_id, strategy_id)
        if not strategy:
            return None

        doc = strategy.to_dict()
        for key, value in updates.items():
            if key in ('id', 'user_id', 'created_at'):
                continue
            doc[key] = value

        updated = Strategy.from_dict(doc)
        self.save_strategy(updated)
        return updated

    def delete_strategy(self, user_id: str, strategy_id: str) -> bool:
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                "DELETE FROM strategies WHERE user_id = ? AND id = ?",
                (user_id, strategy_id)
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()
