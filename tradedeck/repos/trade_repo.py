"""Trade repository — SQLite persistence for closed demo trades."""

from datetime import datetime, timezone
from typing import Optional

from tradedeck.repos.db import get_connection
from tradedeck.sim.models import CloseEvent


class TradeRepo:
    """Data access layer for closed-trade records.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    # ── Write ────────────────────────────────────────────────────────────

    def insert_closed_trade(self, session_name: str, event: CloseEvent) -> int:
        """Insert one close event and return its row ``id``."""
        recorded_at = datetime.now(timezone.utc).isoformat()
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO closed_trades
                    (session_name, order_id, side, kind, entry_price,
                     exit_price, quantity, realized_pnl, reason, closed_at,
                     balance_after, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session_name, event.order_id, event.side, event.kind,
                    event.entry_price, event.exit_price, event.quantity,
                    event.realized_pnl, event.reason, event.closed_at,
                    event.balance_after, recorded_at,
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_trades(
        self,
        limit: int = 20,
        session_name: Optional[str] = None,
    ) -> dict:
        """Return recent closed trades, newest first.

        Returns:
            ``{"trades": [...], "total": int, "total_pnl": float}``
        """
        conn = get_connection(self._db_path)
        try:
            where_clause = ""
            params: list = []
            if session_name:
                where_clause = "WHERE session_name = ?"
                params.append(session_name)

            rows = conn.execute(
                f"SELECT * FROM closed_trades {where_clause} ORDER BY id DESC LIMIT ?",
                (*params, limit),
            ).fetchall()
            total, total_pnl = conn.execute(
                f"SELECT COUNT(*), COALESCE(SUM(realized_pnl), 0) "
                f"FROM closed_trades {where_clause}",
                params,
            ).fetchone()

            return {
                "trades": [dict(row) for row in rows],
                "total": total,
                "total_pnl": round(total_pnl, 2),
            }
        finally:
            conn.close()
