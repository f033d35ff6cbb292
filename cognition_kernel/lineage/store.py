"""
Decision Ledger — append-only, hash-chained record of committed decisions.

Behavioral Contract:
- Append-only. No decision row is ever modified or deleted.
- Each decision is hashed (SHA-256) together with the hash of the previous
  decision, making the ledger tamper-evident.
- Action results and outcomes are stored in companion tables keyed by
  decision id. They never rewrite the decision row.
- Queryable by id, organization, escalation status and recency.
"""

import hashlib
import json
import sqlite3
from datetime import datetime
from typing import List, Optional

from cognition_kernel.models.action import ActionResult
from cognition_kernel.models.decision import DecisionOutcome, DecisionRecord


class DecisionNotFoundError(Exception):
    """Raised when a decision id is not in the ledger."""
    pass


def compute_signature(record_json: str, prior_hash: Optional[str]) -> str:
    payload = json.dumps(
        {"record": json.loads(record_json), "prior_record_hash": prior_hash},
        sort_keys=True,
        default=str,
    ).encode()
    return hashlib.sha256(payload).hexdigest()


class DecisionLedger:
    """
    Append-only decision ledger.
    Prototype: SQLite. Production: PostgreSQL with row-level security.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS decisions (
                id TEXT PRIMARY KEY,
                organization_id TEXT NOT NULL,
                agent_id TEXT NOT NULL,
                autonomy_level INTEGER NOT NULL,
                required_autonomy INTEGER NOT NULL,
                escalated INTEGER NOT NULL DEFAULT 0,
                signature TEXT NOT NULL,
                prior_record_hash TEXT,
                record_json TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS action_results (
                action_plan_id TEXT PRIMARY KEY,
                decision_id TEXT NOT NULL,
                overall_success INTEGER NOT NULL,
                result_json TEXT NOT NULL,
                recorded_at TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS outcomes (
                decision_id TEXT NOT NULL,
                success INTEGER NOT NULL,
                outcome_json TEXT NOT NULL,
                recorded_at TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_decisions_org ON decisions(organization_id)
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_decisions_escalated ON decisions(escalated)
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_outcomes_decision ON outcomes(decision_id)
        """)
        self._conn.commit()

    # --- Writes ---

    def append(self, record: DecisionRecord) -> str:
        """Append a decision and return its signature."""
        prior_hash = self._get_latest_hash()
        record_json = record.model_dump_json()
        signature = compute_signature(record_json, prior_hash)

        self._conn.execute(
            """
            INSERT INTO decisions (
                id, organization_id, agent_id, autonomy_level, required_autonomy,
                escalated, signature, prior_record_hash, record_json, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.organization_id,
                record.agent_id,
                int(record.autonomy_level),
                int(record.required_autonomy),
                int(record.escalated),
                signature,
                prior_hash,
                record_json,
                record.created_at.isoformat(),
            ),
        )
        self._conn.commit()
        return signature

    def record_action_result(self, decision_id: str, result: ActionResult) -> None:
        """Attach an execution result to a recorded decision."""
        self._require(decision_id)
        self._conn.execute(
            "INSERT INTO action_results (action_plan_id, decision_id, overall_success, "
            "result_json, recorded_at) VALUES (?, ?, ?, ?, ?)",
            (
                result.action_plan_id,
                decision_id,
                int(result.overall_success),
                result.model_dump_json(),
                datetime.utcnow().isoformat(),
            ),
        )
        self._conn.commit()

    def record_outcome(self, decision_id: str, outcome: DecisionOutcome) -> None:
        """Attach the observed outcome to a recorded decision."""
        self._require(decision_id)
        self._conn.execute(
            "INSERT INTO outcomes (decision_id, success, outcome_json, recorded_at) "
            "VALUES (?, ?, ?, ?)",
            (
                decision_id,
                int(outcome.success),
                outcome.model_dump_json(),
                outcome.recorded_at.isoformat(),
            ),
        )
        self._conn.commit()

    # --- Reads ---

    def _get_latest_hash(self) -> Optional[str]:
        row = self._conn.execute(
            "SELECT signature FROM decisions ORDER BY rowid DESC LIMIT 1"
        ).fetchone()
        return row["signature"] if row else None

    def _require(self, decision_id: str) -> None:
        row = self._conn.execute(
            "SELECT 1 FROM decisions WHERE id = ?", (decision_id,)
        ).fetchone()
        if row is None:
            raise DecisionNotFoundError(f"Decision {decision_id} not found")

    def _latest_outcome(self, decision_id: str) -> Optional[DecisionOutcome]:
        row = self._conn.execute(
            "SELECT outcome_json FROM outcomes WHERE decision_id = ? "
            "ORDER BY rowid DESC LIMIT 1",
            (decision_id,),
        ).fetchone()
        return DecisionOutcome.model_validate_json(row["outcome_json"]) if row else None

    def _first_execution(self, decision_id: str) -> Optional[datetime]:
        row = self._conn.execute(
            "SELECT recorded_at FROM action_results WHERE decision_id = ? "
            "ORDER BY rowid LIMIT 1",
            (decision_id,),
        ).fetchone()
        return datetime.fromisoformat(row["recorded_at"]) if row else None

    def _deserialize(self, row: sqlite3.Row) -> DecisionRecord:
        """Rebuild a record with its execution time and most recent outcome."""
        record = DecisionRecord.model_validate_json(row["record_json"])
        updates = {}
        executed_at = self._first_execution(record.id)
        if executed_at is not None:
            updates["executed_at"] = executed_at
        outcome = self._latest_outcome(record.id)
        if outcome is not None:
            updates["outcome"] = outcome
        return record.model_copy(update=updates) if updates else record

    def get_decision(self, decision_id: str) -> DecisionRecord:
        """Get a decision by id, with its outcome and execution time."""
        row = self._conn.execute(
            "SELECT record_json FROM decisions WHERE id = ?", (decision_id,)
        ).fetchone()
        if row is None:
            raise DecisionNotFoundError(f"Decision {decision_id} not found")
        return self._deserialize(row)

    def get_action_results(self, decision_id: str) -> List[ActionResult]:
        """All execution results for a decision, oldest first."""
        rows = self._conn.execute(
            "SELECT result_json FROM action_results WHERE decision_id = ? ORDER BY rowid",
            (decision_id,),
        ).fetchall()
        return [ActionResult.model_validate_json(r["result_json"]) for r in rows]

    def query_by_organization(self, organization_id: str) -> List[DecisionRecord]:
        """All decisions for an organization."""
        rows = self._conn.execute(
            "SELECT record_json FROM decisions WHERE organization_id = ? ORDER BY rowid",
            (organization_id,),
        ).fetchall()
        return [self._deserialize(r) for r in rows]

    def query_escalations(self, since: Optional[datetime] = None) -> List[DecisionRecord]:
        """All decisions that fell back to human escalation."""
        if since:
            rows = self._conn.execute(
                "SELECT record_json FROM decisions WHERE escalated = 1 "
                "AND created_at >= ? ORDER BY rowid",
                (since.isoformat(),),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT record_json FROM decisions WHERE escalated = 1 ORDER BY rowid"
            ).fetchall()
        return [self._deserialize(r) for r in rows]

    def query_recent(self, limit: int = 50) -> List[DecisionRecord]:
        """The last `limit` decisions, oldest first."""
        rows = self._conn.execute(
            "SELECT record_json FROM decisions ORDER BY rowid DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [self._deserialize(r) for r in reversed(rows)]

    def verify_chain_integrity(self) -> bool:
        """Recompute every signature and check each link to its predecessor."""
        rows = self._conn.execute(
            "SELECT record_json, signature, prior_record_hash FROM decisions ORDER BY rowid"
        ).fetchall()

        previous: Optional[str] = None
        for row in rows:
            if row["prior_record_hash"] != previous:
                return False
            if compute_signature(row["record_json"], row["prior_record_hash"]) != row["signature"]:
                return False
            previous = row["signature"]

        return True

    def count(self) -> int:
        """Total number of decisions in the ledger."""
        row = self._conn.execute("SELECT COUNT(*) AS cnt FROM decisions").fetchone()
        return row["cnt"]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
