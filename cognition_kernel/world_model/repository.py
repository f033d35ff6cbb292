"""
Snapshot repositories — where world model history lives.

Injected into WorldModelStore. Repositories are append-only: a snapshot
is written once and never updated.
"""

import sqlite3
from typing import Dict, List, Optional, Protocol

from cognition_kernel.models.world import WorldModelSnapshot


class SnapshotRepository(Protocol):
    """Storage contract for world model snapshots."""

    def save(self, snapshot: WorldModelSnapshot) -> None: ...

    def get(self, snapshot_id: str) -> Optional[WorldModelSnapshot]: ...

    def latest(self, organization_id: str) -> Optional[WorldModelSnapshot]: ...

    def history(
        self, organization_id: str, limit: Optional[int] = None
    ) -> List[WorldModelSnapshot]: ...


class InMemorySnapshotRepository:
    """Instance-scoped in-memory history, for tests and single-process use."""

    def __init__(self):
        self._by_org: Dict[str, List[WorldModelSnapshot]] = {}
        self._by_id: Dict[str, WorldModelSnapshot] = {}

    def save(self, snapshot: WorldModelSnapshot) -> None:
        """Persist a snapshot."""
        self._by_org.setdefault(snapshot.organization_id, []).append(snapshot)
        self._by_id[snapshot.id] = snapshot

    def get(self, snapshot_id: str) -> Optional[WorldModelSnapshot]:
        """Get a snapshot by id."""
        return self._by_id.get(snapshot_id)

    def latest(self, organization_id: str) -> Optional[WorldModelSnapshot]:
        """Most recent snapshot for an organization."""
        snapshots = self._by_org.get(organization_id)
        return snapshots[-1] if snapshots else None

    def history(
        self, organization_id: str, limit: Optional[int] = None
    ) -> List[WorldModelSnapshot]:
        """Snapshots for an organization, oldest first, optionally only the last `limit`."""
        snapshots = self._by_org.get(organization_id, [])
        if limit is not None:
            snapshots = snapshots[-limit:] if limit > 0 else []
        return list(snapshots)


class SQLiteSnapshotRepository:
    """
    SQLite-backed snapshot history.
    Snapshots are stored as JSON, indexed by organization.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS world_snapshots (
                id TEXT PRIMARY KEY,
                organization_id TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                snapshot_json TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_world_snapshots_org
            ON world_snapshots(organization_id)
        """)
        self._conn.commit()

    def save(self, snapshot: WorldModelSnapshot) -> None:
        """Persist a snapshot."""
        self._conn.execute(
            "INSERT INTO world_snapshots (id, organization_id, timestamp, snapshot_json) "
            "VALUES (?, ?, ?, ?)",
            (
                snapshot.id,
                snapshot.organization_id,
                snapshot.timestamp.isoformat(),
                snapshot.model_dump_json(),
            ),
        )
        self._conn.commit()

    def _deserialize(self, row: sqlite3.Row) -> WorldModelSnapshot:
        return WorldModelSnapshot.model_validate_json(row["snapshot_json"])

    def get(self, snapshot_id: str) -> Optional[WorldModelSnapshot]:
        """Get a snapshot by id."""
        row = self._conn.execute(
            "SELECT snapshot_json FROM world_snapshots WHERE id = ?", (snapshot_id,)
        ).fetchone()
        return self._deserialize(row) if row else None

    def latest(self, organization_id: str) -> Optional[WorldModelSnapshot]:
        """Most recent snapshot for an organization."""
        row = self._conn.execute(
            "SELECT snapshot_json FROM world_snapshots WHERE organization_id = ? "
            "ORDER BY rowid DESC LIMIT 1",
            (organization_id,),
        ).fetchone()
        return self._deserialize(row) if row else None

    def history(
        self, organization_id: str, limit: Optional[int] = None
    ) -> List[WorldModelSnapshot]:
        """Snapshots for an organization, oldest first, optionally only the last `limit`."""
        if limit is None:
            rows = self._conn.execute(
                "SELECT snapshot_json FROM world_snapshots WHERE organization_id = ? "
                "ORDER BY rowid",
                (organization_id,),
            ).fetchall()
            return [self._deserialize(r) for r in rows]

        rows = self._conn.execute(
            "SELECT snapshot_json FROM world_snapshots WHERE organization_id = ? "
            "ORDER BY rowid DESC LIMIT ?",
            (organization_id, limit),
        ).fetchall()
        return [self._deserialize(r) for r in reversed(rows)]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
