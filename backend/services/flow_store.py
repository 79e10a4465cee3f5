import aiosqlite
import os
import uuid
import logging
from typing import List, Optional, Dict, Any

logger = logging.getLogger(__name__)

SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schema.sql")


class FlowStoreError(Exception):
    """Raised when the flow store is used incorrectly"""
    pass


class FlowNotFoundError(FlowStoreError):
    """Raised when a flow does not exist"""
    pass


class FlowDefinitionStore:
    """Supplies raw definition text by flow id and version."""

    def __init__(self, database_path: str):
        self.database_path = database_path
        self.db: Optional[aiosqlite.Connection] = None

    async def connect(self):
        """Initialize database connection"""
        self.db = await aiosqlite.connect(self.database_path)
        self.db.row_factory = aiosqlite.Row

    async def close(self):
        """Close database connection"""
        if self.db:
            await self.db.close()
            self.db = None

    def _require_connection(self) -> aiosqlite.Connection:
        if self.db is None:
            raise FlowStoreError("Flow store is not connected")
        return self.db

    async def initialize(self):
        """Create tables if they do not exist"""
        db = self._require_connection()
        with open(SCHEMA_PATH, 'r') as f:
            schema_sql = f.read()
        await db.executescript(schema_sql)
        await db.commit()

    # Flow Methods
    async def create_flow(self, name: str, description: Optional[str] = None) -> Dict[str, Any]:
        db = self._require_connection()
        flow_id = str(uuid.uuid4())
        await db.execute(
            "INSERT INTO flows (id, name, description) VALUES (?, ?, ?)",
            (flow_id, name, description)
        )
        await db.commit()
        logger.info(f"Created flow {flow_id} ({name})")
        return {"id": flow_id, "name": name, "description": description}

    async def get_flow(self, flow_id: str) -> Optional[Dict[str, Any]]:
        db = self._require_connection()
        async with db.execute(
            "SELECT id, name, description, created_at FROM flows WHERE id = ?", (flow_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return dict(row) if row else None

    # Flow Version Methods
    async def save_flow_version(self, flow_id: str, definition: str, status: str = "draft") -> Dict[str, Any]:
        """Store a new version of a flow definition; versions count up from 1 per flow"""
        db = self._require_connection()
        if await self.get_flow(flow_id) is None:
            raise FlowNotFoundError(f"Flow {flow_id} not found")

        async with db.execute(
            "SELECT COALESCE(MAX(version), 0) FROM flow_versions WHERE flow_id = ?", (flow_id,)
        ) as cursor:
            row = await cursor.fetchone()
            version = row[0] + 1

        version_id = str(uuid.uuid4())
        await db.execute(
            """
            INSERT INTO flow_versions (id, flow_id, version, definition_json, status)
            VALUES (?, ?, ?, ?, ?)
            """,
            (version_id, flow_id, version, definition, status)
        )
        await db.commit()
        logger.info(f"Saved flow {flow_id} version {version}")
        return {"id": version_id, "flow_id": flow_id, "version": version, "status": status}

    async def get_definition(self, flow_id: str, version: int) -> Optional[str]:
        """Raw definition text for one version, or None"""
        db = self._require_connection()
        async with db.execute(
            "SELECT definition_json FROM flow_versions WHERE flow_id = ? AND version = ?",
            (flow_id, version)
        ) as cursor:
            row = await cursor.fetchone()
            return row["definition_json"] if row else None

    async def list_versions(self, flow_id: str) -> List[Dict[str, Any]]:
        db = self._require_connection()
        async with db.execute(
            """
            SELECT id, flow_id, version, status, created_at
            FROM flow_versions WHERE flow_id = ? ORDER BY version
            """,
            (flow_id,)
        ) as cursor:
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]
