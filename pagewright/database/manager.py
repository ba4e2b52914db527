"""
Database manager for Pagewright.

This module handles all database operations using DuckDB for content object storage.
Objects are stored generically: one row per object with its field values as JSON,
plus an association table for join-table style relations.
"""

import duckdb
import json
import logging
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Tuple


def _json_default(value: Any) -> Any:
    """Serialize values YAML parsing produces but JSON cannot represent."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


class DatabaseManager:
    """
    Manages the DuckDB database holding content objects and their associations.
    """

    def __init__(self, db_path: str = "pagewright.db"):
        """
        Initialize the database manager.

        Args:
            db_path: Path to the DuckDB database file (":memory:" for a transient database)
        """
        self.db_path = db_path
        self.connection = None
        self._transaction_depth = 0

    def connect(self):
        """Establish connection to the database."""
        self.connection = duckdb.connect(self.db_path)

    def disconnect(self):
        """Close the database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def _require_connection(self):
        if not self.connection:
            raise RuntimeError("Database connection not established")
        return self.connection

    def initialize_database(self):
        """
        Create all necessary tables if they don't exist.
        """
        connection = self._require_connection()

        connection.execute("CREATE SEQUENCE IF NOT EXISTS content_id_seq START 1;")
        connection.execute("""
            CREATE TABLE IF NOT EXISTS content_objects (
                object_id BIGINT PRIMARY KEY DEFAULT nextval('content_id_seq'),
                content_type VARCHAR NOT NULL,
                field_data VARCHAR NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                last_edited TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        connection.execute("""
            CREATE TABLE IF NOT EXISTS content_associations (
                owner_id BIGINT NOT NULL,
                relation_name VARCHAR NOT NULL,
                target_id BIGINT NOT NULL,
                sort_order INTEGER DEFAULT 0,
                PRIMARY KEY (owner_id, relation_name, target_id)
            )
        """)

    @property
    def in_transaction(self) -> bool:
        return self._transaction_depth > 0

    @contextmanager
    def transaction(self) -> Iterator["DatabaseManager"]:
        """
        Run a block of writes inside one transaction.

        Commits when the block exits normally and rolls back when it raises.
        Nested use joins the outer transaction, so only the outermost block
        commits or rolls back.

        Yields:
            This database manager
        """
        connection = self._require_connection()

        if self._transaction_depth > 0:
            self._transaction_depth += 1
            try:
                yield self
            finally:
                self._transaction_depth -= 1
            return

        connection.begin()
        self._transaction_depth = 1
        try:
            yield self
        except BaseException:
            self._transaction_depth = 0
            connection.rollback()
            logging.debug("Transaction rolled back")
            raise
        else:
            self._transaction_depth = 0
            connection.commit()

    def insert_object(self, content_type: str, field_data: Dict[str, Any]) -> Tuple[int, datetime]:
        """
        Insert a new content object.

        Args:
            content_type: Type identifier of the object
            field_data: Field values to store

        Returns:
            The new object ID and its last-edited timestamp
        """
        connection = self._require_connection()
        now = datetime.now()

        result = connection.execute("""
            INSERT INTO content_objects (content_type, field_data, created_at, last_edited)
            VALUES (?, ?, ?, ?)
            RETURNING object_id
        """, [
            content_type,
            json.dumps(field_data, default=_json_default),
            now,
            now
        ]).fetchone()

        return int(result[0]), now

    def update_object(self, object_id: int, field_data: Dict[str, Any]) -> datetime:
        """
        Replace the stored field values of an existing object.

        Args:
            object_id: ID of the object
            field_data: Field values to store

        Returns:
            The new last-edited timestamp
        """
        connection = self._require_connection()
        now = datetime.now()

        connection.execute("""
            UPDATE content_objects
            SET field_data = ?, last_edited = ?
            WHERE object_id = ?
        """, [json.dumps(field_data, default=_json_default), now, object_id])

        return now

    def fetch_object(self, object_id: int) -> Optional[Dict[str, Any]]:
        """
        Retrieve a stored object by ID.

        Args:
            object_id: ID of the object

        Returns:
            A dict with object_id, content_type, field_data, created_at and
            last_edited, or None if not found
        """
        connection = self._require_connection()

        result = connection.execute("""
            SELECT object_id, content_type, field_data, created_at, last_edited
            FROM content_objects
            WHERE object_id = ?
        """, [object_id]).fetchone()

        if result:
            return self._row_to_record(result)
        return None

    def delete_object(self, object_id: int) -> None:
        """
        Delete an object and every association it takes part in.

        Args:
            object_id: ID of the object
        """
        connection = self._require_connection()

        connection.execute(
            "DELETE FROM content_associations WHERE owner_id = ? OR target_id = ?",
            [object_id, object_id]
        )
        connection.execute("DELETE FROM content_objects WHERE object_id = ?", [object_id])

    def list_objects(self, content_types: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """
        List stored objects, optionally restricted to some types.

        Args:
            content_types: Optional type identifiers to filter by

        Returns:
            List of object records ordered by ID
        """
        connection = self._require_connection()

        if content_types:
            placeholders = ", ".join("?" for _ in content_types)
            results = connection.execute(f"""
                SELECT object_id, content_type, field_data, created_at, last_edited
                FROM content_objects
                WHERE content_type IN ({placeholders})
                ORDER BY object_id
            """, list(content_types)).fetchall()
        else:
            results = connection.execute("""
                SELECT object_id, content_type, field_data, created_at, last_edited
                FROM content_objects
                ORDER BY object_id
            """).fetchall()

        return [self._row_to_record(row) for row in results]

    def find_referencing_objects(
        self,
        content_types: List[str],
        foreign_key: str,
        owner_id: int
    ) -> List[Dict[str, Any]]:
        """
        Find objects whose foreign key field points at an owner.

        Args:
            content_types: Type identifiers the referencing objects may have
            foreign_key: Name of the foreign key field (e.g. "ParentID")
            owner_id: ID the foreign key must hold

        Returns:
            Matching object records ordered by ID
        """
        return [
            record for record in self.list_objects(content_types)
            if record["field_data"].get(foreign_key) == owner_id
        ]

    def add_association(self, owner_id: int, relation_name: str, target_id: int, sort_order: int = 0) -> bool:
        """
        Link two objects through a join-table relation.

        Args:
            owner_id: ID of the owning object
            relation_name: Name of the relation on the owner
            target_id: ID of the related object
            sort_order: Position within the relation

        Returns:
            True if the link was added, False if it already existed
        """
        connection = self._require_connection()

        existing = connection.execute("""
            SELECT 1 FROM content_associations
            WHERE owner_id = ? AND relation_name = ? AND target_id = ?
        """, [owner_id, relation_name, target_id]).fetchone()
        if existing:
            return False

        connection.execute("""
            INSERT INTO content_associations (owner_id, relation_name, target_id, sort_order)
            VALUES (?, ?, ?, ?)
        """, [owner_id, relation_name, target_id, sort_order])
        return True

    def get_associations(self, owner_id: int, relation_name: str) -> List[int]:
        """
        List the IDs linked to an owner through a join-table relation.

        Args:
            owner_id: ID of the owning object
            relation_name: Name of the relation on the owner

        Returns:
            Target IDs in sort order
        """
        connection = self._require_connection()

        results = connection.execute("""
            SELECT target_id FROM content_associations
            WHERE owner_id = ? AND relation_name = ?
            ORDER BY sort_order, target_id
        """, [owner_id, relation_name]).fetchall()

        return [int(row[0]) for row in results]

    def remove_associations(self, owner_id: int, relation_name: str) -> None:
        """
        Unlink everything from an owner's join-table relation.

        Args:
            owner_id: ID of the owning object
            relation_name: Name of the relation on the owner
        """
        connection = self._require_connection()

        connection.execute("""
            DELETE FROM content_associations
            WHERE owner_id = ? AND relation_name = ?
        """, [owner_id, relation_name])

    def count_objects(self, content_type: Optional[str] = None) -> int:
        connection = self._require_connection()

        if content_type:
            result = connection.execute(
                "SELECT COUNT(*) FROM content_objects WHERE content_type = ?", [content_type]
            ).fetchone()
        else:
            result = connection.execute("SELECT COUNT(*) FROM content_objects").fetchone()
        return int(result[0])

    def _row_to_record(self, row) -> Dict[str, Any]:
        return {
            "object_id": int(row[0]),
            "content_type": row[1],
            "field_data": json.loads(row[2]) if row[2] else {},
            "created_at": row[3],
            "last_edited": row[4]
        }
