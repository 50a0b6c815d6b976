"""
Database Manager Module - Lab Room Usage Tracker

This module handles the persisted state of the tracker. Every collection the
application keeps (usage entries, the room registry, the teacher registry) is
stored as a single JSON document under a fixed key and is always read and
written as a whole; there are no partial or delta writes.

Features:
- SQLite connection management (one connection per thread)
- Key/value collection table creation
- Whole-collection read and write
- Per-collection write counter for cache validation
- Transaction support
- Error handling and logging
"""

import sqlite3
import logging
import json
import os
import threading
from contextlib import contextmanager


class CollectionDecodeError(ValueError):
    """Raised when a persisted collection is not valid JSON."""


class DatabaseManager:
    """
    SQLite-backed key/value store for whole-collection JSON documents.
    Connections are thread-local, commits happen on every write.
    """

    def __init__(self, db_path):
        """
        Initialize the database manager with the specified database path.

        Args:
            db_path (str): Path to the SQLite database file, or ':memory:'
        """
        self.db_path = db_path
        self.logger = logging.getLogger(__name__)
        self._local = threading.local()

        directory = os.path.dirname(db_path)
        if db_path != ':memory:' and directory:
            os.makedirs(directory, exist_ok=True)

        self.initialize_database()

    @contextmanager
    def get_connection(self):
        """
        Context manager for database connections.
        Provides thread-local connections for thread safety.

        Yields:
            sqlite3.Connection: Database connection object
        """
        if not hasattr(self._local, 'connection'):
            self._local.connection = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=30.0
            )
            self._local.connection.row_factory = sqlite3.Row

        try:
            yield self._local.connection
        except Exception as e:
            self._local.connection.rollback()
            self.logger.error(f"Database operation failed: {str(e)}")
            raise

    def initialize_database(self):
        """
        Create the collection table. Idempotent.
        """
        try:
            with self.get_connection() as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS collections (
                        storage_key VARCHAR(100) PRIMARY KEY,
                        payload TEXT NOT NULL,
                        version INTEGER NOT NULL DEFAULT 1,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                columns = [row['name'] for row in conn.execute("PRAGMA table_info(collections)")]
                if 'version' not in columns:
                    conn.execute("ALTER TABLE collections ADD COLUMN version INTEGER NOT NULL DEFAULT 1")
                    self.logger.info("Added version column to collections table")

                conn.commit()
                self.logger.info("Database initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize database: {str(e)}")
            raise

    def has_collection(self, key):
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM collections WHERE storage_key = ?", (key,)
            ).fetchone()
            return row is not None

    def get_collection_version(self, key):
        """Return the write counter of a collection, or None if it was never written."""
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT version FROM collections WHERE storage_key = ?", (key,)
            ).fetchone()
            return row['version'] if row is not None else None

    def read_collection(self, key):
        """
        Read a whole collection.

        Args:
            key (str): Storage key

        Returns:
            The decoded JSON document, or None if the key was never written.

        Raises:
            CollectionDecodeError: if the stored payload cannot be parsed
        """
        document, _ = self.read_versioned_collection(key)
        return document

    def read_versioned_collection(self, key):
        """
        Read a whole collection together with its write counter.

        Returns:
            tuple: (document, version); (None, None) if the key was never written

        Raises:
            CollectionDecodeError: if the stored payload cannot be parsed
        """
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT payload, version FROM collections WHERE storage_key = ?", (key,)
            ).fetchone()

        if row is None:
            return None, None

        try:
            return json.loads(row['payload']), row['version']
        except (TypeError, ValueError) as e:
            raise CollectionDecodeError(f"Stored collection {key!r} is not valid JSON: {e}") from e

    def write_collection(self, key, document):
        """
        Replace a whole collection with a new document.

        Args:
            key (str): Storage key
            document: JSON-serializable document

        Returns:
            int: The collection's version after the write
        """
        return self.write_raw(key, json.dumps(document))

    def write_raw(self, key, payload):
        """Store an already serialized payload verbatim and bump its version."""
        with self.transaction() as conn:
            conn.execute("""
                INSERT INTO collections (storage_key, payload, version, updated_at)
                VALUES (?, ?, 1, CURRENT_TIMESTAMP)
                ON CONFLICT(storage_key) DO UPDATE SET
                    payload = excluded.payload,
                    version = collections.version + 1,
                    updated_at = CURRENT_TIMESTAMP
            """, (key, payload))
            row = conn.execute(
                "SELECT version FROM collections WHERE storage_key = ?", (key,)
            ).fetchone()
            return row['version']

    @contextmanager
    def transaction(self):
        """
        Context manager for database transactions with automatic rollback on error.

        Yields:
            sqlite3.Connection: Database connection within transaction
        """
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception as e:
                conn.rollback()
                self.logger.error(f"Transaction rolled back: {str(e)}")
                raise

    def close_all_connections(self):
        """Close the connection held by the current thread."""
        try:
            if hasattr(self._local, 'connection'):
                self._local.connection.close()
                del self._local.connection
        except sqlite3.Error as e:
            self.logger.error(f"Error closing connections: {str(e)}")
