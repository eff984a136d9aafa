"""SQLite-backed owner, category and message stores."""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from types import TracebackType
from typing import cast

from ..core.config import StorageSettings
from ..core.datetime_utils import parse_datetime, serialize_datetime
from ..core.errors import DuplicateMessageError
from ..core.interfaces import CategoryRepository, MessageRepository, OwnerRepository
from ..core.models import Category, Message, Owner, utcnow

LOGGER = logging.getLogger(__name__)

_MESSAGE_COLUMNS = """
    id, owner_id, provider_id, sender, subject, body, summary, category_id,
    received_at, archived, created_at, updated_at
"""


class SqliteDatabase:
    """Own the SQLite connection and apply bundled migrations."""

    def __init__(self, settings: StorageSettings) -> None:
        """Open the database at ``settings.db_path`` and migrate it."""
        self._settings = settings
        db_path = Path(settings.db_path)
        if str(db_path) != ":memory:":
            db_path.parent.mkdir(parents=True, exist_ok=True)
        self.connection = sqlite3.connect(
            db_path,
            detect_types=sqlite3.PARSE_DECLTYPES,
            check_same_thread=False,
        )
        self.connection.row_factory = sqlite3.Row
        self.lock = threading.RLock()
        self._enable_foreign_keys()
        self._apply_migrations()
        self.owners = SqliteOwnerRepository(self)
        self.categories = SqliteCategoryRepository(self)
        self.messages = SqliteMessageRepository(self)

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> SqliteDatabase:
        """Enter context manager scope."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Ensure the connection is closed when exiting context manager."""
        self.close()

    def close(self) -> None:
        """Close the underlying SQLite connection."""
        self.connection.close()

    # Internal helpers --------------------------------------------------------
    def _enable_foreign_keys(self) -> None:
        with self.connection:
            self.connection.execute("PRAGMA foreign_keys = ON")

    def _apply_migrations(self) -> None:
        schema_dir = Path(__file__).resolve().parent / "schema"
        for migration in sorted(schema_dir.glob("*.sql")):
            LOGGER.debug("Applying migration %s", migration.name)
            script = migration.read_text(encoding="utf-8")
            with self.connection:
                self.connection.executescript(script)


class SqliteOwnerRepository(OwnerRepository):
    """Persist owners and their provider credentials."""

    def __init__(self, database: SqliteDatabase) -> None:
        self._db = database

    def create(self, owner: Owner) -> Owner:
        """Insert ``owner`` and return it."""
        LOGGER.debug("Creating owner %s", owner.email)
        with self._db.lock, self._db.connection:
            self._db.connection.execute(
                """
                INSERT INTO owners (
                    id, email, name, google_id, access_token, refresh_token,
                    token_expiry, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    owner.id,
                    owner.email,
                    owner.name,
                    owner.google_id,
                    owner.access_token,
                    owner.refresh_token,
                    serialize_datetime(owner.token_expiry),
                    serialize_datetime(owner.created_at),
                    serialize_datetime(owner.updated_at),
                ),
            )
        return owner

    def find_by_id(self, owner_id: str) -> Owner | None:
        """Return the owner stored under ``owner_id``."""
        return self._fetch_one("SELECT * FROM owners WHERE id = ?", owner_id)

    def find_by_email(self, email: str) -> Owner | None:
        """Return the owner registered with ``email``."""
        return self._fetch_one("SELECT * FROM owners WHERE email = ?", email)

    def find_all(self) -> list[Owner]:
        """Return every owner ordered by creation."""
        with self._db.lock:
            cur = self._db.connection.execute(
                "SELECT * FROM owners ORDER BY created_at, rowid"
            )
            rows = cur.fetchall()
        return [_row_to_owner(row) for row in rows]

    def update(self, owner: Owner) -> None:
        """Persist profile and credential changes for ``owner``."""
        owner.updated_at = utcnow()
        with self._db.lock, self._db.connection:
            self._db.connection.execute(
                """
                UPDATE owners
                SET email = ?,
                    name = ?,
                    google_id = ?,
                    access_token = ?,
                    refresh_token = ?,
                    token_expiry = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    owner.email,
                    owner.name,
                    owner.google_id,
                    owner.access_token,
                    owner.refresh_token,
                    serialize_datetime(owner.token_expiry),
                    serialize_datetime(owner.updated_at),
                    owner.id,
                ),
            )

    def _fetch_one(self, query: str, value: str) -> Owner | None:
        with self._db.lock:
            row = self._db.connection.execute(query, (value,)).fetchone()
        return _row_to_owner(row) if row is not None else None


class SqliteCategoryRepository(CategoryRepository):
    """Persist the shared category set."""

    def __init__(self, database: SqliteDatabase) -> None:
        self._db = database

    def create(self, category: Category) -> Category:
        """Insert ``category`` and return it."""
        LOGGER.debug("Creating category %s", category.name)
        with self._db.lock, self._db.connection:
            self._db.connection.execute(
                """
                INSERT INTO categories (id, name, description, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    category.id,
                    category.name,
                    category.description,
                    serialize_datetime(category.created_at),
                    serialize_datetime(category.updated_at),
                ),
            )
        return category

    def find_by_id(self, category_id: str) -> Category | None:
        """Return the category stored under ``category_id``."""
        with self._db.lock:
            row = self._db.connection.execute(
                "SELECT * FROM categories WHERE id = ?", (category_id,)
            ).fetchone()
        return _row_to_category(row) if row is not None else None

    def find_all(self) -> list[Category]:
        """Return all categories in creation order."""
        with self._db.lock:
            rows = self._db.connection.execute(
                "SELECT * FROM categories ORDER BY created_at, rowid"
            ).fetchall()
        return [_row_to_category(row) for row in rows]

    def update(self, category: Category) -> None:
        """Persist name and description changes."""
        category.updated_at = utcnow()
        with self._db.lock, self._db.connection:
            self._db.connection.execute(
                "UPDATE categories SET name = ?, description = ?, updated_at = ? "
                "WHERE id = ?",
                (
                    category.name,
                    category.description,
                    serialize_datetime(category.updated_at),
                    category.id,
                ),
            )

    def delete(self, category_id: str) -> bool:
        """Remove a category. Returns ``True`` if a row was deleted."""
        LOGGER.debug("Deleting category %s", category_id)
        with self._db.lock, self._db.connection:
            cur = self._db.connection.execute(
                "DELETE FROM categories WHERE id = ?", (category_id,)
            )
        return cur.rowcount > 0


class SqliteMessageRepository(MessageRepository):
    """Persist synced messages keyed by (owner, provider id)."""

    def __init__(self, database: SqliteDatabase) -> None:
        self._db = database

    def create(self, message: Message) -> Message:
        """Insert ``message``; a duplicate provider id raises for the loser."""
        LOGGER.debug(
            "Persisting message %s for owner %s", message.provider_id, message.owner_id
        )
        try:
            with self._db.lock, self._db.connection:
                self._db.connection.execute(
                    f"""
                    INSERT INTO messages ({_MESSAGE_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        message.id,
                        message.owner_id,
                        message.provider_id,
                        message.sender,
                        message.subject,
                        message.body,
                        message.summary,
                        message.category_id,
                        serialize_datetime(message.received_at),
                        1 if message.archived else 0,
                        serialize_datetime(message.created_at),
                        serialize_datetime(message.updated_at),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" not in str(exc).upper():
                raise
            raise DuplicateMessageError(message.owner_id, message.provider_id) from exc
        return message

    def update(self, message: Message) -> None:
        """Persist classification and state changes for ``message``."""
        message.touch()
        with self._db.lock, self._db.connection:
            self._db.connection.execute(
                """
                UPDATE messages
                SET sender = ?,
                    subject = ?,
                    body = ?,
                    summary = ?,
                    category_id = ?,
                    archived = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    message.sender,
                    message.subject,
                    message.body,
                    message.summary,
                    message.category_id,
                    1 if message.archived else 0,
                    serialize_datetime(message.updated_at),
                    message.id,
                ),
            )

    def find_by_id(self, message_id: str) -> Message | None:
        """Return the message stored under ``message_id``."""
        return self._fetch_one(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ?", (message_id,)
        )

    def find_by_provider_id(self, owner_id: str, provider_id: str) -> Message | None:
        """Return the owner's message carrying ``provider_id``."""
        return self._fetch_one(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages "
            "WHERE owner_id = ? AND provider_id = ?",
            (owner_id, provider_id),
        )

    def find_by_owner(self, owner_id: str) -> list[Message]:
        """Return the owner's messages ordered by receipt time."""
        return self._fetch_all(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE owner_id = ? "
            "ORDER BY received_at, rowid",
            (owner_id,),
        )

    def find_by_category(self, category_id: str) -> list[Message]:
        """Return messages classified into ``category_id``."""
        return self._fetch_all(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE category_id = ? "
            "ORDER BY received_at, rowid",
            (category_id,),
        )

    def find_latest_for_owner(self, owner_id: str) -> Message | None:
        """Return the owner's message with the greatest ``received_at``."""
        return self._fetch_one(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE owner_id = ? "
            "ORDER BY received_at DESC, rowid DESC LIMIT 1",
            (owner_id,),
        )

    def delete(self, message_id: str) -> bool:
        """Delete a stored message. Returns ``True`` if a row was deleted."""
        LOGGER.debug("Deleting message %s", message_id)
        with self._db.lock, self._db.connection:
            cur = self._db.connection.execute(
                "DELETE FROM messages WHERE id = ?", (message_id,)
            )
        return cur.rowcount > 0

    def _fetch_one(self, query: str, params: tuple[object, ...]) -> Message | None:
        with self._db.lock:
            row = self._db.connection.execute(query, params).fetchone()
        return _row_to_message(row) if row is not None else None

    def _fetch_all(self, query: str, params: tuple[object, ...]) -> list[Message]:
        with self._db.lock:
            rows = self._db.connection.execute(query, params).fetchall()
        return [_row_to_message(row) for row in rows]


def _row_to_owner(row: sqlite3.Row) -> Owner:
    return Owner(
        id=row["id"],
        email=row["email"],
        name=row["name"],
        google_id=row["google_id"],
        access_token=row["access_token"],
        refresh_token=row["refresh_token"],
        token_expiry=parse_datetime(row["token_expiry"]),
        created_at=cast(datetime, parse_datetime(row["created_at"])),
        updated_at=cast(datetime, parse_datetime(row["updated_at"])),
    )


def _row_to_category(row: sqlite3.Row) -> Category:
    return Category(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        created_at=cast(datetime, parse_datetime(row["created_at"])),
        updated_at=cast(datetime, parse_datetime(row["updated_at"])),
    )


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        owner_id=row["owner_id"],
        provider_id=row["provider_id"],
        sender=row["sender"],
        subject=row["subject"],
        body=row["body"],
        summary=row["summary"],
        category_id=row["category_id"],
        received_at=cast(datetime, parse_datetime(row["received_at"])),
        archived=bool(row["archived"]),
        created_at=cast(datetime, parse_datetime(row["created_at"])),
        updated_at=cast(datetime, parse_datetime(row["updated_at"])),
    )


__all__ = [
    "SqliteCategoryRepository",
    "SqliteDatabase",
    "SqliteMessageRepository",
    "SqliteOwnerRepository",
]
