"""Storage of users, feeds, follows and posts in an SQLite database."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from uuid import UUID

from gator.models import (
    CreateFeedFollowRow,
    Feed,
    GetFeedsRow,
    GetFollowsByUserIDRow,
    GetPostsByUserIDRow,
    Post,
    User,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT,
    updated_at TEXT,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    created_at TEXT,
    updated_at TEXT,
    name TEXT,
    url TEXT UNIQUE,
    user_id TEXT REFERENCES users (id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    created_at TEXT,
    updated_at TEXT,
    user_id TEXT REFERENCES users (id) ON DELETE CASCADE,
    feed_id TEXT REFERENCES feeds (id) ON DELETE CASCADE,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    created_at TEXT,
    updated_at TEXT,
    title TEXT,
    url TEXT UNIQUE,
    description TEXT,
    published_at TEXT,
    feed_id TEXT REFERENCES feeds (id) ON DELETE CASCADE
);
"""

_USER_COLUMNS = "id, created_at, updated_at, name"
_FEED_COLUMNS = "id, created_at, updated_at, name, url, user_id, last_fetched_at"
_POST_COLUMNS = "id, created_at, updated_at, title, url, description, published_at, feed_id"


class DatabaseError(Exception):
    """A query failed."""


class NotFoundError(DatabaseError):
    """A query that must return a row returned none."""


class UniqueViolationError(DatabaseError):
    """A write would duplicate a value that must be unique."""


@contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except sqlite3.IntegrityError as exc:
        if "UNIQUE" in str(exc):
            raise UniqueViolationError(f"violates unique constraint: {exc}") from exc
        raise DatabaseError(str(exc)) from exc
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


def _database_target(url: str) -> str:
    if not url:
        raise DatabaseError("missing database url")
    if url == "sqlite://":
        return ":memory:"
    if url.startswith("sqlite:///"):
        return url[len("sqlite:///"):] or ":memory:"
    if "://" in url:
        scheme = url.partition("://")[0]
        raise DatabaseError(f"unsupported database url scheme: {scheme}")
    return url


def connect(url: str) -> sqlite3.Connection:
    """Open the database named by ``url``.

    ``url`` is a file path, ``:memory:``, a ``file:`` URI or a
    ``sqlite:///path`` URL. The connection runs in autocommit mode with
    foreign keys enforced.
    """
    target = _database_target(url)
    with _translate_errors():
        connection = sqlite3.connect(
            target, isolation_level=None, uri=target.startswith("file:")
        )
        connection.execute("PRAGMA foreign_keys = ON")
    return connection


def create_schema(connection: sqlite3.Connection) -> None:
    """Create the tables if they do not yet exist."""
    with _translate_errors():
        connection.executescript(_SCHEMA)


def _uuid_in(value: UUID | None) -> str | None:
    return None if value is None else str(value)


def _uuid_out(value: str | None) -> UUID | None:
    return None if value is None else UUID(value)


def _time_in(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.isoformat()


def _time_out(value: str | None) -> datetime | None:
    return None if value is None else datetime.fromisoformat(value)


def _user(row: tuple) -> User:
    ident, created, updated, name = row
    return User(UUID(ident), _time_out(created), _time_out(updated), name)


def _feed(row: tuple) -> Feed:
    ident, created, updated, name, url, user_id, fetched = row
    return Feed(
        UUID(ident),
        _time_out(created),
        _time_out(updated),
        name,
        url,
        _uuid_out(user_id),
        _time_out(fetched),
    )


def _post(row: tuple) -> Post:
    ident, created, updated, title, url, description, published, feed_id = row
    return Post(
        UUID(ident),
        _time_out(created),
        _time_out(updated),
        title,
        url,
        description,
        _time_out(published),
        _uuid_out(feed_id),
    )


class Queries:
    """The queries the application runs against one connection."""

    def __init__(self, connection: sqlite3.Connection, *, _in_transaction: bool = False):
        self._conn = connection
        self._in_transaction = _in_transaction

    @contextmanager
    def transaction(self) -> Iterator[Queries]:
        """Run queries in one transaction, rolled back if the block raises."""
        if self._in_transaction or self._conn.in_transaction:
            raise DatabaseError("a transaction is already in progress")
        with _translate_errors():
            self._conn.execute("BEGIN")
        try:
            yield Queries(self._conn, _in_transaction=True)
        except BaseException:
            self._conn.rollback()
            raise
        with _translate_errors():
            self._conn.commit()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with _translate_errors():
            return self._conn.execute(sql, params)

    def _write(self, sql: str, params: tuple = ()) -> None:
        try:
            self._execute(sql, params)
        except DatabaseError:
            if not self._in_transaction and self._conn.in_transaction:
                self._conn.rollback()
            raise
        if not self._in_transaction:
            with _translate_errors():
                self._conn.commit()

    def _one(self, sql: str, params: tuple = ()) -> tuple:
        row = self._execute(sql, params).fetchone()
        if row is None:
            raise NotFoundError("no rows in result set")
        return row

    def _all(self, sql: str, params: tuple = ()) -> list[tuple]:
        with _translate_errors():
            return self._execute(sql, params).fetchall()

    # feed follows

    def create_feed_follow(
        self,
        id: UUID,
        created_at: datetime | None,
        updated_at: datetime | None,
        user_id: UUID | None,
        feed_id: UUID | None,
    ) -> CreateFeedFollowRow:
        """Record that a user follows a feed; return it with both names."""
        self._write(
            "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
            "VALUES (?, ?, ?, ?, ?)",
            (str(id), _time_in(created_at), _time_in(updated_at),
             _uuid_in(user_id), _uuid_in(feed_id)),
        )
        row = self._one(
            "SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id, "
            "f.name, u.name FROM feed_follows ff "
            "INNER JOIN users u ON ff.user_id = u.id "
            "INNER JOIN feeds f ON ff.feed_id = f.id "
            "WHERE ff.id = ?",
            (str(id),),
        )
        ident, created, updated, uid, fid, feed_name, user_name = row
        return CreateFeedFollowRow(
            UUID(ident), _time_out(created), _time_out(updated),
            _uuid_out(uid), _uuid_out(fid), feed_name, user_name,
        )

    def delete_feed_follow_by_user_and_url(self, user_id: UUID | None, url: str | None) -> None:
        """Remove a user's follow of the feed at ``url``."""
        self._write(
            "DELETE FROM feed_follows WHERE user_id = ? AND feed_id = "
            "(SELECT id FROM feeds WHERE url = ?)",
            (_uuid_in(user_id), url),
        )

    def get_feed_by_url(self, url: str | None) -> Feed:
        return _feed(self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE url = ?", (url,)))

    def get_follows_by_user_id(self, user_id: UUID | None) -> list[GetFollowsByUserIDRow]:
        rows = self._all(
            "SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id, "
            "u.name, f.name FROM feed_follows ff "
            "INNER JOIN users u ON ff.user_id = u.id "
            "INNER JOIN feeds f ON ff.feed_id = f.id "
            "WHERE ff.user_id = ?",
            (_uuid_in(user_id),),
        )
        return [
            GetFollowsByUserIDRow(
                UUID(ident), _time_out(created), _time_out(updated),
                _uuid_out(uid), _uuid_out(fid), user_name, feed_name,
            )
            for ident, created, updated, uid, fid, user_name, feed_name in rows
        ]

    # feeds

    def create_feed(
        self,
        id: UUID,
        created_at: datetime | None,
        updated_at: datetime | None,
        name: str | None,
        url: str | None,
        user_id: UUID | None,
    ) -> Feed:
        self._write(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (str(id), _time_in(created_at), _time_in(updated_at), name, url, _uuid_in(user_id)),
        )
        return _feed(self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (str(id),)))

    def get_feeds(self) -> list[GetFeedsRow]:
        rows = self._all(
            "SELECT f.name, f.url, u.name FROM feeds f JOIN users u ON f.user_id = u.id"
        )
        return [GetFeedsRow(feed_name, url, user_name) for feed_name, url, user_name in rows]

    def get_next_feed_to_fetch(self) -> Feed:
        """Return the feed fetched longest ago, never-fetched feeds first."""
        return _feed(self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds "
            "ORDER BY last_fetched_at IS NOT NULL, last_fetched_at LIMIT 1"
        ))

    def mark_feed_fetched(self, id: UUID, last_fetched_at: datetime | None) -> None:
        stamp = _time_in(last_fetched_at)
        self._write(
            "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
            (stamp, stamp, str(id)),
        )

    # posts

    def create_post(
        self,
        id: UUID,
        created_at: datetime | None,
        updated_at: datetime | None,
        title: str | None,
        url: str | None,
        description: str | None,
        published_at: datetime | None,
        feed_id: UUID | None,
    ) -> Post:
        self._write(
            f"INSERT INTO posts ({_POST_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (str(id), _time_in(created_at), _time_in(updated_at), title, url,
             description, _time_in(published_at), _uuid_in(feed_id)),
        )
        return _post(self._one(f"SELECT {_POST_COLUMNS} FROM posts WHERE id = ?", (str(id),)))

    def get_posts_by_user_id(self, user_id: UUID | None, limit: int) -> list[GetPostsByUserIDRow]:
        """Pair posts with the user's feeds, oldest publication first, at most ``limit``."""
        if limit < 0:
            raise DatabaseError("LIMIT must not be negative")
        rows = self._all(
            "SELECT p.id, p.created_at, p.updated_at, p.title, p.url, p.description, "
            "p.published_at, p.feed_id, f.id, f.created_at, f.updated_at, f.name, "
            "f.url, f.user_id, f.last_fetched_at FROM posts p "
            "INNER JOIN feeds f ON ? = f.user_id "
            "ORDER BY p.published_at IS NULL, p.published_at LIMIT ?",
            (_uuid_in(user_id), limit),
        )
        return [GetPostsByUserIDRow(post=_post(row[:8]), feed=_feed(row[8:])) for row in rows]

    # users

    def create_user(
        self,
        id: UUID,
        created_at: datetime | None,
        updated_at: datetime | None,
        name: str,
    ) -> User:
        self._write(
            f"INSERT INTO users ({_USER_COLUMNS}) VALUES (?, ?, ?, ?)",
            (str(id), _time_in(created_at), _time_in(updated_at), name),
        )
        return self.get_user(id)

    def get_user(self, id: UUID) -> User:
        return _user(self._one(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (str(id),)))

    def get_user_by_name(self, name: str) -> User:
        return _user(self._one(f"SELECT {_USER_COLUMNS} FROM users WHERE name = ?", (name,)))

    def get_users(self) -> list[User]:
        return [_user(row) for row in self._all(f"SELECT {_USER_COLUMNS} FROM users")]

    def reset_users(self) -> None:
        """Delete every user, and with them their feeds, follows and posts."""
        self._write("DELETE FROM users WHERE id IS NOT NULL")