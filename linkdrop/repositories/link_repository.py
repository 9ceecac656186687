import json
import logging
import sqlite3
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from linkdrop.db.connection import transaction
from linkdrop.models.link import Link, PlatformTag, User
from linkdrop.repositories.base import AbstractLinkRepository

logger = logging.getLogger(__name__)

# Fixed-width UTC so that string comparison in SQL matches chronological order.
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_LINK_COLUMNS = """
    links.id, links.sender_id, links.recipient_id, links.url, links.title,
    links.thumbnail, links.platform_tag, links.custom_tags, links.note,
    links.created_at, links.watched, links.watched_at,
    sender.slug AS sender_slug, sender.name AS sender_name
"""


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        raise ValueError("timestamps must be timezone-aware")
    return value.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)


def parse_timestamp(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.strptime(value, _TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        slug=row["slug"],
        name=row["name"],
        last_submitted_at=parse_timestamp(row["last_submitted_at"]),
    )


def _row_to_link(row: sqlite3.Row) -> Link:
    return Link(
        id=row["id"],
        sender_id=row["sender_id"],
        recipient_id=row["recipient_id"],
        url=row["url"],
        title=row["title"],
        thumbnail=row["thumbnail"],
        platform_tag=PlatformTag(row["platform_tag"]),
        custom_tags=json.loads(row["custom_tags"] or "[]"),
        note=row["note"],
        created_at=parse_timestamp(row["created_at"]),
        watched=bool(row["watched"]),
        watched_at=parse_timestamp(row["watched_at"]),
        sender_slug=row["sender_slug"],
        sender_name=row["sender_name"],
    )


class LinkRepository(AbstractLinkRepository):
    def __init__(self, db_path: str, clock: Callable[[], datetime] | None = None) -> None:
        self._db_path = db_path
        self._clock = clock or _utcnow

    def list_users(self) -> list[User]:
        with transaction(self._db_path) as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY name").fetchall()
        return [_row_to_user(row) for row in rows]

    def get_user_by_slug(self, slug: str) -> User | None:
        with transaction(self._db_path) as conn:
            row = conn.execute("SELECT * FROM users WHERE slug = ?", (slug,)).fetchone()
        return _row_to_user(row) if row else None

    def count_submissions_since(self, sender_id: str, since: datetime) -> int:
        with transaction(self._db_path) as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM links WHERE sender_id = ? AND created_at >= ?",
                (sender_id, format_timestamp(since)),
            ).fetchone()
        return row[0]

    def insert_link(
        self,
        sender_id: str,
        recipient_id: str,
        url: str,
        platform_tag: PlatformTag,
        title: str | None = None,
        thumbnail: str | None = None,
        custom_tags: list[str] | None = None,
        note: str | None = None,
    ) -> Link:
        """
        Insert an unwatched link and refresh the sender's last_submitted_at
        in the same transaction.
        """
        link_id = str(uuid.uuid4())
        created_at = format_timestamp(self._clock())
        with transaction(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO links
                    (id, sender_id, recipient_id, url, title, thumbnail,
                     platform_tag, custom_tags, note, created_at, watched, watched_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, NULL)
                """,
                (
                    link_id,
                    sender_id,
                    recipient_id,
                    url,
                    title,
                    thumbnail,
                    PlatformTag(platform_tag).value,
                    json.dumps(custom_tags or []),
                    note,
                    created_at,
                ),
            )
            conn.execute(
                "UPDATE users SET last_submitted_at = ? WHERE id = ?",
                (created_at, sender_id),
            )
            row = conn.execute(
                f"""
                SELECT {_LINK_COLUMNS}
                FROM links JOIN users AS sender ON sender.id = links.sender_id
                WHERE links.id = ?
                """,
                (link_id,),
            ).fetchone()
        logger.debug("[db] link inserted | id=%s | sender=%s", link_id, sender_id)
        return _row_to_link(row)

    def get_link(self, link_id: str) -> Link | None:
        with transaction(self._db_path) as conn:
            row = conn.execute(
                f"""
                SELECT {_LINK_COLUMNS}
                FROM links JOIN users AS sender ON sender.id = links.sender_id
                WHERE links.id = ?
                """,
                (link_id,),
            ).fetchone()
        return _row_to_link(row) if row else None

    def list_inbox(self, recipient_id: str) -> list[Link]:
        with transaction(self._db_path) as conn:
            rows = conn.execute(
                f"""
                SELECT {_LINK_COLUMNS}
                FROM links JOIN users AS sender ON sender.id = links.sender_id
                WHERE links.recipient_id = ? AND links.watched = 0
                ORDER BY links.created_at DESC
                """,
                (recipient_id,),
            ).fetchall()
        return [_row_to_link(row) for row in rows]

    def list_archive(
        self, recipient_id: str, platform: PlatformTag | None = None
    ) -> list[Link]:
        query = f"""
            SELECT {_LINK_COLUMNS}
            FROM links JOIN users AS sender ON sender.id = links.sender_id
            WHERE links.recipient_id = ? AND links.watched = 1
        """
        params: list[str] = [recipient_id]
        if platform is not None:
            query += " AND links.platform_tag = ?"
            params.append(PlatformTag(platform).value)
        query += " ORDER BY links.watched_at DESC"
        with transaction(self._db_path) as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_link(row) for row in rows]

    def update_watched(self, link_id: str, watched_at: datetime) -> None:
        with transaction(self._db_path) as conn:
            cursor = conn.execute(
                "UPDATE links SET watched = 1, watched_at = ? WHERE id = ? AND watched = 0",
                (format_timestamp(watched_at), link_id),
            )
        if cursor.rowcount == 0:
            logger.debug("[db] watched update was a no-op | id=%s", link_id)
