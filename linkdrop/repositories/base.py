from abc import ABC, abstractmethod
from datetime import datetime

from linkdrop.models.link import Link, PlatformTag, User


class AbstractLinkRepository(ABC):
    @abstractmethod
    def list_users(self) -> list[User]:
        """Return every user."""

    @abstractmethod
    def get_user_by_slug(self, slug: str) -> User | None:
        """Return the user with the given slug, or None."""

    @abstractmethod
    def count_submissions_since(self, sender_id: str, since: datetime) -> int:
        """Count links sent by sender_id with created_at >= since."""

    @abstractmethod
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
        """Persist a new unwatched link. The repository assigns id and created_at."""

    @abstractmethod
    def get_link(self, link_id: str) -> Link | None:
        """Return a link by id, or None."""

    @abstractmethod
    def list_inbox(self, recipient_id: str) -> list[Link]:
        """Unwatched links for a recipient, newest first."""

    @abstractmethod
    def list_archive(
        self, recipient_id: str, platform: PlatformTag | None = None
    ) -> list[Link]:
        """Watched links for a recipient, most recently watched first."""

    @abstractmethod
    def update_watched(self, link_id: str, watched_at: datetime) -> None:
        """Mark a link watched. A link that is already watched keeps its watched_at."""
