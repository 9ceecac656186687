from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class PlatformTag(str, Enum):
    YOUTUBE = "YouTube"
    TWEET = "Tweet"
    SUBSTACK = "Substack"
    ARTICLE = "Article"
    BOOK = "Book"
    LINK = "Link"


@dataclass
class User:
    id: str
    slug: str
    name: str
    last_submitted_at: datetime | None = None


@dataclass
class Link:
    id: str
    sender_id: str
    recipient_id: str
    url: str
    platform_tag: PlatformTag
    created_at: datetime
    title: str | None = None
    thumbnail: str | None = None
    custom_tags: list[str] = field(default_factory=list)
    note: str | None = None
    watched: bool = False
    watched_at: datetime | None = None
    # Populated by inbox/archive listings, which join the sender for display.
    sender_slug: str | None = None
    sender_name: str | None = None


@dataclass(frozen=True)
class UrlMetadata:
    title: str | None = None
    thumbnail: str | None = None


@dataclass(frozen=True)
class Eligibility:
    allowed: bool
    next_eligible_at: datetime | None
    count_today: int
