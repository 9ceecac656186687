from datetime import datetime

from pydantic import BaseModel, field_validator

from linkdrop.models.link import Eligibility, Link, PlatformTag, User
from linkdrop.services.eligibility_service import DAILY_SUBMISSION_LIMIT, remaining_today
from linkdrop.services.platform_service import extract_domain_tag


class SubmitRequest(BaseModel):
    sender: str
    recipient: str
    url: str
    note: str | None = None
    custom_tags: list[str] = []

    @field_validator("sender", "recipient")
    @classmethod
    def slug_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("user slug must not be empty")
        return v.strip()


class UserResponse(BaseModel):
    id: str
    slug: str
    name: str
    last_submitted_at: datetime | None = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            slug=user.slug,
            name=user.name,
            last_submitted_at=user.last_submitted_at,
        )


class SenderSummary(BaseModel):
    id: str
    slug: str | None = None
    name: str | None = None


class LinkResponse(BaseModel):
    id: str
    url: str
    title: str | None
    thumbnail: str | None
    platform_tag: PlatformTag
    domain_tag: str
    custom_tags: list[str]
    note: str | None
    created_at: datetime
    watched: bool
    watched_at: datetime | None
    recipient_id: str
    sender: SenderSummary

    @classmethod
    def from_link(cls, link: Link) -> "LinkResponse":
        return cls(
            id=link.id,
            url=link.url,
            title=link.title,
            thumbnail=link.thumbnail,
            platform_tag=link.platform_tag,
            domain_tag=extract_domain_tag(link.url),
            custom_tags=link.custom_tags,
            note=link.note,
            created_at=link.created_at,
            watched=link.watched,
            watched_at=link.watched_at,
            recipient_id=link.recipient_id,
            sender=SenderSummary(id=link.sender_id, slug=link.sender_slug, name=link.sender_name),
        )


class EligibilityResponse(BaseModel):
    allowed: bool
    next_eligible_at: datetime | None
    count_today: int
    remaining_today: int
    daily_limit: int = DAILY_SUBMISSION_LIMIT

    @classmethod
    def from_eligibility(cls, eligibility: Eligibility) -> "EligibilityResponse":
        return cls(
            allowed=eligibility.allowed,
            next_eligible_at=eligibility.next_eligible_at,
            count_today=eligibility.count_today,
            remaining_today=remaining_today(eligibility),
        )


class SubmitResponse(BaseModel):
    status: str
    message: str
    link: LinkResponse
