import logging
from collections.abc import Callable
from datetime import datetime, timezone

from linkdrop.models.link import Eligibility, Link, PlatformTag, User
from linkdrop.repositories.base import AbstractLinkRepository
from linkdrop.schemas.links import SubmitRequest
from linkdrop.services.eligibility_service import SubmissionGatekeeper
from linkdrop.services.metadata_service import MetadataResolver
from linkdrop.services.platform_service import detect_platform, is_valid_absolute_url

logger = logging.getLogger(__name__)


class SubmissionError(Exception):
    pass


class InvalidSubmission(SubmissionError):
    pass


class UserNotFound(SubmissionError):
    def __init__(self, slug: str):
        super().__init__(f"User not found: {slug}")
        self.slug = slug


class LinkNotFound(SubmissionError):
    def __init__(self, link_id: str):
        super().__init__(f"Link not found: {link_id}")
        self.link_id = link_id


class RateLimited(SubmissionError):
    def __init__(self, eligibility: Eligibility):
        super().__init__("Daily submission limit reached")
        self.eligibility = eligibility


class SubmissionFailed(SubmissionError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def matches_search(link: Link, query: str) -> bool:
    """Case-insensitive substring match against title, URL and space-joined tags."""
    needle = query.lower()
    haystacks = ((link.title or "").lower(), link.url.lower(), " ".join(link.custom_tags).lower())
    return any(needle in haystack for haystack in haystacks)


class SubmissionService:
    def __init__(
        self,
        repository: AbstractLinkRepository,
        gatekeeper: SubmissionGatekeeper,
        resolver: MetadataResolver,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._gatekeeper = gatekeeper
        self._resolver = resolver
        self._clock = clock or _utcnow

    def list_users(self) -> list[User]:
        return self._repository.list_users()

    def get_user(self, slug: str) -> User:
        user = self._repository.get_user_by_slug(slug)
        if user is None:
            raise UserNotFound(slug)
        return user

    def eligibility(self, slug: str) -> tuple[User, Eligibility]:
        user = self.get_user(slug)
        return user, self._gatekeeper.check_eligibility(user.id)

    async def submit(self, payload: SubmitRequest) -> Link:
        """
        Validate, rate-limit, enrich and persist a link. Nothing is written
        unless every check passes. Enrichment failures leave title and
        thumbnail empty; persistence failures raise SubmissionFailed.
        """
        url = payload.url.strip()
        if not url:
            raise InvalidSubmission("Please enter a URL")
        if not is_valid_absolute_url(url):
            raise InvalidSubmission("Please enter a valid URL")

        sender = self.get_user(payload.sender)
        recipient = self.get_user(payload.recipient)
        if sender.id == recipient.id:
            raise InvalidSubmission("Cannot send to yourself")

        eligibility = self._gatekeeper.check_eligibility(sender.id)
        if not eligibility.allowed:
            raise RateLimited(eligibility)

        platform_tag = detect_platform(url)
        metadata = await self._resolver.resolve(url)
        note = (payload.note or "").strip() or None
        custom_tags = [tag.strip() for tag in payload.custom_tags if tag and tag.strip()]

        try:
            link = self._repository.insert_link(
                sender_id=sender.id,
                recipient_id=recipient.id,
                url=url,
                platform_tag=platform_tag,
                title=metadata.title,
                thumbnail=metadata.thumbnail,
                custom_tags=custom_tags,
                note=note,
            )
        except Exception as exc:
            logger.exception("[submit] persist failed | sender=%s | url=%s", sender.slug, url)
            raise SubmissionFailed("Failed to submit link") from exc

        logger.info(
            "[submit] sent | sender=%s | recipient=%s | platform=%s | url=%s",
            sender.slug,
            recipient.slug,
            platform_tag.value,
            url,
        )
        return link

    def inbox(self, slug: str) -> list[Link]:
        return self._repository.list_inbox(self.get_user(slug).id)

    def archive(
        self, slug: str, platform: PlatformTag | None = None, query: str | None = None
    ) -> list[Link]:
        links = self._repository.list_archive(self.get_user(slug).id, platform)
        query = (query or "").strip()
        if not query:
            return links
        return [link for link in links if matches_search(link, query)]

    def mark_watched(self, link_id: str) -> Link:
        """One-way: the first call stamps watched_at, later calls leave it alone."""
        link = self._repository.get_link(link_id)
        if link is None:
            raise LinkNotFound(link_id)
        if not link.watched:
            self._repository.update_watched(link_id, self._clock())
            link = self._repository.get_link(link_id) or link
            logger.info("[watched] marked | id=%s", link_id)
        return link
