import logging

from fastapi import APIRouter, HTTPException, Request, status

from linkdrop.models.link import PlatformTag
from linkdrop.schemas.links import (
    EligibilityResponse,
    LinkResponse,
    SubmitRequest,
    SubmitResponse,
    UserResponse,
)
from linkdrop.services.submission_service import (
    InvalidSubmission,
    LinkNotFound,
    RateLimited,
    SubmissionFailed,
    SubmissionService,
    UserNotFound,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _service(request: Request) -> SubmissionService:
    return request.app.state.submission_service


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request) -> list[UserResponse]:
    return [UserResponse.from_user(user) for user in _service(request).list_users()]


@router.get("/users/{slug}/eligibility", response_model=EligibilityResponse)
def eligibility(slug: str, request: Request) -> EligibilityResponse:
    try:
        _, result = _service(request).eligibility(slug)
    except UserNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return EligibilityResponse.from_eligibility(result)


@router.get("/users/{slug}/inbox", response_model=list[LinkResponse])
def inbox(slug: str, request: Request) -> list[LinkResponse]:
    try:
        links = _service(request).inbox(slug)
    except UserNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return [LinkResponse.from_link(link) for link in links]


@router.get("/users/{slug}/archive", response_model=list[LinkResponse])
def archive(
    slug: str,
    request: Request,
    platform: PlatformTag | None = None,
    q: str | None = None,
) -> list[LinkResponse]:
    try:
        links = _service(request).archive(slug, platform, q)
    except UserNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return [LinkResponse.from_link(link) for link in links]


@router.post("/links", response_model=SubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit(payload: SubmitRequest, request: Request) -> SubmitResponse:
    try:
        link = await _service(request).submit(payload)
    except InvalidSubmission as exc:
        logger.info("[submit] rejected | sender=%s | reason=%s", payload.sender, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except UserNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except RateLimited as exc:
        eligibility = exc.eligibility
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "message": str(exc),
                "count_today": eligibility.count_today,
                "next_eligible_at": eligibility.next_eligible_at.isoformat()
                if eligibility.next_eligible_at
                else None,
            },
        )
    except SubmissionFailed as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"status": "error", "message": str(exc)},
        )
    return SubmitResponse(status="sent", message="Link sent", link=LinkResponse.from_link(link))


@router.post("/links/{link_id}/watched", response_model=LinkResponse)
def mark_watched(link_id: str, request: Request) -> LinkResponse:
    try:
        link = _service(request).mark_watched(link_id)
    except LinkNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return LinkResponse.from_link(link)
