"""Integration tests for the link submission API."""
import asyncio
import sqlite3
import tempfile
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient

from linkdrop.config import settings
from linkdrop.main import create_app
from linkdrop.models.link import UrlMetadata
from linkdrop.repositories.link_repository import LinkRepository, format_timestamp
from linkdrop.services.eligibility_service import SubmissionGatekeeper
from linkdrop.services.metadata_service import MetadataResolver
from linkdrop.services.submission_service import SubmissionService

NOW = datetime(2025, 3, 14, 15, 30, tzinfo=timezone.utc)


def _seed_users(db_path: str) -> None:
    conn = sqlite3.connect(db_path)
    conn.executemany(
        "INSERT INTO users (id, slug, name) VALUES (?, ?, ?)",
        [("u1", "alice", "Alice"), ("u2", "bob", "Bob")],
    )
    conn.commit()
    conn.close()


def _seed_link(db_path: str, created_at: datetime, sender_id: str = "u1", recipient_id: str = "u2") -> None:
    conn = sqlite3.connect(db_path)
    conn.execute(
        """
        INSERT INTO links (id, sender_id, recipient_id, url, platform_tag, created_at)
        VALUES (lower(hex(randomblob(8))), ?, ?, 'https://example.com/old', 'Link', ?)
        """,
        (sender_id, recipient_id, format_timestamp(created_at)),
    )
    conn.commit()
    conn.close()


def _count_links(db_path: str) -> int:
    conn = sqlite3.connect(db_path)
    row = conn.execute("SELECT COUNT(*) FROM links").fetchone()
    conn.close()
    return row[0]


def _failing_transport(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("provider unreachable")


@pytest.fixture
def db_path():
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        return f.name


@pytest.fixture
def client(db_path, monkeypatch):
    monkeypatch.setattr(settings, "DB_PATH", db_path)
    app = create_app()
    with TestClient(app, raise_server_exceptions=True) as c:
        _seed_users(db_path)
        # Rewire with a fixed clock and a transport where every provider is down.
        repository = LinkRepository(db_path, clock=lambda: NOW)
        c.http = httpx.AsyncClient(transport=httpx.MockTransport(_failing_transport))
        app.state.submission_service = SubmissionService(
            repository,
            SubmissionGatekeeper(repository, clock=lambda: NOW, tz=timezone.utc),
            MetadataResolver(client=c.http),
            clock=lambda: NOW,
        )
        c.db_path = db_path
        yield c
    asyncio.run(c.http.aclose())


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_list_users(client):
    response = client.get("/users")
    assert response.status_code == 200
    assert [u["slug"] for u in response.json()] == ["alice", "bob"]


def test_submit_youtube_short_link(client):
    response = client.post("/links", json={"sender": "alice", "recipient": "bob", "url": "https://youtu.be/abc123"})
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "sent"
    link = data["link"]
    assert link["platform_tag"] == "YouTube"
    assert link["thumbnail"] == "https://img.youtube.com/vi/abc123/mqdefault.jpg"
    assert link["title"] is None
    assert link["watched"] is False
    assert link["watched_at"] is None
    assert link["note"] is None
    assert link["sender"]["slug"] == "alice"


def test_submit_generic_link_when_providers_fail(client):
    response = client.post("/links", json={"sender": "alice", "recipient": "bob", "url": "https://example.com/post"})
    assert response.status_code == 201
    link = response.json()["link"]
    assert link["title"] is None
    assert link["thumbnail"] is None
    assert link["platform_tag"] == "Link"
    assert link["domain_tag"] == "example"


def test_submit_uses_resolved_metadata(client):
    resolver = AsyncMock()
    resolver.resolve = AsyncMock(return_value=UrlMetadata(title="Essay", thumbnail="https://i/x.png"))
    client.app.state.submission_service._resolver = resolver

    response = client.post(
        "/links",
        json={"sender": "alice", "recipient": "bob", "url": "https://medium.com/@a/essay", "note": "read me"},
    )
    link = response.json()["link"]
    assert link["title"] == "Essay"
    assert link["thumbnail"] == "https://i/x.png"
    assert link["platform_tag"] == "Article"
    assert link["note"] == "read me"


def test_third_submission_is_rate_limited(client):
    _seed_link(client.db_path, NOW - timedelta(hours=2))
    _seed_link(client.db_path, NOW - timedelta(hours=1))

    eligibility = client.get("/users/alice/eligibility").json()
    assert eligibility["allowed"] is False
    assert eligibility["remaining_today"] == 0

    response = client.post("/links", json={"sender": "alice", "recipient": "bob", "url": "https://example.com/3"})
    assert response.status_code == 429
    detail = response.json()["detail"]
    assert detail["count_today"] == 2
    assert detail["next_eligible_at"] == "2025-03-15T00:00:00+00:00"
    assert _count_links(client.db_path) == 2


def test_yesterdays_links_do_not_count(client):
    _seed_link(client.db_path, NOW - timedelta(days=1))
    _seed_link(client.db_path, NOW - timedelta(days=1, hours=1))

    data = client.get("/users/alice/eligibility").json()
    assert data == {
        "allowed": True,
        "next_eligible_at": None,
        "count_today": 0,
        "remaining_today": 2,
        "daily_limit": 2,
    }


def test_self_send_rejected(client):
    response = client.post("/links", json={"sender": "bob", "recipient": "bob", "url": "https://example.com"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot send to yourself"
    assert _count_links(client.db_path) == 0


def test_invalid_url_rejected(client):
    response = client.post("/links", json={"sender": "alice", "recipient": "bob", "url": "not a url"})
    assert response.status_code == 400
    assert _count_links(client.db_path) == 0


def test_blank_url_rejected(client):
    response = client.post("/links", json={"sender": "alice", "recipient": "bob", "url": "   "})
    assert response.status_code == 400
    assert response.json()["detail"] == "Please enter a URL"
    assert _count_links(client.db_path) == 0


@pytest.mark.parametrize(
    "url",
    ["https://exa mple.com/post", "https://example.com:notaport/x", "https://exa<mple>.com"],
)
def test_malformed_url_rejected(client, url):
    response = client.post("/links", json={"sender": "alice", "recipient": "bob", "url": url})
    assert response.status_code == 400
    assert response.json()["detail"] == "Please enter a valid URL"
    assert _count_links(client.db_path) == 0


def test_unknown_user(client):
    response = client.post("/links", json={"sender": "alice", "recipient": "carol", "url": "https://example.com"})
    assert response.status_code == 404
    assert client.get("/users/carol/inbox").status_code == 404


def test_inbox_watch_archive_flow(client):
    sent = client.post(
        "/links", json={"sender": "alice", "recipient": "bob", "url": "https://www.goodreads.com/book/show/1"}
    ).json()["link"]

    inbox = client.get("/users/bob/inbox").json()
    assert [l["id"] for l in inbox] == [sent["id"]]
    assert client.get("/users/alice/inbox").json() == []

    first = client.post(f"/links/{sent['id']}/watched").json()
    assert first["watched"] is True
    assert first["watched_at"] is not None

    second = client.post(f"/links/{sent['id']}/watched").json()
    assert second["watched_at"] == first["watched_at"]

    assert client.get("/users/bob/inbox").json() == []
    archive = client.get("/users/bob/archive").json()
    assert [l["id"] for l in archive] == [sent["id"]]
    assert client.get("/users/bob/archive", params={"platform": "Book"}).json()[0]["platform_tag"] == "Book"
    assert client.get("/users/bob/archive", params={"platform": "Tweet"}).json() == []


def test_archive_search_ignores_case(client):
    resolver = AsyncMock()
    resolver.resolve = AsyncMock(return_value=UrlMetadata(title="Attention Is All You Need"))
    client.app.state.submission_service._resolver = resolver
    paper = client.post(
        "/links", json={"sender": "alice", "recipient": "bob", "url": "https://arxiv.org/abs/1706.03762"}
    ).json()["link"]
    resolver.resolve.return_value = UrlMetadata()
    tagged = client.post(
        "/links",
        json={"sender": "alice", "recipient": "bob", "url": "https://example.com/x", "custom_tags": ["Cooking"]},
    ).json()["link"]
    client.post(f"/links/{paper['id']}/watched")
    client.post(f"/links/{tagged['id']}/watched")

    def search(q):
        return [l["id"] for l in client.get("/users/bob/archive", params={"q": q}).json()]

    assert search("attention") == [paper["id"]]
    assert search("ARXIV") == [paper["id"]]
    assert search("cooking") == [tagged["id"]]
    assert search("nothing here") == []


def test_archive_rejects_unknown_platform(client):
    assert client.get("/users/bob/archive", params={"platform": "Podcast"}).status_code == 422


def test_mark_watched_unknown_link(client):
    assert client.post("/links/missing/watched").status_code == 404


def test_persistence_failure_is_reported(client, monkeypatch):
    repository = client.app.state.submission_service._repository

    def _boom(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(repository, "insert_link", _boom)
    response = client.post("/links", json={"sender": "alice", "recipient": "bob", "url": "https://example.com"})
    assert response.status_code == 500
    assert response.json()["detail"] == {"status": "error", "message": "Failed to submit link"}
