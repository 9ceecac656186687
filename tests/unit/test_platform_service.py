import pytest

from linkdrop.models.link import PlatformTag
from linkdrop.services.platform_service import (
    detect_platform,
    extract_domain_tag,
    is_valid_absolute_url,
)


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://www.youtube.com/watch?v=abc123", PlatformTag.YOUTUBE),
        ("https://youtu.be/abc123", PlatformTag.YOUTUBE),
        ("https://m.YouTube.com/shorts/xyz", PlatformTag.YOUTUBE),
        ("https://twitter.com/someone/status/1", PlatformTag.TWEET),
        ("https://x.com/someone/status/1", PlatformTag.TWEET),
        ("https://writer.substack.com/p/post", PlatformTag.SUBSTACK),
        ("https://medium.com/@someone/essay-1234", PlatformTag.ARTICLE),
        ("https://www.amazon.com/Some-Title/dp/0123456789", PlatformTag.BOOK),
        ("https://www.amazon.com/books-used-books-textbooks/b", PlatformTag.BOOK),
        ("https://www.goodreads.com/book/show/1", PlatformTag.BOOK),
        ("https://example.com/post", PlatformTag.LINK),
        ("https://github.com/owner/repo", PlatformTag.LINK),
    ],
)
def test_detect_platform_known_hosts(url, expected):
    assert detect_platform(url) == expected


def test_amazon_without_book_path_is_generic():
    assert detect_platform("https://www.amazon.com/gp/cart/view.html") == PlatformTag.LINK


def test_amazon_path_match_is_case_insensitive():
    assert detect_platform("https://amazon.com/Title/DP/B000") == PlatformTag.BOOK


def test_youtube_wins_over_later_rules():
    # First match wins even if a later rule would also match.
    assert detect_platform("https://youtube.com/medium.com") == PlatformTag.YOUTUBE


@pytest.mark.parametrize("url", ["", "not a url", "example.com/no-scheme", "://missing", "http://[::1"])
def test_detect_platform_invalid_falls_back_to_link(url):
    assert detect_platform(url) == PlatformTag.LINK


def test_detect_platform_is_deterministic():
    url = "https://writer.substack.com/p/post"
    assert {detect_platform(url) for _ in range(5)} == {PlatformTag.SUBSTACK}


def test_extract_domain_tag_strips_www():
    assert extract_domain_tag("https://www.nytimes.com/2024/article") == "nytimes"


def test_extract_domain_tag_keeps_subdomain():
    assert extract_domain_tag("https://writer.substack.com/p/post") == "writer"


def test_extract_domain_tag_invalid():
    assert extract_domain_tag("not a url") == ""


def test_is_valid_absolute_url():
    assert is_valid_absolute_url("https://example.com/post")
    assert not is_valid_absolute_url("example.com/post")
    assert not is_valid_absolute_url("just words")
    assert not is_valid_absolute_url("https://")


@pytest.mark.parametrize(
    "url",
    [
        "https://exa mple.com/post",
        "https://example.com:notaport/x",
        "https://example.com:99999/x",
        "https://exa<mple>.com",
    ],
)
def test_is_valid_absolute_url_rejects_malformed_hosts_and_ports(url):
    assert not is_valid_absolute_url(url)


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com:8080/x",
        "http://[::1]:8000/",
        "https://sub_domain.example.co.uk/a b",
        "https://münchen.de/",
    ],
)
def test_is_valid_absolute_url_accepts_ports_ipv6_and_idn(url):
    assert is_valid_absolute_url(url)
