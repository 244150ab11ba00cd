"""Tests for url normalization and domain extraction."""

import pytest

from smart_bookmarks.core.importer.urls import extract_domain, is_web_url, normalize_url


def test_extract_domain_strips_www_and_lowercases() -> None:
    assert extract_domain("https://WWW.Example.com/path?q=1") == "example.com"
    assert extract_domain("http://docs.python.org") == "docs.python.org"
    assert extract_domain("not a url") == ""


def test_is_web_url() -> None:
    assert is_web_url("https://a.com")
    assert not is_web_url("javascript:alert(1)")
    assert not is_web_url("ftp://files.example.com")
    assert not is_web_url("https://")


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("http://www.Example.com/docs/", "https://example.com/docs"),
        ("https://example.com:443/", "https://example.com/"),
        ("https://example.com:8443/a", "https://example.com:8443/a"),
        ("https://a.com/x?utm_source=feed&b=2&a=1#top", "https://a.com/x?a=1&b=2"),
        ("https://a.com/?fbclid=abc", "https://a.com/"),
    ],
)
def test_normalize_url(url: str, expected: str) -> None:
    assert normalize_url(url) == expected


def test_normalize_url_leaves_other_schemes_alone() -> None:
    assert normalize_url("javascript:void(0)") == "javascript:void(0)"
    assert normalize_url("http://[::1") == "http://[::1"
