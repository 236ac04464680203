from __future__ import annotations

import pytest

from core.handles import extract_handle, normalize_handle, profile_url


@pytest.mark.parametrize(
    "raw",
    [
        "elonmusk",
        "@elonmusk",
        "  @elonmusk  ",
        "https://twitter.com/elonmusk",
        "https://x.com/elonmusk/",
        "x.com/elonmusk",
        "https://www.x.com/elonmusk/status/1234567890",
        "http://twitter.com/elonmusk/replies",
    ],
)
def test_extract_handle_accepts_supported_forms(raw: str) -> None:
    assert extract_handle(raw) == "elonmusk"


@pytest.mark.parametrize("raw", ["", "   ", "not a handle", "https://example.com/elonmusk"])
def test_extract_handle_rejects_garbage(raw: str) -> None:
    assert extract_handle(raw) is None


def test_extract_handle_keeps_case_and_underscores() -> None:
    assert extract_handle("@Some_User_42") == "Some_User_42"


def test_normalize_handle_lowercases_and_strips_at() -> None:
    assert normalize_handle("@Some_User") == "some_user"


def test_profile_url() -> None:
    assert profile_url("alice") == "https://x.com/alice"


def test_extract_handle_enforces_x_length_limit() -> None:
    assert extract_handle("@abcdefghijklmno") == "abcdefghijklmno"
    assert extract_handle("@abcdefghijklmnop") is None
    assert extract_handle("https://x.com/abcdefghijklmnop") is None
    assert extract_handle("https://x.com/abcdefghijklmno/status/1") == "abcdefghijklmno"
