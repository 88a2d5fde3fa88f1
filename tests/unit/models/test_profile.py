"""
Unit tests for models.profile module.

Tests:
- BotProfile defaults and URL sanitization
- Kind-0 metadata shape
- Profile parsing from kind-0 content
"""

import json

import pytest

from vectorbot.models.profile import (
    DEFAULT_BANNER,
    DEFAULT_PICTURE,
    BotProfile,
    Profile,
    sanitize_url,
)


class TestSanitizeUrl:
    def test_valid_https_kept(self) -> None:
        assert sanitize_url("https://cdn.example.com/a.png", "x") == "https://cdn.example.com/a.png"

    @pytest.mark.parametrize("url", ["ftp://cdn.example.com/a.png", "not a url", "/relative.png"])
    def test_invalid_replaced(self, url: str) -> None:
        assert sanitize_url(url, "fallback") == "fallback"


class TestBotProfile:
    def test_defaults(self) -> None:
        profile = BotProfile()
        assert profile.name == "vector-bot"
        assert profile.display_name == "Vector Bot"
        assert profile.picture == DEFAULT_PICTURE

    def test_invalid_urls_fall_back(self) -> None:
        profile = BotProfile(picture="javascript:alert(1)", banner="nope")
        assert profile.picture == DEFAULT_PICTURE
        assert profile.banner == DEFAULT_BANNER

    def test_metadata_marks_bot(self) -> None:
        metadata = BotProfile(name="helper", display_name="Helper").to_metadata()
        assert metadata["bot"] is True
        assert metadata["display_name"] == "Helper"
        assert metadata["displayName"] == "Helper"
        assert "nip05" not in metadata

    def test_metadata_optional_fields(self) -> None:
        metadata = BotProfile(nip05="bot@example.com", lud16="bot@ln.example").to_metadata()
        assert metadata["nip05"] == "bot@example.com"
        assert metadata["lud16"] == "bot@ln.example"


class TestProfile:
    def test_empty(self) -> None:
        assert Profile().is_empty
        assert Profile().label is None

    def test_label_prefers_display_name(self) -> None:
        assert Profile(name="alice", display_name="Alice A.").label == "Alice A."
        assert Profile(name="alice").label == "alice"

    def test_from_metadata_display_name_variants(self) -> None:
        snake = Profile.from_metadata_json(json.dumps({"name": "a", "display_name": "A"}))
        camel = Profile.from_metadata_json(json.dumps({"name": "a", "displayName": "A"}))
        assert snake == camel == Profile(name="a", display_name="A")

    def test_from_metadata_non_object(self) -> None:
        with pytest.raises(ValueError):
            Profile.from_metadata_json("[1, 2]")
