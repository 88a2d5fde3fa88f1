"""Bot and sender profile models.

[BotProfile][vectorbot.models.profile.BotProfile] is the operator-supplied
identity published as a kind-0 event on connect.
[Profile][vectorbot.models.profile.Profile] is the slice of a sender's
kind-0 metadata cached by the message emitter.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, field_validator
from rfc3986 import uri_reference


logger = logging.getLogger(__name__)

DEFAULT_PICTURE = "https://example.com/avatar.png"
DEFAULT_BANNER = "https://example.com/banner.png"


def sanitize_url(candidate: str, fallback: str) -> str:
    """Return ``candidate`` if it is an absolute http(s) URL, else ``fallback``."""
    uri = uri_reference(candidate.strip())
    if uri.scheme in ("http", "https") and uri.authority and uri.is_valid():
        return uri.unsplit()
    logger.warning("invalid_profile_url url=%s fallback=%s", candidate, fallback)
    return fallback


class BotProfile(BaseModel):
    """Bot identity published as kind-0 metadata.

    Invalid ``picture``/``banner`` URLs are replaced by placeholders rather
    than rejected, so a typo in the profile never blocks startup.
    """

    name: str = Field(default="vector-bot", description="Short name, used for @mentions")
    display_name: str = Field(default="Vector Bot", description="Display name")
    about: str = Field(default="Vector bot created with the SDK")
    picture: str = Field(default=DEFAULT_PICTURE)
    banner: str = Field(default=DEFAULT_BANNER)
    nip05: str = Field(default="")
    lud16: str = Field(default="")

    @field_validator("picture")
    @classmethod
    def _sanitize_picture(cls, value: str) -> str:
        return sanitize_url(value, DEFAULT_PICTURE)

    @field_validator("banner")
    @classmethod
    def _sanitize_banner(cls, value: str) -> str:
        return sanitize_url(value, DEFAULT_BANNER)

    def to_metadata(self) -> dict[str, Any]:
        """Kind-0 content object; empty optional fields are omitted."""
        metadata: dict[str, Any] = {
            "name": self.name,
            "display_name": self.display_name,
            "displayName": self.display_name,
            "about": self.about,
            "picture": self.picture,
            "banner": self.banner,
        }
        if self.nip05:
            metadata["nip05"] = self.nip05
        if self.lud16:
            metadata["lud16"] = self.lud16
        metadata["bot"] = True
        return metadata


@dataclass(frozen=True, slots=True)
class Profile:
    """Cached sender profile; both fields ``None`` when nothing is known."""

    name: str | None = None
    display_name: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.name is None and self.display_name is None

    @property
    def label(self) -> str | None:
        """Display name, falling back to name."""
        return self.display_name or self.name

    @classmethod
    def from_metadata_json(cls, content: str) -> Profile:
        """Parse kind-0 content, accepting ``display_name`` and ``displayName``.

        Raises:
            ValueError: If ``content`` is not a JSON object.
        """
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError("profile metadata must be a JSON object")
        name = data.get("name")
        display_name = data.get("display_name") or data.get("displayName")
        return cls(
            name=name if isinstance(name, str) and name else None,
            display_name=display_name if isinstance(display_name, str) else None,
        )
