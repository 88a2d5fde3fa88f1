"""File attachments sent through NIP-17 file messages."""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path


_MAGIC_EXTENSIONS: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"\xff\xd8\xff", "jpg"),
    (b"GIF87a", "gif"),
    (b"GIF89a", "gif"),
    (b"%PDF-", "pdf"),
    (b"PK\x03\x04", "zip"),
    (b"OggS", "ogg"),
    (b"ID3", "mp3"),
)


def infer_extension(data: bytes) -> str:
    """Guess a file extension from leading magic bytes; ``bin`` when unknown."""
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    if data[4:8] == b"ftyp":
        return "mp4"
    for magic, extension in _MAGIC_EXTENSIONS:
        if data.startswith(magic):
            return extension
    return "bin"


@dataclass(frozen=True, slots=True)
class ImageMetadata:
    blurhash: str
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class AttachmentFile:
    """Raw attachment bytes plus the extension used to derive the MIME type."""

    data: bytes
    extension: str
    image: ImageMetadata | None = None

    @classmethod
    def from_bytes(cls, data: bytes, extension: str | None = None) -> AttachmentFile:
        return cls(data, (extension or infer_extension(data)).lstrip("."))

    @classmethod
    def from_path(cls, path: str | Path) -> AttachmentFile:
        """Read a file; the extension is sniffed from content, then the suffix."""
        file_path = Path(path)
        data = file_path.read_bytes()
        sniffed = infer_extension(data)
        if sniffed == "bin" and file_path.suffix:
            return cls(data, file_path.suffix.lstrip(".").lower())
        return cls(data, sniffed)

    @property
    def mime_type(self) -> str:
        guessed, _ = mimetypes.guess_type(f"attachment.{self.extension}")
        return guessed or "application/octet-stream"
