"""
models/release.py
-----------------
Domain model for a published release, as described by the
release-metadata endpoint used by the self-updater.
"""

import re
from dataclasses import dataclass
from typing import Optional

_LEADING_DIGITS = re.compile(r"\d+")


def parse_version(text: str) -> tuple[int, ...]:
    """
    Turn a version string into a comparable tuple.

    A leading "v" is ignored, each dot-separated part keeps only its
    leading digits ("0-rc1" -> 0) and trailing zeros are dropped so that
    "1.2" and "1.2.0" compare equal.

    Raises:
        ValueError: If no numeric part can be found.
    """
    cleaned = text.strip().lstrip("vV")
    parts: list[int] = []
    for piece in cleaned.split("."):
        match = _LEADING_DIGITS.match(piece)
        if not match:
            break
        parts.append(int(match.group(0)))
    if not parts:
        raise ValueError(f"Unrecognized version: {text!r}")
    while len(parts) > 1 and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


@dataclass
class Release:
    """
    Represents one release of the installed files.

    Attributes:
        version: Version string without the leading "v".
        tag: The release tag as published (e.g. 'v1.4.0').
        archive_url: Where to download the zip archive.
        published_at: ISO timestamp of publication, if known.
        notes: Release notes, if any.
    """
    version: str
    tag: str
    archive_url: str
    published_at: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_metadata(cls, payload: dict) -> "Release":
        """
        Build a Release from a GitHub-style release JSON object.

        A ``.zip`` asset is preferred over the generated source zipball.

        Raises:
            ValueError: If the payload is not a JSON object, or the tag or
                the archive URL is missing.
        """
        if not isinstance(payload, dict):
            raise ValueError("Release metadata must be a JSON object.")
        tag = payload.get("tag_name") or ""
        if not isinstance(tag, str):
            raise ValueError("Release metadata tag_name must be a string.")
        if not tag:
            raise ValueError("Release metadata has no tag_name.")

        archive_url = None
        for asset in payload.get("assets") or []:
            if not isinstance(asset, dict):
                raise ValueError("Release asset entries must be JSON objects.")
            url = asset.get("browser_download_url") or ""
            if url.lower().endswith(".zip"):
                archive_url = url
                break
        archive_url = archive_url or payload.get("zipball_url")
        if not archive_url:
            raise ValueError(f"Release {tag} has no downloadable archive.")

        return cls(
            version=tag.lstrip("vV"),
            tag=tag,
            archive_url=archive_url,
            published_at=payload.get("published_at"),
            notes=payload.get("body"),
        )

    def is_newer_than(self, version: str) -> bool:
        """Returns True if this release is strictly newer than ``version``."""
        return parse_version(self.version) > parse_version(version)

    def __str__(self) -> str:
        return f"{self.tag} ({self.published_at or 'unpublished'})"
