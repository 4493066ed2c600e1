"""
Collaborators around the watermark codec.

Each class here stands in for an external system the view endpoint
depends on: token verification, the family registry, screenshot storage
and the audit trail. They are injected into the routes with FastAPI's
Depends so tests and deployments can swap them.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path

import structlog

log = structlog.get_logger()

# Child and screenshot ids end up in filesystem paths
_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

STORED_SUFFIXES = (".jpg", ".jpeg", ".png", ".webp")


class ScreenshotNotFound(Exception):
    """No stored original exists for the requested child/screenshot pair."""


class TokenVerifier:
    """Maps opaque bearer tokens to viewer ids."""

    def __init__(self, tokens: dict[str, str]):
        self._tokens = dict(tokens)

    def verify(self, token: str) -> str | None:
        """Return the viewer id for a token, or None if it is unknown."""
        return self._tokens.get(token)


class FamilyDirectory:
    """
    Answers "may this viewer see this child's screenshots?".

    Backed by a JSON object mapping child ids to lists of viewer ids.
    A missing registry file means nobody has access.
    """

    def __init__(self, members: dict[str, list[str]]):
        self._members = {
            child_id: set(viewers) for child_id, viewers in members.items()
        }

    @classmethod
    def from_file(cls, path: Path) -> "FamilyDirectory":
        path = Path(path)
        if not path.exists():
            log.warning("family_registry_missing", path=str(path))
            return cls({})
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(
                f"Family registry {path} must be a JSON object of "
                f"child_id -> [viewer_id, ...]."
            )
        return cls(data)

    def can_view(self, viewer_id: str, child_id: str) -> bool:
        return viewer_id in self._members.get(child_id, set())


class ScreenshotStorage:
    """Reads original screenshots from <root>/<child_id>/<screenshot_id>.<ext>."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def fetch(self, child_id: str, screenshot_id: str) -> bytes:
        """
        Return the original bytes of a stored screenshot.

        Raises:
            ScreenshotNotFound: if either id is malformed or no file exists
            OSError: if the file exists but cannot be read
        """
        if not (_ID_PATTERN.match(child_id) and _ID_PATTERN.match(screenshot_id)):
            raise ScreenshotNotFound(f"{child_id}/{screenshot_id}")

        folder = self.root / child_id
        for suffix in STORED_SUFFIXES:
            path = folder / f"{screenshot_id}{suffix}"
            if path.is_file():
                return path.read_bytes()
        raise ScreenshotNotFound(f"{child_id}/{screenshot_id}")


class AuditRecorder:
    """
    Emits one structured audit event per screenshot view.

    Every entry carries ``audit=True`` so log pipelines can filter on it.
    """

    def record_view(
        self,
        viewer_id      : str,
        child_id       : str,
        screenshot_id  : str,
        view_timestamp : int,
        watermarked    : bool,
        error          : str | None = None,
    ) -> None:
        log.info(
            "audit_event",
            event_type     = "screenshot_view",
            timestamp      = datetime.now(timezone.utc).isoformat(),
            viewer_id      = viewer_id,
            child_id       = child_id,
            screenshot_id  = screenshot_id,
            view_timestamp = view_timestamp,
            watermarked    = watermarked,
            error          = error,
            audit          = True,
        )
