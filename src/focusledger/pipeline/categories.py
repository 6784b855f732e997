"""Application-to-category lookup.

The core only needs ``resolve(app_id) -> category name``; a miss falls
back to ``"Other"``.  :class:`StaticCategoryResolver` ships a small
built-in map of well-known bundle identifiers and accepts user overrides.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Mapping, Protocol

from focusledger.core.defaults import DEFAULT_CATEGORY

logger = logging.getLogger(__name__)

DEFAULT_APP_CATEGORIES: Mapping[str, str] = {
    # Development
    "com.apple.dt.Xcode": "Development",
    "com.microsoft.VSCode": "Development",
    "com.jetbrains.intellij": "Development",
    "com.apple.Terminal": "Development",
    "com.googlecode.iterm2": "Development",
    # Productivity
    "com.apple.TextEdit": "Productivity",
    "com.microsoft.Word": "Productivity",
    "com.microsoft.Excel": "Productivity",
    "com.microsoft.Powerpoint": "Productivity",
    "com.apple.iWork.Pages": "Productivity",
    "com.apple.iWork.Numbers": "Productivity",
    "com.apple.iWork.Keynote": "Productivity",
    "com.culturedcode.ThingsMac": "Productivity",
    "com.todoist.mac.Todoist": "Productivity",
    "com.google.Chrome": "Productivity",
    # Communication
    "com.apple.MobileSMS": "Communication",
    "com.apple.Mail": "Communication",
    "com.microsoft.Outlook": "Communication",
    "com.hnc.Discord": "Communication",
    "com.tinyspeck.slackmacgap": "Communication",
    "com.microsoft.teams": "Communication",
    # Social Media
    "com.twitter.Twitter": "Social Media",
    "com.reddit.Reddit": "Social Media",
    # Entertainment
    "com.apple.Music": "Entertainment",
    "com.spotify.client": "Entertainment",
    "com.apple.TV": "Entertainment",
    # Design
    "com.adobe.Photoshop": "Design",
    "com.adobe.Illustrator": "Design",
    "com.figma.Desktop": "Design",
    "com.sketchapp.Sketch": "Design",
    # Knowledge Management
    "md.obsidian": "Knowledge Management",
    "com.apple.Notes": "Knowledge Management",
    "com.evernote.Evernote": "Knowledge Management",
    "com.logseq.Logseq": "Knowledge Management",
}


class CategoryResolver(Protocol):
    def resolve(self, app_id: str) -> str: ...


class StaticCategoryResolver:
    """Dictionary-backed resolver; user overrides win over built-ins."""

    def __init__(
        self,
        overrides: Mapping[str, str] | None = None,
        *,
        defaults: Mapping[str, str] = DEFAULT_APP_CATEGORIES,
        fallback: str = DEFAULT_CATEGORY,
    ) -> None:
        self._table: dict[str, str] = {**defaults, **(overrides or {})}
        self._fallback = fallback

    def resolve(self, app_id: str) -> str:
        return self._table.get(app_id, self._fallback)

    @classmethod
    def from_json(cls, path: Path) -> StaticCategoryResolver:
        """Load ``{app_id: category}`` overrides from *path*.

        Raises:
            ValueError: If the file is not a JSON object of strings.
        """
        data = json.loads(path.read_text("utf-8"))
        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise ValueError(f"Category overrides in {path} must map app ids to category names")
        logger.info("Loaded %d category override(s) from %s", len(data), path)
        return cls(data)
