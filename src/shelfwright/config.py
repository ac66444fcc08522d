# ABOUTME: Runtime settings for shelfwright: default owner, cover budget, library location.
# ABOUTME: Values come from dataclass defaults, optionally overridden by environment variables.

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_LIBRARY_PATH = Path.home() / "Calibre Library" / "metadata.db"

# Calibre-Web creates its administrator as the first user row.
DEFAULT_OWNER_ID = 1

DEFAULT_COVER_BUDGET = 200 * 1024


@dataclass(frozen=True)
class Settings:
    """Knobs shared by the import, collection, and placement layers."""

    default_owner_id: int = DEFAULT_OWNER_ID
    default_owner_name: str = "admin"
    cover_budget_bytes: int = DEFAULT_COVER_BUDGET
    cover_filename: str = "cover.jpg"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings, honouring SHELFWRIGHT_* environment overrides."""
        kwargs: dict[str, int] = {}
        owner = os.environ.get("SHELFWRIGHT_DEFAULT_OWNER_ID")
        if owner:
            kwargs["default_owner_id"] = int(owner)
        budget = os.environ.get("SHELFWRIGHT_COVER_BUDGET")
        if budget:
            kwargs["cover_budget_bytes"] = int(budget)
        return cls(**kwargs)
