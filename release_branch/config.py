"""Runtime settings sourced from the environment.

The environment is read exactly once, at the CLI boundary, and the
resulting Settings object is passed to whatever needs it.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def utc_today() -> date:
    """Return today's date in UTC."""
    return datetime.now(timezone.utc).date()


class Settings(BaseModel):
    """Process-wide settings.

    Attributes:
        editor: Value of $EDITOR, if set and non-empty.
        today: The release date. Defaults to today in UTC; $TODAY (an ISO
               date such as "2022-06-24") overrides it.
    """

    editor: Optional[str] = None
    today: date = Field(default_factory=utc_today)

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from an environment mapping (os.environ by default).

        An unparseable $TODAY is ignored rather than rejected.
        """
        env = os.environ if environ is None else environ
        editor = env.get("EDITOR") or None
        today = utc_today()
        raw_today = env.get("TODAY")
        if raw_today:
            try:
                today = date.fromisoformat(raw_today[:10])
            except ValueError:
                pass
        return cls(editor=editor, today=today)
