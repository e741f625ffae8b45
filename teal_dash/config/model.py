from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from teal_dash.core.composer import DEFAULT_TITLE
from teal_dash.services.session_service import DEFAULT_MAX_SESSIONS


@dataclass
class AppSettings:
    """
    App-wide settings read from global.json.

    - ui_title: navbar and browser title
    - subtitle: small text under the title
    - max_sessions: live sessions kept before the least recently used is evicted
    - filters_file: optional filters.json, relative to the config root
    """

    ui_title: str = DEFAULT_TITLE
    subtitle: Optional[str] = None
    max_sessions: int = DEFAULT_MAX_SESSIONS
    filters_file: Optional[Path] = None
