from __future__ import annotations

from dataclasses import dataclass, field

from teal_dash.config.model import AppSettings
from teal_dash.core.composer import AppDefinition
from teal_dash.core.session import Session
from teal_dash.services.session_service import SessionManager


@dataclass
class AppContext:
    """Shared, read-only wiring handed to every callback registrar."""

    definition: AppDefinition
    sessions: SessionManager
    settings: AppSettings = field(default_factory=AppSettings)

    def session(self, session_id: str) -> Session:
        return self.sessions.get_or_create(session_id)
