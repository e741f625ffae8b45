from __future__ import annotations

import logging
import uuid
from typing import Optional

import dash_bootstrap_components as dbc
from dash import Dash

from teal_dash.config.model import AppSettings
from teal_dash.core.composer import AppDefinition
from teal_dash.services.session_service import SessionManager
from teal_dash.ui.callbacks.callbacks_code import register_code_callbacks
from teal_dash.ui.callbacks.callbacks_filters import register_filter_callbacks
from teal_dash.ui.callbacks.callbacks_session import register_session_callbacks
from teal_dash.ui.context import AppContext
from teal_dash.ui.layout.build_layout import build_layout

logger = logging.getLogger(__name__)


def create_dash_app(
    definition: AppDefinition,
    settings: Optional[AppSettings] = None,
    sessions: Optional[SessionManager] = None,
) -> Dash:
    """
    Build the Dash app serving `definition`.

    The layout is a function, so every page load starts a new session with
    its own id, reactive graph and filter state.
    """
    settings = settings or AppSettings(ui_title=definition.title)
    sessions = sessions or SessionManager(definition, max_sessions=settings.max_sessions)
    ctx = AppContext(definition=definition, sessions=sessions, settings=settings)

    app = Dash(
        __name__,
        external_stylesheets=[dbc.themes.FLATLY],
        suppress_callback_exceptions=True,
    )
    app.title = definition.title

    def serve_layout():
        session = sessions.get_or_create(uuid.uuid4().hex)
        return build_layout(session, subtitle=settings.subtitle)

    app.layout = serve_layout

    register_session_callbacks(app, ctx)
    register_filter_callbacks(app, ctx)
    register_code_callbacks(app, ctx)

    logger.info(
        "dash_app_created",
        extra={"title": definition.title, "n_modules": len(definition.leaves), "max_sessions": sessions.max_sessions},
    )
    return app
