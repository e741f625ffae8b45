from __future__ import annotations

from typing import Any, Optional

import dash_bootstrap_components as dbc
from dash import html

from teal_dash.core.composer import TreeNode
from teal_dash.core.session import Session
from teal_dash.ui.layout.build_code_modal import build_code_modal
from teal_dash.ui.layout.build_filter_panel import build_filter_panel


def build_module_content(session: Session, node: TreeNode) -> Any:
    definition = session.definition
    module = node.item
    content = html.Div(
        [
            module.build_ui(node.ns, definition.transformators),
            build_code_modal(node.ns_id),
        ],
        className="teal-module-content",
    )

    if not (session.filters.module_specific and module.has_filter_panel):
        return content

    panel = build_filter_panel(
        session,
        session.filters.panel_key(node.ns_id),
        module.visible_datanames(definition.data),
    )
    return dbc.Row(
        [
            dbc.Col(panel, md=3, className="mt-3"),
            dbc.Col(content, md=9, className="mt-3"),
        ],
        className="gx-3",
    )


def build_module_tabs(session: Session, node: TreeNode, tabs_id: Optional[str] = None) -> Any:
    """
    Nested tabs mirroring the module tree. Groups become tab sets, modules
    become tab content.
    """
    if not node.is_group:
        return build_module_content(session, node)

    tabs = [
        dbc.Tab(
            html.Div(build_module_tabs(session, child), className="pt-2"),
            label=child.label,
            tab_id=child.ns_id,
        )
        for child in node.children
    ]
    kwargs = {"id": tabs_id} if tabs_id else {}
    return dbc.Tabs(tabs, active_tab=node.children[0].ns_id, className="teal-tabs", **kwargs)
