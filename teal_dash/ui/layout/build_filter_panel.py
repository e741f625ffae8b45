from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

import dash_bootstrap_components as dbc
import pandas as pd
from dash import dcc, html

from teal_dash.core.filter_registry import choice_counts, slice_choices
from teal_dash.core.filter_slices import FilterSlice
from teal_dash.core.session import Session
from teal_dash.ui.ids import add_filter_ids, filter_active_id, filter_body_id, filter_range_id, filter_selected_id


def range_bounds(filter_slice: FilterSlice, df: Optional[pd.DataFrame]) -> Optional[Tuple[float, float]]:
    """
    (min, max) of a numeric column for a range slider, or None when the
    slice should use a value dropdown instead.
    """
    if filter_slice.is_expression or filter_slice.choices is not None:
        return None
    if df is None or filter_slice.varname not in df.columns:
        return None
    series = df[filter_slice.varname]
    if not pd.api.types.is_numeric_dtype(series) or pd.api.types.is_bool_dtype(series):
        return None
    series = series.dropna()
    if series.empty or series.min() == series.max():
        return None
    return float(series.min()), float(series.max())


def _dropdown_options(filter_slice: FilterSlice, df: Optional[pd.DataFrame], count_type: Optional[str]) -> List[Dict[str, Any]]:
    choices = slice_choices(filter_slice, df)
    counts = choice_counts(filter_slice, df) if count_type == "all" else {}
    options = []
    for choice in choices:
        label = str(choice)
        if str(choice) in counts:
            label = f"{choice} ({counts[str(choice)]})"
        options.append({"label": label, "value": str(choice)})
    return options


def _slice_control(session: Session, key: str, filter_slice: FilterSlice, selection: Optional[List[Any]]) -> html.Div:
    df = session.data.value.get(filter_slice.dataname)
    bounds = range_bounds(filter_slice, df)

    if bounds is not None:
        low, high = bounds
        value = [float(v) for v in selection] if selection and len(selection) == 2 else [low, high]
        control = dcc.RangeSlider(
            id=filter_range_id(key, filter_slice.id),
            min=low,
            max=high,
            value=value,
            disabled=filter_slice.fixed,
            tooltip={"placement": "bottom"},
        )
    else:
        control = dcc.Dropdown(
            id=filter_selected_id(key, filter_slice.id),
            options=_dropdown_options(filter_slice, df, session.filters.spec.count_type),
            value=[str(v) for v in selection] if selection else [],
            multi=True,
            disabled=filter_slice.fixed,
            placeholder=f"All {filter_slice.varname}",
        )

    return html.Div(
        [html.Label(filter_slice.label, className="form-label"), control],
        className="mb-3",
    )


def build_filter_controls(session: Session, key: str, datanames: Optional[Sequence[str]]) -> List[Any]:
    """
    Children of a filter panel body: the active-filters checklist followed by
    one selection control per value slice.
    """
    registry = session.filters
    panel = registry.panel(key)

    slices = registry.slices_for(datanames)
    shown = {s.id for s in slices}
    slices += [s for s in registry.spec.slices if s.id in panel.active and s.id not in shown]

    children: List[Any] = [
        html.Label("Active filters", className="form-label fw-semibold"),
        dbc.Checklist(
            id=filter_active_id(key),
            options=[{"label": f" {s.label}", "value": s.id} for s in slices],
            value=list(panel.active),
            switch=True,
            className="mb-3",
        ),
    ]

    for filter_slice in slices:
        if filter_slice.is_expression:
            continue
        selection = panel.selected.get(filter_slice.id, filter_slice.selected)
        children.append(_slice_control(session, key, filter_slice, selection))

    if not slices:
        children.append(html.Div("No filters defined.", className="text-muted small"))
    return children


def _add_filter_controls(key: str, datanames: Sequence[str]) -> html.Div:
    ids = add_filter_ids(key)
    return html.Div(
        [
            html.Hr(),
            html.Label("Add filter", className="form-label fw-semibold"),
            dcc.Dropdown(
                id=ids["dataname"],
                options=[{"label": n, "value": n} for n in datanames],
                placeholder="Dataset",
                className="mb-2",
            ),
            dcc.Dropdown(
                id=ids["varname"],
                options=[],
                placeholder="Variable",
                className="mb-2",
            ),
            dbc.Button("Add", id=ids["button"], n_clicks=0, size="sm", color="primary"),
            html.Div(id=ids["status"], className="small mt-2"),
        ],
        className="teal-add-filter",
    )


def build_filter_panel(session: Session, key: str, datanames: Optional[Sequence[str]] = None) -> dbc.Card:
    """
    :param key: panel key (module namespace id or "global_filters")
    :param datanames: datasets the panel serves; None means every dataset
    """
    available = session.data.value.names
    if datanames is not None:
        available = [n for n in datanames if n in available]

    body: List[Any] = [html.Div(build_filter_controls(session, key, datanames), id=filter_body_id(key))]
    if session.filters.spec.allow_add:
        body.append(_add_filter_controls(key, available))

    return dbc.Card(
        [
            dbc.CardHeader("Filters", className="fw-semibold"),
            dbc.CardBody(body),
        ],
        className="teal-filter-panel",
    )
