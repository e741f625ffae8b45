"""
Top-level package for teal_dash: modular, reactive data-exploration apps
on top of Dash.

An app is a bundle of pandas datasets, a tree of modules, optional filter
slices and optional transformators:

    app = teal_dash.init(
        data={"iris": iris},
        modules=teal_dash.modules(
            scatterplot_module("Scatter", "iris", columns=list(iris.columns)),
        ),
        filter=teal_dash.filter_slices(teal_dash.FilterSlice("iris", "species")),
    )
    app.run()
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from dash import Dash

from .config.model import AppSettings
from .core import *  # noqa: F401,F403
from .core import __all__ as _core_all
from .core.composer import DEFAULT_TITLE, compose
from .core.filter_slices import FilterSlices
from .core.transformator import Transformator


def init(
    data: Any,
    modules: Any,
    filter: Optional[FilterSlices] = None,
    transformators: Optional[Sequence[Transformator]] = None,
    title: str = DEFAULT_TITLE,
    settings: Optional[AppSettings] = None,
) -> Dash:
    """
    Validate the app definition and build the Dash app serving it.

    Raises:
        DefinitionError: if the definition is invalid; no app is created
    """
    from .ui.dash_app import create_dash_app

    if settings is not None and title == DEFAULT_TITLE:
        title = settings.ui_title
    definition = compose(data, modules, filter=filter, transformators=transformators, title=title)
    return create_dash_app(definition, settings=settings)


__all__ = ["AppSettings", "init", *_core_all]
