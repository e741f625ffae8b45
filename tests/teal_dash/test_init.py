from __future__ import annotations

import logging

import dash
import pandas as pd
import pytest
from pythonjsonlogger import jsonlogger

import teal_dash
from teal_dash.config import AppSettings
from teal_dash.logging_config import configure_logging


def test_init_builds_a_dash_app():
    app = teal_dash.init(
        data={"iris": pd.DataFrame({"Species": ["setosa"]})},
        modules=teal_dash.modules(teal_dash.Module(label="M")),
        filter=teal_dash.filter_slices(teal_dash.FilterSlice("iris", "Species")),
        title="Init test",
    )
    assert isinstance(app, dash.Dash)
    assert app.title == "Init test"


def test_init_takes_title_from_settings():
    app = teal_dash.init(
        data={"iris": pd.DataFrame({"Species": ["setosa"]})},
        modules=teal_dash.Module(label="M"),
        settings=AppSettings(ui_title="From settings", max_sessions=3),
    )
    assert app.title == "From settings"


def test_init_rejects_invalid_definitions():
    with pytest.raises(teal_dash.core.exceptions.DefinitionError):
        teal_dash.init(
            data={"iris": pd.DataFrame({"Species": ["setosa"]})},
            modules=teal_dash.Module(label="M", datanames=["penguins"]),
        )


def test_configure_logging_json_and_plain():
    configure_logging(force_format="json")
    assert isinstance(logging.getLogger().handlers[0].formatter, jsonlogger.JsonFormatter)

    configure_logging(force_format="plain")
    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert not isinstance(handlers[0].formatter, jsonlogger.JsonFormatter)


def test_configure_logging_reads_level_names_and_rejects_unknown_formats():
    configure_logging(level="debug", force_format="plain")
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("werkzeug").level == logging.WARNING

    with pytest.raises(ValueError):
        configure_logging(force_format="xml")
    with pytest.raises(ValueError):
        configure_logging(level="chatty", force_format="plain")
    configure_logging(level=logging.WARNING, force_format="plain")
