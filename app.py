import os
import socket
from pathlib import Path

import plotly.express as px

import teal_dash
from teal_dash.config import load_app_settings, load_filter_config
from teal_dash.logging_config import configure_logging
from teal_dash.views import (
    add_rownames,
    data_table_module,
    group_summary,
    head_transformator,
    scatterplot_module,
    summary_module,
)

configure_logging()

CONFIG_ROOT = Path(__file__).parent / "config"

IRIS_COLUMNS = ["sepal_length", "sepal_width", "petal_length", "petal_width"]
TIPS_COLUMNS = ["total_bill", "tip", "size"]


def build_app():
    settings = load_app_settings(CONFIG_ROOT)
    filters = load_filter_config(settings.filters_file) if settings.filters_file else None

    data = {"iris": px.data.iris(), "tips": px.data.tips()}

    modules = teal_dash.modules(
        teal_dash.modules(
            data_table_module(
                "Table",
                datanames=["iris"],
                transformators=[group_summary("iris", by_choices=["species"])],
            ),
            scatterplot_module("Scatter", "iris", columns=IRIS_COLUMNS, color="species"),
            label="Iris",
        ),
        teal_dash.modules(
            data_table_module(
                "Table",
                datanames=["tips"],
                transformators=[head_transformator("tips", default_n=100)],
            ),
            scatterplot_module("Scatter", "tips", columns=TIPS_COLUMNS, x="total_bill", y="tip"),
            label="Tips",
        ),
        summary_module("Summary"),
    )

    return teal_dash.init(
        data=data,
        modules=modules,
        filter=filters,
        transformators=[add_rownames("iris")],
        settings=settings,
    )


app = build_app()
server = app.server


def find_free_port(start_port: int) -> int:
    """Finds an available port starting from start_port."""
    port = start_port
    while port < start_port + 100:  # Try up to 100 ports
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            if s.connect_ex(('localhost', port)) != 0:
                return port
        port += 1
    return start_port


if __name__ == "__main__":
    preferred_port = int(os.getenv("PORT", "8050"))
    final_port = find_free_port(preferred_port)

    debug = os.getenv("DEBUG", "0") == "1"

    if final_port != preferred_port:
        print(f"Warning: Port {preferred_port} was taken. Starting on {final_port}")

    app.run(host="0.0.0.0", port=final_port, debug=debug)
