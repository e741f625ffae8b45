from pathlib import Path

import plotly.express as px

from teal_dash.config import load_app_settings, load_filter_config
from teal_dash.core.exceptions import TealError

BASE_DIR = Path(__file__).parent.parent
CONFIG_DIR = BASE_DIR / "config"

# Datasets served by app.py
DATASETS = {"iris": px.data.iris(), "tips": px.data.tips()}


def check_filter_config():
    try:
        settings = load_app_settings(CONFIG_DIR)
    except TealError as e:
        print(f"Error: invalid global.json\n{e}")
        return

    if settings.filters_file is None:
        print("No filters_file configured in global.json")
        return

    try:
        spec = load_filter_config(settings.filters_file)
    except TealError as e:
        print(f"Error: {e}")
        return

    print(f"{'FILTER':<30} | {'DATASET':<10} | {'VARIABLE':<20} | {'STATUS'}")
    print("-" * 80)

    for filter_slice in spec.slices:
        df = DATASETS.get(filter_slice.dataname)
        if df is None:
            status = "MISSING DATASET"
        elif filter_slice.is_expression:
            try:
                df.query(filter_slice.expr, engine="python")
                status = "OK"
            except Exception as e:
                status = f"BAD EXPRESSION ({e})"
        elif filter_slice.varname not in df.columns:
            status = "MISSING COLUMN"
        else:
            status = "OK"

        variable = filter_slice.varname or filter_slice.expr
        print(f"{filter_slice.id:<30} | {filter_slice.dataname:<10} | {variable:<20} | {status}")

    active = spec.mapping.get("global_filters", [])
    print(f"\nActive on start: {', '.join(active) or '(none)'}")


if __name__ == "__main__":
    check_filter_config()
