from __future__ import annotations

from typing import Dict

__all__ = [
    "IDs",
    "filter_active_id",
    "filter_selected_id",
    "filter_range_id",
    "filter_body_id",
    "add_filter_ids",
    "show_code_id",
    "code_modal_id",
    "code_body_id",
]


class IDs:
    class Store:
        SESSION_ID = "session-id"

    class Control:
        MODULE_TABS = "module-tabs"
        NAVBAR_SUBTITLE = "navbar-subtitle"

    class Pattern:
        # pattern-matching "type" strings
        FILTER_ACTIVE = "teal-filter-active"
        FILTER_SELECTED = "teal-filter-selected"
        FILTER_RANGE = "teal-filter-range"
        FILTER_BODY = "teal-filter-body"
        ADD_FILTER_DATANAME = "teal-add-filter-dataname"
        ADD_FILTER_VARNAME = "teal-add-filter-varname"
        ADD_FILTER_BTN = "teal-add-filter-btn"
        ADD_FILTER_STATUS = "teal-add-filter-status"

        SHOW_CODE_BTN = "teal-show-code"
        CODE_MODAL = "teal-code-modal"
        CODE_BODY = "teal-code-body"


def filter_active_id(panel: str) -> Dict[str, str]:
    return {"type": IDs.Pattern.FILTER_ACTIVE, "panel": panel}


def filter_selected_id(panel: str, slice_id: str) -> Dict[str, str]:
    return {"type": IDs.Pattern.FILTER_SELECTED, "panel": panel, "slice": slice_id}


def filter_range_id(panel: str, slice_id: str) -> Dict[str, str]:
    return {"type": IDs.Pattern.FILTER_RANGE, "panel": panel, "slice": slice_id}


def filter_body_id(panel: str) -> Dict[str, str]:
    return {"type": IDs.Pattern.FILTER_BODY, "panel": panel}


def add_filter_ids(panel: str) -> Dict[str, Dict[str, str]]:
    return {
        "dataname": {"type": IDs.Pattern.ADD_FILTER_DATANAME, "panel": panel},
        "varname": {"type": IDs.Pattern.ADD_FILTER_VARNAME, "panel": panel},
        "button": {"type": IDs.Pattern.ADD_FILTER_BTN, "panel": panel},
        "status": {"type": IDs.Pattern.ADD_FILTER_STATUS, "panel": panel},
    }


def show_code_id(ns_id: str) -> Dict[str, str]:
    return {"type": IDs.Pattern.SHOW_CODE_BTN, "ns": ns_id}


def code_modal_id(ns_id: str) -> Dict[str, str]:
    return {"type": IDs.Pattern.CODE_MODAL, "ns": ns_id}


def code_body_id(ns_id: str) -> Dict[str, str]:
    return {"type": IDs.Pattern.CODE_BODY, "ns": ns_id}
