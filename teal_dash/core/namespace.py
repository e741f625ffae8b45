from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Tuple

SEPARATOR = "-"

INPUT_TYPE = "teal-input"
OUTPUT_TYPE = "teal-output"
STAGE_STATUS_TYPE = "teal-stage-status"


def slugify(label: str) -> str:
    """
    Turn a human label into a namespace segment: lowercase, alphanumerics
    and underscores only.
    """
    slug = re.sub(r"[^0-9a-zA-Z]+", "_", str(label)).strip("_").lower()
    return slug or "_"


@dataclass(frozen=True)
class Namespace:
    """
    Position of a module, group or transformator in the app tree.

    The id is derived from the path once, at composition time, so sibling
    instances never collide even when they reuse the same transformators.
    """

    path: Tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return SEPARATOR.join(self.path)

    def child(self, label: str) -> "Namespace":
        return Namespace(self.path + (slugify(label),))

    def __str__(self) -> str:
        return self.id


# ---------------------------------------------------------------------------
# Pattern-matching component ids shared by the UI factories and the bridge
# ---------------------------------------------------------------------------
def input_id(ns_id: str, name: str) -> Dict[str, str]:
    """Component id for a UI input `name` owned by namespace `ns_id`."""
    return {"type": INPUT_TYPE, "ns": str(ns_id), "name": name}


def output_id(ns_id: str, name: str = "main") -> Dict[str, str]:
    """Component id of the placeholder rendering output `name` of `ns_id`."""
    return {"type": OUTPUT_TYPE, "ns": str(ns_id), "name": name}


def stage_status_id(ns_id: str) -> Dict[str, str]:
    return {"type": STAGE_STATUS_TYPE, "ns": str(ns_id)}
