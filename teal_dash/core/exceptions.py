from __future__ import annotations

from dataclasses import dataclass
from typing import List


class TealError(Exception):
    """Base exception for all teal_dash errors"""
    pass


# ---------------------------------------------------------------------------
# Definition-time errors (raised before any session starts)
# ---------------------------------------------------------------------------
class DefinitionError(TealError):
    """The app definition (modules, filters, transformators) is invalid"""
    pass


class DuplicateLabelError(DefinitionError):
    """Two siblings (modules, groups or transformators) share a label"""
    pass


class FilterMappingError(DefinitionError):
    """Filter mapping references an unknown filter id or module label"""
    pass


class DatanamesError(DefinitionError):
    """Malformed `datanames` declaration"""
    pass


class TransformatorError(DefinitionError):
    """Malformed transformator or transformator list"""
    pass


class ConfigError(DefinitionError):
    """Invalid or inconsistent global.json / filters.json"""
    pass


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str


class ValidationError(DefinitionError):
    """
    Aggregates several definition problems so they are reported together.
    """

    def __init__(self, issues: List[ValidationIssue]):
        self.issues = issues
        super().__init__("\n".join(f"{i.code}: {i.message}" for i in issues))


# ---------------------------------------------------------------------------
# Data and pipeline errors
# ---------------------------------------------------------------------------
class BundleError(TealError):
    """A data bundle operation received or produced invalid data"""
    pass


class ContractError(TealError):
    """A transformator broke the pipeline contract (e.g. dropped a dataset)"""
    pass


class NotReady(Exception):
    """
    Raised inside reactive computations when required inputs are missing.

    Not an error: the node simply waits until its inputs are ready.
    """
    pass


# ---------------------------------------------------------------------------
# Runtime errors
# ---------------------------------------------------------------------------
class ReentrancyError(TealError):
    """A reactive flush was triggered while another flush was running"""
    pass


class SessionBusyError(TealError):
    """A session received a second trigger before the first one completed"""
    pass
