"""Exceptions raised outside the action boundary.

Inside a battle every failure is reported as an ``ActionResult`` value;
these exceptions cover construction-time problems only.
"""


class EngineError(Exception):
    """Base for rules-engine errors."""


class ConstructionError(EngineError, ValueError):
    """A combat session could not be started."""


class DataUnavailableError(EngineError, LookupError):
    """A required lookup table or record is missing."""

    def __init__(self, what: str, key: str):
        super().__init__(f"{what} '{key}' is not available")
        self.what = what
        self.key = key
