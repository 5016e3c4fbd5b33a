# src/thawpond_flux/exceptions.py
"""
Exceptions raised for problems in the input tables.
"""


class ThawPondDataError(ValueError):
    """Base class for invalid survey or flux input data."""


class UnknownPondError(ThawPondDataError):
    """A pond identifier is not part of the configured pond set."""

    def __init__(self, ponds, known):
        self.ponds = sorted(set(str(p) for p in ponds))
        self.known = tuple(known)
        super().__init__(
            f"Unknown pond identifier(s) {self.ponds}; expected one of {list(self.known)}"
        )


class InvalidDateError(ThawPondDataError):
    """A date is missing or cannot be parsed as YYYY-MM-DD."""

    def __init__(self, column, rows, values):
        self.column = column
        self.rows = list(rows)
        self.values = list(values)
        sample = ", ".join(f"row {r}: {v!r}" for r, v in zip(self.rows[:5], self.values[:5]))
        more = f" (+{len(self.rows) - 5} more)" if len(self.rows) > 5 else ""
        super().__init__(
            f"Column '{column}' has {len(self.rows)} missing or unparseable date(s): {sample}{more}"
        )
