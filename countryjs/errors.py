"""Exception types raised by the pipeline.

Every failure is fatal for a run; the types only exist so callers (and tests)
can tell which stage gave up.
"""


class CountryJsError(Exception):
    """Base class for all pipeline failures."""


class ArchiveError(CountryJsError):
    """Download or extraction of the source archive failed."""


class DataError(CountryJsError):
    """A locale CSV file is missing, malformed or has short rows."""


class OutputError(CountryJsError):
    """An output directory or module file could not be written."""
