"""
Exception types raised by the landscape codec and world grid.

Parse failures are scoped to a single sector entry; lookup failures are
recoverable by the caller ("no tile here").
"""


class LandscapeError(Exception):
    """Base class for every error raised by landscape_builder."""


class TruncatedInput(LandscapeError, ValueError):
    """A record ran out of bytes before all of its fields were decoded."""


class MalformedArchiveEntry(LandscapeError, ValueError):
    """A run-length token produced more cells than the field holds."""


class AmbiguousPackedValue(LandscapeError, ValueError):
    """A packed diagonal/entity value falls outside every known band."""


class OutOfBounds(LandscapeError, IndexError):
    """Grid or world coordinates outside the addressable region."""


class SectorNotPopulated(LandscapeError, LookupError):
    """Coordinates are valid but no sector is stored there."""
