"""Exception types raised by the simulation core."""


class AptaspotError(Exception):
    """Base class for all aptaspot errors."""


class InvalidInputError(AptaspotError, ValueError):
    """Raised when a catalog, sequence, weight vector or parameter is unusable."""


class EmptyProbeSetError(AptaspotError):
    """Raised when probe selection yields no probes."""


class DegenerateScoreDistributionError(AptaspotError):
    """Raised when a spot's score vector has zero variance and no normal fit exists."""
