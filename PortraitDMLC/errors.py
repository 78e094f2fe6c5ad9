"""
Exception types raised by the PortraitDMLC sequencing pipeline.
"""


class SequencingError(ValueError):
    """Base class for all sequencing and field assembly failures."""


class ConfigurationError(SequencingError):
    """Invalid input or settings, detected before any search starts."""


class LimitExceededError(SequencingError):
    """
    A leaf-pair trajectory is longer than the device control-point limit.

    Attributes
    ----------
    pair_index : int
        Index of the offending leaf pair (0 = outermost)
    length : int
        Number of control points the pair requires
    limit : int
        Device control-point limit (fields_limit)
    """

    def __init__(self, pair_index: int, length: int, limit: int, message: str = None):
        self.pair_index = pair_index
        self.length = length
        self.limit = limit
        if message is None:
            message = (
                f"Leaf pair {pair_index}: trajectory has {length} control points, "
                f"exceeds limit of {limit}"
            )
        super().__init__(message)
