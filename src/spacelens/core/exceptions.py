"""
Custom exceptions for the SpaceLens application.
"""


class SpaceLensError(Exception):
    """Base exception for all SpaceLens errors."""
    pass


class DataValidationError(SpaceLensError):
    """Raised when input data does not have the expected shape."""
    pass


class DataLoadError(SpaceLensError):
    """Raised when data loading fails."""
    pass


class AggregationError(SpaceLensError):
    """Raised when level-of-detail aggregation is called with invalid parameters."""
    pass


class ClusteringError(SpaceLensError):
    """Raised when clustering operations fail."""
    pass
