class TrackerError(Exception):
    """Base class for failures raised by the tracking core."""


class InvalidRange(TrackerError):
    """Raised when a date range is inverted or a date cannot be canonicalized."""


class UnknownTrackable(TrackerError):
    """Raised when a habit is not owned by the user or a prayer slot does not exist."""


class InvalidThreshold(TrackerError):
    """Raised when a milestone threshold is outside the allowed set."""


class StorageUnavailable(TrackerError):
    """Raised when the completion store cannot be read or written."""
