"""Error kinds raised by the tracking core."""


class TrackerError(Exception):
    """Base exception for all tracker errors."""


class NotFoundError(TrackerError):
    """Vehicle id has no catalog entry or no state."""


class BadRequestError(TrackerError):
    """Location report is missing required fields."""


class CatalogError(TrackerError):
    """Static route definition is malformed."""
