"""Exception hierarchy for the inquiry router.

These exceptions never escape the public entry points: the classifier,
router and DTC helpers convert them into degraded results.
"""


class InquiryRouterError(Exception):
    """Base class for all inquiry router errors."""


class ClassificationError(InquiryRouterError):
    """Raised when scoring or keyword matching fails."""


class RoutingError(InquiryRouterError):
    """Raised when an evaluation cannot be mapped to a destination."""


class DtcLookupError(InquiryRouterError):
    """Raised when a DTC lookup collaborator cannot answer."""
