"""Error taxonomy shared by the engine, the store, and the HTTP surface."""


class RecommendationError(Exception):
    """Base error for the recommendation engine."""


class NotFound(RecommendationError):
    """Unknown learner, recommendation record, or offering."""


class InvalidArgument(RecommendationError):
    """Unsupported interaction kind, offering kind, or a malformed limit."""


class UpstreamUnavailable(RecommendationError):
    """A collaborator (candidate source, learner directory) timed out or failed."""


class Internal(RecommendationError):
    """The recommendation store could not complete a write."""
