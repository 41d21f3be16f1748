"""
Domain exceptions shared by services and routes.
"""


class FeedError(RuntimeError):
    """An upstream hazard feed could not be fetched or parsed."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class AIServiceError(RuntimeError):
    """The generative model is not configured or the call failed."""


class AuthenticationError(RuntimeError):
    """An identity token could not be verified."""
