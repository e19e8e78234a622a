"""Errors shared by the foundation layer and the services built on it."""


class FoundationError(Exception):
    """Root of the foundation error hierarchy."""


class UpstreamError(FoundationError):
    """A collaborator outside this process failed.

    Covers the container runtime, the log database and the API under test:
    unreachable, answering with an error, or giving up mid-request.
    """
