class CollaboratorError(Exception):
    """Base error raised at the boundary of an external collaborator."""

    def __init__(self, collaborator: str, message: str = ""):
        self.collaborator = collaborator
        super().__init__(f"{collaborator}: {message}" if message else collaborator)


class CollaboratorUnavailable(CollaboratorError):
    """Network, auth or configuration failure. Not worth retrying."""


class MalformedResponse(CollaboratorError):
    """The collaborator answered, but not in the agreed schema."""


class RateLimited(CollaboratorError):
    """Transient throttling. Retried with backoff before escalating."""


class StaleResult(Exception):
    """A result was computed against a profile version that has since advanced."""

    def __init__(self, expected_version: int, current_version: int, reason: str | None = None):
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(reason or f"profile moved from v{expected_version} to v{current_version}")
