class PortalError(Exception):
    """Base class for errors surfaced to portal users."""


class ValidationFailed(PortalError, ValueError):
    pass


class PhotoRejected(PortalError, ValueError):
    pass


class DraftNotFound(PortalError, LookupError):
    pass


class ParticipantNotFound(PortalError, LookupError):
    pass


class IllegalTransition(PortalError, ValueError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Illegal status transition {current} -> {target}")
        self.current = current
        self.target = target


class InvalidCredentials(PortalError):
    pass


class ConfigurationError(RuntimeError):
    pass


class RemoteError(RuntimeError):
    """A remote store call failed."""

    permanent = False

    def __init__(self, message: str, status: int = 0) -> None:
        super().__init__(message)
        self.status = status


class RemoteUnavailable(RemoteError):
    """Network failure, timeout or 5xx; worth retrying."""


class RemoteRejected(RemoteError):
    """The store refused the write (constraint violation, bad request)."""

    permanent = True


class SubscriptionUnavailable(RemoteError):
    pass
