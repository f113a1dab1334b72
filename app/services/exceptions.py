"""Errors raised while resolving an audience and dispatching a push."""


class PushDispatchError(Exception):
    """Base class for push dispatch failures."""


class InvalidDispatchRequest(PushDispatchError, ValueError):
    """The caller supplied an unusable request (e.g. no audience selector)."""


class StoreUnavailable(PushDispatchError, RuntimeError):
    """The recipient store could not be reached while resolving an audience."""


class CredentialAcquisitionFailed(PushDispatchError, RuntimeError):
    """No delivery credential could be obtained for the push gateway."""


class DeliveryAttemptFailed(PushDispatchError):
    """A single token could not be delivered to.

    Never fatal: the dispatch engine records it as a failure and moves on.
    """

    def __init__(
        self,
        token: str,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ):
        super().__init__(message)
        self.token = token
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
