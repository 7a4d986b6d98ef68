"""Provider error taxonomy. Every error carries the status message the caller persists."""


class ProviderError(Exception):
    """Base error raised by providers; status_message is the coarse condition for the resource status."""

    retryable = True

    def __init__(self, message: str, status_message: str | None = None) -> None:
        super().__init__(message)
        self.status_message = status_message if status_message is not None else message


class ConfigResolutionError(ProviderError):
    """Strategy missing or a parameter blob failed validation. Recurs until the stored config is fixed."""

    retryable = False


class CredentialError(ProviderError):
    """Provider credentials could not be reconciled."""


class RemoteUnavailableError(ProviderError):
    """Discovery did not succeed within the retry ceiling."""


class RemoteMutationError(ProviderError):
    """A remote create/modify/delete/tag/describe call failed."""

    def __init__(self, operation: str, message: str, status_message: str | None = None) -> None:
        super().__init__(message, status_message)
        self.operation = operation


class LocalPersistenceError(ProviderError):
    """The desired resource could not be persisted (finalizer add/remove)."""


class ReconcileCancelledError(ProviderError):
    """The reconcile context was cancelled or its deadline passed mid-tick."""


class MetricsError(ProviderError):
    """A gauge could not be registered or set."""


class ObjectClientError(Exception):
    """Raised by object clients (resource and rule stores) when a request fails."""


class ObjectNotFoundError(ObjectClientError):
    """Raised by object clients when the requested object does not exist."""


class ObjectAlreadyExistsError(ObjectClientError):
    """Raised by object clients when creating an object that already exists."""
