"""Exception hierarchy for falcon.

Every error that falcon raises on purpose derives from :class:`FalconError`,
so both front-ends can catch a single type and show ``str(err)`` to the user.
Messages are written to be displayed directly.

Error kinds
-----------
- **UnknownModel / InvalidModel**: bad or inapplicable model id
- **UnsupportedOperation**: edit requested on a model that cannot edit
- **MissingCredential**: no API key could be resolved
- **RemoteError**: the service answered with an error ``detail``
- **TransportError**: network-level failure or unusable response
- **ValidationError**: unsafe output path, missing or wrong-type source image
- **PersistenceError**: an atomic write failed
"""


class FalconError(Exception):
    """Base class for all user-facing falcon errors."""

    pass


class UnknownModel(FalconError):
    """Raised when a model id is not present in the registry."""

    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Unknown model: {model_id}")


class InvalidModel(FalconError):
    """Raised when a model exists but cannot be used for the requested operation."""

    pass


class UnsupportedOperation(FalconError):
    """Raised when a model lacks the capability an operation needs."""

    pass


class MissingCredential(FalconError):
    """Raised when no API key is configured anywhere."""

    pass


class RemoteError(FalconError):
    """The remote service returned a structured error.

    The message is the service's ``detail`` field, verbatim.
    """

    pass


class TransportError(FalconError):
    """Network failure, or a non-2xx response without an error detail."""

    pass


class ValidationError(FalconError):
    """User-friendly validation error.

    Raised before any network call when user input is unusable.
    The message is intended to be displayed directly to the user.
    """

    pass


class NoGenerationError(ValidationError):
    """Raised when an operation needs a previous generation and history is empty."""

    pass


class PersistenceError(FalconError):
    """Raised when a document could not be written to disk."""

    pass
