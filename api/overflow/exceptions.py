"""Domain exceptions raised by the service layer.

Routers translate these to HTTP responses; services never import FastAPI.
"""


class DomainError(Exception):
    """Base class for all domain errors."""


class NotFoundError(DomainError):
    """The referenced question, answer, tag or user does not exist."""


class PermissionDeniedError(DomainError):
    """The acting user may not perform this action on the target."""


class InvalidSignatureError(DomainError):
    """A webhook payload failed signature verification."""


class InvalidSessionError(DomainError):
    """The identity provider session token could not be verified."""


class InvalidPayloadError(DomainError):
    """A correctly signed webhook body that is not a usable event."""
