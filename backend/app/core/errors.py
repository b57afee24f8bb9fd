"""Domain exceptions raised by the CRUD and service layers.

Each class carries the HTTP status the API layer answers with; routes never need to
translate them by hand because ``main.py`` registers a single handler for
``InvoicingError``.
"""

from fastapi import status


class InvoicingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(InvoicingError):
    """Entity is missing or owned by someone else; callers cannot tell which."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str):
        super().__init__(f"{entity} not found")
        self.entity = entity


class InvalidTransitionError(InvoicingError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot change invoice status from {current} to {target}")
        self.current = current
        self.target = target


class ValidationError(InvoicingError):
    status_code = status.HTTP_400_BAD_REQUEST


class ExternalCapabilityFailure(InvoicingError):
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, capability: str, message: str):
        super().__init__(f"{capability} failed: {message}")
        self.capability = capability


class ConcurrencyConflict(InvoicingError):
    status_code = status.HTTP_409_CONFLICT
