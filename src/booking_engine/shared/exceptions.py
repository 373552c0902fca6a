"""
Domain exception hierarchy shared by the availability engine and the lead schedulers.
"""

from typing import Any


class BookingEngineError(Exception):
    """Base exception for all engine errors."""


class TransientIntegrationError(BookingEngineError):
    """An external collaborator failed in a way that may succeed on a later tick."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        provider_response: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.provider_response = provider_response or {}


class AppointmentStoreError(TransientIntegrationError):
    """Reading booked appointments failed."""


class ConfigurationError(BookingEngineError):
    """Lead cannot progress until someone fixes its configuration."""


class AgentNotConfiguredError(ConfigurationError):
    """The lead's agent has no usable conversation-engine handle."""


class InvalidContactError(ConfigurationError):
    """The lead has no reachable phone number."""


class ChannelNotConnectedError(ConfigurationError):
    """The owning business has no active messaging credential."""


class ResourceNotAssignedError(ConfigurationError):
    """The lead has no bookable resource to query availability for."""


class DataIntegrityError(BookingEngineError):
    """A referenced lead, resource or account no longer exists."""


class InvalidTransitionError(BookingEngineError):
    """A lead status change not allowed by the lifecycle was requested."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Illegal lead transition {current!r} -> {target!r}")
        self.current = current
        self.target = target


class TemplateError(BookingEngineError):
    """A message template was bound with unknown or missing placeholders."""


class NotFoundError(DataIntegrityError):
    """Requested entity does not exist (mapped to HTTP 404)."""


__all__ = [
    "AgentNotConfiguredError",
    "AppointmentStoreError",
    "BookingEngineError",
    "ChannelNotConnectedError",
    "ConfigurationError",
    "DataIntegrityError",
    "InvalidContactError",
    "InvalidTransitionError",
    "NotFoundError",
    "ResourceNotAssignedError",
    "TemplateError",
    "TransientIntegrationError",
]
