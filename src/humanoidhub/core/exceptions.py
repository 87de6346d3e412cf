"""Custom exceptions for Humanoid Hub."""


class HubError(Exception):
    """Base exception for Humanoid Hub."""
    pass


class BackendConfigurationError(HubError):
    """Exception raised when a backend is selected but not configured."""
    pass


class SessionStateError(HubError):
    """Exception raised when an upload session is mutated in the wrong state."""
    pass
