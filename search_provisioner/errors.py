"""Errors raised while provisioning the search pipeline."""


class ProvisioningError(Exception):
    """Base exception for all provisioning errors."""
    pass


class ConfigurationError(ProvisioningError):
    """Raised when input configuration is invalid or contradictory."""
    pass


class CredentialError(ProvisioningError):
    """Raised when the admin key for the search service cannot be resolved."""
    pass


class TransportError(ProvisioningError):
    """Raised when the search service cannot be reached."""
    pass


class APIError(ProvisioningError):
    """Raised when the search service answers with a non-2xx status."""

    def __init__(self, status_code, body):
        super().__init__(f"HTTP {status_code}: {body}")
        self.status_code = status_code
        self.body = body
