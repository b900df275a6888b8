"""Service error hierarchy for provider polling and reconciliation.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- TransientError: Retryable errors (network, rate limits, timeouts)
- PermanentError: Non-retryable errors (authentication, configuration, lookup)
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


class TransientError(ServiceError):
    """Transient error that may succeed on retry.

    Examples:
    - Network timeouts
    - Rate limit exceeded (429)
    - Service unavailable (5xx)
    """

    pass


class PermanentError(ServiceError):
    """Permanent error that will not succeed on retry.

    Examples:
    - Authentication failures (401, 403)
    - Missing configuration
    - Unknown job ids
    """

    pass


# Provider-specific errors
class ProviderCheckError(TransientError):
    """Provider status could not be determined on this pass.

    Never treated as a provider-reported failure: the job is left unchanged
    and no credits are refunded.
    """

    pass


class ProviderConfigurationError(PermanentError):
    """Provider family has no credentials configured."""

    pass


# Reconciliation-specific errors
class JobNotFoundError(PermanentError):
    """Requested job does not exist or belongs to another owner."""

    pass


class AuthenticationError(PermanentError):
    """Caller identity could not be established from the bearer token."""

    pass
