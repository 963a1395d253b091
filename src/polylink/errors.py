"""Error types raised by the polylink SDK.

Every failure the SDK surfaces derives from RouterError so callers can catch
the whole family, while each kind stays distinguishable:

- ConfigurationError: missing or inconsistent input, raised before any network call
- CredentialDerivationError: both derive and create phases failed
- PreconditionError: deployment/allowance state absent and remediation disabled
- TransportError: non-2xx response or network exception
- ApplicationError: well-formed error envelope from a collaborator
- OrderRejectedError: success envelope carrying an upstream HTTP error status
"""

from typing import Any, Optional


class RouterError(Exception):
    """Base error for the polylink SDK."""

    def __init__(self, message: str, *, step: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.step = step
        """LinkStep during which the error happened (set by the wallet linker)."""


class ConfigurationError(RouterError, ValueError):
    """Required configuration or input is missing."""


class CredentialDerivationError(RouterError):
    """Exchange API credentials could neither be derived nor created."""

    def __init__(
        self,
        message: str,
        *,
        derive_error: Optional[BaseException] = None,
        create_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.derive_error = derive_error
        self.create_error = create_error


class PreconditionError(RouterError):
    """Required on-chain state is absent and auto-remediation is disabled."""


class TransportError(RouterError):
    """HTTP request failed at the transport level."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ApplicationError(RouterError):
    """A collaborator answered with an application-level error."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[Any] = None,
        data: Optional[Any] = None,
    ):
        super().__init__(message)
        self.code = code
        self.data = data


class OrderRejectedError(ApplicationError):
    """Order was rejected upstream even though the envelope looked successful."""


class EmptyResultError(ApplicationError):
    """Server returned a 2xx envelope with neither a result nor an error."""


class TransactionFailedError(RouterError):
    """An on-chain transaction reverted or was not confirmed in time."""

    def __init__(self, message: str, *, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class LinkError(RouterError):
    """A collaborator failed during a wallet link step."""


__all__ = [
    "RouterError",
    "ConfigurationError",
    "CredentialDerivationError",
    "PreconditionError",
    "TransportError",
    "ApplicationError",
    "OrderRejectedError",
    "EmptyResultError",
    "TransactionFailedError",
    "LinkError",
]
