# SPDX-License-Identifier: MIT

from typing import Any, Optional


class GatewayError(Exception):
    """Base class for failures talking to the remote authority."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors


class NetworkError(GatewayError):
    """
    Transient failure. Nothing can be assumed about the server side effect:
    a create that raised this may still have been persisted remotely.
    """

    pass


class ValidationError(GatewayError):
    """The remote authority rejected the request payload."""

    pass


class NotFoundError(GatewayError):
    """The addressed remote record does not exist (anymore)."""

    pass


class AuthenticationError(GatewayError):
    """The bearer token was missing, expired or refused (HTTP 401/403)."""

    pass
