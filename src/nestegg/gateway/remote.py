# SPDX-License-Identifier: MIT

import logging
from decimal import Decimal
from typing import Any, Callable, Optional

import httpx

from nestegg.gateway.errors import (
    AuthenticationError,
    NetworkError,
    NotFoundError,
    ValidationError,
)
from nestegg.gateway.wire import RemoteRecord, decimal_from_wire, from_remote
from nestegg.model.entity_id import RemoteId
from nestegg.model.entity_kind import EntityKind

logger = logging.getLogger(__name__)

ENDPOINTS: dict[EntityKind, str] = {
    EntityKind.DEPOSIT: "/savings-entries",
    EntityKind.WITHDRAWAL: "/withdrawal-entries",
    EntityKind.GOAL: "/savings-goals",
}

TokenProvider = Callable[[], Optional[str]]


class RemoteGateway:
    """
    Typed client for the remote authority's REST endpoints.

    Every response is expected in the envelope
    ``{success, message?, data?, errors?}``. Failures are mapped to
    NetworkError (transient), NotFoundError (HTTP 404) and ValidationError
    (any other rejection).
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._token_provider = token_provider
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def __auth_headers(self, token: Optional[str] = None) -> dict[str, str]:
        if token is None:
            token = self._token_provider()
        if token is None:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def __request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method, endpoint, json=payload, headers=self.__auth_headers(token)
            )
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {endpoint} failed: {e}") from e

        try:
            envelope = response.json()
        except ValueError:
            envelope = None
        if not isinstance(envelope, dict):
            envelope = None

        message = (
            envelope.get("message")
            if envelope is not None and envelope.get("message")
            else response.reason_phrase
        )
        errors = envelope.get("errors") if envelope is not None else None

        if response.status_code in (401, 403):
            raise AuthenticationError(message, response.status_code, errors)
        if response.status_code == 404:
            raise NotFoundError(message, response.status_code, errors)
        if response.status_code >= 500:
            raise NetworkError(message, response.status_code, errors)
        if response.status_code >= 400:
            raise ValidationError(message, response.status_code, errors)
        if envelope is None:
            raise ValidationError(
                f"{method} {endpoint} returned a non-JSON body", response.status_code
            )
        if not envelope.get("success", False):
            raise ValidationError(message, response.status_code, errors)

        logger.debug("%s %s -> %s", method, endpoint, response.status_code)
        return envelope.get("data")

    async def create(
        self, kind: EntityKind, payload: dict[str, Any]
    ) -> RemoteRecord:
        data = await self.__request("POST", ENDPOINTS[kind], payload)
        return from_remote(kind, data)

    async def update(
        self, kind: EntityKind, remote_id: RemoteId, payload: dict[str, Any]
    ) -> Optional[RemoteRecord]:
        data = await self.__request("PUT", f"{ENDPOINTS[kind]}/{remote_id}", payload)
        if data is None:
            return None
        return from_remote(kind, data)

    async def delete(self, kind: EntityKind, remote_id: RemoteId) -> None:
        await self.__request("DELETE", f"{ENDPOINTS[kind]}/{remote_id}")

    async def list_all(self, kind: EntityKind) -> list[RemoteRecord]:
        data = await self.__request("GET", ENDPOINTS[kind])
        if data is None:
            return []
        if not isinstance(data, list):
            raise ValidationError(f"Expected a list of {kind.value} records")
        return [from_remote(kind, item) for item in data]

    async def set_primary_goal(self, remote_id: RemoteId) -> RemoteRecord:
        data = await self.__request(
            "PUT", f"{ENDPOINTS[EntityKind.GOAL]}/{remote_id}/set-primary", {}
        )
        return from_remote(EntityKind.GOAL, data)

    async def get_primary_goal(self) -> Optional[RemoteRecord]:
        data = await self.__request("GET", f"{ENDPOINTS[EntityKind.GOAL]}/primary")
        if data is None:
            return None
        return from_remote(EntityKind.GOAL, data)

    async def get_total_savings(self) -> Decimal:
        data = await self.__request(
            "GET", f"{ENDPOINTS[EntityKind.DEPOSIT]}/total-savings"
        )
        total = decimal_from_wire((data or {}).get("total_savings"))
        return total if total is not None else Decimal("0")

    async def get_user_profile(self, token: Optional[str] = None) -> dict[str, Any]:
        """Profile of the signed-in user, or of the owner of ``token`` if given."""
        data = await self.__request("GET", "/user/profile", token=token)
        if not isinstance(data, dict):
            raise ValidationError("Server returned an empty profile")
        # Some backend versions wrap the profile as {"user": {...}}
        profile = data.get("user", data)
        if not isinstance(profile, dict):
            raise ValidationError("Server returned a malformed profile")
        return profile

    async def update_net_income(self, net_income: Decimal) -> None:
        await self.__request(
            "PUT", "/user/net-income", {"net_income": str(net_income)}
        )

    async def ping(self) -> bool:
        """True if the remote authority answers at all."""
        try:
            await self._client.request("GET", "/", headers=self.__auth_headers())
        except httpx.TransportError as e:
            logger.debug("Remote unreachable: %s", e)
            return False
        return True
