"""Shared pytest fixtures for nestegg tests.

Remote behavior is exercised through the real RemoteGateway talking to an
in-memory fake of the savings API over httpx.MockTransport.
"""

import asyncio
import json
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Optional

import httpx
import pendulum
import pytest

from nestegg.app import LedgerApp, create_app
from nestegg.configuration import get_default_configuration
from nestegg.model.user import User

BASE_URL = "http://savings.test/api"
TOKEN = "token-abc"

RESOURCES = ("savings-entries", "withdrawal-entries", "savings-goals")

_ITEM_PATH = re.compile(r"^/(?P<resource>[a-z-]+)/(?P<id>\d+)$")
_COLLECTION_PATH = re.compile(r"^/(?P<resource>[a-z-]+)$")


@dataclass
class Failure:
    method: str
    path: str
    status: Optional[int] = None  # None means a transport failure
    after_commit: bool = False  # Apply the request, then lose the response
    times: int = 1


def _money(value: Any) -> str:
    return f"{Decimal(str(value)):.2f}"


class FakeBackend:
    """Behaves like the savings API as far as the client can observe."""

    def __init__(self) -> None:
        self.records: dict[str, dict[int, dict[str, Any]]] = {
            resource: {} for resource in RESOURCES
        }
        self.next_id = 1
        self.requests: list[tuple[str, str]] = []
        self.bodies: list[tuple[str, str, Any]] = []
        self.failures: list[Failure] = []
        self.hooks: dict[tuple[str, str], Callable[[], None]] = {}
        self.user: dict[str, Any] = {
            "id": 7,
            "name": "Ama",
            "email": "ama@example.com",
            "net_income": "0.00",
            "profile_picture": None,
            "voice_notifications_enabled": True,
            "reminder_frequency": "weekly",
            "theme": "light",
        }
        self.token = TOKEN

    # Test helpers

    def fail(
        self,
        method: str,
        path: str,
        status: Optional[int] = None,
        after_commit: bool = False,
        times: int = 1,
    ) -> None:
        self.failures.append(Failure(method, path, status, after_commit, times))

    def add_remote(
        self,
        resource: str,
        created_at: Optional[pendulum.DateTime] = None,
        **fields: Any,
    ) -> dict[str, Any]:
        created_at = created_at or pendulum.now("UTC")
        record = self.__new_record(resource, fields, created_at)
        if resource == "savings-goals" and record["is_primary"]:
            self.__clear_primary(record["id"])
        return record

    def count(self, method: str, path: str) -> int:
        return self.requests.count((method, path))

    # Transport

    async def handler(self, request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0)
        method = request.method
        path = request.url.path.removeprefix("/api")
        path = path.rstrip("/") or "/"
        self.requests.append((method, path))
        body = json.loads(request.content) if request.content else None
        self.bodies.append((method, path, body))

        hook = self.hooks.get((method, path))
        if hook is not None:
            hook()

        failure = self.__take_failure(method, path)
        if failure is not None and failure.status is not None:
            return self.__error(failure.status, "Injected failure")
        if failure is not None and not failure.after_commit:
            raise httpx.ConnectError("connection refused", request=request)

        if path == "/":
            response = httpx.Response(200, json={"success": True})
        elif request.headers.get("Authorization") != f"Bearer {self.token}":
            response = self.__error(401, "Unauthenticated.")
        else:
            response = self.__route(method, path, body)

        if failure is not None:
            raise httpx.ReadTimeout("response lost", request=request)
        return response

    def __take_failure(self, method: str, path: str) -> Optional[Failure]:
        for failure in self.failures:
            if failure.method == method and failure.path == path:
                failure.times -= 1
                if failure.times <= 0:
                    self.failures.remove(failure)
                return failure
        return None

    def __route(self, method: str, path: str, body: Any) -> httpx.Response:
        if path == "/user/profile" and method == "GET":
            return self.__ok({"user": self.user})
        if path == "/user/net-income" and method == "PUT":
            self.user["net_income"] = _money(body["net_income"])
            return self.__ok(self.user)
        if path == "/savings-entries/total-savings" and method == "GET":
            return self.__ok({"total_savings": _money(self.total_savings())})
        if path == "/savings-goals/primary" and method == "GET":
            primary = next(
                (g for g in self.records["savings-goals"].values() if g["is_primary"]),
                None,
            )
            if primary is None:
                return self.__error(404, "No primary savings goal found")
            return self.__ok(primary)

        set_primary = re.match(r"^/savings-goals/(\d+)/set-primary$", path)
        if set_primary and method == "PUT":
            goal = self.records["savings-goals"].get(int(set_primary.group(1)))
            if goal is None:
                return self.__error(404, "Savings goal not found")
            self.__clear_primary(goal["id"])
            goal["is_primary"] = True
            return self.__ok(goal)

        collection = _COLLECTION_PATH.match(path)
        if collection and collection.group("resource") in RESOURCES:
            resource = collection.group("resource")
            if method == "GET":
                return self.__ok(list(self.records[resource].values()))
            if method == "POST":
                return self.__create(resource, body)

        item = _ITEM_PATH.match(path)
        if item and item.group("resource") in RESOURCES:
            resource = item.group("resource")
            record = self.records[resource].get(int(item.group("id")))
            if record is None:
                return self.__error(404, "Not found")
            if method == "PUT":
                return self.__update(resource, record, body)
            if method == "DELETE":
                del self.records[resource][record["id"]]
                return self.__ok(None)

        return self.__error(404, "Route not found")

    def __create(self, resource: str, body: dict[str, Any]) -> httpx.Response:
        errors = self.__validate(resource, body, None)
        if errors:
            return self.__error(422, "Validation failed", errors)
        record = self.__new_record(resource, body, pendulum.now("UTC"))
        if resource == "savings-goals" and record["is_primary"]:
            self.__clear_primary(record["id"])
        return self.__ok(record, status=201)

    def __update(
        self, resource: str, record: dict[str, Any], body: dict[str, Any]
    ) -> httpx.Response:
        errors = self.__validate(resource, body, record["id"])
        if errors:
            return self.__error(422, "Validation failed", errors)
        record.update(self.__normalize(resource, body))
        record["updated_at"] = pendulum.now("UTC").isoformat()
        if resource == "savings-goals" and record["is_primary"]:
            self.__clear_primary(record["id"])
        return self.__ok(record)

    def __validate(
        self, resource: str, body: dict[str, Any], record_id: Optional[int]
    ) -> dict[str, list[str]]:
        errors: dict[str, list[str]] = {}
        if resource == "savings-entries":
            if Decimal(str(body.get("amount_saved") or 0)) < Decimal("0.01"):
                errors["amount_saved"] = ["The amount saved must be at least 0.01."]
        elif resource == "withdrawal-entries":
            if Decimal(str(body.get("amount_withdrawn") or 0)) < Decimal("0.01"):
                errors["amount_withdrawn"] = ["The amount must be at least 0.01."]
        else:
            if not body.get("name"):
                errors["name"] = ["The name field is required."]
            elif any(
                goal["name"] == body["name"] and goal["id"] != record_id
                for goal in self.records["savings-goals"].values()
            ):
                errors["name"] = ["The name has already been taken."]
        return errors

    def __normalize(self, resource: str, fields: dict[str, Any]) -> dict[str, Any]:
        normalized = dict(fields)
        for key in (
            "amount_saved",
            "amount_withdrawn",
            "net_income",
            "target_amount",
            "current_amount",
        ):
            if normalized.get(key) is not None:
                normalized[key] = _money(normalized[key])
        if resource == "savings-goals":
            normalized["is_primary"] = bool(normalized.get("is_primary", False))
        return normalized

    def __new_record(
        self, resource: str, fields: dict[str, Any], created_at: pendulum.DateTime
    ) -> dict[str, Any]:
        record = {
            "id": self.next_id,
            "s_user_id": self.user["id"],
            "notes": None,
        }
        if resource == "savings-goals":
            record.update({"current_amount": "0.00", "is_primary": False})
        if resource == "withdrawal-entries":
            record["reason"] = None
        record.update(self.__normalize(resource, fields))
        record["id"] = self.next_id
        record["created_at"] = created_at.isoformat()
        record["updated_at"] = created_at.isoformat()
        self.records[resource][self.next_id] = record
        self.next_id += 1
        return record

    def __clear_primary(self, keep_id: int) -> None:
        for goal in self.records["savings-goals"].values():
            if goal["id"] != keep_id:
                goal["is_primary"] = False

    def total_savings(self) -> Decimal:
        deposits = sum(
            (Decimal(e["amount_saved"]) for e in self.records["savings-entries"].values()),
            Decimal("0"),
        )
        withdrawals = sum(
            (
                Decimal(e["amount_withdrawn"])
                for e in self.records["withdrawal-entries"].values()
            ),
            Decimal("0"),
        )
        return deposits - withdrawals

    def __ok(self, data: Any, status: int = 200) -> httpx.Response:
        return httpx.Response(status, json={"success": True, "data": data})

    def __error(
        self, status: int, message: str, errors: Optional[dict[str, Any]] = None
    ) -> httpx.Response:
        payload: dict[str, Any] = {"success": False, "message": message}
        if errors is not None:
            payload["errors"] = errors
        return httpx.Response(status, json=payload)


def make_user(user_id: int = 7) -> User:
    return {
        "id": user_id,
        "name": "Ama",
        "email": "ama@example.com",
        "net_income": None,
        "profile_picture": None,
        "voice_notifications_enabled": True,
        "reminder_frequency": "weekly",
        "theme": "light",
    }


def midday_today() -> pendulum.DateTime:
    """Noon local time, far from any day boundary."""
    return pendulum.today("local").add(hours=12).in_tz("UTC")


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_app(tmp_path, backend) -> Callable[..., LedgerApp]:
    """Build an app wired to the fake backend. Call it inside a running loop."""

    def factory(
        is_online: bool = True,
        signed_in: bool = True,
        **config_overrides: Any,
    ) -> LedgerApp:
        config = get_default_configuration()
        config["api_base_url"] = BASE_URL
        config["initial_sync_delay_seconds"] = 3600
        config.update(config_overrides)  # type: ignore[typeddict-item]
        app = create_app(
            config,
            data_path=tmp_path,
            transport=httpx.MockTransport(backend.handler),
            is_online=is_online,
        )
        if signed_in:
            app.session.login(TOKEN, make_user(backend.user["id"]))
            app.store.namespace_path = app.namespace_path(backend.user["id"])
        return app

    return factory


@pytest.fixture
def run_app(make_app) -> Callable[..., Any]:
    """Run ``scenario(app)`` on a fresh event loop and close the app afterwards."""

    def runner(scenario: Callable[[LedgerApp], Any], **app_kwargs: Any) -> Any:
        async def main() -> Any:
            app = make_app(**app_kwargs)
            try:
                return await scenario(app)
            finally:
                await app.aclose()

        return asyncio.run(main())

    return runner
