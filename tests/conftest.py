"""Shared pytest fixtures for ctltree tests."""

from __future__ import annotations

import pytest

from ctltree.client import EndpointsResponse, RequestDescriptor
from ctltree.models import ControllerRecord, Endpoint
from ctltree.prompt import PromptResult
from ctltree.store import PersistenceError

CONTROLLER_URL = "https://c1"


class MemoryStore:
    """In-memory ControllerStore that remembers every save."""

    def __init__(self, records: list[ControllerRecord] | None = None) -> None:
        self.records = list(records or [])
        self.saves: list[list[ControllerRecord]] = []
        self.fail_on_save = False

    def load(self) -> list[ControllerRecord]:
        return list(self.records)

    def save(self, records: list[ControllerRecord]) -> None:
        if self.fail_on_save:
            raise PersistenceError("disk full")
        self.saves.append(list(records))
        self.records = list(records)


class FakePrompt:
    """CredentialPrompt returning a canned result or raising a canned error."""

    def __init__(self, result: PromptResult | None = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[str | None, str | None]] = []

    async def prompt(self, url: str | None = None, username: str | None = None) -> PromptResult:
        self.calls.append((url, username))
        if self.error is not None:
            raise self.error
        assert self.result is not None
        return self.result


class FakeResolver:
    """Async stand-in for resolve_endpoints."""

    def __init__(self, endpoints: list[Endpoint] | None = None, error: Exception | None = None) -> None:
        self.endpoints = endpoints
        self.error = error
        self.calls: list[tuple] = []

    async def __call__(self, url, username, password, skip_certificate_validation=False, **kwargs):
        self.calls.append((url, username, password, skip_certificate_validation))
        if self.error is not None:
            raise self.error
        if self.endpoints is None:
            return None
        return EndpointsResponse(
            endpoints=list(self.endpoints),
            request=RequestDescriptor(url=url, username=username),
        )


@pytest.fixture()
def endpoints() -> list[Endpoint]:
    return [
        Endpoint(role="sql-server-master", address="https://10.0.0.4:31433", description="SQL Server master instance"),
        Endpoint(role="gateway", address="https://10.0.0.5:30443", description="Gateway to access HDFS files, Spark"),
    ]


@pytest.fixture()
def raw_endpoints() -> list[dict]:
    """Endpoint list as the controller sends it."""
    return [
        {"name": "sql-server-master", "endpoint": "https://10.0.0.4:31433", "description": "SQL Server master instance"},
        {"name": "gateway", "endpoint": "https://10.0.0.5:30443", "description": "Gateway to access HDFS files, Spark"},
    ]


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()
