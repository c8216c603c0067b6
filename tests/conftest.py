"""Shared pytest fixtures."""
from __future__ import annotations

import io
from collections.abc import Iterator
from pathlib import Path
from typing import Callable, Optional, Union

import httpx
import pytest

from retailsync.api_client import ApiClient
from retailsync.config import reset_config
from retailsync.database import DatabaseManager
from retailsync.logger import StructuredLogger
from retailsync.repositories.entities import create_repositories
from retailsync.repositories.entity_repository import EntityRepository
from retailsync.repositories.failed_sync_repository import FailedSyncRepository
from retailsync.repositories.sync_cursor_repository import SyncCursorRepository
from retailsync.schema import initialize_schema
from retailsync.services.sync_orchestrator import SyncOrchestrator

BASE_URL = "https://api.test/schedule/mobileApp/"
SERVER_UPDATED_DATE = "2024-05-01 10:00:00"

Scripted = Union[dict, httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class FakeServer:
    """In-process stand-in for the sales-management API.

    Download endpoints serve ``pages[path]`` by ``part_no`` (and single
    records by ``id``); a download endpoint with no pages serves empty
    ones.  Any endpoint can be given a queue of scripted replies that take
    precedence: a dict is sent as a 200 JSON body, a
    ``Response`` as is, an exception is raised as a transport error and a
    callable is called with the request.
    """

    def __init__(self) -> None:
        self.pages: dict[str, list[list[dict]]] = {}
        self.scripted: dict[str, list[Scripted]] = {}
        self.requests: list[httpx.Request] = []
        self.updated_date: str = SERVER_UPDATED_DATE

    # -- setup -----------------------------------------------------------

    def serve_pages(self, path: str, *pages: list[dict]) -> None:
        self.pages[path] = list(pages)

    def script(self, path: str, *replies: Scripted) -> None:
        self.scripted.setdefault(path, []).extend(replies)

    # -- inspection ------------------------------------------------------

    def calls(self, path: str, method: Optional[str] = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if self._path(r) == path and (method is None or r.method == method)
        ]

    def part_numbers(self, path: str) -> list[int]:
        return [
            int(r.url.params["part_no"])
            for r in self.calls(path, "GET")
            if "part_no" in r.url.params
        ]

    # -- transport -------------------------------------------------------

    @staticmethod
    def _path(request: httpx.Request) -> str:
        path = request.url.path
        prefix = httpx.URL(BASE_URL).path
        return path[len(prefix):] if path.startswith(prefix) else path.lstrip("/")

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = self._path(request)

        queue = self.scripted.get(path)
        if queue:
            reply = queue.pop(0)
            if isinstance(reply, Exception):
                raise reply
            if isinstance(reply, httpx.Response):
                return reply
            if isinstance(reply, dict):
                return httpx.Response(200, json=reply)
            return reply(request)

        if request.method == "GET" and path.endswith("/download"):
            pages = self.pages.get(path, [])
            params = request.url.params
            if "id" in params:
                wanted = int(params["id"])
                data = [rec for page in pages for rec in page if rec.get("id") == wanted]
            else:
                part_no = int(params.get("part_no", "0"))
                data = pages[part_no] if part_no < len(pages) else []
            return httpx.Response(
                200,
                json={
                    "status": 1,
                    "message": "success",
                    "data": data,
                    "updated_date": self.updated_date,
                },
            )

        return httpx.Response(404, json={"status": 0, "message": "not found"})


def customer_wire(customer_id: int, **overrides: object) -> dict:
    record: dict = {
        "id": customer_id,
        "code": f"C{customer_id:03d}",
        "name": f"Customer {customer_id}",
        "phone_no": "0300-0000000",
        "address": "Main Bazaar",
        "rout_id": 1,
        "sales_man_id": 11,
        "rating": 8,
        "flag": 1,
        "created_at": "2024-01-01 09:00:00",
        "updated_at": "2024-01-02 09:00:00",
    }
    record.update(overrides)
    return record


def supplier_wire(supplier_id: int, **overrides: object) -> dict:
    record: dict = {
        "id": supplier_id,
        "user_id": 100 + supplier_id,
        "code": f"S{supplier_id:03d}",
        "name": f"Supplier {supplier_id}",
        "phone_no": "0300-1111111",
        "address": "Industrial Area",
        "flag": 1,
        "created_at": "2024-01-01 09:00:00",
        "updated_at": "2024-01-01 09:00:00",
    }
    record.update(overrides)
    return record


def unit_wire(unit_id: int, **overrides: object) -> dict:
    record: dict = {
        "id": unit_id,
        "code": f"U{unit_id}",
        "name": f"Unit {unit_id}",
        "display_name": f"unit-{unit_id}",
        "type": 0,
        "base_id": -1,
        "base_qty": 0,
        "comment": "",
    }
    record.update(overrides)
    return record


def product_wire(product_id: int, **overrides: object) -> dict:
    record: dict = {
        "id": product_id,
        "code": f"P{product_id:03d}",
        "barcode": f"890{product_id:05d}",
        "name": f"Product {product_id}",
        "brand": "Acme",
        "category_id": 1,
        "sub_category_id": -1,
        "default_supp_id": 5,
        "auto_sendto_supplier_flag": 0,
        "base_unit_id": 1,
        "default_unit_id": 1,
        "price": "120.50",
        "mrp": 150,
        "retail_price": 135.0,
        "fitting_charge": None,
        "flag": 1,
        "created_at": "2024-01-01 09:00:00",
        "updated_at": "2024-01-01 09:00:00",
    }
    record.update(overrides)
    return record


@pytest.fixture(autouse=True)
def reset_settings() -> Iterator[None]:
    """Reset the AppConfig singleton before and after each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def logger(tmp_path: Path, request: pytest.FixtureRequest) -> StructuredLogger:
    return StructuredLogger(
        name=f"retailsync.test.{request.node.name}",
        stream=io.StringIO(),
        log_file=str(tmp_path / "test.log"),
        max_bytes=1_000_000,
        backup_count=1,
    )


@pytest.fixture
def db(logger: StructuredLogger) -> Iterator[DatabaseManager]:
    manager = DatabaseManager(sqlite_path=":memory:", logger=logger)
    initialize_schema(manager.sqlite, logger)
    yield manager
    manager.close()


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def api(server: FakeServer, logger: StructuredLogger) -> Iterator[ApiClient]:
    client = httpx.Client(transport=httpx.MockTransport(server.handler), base_url=BASE_URL)
    api_client = ApiClient(
        base_url=BASE_URL,
        logger=logger,
        token="secret-token",
        max_retries=2,
        retry_delay_s=0.0,
        client=client,
        sleep=lambda _seconds: None,
    )
    yield api_client
    client.close()


@pytest.fixture
def repositories(
    db: DatabaseManager, api: ApiClient, logger: StructuredLogger,
) -> dict[str, EntityRepository]:
    return create_repositories(db, api, logger)


@pytest.fixture
def customers(repositories: dict[str, EntityRepository]) -> EntityRepository:
    return repositories["customers"]


@pytest.fixture
def suppliers(repositories: dict[str, EntityRepository]) -> EntityRepository:
    return repositories["suppliers"]


@pytest.fixture
def products(repositories: dict[str, EntityRepository]) -> EntityRepository:
    return repositories["products"]


@pytest.fixture
def cursors(db: DatabaseManager, logger: StructuredLogger) -> SyncCursorRepository:
    return SyncCursorRepository(db=db, logger=logger)


@pytest.fixture
def failed_syncs(db: DatabaseManager, logger: StructuredLogger) -> FailedSyncRepository:
    return FailedSyncRepository(db=db, logger=logger)


@pytest.fixture
def make_orchestrator(
    db: DatabaseManager,
    repositories: dict[str, EntityRepository],
    cursors: SyncCursorRepository,
    failed_syncs: FailedSyncRepository,
    logger: StructuredLogger,
):
    def _make(user_type: int = 1, user_id: int = 7, batch_limit: int = 2) -> SyncOrchestrator:
        return SyncOrchestrator(
            db=db,
            repositories=list(repositories.values()),
            cursors=cursors,
            failed_syncs=failed_syncs,
            logger=logger,
            user_type=user_type,
            user_id=user_id,
            batch_limit=batch_limit,
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator) -> SyncOrchestrator:
    return make_orchestrator()
