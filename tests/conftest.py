from __future__ import annotations

import os
import sys
import threading
from collections import defaultdict

import pytest
from botocore.exceptions import ClientError


def _ensure_project_root_on_path() -> None:
    # When running via the venv's pytest entrypoint, the CWD is not guaranteed to
    # be on sys.path. Ensure the repository root (containing `dynaview/`) is importable.
    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_path()


def client_error(code: str, message: str = "boom", operation: str = "Scan") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeDynamo:
    """In-memory double for the low-level DynamoDB client.

    Items are split across segments deterministically (item index modulo the
    segment count), so every segment count partitions the table disjointly.
    Like the service, a scan rejects an ExclusiveStartKey carrying anything
    but key attributes.
    """

    def __init__(self, list_page_size: int = 2):
        self.tables: dict[str, tuple[list[dict], list[dict]]] = {}
        self.list_page_size = list_page_size
        self.scan_calls: list[dict] = []
        self.calls_by_segment: dict[int, int] = defaultdict(int)
        self.fail_segments: dict[int, Exception] = {}
        self.fail_describe: Exception | None = None
        self.fail_list: Exception | None = None
        self.extra_token_attrs = True
        self._lock = threading.Lock()

    # -- fixtures -----------------------------------------------------------

    def add_table(self, name: str, items: list[dict], pk: str = "pk", sk: str | None = None) -> None:
        schema = [{"AttributeName": pk, "KeyType": "HASH"}]
        if sk:
            schema.append({"AttributeName": sk, "KeyType": "RANGE"})
        self.tables[name] = (schema, list(items))

    def key_names(self, table: str) -> list[str]:
        return [e["AttributeName"] for e in self.tables[table][0]]

    # -- client surface -----------------------------------------------------

    def get_paginator(self, operation: str):
        assert operation == "list_tables"
        fake = self

        class _Paginator:
            def paginate(self):
                if fake.fail_list is not None:
                    raise fake.fail_list
                names = sorted(fake.tables)
                for i in range(0, max(1, len(names)), fake.list_page_size):
                    yield {"TableNames": names[i:i + fake.list_page_size]}

        return _Paginator()

    def describe_table(self, TableName: str):
        if self.fail_describe is not None:
            raise self.fail_describe
        if TableName not in self.tables:
            raise client_error("ResourceNotFoundException", f"Requested resource not found: {TableName}", "DescribeTable")
        return {"Table": {"TableName": TableName, "KeySchema": self.tables[TableName][0]}}

    def scan(self, TableName: str, Limit: int, Segment: int, TotalSegments: int, ExclusiveStartKey=None):
        with self._lock:
            self.scan_calls.append(
                {"Segment": Segment, "TotalSegments": TotalSegments, "ExclusiveStartKey": ExclusiveStartKey}
            )
            self.calls_by_segment[Segment] += 1

        if Segment in self.fail_segments:
            raise self.fail_segments[Segment]

        schema, items = self.tables[TableName]
        keys = [e["AttributeName"] for e in schema]
        segment_items = [item for i, item in enumerate(items) if i % TotalSegments == Segment]

        start = 0
        if ExclusiveStartKey is not None:
            if set(ExclusiveStartKey) != set(keys):
                raise client_error("ValidationException", "The provided starting key is invalid")
            for i, item in enumerate(segment_items):
                if all(item.get(k) == ExclusiveStartKey[k] for k in keys):
                    start = i + 1
                    break

        page = segment_items[start:start + Limit]
        out = {"Items": page, "Count": len(page)}
        if start + Limit < len(segment_items):
            last = page[-1]
            token = {k: last[k] for k in keys}
            if self.extra_token_attrs:
                token["gsi_pk"] = {"S": "not-a-key"}
            out["LastEvaluatedKey"] = token
        return out


def make_orders(n: int) -> list[dict]:
    return [
        {
            "pk": {"S": f"order-{i:04d}"},
            "sk": {"N": str(i)},
            "total": {"N": f"{i}.50"},
            "tags": {"SS": ["new", "web"]},
        }
        for i in range(n)
    ]


@pytest.fixture
def fake_dynamo() -> FakeDynamo:
    fake = FakeDynamo()
    fake.add_table("Orders", make_orders(250), pk="pk", sk="sk")
    fake.add_table("Users", [{"id": {"S": "u1"}}, {"id": {"S": "u2"}}], pk="id")
    fake.add_table("Audit", [], pk="pk")
    return fake


@pytest.fixture
def settings(tmp_path, monkeypatch):
    from dynaview.settings import load_settings

    for key in list(os.environ):
        if key.startswith("DV_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return load_settings(
        DV_CACHE_DIR=tmp_path / "cache",
        DV_LOG_DIR=tmp_path / "logs",
        DV_SCAN_SEGMENTS=4,
        DV_SCAN_TIMEOUT_SEC=30,
    )
