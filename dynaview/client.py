"""Thin wrappers over the low-level boto3 DynamoDB client.

Only read calls are used: list_tables, describe_table and scan.
"""
from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .errors import DescribeFailedError, FetchError
from .keys import KeySchema, resolve_key_schema
from .settings import Settings, resolve_segment_count

logger = logging.getLogger(__name__)


def create_client(settings: Settings) -> Any:
    """Create a DynamoDB client configured from settings.

    The connection pool is sized to the segment count so every scan worker
    gets its own connection; per-call timeouts never exceed the scan deadline.
    """
    segments = resolve_segment_count(settings)
    call_timeout = max(1, int(settings.DV_SCAN_TIMEOUT_SEC))
    config = Config(
        region_name=settings.DV_AWS_REGION,
        retries={"max_attempts": int(settings.DV_MAX_ATTEMPTS), "mode": "standard"},
        max_pool_connections=max(10, segments + 2),
        connect_timeout=min(10, call_timeout),
        read_timeout=call_timeout,
    )
    session = boto3.session.Session(profile_name=settings.DV_AWS_PROFILE) if settings.DV_AWS_PROFILE else boto3.session.Session()
    return session.client(
        "dynamodb",
        config=config,
        endpoint_url=settings.DV_ENDPOINT_URL or None,
    )


def list_collections(client: Any) -> list[str]:
    """Return every table name, draining all list_tables pages."""
    names: list[str] = []
    try:
        paginator = client.get_paginator("list_tables")
        for page in paginator.paginate():
            names.extend(page.get("TableNames", []))
    except (ClientError, BotoCoreError) as e:
        logger.error("Failed to list tables: %s", e)
        raise FetchError("Could not list tables", cause=e) from e
    logger.info("Listed %d tables", len(names))
    return names


def describe_key_schema(client: Any, table_name: str) -> KeySchema:
    """Fetch a table's key schema. Raises DescribeFailedError on any failure."""
    try:
        desc = client.describe_table(TableName=table_name)
    except (ClientError, BotoCoreError) as e:
        logger.error("Failed to describe table %s: %s", table_name, e)
        raise DescribeFailedError(f"Could not describe table {table_name!r}", cause=e) from e

    elements = (desc.get("Table") or {}).get("KeySchema") or []
    return resolve_key_schema(elements)
