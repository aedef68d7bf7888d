from __future__ import annotations

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from conftest import client_error
from dynaview.client import create_client, describe_key_schema, list_collections
from dynaview.errors import DescribeFailedError, FetchError, MissingPartitionKeyError
from dynaview.keys import KeySchema


def test_list_collections_drains_every_page(fake_dynamo):
    for i in range(5):
        fake_dynamo.add_table(f"T{i}", [])
    fake_dynamo.list_page_size = 2

    names = list_collections(fake_dynamo)

    assert names == sorted(fake_dynamo.tables)
    assert len(names) == 8


def test_list_collections_wraps_service_errors(fake_dynamo):
    fake_dynamo.fail_list = client_error("AccessDeniedException", "not authorized", "ListTables")

    with pytest.raises(FetchError) as exc:
        list_collections(fake_dynamo)
    assert isinstance(exc.value.cause, ClientError)
    assert "not authorized" in str(exc.value)


def test_list_collections_wraps_transport_errors(fake_dynamo):
    fake_dynamo.fail_list = EndpointConnectionError(endpoint_url="http://localhost:8000")

    with pytest.raises(FetchError):
        list_collections(fake_dynamo)


def test_describe_key_schema(fake_dynamo):
    assert describe_key_schema(fake_dynamo, "Orders") == KeySchema("pk", "sk")
    assert describe_key_schema(fake_dynamo, "Users") == KeySchema("id")


def test_describe_key_schema_failure(fake_dynamo):
    with pytest.raises(DescribeFailedError):
        describe_key_schema(fake_dynamo, "Nope")


def test_describe_key_schema_without_partition_key(fake_dynamo):
    fake_dynamo.tables["Broken"] = ([], [])
    with pytest.raises(MissingPartitionKeyError):
        describe_key_schema(fake_dynamo, "Broken")


def test_create_client_uses_settings(settings):
    settings.DV_ENDPOINT_URL = "http://localhost:8000"
    settings.DV_AWS_REGION = "eu-west-1"

    client = create_client(settings)

    assert client.meta.region_name == "eu-west-1"
    assert client.meta.endpoint_url == "http://localhost:8000"
    assert client.meta.config.max_pool_connections >= 10
