"""
Test configuration and fixtures for dynamodb_dsl.

Unit tests use plain Mock gateways and hand-built page responses; integration
tests run against moto's in-memory DynamoDB.
"""

import sys
from pathlib import Path

# Add parent directory to path so we can import dynamodb_dsl
sys.path.insert(0, str(Path(__file__).parent.parent))

import boto3
import pytest
from moto import mock_aws

from dynamodb_dsl import DynamoDBConfig, TableSchema


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so botocore never looks for real ones."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def mock_dynamodb_config():
    """DynamoDB configuration for mocked testing."""
    return DynamoDBConfig(
        region_name="us-east-1",
        endpoint_url=None,  # Use default AWS endpoint for moto
        environment="test",
        table_prefix="",
        literal_grammar="auto",
        decimal_numbers=False
    )


@pytest.fixture
def events_schema():
    """Schema of the events table: tenant (S) / ts (N)."""
    return TableSchema(hash_key="tenant", hash_type="S", range_key="ts", range_type="N")


@pytest.fixture
def hash_only_schema():
    return TableSchema(hash_key="id", hash_type="S")


@pytest.fixture
def mock_dynamodb_client(aws_credentials):
    """Mock low-level DynamoDB client."""
    with mock_aws():
        yield boto3.client('dynamodb', region_name='us-east-1')


@pytest.fixture
def events_table(mock_dynamodb_client):
    """Create test_events table for testing."""
    mock_dynamodb_client.create_table(
        TableName='test_events',
        KeySchema=[
            {'AttributeName': 'tenant', 'KeyType': 'HASH'},
            {'AttributeName': 'ts', 'KeyType': 'RANGE'}
        ],
        AttributeDefinitions=[
            {'AttributeName': 'tenant', 'AttributeType': 'S'},
            {'AttributeName': 'ts', 'AttributeType': 'N'}
        ],
        BillingMode='PAY_PER_REQUEST'
    )
    return 'test_events'


def wire_item(tenant, ts, **attributes):
    """Build a raw events item in wire format."""
    item = {'tenant': {'S': tenant}, 'ts': {'N': str(ts)}}
    for name, value in attributes.items():
        item[name] = {'N': str(value)} if isinstance(value, int) else {'S': value}
    return item


@pytest.fixture
def make_item():
    return wire_item
