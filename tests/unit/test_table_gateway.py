"""
Tests for TableGateway and error mapping (core/table_gateway.py)
"""

import logging
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError

from dynamodb_dsl.config import DynamoDBConfig
from dynamodb_dsl.core.table_gateway import TableGateway, create_table_gateway, map_dynamodb_error
from dynamodb_dsl.exceptions import (
    ConflictError,
    ConnectionError,
    DynamoDBWrapperError,
    ItemNotFoundError,
    RetryableError,
    ValidationError,
)
from dynamodb_dsl.models import TableSchema


def create_client_error(error_code: str, message: str = "Test error") -> ClientError:
    """Helper to create ClientError for testing."""
    return ClientError(
        error_response={
            'Error': {
                'Code': error_code,
                'Message': message
            }
        },
        operation_name='TestOperation'
    )


@pytest.fixture
def mock_config():
    """Mock configuration for testing."""
    return DynamoDBConfig(
        region_name="us-east-1",
        table_prefix="test",
        environment="dev"
    )


@pytest.fixture
def gateway(mock_config):
    """Gateway with a Mock low-level client already attached."""
    gateway = TableGateway(mock_config, "test_dev_events")
    gateway._client = Mock()
    return gateway


class TestErrorMapping:
    """Test mapping of botocore ClientErrors to domain exceptions."""

    def test_conditional_check_failed(self):
        error = create_client_error('ConditionalCheckFailedException', 'The conditional request failed')

        result = map_dynamodb_error(error, 'PutItem', 'test_table', 'test-id')

        assert isinstance(result, ConflictError)
        assert 'test-id' in str(result)
        assert 'conditional request failed' in str(result).lower()
        assert result.original_error == error

    @pytest.mark.parametrize("code", [
        'ProvisionedThroughputExceededException',
        'ThrottlingException',
        'InternalServerError',
        'RequestTimeoutException',
    ])
    def test_retryable(self, code):
        result = map_dynamodb_error(create_client_error(code), 'Query', 'test_table')
        assert isinstance(result, RetryableError)

    def test_validation(self):
        error = create_client_error('ValidationException', 'Invalid KeyConditionExpression')

        result = map_dynamodb_error(error, 'Query', 'test_table')

        assert isinstance(result, ValidationError)
        assert 'Invalid KeyConditionExpression' in str(result)

    def test_resource_not_found_with_resource_id(self):
        result = map_dynamodb_error(create_client_error('ResourceNotFoundException'), 'GetItem', 'test_table', 'x')

        assert isinstance(result, ItemNotFoundError)
        assert result.table_name == 'test_table'

    def test_table_not_found(self):
        result = map_dynamodb_error(create_client_error('ResourceNotFoundException'), 'Query', 'test_table')

        assert isinstance(result, ConnectionError)
        assert 'Table not found' in str(result)

    def test_auth_errors(self):
        result = map_dynamodb_error(create_client_error('AccessDeniedException'), 'Scan', 'test_table')
        assert isinstance(result, ConnectionError)

    def test_unknown_code(self, caplog):
        with caplog.at_level(logging.WARNING):
            result = map_dynamodb_error(create_client_error('SomethingNew'), 'Scan', 'test_table')

        assert isinstance(result, ConnectionError)
        assert "SomethingNew" in caplog.text

    def test_mapped_errors_share_base_class(self):
        error = create_client_error('ConditionalCheckFailedException')

        result = map_dynamodb_error(error, 'PutItem', 'test_table', 'test-id')

        assert isinstance(result, DynamoDBWrapperError)
        assert result.context == {'resource_id': 'test-id'}
        assert str(result).endswith("(Context: resource_id=test-id)")
        assert repr(result).startswith("ConflictError(message='Conditional check failed")


class TestTableGateway:
    """Test TableGateway class."""

    def test_initialization(self, mock_config):
        gateway = TableGateway(mock_config, "test_table")

        assert gateway.config == mock_config
        assert gateway.table_name == "test_table"
        assert gateway._client is None

    def test_client_lazy_initialization(self, mock_config):
        """Test lazy initialization of the low-level client."""
        with patch('boto3.Session') as mock_session_class:
            mock_session = Mock()
            mock_client = Mock()
            mock_session_class.return_value = mock_session
            mock_session.client.return_value = mock_client

            gateway = TableGateway(mock_config, "test_table")

            assert gateway.client == mock_client
            assert gateway.client == mock_client
            mock_session_class.assert_called_once_with(region_name="us-east-1")
            args, kwargs = mock_session.client.call_args
            assert args == ('dynamodb',)
            assert 'endpoint_url' not in kwargs

    def test_client_uses_endpoint_url(self):
        config = DynamoDBConfig.for_local_development()
        with patch('boto3.Session') as mock_session_class:
            gateway = TableGateway(config, "test_table")
            _ = gateway.client

            kwargs = mock_session_class.return_value.client.call_args.kwargs
            assert kwargs['endpoint_url'] == "http://localhost:8000"

    def test_client_connection_error(self, mock_config):
        with patch('boto3.Session') as mock_session_class:
            mock_session_class.side_effect = Exception("Connection failed")

            gateway = TableGateway(mock_config, "test_table")

            with pytest.raises(ConnectionError, match="Failed to connect to DynamoDB"):
                _ = gateway.client

    def test_query_injects_table_name(self, gateway):
        gateway.client.query.return_value = {'Items': []}

        result = gateway.query(KeyConditionExpression="#V1 = :V2")

        assert result == {'Items': []}
        gateway.client.query.assert_called_once_with(
            TableName="test_dev_events",
            KeyConditionExpression="#V1 = :V2"
        )

    def test_scan(self, gateway):
        gateway.client.scan.return_value = {'Items': [], 'Count': 0}

        assert gateway.scan() == {'Items': [], 'Count': 0}
        gateway.client.scan.assert_called_once_with(TableName="test_dev_events")

    def test_write_operations(self, gateway):
        key = {'tenant': {'S': 'acme'}, 'ts': {'N': '1'}}

        gateway.put_item(Item=key)
        gateway.update_item(Key=key, UpdateExpression="SET #V1 = :V2")
        gateway.delete_item(Key=key)
        gateway.get_item(Key=key)

        gateway.client.put_item.assert_called_once_with(TableName="test_dev_events", Item=key)
        gateway.client.update_item.assert_called_once_with(
            TableName="test_dev_events", Key=key, UpdateExpression="SET #V1 = :V2"
        )
        gateway.client.delete_item.assert_called_once_with(TableName="test_dev_events", Key=key)
        gateway.client.get_item.assert_called_once_with(TableName="test_dev_events", Key=key)

    def test_client_error_is_mapped(self, gateway):
        error = create_client_error('ConditionalCheckFailedException')
        gateway.client.put_item.side_effect = error

        with pytest.raises(ConflictError) as exc_info:
            gateway.put_item(Item={})

        assert exc_info.value.__cause__ is error

    def test_batch_write_item(self, gateway):
        requests = [
            {'PutRequest': {'Item': {'tenant': {'S': 'acme'}, 'ts': {'N': '1'}}}},
            {'DeleteRequest': {'Key': {'tenant': {'S': 'acme'}, 'ts': {'N': '2'}}}},
        ]
        gateway.client.batch_write_item.return_value = {'UnprocessedItems': {}}

        assert gateway.batch_write_item(requests) == {'UnprocessedItems': {}}
        gateway.client.batch_write_item.assert_called_once_with(
            RequestItems={'test_dev_events': requests}
        )

    def test_batch_get_item(self, gateway):
        keys = [{'tenant': {'S': 'acme'}, 'ts': {'N': '1'}}]
        gateway.client.batch_get_item.return_value = {'Responses': {'test_dev_events': []}}

        gateway.batch_get_item(keys, ProjectionExpression="score")

        gateway.client.batch_get_item.assert_called_once_with(
            RequestItems={'test_dev_events': {'Keys': keys, 'ProjectionExpression': "score"}}
        )

    def test_batch_error_is_mapped(self, gateway):
        gateway.client.batch_write_item.side_effect = create_client_error('ProvisionedThroughputExceededException')

        with pytest.raises(RetryableError, match="BatchWriteItem on test_dev_events"):
            gateway.batch_write_item([])

    def test_describe_schema(self, gateway):
        gateway.client.describe_table.return_value = {
            'Table': {
                'TableName': 'test_dev_events',
                'KeySchema': [
                    {'AttributeName': 'tenant', 'KeyType': 'HASH'},
                    {'AttributeName': 'ts', 'KeyType': 'RANGE'},
                ],
                'AttributeDefinitions': [
                    {'AttributeName': 'tenant', 'AttributeType': 'S'},
                    {'AttributeName': 'ts', 'AttributeType': 'N'},
                ],
            }
        }

        assert gateway.describe_schema() == TableSchema(
            hash_key="tenant", hash_type="S", range_key="ts", range_type="N"
        )
        gateway.client.describe_table.assert_called_once_with(TableName="test_dev_events")

    def test_debug_logging_flag(self, mock_config):
        mock_config.enable_debug_logging = True
        TableGateway(mock_config, "test_table")

        assert logging.getLogger("dynamodb_dsl").level == logging.DEBUG
        logging.getLogger("dynamodb_dsl").setLevel(logging.NOTSET)


def test_create_table_gateway(mock_config):
    gateway = create_table_gateway(mock_config, "events")

    assert isinstance(gateway, TableGateway)
    assert gateway.table_name == "test_dev_events"
