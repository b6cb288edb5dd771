"""
Tests for PageIterator (core/iterator.py)

Page fetches are stubbed with Mock side effects so every request the iterator
makes can be inspected.
"""

from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from dynamodb_dsl.core.compiler import compile_expression
from dynamodb_dsl.core.iterator import PageIterator
from dynamodb_dsl.exceptions import RetryableError, ValidationError
from dynamodb_dsl.models import IteratorEntry, ScanMethod


@pytest.fixture
def two_pages(make_item):
    """Three items plus a continuation token, then two items and no token."""
    page1 = {
        'Items': [make_item("acme", ts, score=ts * 10) for ts in (1, 2, 3)],
        'LastEvaluatedKey': {'tenant': {'S': 'acme'}, 'ts': {'N': '3'}},
    }
    page2 = {
        'Items': [make_item("acme", ts, score=ts * 10) for ts in (4, 5)],
    }
    return [page1, page2]


def key_condition():
    return compile_expression("tenant = 'acme'")


class TestPagination:

    def test_drains_all_pages(self, events_schema, two_pages):
        fetch = Mock(side_effect=two_pages)

        entries = list(PageIterator(key_condition(), fetch, events_schema))

        assert len(entries) == 5
        assert [entry.key for entry in entries] == [["acme", ts] for ts in (1, 2, 3, 4, 5)]
        assert entries[0].value == {"score": 10}
        assert all(entry.ok for entry in entries)
        assert fetch.call_count == 2

    def test_continuation_token_is_passed(self, events_schema, two_pages):
        fetch = Mock(side_effect=two_pages)

        list(PageIterator(key_condition(), fetch, events_schema))

        first, second = fetch.call_args_list
        assert 'ExclusiveStartKey' not in first.kwargs
        assert second.kwargs['ExclusiveStartKey'] == {'tenant': {'S': 'acme'}, 'ts': {'N': '3'}}

    def test_limit_stops_after_first_page(self, events_schema, two_pages):
        fetch = Mock(side_effect=two_pages)
        iterator = PageIterator(key_condition(), fetch, events_schema, limit=3)

        entries = list(iterator)

        assert len(entries) == 3
        assert fetch.call_count == 1
        assert fetch.call_args.kwargs['Limit'] == 3
        assert iterator.exhausted

    def test_no_read_ahead(self, events_schema, two_pages):
        fetch = Mock(side_effect=two_pages)
        iterator = PageIterator(key_condition(), fetch, events_schema)

        assert fetch.call_count == 0
        for _ in range(3):
            next(iterator)
        assert fetch.call_count == 1
        next(iterator)
        assert fetch.call_count == 2

    def test_empty_page_with_token_is_followed(self, events_schema, make_item):
        fetch = Mock(side_effect=[
            {'Items': [], 'LastEvaluatedKey': {'tenant': {'S': 'acme'}, 'ts': {'N': '0'}}},
            {'Items': [make_item("acme", 1)]},
        ])

        entry = next(PageIterator(key_condition(), fetch, events_schema))

        assert entry.key == ["acme", 1]
        assert fetch.call_count == 2

    def test_empty_result(self, events_schema):
        fetch = Mock(return_value={'Items': []})
        iterator = PageIterator(key_condition(), fetch, events_schema)

        assert list(iterator) == []
        with pytest.raises(StopIteration):
            next(iterator)
        assert fetch.call_count == 1

    def test_not_restartable(self, events_schema, two_pages):
        fetch = Mock(side_effect=two_pages)
        iterator = PageIterator(key_condition(), fetch, events_schema)

        assert len(list(iterator)) == 5
        assert list(iterator) == []


class TestRequestParameters:

    def test_query_uses_key_condition(self, events_schema):
        iterator = PageIterator(key_condition(), Mock(), events_schema, IndexName="by_score")

        assert iterator.params == {
            'IndexName': 'by_score',
            'KeyConditionExpression': '#V1 = :V2',
            'ExpressionAttributeNames': {'#V1': 'tenant'},
            'ExpressionAttributeValues': {':V2': {'S': 'acme'}},
        }

    def test_scan_uses_filter(self, events_schema):
        iterator = PageIterator(compile_expression("score > 10"), Mock(), events_schema, method=ScanMethod.SCAN)

        assert iterator.params['FilterExpression'] == '#V1 > :V2'
        assert 'KeyConditionExpression' not in iterator.params

    def test_unfiltered_scan_sends_no_expression(self, events_schema):
        iterator = PageIterator(compile_expression(""), Mock(), events_schema, method="scan")
        assert iterator.params == {}

    def test_add_filter_continues_placeholders(self, events_schema):
        iterator = PageIterator(key_condition(), Mock(), events_schema)

        iterator.add_filter("score > 10")
        params = iterator.params

        assert params['FilterExpression'] == '#V3 > :V4'
        assert params['ExpressionAttributeNames'] == {'#V1': 'tenant', '#V3': 'score'}
        assert params['ExpressionAttributeValues'] == {':V2': {'S': 'acme'}, ':V4': {'N': '10'}}

    def test_add_filter_augments_existing_filter(self, events_schema):
        iterator = PageIterator(compile_expression("a = 1"), Mock(), events_schema, method=ScanMethod.SCAN)

        iterator.add_filter("b = 2").add_filter("c = true")

        assert iterator.params['FilterExpression'] == "((#V1 = :V2) AND (#V3 = :V4)) AND (#V5 = :V6)"
        assert len(iterator.params['ExpressionAttributeValues']) == 3

    def test_add_empty_filter_is_noop(self, events_schema):
        iterator = PageIterator(key_condition(), Mock(), events_schema)
        iterator.add_filter("  ")
        assert 'FilterExpression' not in iterator.params

    def test_set_projection_verbatim(self, events_schema):
        iterator = PageIterator(key_condition(), Mock(), events_schema)
        iterator.set_projection("score, ts")
        assert iterator.params['ProjectionExpression'] == "score, ts"

    def test_mutators_rejected_after_first_pull(self, events_schema, two_pages):
        iterator = PageIterator(key_condition(), Mock(side_effect=two_pages), events_schema)
        next(iterator)

        with pytest.raises(ValidationError, match="before the first pull"):
            iterator.add_filter("score > 1")
        with pytest.raises(ValidationError):
            iterator.set_projection("score")


class TestFetchErrors:

    def test_client_error_is_terminal_entry(self, events_schema, two_pages):
        error = ClientError(
            {'Error': {'Code': 'ProvisionedThroughputExceededException', 'Message': 'Slow down'}},
            'Query'
        )
        fetch = Mock(side_effect=[two_pages[0], error])
        iterator = PageIterator(key_condition(), fetch, events_schema, table_name="test_events")

        entries = list(iterator)

        assert len(entries) == 4
        assert entries[-1].key == []
        assert entries[-1].value == {}
        assert isinstance(entries[-1].err, RetryableError)
        assert entries[-1].err.original_error is error
        assert iterator.exhausted
        assert fetch.call_count == 2

    def test_other_errors_are_passed_through(self, events_schema):
        boom = RuntimeError("socket closed")
        iterator = PageIterator(key_condition(), Mock(side_effect=boom), events_schema)

        entry = next(iterator)

        assert entry.err is boom
        assert not entry.ok
        with pytest.raises(StopIteration):
            next(iterator)

    def test_bad_item_is_terminal_entry(self, events_schema):
        fetch = Mock(return_value={'Items': [{'tenant': {'S': 'acme'}, 'ts': {'X': '1'}}]})

        entries = list(PageIterator(key_condition(), fetch, events_schema))

        assert len(entries) == 1
        assert entries[0].err is not None


def test_entry_defaults():
    entry = IteratorEntry()
    assert entry.key == []
    assert entry.value == {}
    assert entry.ok
