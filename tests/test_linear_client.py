#!/usr/bin/env python3
"""
Unit tests for the Linear HTTP transport, response parser, paginator and client
"""
# /// script
# requires-python = ">=3.8"
# dependencies = [
#     "requests",
#     "pytest",
# ]
# ///

import unittest
from unittest.mock import Mock
import json
import os
import sys

import requests

# Add parent directory to path to import modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from linear_client import (
    IssuePage,
    LinearAPIError,
    LinearClient,
    LinearHttpClient,
    LinearPaginator,
    PageState,
    PaginationResult,
    parse_issues_response,
)
from linear_query import QueryOptions


def make_response(status_code=200, body=None, reason='OK'):
    """Build a mock requests.Response"""
    response = Mock()
    response.status_code = status_code
    response.reason = reason
    if body is None:
        response.text = 'not json'
        response.json.side_effect = ValueError('Expecting value')
    else:
        response.text = json.dumps(body)
        response.json.return_value = body
    return response


def page_body(ids, has_next=False, cursor=None):
    return {
        'data': {
            'issues': {
                'pageInfo': {'hasNextPage': has_next, 'endCursor': cursor},
                'nodes': [{'id': issue_id} for issue_id in ids],
            }
        }
    }


class TestLinearHttpClient(unittest.TestCase):
    """Test the GraphQL transport"""

    def setUp(self):
        self.session = Mock()
        self.session.headers = {}
        self.client = LinearHttpClient('lin_api_test', session=self.session)

    def test_session_headers(self):
        self.assertEqual(self.session.headers['Authorization'], 'lin_api_test')
        self.assertEqual(self.session.headers['Content-Type'], 'application/json')

    def test_post_sends_query(self):
        self.session.post.return_value = make_response(body={'data': {}})

        result = self.client.post('query { viewer { id } }')

        self.assertEqual(result, {'data': {}})
        self.session.post.assert_called_once_with(
            'https://api.linear.app/graphql',
            json={'query': 'query { viewer { id } }'},
            timeout=None
        )

    def test_variables_are_sent_when_present(self):
        self.session.post.return_value = make_response(body={'data': {}})
        self.client.post('query', {'first': 5})
        self.assertEqual(self.session.post.call_args[1]['json']['variables'], {'first': 5})

    def test_network_errors(self):
        for error in (requests.exceptions.ConnectionError('refused'),
                      requests.exceptions.Timeout('timed out')):
            self.session.post.side_effect = error
            with self.assertRaises(LinearAPIError) as context:
                self.client.execute('query')
            self.assertIn('Network error', str(context.exception))

    def test_unauthorized(self):
        self.session.post.return_value = make_response(401, reason='Unauthorized')
        with self.assertRaises(LinearAPIError) as context:
            self.client.post('query')
        self.assertEqual(str(context.exception), 'HTTP 401: Unauthorized - check your API token')

    def test_bad_request_includes_graphql_messages(self):
        body = {'errors': [{'message': 'Unknown field'}, {'message': 'Bad filter'}]}
        self.session.post.return_value = make_response(400, body=body, reason='Bad Request')
        with self.assertRaises(LinearAPIError) as context:
            self.client.post('query')
        self.assertEqual(str(context.exception), 'HTTP 400: Bad Request - Unknown field, Bad filter')

    def test_bad_request_without_body(self):
        self.session.post.return_value = make_response(400, reason='Bad Request')
        with self.assertRaises(LinearAPIError) as context:
            self.client.post('query')
        self.assertEqual(str(context.exception), 'HTTP 400: Bad Request')

    def test_other_status_codes(self):
        cases = [
            (403, 'Forbidden', 'HTTP 403: Forbidden - insufficient permissions'),
            (429, 'Too Many Requests', 'HTTP 429: Rate limited'),
            (500, 'Internal Server Error', 'HTTP 500: Internal Server Error'),
        ]
        for code, reason, expected in cases:
            self.session.post.return_value = make_response(code, reason=reason)
            with self.assertRaises(LinearAPIError) as context:
                self.client.post('query')
            self.assertEqual(str(context.exception), expected)

    def test_graphql_errors_on_success_status(self):
        body = {'errors': [{'message': 'first'}, {'message': 'second'}]}
        self.session.post.return_value = make_response(body=body)
        with self.assertRaises(LinearAPIError) as context:
            self.client.post('query')
        self.assertEqual(str(context.exception), 'GraphQL errors: first, second')

    def test_invalid_json(self):
        self.session.post.return_value = make_response(200)
        with self.assertRaises(LinearAPIError) as context:
            self.client.post('query')
        self.assertIn('Invalid JSON response', str(context.exception))


class TestParseIssuesResponse(unittest.TestCase):
    """Test the tolerant page parser"""

    def test_valid_page(self):
        page = parse_issues_response(make_response(body=page_body(['a', 'b'], True, 'c1')))
        self.assertEqual(page, IssuePage([{'id': 'a'}, {'id': 'b'}], True, 'c1'))

    def test_page_info_defaults(self):
        body = {'data': {'issues': {}}}
        page = parse_issues_response(make_response(body=body))
        self.assertEqual(page.issues, [])
        self.assertFalse(page.has_next_page)
        self.assertIsNone(page.end_cursor)

    def test_non_200_returns_none(self):
        self.assertIsNone(parse_issues_response(make_response(502, reason='Bad Gateway')))

    def test_invalid_json_returns_none(self):
        self.assertIsNone(parse_issues_response(make_response(200)))

    def test_graphql_errors_return_none_and_are_reported(self):
        status = Mock()
        body = {'errors': [{'message': 'Rate limit exceeded'}], 'data': None}

        self.assertIsNone(parse_issues_response(make_response(body=body), status=status))

        printed = [call[0][0] for call in status.print.call_args_list]
        self.assertTrue(any('Rate limit exceeded' in message for message in printed))

    def test_missing_issues_returns_none(self):
        self.assertIsNone(parse_issues_response(make_response(body={'data': {}})))


class TestPageState(unittest.TestCase):
    """Test pagination bookkeeping"""

    def test_initial_state(self):
        state = PageState()
        self.assertEqual(state.current_page, 1)
        self.assertTrue(state.has_next_page)
        self.assertIsNone(state.after_cursor)
        self.assertFalse(state.safety_limit_reached())

    def test_update(self):
        state = PageState()
        state.update(IssuePage([], True, 'c1'))
        self.assertEqual(state.current_page, 2)
        self.assertEqual(state.after_cursor, 'c1')
        self.assertEqual(state.pages_fetched, 1)

    def test_safety_limit(self):
        state = PageState(max_pages=2)
        state.update(IssuePage([], True, 'c1'))
        self.assertFalse(state.safety_limit_reached())
        state.update(IssuePage([], True, 'c2'))
        self.assertTrue(state.safety_limit_reached())


class TestLinearPaginator(unittest.TestCase):
    """Test cursor pagination"""

    def setUp(self):
        self.http_client = Mock()
        self.status = Mock()
        self.paginator = LinearPaginator(self.http_client, status=self.status)
        self.options = QueryOptions(page_size=2)

    def test_follows_cursor_until_exhausted(self):
        self.http_client.post.return_value = page_body(['a', 'b'], True, 'c1')
        self.http_client.execute.return_value = make_response(body=page_body(['c']))

        result = self.paginator.fetch_all_pages(self.options)

        self.assertEqual([issue['id'] for issue in result.issues], ['a', 'b', 'c'])
        self.assertEqual(result.pages_fetched, 2)
        self.assertFalse(result.truncated)
        second_query = self.http_client.execute.call_args[0][0]
        self.assertIn('after: "c1"', second_query)

    def test_single_page(self):
        self.http_client.post.return_value = page_body(['a'])

        result = self.paginator.fetch_all_pages(self.options)

        self.assertEqual(len(result.issues), 1)
        self.http_client.execute.assert_not_called()

    def test_errors_on_later_page_keep_accumulated_issues(self):
        self.http_client.post.return_value = page_body(['a', 'b'], True, 'c1')
        self.http_client.execute.return_value = make_response(
            body={'errors': [{'message': 'Internal error'}]}
        )

        result = self.paginator.fetch_all_pages(self.options)

        self.assertEqual([issue['id'] for issue in result.issues], ['a', 'b'])
        self.assertTrue(result.truncated)
        self.assertEqual(self.http_client.execute.call_count, 1)
        self.status.warning.assert_called_once()

    def test_first_page_error_propagates(self):
        self.http_client.post.side_effect = LinearAPIError('HTTP 401: Unauthorized - check your API token')
        with self.assertRaises(LinearAPIError):
            self.paginator.fetch_all_pages(self.options)

    def test_network_error_on_later_page_propagates(self):
        self.http_client.post.return_value = page_body(['a'], True, 'c1')
        self.http_client.execute.side_effect = LinearAPIError('Network error: refused')
        with self.assertRaises(LinearAPIError):
            self.paginator.fetch_all_pages(self.options)

    def test_stops_after_one_hundred_pages(self):
        self.http_client.post.return_value = page_body(['first'], True, 'c0')
        self.http_client.execute.return_value = make_response(body=page_body(['next'], True, 'cN'))

        result = self.paginator.fetch_all_pages(self.options)

        self.assertEqual(result.pages_fetched, 100)
        self.assertEqual(len(result.issues), 100)
        self.assertEqual(self.http_client.post.call_count, 1)
        self.assertEqual(self.http_client.execute.call_count, 99)
        self.assertTrue(result.truncated)
        self.status.warning.assert_called_once()


class TestLinearClient(unittest.TestCase):
    """Test cache orchestration around pagination"""

    def setUp(self):
        self.cache = Mock()
        self.cache.generate_cache_key.return_value = 'abcdef0123456789'
        self.paginator = Mock()
        self.status = Mock()
        self.client = LinearClient(
            'token', status=self.status, cache=self.cache,
            http_client=Mock(), paginator=self.paginator
        )

    def test_cache_hit(self):
        self.cache.get.return_value = [{'id': 'a'}, {'id': 'b'}]

        issues = self.client.fetch_issues({'team_id': 'ROI'})

        self.assertEqual(len(issues), 2)
        self.paginator.fetch_all_pages.assert_not_called()
        message = self.status.info.call_args[0][0]
        self.assertIn('Using cached data (2 issues)', message)

    def test_empty_cached_list_is_a_hit(self):
        self.cache.get.return_value = []
        self.assertEqual(self.client.fetch_issues(QueryOptions()), [])
        self.paginator.fetch_all_pages.assert_not_called()

    def test_cache_miss_fetches_and_stores(self):
        self.cache.get.return_value = None
        self.paginator.fetch_all_pages.return_value = PaginationResult([{'id': 'a'}], 1)

        issues = self.client.fetch_issues({'team_id': 'ROI', 'format': 'json'})

        self.assertEqual(issues, [{'id': 'a'}])
        self.cache.set.assert_called_once_with('abcdef0123456789', [{'id': 'a'}])
        options = self.paginator.fetch_all_pages.call_args[0][0]
        self.assertIsInstance(options, QueryOptions)
        self.assertEqual(options.team_id, 'ROI')

    def test_truncated_results_are_not_cached(self):
        self.cache.get.return_value = None
        self.paginator.fetch_all_pages.return_value = PaginationResult(
            [{'id': 'a'}], 1, truncated=True, reason='page 2 could not be parsed'
        )

        issues = self.client.fetch_issues({})

        self.assertEqual(issues, [{'id': 'a'}])
        self.cache.set.assert_not_called()

    def test_no_cache_skips_read_and_write(self):
        self.paginator.fetch_all_pages.return_value = PaginationResult([{'id': 'a'}], 1)

        self.client.fetch_issues({'no_cache': True})

        self.cache.get.assert_not_called()
        self.cache.set.assert_not_called()

    def test_api_errors_propagate(self):
        self.cache.get.return_value = None
        self.paginator.fetch_all_pages.side_effect = LinearAPIError('HTTP 429: Rate limited')

        with self.assertRaises(LinearAPIError):
            self.client.fetch_issues({})
        self.status.stop.assert_called_once()


if __name__ == '__main__':
    unittest.main()
