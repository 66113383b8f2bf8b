#!/usr/bin/env python3
"""
Linear API client

Fetches issues from the Linear GraphQL API following cursor-based
pagination, with a same-day file cache in front of the API.

Classes:
  LinearHttpClient  -- authenticated POST to the GraphQL endpoint
  LinearPaginator   -- follows endCursor until exhaustion or the page ceiling
  LinearClient      -- cache lookup, pagination, cache write

Functions:
  parse_issues_response(response)  -- tolerant parser for one page
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from config import LINEAR_API_BASE_URL, LINEAR_GRAPHQL_PATH, MAX_PAGES
from linear_cache import IssueCache
from linear_query import QueryOptions, build_issues_query


class LinearAPIError(Exception):
    """Raised when a request to the Linear API fails"""
    pass


@dataclass
class IssuePage:
    """Issue nodes and page info extracted from one response"""
    issues: List[Dict[str, Any]]
    has_next_page: bool = False
    end_cursor: Optional[str] = None


@dataclass
class PaginationResult:
    """Everything fetched in one pagination run"""
    issues: List[Dict[str, Any]] = field(default_factory=list)
    pages_fetched: int = 0
    truncated: bool = False
    reason: Optional[str] = None


def _error_messages(errors: Any) -> List[str]:
    if not isinstance(errors, list):
        return [str(errors)]
    return [
        str(error.get('message', 'GraphQL error')) if isinstance(error, dict) else str(error)
        for error in errors
    ]


class LinearHttpClient:
    """Handles HTTP requests to the Linear GraphQL endpoint"""

    def __init__(self, api_token: str, base_url: str = LINEAR_API_BASE_URL,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.api_token = api_token
        self.graphql_url = f"{base_url.rstrip('/')}{LINEAR_GRAPHQL_PATH}"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': api_token,
            'Content-Type': 'application/json'
        })

    def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> requests.Response:
        """
        Send a GraphQL request and return the raw response.

        Raises:
            LinearAPIError: On network-level failures (timeout, refused, DNS, unreachable)
        """
        payload = {"query": query}
        if variables:
            payload["variables"] = variables

        try:
            return self.session.post(self.graphql_url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise LinearAPIError(f"Network error: {e}") from e

    def post(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send a GraphQL request and return the parsed JSON body.

        Raises:
            LinearAPIError: On network failures, non-200 status, GraphQL errors, or invalid JSON
        """
        response = self.execute(query, variables)
        return self.handle_response(response)

    def handle_response(self, response: requests.Response) -> Dict[str, Any]:
        """Map the response to its JSON body or a LinearAPIError"""
        code = response.status_code

        if code == 200:
            try:
                data = response.json()
            except ValueError as e:
                raise LinearAPIError(f"Invalid JSON response: {e}") from e
            if not isinstance(data, dict):
                raise LinearAPIError("Invalid JSON response: expected an object")
            if data.get('errors'):
                messages = ', '.join(_error_messages(data['errors']))
                raise LinearAPIError(f"GraphQL errors: {messages}")
            return data

        if code == 400:
            details = ''
            try:
                error_data = response.json()
            except ValueError:
                error_data = None
            if isinstance(error_data, dict) and error_data.get('errors'):
                details = f" - {', '.join(_error_messages(error_data['errors']))}"
            raise LinearAPIError(f"HTTP {code}: Bad Request{details}")
        if code == 401:
            raise LinearAPIError(f"HTTP {code}: Unauthorized - check your API token")
        if code == 403:
            raise LinearAPIError(f"HTTP {code}: Forbidden - insufficient permissions")
        if code == 429:
            raise LinearAPIError(f"HTTP {code}: Rate limited")

        raise LinearAPIError(f"HTTP {code}: {response.reason}")


def extract_issue_page(data: Any) -> Optional[IssuePage]:
    """Pull issues and normalized page info out of a GraphQL body, or None"""
    issues_data = data.get('data') if isinstance(data, dict) else None
    issues_data = issues_data.get('issues') if isinstance(issues_data, dict) else None
    if not isinstance(issues_data, dict):
        return None

    nodes = issues_data.get('nodes') or []
    page_info = issues_data.get('pageInfo') or {}
    return IssuePage(
        issues=list(nodes),
        has_next_page=bool(page_info.get('hasNextPage') or False),
        end_cursor=page_info.get('endCursor'),
    )


def parse_issues_response(response: requests.Response, status=None) -> Optional[IssuePage]:
    """
    Parse one page of issues.

    Returns None instead of raising when the status is not 200, the body is
    not JSON, the body carries GraphQL errors, or there is no data.issues node.
    """
    if response.status_code != 200:
        if status is not None:
            status.print(f"❌ HTTP Error: {response.status_code} - {response.reason}", style="red")
            status.debug(f"Response body: {response.text}")
        return None

    try:
        data = response.json()
    except ValueError as e:
        if status is not None:
            status.debug(f"❌ JSON Parse Error: {e}")
        return None

    if isinstance(data, dict) and data.get('errors'):
        if status is not None:
            status.print("❌ GraphQL errors:", style="red")
            for message in _error_messages(data['errors']):
                status.print(f"  - {message}", style="red")
        return None

    return extract_issue_page(data)


class PageState:
    """Tracks pagination state"""

    def __init__(self, max_pages: int = MAX_PAGES):
        self.current_page = 1
        self.has_next_page = True
        self.after_cursor = None
        self.max_pages = max_pages

    @property
    def pages_fetched(self) -> int:
        return self.current_page - 1

    def update(self, page: IssuePage):
        self.has_next_page = page.has_next_page
        self.after_cursor = page.end_cursor
        self.current_page += 1

    def safety_limit_reached(self) -> bool:
        return self.current_page > self.max_pages


class LinearPaginator:
    """Fetches every page of issues for a set of query options"""

    def __init__(self, http_client: LinearHttpClient, status=None, max_pages: int = MAX_PAGES):
        self.http_client = http_client
        self.status = status
        self.max_pages = max_pages

    def fetch_all_pages(self, options: QueryOptions) -> PaginationResult:
        """
        Follow endCursor until hasNextPage is false or the page ceiling is hit.

        The first request propagates every LinearAPIError. A later page that
        fails to parse stops pagination and keeps the issues fetched so far.
        """
        result = PaginationResult()
        page_state = PageState(self.max_pages)

        while page_state.has_next_page:
            self._log_page_fetch(page_state.current_page, len(result.issues))

            page = self._fetch_single_page(options, page_state)
            if page is None:
                result.truncated = True
                result.reason = f"page {page_state.current_page} could not be parsed"
                self._warn(f"Stopped at {result.reason}; results may be incomplete "
                           f"({len(result.issues)} issues fetched)")
                break

            result.issues.extend(page.issues)
            page_state.update(page)

            if page_state.safety_limit_reached():
                if page_state.has_next_page:
                    result.truncated = True
                    result.reason = f"safety limit of {self.max_pages} pages reached"
                    self._warn(f"Pagination aborted: {result.reason}; results may be incomplete")
                break

        result.pages_fetched = page_state.pages_fetched
        return result

    def _fetch_single_page(self, options: QueryOptions, page_state: PageState) -> Optional[IssuePage]:
        query = build_issues_query(options, page_state.after_cursor, status=self.status)

        if page_state.current_page == 1:
            return extract_issue_page(self.http_client.post(query))

        response = self.http_client.execute(query)
        return parse_issues_response(response, status=self.status)

    def _log_page_fetch(self, page: int, total_issues: int):
        if self.status is None:
            return
        self.status.update(f"📄 Fetching page {page} ({total_issues} issues so far)...")
        self.status.debug(f"📄 Fetching page {page}...")

    def _warn(self, message: str):
        if self.status is not None:
            self.status.warning(message)


class LinearClient:
    """Handles Linear API interactions with caching"""

    def __init__(self, api_token: str, status=None, cache: Optional[IssueCache] = None,
                 http_client: Optional[LinearHttpClient] = None,
                 paginator: Optional[LinearPaginator] = None):
        self.status = status
        self.http_client = http_client or LinearHttpClient(api_token)
        self.paginator = paginator or LinearPaginator(self.http_client, status=status)
        self.cache = cache or IssueCache(status=status)
        self.last_result: Optional[PaginationResult] = None

    @classmethod
    def from_config(cls, config, status=None) -> 'LinearClient':
        """Create a client wired to the configured cache directory and timeout"""
        http_client = LinearHttpClient(config.api_token, timeout=config.request_timeout)
        return cls(
            config.api_token,
            status=status,
            cache=IssueCache.from_config(config, status=status),
            http_client=http_client,
        )

    def fetch_issues(self, options=None) -> List[Dict[str, Any]]:
        """
        Fetch all issues matching the options.

        Args:
            options: QueryOptions or a CLI option dict

        Returns:
            Flat list of raw issue records

        Raises:
            LinearAPIError: If the API request fails
        """
        if not isinstance(options, QueryOptions):
            options = QueryOptions.from_dict(options)

        if options.no_cache:
            self._debug("🔄 Cache disabled, fetching from API...")
            return self._fetch_from_api(options).issues

        cache_key = self.cache.generate_cache_key(options)
        cached_issues = self.cache.get(cache_key)
        if isinstance(cached_issues, list):
            self._info(f"✅ Using cached data ({len(cached_issues)} issues) - cache key: {cache_key[:8]}...")
            return cached_issues

        self._info("🔄 Cache miss or expired, fetching from API...")
        result = self._fetch_from_api(options)

        if result.truncated:
            self._debug("Partial result not cached")
        else:
            self.cache.set(cache_key, result.issues)

        return result.issues

    def _fetch_from_api(self, options: QueryOptions) -> PaginationResult:
        self._start("⏳ Fetching issues from Linear...")
        try:
            result = self.paginator.fetch_all_pages(options)
        finally:
            self._stop()

        self.last_result = result
        self._debug(f"✅ Successfully fetched {len(result.issues)} total issues "
                    f"in {result.pages_fetched} pages")
        return result

    def _start(self, message: str):
        if self.status is not None:
            self.status.start(message)

    def _stop(self):
        if self.status is not None:
            self.status.stop()

    def _info(self, message: str):
        if self.status is not None:
            self.status.info(message)

    def _debug(self, message: str):
        if self.status is not None:
            self.status.debug(message)
