#!/usr/bin/env python3
"""
Linear GraphQL query construction

QueryOptions captures the request shape of one run. build_issues_query turns
the options plus an optional pagination cursor into the issues query string.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from config import DEFAULT_PAGE_SIZE, HISTORY_LIMIT, MAX_PAGE_SIZE, MIN_PAGE_SIZE

TEAM_UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.IGNORECASE
)

ISSUE_FIELDS = f"""
        id identifier title
        state {{ id name type }}
        team {{ id name }}
        assignee {{ id name }}
        priority estimate createdAt updatedAt completedAt startedAt archivedAt
        history(first: {HISTORY_LIMIT}) {{
          nodes {{
            id createdAt
            fromState {{ id name type }}
            toState {{ id name type }}
          }}
        }}
"""


def normalize_page_size(size: Any) -> int:
    """
    Clamp a page size into [1, 250].

    Numeric strings are converted first and fractions are truncated;
    anything that is not a finite number falls back to the default of 250.
    """
    if size is None or isinstance(size, bool) or not isinstance(size, (str, int, float)):
        return DEFAULT_PAGE_SIZE

    try:
        normalized = int(float(size.strip())) if isinstance(size, str) else int(size)
    except (ValueError, OverflowError):
        return DEFAULT_PAGE_SIZE

    return min(max(normalized, MIN_PAGE_SIZE), MAX_PAGE_SIZE)


@dataclass(frozen=True)
class QueryOptions:
    """Immutable request shape: filters, page size, and cache behaviour"""
    team_id: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    page_size: Any = DEFAULT_PAGE_SIZE
    no_cache: bool = False
    include_archived: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'page_size', normalize_page_size(self.page_size))
        object.__setattr__(self, 'no_cache', bool(self.no_cache))
        object.__setattr__(self, 'include_archived', bool(self.include_archived))

    @classmethod
    def from_dict(cls, options: Optional[Mapping[str, Any]] = None) -> 'QueryOptions':
        """Build from a CLI option dict; presentation keys like 'format' are ignored"""
        options = options or {}
        return cls(
            team_id=options.get('team_id') or None,
            start_date=options.get('start_date') or None,
            end_date=options.get('end_date') or None,
            page_size=options.get('page_size'),
            no_cache=options.get('no_cache') or False,
            include_archived=options.get('include_archived') or False,
        )

    def cache_key_data(self) -> Dict[str, Any]:
        """Fields that change the API result, with absent values dropped"""
        data = {
            'team_id': self.team_id,
            'start_date': self.start_date,
            'end_date': self.end_date,
            'page_size': self.page_size,
            'include_archived': self.include_archived,
        }
        return {key: value for key, value in data.items() if value is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'team_id': self.team_id,
            'start_date': self.start_date,
            'end_date': self.end_date,
            'page_size': self.page_size,
            'no_cache': self.no_cache,
            'include_archived': self.include_archived,
        }


def is_team_uuid(team_identifier: str) -> bool:
    """Team UUIDs are 36 characters in 8-4-4-4-12 hex groups; keys are short codes like ROI"""
    return bool(TEAM_UUID_PATTERN.match(team_identifier))


def _team_filter(team_identifier: str) -> str:
    if is_team_uuid(team_identifier):
        return f'team: {{ id: {{ eq: "{team_identifier}" }} }}'
    return f'team: {{ key: {{ eq: "{team_identifier}" }} }}'


def _date_filter(start_date: Optional[str], end_date: Optional[str]) -> str:
    conditions = []
    if start_date:
        conditions.append(f'gte: "{start_date}T00:00:00.000Z"')
    if end_date:
        conditions.append(f'lte: "{end_date}T23:59:59.999Z"')
    return f"updatedAt: {{ {', '.join(conditions)} }}"


def build_filter_arguments(options: QueryOptions) -> str:
    """Filter and includeArchived arguments, each followed by ', ' (empty when unused)"""
    filters = []
    if options.team_id:
        filters.append(_team_filter(options.team_id))
    if options.start_date or options.end_date:
        filters.append(_date_filter(options.start_date, options.end_date))

    arguments = f"filter: {{ {', '.join(filters)} }}, " if filters else ''

    # includeArchived is a top-level argument, not part of the filter
    if options.include_archived:
        arguments += 'includeArchived: true, '

    return arguments


def build_pagination_arguments(options: QueryOptions, after_cursor: Optional[str] = None) -> str:
    arguments = [f'first: {options.page_size}']
    if after_cursor:
        arguments.append(f'after: "{after_cursor}"')
    return ', '.join(arguments)


def build_issues_query(options: QueryOptions, after_cursor: Optional[str] = None, status=None) -> str:
    """
    Build the issues query for one page.

    Args:
        options: Normalized query options
        after_cursor: endCursor of the previous page, if any
        status: Optional StatusDisplay for debug output

    Returns:
        GraphQL query string
    """
    arguments = build_filter_arguments(options) + build_pagination_arguments(options, after_cursor)

    if status is not None:
        status.debug(f"🔍 GraphQL Query: issues({arguments})")

    return f"""
    query {{
      issues({arguments}) {{
        pageInfo {{ hasNextPage endCursor }}
        nodes {{{ISSUE_FIELDS}        }}
      }}
    }}
    """
