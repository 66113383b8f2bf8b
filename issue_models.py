#!/usr/bin/env python3
"""
Issue models for Linear Kanban Metrics

RawIssue mirrors the Linear GraphQL issue node with every field optional.
Issue is a thin computed-properties layer over a RawIssue: derived start
time, cycle and lead time, and status classification.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union

from config import CANCELED_STATE_TYPES
from utils import nested_dict, nested_get, opt_float, opt_int, opt_str, truncate_title
from utils_dates import days_between, parse_timestamp


@dataclass(frozen=True)
class WorkflowState:
    """Workflow state (issue status). Types: backlog, unstarted, started, completed, canceled"""
    id: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None

    @classmethod
    def from_api(cls, node: Any) -> Optional['WorkflowState']:
        if not isinstance(node, dict):
            return None
        return cls(
            id=opt_str(node.get('id')),
            name=opt_str(node.get('name')),
            type=opt_str(node.get('type')),
        )

    def to_api(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'type': self.type}


@dataclass(frozen=True)
class HistoryEntry:
    """One entry of an issue's history log"""
    id: Optional[str] = None
    created_at: Optional[str] = None
    from_state: Optional[WorkflowState] = None
    to_state: Optional[WorkflowState] = None

    @classmethod
    def from_api(cls, node: Dict[str, Any]) -> 'HistoryEntry':
        return cls(
            id=opt_str(node.get('id')),
            created_at=opt_str(node.get('createdAt')),
            from_state=WorkflowState.from_api(node.get('fromState')),
            to_state=WorkflowState.from_api(node.get('toState')),
        )

    def to_api(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'createdAt': self.created_at,
            'fromState': self.from_state.to_api() if self.from_state else None,
            'toState': self.to_state.to_api() if self.to_state else None,
        }


@dataclass(frozen=True)
class RawIssue:
    """Container for an issue record as returned by the Linear API"""
    id: Optional[str] = None
    identifier: Optional[str] = None
    title: Optional[str] = None
    priority: Optional[int] = None
    estimate: Optional[float] = None
    state: Optional[WorkflowState] = None
    team_id: Optional[str] = None
    team_name: Optional[str] = None
    assignee_id: Optional[str] = None
    assignee_name: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    archived_at: Optional[str] = None
    history: Tuple[HistoryEntry, ...] = ()

    @classmethod
    def from_api(cls, node: Dict[str, Any]) -> 'RawIssue':
        """
        Parse a raw GraphQL issue node.

        Args:
            node: Untyped issue node from a GraphQL response

        Returns:
            RawIssue with coerced fields; missing or malformed values become None
        """
        history_nodes = nested_get(node, 'history', 'nodes')
        history = ()
        if isinstance(history_nodes, list):
            history = tuple(
                HistoryEntry.from_api(entry) for entry in history_nodes if isinstance(entry, dict)
            )

        team = nested_dict(node, 'team') or {}
        assignee = nested_dict(node, 'assignee') or {}

        return cls(
            id=opt_str(node.get('id')),
            identifier=opt_str(node.get('identifier')),
            title=opt_str(node.get('title')),
            priority=opt_int(node.get('priority')),
            estimate=opt_float(node.get('estimate')),
            state=WorkflowState.from_api(node.get('state')),
            team_id=opt_str(team.get('id')),
            team_name=opt_str(team.get('name')),
            assignee_id=opt_str(assignee.get('id')),
            assignee_name=opt_str(assignee.get('name')),
            created_at=opt_str(node.get('createdAt')),
            updated_at=opt_str(node.get('updatedAt')),
            started_at=opt_str(node.get('startedAt')),
            completed_at=opt_str(node.get('completedAt')),
            archived_at=opt_str(node.get('archivedAt')),
            history=history,
        )

    def to_api(self) -> Dict[str, Any]:
        """Return the API-shaped dict for this record"""
        return {
            'id': self.id,
            'identifier': self.identifier,
            'title': self.title,
            'state': self.state.to_api() if self.state else None,
            'team': {'id': self.team_id, 'name': self.team_name} if self.team_id or self.team_name else None,
            'assignee': (
                {'id': self.assignee_id, 'name': self.assignee_name}
                if self.assignee_id or self.assignee_name else None
            ),
            'priority': self.priority,
            'estimate': self.estimate,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
            'completedAt': self.completed_at,
            'startedAt': self.started_at,
            'archivedAt': self.archived_at,
            'history': {'nodes': [entry.to_api() for entry in self.history]},
        }


IssueLike = Union[Dict[str, Any], RawIssue, 'Issue']


def to_raw_issue(issue_data: IssueLike) -> RawIssue:
    """Normalize an API dict, RawIssue, or Issue to a RawIssue"""
    if isinstance(issue_data, Issue):
        return issue_data.raw
    if isinstance(issue_data, RawIssue):
        return issue_data
    if isinstance(issue_data, dict):
        return RawIssue.from_api(issue_data)
    if issue_data is None:
        raise TypeError('Issue data cannot be None')
    raise TypeError(f'Invalid issue data type: {type(issue_data).__name__}. Expected dict, RawIssue or Issue')


class Issue:
    """Linear issue with calculated flow properties"""

    def __init__(self, issue_data: IssueLike):
        # Wrapping an Issue reuses its record, so wrapping never nests
        self.raw = to_raw_issue(issue_data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Issue):
            return NotImplemented
        return self.raw == other.raw

    def __hash__(self) -> int:
        return hash(self.raw)

    # Core fields

    @property
    def id(self) -> Optional[str]:
        return self.raw.id

    @property
    def identifier(self) -> Optional[str]:
        return self.raw.identifier

    @property
    def title(self) -> Optional[str]:
        return self.raw.title

    @property
    def priority(self) -> Optional[int]:
        return self.raw.priority

    @property
    def estimate(self) -> Optional[float]:
        return self.raw.estimate

    @property
    def state_name(self) -> Optional[str]:
        return self.raw.state.name if self.raw.state else None

    @property
    def state_type(self) -> Optional[str]:
        return self.raw.state.type if self.raw.state else None

    @property
    def team_name(self) -> Optional[str]:
        return self.raw.team_name

    @property
    def assignee_name(self) -> Optional[str]:
        return self.raw.assignee_name

    # Timestamps

    @property
    def created_at(self) -> Optional[datetime]:
        return parse_timestamp(self.raw.created_at)

    @property
    def updated_at(self) -> Optional[datetime]:
        return parse_timestamp(self.raw.updated_at)

    @property
    def completed_at(self) -> Optional[datetime]:
        return parse_timestamp(self.raw.completed_at)

    @property
    def archived_at(self) -> Optional[datetime]:
        return parse_timestamp(self.raw.archived_at)

    @property
    def started_at(self) -> Optional[datetime]:
        """Explicit startedAt, else when the issue first moved into a started-type state"""
        explicit = parse_timestamp(self.raw.started_at)
        if explicit is not None:
            return explicit
        return self._history_start_time()

    def _history_start_time(self) -> Optional[datetime]:
        start_times = [
            parse_timestamp(entry.created_at)
            for entry in self.raw.history
            if entry.to_state is not None and entry.to_state.type == 'started'
        ]
        start_times = [moment for moment in start_times if moment is not None]
        return min(start_times) if start_times else None

    # Time metrics

    @property
    def cycle_time_days(self) -> Optional[float]:
        """Days from work start to completion"""
        return self._elapsed_days(self.started_at, self.completed_at)

    @property
    def lead_time_days(self) -> Optional[float]:
        """Days from creation to completion"""
        return self._elapsed_days(self.created_at, self.completed_at)

    @staticmethod
    def _elapsed_days(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
        if start is None or end is None:
            return None
        if end < start:
            return None
        return round(days_between(start, end), 2)

    # Status classification

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def is_in_progress(self) -> bool:
        return self.started_at is not None and self.completed_at is None

    @property
    def is_backlog(self) -> bool:
        return self.started_at is None and self.completed_at is None

    @property
    def is_canceled(self) -> bool:
        return self.state_type in CANCELED_STATE_TYPES

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    def to_api(self) -> Dict[str, Any]:
        return self.raw.to_api()

    def __str__(self) -> str:
        title_display = truncate_title(self.title, 50) if self.title else 'No title'
        return f"Issue[{self.identifier or self.id}]: {title_display}"

    def __repr__(self) -> str:
        return (
            f"<Issue id={self.id!r} identifier={self.identifier!r} "
            f"state={self.state_type!r} completed={self.is_completed}>"
        )
