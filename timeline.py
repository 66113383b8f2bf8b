#!/usr/bin/env python3
"""
Issue timelines and status-transition timeseries

A timeline is the ordered list of state changes of one issue, starting with
a synthesized creation event. TimeseriesAnalyzer aggregates timelines across
issues: transition counts, average days spent in each status, and daily
activity counts.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from issue_models import Issue, IssueLike
from utils_dates import calendar_days_between, parse_date, parse_timestamp

CREATED_EVENT = 'created'
STATUS_CHANGE_EVENT = 'status_change'
UNKNOWN_STATE = 'Unknown'


@dataclass(frozen=True)
class TimelineEvent:
    """One point on an issue timeline"""
    date: str
    from_state: Optional[str]
    to_state: str
    event_type: str
    from_state_type: Optional[str] = None
    to_state_type: Optional[str] = None

    @property
    def timestamp(self) -> Optional[datetime]:
        return parse_timestamp(self.date)

    @property
    def is_creation(self) -> bool:
        return self.event_type == CREATED_EVENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'from_state': self.from_state,
            'to_state': self.to_state,
            'event_type': self.event_type,
        }


def _creation_event(issue: Issue) -> Optional[TimelineEvent]:
    if not issue.raw.created_at:
        return None
    return TimelineEvent(
        date=issue.raw.created_at,
        from_state=None,
        to_state=CREATED_EVENT,
        event_type=CREATED_EVENT,
    )


def _history_events(issue: Issue) -> List[TimelineEvent]:
    events = []
    for entry in issue.raw.history:
        # Entries without a target state are not status changes
        if entry.to_state is None:
            continue
        events.append(TimelineEvent(
            date=entry.created_at,
            from_state=entry.from_state.name if entry.from_state else None,
            to_state=entry.to_state.name or UNKNOWN_STATE,
            event_type=STATUS_CHANGE_EVENT,
            from_state_type=entry.from_state.type if entry.from_state else None,
            to_state_type=entry.to_state.type,
        ))
    return events


def build_timeline(issue_data: IssueLike) -> List[TimelineEvent]:
    """
    Build the chronological timeline of an issue.

    Args:
        issue_data: API dict, RawIssue, or Issue

    Returns:
        Events sorted ascending by time; events without a parseable date are dropped
    """
    issue = Issue(issue_data)

    events = []
    creation = _creation_event(issue)
    if creation is not None:
        events.append(creation)
    events.extend(_history_events(issue))

    events = [event for event in events if event.timestamp is not None]
    # sorted() is stable, so simultaneous events keep their history order
    return sorted(events, key=lambda event: event.timestamp)


def _pairs(events: List[TimelineEvent]):
    return zip(events, events[1:])


class TimeseriesAnalyzer:
    """Aggregates timelines across a set of issues"""

    def __init__(self, issues: List[IssueLike]):
        self.issues = [Issue(issue) for issue in issues]

    def _timelines(self):
        for issue in self.issues:
            yield issue, build_timeline(issue)

    def status_flow_analysis(self) -> Dict[str, int]:
        """Transition counts keyed 'From → To', most frequent first"""
        transitions = Counter()
        for _, timeline in self._timelines():
            for current, following in _pairs(timeline):
                transitions[f"{current.to_state} → {following.to_state}"] += 1
        return dict(sorted(transitions.items(), key=lambda item: -item[1]))

    def average_time_in_status(self) -> Dict[str, float]:
        """Average calendar days spent in each status before the next change"""
        durations = defaultdict(list)
        for _, timeline in self._timelines():
            for current, following in _pairs(timeline):
                durations[current.to_state].append(
                    calendar_days_between(current.date, following.date)
                )

        return {
            status: round(sum(values) / len(values), 2) if values else 0
            for status, values in durations.items()
        }

    def daily_status_counts(self) -> Dict[str, Dict[str, int]]:
        """Per calendar day (YYYY-MM-DD, ascending), how many events reached each status"""
        events = []
        for issue, timeline in self._timelines():
            for event in timeline:
                events.append({
                    'issue_id': issue.identifier,
                    'date': event.date,
                    'timestamp': event.timestamp,
                    'to_state': event.to_state,
                    'event_type': event.event_type,
                })
        events.sort(key=lambda event: event['timestamp'])

        by_date = defaultdict(Counter)
        for event in events:
            day = parse_date(event['date'])
            by_date[day.isoformat()][event['to_state']] += 1

        return {day: dict(counts) for day, counts in sorted(by_date.items())}


class TicketTimeseries(TimeseriesAnalyzer):
    """Per-ticket timelines plus the aggregate analyses"""

    def generate_timeseries(self) -> List[Dict[str, Any]]:
        return [
            {
                'id': issue.identifier,
                'title': issue.title,
                'team': issue.team_name,
                'timeline': timeline,
            }
            for issue, timeline in self._timelines()
        ]

    def find(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Timeseries entry for one issue identifier, or None"""
        for entry in self.generate_timeseries():
            if entry['id'] == identifier:
                return entry
        return None
