#!/usr/bin/env python3
"""
Kanban flow metrics

Calculators turn a list of issues (API dicts, RawIssue, or Issue) into
cycle time, lead time, throughput, and flow efficiency figures, overall and
per team. Time metrics are computed with pandas over the issues where the
metric is defined.
"""

from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from config import ACTIVE_STATE_TYPES, DEFAULT_TEAM_NAME
from issue_models import Issue, IssueLike
from timeline import build_timeline
from utils_dates import days_between

INVALID_DATE_KEY = 'invalid-date'
WEEK_FORMAT = '%Y-W%U'


def _to_issues(issues: Optional[List[IssueLike]]) -> List[Issue]:
    return [Issue(issue) for issue in (issues or [])]


def partition_issues(issues: List[IssueLike]) -> Tuple[List[Issue], List[Issue], List[Issue]]:
    """Split issues into (completed, in_progress, backlog)"""
    completed, in_progress, backlog = [], [], []
    for issue in _to_issues(issues):
        if issue.is_completed:
            completed.append(issue)
        elif issue.is_in_progress:
            in_progress.append(issue)
        else:
            backlog.append(issue)
    return completed, in_progress, backlog


def empty_time_stats() -> Dict[str, float]:
    return {'average': 0.0, 'median': 0.0, 'p95': 0.0}


def empty_throughput_stats() -> Dict[str, Any]:
    return {'weekly_avg': 0.0, 'total_completed': 0, 'weekly_counts': {}}


class TimeMetricsCalculator:
    """Cycle and lead time statistics"""

    def __init__(self, issues: List[IssueLike]):
        self.issues = _to_issues(issues)

    def cycle_time_stats(self) -> Dict[str, float]:
        return self._build_time_stats([issue.cycle_time_days for issue in self.issues])

    def lead_time_stats(self) -> Dict[str, float]:
        return self._build_time_stats([issue.lead_time_days for issue in self.issues])

    def cycle_time_for_issue(self, issue_data: IssueLike) -> Optional[float]:
        return Issue(issue_data).cycle_time_days

    def lead_time_for_issue(self, issue_data: IssueLike) -> Optional[float]:
        return Issue(issue_data).lead_time_days

    @staticmethod
    def _build_time_stats(times: List[Optional[float]]) -> Dict[str, float]:
        """Average, median and 95th percentile, skipping undefined values"""
        series = pd.Series([t for t in times if t is not None], dtype='float64')
        if series.empty:
            return empty_time_stats()

        return {
            'average': round(float(series.mean()), 2),
            'median': round(float(series.median()), 2),
            'p95': round(float(series.quantile(0.95, interpolation='nearest')), 2),
        }


class ThroughputCalculator:
    """Weekly throughput of completed issues"""

    def __init__(self, completed_issues: List[IssueLike]):
        self.completed_issues = _to_issues(completed_issues)

    def completion_timestamps(self) -> List[Optional[datetime]]:
        """Completion time of each issue, in input order"""
        return [issue.completed_at for issue in self.completed_issues]

    def weekly_counts(self) -> Dict[str, int]:
        """Completions per '%Y-W%U' week, weeks ascending"""
        timestamps = self.completion_timestamps()
        valid = [ts for ts in timestamps if ts is not None]
        missing = len(timestamps) - len(valid)

        weeks = list(pd.to_datetime(valid, utc=True).strftime(WEEK_FORMAT)) if valid else []
        weeks.extend([INVALID_DATE_KEY] * missing)
        if not weeks:
            return {}

        counts = pd.Series(weeks).value_counts().sort_index()
        return {week: int(count) for week, count in counts.items()}

    def stats(self) -> Dict[str, Any]:
        if not self.completed_issues:
            return empty_throughput_stats()

        weekly_counts = self.weekly_counts()
        weekly_avg = round(float(pd.Series(list(weekly_counts.values())).mean()), 2)
        return {
            'weekly_avg': weekly_avg,
            'total_completed': len(self.completed_issues),
            'weekly_counts': weekly_counts,
        }


class FlowEfficiencyCalculator:
    """
    Share of elapsed time spent in active states.

    Time between two consecutive status changes counts as active when the
    earlier change moved the issue into a started or unstarted state. The
    creation event is not a workflow state and is left out of the walk.
    """

    def __init__(self, issues: List[IssueLike]):
        self.issues = _to_issues(issues)

    def issue_efficiency(self, issue_data: IssueLike) -> float:
        """Active time / total time for one issue, 0.0 without transitions"""
        events = [event for event in build_timeline(issue_data) if not event.is_creation]

        active_time = 0.0
        total_time = 0.0
        for current, following in zip(events, events[1:]):
            duration = days_between(current.timestamp, following.timestamp)
            total_time += duration
            if current.to_state_type in ACTIVE_STATE_TYPES:
                active_time += duration

        if total_time <= 0:
            return 0.0
        return active_time / total_time

    def calculate(self) -> float:
        """Mean efficiency across issues as a percentage"""
        if not self.issues:
            return 0.0

        total_efficiency = sum(self.issue_efficiency(issue) for issue in self.issues)
        return round(total_efficiency / len(self.issues) * 100, 2)


class KanbanMetricsCalculator:
    """Overall and per-team kanban metrics"""

    def __init__(self, issues: List[IssueLike]):
        self.issues = _to_issues(issues)

    def overall_metrics(self) -> Dict[str, Any]:
        if not self.issues:
            return self.empty_metrics()
        return self._metrics_for(self.issues, full_throughput=True)

    def team_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Metrics keyed by team name; throughput is the completed count"""
        if not self.issues:
            return {}

        teams = defaultdict(list)
        for issue in self.issues:
            teams[issue.team_name or DEFAULT_TEAM_NAME].append(issue)

        return {team: self._metrics_for(team_issues) for team, team_issues in teams.items()}

    def _metrics_for(self, issues: List[Issue], full_throughput: bool = False) -> Dict[str, Any]:
        completed, in_progress, backlog = partition_issues(issues)

        metrics = {
            'total_issues': len(issues),
            'completed_issues': len(completed),
            'in_progress_issues': len(in_progress),
            'backlog_issues': len(backlog),
        }

        if not completed:
            metrics.update(self.empty_time_based_metrics())
            if not full_throughput:
                metrics['throughput'] = 0
            return metrics

        time_calculator = TimeMetricsCalculator(completed)
        throughput = ThroughputCalculator(completed).stats()
        metrics.update({
            'cycle_time': time_calculator.cycle_time_stats(),
            'lead_time': time_calculator.lead_time_stats(),
            'throughput': throughput if full_throughput else throughput['total_completed'],
            'flow_efficiency': FlowEfficiencyCalculator(completed).calculate(),
        })
        return metrics

    @staticmethod
    def empty_time_based_metrics() -> Dict[str, Any]:
        return {
            'cycle_time': empty_time_stats(),
            'lead_time': empty_time_stats(),
            'throughput': empty_throughput_stats(),
            'flow_efficiency': 0.0,
        }

    @classmethod
    def empty_metrics(cls) -> Dict[str, Any]:
        metrics = {
            'total_issues': 0,
            'completed_issues': 0,
            'in_progress_issues': 0,
            'backlog_issues': 0,
        }
        metrics.update(cls.empty_time_based_metrics())
        return metrics
