#!/usr/bin/env python3
"""
Unit tests for kanban metric calculators
"""
# /// script
# requires-python = ">=3.8"
# dependencies = [
#     "pandas",
#     "pytest",
# ]
# ///

import unittest
import os
import sys

# Add parent directory to path to import modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from issue_models import Issue
from kanban_metrics import (
    FlowEfficiencyCalculator,
    KanbanMetricsCalculator,
    ThroughputCalculator,
    TimeMetricsCalculator,
    partition_issues,
)


def state_change(created_at, to_name, to_type):
    return {
        'id': f'h-{created_at}',
        'createdAt': created_at,
        'toState': {'id': to_name, 'name': to_name, 'type': to_type},
    }


def make_issue(identifier, created, started=None, completed=None, team='Platform', nodes=None):
    return {
        'id': f'id-{identifier}',
        'identifier': identifier,
        'title': f'Issue {identifier}',
        'state': {'id': 's', 'name': 'Done' if completed else 'Todo',
                  'type': 'completed' if completed else 'unstarted'},
        'team': {'id': team, 'name': team} if team else None,
        'createdAt': created,
        'startedAt': started,
        'completedAt': completed,
        'history': {'nodes': nodes or []},
    }


COMPLETED_A = make_issue('A', '2024-01-01T00:00:00Z', '2024-01-02T00:00:00Z', '2024-01-04T00:00:00Z')
COMPLETED_B = make_issue('B', '2024-01-01T00:00:00Z', '2024-01-03T00:00:00Z', '2024-01-09T00:00:00Z',
                         team='Mobile')
IN_PROGRESS = make_issue('C', '2024-01-02T00:00:00Z', '2024-01-05T00:00:00Z')
BACKLOG = make_issue('D', '2024-01-03T00:00:00Z', team=None)


class TestPartitionIssues(unittest.TestCase):
    """Test splitting issues by classification"""

    def test_partition(self):
        completed, in_progress, backlog = partition_issues([COMPLETED_A, IN_PROGRESS, BACKLOG, COMPLETED_B])
        self.assertEqual([issue.identifier for issue in completed], ['A', 'B'])
        self.assertEqual([issue.identifier for issue in in_progress], ['C'])
        self.assertEqual([issue.identifier for issue in backlog], ['D'])

    def test_partition_returns_issues(self):
        completed, _, _ = partition_issues([Issue(COMPLETED_A)])
        self.assertIsInstance(completed[0], Issue)


class TestTimeMetricsCalculator(unittest.TestCase):
    """Test cycle and lead time statistics"""

    def test_stats(self):
        calculator = TimeMetricsCalculator([COMPLETED_A, COMPLETED_B])

        # Cycle times 2 and 6 days, lead times 3 and 8 days
        self.assertEqual(calculator.cycle_time_stats(), {'average': 4.0, 'median': 4.0, 'p95': 6.0})
        self.assertEqual(calculator.lead_time_stats(), {'average': 5.5, 'median': 5.5, 'p95': 8.0})

    def test_undefined_values_are_skipped(self):
        calculator = TimeMetricsCalculator([COMPLETED_A, IN_PROGRESS, BACKLOG])
        self.assertEqual(calculator.cycle_time_stats(), {'average': 2.0, 'median': 2.0, 'p95': 2.0})

    def test_empty(self):
        self.assertEqual(
            TimeMetricsCalculator([]).cycle_time_stats(),
            {'average': 0.0, 'median': 0.0, 'p95': 0.0}
        )

    def test_single_issue_helpers(self):
        calculator = TimeMetricsCalculator([])
        self.assertEqual(calculator.cycle_time_for_issue(COMPLETED_B), 6.0)
        self.assertEqual(calculator.lead_time_for_issue(Issue(COMPLETED_B)), 8.0)
        self.assertIsNone(calculator.cycle_time_for_issue(BACKLOG))


class TestThroughputCalculator(unittest.TestCase):
    """Test weekly throughput"""

    def test_weekly_buckets(self):
        # 2024-01-04 falls in week 00 (before the first Sunday), 2024-01-09 in week 01
        calculator = ThroughputCalculator([COMPLETED_A, COMPLETED_B])

        stats = calculator.stats()

        self.assertEqual(stats['weekly_counts'], {'2024-W00': 1, '2024-W01': 1})
        self.assertEqual(stats['weekly_avg'], 1.0)
        self.assertEqual(stats['total_completed'], 2)

    def test_same_week(self):
        other = make_issue('E', '2024-01-01T00:00:00Z', None, '2024-01-03T12:00:00Z')
        stats = ThroughputCalculator([COMPLETED_A, other, COMPLETED_B]).stats()
        self.assertEqual(stats['weekly_counts']['2024-W00'], 2)
        self.assertEqual(stats['weekly_avg'], 1.5)

    def test_completion_timestamps(self):
        timestamps = ThroughputCalculator([COMPLETED_A, IN_PROGRESS]).completion_timestamps()
        self.assertEqual(timestamps[0].isoformat(), '2024-01-04T00:00:00+00:00')
        self.assertIsNone(timestamps[1])

    def test_empty(self):
        self.assertEqual(
            ThroughputCalculator([]).stats(),
            {'weekly_avg': 0.0, 'total_completed': 0, 'weekly_counts': {}}
        )


class TestFlowEfficiencyCalculator(unittest.TestCase):
    """Test active vs waiting time"""

    def flow_issue(self, nodes):
        return make_issue('F', '2023-12-20T00:00:00Z', None, '2024-01-10T00:00:00Z', nodes=nodes)

    def test_issue_efficiency(self):
        issue = self.flow_issue([
            state_change('2024-01-01T00:00:00Z', 'In Progress', 'started'),
            state_change('2024-01-04T00:00:00Z', 'Blocked', 'backlog'),
            state_change('2024-01-05T00:00:00Z', 'Done', 'completed'),
        ])
        calculator = FlowEfficiencyCalculator([issue])

        # 3 active days out of 4; creation time is not counted
        self.assertEqual(calculator.issue_efficiency(issue), 0.75)
        self.assertEqual(calculator.calculate(), 75.0)

    def test_unstarted_counts_as_active(self):
        issue = self.flow_issue([
            state_change('2024-01-01T00:00:00Z', 'Todo', 'unstarted'),
            state_change('2024-01-03T00:00:00Z', 'Done', 'completed'),
        ])
        self.assertEqual(FlowEfficiencyCalculator([issue]).calculate(), 100.0)

    def test_no_transitions(self):
        self.assertEqual(FlowEfficiencyCalculator([COMPLETED_A]).calculate(), 0.0)

    def test_mean_across_issues(self):
        active = self.flow_issue([
            state_change('2024-01-01T00:00:00Z', 'In Progress', 'started'),
            state_change('2024-01-02T00:00:00Z', 'Done', 'completed'),
        ])
        self.assertEqual(FlowEfficiencyCalculator([active, COMPLETED_A]).calculate(), 50.0)

    def test_empty(self):
        self.assertEqual(FlowEfficiencyCalculator([]).calculate(), 0.0)

    def test_bounds(self):
        issues = [
            self.flow_issue([
                state_change('2024-01-01T00:00:00Z', 'Waiting', 'backlog'),
                state_change('2024-01-02T00:00:00Z', 'In Progress', 'started'),
                state_change('2024-01-02T00:00:00Z', 'Done', 'completed'),
            ]),
            COMPLETED_B,
        ]
        efficiency = FlowEfficiencyCalculator(issues).calculate()
        self.assertGreaterEqual(efficiency, 0.0)
        self.assertLessEqual(efficiency, 100.0)


class TestKanbanMetricsCalculator(unittest.TestCase):
    """Test overall and per-team aggregation"""

    def setUp(self):
        self.calculator = KanbanMetricsCalculator([COMPLETED_A, COMPLETED_B, IN_PROGRESS, BACKLOG])

    def test_overall_metrics(self):
        metrics = self.calculator.overall_metrics()

        self.assertEqual(metrics['total_issues'], 4)
        self.assertEqual(metrics['completed_issues'], 2)
        self.assertEqual(metrics['in_progress_issues'], 1)
        self.assertEqual(metrics['backlog_issues'], 1)
        self.assertEqual(metrics['cycle_time']['average'], 4.0)
        self.assertEqual(metrics['lead_time']['median'], 5.5)
        self.assertEqual(metrics['throughput']['total_completed'], 2)
        self.assertEqual(metrics['flow_efficiency'], 0.0)

    def test_team_metrics(self):
        teams = self.calculator.team_metrics()

        self.assertEqual(set(teams), {'Platform', 'Mobile', 'Unknown Team'})
        self.assertEqual(teams['Platform']['total_issues'], 2)
        self.assertEqual(teams['Platform']['throughput'], 1)
        self.assertEqual(teams['Mobile']['cycle_time']['average'], 6.0)
        self.assertEqual(teams['Unknown Team']['backlog_issues'], 1)
        self.assertEqual(teams['Unknown Team']['throughput'], 0)

    def test_no_completed_issues(self):
        metrics = KanbanMetricsCalculator([IN_PROGRESS]).overall_metrics()
        self.assertEqual(metrics['cycle_time'], {'average': 0.0, 'median': 0.0, 'p95': 0.0})
        self.assertEqual(metrics['throughput']['total_completed'], 0)
        self.assertEqual(metrics['flow_efficiency'], 0.0)

    def test_empty(self):
        calculator = KanbanMetricsCalculator([])
        self.assertEqual(calculator.overall_metrics(), KanbanMetricsCalculator.empty_metrics())
        self.assertEqual(calculator.overall_metrics()['total_issues'], 0)
        self.assertEqual(calculator.team_metrics(), {})


if __name__ == '__main__':
    unittest.main()
