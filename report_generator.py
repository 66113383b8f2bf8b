#!/usr/bin/env python3
"""
Report Generation Module for Linear Kanban Metrics
Renders calculated metrics as rich console tables, JSON, or CSV
Reports go to stdout; status messages go through StatusDisplay on stderr
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pandas as pd
from rich.console import Console
from rich.table import Table
from rich.text import Text

from config import DEFAULT_FORMAT
from issue_models import Issue, IssueLike
from timeline import UNKNOWN_STATE, TicketTimeseries
from utils import format_metric_value, truncate_title
from utils_dates import to_iso

KPI_DESCRIPTIONS = {
    'total_issues': 'Total number of issues in the dataset',
    'completed_issues': 'Issues that have been finished/delivered',
    'in_progress_issues': 'Issues currently being worked on',
    'backlog_issues': 'Issues waiting to be started',
    'flow_efficiency': 'Percentage of time spent on active work vs waiting',
    'average_cycle_time': 'Average time from start to completion',
    'median_cycle_time': '50% of items complete faster than this',
    'p95_cycle_time': '95% of items complete faster than this',
    'average_lead_time': 'Average time from creation to completion',
    'median_lead_time': '50% of items delivered faster than this',
    'p95_lead_time': '95% of items delivered faster than this',
    'weekly_avg': 'Average items completed per week',
    'total_completed': 'Total items delivered in time period',
}

COUNT_METRICS = [
    ('Total Issues', 'total_issues'),
    ('Completed Issues', 'completed_issues'),
    ('In Progress Issues', 'in_progress_issues'),
    ('Backlog Issues', 'backlog_issues'),
]

TEAM_COLUMNS = [
    'Team', 'Total Issues', 'Completed Issues', 'In Progress Issues', 'Backlog Issues',
    'Avg Cycle Time', 'Median Cycle Time', 'Avg Lead Time', 'Median Lead Time', 'Throughput'
]

TICKET_COLUMNS = [
    'ID', 'Identifier', 'Title', 'State', 'State Type', 'Team', 'Assignee', 'Priority', 'Estimate',
    'Created At', 'Updated At', 'Started At', 'Completed At', 'Archived At',
    'Cycle Time (days)', 'Lead Time (days)'
]


@dataclass
class ReportData:
    """Everything one report renders"""
    metrics: Dict[str, Any]
    team_metrics: Optional[Dict[str, Dict[str, Any]]] = None
    timeseries: Optional[TicketTimeseries] = None
    issues: Optional[List[IssueLike]] = None

    @property
    def has_team_metrics(self) -> bool:
        return bool(self.team_metrics)

    @property
    def has_timeseries(self) -> bool:
        return self.timeseries is not None

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)

    def domain_issues(self) -> List[Issue]:
        return [Issue(issue) for issue in (self.issues or [])]


def _throughput_value(team_stats: Dict[str, Any]) -> Any:
    throughput = team_stats.get('throughput')
    if isinstance(throughput, dict):
        return throughput.get('total_completed', throughput.get('weekly_avg'))
    return throughput


def _team_row(team_name: str, team_stats: Dict[str, Any]) -> List[Any]:
    cycle_time = team_stats.get('cycle_time') or {}
    lead_time = team_stats.get('lead_time') or {}
    return [
        team_name,
        team_stats.get('total_issues'),
        team_stats.get('completed_issues'),
        team_stats.get('in_progress_issues'),
        team_stats.get('backlog_issues'),
        cycle_time.get('average'),
        cycle_time.get('median'),
        lead_time.get('average'),
        lead_time.get('median'),
        _throughput_value(team_stats),
    ]


def _ticket_record(issue: Issue) -> Dict[str, Any]:
    return {
        'id': issue.id,
        'identifier': issue.identifier,
        'title': issue.title,
        'state': {'name': issue.state_name, 'type': issue.state_type},
        'team': issue.team_name,
        'assignee': issue.assignee_name,
        'priority': issue.priority,
        'estimate': issue.estimate,
        'createdAt': to_iso(issue.created_at),
        'updatedAt': to_iso(issue.updated_at),
        'startedAt': to_iso(issue.started_at),
        'completedAt': to_iso(issue.completed_at),
        'archivedAt': to_iso(issue.archived_at),
        'cycle_time_days': issue.cycle_time_days,
        'lead_time_days': issue.lead_time_days,
    }


def _ticket_row(issue: Issue) -> List[Any]:
    return [
        issue.id,
        issue.identifier,
        truncate_title(issue.title),
        issue.state_name,
        issue.state_type,
        issue.team_name,
        issue.assignee_name,
        issue.priority,
        format_metric_value(issue.estimate),
        to_iso(issue.created_at, 'N/A'),
        to_iso(issue.updated_at, 'N/A'),
        to_iso(issue.started_at),
        to_iso(issue.completed_at),
        to_iso(issue.archived_at),
        format_metric_value(issue.cycle_time_days, missing=None),
        format_metric_value(issue.lead_time_days, missing=None),
    ]


class KanbanReportGenerator:
    """Renders a ReportData as table, JSON, or CSV"""

    def __init__(self, report_data: ReportData, console: Optional[Console] = None):
        self.data = report_data
        self.console = console or Console()

    def display(self, output_format: str = DEFAULT_FORMAT):
        """Write the report in the requested format"""
        if output_format == 'json':
            print(self.generate_json())
        elif output_format == 'csv':
            print(self.generate_csv(), end='')
        else:
            self.print_tables()

    # JSON

    def generate_json(self) -> str:
        output = {'overall_metrics': self.data.metrics}
        if self.data.team_metrics is not None:
            output['team_metrics'] = self.data.team_metrics
        if self.data.has_timeseries:
            output['timeseries'] = self._timeseries_data()
        if self.data.has_issues:
            output['individual_tickets'] = [_ticket_record(issue) for issue in self.data.domain_issues()]
        return json.dumps(output, indent=2, default=str, ensure_ascii=False)

    def _timeseries_data(self) -> Dict[str, Any]:
        timeseries = self.data.timeseries
        return {
            'status_flow_analysis': timeseries.status_flow_analysis(),
            'average_time_in_status': timeseries.average_time_in_status(),
            'daily_status_counts': timeseries.daily_status_counts(),
        }

    # CSV

    def generate_csv(self) -> str:
        """CSV sections separated by a blank line and a section title"""
        sections = [self._overall_metrics_frame().to_csv(index=False)]

        if self.data.has_team_metrics:
            sections.append(self._section('TEAM METRICS', self._team_metrics_frame()))

        if self.data.has_timeseries:
            sections.append('\nTIMESERIES ANALYSIS\n')
            flow = self.data.timeseries.status_flow_analysis()
            sections.append(self._section('STATUS TRANSITIONS', pd.DataFrame(
                [[transition, format_metric_value(count)] for transition, count in flow.items()],
                columns=['Transition', 'Count'],
            )))
            time_in_status = self.data.timeseries.average_time_in_status()
            sections.append(self._section('AVERAGE TIME IN STATUS', pd.DataFrame(
                [[status, format_metric_value(days)] for status, days in time_in_status.items()],
                columns=['Status', 'Average Days'],
            )))

        if self.data.has_issues:
            tickets = pd.DataFrame(
                [_ticket_row(issue) for issue in self.data.domain_issues()],
                columns=TICKET_COLUMNS,
            )
            sections.append(self._section('INDIVIDUAL TICKETS', tickets))

        return ''.join(sections)

    @staticmethod
    def _section(title: str, frame: pd.DataFrame) -> str:
        return f"\n{title}\n{frame.to_csv(index=False)}"

    def _overall_metrics_frame(self) -> pd.DataFrame:
        metrics = self.data.metrics
        rows = [[label, format_metric_value(metrics.get(key)), 'count'] for label, key in COUNT_METRICS]

        for name, key in (('Cycle Time', 'cycle_time'), ('Lead Time', 'lead_time')):
            stats = metrics.get(key)
            if isinstance(stats, dict):
                rows.append([f'Average {name}', format_metric_value(stats.get('average')), 'days'])
                rows.append([f'Median {name}', format_metric_value(stats.get('median')), 'days'])
                rows.append([f'95th Percentile {name}', format_metric_value(stats.get('p95')), 'days'])

        throughput = metrics.get('throughput')
        if isinstance(throughput, dict):
            rows.append(['Weekly Throughput Average', format_metric_value(throughput.get('weekly_avg')), 'issues/week'])
            rows.append(['Total Completed', format_metric_value(throughput.get('total_completed')), 'count'])

        rows.append(['Flow Efficiency', format_metric_value(metrics.get('flow_efficiency')), 'percentage'])
        return pd.DataFrame(rows, columns=['Metric', 'Value', 'Unit'])

    def _team_metrics_frame(self) -> pd.DataFrame:
        rows = [
            [format_metric_value(value) for value in _team_row(team, stats)]
            for team, stats in sorted(self.data.team_metrics.items())
        ]
        return pd.DataFrame(rows, columns=TEAM_COLUMNS)

    # Tables

    def print_tables(self):
        self.print_summary()
        self.print_time_metrics('⏱️  CYCLE TIME', 'cycle_time')
        self.print_time_metrics('📏 LEAD TIME', 'lead_time')
        self.print_throughput()
        if self.data.has_team_metrics:
            self.print_team_metrics()
        if self.data.has_issues:
            self.print_individual_tickets()
        self.print_kpi_definitions()
        if self.data.has_timeseries:
            self.print_timeseries()

    def _print_table(self, title: str, table: Table):
        self.console.print(f"\n{title}", style="bold", markup=False)
        self.console.print(table)

    def print_summary(self):
        metrics = self.data.metrics
        table = Table(show_header=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")
        table.add_column("Description", style="dim")

        for label, key in COUNT_METRICS:
            table.add_row(label, format_metric_value(metrics.get(key)), KPI_DESCRIPTIONS[key])

        flow_efficiency = metrics.get('flow_efficiency')
        flow_value = f"{flow_efficiency}%" if flow_efficiency is not None else 'N/A'
        table.add_row('Flow Efficiency', flow_value, KPI_DESCRIPTIONS['flow_efficiency'])

        self._print_table('📈 SUMMARY', table)

    def print_time_metrics(self, title: str, metric_key: str):
        stats = self.data.metrics.get(metric_key) or {}
        table = Table(show_header=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Days", justify="right")
        table.add_column("Description", style="dim")

        table.add_row('Average', format_metric_value(stats.get('average')),
                      KPI_DESCRIPTIONS[f'average_{metric_key}'])
        table.add_row('Median', format_metric_value(stats.get('median')),
                      KPI_DESCRIPTIONS[f'median_{metric_key}'])
        table.add_row('95th Percentile', format_metric_value(stats.get('p95')),
                      KPI_DESCRIPTIONS[f'p95_{metric_key}'])

        self._print_table(title, table)

    def print_throughput(self):
        throughput = self.data.metrics.get('throughput')
        if not isinstance(throughput, dict):
            throughput = {'total_completed': throughput}

        table = Table(show_header=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")
        table.add_column("Description", style="dim")
        table.add_row('Weekly Average', format_metric_value(throughput.get('weekly_avg')),
                      KPI_DESCRIPTIONS['weekly_avg'])
        table.add_row('Total Completed', format_metric_value(throughput.get('total_completed')),
                      KPI_DESCRIPTIONS['total_completed'])

        self._print_table('🚀 THROUGHPUT', table)

    def print_team_metrics(self):
        table = Table(show_header=True)
        for index, column in enumerate(TEAM_COLUMNS):
            table.add_column(column, style="cyan" if index == 0 else None,
                             justify="left" if index == 0 else "right")

        for team, stats in sorted(self.data.team_metrics.items()):
            table.add_row(*[format_metric_value(value) for value in _team_row(team, stats)])

        self._print_table('👥 TEAM COMPARISON', table)

    def print_individual_tickets(self):
        table = Table(show_header=True)
        for column in ('Identifier', 'Title', 'State', 'Team', 'Assignee',
                       'Started At', 'Completed At', 'Cycle Time', 'Lead Time'):
            table.add_column(column, overflow="ellipsis")

        for issue in self.data.domain_issues():
            table.add_row(
                issue.identifier or 'N/A',
                Text(truncate_title(issue.title)),
                issue.state_name or 'N/A',
                issue.team_name or 'N/A',
                issue.assignee_name or 'Unassigned',
                to_iso(issue.started_at, 'N/A'),
                to_iso(issue.completed_at, 'N/A'),
                format_metric_value(issue.cycle_time_days),
                format_metric_value(issue.lead_time_days),
            )

        self._print_table('🎫 INDIVIDUAL TICKET DETAILS', table)

    def print_kpi_definitions(self):
        table = Table(show_header=True)
        table.add_column("KPI", style="cyan")
        table.add_column("Definition")
        for key, description in KPI_DESCRIPTIONS.items():
            table.add_row(key.replace('_', ' ').title(), description)

        self._print_table('📚 KPI DEFINITIONS', table)

    def print_timeseries(self):
        timeseries = self.data.timeseries

        transitions = Table(show_header=True)
        transitions.add_column("Transition", style="cyan")
        transitions.add_column("Count", justify="right")
        for transition, count in list(timeseries.status_flow_analysis().items())[:10]:
            transitions.add_row(transition, str(count))
        self._print_table('🔄 STATUS TRANSITIONS (top 10)', transitions)

        time_in_status = Table(show_header=True)
        time_in_status.add_column("Status", style="cyan")
        time_in_status.add_column("Average Days", justify="right")
        ordered = sorted(timeseries.average_time_in_status().items(), key=lambda item: -item[1])
        for status, days in ordered:
            time_in_status.add_row(status, format_metric_value(days))
        self._print_table('⏰ AVERAGE TIME IN STATUS', time_in_status)

        daily = Table(show_header=True)
        daily.add_column("Date", style="cyan")
        daily.add_column("Activity")
        for day, counts in list(timeseries.daily_status_counts().items())[-10:]:
            daily.add_row(day, ', '.join(f"{status}: {count}" for status, count in counts.items()))
        self._print_table('📅 DAILY ACTIVITY (last 10 days)', daily)


class TimelineDisplay:
    """Prints the status timeline of a single issue"""

    def __init__(self, issues: List[IssueLike], console: Optional[Console] = None):
        self.issues = issues
        self.console = console or Console()

    def format_lines(self, timeline_data: Dict[str, Any]) -> List[str]:
        lines = []
        for event in timeline_data['timeline']:
            date_str = event.timestamp.strftime('%Y-%m-%d %H:%M')
            transition = 'Created →' if event.is_creation else f"{event.from_state or UNKNOWN_STATE} →"
            lines.append(f"{date_str} | {transition} {event.to_state}")
        return lines

    def show_timeline(self, issue_id: str) -> bool:
        """Print the timeline for issue_id; False when it is not in the data set"""
        timeline_data = TicketTimeseries(self.issues).find(issue_id)
        if timeline_data is None:
            self.console.print(f"❌ Issue {issue_id} not found", style="red", markup=False)
            return False

        self.console.print(f"\n📈 TIMELINE FOR {timeline_data['id']}: {timeline_data['title']}",
                           markup=False, highlight=False)
        self.console.print(f"Team: {timeline_data['team']}", markup=False, highlight=False)
        self.console.print('=' * 80)
        for line in self.format_lines(timeline_data):
            self.console.print(line, markup=False, highlight=False)
        return True
