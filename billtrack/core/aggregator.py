"""
Timesheet and report aggregation for Billtrack.

Pure read-side computation over the ledger. Entries are attributed to the
calendar day of their start time in the installation timezone. Money is
summed exactly and only rounded (half up, to cents) where a figure is
reported, and amounts in different currencies are never added together.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, tzinfo
from decimal import Decimal
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Union

from ..db.models import (
    Project,
    ProjectRef,
    ProjectSummary,
    Report,
    TimeEntry,
    Timesheet,
    TimesheetDay,
    TimesheetLine,
    WeekBucket,
    utc_now,
)
from ..db.repository import EntryRepository
from .money import add_to_totals, billable_amount, round_money, round_totals
from .projects import ProjectRegistry
from .ranges import DateRange, RangeLike, resolve_range

logger = logging.getLogger(__name__)


class ReportAggregator:
    """Builds timesheets and reports from stored entries."""

    def __init__(
        self,
        registry: ProjectRegistry,
        entry_repo: EntryRepository,
        tz: tzinfo,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.registry = registry
        self.entry_repo = entry_repo
        self.tz = tz
        self.clock = clock or utc_now

    def resolve(self, date_range: RangeLike) -> DateRange:
        """Resolve a preset or explicit range against today's local date."""
        return resolve_range(date_range, self.clock().astimezone(self.tz).date())

    def local_day(self, entry: TimeEntry) -> date:
        """Calendar day an entry is attributed to."""
        return entry.start_time.astimezone(self.tz).date()

    def _entries(
        self,
        date_range: DateRange,
        project_id: Optional[int] = None,
        billable_only: bool = False,
    ) -> List[TimeEntry]:
        return self.entry_repo.list_entries(
            project_id=project_id,
            bounds=date_range.bounds(self.tz),
            billable_only=billable_only,
            newest_first=False,
        )

    def _projects_for(self, entries: Iterable[TimeEntry]) -> Dict[int, Project]:
        ids = sorted({entry.project_id for entry in entries})
        return self.registry.project_repo.get_projects_by_ids(ids)

    def timesheet(
        self,
        date_range: RangeLike,
        project_filter: Optional[Union[int, str, ProjectRef]] = None,
        billable_only: bool = False,
    ) -> Timesheet:
        """
        Group entries in a range by local calendar day.

        Args:
            date_range: Preset name, RangePreset, (start, end) pair or DateRange
            project_filter: Optional project reference to restrict to
            billable_only: Leave out non-billable entries

        Returns:
            Timesheet with ascending days, per-day totals and per-currency
            amounts

        Raises:
            NotFound: If project_filter matches no project
            InvalidRange: If the range ends before it starts
        """
        resolved = self.resolve(date_range)
        project = self.registry.resolve(project_filter) if project_filter is not None else None

        entries = self._entries(
            resolved,
            project_id=project.id if project else None,
            billable_only=billable_only,
        )
        projects = self._projects_for(entries)

        by_day: Dict[date, List[TimeEntry]] = defaultdict(list)
        for entry in entries:
            by_day[self.local_day(entry)].append(entry)

        days: List[TimesheetDay] = []
        sheet_amounts: Dict[str, Decimal] = {}
        total_minutes = billable_minutes = 0

        for day in sorted(by_day):
            day_amounts: Dict[str, Decimal] = {}
            lines: List[TimesheetLine] = []
            day_total = day_billable = 0

            for entry in by_day[day]:
                entry_project = projects[entry.project_id]
                amount = Decimal(0)
                day_total += entry.duration_minutes
                if entry.billable:
                    day_billable += entry.duration_minutes
                    amount = billable_amount(entry.duration_minutes, entry_project.hourly_rate)
                    add_to_totals(day_amounts, entry_project.currency, amount)
                    add_to_totals(sheet_amounts, entry_project.currency, amount)
                lines.append(
                    TimesheetLine(
                        entry=entry,
                        project_name=entry_project.name,
                        client=entry_project.client,
                        hourly_rate=entry_project.hourly_rate,
                        currency=entry_project.currency,
                        amount=round_money(amount),
                    )
                )

            days.append(
                TimesheetDay(
                    day=day,
                    lines=lines,
                    total_minutes=day_total,
                    billable_minutes=day_billable,
                    amounts=round_totals(day_amounts),
                )
            )
            total_minutes += day_total
            billable_minutes += day_billable

        logger.debug("Timesheet %s: %d entries over %d days", resolved, len(entries), len(days))
        return Timesheet(
            start_date=resolved.start,
            end_date=resolved.end,
            project=project,
            days=days,
            total_minutes=total_minutes,
            billable_minutes=billable_minutes,
            amounts=round_totals(sheet_amounts),
            entry_count=len(entries),
        )

    def iter_weekly_trend(self, date_range: RangeLike) -> Iterator[WeekBucket]:
        """
        Lazily yield one bucket per ISO week intersecting the range, ascending.

        Entries are read when iteration begins.
        """
        resolved = self.resolve(date_range)
        return self._weekly_buckets(resolved, lambda: self._entries(resolved))

    def _weekly_buckets(
        self,
        date_range: DateRange,
        load_entries: Callable[[], List[TimeEntry]],
    ) -> Iterator[WeekBucket]:
        by_week: Dict[date, List[TimeEntry]] = defaultdict(list)
        for entry in load_entries():
            day = self.local_day(entry)
            by_week[day - timedelta(days=day.weekday())].append(entry)

        for iso_year, iso_week, monday, sunday in date_range.iter_iso_weeks():
            week_entries = by_week.get(monday, [])
            yield WeekBucket(
                iso_year=iso_year,
                iso_week=iso_week,
                week_start=monday,
                week_end=sunday,
                total_minutes=sum(e.duration_minutes for e in week_entries),
                billable_minutes=sum(e.duration_minutes for e in week_entries if e.billable),
                entry_count=len(week_entries),
                project_count=len({e.project_id for e in week_entries}),
            )

    def report(self, date_range: RangeLike) -> Report:
        """
        Summarize a range per project and per ISO week.

        Earnings are (billable_minutes / 60) * hourly_rate in each project's
        currency; projects without a rate earn zero. A range with no entries
        yields an empty report, not an error.

        Raises:
            InvalidRange: If the range ends before it starts
        """
        resolved = self.resolve(date_range)
        entries = self._entries(resolved)
        if not entries:
            return Report(start_date=resolved.start, end_date=resolved.end)

        projects = self._projects_for(entries)
        by_project: Dict[int, List[TimeEntry]] = defaultdict(list)
        for entry in entries:
            by_project[entry.project_id].append(entry)

        summaries: List[ProjectSummary] = []
        earnings: Dict[str, Decimal] = {}
        for project_id, project_entries in by_project.items():
            project = projects[project_id]
            billable = sum(e.duration_minutes for e in project_entries if e.billable)
            earned = billable_amount(billable, project.hourly_rate)
            add_to_totals(earnings, project.currency, earned)
            summaries.append(
                ProjectSummary(
                    project_id=project_id,
                    project_name=project.name,
                    client=project.client,
                    hourly_rate=project.hourly_rate,
                    currency=project.currency,
                    total_minutes=sum(e.duration_minutes for e in project_entries),
                    billable_minutes=billable,
                    earnings=round_money(earned),
                    entry_count=len(project_entries),
                )
            )
        summaries.sort(key=lambda s: (-s.total_minutes, s.project_name.casefold(), s.project_id))

        logger.debug("Report %s: %d entries, %d projects", resolved, len(entries), len(summaries))
        return Report(
            start_date=resolved.start,
            end_date=resolved.end,
            projects=summaries,
            weeks=list(self._weekly_buckets(resolved, lambda: entries)),
            total_minutes=sum(s.total_minutes for s in summaries),
            billable_minutes=sum(s.billable_minutes for s in summaries),
            earnings=round_totals(earnings),
            entry_count=len(entries),
        )
