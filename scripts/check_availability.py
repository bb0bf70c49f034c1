#!/usr/bin/env python3
"""
Print bookable dates and grouped slots for a coach, straight from the schedule store.

Usage:
  python3 scripts/check_availability.py jane-doe
  python3 scripts/check_availability.py jane-doe --tz Europe/Berlin --date 2030-01-07 --duration 30

Busy times come from the in-memory mock calendar, so no Cal.com key is needed.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import date

sys.path.insert(0, ".")

from coachbook.application.use_cases.slot_resolution import SlotResolutionService
from coachbook.application.utils.slot_grouping import safe_timezone
from coachbook.core.config import settings
from coachbook.infrastructure.calendar.mock_calendar import MockCalendar
from coachbook.infrastructure.store.json_schedule_store import JsonScheduleRepository


def _print_state(service: SlotResolutionService) -> None:
    state = service.state
    print("-" * 60)
    print(f"status:    {state.status.value}")
    print(f"coach_id:  {state.coach_id}")
    print(f"timezone:  {state.timezone} (viewer: {service.viewer_timezone})")
    print(f"duration:  {state.duration_minutes} min")
    if state.error_code:
        print(f"error:     {state.error_code}: {state.error_message}")
    if state.warnings:
        print(f"warnings:  {', '.join(state.warnings)}")
    print(f"dates:     {', '.join(d.isoformat() for d in state.bookable_dates) or '-'}")
    print(f"selected:  {state.selected_date}")

    tz = safe_timezone(service.viewer_timezone)
    for group in state.groups:
        print(f"\n  {group.title}")
        for slot in group.slots:
            start = slot.start_utc.astimezone(tz)
            end = slot.end_utc.astimezone(tz)
            print(f"    {start:%H:%M} - {end:%H:%M}   ({slot.start_utc:%Y-%m-%d %H:%M} UTC)")
    print("-" * 60)


async def main(args: argparse.Namespace) -> int:
    schedules = JsonScheduleRepository(args.store)
    service = SlotResolutionService(
        coach_ref=args.coach,
        schedules=schedules,
        busy_times=MockCalendar(sessions=schedules),
        viewer_timezone=args.tz,
        duration_minutes=args.duration,
    )
    await service.load()
    if args.date and service.schedule is not None:
        try:
            await service.select_date(date.fromisoformat(args.date))
        except ValueError as e:
            print(f"❌ {e}")
            return 1
    _print_state(service)
    return 0 if service.state.slots else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Show coach availability from the schedule store")
    parser.add_argument("coach", help="coach id or profile slug")
    parser.add_argument("--tz", default=settings.DEFAULT_VIEWER_TIMEZONE, help="viewer timezone")
    parser.add_argument("--date", help="date to select (YYYY-MM-DD)")
    parser.add_argument("--duration", type=int, help="session length in minutes")
    parser.add_argument("--store", default=settings.SCHEDULE_STORE_PATH, help="schedule JSON path")
    sys.exit(asyncio.run(main(parser.parse_args())))
