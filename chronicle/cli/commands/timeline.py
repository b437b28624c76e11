"""Timeline query commands for Chronicle CLI."""

from typing import TYPE_CHECKING

from chronicle.cli.commands.helpers import print_events, print_json

if TYPE_CHECKING:
    from chronicle import Chronicle


def cmd_day(args, c: "Chronicle"):
    """Show events for one day."""
    result = c.events.query_by_date(args.date, args.type, args.limit)
    if args.json:
        print_json(result)
        return
    print(f"{args.date}: {result.stats['total']} events")
    print_events(result.events)


def cmd_range(args, c: "Chronicle"):
    """Show events across a date range."""
    result = c.events.query_range(args.start, args.end, args.type, args.limit)
    if args.json:
        print_json(result)
        return
    print(f"{args.start} → {args.end}: {result.stats['total']} events")
    for event_type, count in sorted(result.stats["by_type"].items()):
        print(f"  {event_type}: {count}")
    print_events(result.events)


def cmd_summary(args, c: "Chronicle"):
    """Show event counts for a day."""
    summary = c.events.summary(args.date)
    if args.json:
        print_json(summary)
        return
    print(f"{summary['date']}: {summary['total']} events")
    for event_type, count in sorted(summary["by_type"].items()):
        print(f"  {event_type}: {count}")


def cmd_types(args, c: "Chronicle"):
    """Show all event types with counts."""
    counts = c.events.event_type_counts()
    if args.json:
        print_json(counts)
        return
    if not counts:
        print("No events yet.")
    for event_type, count in counts.items():
        print(f"  {event_type}: {count}")


def cmd_activity(args, c: "Chronicle"):
    """Show event counts per period."""
    periods = c.events.activity(args.start, args.end, args.granularity, args.type)
    if args.json:
        print_json(periods)
        return
    for p in periods:
        print(f"  {p['period']}: {p['count']}")
