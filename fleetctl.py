#!/usr/bin/env python3
"""
Unified CLI for fleet maintenance alerts.

Commands:
  status    - Show every vehicle's current alerts (no email, no state change)
  run       - Run one evaluate/suppress/dispatch pass now
  clear     - Dismiss an alert for 7 days with a written justification
  history   - View the accountability log of dismissed alerts
  schedule  - Run the daily check at the configured time, forever
"""

import argparse
import logging
import sys
from typing import List, Optional

from tabulate import tabulate

from fleet import AccountabilityRecord, AlertKind, PassSummary, VehicleAlerts
from fleet.bootstrap import build_accountability_log, build_clearance, build_pipeline
from fleet.config import load_settings
from fleet.digest import DAILY
from fleet.errors import (
    ChannelAuthError,
    ClearanceError,
    FleetAlertError,
    StoreLockTimeoutError,
)
from fleet.scheduler import get_zone, parse_time_string, run_daily

# =============================================================================
# Formatting helpers
# =============================================================================


def format_miles(miles: Optional[float]) -> str:
    """Format mileage for display."""
    return f"{miles:,.0f}" if miles is not None else "-"


def truncate(text: Optional[str], max_len: int = 40) -> str:
    """Truncate text with ellipsis if too long."""
    if text is None:
        return "-"
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def make_status_table(results: List[VehicleAlerts]) -> List[List[str]]:
    """One row per alert; out-of-service vehicles get a row even without alerts."""
    rows = []
    for result in results:
        vehicle = result.vehicle
        if result.out_of_service:
            rows.append(
                [
                    vehicle.unit_label,
                    format_miles(vehicle.odometer),
                    "Out of Service",
                    "-",
                    vehicle.out_of_service_reason or "No reason specified",
                ]
            )
        for alert in result.alerts:
            rows.append(
                [
                    vehicle.unit_label,
                    format_miles(vehicle.odometer),
                    alert.kind.title,
                    alert.severity.label.upper(),
                    alert.message,
                ]
            )
    return rows


def make_history_table(records: List[AccountabilityRecord]) -> List[List[str]]:
    """Convert accountability records to table rows."""
    rows = []
    for record in records:
        if record.cleared_odometer is not None:
            reading = format_miles(record.cleared_odometer)
        elif record.cleared_expiry is not None:
            reading = record.cleared_expiry.isoformat()
        else:
            reading = "-"
        rows.append(
            [
                record.cleared_at.strftime("%Y-%m-%d %H:%M"),
                record.unit_label,
                record.alert_kind.title,
                reading,
                record.author,
                truncate(record.justification),
            ]
        )
    return rows


def print_summary(summary: PassSummary) -> None:
    print(f"Vehicles checked:  {summary.vehicles_checked}")
    print(f"Needing attention: {len(summary.vehicles_flagged)}")
    print(f"Included in batch: {len(summary.vehicles_included)}")
    if summary.bypass_batch_gate:
        print("Mode: TEST (7-day batch gate bypassed)")
    report = summary.report
    if report is None or not report.sent:
        return
    print(f"Messages sent:     {summary.messages_sent}")
    print(f"Failures:          {summary.failures}")
    print()
    rows = [
        [o.recipient.email, "sent" if o.ok else "FAILED", o.message_id or o.error or "-"]
        for o in report.outcomes
    ]
    print(tabulate(rows, headers=["Recipient", "Result", "Message ID / Error"], tablefmt="simple"))


# =============================================================================
# Commands
# =============================================================================


def cmd_status(args, settings):
    """Show every vehicle's current alerts."""
    results = build_pipeline(settings).evaluate_all()
    flagged = [r for r in results if r.needs_attention]

    print(f"Vehicles: {len(results)}")
    print(f"Needing attention: {len(flagged)}")
    print()

    if not flagged:
        print("No maintenance due.")
        return 0

    headers = ["Unit", "Mileage", "Alert", "Severity", "Details"]
    print(tabulate(make_status_table(flagged), headers=headers, tablefmt="simple"))
    return 0


def cmd_run(args, settings):
    """Run one pass now."""
    pipeline = build_pipeline(settings)
    try:
        summary = pipeline.run(bypass_batch_gate=args.test, dry_run=args.dry_run)
    except ChannelAuthError as e:
        print(f"Error: notification channel refused credentials: {e}")
        return 2

    print_summary(summary)
    if args.dry_run and summary.preview_html:
        if args.output:
            with open(args.output, "w") as fp:
                fp.write(summary.preview_html)
            print(f"\nDigest written to {args.output}")
        print("\n(dry run - nothing sent, no changes made)")
    return 0 if summary.ok else 1


def cmd_clear(args, settings):
    """Dismiss an alert for 7 days."""
    try:
        kind = AlertKind.parse(args.kind)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    workflow = build_clearance(settings)
    try:
        record = workflow.clear(args.vehicle_id, kind, args.reason, args.by)
    except (ClearanceError, StoreLockTimeoutError, KeyError) as e:
        print(f"Error: alert NOT cleared: {e}")
        return 1

    print(f"Cleared {kind.title} for {record.unit_label} until a week from now.")
    print(f"  By:     {record.author}")
    print(f"  Reason: {record.justification}")
    return 0


def cmd_history(args, settings):
    """View the accountability log."""
    records = build_accountability_log(settings).records(args.vehicle)
    records.sort(key=lambda r: r.cleared_at, reverse=not args.asc)

    print(f"Dismissed alerts: {len(records)}")
    print()
    if not records:
        print("No accountability records found.")
        return 0

    headers = ["Cleared", "Unit", "Alert", "Reading", "By", "Justification"]
    print(tabulate(make_history_table(records), headers=headers, tablefmt="simple"))
    return 0


def cmd_schedule(args, settings):
    """Run the daily check forever."""
    pipeline = build_pipeline(settings)
    at = parse_time_string(settings.schedule_time)
    zone = get_zone(settings.schedule_timezone)
    print(f"Daily maintenance check at {settings.schedule_time} {settings.schedule_timezone}")
    run_daily(lambda: pipeline.run(trigger=DAILY), at, zone)
    return 0


# =============================================================================
# Main
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fleet maintenance alerts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s status
  %(prog)s run
  %(prog)s run --test
  %(prog)s run --dry-run --output digest.html
  %(prog)s clear unit-12 oilChange --reason "Oil checked, clean" --by "J. Smith"
  %(prog)s history --vehicle unit-12
  %(prog)s --config /etc/fleet/config.yaml schedule
""",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to config YAML (default: $FLEET_CONFIG or ./config.yaml)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="Show every vehicle's current alerts")

    run_parser = subparsers.add_parser("run", help="Run one alert pass now")
    run_parser.add_argument(
        "--test",
        action="store_true",
        help="Bypass the 7-day batch gate (clearances still apply)",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Render the digest without sending or recording anything",
    )
    run_parser.add_argument(
        "--output",
        type=str,
        help="With --dry-run, write the rendered digest HTML to this file",
    )

    clear_parser = subparsers.add_parser(
        "clear", help="Dismiss an alert for 7 days without doing the work"
    )
    clear_parser.add_argument("vehicle_id", type=str, help="Vehicle id (file name)")
    clear_parser.add_argument(
        "kind",
        type=str,
        help="Alert kind: " + ", ".join(k.value for k in AlertKind),
    )
    clear_parser.add_argument(
        "--reason",
        type=str,
        required=True,
        help="Mechanic assessment explaining why the alert is dismissed",
    )
    clear_parser.add_argument(
        "--by", type=str, required=True, help="Who is dismissing the alert"
    )

    history_parser = subparsers.add_parser(
        "history", help="View the accountability log of dismissed alerts"
    )
    history_parser.add_argument("--vehicle", type=str, help="Only this vehicle id")
    history_parser.add_argument(
        "--asc", action="store_true", help="Oldest first instead of newest first"
    )

    subparsers.add_parser("schedule", help="Run the daily check at the configured time")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(args.config)
    except FleetAlertError as e:
        print(f"Error: {e}")
        return 1

    commands = {
        "status": cmd_status,
        "run": cmd_run,
        "clear": cmd_clear,
        "history": cmd_history,
        "schedule": cmd_schedule,
    }
    return commands[args.command](args, settings)


if __name__ == "__main__":
    sys.exit(main() or 0)
