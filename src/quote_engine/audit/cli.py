"""CLI query interface for the quote audit trail.

Provides an argparse-based command-line tool for querying audit entries
with filters by quote, actor, action, outcome, date range, and a shorthand
``--last`` duration.  Output formats: table (default) or JSON.

Usage::

    python -m quote_engine.audit.cli --quote 3f2a... --last 7d
    python -m quote_engine.audit.cli --action export_quotes --format json
    python -m quote_engine.audit.cli --failures-only --last 24h
"""

from __future__ import annotations

import argparse
import json
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from quote_engine.audit.models import AuditAction
from quote_engine.audit.store import close_audit_db, init_audit_db, query_audit_trail


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for audit trail queries."""
    parser = argparse.ArgumentParser(description="Query quote audit trail")

    parser.add_argument("--quote", type=str, help="Filter by quote ID")
    parser.add_argument("--actor", type=str, help="Filter by actor ID")
    parser.add_argument(
        "--action",
        type=str,
        choices=[action.value for action in AuditAction],
        help="Filter by action",
    )
    parser.add_argument(
        "--failures-only",
        action="store_true",
        help="Only show failed or denied actions",
    )
    parser.add_argument("--from-date", type=str, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--to-date", type=str, help="End date (YYYY-MM-DD)")
    parser.add_argument(
        "--last",
        type=str,
        help='Shorthand duration (e.g., "7d", "24h", "30d")',
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["table", "json"],
        default="table",
        dest="output_format",
        help="Output format (default: table)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum results (default: 50)",
    )
    parser.add_argument(
        "--db",
        type=str,
        default="data/audit.db",
        help="Path to audit database (default: data/audit.db)",
    )

    return parser


def parse_last_duration(last: str, now: datetime | None = None) -> str:
    """Convert a shorthand duration to an ISO 8601 timestamp.

    Supported formats:
        - ``Nd`` -- N days ago (e.g., ``7d``)
        - ``Nh`` -- N hours ago (e.g., ``24h``)

    Raises:
        ValueError: If the format is not recognized.
    """
    if not last or len(last) < 2:
        msg = f"Unrecognized duration format: {last!r}"
        raise ValueError(msg)

    unit = last[-1]
    try:
        value = int(last[:-1])
    except ValueError:
        msg = f"Unrecognized duration format: {last!r}"
        raise ValueError(msg) from None

    now = now or datetime.now(tz=UTC)

    if unit == "d":
        result = now - timedelta(days=value)
    elif unit == "h":
        result = now - timedelta(hours=value)
    else:
        msg = f"Unrecognized duration format: {last!r}. Use 'd' for days or 'h' for hours."
        raise ValueError(msg)

    return result.strftime("%Y-%m-%dT%H:%M:%SZ")


def format_table(results: list[dict[str, Any]]) -> str:
    """Format audit results as a human-readable table.

    Columns: Timestamp, Action, Actor, Quote, IP, Result.
    Long fields are truncated to fit reasonable terminal width.
    """
    if not results:
        return "No results found."

    headers = ["Timestamp", "Action", "Actor", "Quote", "IP", "Result"]
    widths = [27, 18, 20, 32, 15, 24]

    def truncate(value: str | None, width: int) -> str:
        s = str(value or "")
        if len(s) > width:
            return s[: width - 3] + "..."
        return s

    lines: list[str] = []

    header_line = "  ".join(h.ljust(w) for h, w in zip(headers, widths, strict=True))
    lines.append(header_line)
    lines.append("-" * len(header_line))

    for row in results:
        outcome = "ok" if row.get("success") else f"FAILED {row.get('failure_reason') or ''}"
        if row.get("passive"):
            outcome = f"{outcome} (passive)"
        cells = [
            truncate(row.get("timestamp"), widths[0]),
            truncate(row.get("action"), widths[1]),
            truncate(row.get("actor_email") or row.get("actor_id"), widths[2]),
            truncate(row.get("quote_id"), widths[3]),
            truncate(row.get("client_ip"), widths[4]),
            truncate(outcome.strip(), widths[5]),
        ]
        lines.append("  ".join(c.ljust(w) for c, w in zip(cells, widths, strict=True)))

    return "\n".join(lines)


def format_json(results: list[dict[str, Any]]) -> str:
    """Format audit results as a pretty-printed JSON string."""
    return json.dumps(results, indent=2)


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, query audit trail, and print results."""
    parser = build_parser()
    args = parser.parse_args(argv)

    from_date = args.from_date
    if args.last:
        from_date = parse_last_duration(args.last)

    db_path = Path(args.db)
    if not db_path.exists():
        db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = init_audit_db(db_path)

    try:
        results = query_audit_trail(
            conn,
            quote_id=args.quote,
            actor_id=args.actor,
            action=args.action,
            success=False if args.failures_only else None,
            from_date=from_date,
            to_date=args.to_date,
            limit=args.limit,
        )

        output = format_json(results) if args.output_format == "json" else format_table(results)

        print(output)
    finally:
        close_audit_db(conn)


if __name__ == "__main__":
    main()
