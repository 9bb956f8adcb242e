from datetime import datetime, timezone
from typing import List, Literal, Optional


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[object]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows; cells are converted with str().
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all left ('l').

    Returns:
        str: Markdown formatted table, or "" when there are no rows.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = [str(h) for h in headers]
    # pipes inside cells would split columns
    rows = [[str(cell).replace("|", "\\|") for cell in row] for row in rows]

    if aligns is None:
        aligns = ["l"] * len(headers)
    elif len(aligns) != len(headers):
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {"l": ":---", "c": ":---:", "r": "---:"}

    lines = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join(align_map[a] for a in aligns) + " |",
    ]
    lines.extend("| " + " | ".join(row) + " |" for row in rows)
    return "\n".join(lines)


def format_money(amount: float) -> str:
    return f"${amount:,.2f}"


def format_timestamp(value: Optional[str]) -> str:
    """Render an ISO-8601 timestamp from the gateway in local time."""
    if not value:
        return "-"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone().strftime("%Y-%m-%d %H:%M")


def format_expiry(expires_at: Optional[int], now: float) -> str:
    """Human readable time left for a session."""
    if expires_at is None:
        return "no expiry"
    remaining = int(expires_at - now)
    if remaining <= 0:
        return "expired"
    hours, rest = divmod(remaining, 3600)
    minutes = rest // 60
    if hours:
        return f"{hours}h {minutes:02d}m left"
    return f"{minutes}m left" if minutes else "under a minute left"
