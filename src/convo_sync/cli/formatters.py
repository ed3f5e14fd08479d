from __future__ import annotations

from typing import Dict, List, Optional

from convo_sync.models.message import Message


def table(headers: List[str], rows: List[List[str]], max_widths: Optional[Dict[int, int]] = None) -> str:
    """Format data as ASCII table."""
    if not rows:
        return "No data"

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            if i < len(widths):
                widths[i] = max(widths[i], len(str(cell)))

    if max_widths:
        for i, max_w in max_widths.items():
            if i < len(widths):
                widths[i] = min(widths[i], max_w)

    header_line = "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "  ".join("-" * w for w in widths)
    row_lines = []
    for row in rows:
        row_lines.append(
            "  ".join(str(cell)[: widths[i]].ljust(widths[i]) for i, cell in enumerate(row))
        )

    return "\n".join([header_line, separator] + row_lines)


def message_table(messages: List[Message]) -> str:
    rows = [
        [
            message.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            message.user.name,
            message.status.kind.value,
            message.text,
            str(len(message.attachments)),
        ]
        for message in messages
    ]
    return table(["TIME", "FROM", "STATUS", "TEXT", "FILES"], rows, max_widths={3: 60})
