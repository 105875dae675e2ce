"""Export chat sessions to Markdown and JSON formats."""

import json
from urllib.parse import quote

from .core import ChatMessage, ChatSession


def session_to_markdown(session: ChatSession, messages: list[ChatMessage]) -> str:
    """Export a session and its messages as clean Markdown."""
    lines = [f"# {session.name}", ""]

    lines.append(f"**Model:** {session.model}")
    lines.append(f"**Created:** {session.created_at.isoformat()}")
    lines.append(f"**Updated:** {session.updated_at.isoformat()}")
    lines.append(f"**Messages:** {session.message_count}")
    lines.extend(["", "---", ""])

    for msg in messages:
        role_label = msg.role.capitalize()
        ts = f" ({msg.created_at.strftime('%Y-%m-%d %H:%M')})"
        lines.append(f"## {role_label}{ts}")
        lines.append("")
        lines.append(msg.content)
        lines.extend(["", "---", ""])

    return "\n".join(lines)


def session_to_json(session: ChatSession, messages: list[ChatMessage]) -> str:
    """Export a session and its messages as structured JSON."""
    data = {
        "session": session.to_dict(),
        "messages": [msg.to_dict() for msg in messages],
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def export_filename(session: ChatSession, fmt: str) -> str:
    safe_title = "".join(c if c.isalnum() or c in "-_ " else "" for c in session.name)[:50]
    return f"{safe_title or session.id}.{fmt}"


def content_disposition(session: ChatSession, fmt: str) -> str:
    """Attachment header with an ASCII filename and an RFC 5987 UTF-8 one."""
    filename = export_filename(session, fmt)
    stem = filename[: -len(fmt) - 1]
    ascii_stem = stem.encode("ascii", "ignore").decode().strip()
    fallback = f"{ascii_stem or session.id}.{fmt}"
    header = f'attachment; filename="{fallback}"'
    if fallback != filename:
        header += f"; filename*=UTF-8''{quote(filename)}"
    return header
