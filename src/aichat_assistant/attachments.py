"""Text file attachments embedded into chat message content."""

import mimetypes
from dataclasses import dataclass
from pathlib import Path

from .exceptions import AttachmentError

MAX_ATTACHMENT_SIZE = 1024 * 1024  # 1 MiB

SUPPORTED_TYPES = {
    "text/plain",
    "text/markdown",
    "text/csv",
    "application/json",
    "text/html",
    "text/css",
    "text/javascript",
    "application/javascript",
    "text/xml",
    "application/xml",
}
SUPPORTED_EXTENSIONS = {".txt", ".md", ".json", ".html", ".css", ".js", ".xml", ".csv"}


@dataclass
class Attachment:
    """A text file the user attached to a message."""

    name: str
    content: str
    mime_type: str = "text/plain"
    size: int = 0

    def __post_init__(self):
        if not self.size:
            self.size = len(self.content.encode("utf-8"))


def validate_attachment(name: str, size: int, mime_type: str = "") -> None:
    """Raise AttachmentError unless the file is a supported text file under 1 MiB."""
    ext = Path(name).suffix.lower()
    if mime_type not in SUPPORTED_TYPES and ext not in SUPPORTED_EXTENSIONS:
        raise AttachmentError(
            f"Unsupported file type for {name!r}: only text files "
            "(txt, md, json, html, css, js, xml, csv) can be attached"
        )
    if size > MAX_ATTACHMENT_SIZE:
        raise AttachmentError(f"File {name!r} is too large ({format_bytes(size)}, max 1 MB)")


def load_attachment(path: Path) -> Attachment:
    """Read a text file from disk as an Attachment."""
    size = path.stat().st_size
    mime_type = mimetypes.guess_type(path.name)[0] or ""
    validate_attachment(path.name, size, mime_type)
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise AttachmentError(f"File {path.name!r} is not valid UTF-8 text") from e
    return Attachment(name=path.name, content=content, mime_type=mime_type or "text/plain", size=size)


def render_message(text: str, attachment: Attachment | None = None) -> str:
    """Build message content with the attachment appended as a fenced block."""
    if attachment is None:
        return text
    lang = Path(attachment.name).suffix.lstrip(".").lower()
    block = f"📎 **{attachment.name}** ({format_bytes(attachment.size)})\n\n```{lang}\n{attachment.content}\n```"
    if not text.strip():
        return block
    return f"{text}\n\n{block}"


def format_bytes(size: int) -> str:
    """Human-readable byte count, e.g. ``1.5 KB``."""
    if size == 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"
