"""Parse and format the free-text contents note stored on packages.

The note looks like::

    To: Jane Doe | Acme Ltd
    12 Harbour Road
    Springfield
    Items: Small Shipping Bag x2, Shipping Tag x1
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_PIPE_RE = re.compile(r"^(.+?)\s*\|\s*(.+)$")
_PAREN_RE = re.compile(r"^(.+?)\s+\((.+)\)\s*$")


@dataclass
class ParsedContents:
    recipient_name: str = ""
    recipient_company: str = ""
    delivery_address: str = ""
    contents: str = ""


def _normalize_name(value: str) -> str:
    return " ".join(value.split())


def parse_contents_note(note: str) -> ParsedContents:
    parsed = ParsedContents()
    address_lines: list[str] = []
    for line in note.splitlines():
        if not line.strip():
            continue
        if line.startswith("To: "):
            to_line = line[4:].strip()
            match = _PIPE_RE.match(to_line) or _PAREN_RE.match(to_line)
            if match:
                parsed.recipient_name = _normalize_name(match.group(1))
                parsed.recipient_company = match.group(2).strip()
            else:
                parsed.recipient_name = to_line
        elif line.startswith("Items: "):
            parsed.contents = line[7:].strip()
        else:
            address_lines.append(line.strip())
    parsed.delivery_address = "\n".join(address_lines)
    return parsed


def format_contents_note(
    recipient_name: str = "",
    recipient_company: str = "",
    delivery_address: str = "",
    contents: str = "",
) -> str:
    parts: list[str] = []
    if recipient_name or recipient_company:
        to_line = "To: " + recipient_name.strip()
        if recipient_company:
            to_line += f" | {recipient_company.strip()}"
        parts.append(to_line)
    if delivery_address:
        parts.append(delivery_address.strip())
    if contents:
        parts.append(f"Items: {contents.strip()}")
    return "\n".join(parts)
