"""Frontmatter codec for page blobs.

A page blob starts with one or more metadata blocks followed by the body::

    ---
    title: Garvia
    live_sync_enabled: "true"
    ---
    ---
    title: Garvia (fixed)
    ---
    # Garvia
    ...

Older writers appended a fresh block instead of rewriting the first one, so
decoding folds every consecutive leading block into one map, left to right,
later values winning. A block after the first only counts when it holds at
least one ``key: value`` line, so a body may open with a ``---`` rule or a
fenced heading.

Encoding always writes a single block. When the body itself opens with
something that would decode as another block, the encoder puts
``BODY_MARKER`` on the line after the closing fence; the decoder drops one
marker found there.
"""

import logging
import re
from typing import Mapping, Optional

from ..exceptions import ValidationError

logger = logging.getLogger(__name__)

FENCE = "---"
BODY_MARKER = "<!-- body -->"

_KEY_LINE = re.compile(r"^([^:#\s][^:]*?)\s*:(.*)$")
_LIST_ITEM = re.compile(r"^\s+-\s*(.*)$")
_TRUE_VALUES = frozenset({"true", "yes", "on", "1"})


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _needs_quoting(value: str) -> bool:
    if value != value.strip():
        return True
    return len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"')


def _is_fence(line: str) -> bool:
    return line.rstrip("\r\n").rstrip() == FENCE


def _is_marker(line: str) -> bool:
    return line.rstrip("\r\n") == BODY_MARKER


def _parse_block(lines: list[str]) -> Optional[dict[str, str]]:
    """Parse the inside of one block, or None if it is not a metadata block.

    Accepts ``key: value`` lines, comments, blank lines, and indented
    ``- item`` lines continuing a key with an empty value (joined with
    ", " so ``parse_list`` can read them back).
    """
    block: dict[str, str] = {}
    list_key: Optional[str] = None
    for raw in lines:
        line = raw.rstrip("\r\n")
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        item = _LIST_ITEM.match(line)
        if item and list_key is not None:
            entry = _unquote(item.group(1))
            block[list_key] = f"{block[list_key]}, {entry}" if block[list_key] else entry
            continue
        match = _KEY_LINE.match(line)
        if match is None:
            return None
        key = match.group(1).strip()
        value = _unquote(match.group(2))
        block[key] = value
        list_key = key if value == "" else None
    return block


class FrontmatterCodec:
    """Split blobs into (frontmatter, body) and join them back."""

    def decode(self, blob: bytes | str) -> tuple[dict[str, str], str]:
        text = blob.decode("utf-8") if isinstance(blob, bytes) else blob
        if text.startswith("\ufeff"):
            text = text[1:]

        lines = text.splitlines(keepends=True)
        blocks: list[dict[str, str]] = []
        consumed = 0

        while True:
            start = consumed
            if blocks:
                # Blank lines may separate consecutive blocks.
                while start < len(lines) and not lines[start].strip():
                    start += 1
            if start >= len(lines) or not _is_fence(lines[start]):
                break
            end = start + 1
            while end < len(lines) and not _is_fence(lines[end]):
                end += 1
            if end >= len(lines):
                break
            block = _parse_block(lines[start + 1:end])
            if block is None or (blocks and not block):
                break
            blocks.append(block)
            consumed = end + 1

        if len(blocks) > 1:
            logger.debug("Merged %d frontmatter blocks", len(blocks))

        if blocks and consumed < len(lines) and _is_marker(lines[consumed]):
            consumed += 1

        merged: dict[str, str] = {}
        for block in blocks:
            merged.update(block)
        return merged, "".join(lines[consumed:])

    def encode(self, frontmatter: Mapping[str, str], body: str) -> str:
        out = [FENCE]
        for key, value in frontmatter.items():
            key = str(key).strip()
            value = "" if value is None else str(value)
            if not key or ":" in key or "\n" in key or key.startswith("#"):
                raise ValidationError(f"Invalid frontmatter key: {key!r}", field="frontmatter")
            if "\n" in value or "\r" in value:
                raise ValidationError(
                    f"Frontmatter value for '{key}' must be a single line", field="frontmatter"
                )
            out.append(f'{key}: "{value}"' if _needs_quoting(value) else f"{key}: {value}")
        out.append(FENCE)
        head = "\n".join(out) + "\n"
        if self._needs_marker(head, body):
            head += BODY_MARKER + "\n"
        return head + body

    def _needs_marker(self, head: str, body: str) -> bool:
        first = body.splitlines(keepends=True)[:1]
        if first and _is_marker(first[0]):
            return True
        return self.decode(head + body)[1] != body

    def encode_bytes(self, frontmatter: Mapping[str, str], body: str) -> bytes:
        return self.encode(frontmatter, body).encode("utf-8")


def parse_bool(value: Optional[str]) -> bool:
    """Frontmatter flag: ``true``/``yes``/``on``/``1`` in any case."""
    return (value or "").strip().lower() in _TRUE_VALUES


def parse_list(value: Optional[str]) -> list[str]:
    """Comma-separated (optionally bracketed) list, e.g. ``[lore, towns]``."""
    if not value:
        return []
    text = value.strip()
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1]
    return [_unquote(item) for item in text.split(",") if item.strip()]


def format_list(items: list[str]) -> str:
    return ", ".join(item.strip() for item in items if item.strip())
