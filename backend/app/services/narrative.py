"""Render a summary narrative into headings, paragraphs and bullet lists.

The narrative dialect is a small slice of markdown: ``#`` runs for
headings, ``-``/``*`` bullets and ``**bold**`` spans. Anything else is a
paragraph.
"""

import html
import re

from app.schemas.narrative import Block, BlockKind, Span

# Non-greedy so adjacent bold runs stay separate
_BOLD_PATTERN = re.compile(r"(\*\*.+?\*\*)")
_HEADING_PATTERN = re.compile(r"^(#+)\s*(.*)$")
_BULLET_PREFIXES = ("- ", "* ")
# Marker lines with no text produce no block
_BARE_MARKERS = ("-", "*")


def parse_inline(text: str) -> list[Span]:
    """Split text into plain and emphasized spans, keeping order and spacing."""
    spans = []
    for segment in _BOLD_PATTERN.split(text):
        if not segment:
            continue
        if _BOLD_PATTERN.fullmatch(segment):
            spans.append(Span(text=segment[2:-2], emphasis=True))
        else:
            spans.append(Span(text=segment))
    return spans


def _classify_line(line: str) -> Block:
    match = _HEADING_PATTERN.match(line)
    if match is None:
        return Block(kind=BlockKind.PARAGRAPH, spans=parse_inline(line))
    level = min(len(match.group(1)), 3)
    return Block(kind=BlockKind.HEADING, level=level, spans=parse_inline(match.group(2)))


def render_narrative(text: str) -> list[Block]:
    """Parse narrative text into blocks.

    Bullet lines accumulate into one pending list; a blank line or any
    other line flushes it as a single list block. Headings are classified
    by their leading ``#`` count: one is a top heading, two a section
    heading, three or more a sub-heading. Bare markers ("#", "-") with
    no text are dropped.
    """
    blocks: list[Block] = []
    pending: list[list[Span]] = []

    def flush() -> None:
        if pending:
            blocks.append(Block(kind=BlockKind.LIST, items=list(pending)))
            pending.clear()

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            flush()
            continue
        if line.startswith(_BULLET_PREFIXES):
            pending.append(parse_inline(line[2:].strip()))
            continue
        if line in _BARE_MARKERS:
            continue
        block = _classify_line(line)
        if not block.spans:
            continue
        flush()
        blocks.append(block)

    flush()
    return blocks


def _spans_to_html(spans: list[Span]) -> str:
    return "".join(
        f"<strong>{html.escape(span.text)}</strong>" if span.emphasis else html.escape(span.text)
        for span in spans
    )


# Heading level -> tag; the page title is h1 so narrative headings start at h2
_HEADING_TAGS = {1: "h2", 2: "h3", 3: "h4"}


def blocks_to_html(blocks: list[Block]) -> str:
    """Serialize rendered blocks as escaped HTML."""
    parts = []
    for block in blocks:
        if block.kind is BlockKind.HEADING:
            tag = _HEADING_TAGS[block.level or 1]
            parts.append(f"<{tag}>{_spans_to_html(block.spans)}</{tag}>")
        elif block.kind is BlockKind.LIST:
            items = "".join(f"<li>{_spans_to_html(item)}</li>" for item in block.items)
            parts.append(f"<ul>{items}</ul>")
        else:
            parts.append(f"<p>{_spans_to_html(block.spans)}</p>")
    return "\n".join(parts)
