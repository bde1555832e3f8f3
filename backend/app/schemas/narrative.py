"""Block-level markup produced from a summary narrative."""

from enum import Enum

from pydantic import BaseModel, Field


class BlockKind(str, Enum):
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    LIST = "list"


class Span(BaseModel):
    """Inline run of text; emphasis marks a **bold** segment."""

    text: str
    emphasis: bool = False


class Block(BaseModel):
    """One rendered block.

    Headings carry a level (1 top, 2 section, 3 sub-heading) and spans.
    Paragraphs carry spans. Lists carry items, each a list of spans.
    """

    kind: BlockKind
    level: int | None = None
    spans: list[Span] = Field(default_factory=list)
    items: list[list[Span]] = Field(default_factory=list)
