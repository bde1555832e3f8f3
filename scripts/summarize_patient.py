#!/usr/bin/env python3
"""
Print the AI summary of one patient from the configured FHIR server.

Usage:
    python scripts/summarize_patient.py 592011                 # Rendered text
    python scripts/summarize_patient.py 592011 --html          # HTML blocks
    python scripts/summarize_patient.py 592011 --raw           # Narrative as returned

Needs OPENAI_API_KEY; FHIR_BASE_URL defaults to the public HAPI server.
"""
import argparse
import asyncio
import sys

from app.dependencies import build_services
from app.schemas.narrative import BlockKind
from app.schemas.sections import CacheStatus, Category
from app.services.narrative import blocks_to_html, render_narrative


def format_blocks(narrative: str) -> str:
    """Plain-text rendering: headings underlined, bullets indented."""
    lines = []
    for block in render_narrative(narrative):
        if block.kind is BlockKind.LIST:
            for item in block.items:
                lines.append("  - " + "".join(span.text for span in item))
            lines.append("")
            continue
        text = "".join(span.text.upper() if span.emphasis else span.text for span in block.spans)
        lines.append(text)
        if block.kind is BlockKind.HEADING:
            lines.append("=" * len(text) if block.level == 1 else "-" * len(text))
        else:
            lines.append("")
    return "\n".join(lines).rstrip()


async def summarize(patient_id: str) -> tuple[CacheStatus, str]:
    services = build_services()
    try:
        entry = await services.cache.ensure_loaded(patient_id, Category.SUMMARY)
    finally:
        await services.close()
    if entry.status is CacheStatus.SUCCESS:
        return entry.status, entry.data
    return entry.status, entry.error or "unknown error"


def main() -> int:
    parser = argparse.ArgumentParser(description="Summarize a FHIR patient record")
    parser.add_argument("patient_id", help="FHIR Patient id")
    output = parser.add_mutually_exclusive_group()
    output.add_argument("--html", action="store_true", help="Print HTML")
    output.add_argument("--raw", action="store_true", help="Print the narrative unrendered")
    args = parser.parse_args()

    status, text = asyncio.run(summarize(args.patient_id))
    if status is not CacheStatus.SUCCESS:
        print(f"Summary failed: {text}", file=sys.stderr)
        return 1

    if args.raw:
        print(text)
    elif args.html:
        print(blocks_to_html(render_narrative(text)))
    else:
        print(format_blocks(text))
    return 0


if __name__ == "__main__":
    sys.exit(main())
