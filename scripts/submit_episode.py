#!/usr/bin/env python3
"""Submit an episode PDF for script generation and wait for the scripts.

Usage:
    python scripts/submit_episode.py "Episode name" path/to/source.pdf
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure project root is on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import settings
from src import store as store_module
from src.console import Console
from src.exceptions import SubmissionValidationError
from src.models import SCRIPT_SLOTS
from src.store import EpisodeStore
from src.submission import Resolution, SubmissionState
from src.webhook import PDF_CONTENT_TYPE, WebhookClient

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def print_result(state: SubmissionState) -> None:
    links = state.links
    print(f"\n{'='*60}")
    print(f"Episode: {state.episode_name}")
    print(f"  Result: {state.resolution.value if state.resolution else 'unresolved'}")
    for column, label in SCRIPT_SLOTS:
        print(f"  {label}: {links.script(column) or '-'}")
    print(f"  Full Script: {links.episode_interview_full_script or '-'}")
    print(f"  Interview File: {links.episode_interview_file or '-'}")
    print(f"  Script Status: {links.episode_interview_script_status or 'Pending'}")
    print(f"{'='*60}")


async def run(name: str, pdf_path: Path, timeout: float) -> SubmissionState:
    store = await EpisodeStore.connect()
    console = Console(store, WebhookClient(), timeout=timeout)
    try:
        await console.start()
        await console.form.submit(name, pdf_path.name, PDF_CONTENT_TYPE, pdf_path.read_bytes())
        # The form's own timeout resolves the session; the margin only guards a stuck loop.
        return await console.form.wait_resolved(timeout + 30)
    finally:
        await console.close()
        await store.close()


def main():
    parser = argparse.ArgumentParser(description="Submit an episode PDF for script generation.")
    parser.add_argument("name", help="Episode interview file name")
    parser.add_argument("pdf", help="Path to the source PDF")
    parser.add_argument("--timeout", type=float, default=settings.generation_timeout_seconds,
                        help="Seconds to wait for the summary script (default: %(default)s)")
    args = parser.parse_args()

    pdf_path = Path(args.pdf)
    if not store_module.is_configured():
        logger.error("SUPABASE_URL / SUPABASE_KEY not set")
        sys.exit(1)
    if not pdf_path.exists():
        logger.error("PDF not found: %s", pdf_path)
        sys.exit(1)

    try:
        state = asyncio.run(run(args.name, pdf_path, args.timeout))
    except SubmissionValidationError as e:
        for field, message in e.errors.items():
            logger.error("%s: %s", field, message)
        sys.exit(2)

    print_result(state)
    if state.resolution == Resolution.TIMEOUT:
        sys.exit(3)


if __name__ == "__main__":
    main()
