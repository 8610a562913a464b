"""Convenience script for running one scrape locally."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure the src directory is on the Python path so the postscraper package can be imported
SRC_PATH = Path(__file__).resolve().parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from postscraper.config import SettingsStore  # noqa: E402  (import after path setup)
from postscraper.services.orchestrator import run  # noqa: E402


def main() -> None:
    """Load the stored settings and run the scraper once."""

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    settings_path = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        config = SettingsStore(settings_path).load_config()
    except ValueError as exc:
        logging.error("Could not load settings: %s", exc)
        sys.exit(1)

    result = run(config)
    logging.info("Stored %d new posts (%s)", result.scraped_count, result.reason.value)
    print(result.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
