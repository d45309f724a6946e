"""
Example: load a toc tree from JSON into the SQLite resource tree used by the API.

Usage:
    python3 seed_tocs.py --tocs tocs.json --db ./data/help.db --locale en

The JSON file is a list of tocs:
    [{"href": "/plugin/toc.xml", "label": "Guide",
      "topics": [{"href": "/plugin/intro.html", "label": "Intro"}]}]
"""

import argparse
import json
import logging
from pathlib import Path

from help_webapp.workingsets import SqlAlchemyResourceTree, TocRecord, TopicRecord


def setup_logging():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,
    )


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--tocs", required=True, type=Path, help="Path to toc JSON file")
    parser.add_argument("--db", default=Path("./data/help.db"), type=Path, help="SQLite DB path")
    parser.add_argument("--locale", default="en", help="Locale the tocs belong to")
    args = parser.parse_args()

    setup_logging()
    if not args.tocs.exists():
        raise FileNotFoundError(f"Toc file not found: {args.tocs}")

    args.db.parent.mkdir(parents=True, exist_ok=True)
    tree = SqlAlchemyResourceTree(f"sqlite+pysqlite:///{args.db}", locale=args.locale)
    with args.tocs.open("r", encoding="utf-8") as f:
        entries = json.load(f)

    for toc_index, entry in enumerate(entries):
        toc = TocRecord(href=entry["href"], label=entry.get("label", entry["href"]), locale=args.locale, order_index=toc_index)
        topics = [
            TopicRecord(toc_href=toc.href, href=t["href"], label=t.get("label", t["href"]), order_index=i)
            for i, t in enumerate(entry.get("topics", []))
        ]
        tree.save_toc(toc, topics)
        logging.info("Loaded toc %s with %s topics", toc.href, len(topics))

    print(f"Loaded {len(entries)} tocs into {args.db} for locale {args.locale}")


if __name__ == "__main__":
    main()
