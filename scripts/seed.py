#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from branchtale.config import settings
from branchtale.db.bootstrap import init_db
from branchtale.db.session import SessionLocal
from branchtale.modules.story.packs import import_story_pack, load_pack_json

DEFAULT_STORY_FILE = Path("examples/storypacks/lost_temple.json")


def seed_story(*, story_file: Path, publish: bool) -> dict:
    if not story_file.exists():
        raise FileNotFoundError(f"story file not found: {story_file}")

    payload = load_pack_json(story_file)
    payload["is_published"] = bool(publish)

    init_db()
    with SessionLocal() as db:
        story_id = import_story_pack(db, payload)

    return {
        "story_id": story_id,
        "published": bool(publish),
        "source_path": str(story_file),
    }


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed or replace a story pack in the database.")
    parser.add_argument(
        "--story-file",
        default=str(DEFAULT_STORY_FILE),
        help="Path to story pack JSON file.",
    )
    parser.add_argument(
        "--publish",
        dest="publish",
        action="store_true",
        help="Publish the seeded story (default).",
    )
    parser.add_argument(
        "--no-publish",
        dest="publish",
        action="store_false",
        help="Seed without publishing.",
    )
    parser.set_defaults(publish=True)
    return parser.parse_args()


def main() -> int:
    logging.basicConfig(level=settings.log_level)
    args = parse_args()
    story_file = Path(args.story_file)
    result = seed_story(story_file=story_file, publish=bool(args.publish))
    print(
        "seeded story "
        f"story_id={result['story_id']} published={result['published']} source={result['source_path']}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
