#!/usr/bin/env python3
"""
Print what today's daily sent digest would contain, without enqueueing anything.

Run from backend dir:
  python scripts/daily_digest_preview.py
  python scripts/daily_digest_preview.py --at 2026-02-10T16:00:00Z
"""
import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from grant_notify.db.session import SessionLocal
from grant_notify.services.scheduled import preview_daily_digest


def main():
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--at", help="ISO timestamp to evaluate instead of now (e.g. 2026-02-10T16:00:00Z)")
    args = parser.parse_args()
    now = datetime.fromisoformat(args.at.replace("Z", "+00:00")) if args.at else None

    db = SessionLocal()
    try:
        preview = preview_daily_digest(db, now=now)
    finally:
        db.close()
    print(json.dumps(preview, indent=2, default=str))


if __name__ == "__main__":
    main()
