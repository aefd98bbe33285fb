#!/usr/bin/env python3
"""
Quick checks so the backend can start and deliver. Run from backend/:
  python scripts/check_backend.py
"""
import os
import sys
from pathlib import Path

# Run from backend/
backend_dir = Path(__file__).resolve().parent.parent
os.chdir(backend_dir)
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))


def main():
    errors = []

    # 1) .env
    env_file = backend_dir / ".env"
    if not env_file.exists():
        errors.append("backend/.env missing. Set DATABASE_URL, SMTP_USER/SMTP_PASSWORD and the APNS_* keys.")
    else:
        print("OK  .env exists")

    # 2) DB connection
    try:
        from sqlalchemy import text

        from grant_notify.db.session import engine

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("OK  Database connection (DATABASE_URL)")
    except Exception as e:
        errors.append(f"Database: {e}")
        print("FAIL Database:", e)

    # 3) App import (catches missing deps, bad imports)
    try:
        from grant_notify.main import app  # noqa: F401

        print("OK  App import (grant_notify.main)")
    except Exception as e:
        errors.append(f"App import: {e}")
        print("FAIL App import:", e)
        print("\nFix the above, then run:")
        print("  cd backend && uvicorn grant_notify.main:app --reload --port 8000")
        return 1

    # 4) Channel credentials: an unconfigured channel keeps its deliveries pending
    from grant_notify.services.channels import get_adapter, list_channels

    for channel in list_channels():
        if get_adapter(channel).is_configured():
            print(f"OK  {channel} channel configured")
        else:
            errors.append(f"{channel} channel not configured; deliveries will stay pending.")
            print(f"WARN {channel} channel not configured")

    if errors:
        print("\n---")
        for e in errors:
            print("•", e)
        return 1

    print("\nAll checks passed. Start with: uvicorn grant_notify.main:app --port 8000")
    return 0


if __name__ == "__main__":
    sys.exit(main())
