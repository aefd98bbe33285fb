#!/usr/bin/env python3
"""One-off script to see what the notification queue holds: deliveries by channel/status and stuck events."""
import sys
from pathlib import Path

# ensure backend is on path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from sqlalchemy import func

from grant_notify.db.session import SessionLocal
from grant_notify.models.notification_delivery import NotificationDelivery
from grant_notify.models.notification_event import NotificationEvent


def main():
    db = SessionLocal()
    try:
        rows = (
            db.query(NotificationDelivery.channel, NotificationDelivery.status, func.count(NotificationDelivery.id))
            .group_by(NotificationDelivery.channel, NotificationDelivery.status)
            .order_by(NotificationDelivery.channel, NotificationDelivery.status)
            .all()
        )
        print("=== notification_deliveries ===")
        for channel, status, count in rows:
            print(f"  {channel:<6} {status:<20} {count}")

        open_events = (
            db.query(NotificationEvent)
            .filter(NotificationEvent.processed_at.is_(None))
            .order_by(NotificationEvent.created_at.asc())
            .all()
        )
        print("\n=== unprocessed notification_events ===")
        print(f"Count: {len(open_events)}")
        for e in open_events[:15]:
            print(f"  id={e.id} type={e.event_type} key={e.idempotency_key!r} created_at={e.created_at}")
        if len(open_events) > 15:
            print(f"  ... and {len(open_events) - 15} more")

        failed = (
            db.query(NotificationDelivery)
            .filter(NotificationDelivery.status.in_(("failed", "permanently_failed")))
            .order_by(NotificationDelivery.last_attempt_at.desc())
            .limit(10)
            .all()
        )
        print("\n=== latest failures ===")
        for d in failed:
            print(f"  id={d.id} event={d.event_id} {d.channel} {d.status} attempts={d.attempt_count} error={d.last_error!r}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
