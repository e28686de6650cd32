#!/usr/bin/env python3
"""Queue Strava activities by hand when webhook deliveries were missed.

Goes through the same idempotent enqueue path as the webhook, so queuing an
activity that is already in the queue is a no-op.

Usage:
    python scripts/simulate_webhook.py --athlete 35797774 --list [--days 7]
    python scripts/simulate_webhook.py --athlete 35797774 --activity 12345678
"""

import argparse
import asyncio
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sub4.db import session_scope
from sub4.ingest import enqueue_event
from sub4.milestones import format_time
from sub4.models import Member
from sub4.schemas import WebhookEvent
from sub4.strava import list_activities
from sub4.tokens import get_valid_token
from sub4.utils_time import utcnow


async def _list(db, member: Member, days: int):
    token = await get_valid_token(db, member.id)
    now = utcnow()
    acts = await list_activities(
        token, int((now - timedelta(days=days)).timestamp()), int(now.timestamp()),
    )
    for a in acts:
        km = a.distance / 1000
        print(f"  {a.id}  {a.start_date:%Y-%m-%d %H:%M}  {a.sport_type or a.type:<10} "
              f"{km:6.2f} km  {format_time(a.moving_time):>8}  {a.name}")


def main():
    parser = argparse.ArgumentParser(description="Manually queue Strava activities")
    parser.add_argument("--athlete", type=int, required=True, help="Strava athlete id")
    parser.add_argument("--activity", type=int, help="Strava activity id to queue")
    parser.add_argument("--list", action="store_true", help="list recent activities instead")
    parser.add_argument("--days", type=int, default=7)
    args = parser.parse_args()

    if not args.list and args.activity is None:
        print("Nothing to do. Use --list or --activity.")
        sys.exit(1)

    with session_scope() as db:
        member = db.query(Member).filter_by(strava_athlete_id=args.athlete).first()
        if not member:
            print(f"ERROR: no member with Strava athlete id {args.athlete}")
            sys.exit(1)

        if args.list:
            asyncio.run(_list(db, member, args.days))
            return

        event = WebhookEvent(
            object_type="activity",
            object_id=args.activity,
            aspect_type="create",
            owner_id=args.athlete,
        )
        if enqueue_event(db, event):
            print(f"Queued activity {args.activity} for {member.name}")
        else:
            print(f"Activity {args.activity} was already queued")


if __name__ == "__main__":
    main()
