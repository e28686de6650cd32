#!/usr/bin/env python3
"""Re-encrypt stored Strava tokens under a new key.

Decrypts every member's token fields with OLD_KEY (or treats them as plaintext
with --from-plaintext, for databases written before encryption) and encrypts
them again with NEW_KEY. Offline only; run it while the cron is paused.

Usage:
    python scripts/reencrypt_tokens.py --old-key <b64> --new-key <b64> [--dry-run]
    python scripts/reencrypt_tokens.py --from-plaintext --new-key <b64> [--dry-run]
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy.orm import Session

from sub4.db import session_scope
from sub4.encryption import decrypt_token, encrypt_token, is_encrypted, load_key
from sub4.errors import InvalidInput
from sub4.models import Member

TOKEN_FIELDS = ("strava_access_token", "strava_refresh_token")


def reencrypt_members(db: Session, new_key: bytes, old_key: bytes | None = None,
                      dry_run: bool = False, verbose: bool = False) -> dict:
    """With old_key=None, values are taken as plaintext and already-encrypted ones are left alone."""
    counts = {"updated": 0, "skipped": 0, "failed": 0}

    for m in db.query(Member).order_by(Member.id).all():
        new_values = {}
        try:
            for field in TOKEN_FIELDS:
                value = getattr(m, field)
                if not value:
                    continue
                if old_key is None:
                    if is_encrypted(value):
                        continue
                    plain = value
                else:
                    plain = decrypt_token(value, old_key)
                new_values[field] = encrypt_token(plain, new_key)
        except InvalidInput as e:
            counts["failed"] += 1
            print(f"  FAILED   member {m.id} (athlete {m.strava_athlete_id}): {e}")
            continue

        if not new_values:
            counts["skipped"] += 1
            continue
        for field, value in new_values.items():
            setattr(m, field, value)
        counts["updated"] += 1
        if verbose:
            print(f"  UPDATED  member {m.id} (athlete {m.strava_athlete_id})")

    if dry_run:
        db.rollback()
    else:
        db.commit()
    return counts


def main():
    parser = argparse.ArgumentParser(description="Re-encrypt stored Strava tokens")
    parser.add_argument("--new-key", required=True, help="base64 key to encrypt with (32 bytes)")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--old-key", help="base64 key the tokens are currently encrypted with")
    source.add_argument("--from-plaintext", action="store_true", help="tokens are currently stored unencrypted")
    parser.add_argument("--dry-run", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    try:
        new_key = load_key(args.new_key)
        old_key = None if args.from_plaintext else load_key(args.old_key)
    except InvalidInput as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    with session_scope() as db:
        counts = reencrypt_members(db, new_key, old_key, dry_run=args.dry_run, verbose=args.verbose)

    prefix = "[dry run] " if args.dry_run else ""
    print(f"{prefix}updated={counts['updated']} skipped={counts['skipped']} failed={counts['failed']}")
    if counts["failed"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
