#!/usr/bin/env python3
"""
cleanup.py

Purges stored launch audits (test_session rows) older than a retention
window. The newest session is always kept so /api/load-test/latest keeps
answering.

Usage:
    # Dry run (shows what would be deleted, no changes):
    python cleanup.py

    # Different retention window (default 30 days):
    python cleanup.py --days 7

    # Actually delete:
    python cleanup.py --commit

Run from backend/ (where synthmind/ lives).
"""

import sys
from datetime import timedelta

from synthmind import create_app
from synthmind.extensions import db
from synthmind.models import TestSession, now_utc

DEFAULT_RETENTION_DAYS = 30


def cleanup(days=DEFAULT_RETENTION_DAYS, commit=False, app=None):
    app = app or create_app()

    with app.app_context():
        cutoff = now_utc() - timedelta(days=days)

        newest = TestSession.query.order_by(TestSession.id.desc()).first()
        query = TestSession.query.filter(TestSession.created_at < cutoff)
        if newest is not None:
            query = query.filter(TestSession.id != newest.id)
        expired = query.order_by(TestSession.id.asc()).all()

        if not expired:
            print(f"No sessions older than {days} days. Database is clean.")
            return 0

        print(f"Found {len(expired)} sessions older than {days} days (before {cutoff:%Y-%m-%d %H:%M}).\n")

        for session in expired:
            print(f"  #{session.id:<6} {session.created_at:%Y-%m-%d}  {session.url[:60]}")
            db.session.delete(session)

        print(f"\n{'=' * 60}")
        print(f"Total: {len(expired)} sessions to remove")

        if commit:
            db.session.commit()
            print(f"\nDONE — {len(expired)} sessions deleted and committed.")
        else:
            db.session.rollback()
            print(f"\nDRY RUN — no changes made. Run with --commit to apply.")

        return len(expired)


if __name__ == "__main__":
    do_commit = "--commit" in sys.argv
    retention = DEFAULT_RETENTION_DAYS
    if "--days" in sys.argv:
        idx = sys.argv.index("--days")
        try:
            retention = int(sys.argv[idx + 1])
        except (IndexError, ValueError):
            print("Usage: python cleanup.py [--days N] [--commit]")
            sys.exit(2)
    cleanup(days=retention, commit=do_commit)
