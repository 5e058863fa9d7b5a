#!/usr/bin/env python3
"""
Find sponsor_admin profiles with no sponsor_admins link and try to repair them.

A sponsor is matched when its name or slug equals the local part of the
user's email.

Usage:
    python scripts/fix_sponsor_admin_links.py --dry-run
    python scripts/fix_sponsor_admin_links.py

Environment:
    Requires DATABASE_URL or DB_* variables (privileged connection).
"""

import os
import sys
import argparse

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


def main():
    parser = argparse.ArgumentParser(description='Repair missing sponsor admin links')
    parser.add_argument('--dry-run', action='store_true', help='Report matches without writing links')
    args = parser.parse_args()

    from sponsor_portal.main import app, db
    from sponsor_portal.services.diagnostics import fix_unlinked_sponsor_admins

    with app.app_context():
        results = fix_unlinked_sponsor_admins(db.session, dry_run=args.dry_run)
        if not results:
            print("All sponsor admins have sponsor links")
            return

        print(f"Found {len(results)} sponsor admin(s) without a sponsor link\n")
        for entry in results:
            if entry['action'] == 'no_match':
                print(f"  {entry['email']}: no matching sponsor, link manually")
            else:
                verb = 'would link' if entry['action'] == 'would_link' else 'linked'
                print(f"  {entry['email']}: {verb} to {entry['sponsor_name']} ({entry['sponsor_id']})")

        linked = sum(1 for entry in results if entry['action'] == 'linked')
        print(f"\nDone: {linked} linked, {len(results) - linked} unchanged")


if __name__ == '__main__':
    main()
