#!/usr/bin/env python3
"""
Explain which of a sponsor's promotions are publicly visible and why not.

Usage:
    python scripts/check_promotions.py 65f38ae3-fa7a-4c2a-a561-56a622c0a03e
"""

import os
import sys
import argparse

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


def main():
    parser = argparse.ArgumentParser(description='Check promotion visibility for a sponsor')
    parser.add_argument('sponsor_id', help='Sponsor id')
    args = parser.parse_args()

    from sponsor_portal.main import app, db
    from sponsor_portal.services.diagnostics import check_promotions

    with app.app_context():
        rows = check_promotions(db.session, args.sponsor_id)
        if not rows:
            print("No promotions for this sponsor")
            return

        for row in rows:
            marker = 'VISIBLE' if row['visible'] else 'hidden '
            print(f"[{marker}] {row['title']} status={row['status']} approval={row['approval_status']}")
            for reason in row['reasons']:
                print(f"           - {reason}")

        visible = sum(1 for row in rows if row['visible'])
        print(f"\n{visible} of {len(rows)} promotions visible to the public")


if __name__ == '__main__':
    main()
