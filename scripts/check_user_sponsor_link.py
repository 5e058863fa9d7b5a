#!/usr/bin/env python3
"""
Show a user's profile and sponsor links.

Usage:
    python scripts/check_user_sponsor_link.py owner@bikeshop.com
"""

import os
import sys
import argparse

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


def main():
    parser = argparse.ArgumentParser(description='Inspect a user\'s sponsor admin link')
    parser.add_argument('email', help='Email address of the user')
    args = parser.parse_args()

    from sponsor_portal.main import app, db
    from sponsor_portal.services.diagnostics import describe_user_link

    with app.app_context():
        report = describe_user_link(db.session, args.email)
        profile = report['profile']
        if profile is None:
            print(f"No profile for {args.email}")
            sys.exit(1)

        print(f"Profile: {profile['id']} role={profile['role']} name={profile['display_name']}")
        if report['links']:
            for link in report['links']:
                print(f"  Linked to {link['sponsor_name']} ({link['sponsor_id']}) since {link['created_at']}")
            if len(report['links']) > 1:
                print("  WARNING: more than one link; the oldest one is used")
        else:
            print("  No sponsor link")
            suggestion = report['suggestion']
            if suggestion:
                print(f"  Suggested sponsor: {suggestion['name']} ({suggestion['id']})")
                print(f"  Fix with: python scripts/check_and_fix_user.py {args.email} --sponsor-id {suggestion['id']}")


if __name__ == '__main__':
    main()
