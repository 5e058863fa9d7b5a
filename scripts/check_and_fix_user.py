#!/usr/bin/env python3
"""
Ensure a user is a sponsor admin linked to a sponsor.

Usage:
    # Guess the sponsor from the email
    python scripts/check_and_fix_user.py owner@bikeshop.com

    # Link to a specific sponsor
    python scripts/check_and_fix_user.py owner@bikeshop.com --sponsor-id 65f38ae3-...
"""

import os
import sys
import argparse

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


def main():
    parser = argparse.ArgumentParser(description='Fix a sponsor admin\'s role and link')
    parser.add_argument('email', help='Email address of the user')
    parser.add_argument('--sponsor-id', help='Sponsor to link to')
    args = parser.parse_args()

    from sponsor_portal.main import app, db
    from sponsor_portal.services.diagnostics import ensure_user_link

    with app.app_context():
        result = ensure_user_link(db.session, args.email, sponsor_id=args.sponsor_id)
        if result.get('error'):
            print(f"FAILED: {result['error']}")
            sys.exit(1)
        actions = ', '.join(result['actions']) or 'nothing to do'
        print(f"{args.email}: {actions} (sponsor {result['sponsor_id']})")


if __name__ == '__main__':
    main()
