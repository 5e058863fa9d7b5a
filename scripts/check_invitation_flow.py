#!/usr/bin/env python3
"""
List the invitations sent to an email and where each one stands.

``provisioned_unclosed`` means the user was set up but the invitation row
was never marked accepted; the token still validates.

Usage:
    python scripts/check_invitation_flow.py owner@bikeshop.com
"""

import os
import sys
import argparse

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


def main():
    parser = argparse.ArgumentParser(description='Inspect invitations for an email')
    parser.add_argument('email', help='Invited email address')
    args = parser.parse_args()

    from sponsor_portal.main import app, db
    from sponsor_portal.services.diagnostics import check_invitation_flow

    with app.app_context():
        rows = check_invitation_flow(db.session, args.email)
        if not rows:
            print(f"No invitations for {args.email}")
            return
        for row in rows:
            print(
                f"{row['id']} role={row['role']} sponsor={row['sponsor_id']} "
                f"expires={row['expires_at']} state={row['state']}"
            )
        unclosed = [row for row in rows if row['state'] == 'provisioned_unclosed']
        if unclosed:
            print(f"\nWARNING: {len(unclosed)} invitation(s) provisioned but not marked accepted")


if __name__ == '__main__':
    main()
