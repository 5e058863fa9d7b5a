#!/usr/bin/env python3
"""
Replay, in Python, what the user-scoped policies let one user see.

Useful when a sponsor admin reports an empty dashboard: compares their own
sponsor_admins rows with the sponsor they expect, and shows which of the
sponsor's promotions anonymous visitors can read.

Usage:
    python scripts/replay_rls_decision.py <user-id> <sponsor-id>
"""

import os
import sys
import argparse

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


def main():
    parser = argparse.ArgumentParser(description='Replay RLS decisions for a user')
    parser.add_argument('user_id', help='Auth user id')
    parser.add_argument('sponsor_id', help='Sponsor id the user expects to manage')
    args = parser.parse_args()

    from sponsor_portal.main import app, db
    from sponsor_portal.services.diagnostics import replay_policy_decision

    with app.app_context():
        result = replay_policy_decision(db.session, args.user_id, args.sponsor_id)
        print(f"Own sponsor_admins rows: {result['own_link_rows'] or 'none'}")
        print(f"Can manage sponsor: {'yes' if result['can_manage_sponsor'] else 'NO'}")
        print(f"Public promotions: {len(result['public_promotions'])}")
        print(f"Hidden promotions: {len(result['hidden_promotions'])}")


if __name__ == '__main__':
    main()
