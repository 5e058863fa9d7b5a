#!/usr/bin/env python3
"""
List Row Level Security policies on a table and flag recursive ones.

Usage:
    python scripts/check_rls_policies.py
    python scripts/check_rls_policies.py --table promotions
"""

import os
import sys
import argparse

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


def main():
    parser = argparse.ArgumentParser(description='Check RLS policies')
    parser.add_argument('--table', default='sponsor_admins', help='Table to inspect')
    args = parser.parse_args()

    from sponsor_portal.main import app, db
    from sponsor_portal.services.diagnostics import RECURSIVE_TEAM_POLICY, fetch_policies, find_recursive_policies

    with app.app_context():
        try:
            policies = fetch_policies(db.session, args.table)
        except RuntimeError as exc:
            print(f"FAILED: {exc}")
            sys.exit(1)

        for policy in policies:
            print(f"{policy['policyname']} ({policy['cmd']})")
            if policy.get('qual'):
                print(f"    USING {policy['qual']}")

        findings = find_recursive_policies(policies, args.table)
        if findings['known_recursive_policy']:
            print(f'\nPROBLEM: "{RECURSIVE_TEAM_POLICY}" still exists and recurses.')
            print(f'  Run: DROP POLICY IF EXISTS "{RECURSIVE_TEAM_POLICY}" ON {args.table};')
        for name in findings['possibly_recursive']:
            print(f"WARNING: {name} queries {args.table} from its own policy")


if __name__ == '__main__':
    main()
