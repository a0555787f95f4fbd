"""
Grant the admin role to an existing account (first-admin bootstrap).

The approval workflow needs an admin to approve anyone, so the very first
grant has to be created out of band. This script does that with the service
role key, bypassing row-level security.

Inputs (required via environment):
- SUPABASE_URL: project URL.
- SUPABASE_SERVICE_ROLE_KEY: service role key (never logged).

Usage:
    python scripts/bootstrap_admin.py --email owner@example.com
    python scripts/bootstrap_admin.py --user-id 8f4c...

Behavior:
- Resolves the account by email through the auth admin API when no user id
  is given; exits non-zero when it cannot be found.
- Inserts `user_roles{user_id, role: admin}`; an existing grant is reported
  and left untouched, so the script can be re-run safely.
"""

from __future__ import annotations

import argparse
import os
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv


def _require_env(keys: List[str]) -> Dict[str, str]:
    env: Dict[str, str] = {}
    missing = []
    for key in keys:
        value = (os.environ.get(key) or "").strip()
        if not value:
            missing.append(key)
        else:
            env[key] = value
    if missing:
        raise SystemExit(f"Missing required environment variables: {', '.join(missing)}")
    return env


def find_user_id(client: Any, email: str) -> Optional[str]:
    wanted = email.strip().lower()
    page = 1
    while True:
        users = client.auth.admin.list_users(page=page, per_page=200)
        if not users:
            return None
        for user in users:
            if (getattr(user, "email", "") or "").lower() == wanted:
                return str(user.id)
        page += 1


def grant_admin(client: Any, user_id: str) -> bool:
    """Insert the admin grant; returns False when it already existed."""
    existing = client.table("user_roles").select("id").eq("user_id", user_id).eq("role", "admin").limit(1).execute()
    if getattr(existing, "data", None):
        return False
    client.table("user_roles").insert({"user_id": user_id, "role": "admin"}).execute()
    return True


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Grant the admin role to an existing account.")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--email", help="email address of the account")
    target.add_argument("--user-id", help="auth user id of the account")
    args = parser.parse_args(argv)

    load_dotenv()
    env = _require_env(["SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"])

    from supabase import create_client

    client = create_client(env["SUPABASE_URL"], env["SUPABASE_SERVICE_ROLE_KEY"])
    user_id = args.user_id or find_user_id(client, args.email)
    if not user_id:
        print(f"No account found for {args.email}", file=sys.stderr)
        return 1
    if grant_admin(client, user_id):
        print(f"Granted admin role to {user_id}")
    else:
        print(f"{user_id} is already an admin")
    return 0


if __name__ == "__main__":
    sys.exit(main())
