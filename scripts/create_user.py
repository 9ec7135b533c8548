"""Create a user and provision their personal workspace.

Usage:
  python scripts/create_user.py --email alice@example.com --password '...' --name Alice

NOTE: This is intended for local/dev.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from workspace_platform.auth.crud import create_user, principal_from_user
from workspace_platform.config import load_config
from workspace_platform.db import connect, init_db
from workspace_platform.provisioning import provision_in_background


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--name", default=None)
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    with connect(cfg.DB_DSN) as conn:
        u = create_user(conn, email=args.email, password=args.password, display_name=args.name)

    print("Created user:")
    print(u)

    # Same trigger the API uses; wait here only because the script is about to exit.
    provision_in_background(cfg, principal_from_user(u)).join()


if __name__ == "__main__":
    main()
