"""Provision a workspace + trial for every user whose signup provisioning failed.

Usage:
  python scripts/fix_orphaned_users.py

Safe to run repeatedly (e.g. from cron): users that already have a
workspace are skipped.
"""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from workspace_platform.config import load_config
from workspace_platform.db import init_db
from workspace_platform.provisioning import fix_orphaned_users


def main() -> None:
    cfg = load_config()
    init_db(cfg.DB_DSN)
    res = fix_orphaned_users(cfg)
    print(f"fixed={res['fixed']} errors={res['errors']}")
    if res["errors"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
