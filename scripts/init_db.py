import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from workspace_platform.config import load_config
from workspace_platform.db import connect, init_db
from workspace_platform.provisioning.onboarding import initialize_campaigns


def main() -> None:
    cfg = load_config()
    init_db(cfg.DB_DSN)
    with connect(cfg.DB_DSN) as conn:
        n = initialize_campaigns(conn)

    print(f"DB initialized: {cfg.DB_DSN} (campaigns created: {n})")


if __name__ == "__main__":
    main()
