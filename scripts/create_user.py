"""Create a local user in the SQLite DB.

Usage:
  python scripts/create_user.py --email alice@example.com --password '...' --plan pro

NOTE: This is intended for local/dev.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from reiseveteran.auth.crud import create_user
from reiseveteran.config import load_config
from reiseveteran.db import connect, init_db
from reiseveteran.subscription.policy import SubscriptionStatus


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--username", default=None)
    ap.add_argument("--plan", choices=[s.value for s in SubscriptionStatus], default="free")
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_PATH)

    with connect(cfg.DB_PATH) as conn:
        u = create_user(
            conn,
            email=args.email,
            password=args.password,
            username=args.username,
            subscription_status=args.plan,
        )

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
