"""Change a user's plan through the admin endpoint.

Usage:
  python scripts/set_subscription.py --email alice@example.com --plan veteran

Reads API_BASE_URL and ADMIN_API_KEY from the environment (or .env).
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import httpx

from reiseveteran.config import load_config
from reiseveteran.subscription.policy import SubscriptionStatus


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--plan", choices=[s.value for s in SubscriptionStatus], required=True)
    args = ap.parse_args()

    cfg = load_config()
    if not cfg.ADMIN_API_KEY:
        raise SystemExit("ADMIN_API_KEY is not set")

    r = httpx.post(
        f"{cfg.API_BASE_URL.rstrip('/')}/update-subscription",
        json={"email": args.email, "subscriptionStatus": args.plan},
        headers={"X-Admin-Key": cfg.ADMIN_API_KEY},
    )
    body = r.json() if r.content else {}
    if r.status_code != 200:
        raise SystemExit(f"HTTP {r.status_code}: {body.get('error') or body.get('message') or r.text}")
    print(body.get("message"))


if __name__ == "__main__":
    main()
