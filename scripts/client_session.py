"""Drive the client-side consent and session state from a terminal.

State is kept in CLIENT_STORAGE_PATH (default ./.reiseveteran_client.json),
so it survives between invocations the way browser storage survives reloads.

Usage:
  python scripts/client_session.py consent status
  python scripts/client_session.py consent accept
  python scripts/client_session.py consent set --analytics --no-marketing
  python scripts/client_session.py signin --email alice@example.com --password '...'
  python scripts/client_session.py demo
  python scripts/client_session.py whoami
  python scripts/client_session.py signout
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from reiseveteran.client import (
    AuthenticationError,
    ConsentStateManager,
    JsonFileStorage,
    SessionStateManager,
)
from reiseveteran.config import load_config


def _print_consent(consent: ConsentStateManager) -> None:
    record = consent.record
    print(
        json.dumps(
            {
                "hasConsented": consent.has_consented,
                "bannerVisible": consent.banner_visible,
                "preferences": {
                    "necessary": consent.preferences.necessary,
                    "analytics": consent.preferences.analytics,
                    "marketing": consent.preferences.marketing,
                },
                "consentedAt": record.consented_at if record else None,
            },
            indent=2,
        )
    )


def _run_consent(args: argparse.Namespace, storage: JsonFileStorage) -> int:
    consent = ConsentStateManager(storage)
    if args.action == "accept":
        consent.accept_all()
    elif args.action == "reject":
        consent.reject_all()
    elif args.action == "set":
        changes = {}
        if args.analytics is not None:
            changes["analytics"] = args.analytics
        if args.marketing is not None:
            changes["marketing"] = args.marketing
        consent.update_preferences(changes)
        consent.hide_banner()
    _print_consent(consent)
    return 0


async def _run_session(args: argparse.Namespace, storage: JsonFileStorage, base_url: str) -> int:
    async with SessionStateManager(storage, base_url=base_url) as session:
        if args.command == "signout":
            session.sign_out()
            print("Signed out")
            return 0

        if args.command == "whoami":
            user = await session.get_current_user()
            if user is None:
                print("Not signed in")
                return 1
            print(json.dumps(user.to_dict(), indent=2))
            return 0

        if args.command == "username":
            try:
                user = await session.set_username(args.username)
            except AuthenticationError as e:
                print(f"Error: {e.message}")
                return 1
            print(json.dumps(user.to_dict(), indent=2))
            return 0

        try:
            if args.command == "signin":
                result = await session.sign_in_with_email(args.email, args.password)
            elif args.command == "signup":
                result = await session.sign_up_with_email(args.email, args.password)
            else:
                result = await session.sign_in_with_demo()
        except AuthenticationError as e:
            print(f"Error: {e.message}")
            return 1

        print(json.dumps(result.user.to_dict(), indent=2))
        return 0


def main() -> None:
    ap = argparse.ArgumentParser()
    sub = ap.add_subparsers(dest="command", required=True)

    c = sub.add_parser("consent")
    c.add_argument("action", choices=["status", "accept", "reject", "set"])
    c.add_argument("--analytics", action=argparse.BooleanOptionalAction, default=None)
    c.add_argument("--marketing", action=argparse.BooleanOptionalAction, default=None)

    for name in ("signin", "signup"):
        p = sub.add_parser(name)
        p.add_argument("--email", required=True)
        p.add_argument("--password", required=True)

    sub.add_parser("demo")
    sub.add_parser("whoami")
    sub.add_parser("signout")
    u = sub.add_parser("username")
    u.add_argument("username")

    args = ap.parse_args()
    cfg = load_config()
    storage = JsonFileStorage(cfg.CLIENT_STORAGE_PATH)

    if args.command == "consent":
        raise SystemExit(_run_consent(args, storage))
    raise SystemExit(asyncio.run(_run_session(args, storage, cfg.API_BASE_URL)))


if __name__ == "__main__":
    main()
