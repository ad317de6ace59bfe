import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from reiseveteran.auth.crud import bootstrap_demo_user_if_enabled
from reiseveteran.config import load_config
from reiseveteran.db import init_db


def main() -> None:
    cfg = load_config()
    init_db(cfg.DB_PATH)
    demo = bootstrap_demo_user_if_enabled(cfg)

    print(f"DB initialized: {cfg.DB_PATH}")
    if demo:
        print(f"Demo user: {demo['email']} ({demo['subscriptionStatus']})")


if __name__ == "__main__":
    main()
