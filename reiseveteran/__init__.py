"""Reiseveteran travel planner - API and client state.

Two halves live in this package:
- `reiseveteran.api`: the HTTP API (local email/password auth, plan gating,
  admin tier changes) on FastAPI + SQLite.
- `reiseveteran.client`: the state a browser-like client keeps between runs
  (cookie consent and the bearer-token session), persisted to durable
  key-value storage.

Subscription tiers (free/pro/veteran) are a static table shared by both.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
