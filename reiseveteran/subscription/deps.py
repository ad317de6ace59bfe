"""Route dependencies that enforce plan limits."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import Depends, HTTPException

from reiseveteran.auth.crud import count_user_trips
from reiseveteran.auth.deps import get_config, get_current_user
from reiseveteran.config import Config
from reiseveteran.db import connect

from .policy import can_create_trip, can_export


def check_trip_limit(
    user: Dict[str, Any] = Depends(get_current_user),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        used = count_user_trips(conn, user["id"])

    decision = can_create_trip(user.get("subscription_status"), used)
    if not decision.allowed:
        raise HTTPException(
            status_code=403,
            detail={
                "message": decision.reason,
                "limitReached": True,
                "currentPlan": decision.current_plan.value,
                "upgradeRequired": True,
            },
        )
    return user


def check_export_permission(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if not can_export(user.get("subscription_status")):
        raise HTTPException(
            status_code=403,
            detail={
                "message": "Export-Funktion ist nur für Pro und Veteran Nutzer verfügbar",
                "upgradeRequired": True,
            },
        )
    return user
