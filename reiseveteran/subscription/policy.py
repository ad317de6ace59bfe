"""Subscription tiers and the limits they grant.

Everything here is static configuration. The tables are wrapped in
MappingProxyType so nothing can patch a plan at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from reiseveteran.config import Config


class SubscriptionStatus(str, Enum):
    FREE = "free"
    PRO = "pro"
    VETERAN = "veteran"


@dataclass(frozen=True)
class PlanLimits:
    # None means unbounded
    trips_limit: Optional[int]
    can_export: bool


@dataclass(frozen=True)
class SubscriptionPlan:
    id: SubscriptionStatus
    name: str
    price: float
    currency: str
    limits: PlanLimits
    features: Tuple[str, ...]


@dataclass(frozen=True)
class TripLimitDecision:
    allowed: bool
    current_plan: SubscriptionStatus
    trips_used: int
    trips_limit: Optional[int]
    reason: str | None = None


SUBSCRIPTION_LIMITS: Mapping[SubscriptionStatus, PlanLimits] = MappingProxyType(
    {
        SubscriptionStatus.FREE: PlanLimits(trips_limit=1, can_export=False),
        SubscriptionStatus.PRO: PlanLimits(trips_limit=10, can_export=True),
        SubscriptionStatus.VETERAN: PlanLimits(trips_limit=None, can_export=True),
    }
)

SUBSCRIPTION_PLANS: Mapping[SubscriptionStatus, SubscriptionPlan] = MappingProxyType(
    {
        SubscriptionStatus.FREE: SubscriptionPlan(
            id=SubscriptionStatus.FREE,
            name="Standard",
            price=0.0,
            currency="EUR",
            limits=SUBSCRIPTION_LIMITS[SubscriptionStatus.FREE],
            features=(
                "Bis zu 1 Reise",
                "Basis Budgetplanung",
                "Restaurant & Aktivitäten Planer",
            ),
        ),
        SubscriptionStatus.PRO: SubscriptionPlan(
            id=SubscriptionStatus.PRO,
            name="Pro Plan",
            price=4.99,
            currency="EUR",
            limits=SUBSCRIPTION_LIMITS[SubscriptionStatus.PRO],
            features=(
                "Bis zu 10 Reisen",
                "Reisen exportieren (PDF)",
                "Erweiterte Budgettools",
                "Premium Support",
            ),
        ),
        SubscriptionStatus.VETERAN: SubscriptionPlan(
            id=SubscriptionStatus.VETERAN,
            name="Veteran Plan",
            price=19.99,
            currency="EUR",
            limits=SUBSCRIPTION_LIMITS[SubscriptionStatus.VETERAN],
            features=(
                "Unbegrenzte Reisen",
                "Alle Export-Funktionen",
                "Erweiterte Statistiken",
                "Priority Support",
                "Beta-Features",
            ),
        ),
    }
)


def is_valid_status(value: Any) -> bool:
    return str(value or "").strip().lower() in {s.value for s in SubscriptionStatus}


def parse_status(value: Any) -> SubscriptionStatus:
    """Map a stored status string to a tier. Blank or unknown values are free."""
    v = str(value or "").strip().lower()
    for s in SubscriptionStatus:
        if s.value == v:
            return s
    return SubscriptionStatus.FREE


def limits_for(status: Any) -> PlanLimits:
    return SUBSCRIPTION_LIMITS[parse_status(status)]


def can_export(status: Any) -> bool:
    return limits_for(status).can_export


def can_create_trip(status: Any, trips_used: int) -> TripLimitDecision:
    plan = parse_status(status)
    limit = SUBSCRIPTION_LIMITS[plan].trips_limit
    used = max(0, int(trips_used))
    if limit is None or used < limit:
        return TripLimitDecision(
            allowed=True, current_plan=plan, trips_used=used, trips_limit=limit
        )
    reason = (
        f"Du hast das Limit von {limit} Reise(n) für den Plan "
        f"'{SUBSCRIPTION_PLANS[plan].name}' erreicht. Upgrade für mehr Reisen."
    )
    return TripLimitDecision(
        allowed=False, current_plan=plan, trips_used=used, trips_limit=limit, reason=reason
    )


def price_ids(cfg: Config) -> Dict[str, str]:
    return {
        SubscriptionStatus.PRO.value: cfg.STRIPE_PRO_PRICE_ID,
        SubscriptionStatus.VETERAN.value: cfg.STRIPE_VETERAN_PRICE_ID,
    }


def plan_payload(plan: SubscriptionPlan) -> Dict[str, Any]:
    # JSON has no Infinity; unbounded limits go out as null.
    return {
        "id": plan.id.value,
        "name": plan.name,
        "price": plan.price,
        "currency": plan.currency,
        "tripsLimit": plan.limits.trips_limit,
        "canExport": plan.limits.can_export,
        "features": list(plan.features),
    }


def plans_payload(cfg: Config) -> Dict[str, Any]:
    return {
        "plans": {s.value: plan_payload(p) for s, p in SUBSCRIPTION_PLANS.items()},
        "priceIds": price_ids(cfg),
    }
