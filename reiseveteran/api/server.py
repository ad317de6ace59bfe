from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from reiseveteran import __version__
from reiseveteran.auth import (
    bootstrap_demo_user_if_enabled,
    create_user,
    get_config,
    get_current_user,
    get_token_subject,
    require_admin_key,
)
from reiseveteran.auth.crud import (
    count_user_trips,
    get_user_by_email,
    get_user_by_id,
    is_username_available,
    normalize_email,
    public_user,
    set_username,
    update_user_subscription,
    upsert_demo_user,
    validate_username,
    verify_user_credentials,
)
from reiseveteran.auth.security import create_access_token
from reiseveteran.config import Config, load_config
from reiseveteran.db import connect, init_db
from reiseveteran.subscription.deps import check_export_permission, check_trip_limit
from reiseveteran.subscription.policy import (
    SUBSCRIPTION_PLANS,
    is_valid_status,
    parse_status,
    plans_payload,
)
from reiseveteran.util.time import utcnow_iso


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


router = APIRouter()


# -----------------------------
# Health
# -----------------------------


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Auth
# -----------------------------


class CredentialsRequest(BaseModel):
    # Optional so that missing fields get our 400 message instead of a 422.
    email: Optional[str] = None
    password: Optional[str] = None


def _auth_response(cfg: Config, user: Dict[str, Any]) -> Dict[str, Any]:
    token = create_access_token(
        secret=cfg.AUTH_JWT_SECRET,
        user_id=str(user["id"]),
        email=str(user.get("email") or ""),
        expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
    )
    return {"user": user, "access_token": token, "success": True}


def _require_credentials(payload: Optional[CredentialsRequest]) -> tuple[str, str]:
    email = normalize_email(payload.email if payload else "")
    password = (payload.password if payload else None) or ""
    if not email or not password:
        raise HTTPException(status_code=400, detail="Email und Passwort sind erforderlich")
    return email, password


@router.post("/api/auth/local/signin")
def auth_signin(
    payload: Optional[CredentialsRequest] = None,
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    email, password = _require_credentials(payload)

    with connect(cfg.DB_PATH) as conn:
        row = verify_user_credentials(conn, email, password)
    if row is None:
        _debug(f"signin rejected for {email}")
        raise HTTPException(status_code=401, detail="Ungültige Anmeldedaten")

    return _auth_response(cfg, public_user(row))


@router.post("/api/auth/local/signup")
def auth_signup(
    payload: Optional[CredentialsRequest] = None,
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    email, password = _require_credentials(payload)
    min_len = int(cfg.AUTH_MIN_PASSWORD_LENGTH)
    if len(password) < min_len:
        raise HTTPException(
            status_code=400,
            detail=f"Passwort muss mindestens {min_len} Zeichen lang sein",
        )

    with connect(cfg.DB_PATH) as conn:
        try:
            u = create_user(conn, email=email, password=password)
        except ValueError as e:
            if str(e) == "user_exists":
                raise HTTPException(status_code=409, detail="Benutzer existiert bereits")
            _debug(f"signup failed for {email}: {e}")
            raise HTTPException(status_code=500, detail="Fehler bei der Registrierung")

    return _auth_response(cfg, u)


@router.post("/api/auth/local/demo")
def auth_demo(cfg: Config = Depends(get_config)) -> Dict[str, Any]:
    if not cfg.DEMO_LOGIN_ENABLED:
        raise HTTPException(status_code=404, detail="Demo-Login ist deaktiviert")

    with connect(cfg.DB_PATH) as conn:
        u = upsert_demo_user(conn, cfg)
    return _auth_response(cfg, u)


@router.get("/api/auth/user")
def auth_user(
    user_id: str = Depends(get_token_subject),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    # A valid token whose account is gone is a 404, not a 401.
    with connect(cfg.DB_PATH) as conn:
        row = get_user_by_id(conn, user_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Benutzer nicht gefunden")
    return public_user(row)


class UsernameRequest(BaseModel):
    username: Optional[str] = None


@router.get("/api/auth/username/{username}/available")
def username_available(username: str, cfg: Config = Depends(get_config)) -> Any:
    problem = validate_username(username)
    if problem is not None:
        return JSONResponse(status_code=400, content={"available": False, "message": problem})

    with connect(cfg.DB_PATH) as conn:
        available = is_username_available(conn, username)
    return {"available": available}


@router.post("/api/auth/username")
def auth_set_username(
    payload: Optional[UsernameRequest] = None,
    user: Dict[str, Any] = Depends(get_current_user),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    username = (payload.username if payload else None) or ""
    problem = validate_username(username)
    if problem is not None:
        raise HTTPException(status_code=400, detail=problem)

    with connect(cfg.DB_PATH) as conn:
        try:
            u = set_username(conn, user_id=str(user["id"]), username=username)
        except ValueError as e:
            if str(e) == "username_taken":
                raise HTTPException(status_code=400, detail="Username ist bereits vergeben")
            raise
    if u is None:
        _debug(f"set username failed for {user['id']}")
        raise HTTPException(status_code=500, detail="Benutzer konnte nicht aktualisiert werden")

    _debug(f"username set for {user['id']}: {username}")
    return {"message": "Username erfolgreich gesetzt", "user": u}


# -----------------------------
# Subscription
# -----------------------------


@router.get("/api/subscription/plans")
def subscription_plans(cfg: Config = Depends(get_config)) -> Dict[str, Any]:
    return plans_payload(cfg)


@router.get("/api/user/subscription")
def user_subscription(
    user: Dict[str, Any] = Depends(get_current_user),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    status = parse_status(user.get("subscription_status"))
    plan = SUBSCRIPTION_PLANS[status]
    with connect(cfg.DB_PATH) as conn:
        used = count_user_trips(conn, user["id"])
    return {
        "status": status.value,
        "billingInterval": user.get("billing_interval") or "monthly",
        "expiresAt": user.get("subscription_expires_at"),
        "tripsUsed": used,
        "tripsLimit": plan.limits.trips_limit,
        "canExport": plan.limits.can_export,
    }


# -----------------------------
# Trips (plan-gated)
# -----------------------------


class CreateTripRequest(BaseModel):
    name: str
    destination: Optional[str] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None


def _public_trip(row: Any) -> Dict[str, Any]:
    d = dict(row)
    return {
        "id": d["id"],
        "userId": d["user_id"],
        "name": d["name"],
        "destination": d.get("destination"),
        "startDate": d.get("start_date"),
        "endDate": d.get("end_date"),
        "createdAt": d["created_at"],
    }


@router.get("/api/trips")
def list_trips(
    user: Dict[str, Any] = Depends(get_current_user),
    cfg: Config = Depends(get_config),
) -> List[Dict[str, Any]]:
    with connect(cfg.DB_PATH) as conn:
        rows = conn.execute(
            "SELECT * FROM trips WHERE user_id=? ORDER BY created_at DESC, id DESC",
            (user["id"],),
        ).fetchall()
    return [_public_trip(r) for r in rows]


@router.post("/api/trips", status_code=201)
def create_trip(
    payload: CreateTripRequest,
    user: Dict[str, Any] = Depends(check_trip_limit),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    name = (payload.name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name der Reise ist erforderlich")

    now = utcnow_iso()
    with connect(cfg.DB_PATH) as conn:
        cur = conn.execute(
            """
            INSERT INTO trips (user_id, name, destination, start_date, end_date, created_at, updated_at)
            VALUES (?,?,?,?,?,?,?)
            """,
            (user["id"], name, payload.destination, payload.startDate, payload.endDate, now, now),
        )
        row = conn.execute("SELECT * FROM trips WHERE id=?", (cur.lastrowid,)).fetchone()
    return _public_trip(row)


@router.get("/api/trips/{trip_id}/export")
def export_trip(
    trip_id: int,
    user: Dict[str, Any] = Depends(check_export_permission),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        row = conn.execute(
            "SELECT * FROM trips WHERE id=? AND user_id=?",
            (int(trip_id), user["id"]),
        ).fetchone()
    if row is None:
        raise HTTPException(status_code=404, detail="Reise nicht gefunden")
    return {"exportedAt": utcnow_iso(), "trip": _public_trip(row)}


# -----------------------------
# Admin
# -----------------------------


class SubscriptionUpdateRequest(BaseModel):
    email: Optional[str] = None
    subscriptionStatus: Optional[str] = None


def update_subscription(
    payload: Optional[SubscriptionUpdateRequest] = None,
    cfg: Config = Depends(get_config),
) -> Any:
    email = normalize_email(payload.email if payload else "")
    status = ((payload.subscriptionStatus if payload else None) or "").strip().lower()
    if not email or not status:
        return JSONResponse(
            status_code=400,
            content={"error": "Email and subscriptionStatus are required"},
        )
    if not is_valid_status(status):
        return JSONResponse(status_code=400, content={"error": "Invalid subscriptionStatus"})

    try:
        with connect(cfg.DB_PATH) as conn:
            row = get_user_by_email(conn, email)
            if row is None:
                return JSONResponse(status_code=404, content={"error": "User not found"})
            update_user_subscription(conn, user_id=str(row["id"]), subscription_status=status)
            stored_email = str(row["email"])
    except Exception as e:
        print(f"[admin] Error updating subscription: {e!r}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    print(f"[admin] Updated {stored_email} to {status} plan")
    return {
        "success": True,
        "message": f"Successfully updated {stored_email} to {status} plan",
        "user": {"email": stored_email, "subscriptionStatus": status},
    }


for _path in ("/update-subscription", "/api/admin/update-subscription"):
    router.add_api_route(
        _path,
        update_subscription,
        methods=["POST"],
        dependencies=[Depends(require_admin_key)],
    )


# -----------------------------
# App factory
# -----------------------------


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render errors as `{message, detail}` so clients can read `message`.

    Dict details (plan gating) are passed through as the whole body.
    """
    if isinstance(exc.detail, dict):
        content = dict(exc.detail)
    else:
        content = {"message": str(exc.detail), "detail": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


def create_app(cfg: Config | None = None) -> FastAPI:
    cfg = cfg or load_config()
    app = FastAPI(title="Reiseveteran API", version=__version__)
    app.state.cfg = cfg

    # CORS is mainly needed for local development (Vite on :5173 -> API on :8000).
    _cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if _cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=_cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def _log_api_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        path = request.url.path
        if path.startswith("/api") or path == "/update-subscription":
            ms = int((time.perf_counter() - start) * 1000)
            _debug(f"{request.method} {path} {response.status_code} in {ms}ms")
        return response

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)

    @app.on_event("startup")
    def _on_startup() -> None:
        # Ensure schema exists.
        init_db(cfg.DB_PATH)

        demo = bootstrap_demo_user_if_enabled(cfg)
        if demo:
            _debug(f"Demo user ready: email={demo.get('email')} plan={demo.get('subscriptionStatus')}")
        if not cfg.ADMIN_API_KEY:
            _debug("ADMIN_API_KEY not set; admin endpoints are disabled")

    app.include_router(router)
    return app


app = create_app()
