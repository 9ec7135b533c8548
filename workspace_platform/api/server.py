from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from workspace_platform.auth import get_current_principal, get_optional_principal, session_keys_from_config
from workspace_platform.auth.crud import (
    create_user,
    principal_from_user,
    public_user,
    touch_last_login,
    verify_user_credentials,
)
from workspace_platform.auth.session import create_session_token
from workspace_platform.config import Config, load_config
from workspace_platform.db import connect, init_db
from workspace_platform.models import Principal
from workspace_platform.provisioning import (
    ProvisioningStepError,
    SqlProvisioningStore,
    ensure_user_has_workspace,
    policy_from_config,
    provision_from_config,
)
from workspace_platform.provisioning.onboarding import initialize_campaigns


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


app = FastAPI(title="Workspace Platform", version="0.1.0")
_boot_cfg: Config = load_config()

# CORS is mainly needed for local development (frontend on :3000 -> API on :8000).
_cors_origins = [o.strip() for o in (_boot_cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
if _cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _cfg(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return cfg


@app.on_event("startup")
def _on_startup() -> None:
    # Tests (or an embedding app) may install their own config first.
    if getattr(app.state, "cfg", None) is None:
        app.state.cfg = _boot_cfg
    cfg: Config = app.state.cfg

    # Ensure schema + default onboarding campaign exist.
    init_db(cfg.DB_DSN)
    with connect(cfg.DB_DSN) as conn:
        initialize_campaigns(conn)


# -----------------------------
# Health
# -----------------------------


@app.get("/health")
def health(principal: Optional[Principal] = Depends(get_optional_principal)) -> Dict[str, Any]:
    return {"status": "ok", "authenticated": principal is not None}


# -----------------------------
# Auth
# -----------------------------

def _start_session(response: Response, user: Dict[str, Any], cfg: Config) -> Dict[str, Any]:
    """Issue a token for `user`, drop it in the session cookie, and build the response body."""
    token = create_session_token(
        keys=session_keys_from_config(cfg),
        subject_id=str(user["user_id"]),
        email=str(user["email"]),
        display_name=user.get("display_name") or None,
    )
    samesite = str(cfg.AUTH_COOKIE_SAMESITE or "lax").lower()
    response.set_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        value=token,
        max_age=int(cfg.AUTH_TOKEN_TTL_SECONDS),
        path=cfg.AUTH_COOKIE_PATH or "/",
        domain=cfg.AUTH_COOKIE_DOMAIN,
        # Browsers drop SameSite=None cookies that aren't Secure
        secure=samesite == "none" or bool(cfg.AUTH_COOKIE_SECURE),
        httponly=True,
        samesite=samesite,
    )
    return {"access_token": token, "token_type": "bearer", "user": user}


def _clear_session_cookie(response: Response, cfg: Config) -> None:
    response.delete_cookie(key=cfg.AUTH_COOKIE_NAME, path=cfg.AUTH_COOKIE_PATH or "/", domain=cfg.AUTH_COOKIE_DOMAIN)


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    password: str
    display_name: Optional[str] = None


@app.post("/auth/login")
def auth_login(payload: LoginRequest, request: Request, response: Response) -> Dict[str, Any]:
    cfg = _cfg(request)
    with connect(cfg.DB_DSN) as conn:
        user_row = verify_user_credentials(conn, payload.email, payload.password)
        if user_row is None:
            raise HTTPException(status_code=401, detail="invalid_credentials")
        touch_last_login(conn, str(user_row["user_id"]))
        u = public_user(user_row)

    return _start_session(response, u, cfg)


@app.post("/auth/register")
def auth_register(
    payload: RegisterRequest,
    request: Request,
    response: Response,
    background: BackgroundTasks,
) -> Dict[str, Any]:
    """Create an account, log it in, and provision its workspace after the response is sent."""
    cfg = _cfg(request)
    with connect(cfg.DB_DSN) as conn:
        try:
            u = create_user(
                conn,
                email=payload.email,
                password=payload.password,
                display_name=payload.display_name,
            )
        except ValueError as e:
            code = str(e)
            raise HTTPException(status_code=409 if code == "email_exists" else 400, detail=code)

    # The account is committed at this point; provisioning can't undo or block it.
    background.add_task(provision_from_config, cfg, principal_from_user(u))
    return _start_session(response, u, cfg)


@app.post("/auth/logout")
def auth_logout(request: Request, response: Response) -> Dict[str, Any]:
    """Tokens are stateless; logging out just drops the cookie."""
    _clear_session_cookie(response, _cfg(request))
    return {"ok": True}


@app.get("/auth/me")
def auth_me(principal: Principal = Depends(get_current_principal)) -> Dict[str, Any]:
    return {"user": {"id": principal.id, "email": principal.email, "name": principal.name}}


# -----------------------------
# Workspace
# -----------------------------


@app.get("/workspace")
def current_workspace(
    request: Request,
    principal: Principal = Depends(get_current_principal),
) -> Dict[str, Any]:
    """The caller's personal workspace; repairs it on the spot if signup provisioning failed."""
    cfg = _cfg(request)
    try:
        res = ensure_user_has_workspace(
            principal,
            store=SqlProvisioningStore(cfg.DB_DSN),
            policy=policy_from_config(cfg),
        )
    except ProvisioningStepError as e:
        _debug(f"workspace repair failed for user={principal.id}: {e}")
        raise HTTPException(status_code=503, detail="workspace_unavailable")

    return {
        "workspace_id": res.workspace_id,
        "was_created": res.was_created,
        "plan": res.plan,
        "status": res.status,
    }
