"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the game catalog. Controllers
are intentionally thin: they read the request body, delegate to
services and answer with JSON (when the client sends
`Accept: application/json`) or with a rendered HTML page.

Endpoints implemented:
- GET /, GET /api, GET /health
- GET /oauth/callback, GET /logout
- GET|POST /platforms, GET /platforms/new
- GET|PUT|POST|DELETE /platforms/{slug}, GET /platforms/{slug}/edit
- GET /platforms/{slug}/games
- GET|POST /games, GET /games/new
- GET|PUT|POST|DELETE /games/{slug}, GET /games/{slug}/edit
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from pymongo.database import Database
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from . import auth, schemas, services
from .config import settings
from .database import ensure_indexes, get_database
from .oauth import OAuthClient, OAuthError, generate_state
from .services import ConflictError, NotFoundError

logger = logging.getLogger("game_catalog.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

PACKAGE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(PACKAGE_DIR / "templates"))
oauth_client = OAuthClient(settings)

# Form fields that may be submitted several times (multi-select, checkboxes).
LIST_FIELDS = {"platforms", "genres"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes()
    yield


app = FastAPI(title="Game Catalog", lifespan=lifespan)

if settings.is_production:
    # Behind a reverse proxy: trust X-Forwarded-* for scheme and client address.
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

app.mount("/assets", StaticFiles(directory=str(PACKAGE_DIR / "static")), name="assets")

app.middleware("http")(auth.session_middleware)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "client": request.client.host if request.client else "unknown",
            },
            ensure_ascii=True,
        ),
    )
    return response


def client_wants_json(request: Request) -> bool:
    return request.headers.get("accept") == "application/json"


def render(request: Request, name: str, context: dict = None, status_code: int = 200):
    """Render `name` with the logged-in user added to the context."""
    ctx = {"user": auth.current_user(request)}
    ctx.update(context or {})
    return templates.TemplateResponse(request, name, ctx, status_code=status_code)


def _validation_messages(exc: ValidationError) -> list:
    out = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        msg = err.get("msg", "invalid value").removeprefix("Value error, ")
        out.append(f"{loc}: {msg}" if loc else msg)
    return out


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Answer errors in the client's format: `{"error": ...}` or an HTML page."""
    if client_wants_json(request):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)
    name = "not_found.html" if exc.status_code == 404 else "error.html"
    return render(request, name, {"status_code": exc.status_code, "detail": exc.detail}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = [f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg')}" for e in exc.errors()]
    return await http_exception_handler(request, HTTPException(status_code=400, detail=messages))


async def request_payload(request: Request) -> dict:
    """Read the request body as a dict, from JSON or from form data.

    Repeated form fields listed in `LIST_FIELDS` are collected as lists.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid JSON body")
        if not isinstance(data, dict):
            raise HTTPException(status_code=400, detail="JSON body must be an object")
        return data
    form = await request.form()
    data = {}
    for key in form.keys():
        values = [v for v in form.getlist(key) if isinstance(v, str)]
        data[key] = values if key in LIST_FIELDS else (values[-1] if values else None)
    return data


def _form_error(request: Request, status_code: int, errors: list, template: str, context: dict):
    """Raise for JSON clients; re-render the submitted form for HTML clients."""
    if client_wants_json(request):
        raise HTTPException(status_code=status_code, detail=errors)
    ctx = dict(context)
    ctx["errors"] = errors
    return render(request, template, ctx, status_code=status_code)


# ---------------------------------------------------------------- pages


@app.get("/")
def home(request: Request):
    """Home page with a login link, or the logged-in user's email."""
    login_url = None
    if not auth.current_user(request):
        state = generate_state()
        try:
            login_url = oauth_client.authorization_url(state)
            request.state.session["oauth_state"] = state
        except OAuthError as e:
            logger.warning("login_url_unavailable error=%s", e)
    return render(request, "index.html", {"login_url": login_url})


@app.get("/api")
def api_docs(request: Request):
    """Human readable description of the JSON API."""
    return render(request, "api.html")


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


@app.get("/oauth/callback")
def oauth_callback(request: Request, code: str = None, state: str = None, error: str = None):
    """Finish the login: check `state`, trade `code` for tokens, remember the user."""
    session = request.state.session
    expected_state = session.pop("oauth_state", None)
    if error:
        raise HTTPException(status_code=400, detail=f"login refused: {error}")
    if not state or not expected_state or state != expected_state:
        raise HTTPException(status_code=400, detail="invalid OAuth state")
    if not code:
        raise HTTPException(status_code=400, detail="missing authorization code")
    try:
        tokens = oauth_client.exchange_code(code)
        claims = oauth_client.fetch_userinfo(tokens["access_token"])
    except OAuthError as e:
        raise HTTPException(status_code=502, detail=str(e))
    session["tokens"] = {
        "access_token": tokens["access_token"],
        "id_token": tokens.get("id_token"),
        "expires_in": tokens.get("expires_in"),
    }
    session["user"] = {"sub": claims.get("sub"), "email": claims.get("email")}
    logger.info("login sub=%s", claims.get("sub"))
    return RedirectResponse(url="/", status_code=303)


@app.get("/logout")
def logout(request: Request):
    request.state.session.clear()
    return RedirectResponse(url="/", status_code=303)


# ------------------------------------------------------------ platforms


@app.get("/platforms")
def list_platforms(request: Request, db: Database = Depends(get_database)):
    platforms = services.PlatformService(db).list()
    if client_wants_json(request):
        return [p.model_dump() for p in platforms]
    return render(request, "platforms/index.html", {"platforms": platforms})


@app.get("/platforms/new")
def new_platform(request: Request):
    return render(request, "platforms/form.html", {"platform": None, "values": {}})


@app.get("/platforms/{slug}")
def show_platform(slug: str, request: Request, db: Database = Depends(get_database)):
    try:
        platform = services.PlatformService(db).get(slug)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if client_wants_json(request):
        return platform.model_dump()
    games = services.GameService(db).list_for_platform(slug)
    return render(request, "platforms/show.html", {"platform": platform, "games": games})


@app.get("/platforms/{slug}/edit")
def edit_platform(slug: str, request: Request, db: Database = Depends(get_database)):
    try:
        platform = services.PlatformService(db).get(slug)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return render(request, "platforms/form.html", {"platform": platform, "values": platform.model_dump()})


@app.get("/platforms/{slug}/games")
def list_platform_games(slug: str, request: Request, db: Database = Depends(get_database)):
    """List the games released on one platform."""
    try:
        platform = services.PlatformService(db).get(slug)
        games = services.GameService(db).list_for_platform(slug)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if client_wants_json(request):
        return [g.model_dump() for g in games]
    return render(request, "games/index.html", {"games": games, "platform": platform})


@app.post("/platforms")
def create_platform(request: Request, data: dict = Depends(request_payload), db: Database = Depends(get_database)):
    """Create a platform from a JSON body or a submitted form."""
    form_ctx = {"platform": None, "values": data}
    try:
        payload = schemas.PlatformIn.model_validate(data)
        platform = services.PlatformService(db).create(payload)
    except ValidationError as e:
        return _form_error(request, 400, _validation_messages(e), "platforms/form.html", form_ctx)
    except ConflictError as e:
        return _form_error(request, 409, [str(e)], "platforms/form.html", form_ctx)
    except ValueError as e:
        return _form_error(request, 400, [str(e)], "platforms/form.html", form_ctx)
    if client_wants_json(request):
        return JSONResponse(status_code=201, content=platform.model_dump())
    return RedirectResponse(url=f"/platforms/{platform.slug}", status_code=303)


@app.put("/platforms/{slug}")
def replace_platform(slug: str, request: Request, data: dict = Depends(request_payload), db: Database = Depends(get_database)):
    """Update a platform from a JSON body; always answers JSON."""
    try:
        payload = schemas.PlatformUpdate.model_validate(data)
        platform = services.PlatformService(db).update(slug, payload)
    except NotFoundError as e:
        return JSONResponse(status_code=404, content={"error": str(e)})
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": _validation_messages(e)})
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": [str(e)]})
    return platform.model_dump()


@app.post("/platforms/{slug}")
def update_platform(slug: str, request: Request, data: dict = Depends(request_payload), db: Database = Depends(get_database)):
    """Update a platform from the edit form."""
    svc = services.PlatformService(db)
    try:
        current = svc.get(slug)
        payload = schemas.PlatformUpdate.model_validate(data)
        platform = svc.update(slug, payload)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        return _form_error(request, 400, _validation_messages(e), "platforms/form.html", {"platform": current, "values": data})
    except ValueError as e:
        return _form_error(request, 400, [str(e)], "platforms/form.html", {"platform": current, "values": data})
    if client_wants_json(request):
        return platform.model_dump()
    return RedirectResponse(url=f"/platforms/{platform.slug}", status_code=303)


@app.delete("/platforms/{slug}")
def delete_platform(slug: str, request: Request, db: Database = Depends(get_database)):
    try:
        services.PlatformService(db).delete(slug)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if client_wants_json(request):
        return Response(status_code=204)
    return RedirectResponse(url="/platforms", status_code=303)


# ---------------------------------------------------------------- games


def _game_form_context(db: Database, game=None, values: dict = None) -> dict:
    values = dict(values or {})
    if game is not None and not values:
        values = game.model_dump()
        values["platforms"] = [p.slug for p in game.platforms]
    return {
        "game": game,
        "values": values,
        "all_platforms": services.PlatformService(db).list(),
    }


@app.get("/games")
def list_games(request: Request, db: Database = Depends(get_database)):
    games = services.GameService(db).list()
    if client_wants_json(request):
        return [g.model_dump() for g in games]
    return render(request, "games/index.html", {"games": games, "platform": None})


@app.get("/games/new")
def new_game(request: Request, db: Database = Depends(get_database)):
    return render(request, "games/form.html", _game_form_context(db))


@app.get("/games/{slug}")
def show_game(slug: str, request: Request, db: Database = Depends(get_database)):
    try:
        game = services.GameService(db).get(slug)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if client_wants_json(request):
        return game.model_dump()
    return render(request, "games/show.html", {"game": game})


@app.get("/games/{slug}/edit")
def edit_game(slug: str, request: Request, db: Database = Depends(get_database)):
    try:
        game = services.GameService(db).get(slug)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return render(request, "games/form.html", _game_form_context(db, game))


@app.post("/games")
def create_game(request: Request, data: dict = Depends(request_payload), db: Database = Depends(get_database)):
    """Create a game; `platforms` lists the slugs of existing platforms."""
    try:
        payload = schemas.GameIn.model_validate(data)
        game = services.GameService(db).create(payload)
    except ValidationError as e:
        return _form_error(request, 400, _validation_messages(e), "games/form.html", _game_form_context(db, values=data))
    except ConflictError as e:
        return _form_error(request, 409, [str(e)], "games/form.html", _game_form_context(db, values=data))
    except ValueError as e:
        return _form_error(request, 400, [str(e)], "games/form.html", _game_form_context(db, values=data))
    if client_wants_json(request):
        return JSONResponse(status_code=201, content=game.model_dump())
    return RedirectResponse(url=f"/games/{game.slug}", status_code=303)


@app.put("/games/{slug}")
def replace_game(slug: str, request: Request, data: dict = Depends(request_payload), db: Database = Depends(get_database)):
    """Update a game from a JSON body; always answers JSON."""
    try:
        payload = schemas.GameUpdate.model_validate(data)
        game = services.GameService(db).update(slug, payload)
    except NotFoundError as e:
        return JSONResponse(status_code=404, content={"error": str(e)})
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": _validation_messages(e)})
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": [str(e)]})
    return game.model_dump()


@app.post("/games/{slug}")
def update_game(slug: str, request: Request, data: dict = Depends(request_payload), db: Database = Depends(get_database)):
    """Update a game from the edit form."""
    svc = services.GameService(db)
    try:
        current = svc.get(slug)
        payload = schemas.GameUpdate.model_validate(data)
        game = svc.update(slug, payload)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        return _form_error(request, 400, _validation_messages(e), "games/form.html", _game_form_context(db, current, data))
    except ValueError as e:
        return _form_error(request, 400, [str(e)], "games/form.html", _game_form_context(db, current, data))
    if client_wants_json(request):
        return game.model_dump()
    return RedirectResponse(url=f"/games/{game.slug}", status_code=303)


@app.delete("/games/{slug}")
def delete_game(slug: str, request: Request, db: Database = Depends(get_database)):
    try:
        services.GameService(db).delete(slug)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if client_wants_json(request):
        return Response(status_code=204)
    return RedirectResponse(url="/games", status_code=303)
