"""
Leaderboard backend for the extension clicker game.
GET /, /health, /leaderboard; POST /player, /score, /reset (identity assertion required).
"""
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from leaderboard_server.config import CORS_ORIGINS, HOST, PORT
from leaderboard_server.database import SessionLocal, init_db
from leaderboard_server.errors import AuthError, LeaderboardError
from leaderboard_server.identity import IdentityClaims, get_claims
from leaderboard_server.leaderboard import LeaderboardView
from leaderboard_server.registry import ParticipantRegistry
from leaderboard_server.schemas import ParticipantOut, PlayerRequest, ResetRequest, ScoreRequest
from leaderboard_server.token_cache import TokenCache


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and build the process-wide services once."""
    init_db()
    token_cache = TokenCache()
    registry = ParticipantRegistry(SessionLocal, token_cache)
    app.state.token_cache = token_cache
    app.state.registry = registry
    app.state.leaderboard = LeaderboardView(registry)
    yield


app = FastAPI(title="Leaderboard Server", version="0.2.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.exception_handler(LeaderboardError)
async def leaderboard_error_handler(request: Request, exc: LeaderboardError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()}, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": {"error": "invalid_request", "error_description": "invalid body"}},
    )


def get_registry(request: Request) -> ParticipantRegistry:
    return request.app.state.registry


def get_leaderboard(request: Request) -> LeaderboardView:
    return request.app.state.leaderboard


Claims = Annotated[IdentityClaims, Depends(get_claims)]
Registry = Annotated[ParticipantRegistry, Depends(get_registry)]


@app.get("/", response_class=PlainTextResponse)
def root():
    """Liveness message."""
    return "Leaderboard backend is running"


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "leaderboard_server"}


@app.get("/leaderboard", response_model=list[ParticipantOut])
def leaderboard(view: Annotated[LeaderboardView, Depends(get_leaderboard)]):
    """All participants, highest score first."""
    return view.as_json()


@app.post("/player", response_model=ParticipantOut)
def player(claims: Claims, registry: Registry, body: PlayerRequest | None = None):
    """Resolve (find or create) the caller's participant. Body name is only a fallback."""
    fallback = body.name if body is not None else None
    return registry.resolve_player(claims, fallback).to_public()


@app.post("/score", response_model=ParticipantOut, dependencies=[Depends(get_claims)])
def score(registry: Registry, body: ScoreRequest):
    """Increment a participant's score by inc (default 1)."""
    return registry.increment_score(body.id, body.inc).to_public()


@app.post("/reset", response_model=ParticipantOut, dependencies=[Depends(get_claims)])
def reset(registry: Registry, body: ResetRequest):
    """Reset a participant's score to zero."""
    return registry.reset_score(body.id).to_public()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "leaderboard_server.main:app",
        host=HOST,
        port=PORT,
    )
