"""FastAPI app, CORS, and route registration."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from soundboard.config import LOG_LEVEL, ensure_data_dir

# Configure logging in the worker process (uvicorn --reload spawns a fresh one)
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(levelname)s: %(name)s: %(message)s",
)

from soundboard.api.state import AppState, get_state
from soundboard.core.errors import RemoteError, SoundboardError, http_status_for

# Import routes after state to avoid circular imports
from soundboard.api.routes import buttons, playback, spotify

__all__ = ["app", "create_app", "AppState", "get_state"]

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    state: AppState = app.state.soundboard
    ensure_data_dir()

    credential = state.authenticator.stored_credential()
    if credential is not None:
        try:
            await state.remote.connect(credential)
        except RemoteError as e:
            logger.warning("Stored Spotify credential not usable: %s", e)
    else:
        logger.info("No stored Spotify credential; log in via /api/spotify/login")
    await state.orchestrator.apply_volume()

    yield

    await state.remote.disconnect()
    await state.local_backend.shutdown()


async def soundboard_error_handler(request: Request, exc: SoundboardError) -> JSONResponse:
    return JSONResponse(status_code=http_status_for(exc), content={"detail": str(exc)})


def create_app(state: AppState | None = None) -> FastAPI:
    app = FastAPI(
        title="Soundboard API",
        description="Local REST API for the RPG soundboard (local audio + Spotify Connect)",
        lifespan=lifespan,
    )
    app.state.soundboard = state or AppState()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(SoundboardError, soundboard_error_handler)

    app.include_router(buttons.router, prefix="/api/buttons", tags=["buttons"])
    app.include_router(playback.router, prefix="/api/playback", tags=["playback"])
    app.include_router(spotify.router, prefix="/api/spotify", tags=["spotify"])
    return app


app = create_app()
