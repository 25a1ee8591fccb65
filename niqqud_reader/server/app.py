"""FastAPI application exposing the reader engine over HTTP.

WHY: Other front ends (a web page, a bot, a script) need the same engine
the CLI uses: classify and strip niqqud, toggle a text between its three
forms, divide it into syllables, and walk it unit by unit with the focus
remembered. FastAPI gives request validation and OpenAPI docs for free.

HOW: Stateless helpers (detect, strip, parse) are plain POST endpoints.
Stateful work happens in sessions: POST /sessions creates a
ReaderSession with its own in-memory store, and the session endpoints
drive it. After a mutating call, a recorded session error is raised as
the ReaderError it is, and one exception handler maps every ReaderError
to an ErrorResponse.

RULES:
- Error responses use the ErrorResponse schema
- Input and configuration errors → 422, provider errors → 424,
  cache inconsistency → 409, unknown session → 404, store full → 429
- GET /sessions/{id} reports the current error in the body instead of
  failing
- The session store is a singleton created at import time
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from niqqud_reader import __version__
from niqqud_reader.core.errors import (
    ErrorKind,
    ProviderUnparsableSyllablesError,
    ReaderError,
)
from niqqud_reader.core.ir import NavigationPosition, NiqqudStatus, SyllablesData
from niqqud_reader.core.niqqud import detect_niqqud, remove_niqqud
from niqqud_reader.core.parser import parse_syllables_response
from niqqud_reader.server.models import (
    DetectResponse,
    ErrorModel,
    ErrorResponse,
    HealthResponse,
    KeyRequest,
    NavigationModeRequest,
    NavigationMove,
    NiqqudAction,
    ParseRequest,
    PositionRequest,
    PositionResponse,
    SessionCreateRequest,
    SessionResponse,
    StripResponse,
    SyllablesResponse,
    SyllableWordModel,
    TextCacheModel,
    TextRequest,
)
from niqqud_reader.server.sessions import SessionEntry, SessionStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

session_store = SessionStore()


async def _periodic_cleanup() -> None:
    """Expire idle sessions every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        session_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="Niqqud Reader API",
    description=(
        "REST API for reading Hebrew text: detect and strip niqqud, toggle "
        "a text between its original, clean and fully vocalized forms, "
        "divide it into syllables, and navigate it by word, syllable or letter."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

_UNPROCESSABLE_KINDS = {
    ErrorKind.EMPTY_INPUT,
    ErrorKind.MISSING_CREDENTIAL,
    ErrorKind.MISSING_MODEL_SELECTION,
    ErrorKind.MISSING_PROMPT,
}


def status_for(error: ReaderError) -> int:
    """HTTP status for an engine error."""
    if error.kind in _UNPROCESSABLE_KINDS:
        return 422
    if error.kind == ErrorKind.CACHE_INCONSISTENCY:
        return 409
    return 424


@app.exception_handler(ReaderError)
async def reader_error_handler(request: Request, exc: ReaderError) -> JSONResponse:
    data = exc.to_dict()
    extra = {k: v for k, v in data.items() if k not in ("kind", "message")}
    body = ErrorResponse(detail=exc.message, kind=exc.kind.value, extra=extra or None)
    return JSONResponse(status_code=status_for(exc), content=body.model_dump())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _syllables_to_response(data: Optional[SyllablesData]) -> Optional[SyllablesResponse]:
    if data is None:
        return None
    return SyllablesResponse(
        words=[SyllableWordModel(word=w.word, syllables=list(w.syllables)) for w in data.words]
    )


def _position_to_response(entry: SessionEntry) -> Optional[PositionResponse]:
    navigation = entry.session.navigation
    position = navigation.get_current_position()
    if position is None:
        return None
    return PositionResponse(
        mode=position.mode,
        word_index=position.word_index,
        syllable_index=position.syllable_index,
        letter_index=position.letter_index,
        text=navigation.current_text(),
    )


def _session_to_response(entry: SessionEntry) -> SessionResponse:
    """Convert a live session into its response model."""
    session = entry.session
    cache = session.cache
    try:
        syllables = session.displayed_syllables()
    except ReaderError:
        syllables = None
    return SessionResponse(
        id=entry.id,
        text=session.text,
        niqqud_status=session.niqqud_status,
        display_mode=session.display_mode,
        target_state=session.target_state,
        cache=TextCacheModel(**cache.to_dict()) if cache is not None else None,
        syllables=_syllables_to_response(syllables),
        position=_position_to_response(entry),
        navigation_mode=session.navigation.mode,
        error=ErrorModel(**session.error.to_dict()) if session.error is not None else None,
    )


def _get_entry(session_id: str) -> SessionEntry:
    entry = session_store.get_session(session_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return entry


def _respond(entry: SessionEntry) -> SessionResponse:
    """Session state after a mutation; a recorded error becomes the response."""
    if entry.session.error is not None:
        raise entry.session.error
    return _session_to_response(entry)


_SESSION_ERRORS = {
    404: {"model": ErrorResponse, "description": "Session not found"},
    409: {"model": ErrorResponse, "description": "Syllables cannot be aligned with the displayed text"},
    422: {"model": ErrorResponse, "description": "Empty text or missing provider configuration"},
    424: {"model": ErrorResponse, "description": "The provider failed or answered unusably"},
}


# ---------------------------------------------------------------------------
# Endpoints: Stateless helpers
# ---------------------------------------------------------------------------


@app.post(
    "/niqqud/detect",
    response_model=DetectResponse,
    tags=["niqqud"],
    summary="Classify niqqud density",
    description="Returns 'none', 'partial' (under 80% of Hebrew words vocalized) or 'full'.",
)
async def detect(body: TextRequest) -> DetectResponse:
    status = detect_niqqud(body.text)
    return DetectResponse(
        status=status,
        has_niqqud=status != NiqqudStatus.NONE,
        is_fully_niqqud=status == NiqqudStatus.FULL,
    )


@app.post(
    "/niqqud/strip",
    response_model=StripResponse,
    tags=["niqqud"],
    summary="Remove niqqud",
    description="Removes every niqqud mark and keeps all other characters in order.",
)
async def strip(body: TextRequest) -> StripResponse:
    return StripResponse(text=remove_niqqud(body.text))


@app.post(
    "/syllables/parse",
    response_model=SyllablesResponse,
    tags=["syllables"],
    summary="Parse a syllable-division reply",
    description=(
        "Runs a free-form provider reply (one word per line, syllables "
        "separated by hyphens) through the lenient parser."
    ),
    responses={424: {"model": ErrorResponse, "description": "No word entries in the reply"}},
)
async def parse(body: ParseRequest) -> SyllablesResponse:
    data = parse_syllables_response(body.response)
    if data is None:
        raise ProviderUnparsableSyllablesError()
    return _syllables_to_response(data)


# ---------------------------------------------------------------------------
# Endpoints: Sessions
# ---------------------------------------------------------------------------


@app.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=201,
    tags=["sessions"],
    summary="Create a reader session",
    responses={429: {"model": ErrorResponse, "description": "Too many concurrent sessions"}},
)
async def create_session(body: SessionCreateRequest) -> SessionResponse:
    try:
        entry = session_store.create_session(text=body.text, navigation_mode=body.navigation_mode)
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))
    return _session_to_response(entry)


@app.get(
    "/sessions/{session_id}",
    response_model=SessionResponse,
    tags=["sessions"],
    summary="Get session state",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def get_session(session_id: str) -> SessionResponse:
    return _session_to_response(_get_entry(session_id))


@app.delete(
    "/sessions/{session_id}",
    status_code=204,
    tags=["sessions"],
    summary="Delete a reader session",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def delete_session(session_id: str) -> Response:
    if not session_store.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return Response(status_code=204)


@app.put(
    "/sessions/{session_id}/text",
    response_model=SessionResponse,
    tags=["sessions"],
    summary="Replace the session text",
    description="Applies an edit made outside the engine; echoes of cached forms keep the cache.",
    responses=_SESSION_ERRORS,
)
async def set_text(session_id: str, body: TextRequest) -> SessionResponse:
    entry = _get_entry(session_id)
    entry.session.set_text(body.text)
    return _respond(entry)


@app.post(
    "/sessions/{session_id}/niqqud/{action}",
    response_model=SessionResponse,
    tags=["sessions"],
    summary="Run a vocalization operation",
    description=(
        "toggle, add, complete and remove vocalize or strip the text; "
        "original, clean and full display a cached form; restore shows the "
        "last chosen form; clear forgets the text and its cache."
    ),
    responses=_SESSION_ERRORS,
)
async def niqqud_action(session_id: str, action: NiqqudAction) -> SessionResponse:
    entry = _get_entry(session_id)
    session = entry.session
    if action == NiqqudAction.toggle:
        await session.toggle_niqqud()
    elif action == NiqqudAction.add:
        await session.add_niqqud()
    elif action == NiqqudAction.complete:
        await session.complete_niqqud()
    elif action == NiqqudAction.remove:
        session.remove_niqqud()
    elif action == NiqqudAction.original:
        session.switch_to_original()
    elif action == NiqqudAction.clean:
        session.switch_to_clean()
    elif action == NiqqudAction.full:
        session.switch_to_full()
    elif action == NiqqudAction.restore:
        session.restore_last_display_mode()
    else:
        session.clear_niqqud()
    return _respond(entry)


@app.post(
    "/sessions/{session_id}/syllables",
    response_model=SessionResponse,
    tags=["syllables"],
    summary="Divide the session text into syllables",
    description="Served from the syllables cache when the text was divided before.",
    responses=_SESSION_ERRORS,
)
async def divide_syllables(session_id: str) -> SessionResponse:
    entry = _get_entry(session_id)
    await entry.session.divide_syllables()
    return _respond(entry)


@app.delete(
    "/sessions/{session_id}/syllables",
    response_model=SessionResponse,
    tags=["syllables"],
    summary="Clear cached syllable divisions",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def clear_syllables(session_id: str) -> SessionResponse:
    entry = _get_entry(session_id)
    entry.session.clear_syllables()
    return _session_to_response(entry)


# ---------------------------------------------------------------------------
# Endpoints: Navigation
# ---------------------------------------------------------------------------


@app.put(
    "/sessions/{session_id}/navigation/mode",
    response_model=SessionResponse,
    tags=["navigation"],
    summary="Switch navigation granularity",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def set_navigation_mode(session_id: str, body: NavigationModeRequest) -> SessionResponse:
    entry = _get_entry(session_id)
    entry.session.navigation.set_mode(body.mode)
    return _session_to_response(entry)


@app.post(
    "/sessions/{session_id}/navigation/key",
    response_model=SessionResponse,
    tags=["navigation"],
    summary="Apply a keyboard key",
    description="ArrowLeft/Tab move forward, ArrowRight/Shift+Tab back, ArrowUp/ArrowDown change line.",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def navigate_key(session_id: str, body: KeyRequest) -> SessionResponse:
    entry = _get_entry(session_id)
    entry.session.navigation.navigate_key(body.key, body.shift)
    return _session_to_response(entry)


@app.put(
    "/sessions/{session_id}/navigation/position",
    response_model=SessionResponse,
    tags=["navigation"],
    summary="Jump to a position",
    description="Indices are clamped into range; the position's mode becomes the current mode.",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def highlight(session_id: str, body: PositionRequest) -> SessionResponse:
    entry = _get_entry(session_id)
    entry.session.navigation.highlight(NavigationPosition(
        mode=body.mode,
        word_index=body.word_index,
        syllable_index=body.syllable_index,
        letter_index=body.letter_index,
    ))
    return _session_to_response(entry)


@app.delete(
    "/sessions/{session_id}/navigation/position",
    response_model=SessionResponse,
    tags=["navigation"],
    summary="Clear the highlight",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def clear_highlight(session_id: str) -> SessionResponse:
    entry = _get_entry(session_id)
    entry.session.navigation.clear_highlight()
    return _session_to_response(entry)


@app.post(
    "/sessions/{session_id}/navigation/{move}",
    response_model=SessionResponse,
    tags=["navigation"],
    summary="Move the focus",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def navigation_move(session_id: str, move: NavigationMove) -> SessionResponse:
    entry = _get_entry(session_id)
    navigation = entry.session.navigation
    if move == NavigationMove.next:
        navigation.focus_next()
    elif move == NavigationMove.prev:
        navigation.focus_prev()
    elif move == NavigationMove.up:
        navigation.focus_up()
    elif move == NavigationMove.down:
        navigation.focus_down()
    else:
        navigation.reset_position()
    return _session_to_response(entry)


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness and readiness check for load balancers and orchestrators.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def run_api():
    """Entry point for the niqqud-reader-api console script."""
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
