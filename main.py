import inspect
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from openai import AsyncOpenAI

from dal.conversation_dal import ConversationDAL
from models.app_state import AppState
from routes.chat_route import router as chat_router
from routes.conversation_route import router as conversation_router
from routes.realtime_ws import router as realtime_router
from services.chat.completion_service import ChatCompletionService
from services.chat.dispatcher import RequestDispatcher
from services.chat.reveal_engine import RevealEngine
from services.conversation_persister import ConversationPersister
from services.conversation_store import ConversationStore
from services.live.frame_encoder import FrameEncoder
from services.live.media_devices import MediaDevices
from services.realtime.event_hub import EventHub
from services.speech.speech_output import SpeechOutput
from services.speech.transcriber import Transcriber
from utils.config import Settings, load_settings
from utils.database_init import AsyncDatabaseInitializer

BASE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = BASE_DIR / "public"

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _local_media_devices() -> MediaDevices:
    # Imported lazily: OpenCV and PortAudio are only needed for the live view.
    from services.live.local_devices import LocalMediaDevices

    return LocalMediaDevices()


async def _close_client(client: Any) -> None:
    """Close the OpenAI client if it exposes a close/aclose method."""
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        if inspect.iscoroutinefunction(aclose):
            await aclose()
        else:
            result = aclose()
            if inspect.isawaitable(result):
                await result
    except Exception as exc:
        # Ignore shutdown errors to avoid masking more important issues.
        logger.debug("Ignoring error while closing the API client: %s", exc)


def create_app(
    settings: Optional[Settings] = None,
    *,
    openai_client: Optional[AsyncOpenAI] = None,
    speech_output: Optional[SpeechOutput] = None,
    media_devices: Optional[MediaDevices] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Collaborators can be injected (tests pass fakes); anything omitted is
    built from the environment at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan manager to initialize:
          - settings (fails fast without GROQ_API_KEY)
          - the SQLite state store and the restored conversations
          - the OpenAI-compatible async client and the chat/live services
        and attach them to `app.state`.
        """
        app_settings = settings or load_settings()
        configure_logging(app_settings.log_level)

        db_initializer = AsyncDatabaseInitializer(app_settings.database_dir)
        await db_initializer.ensure_database()
        persister = ConversationPersister(ConversationDAL(db_initializer))
        store = ConversationStore()
        await persister.restore(store)
        persister.attach(store)

        client = openai_client
        owns_client = client is None
        if client is None:
            try:
                client = AsyncOpenAI(api_key=app_settings.api_key, base_url=app_settings.api_base_url)
            except Exception as exc:
                raise RuntimeError("Failed to initialize OpenAI Async client") from exc

        hub = EventHub()
        app_state = AppState()
        completions = ChatCompletionService(
            client,
            text_model=app_settings.text_model,
            vision_model=app_settings.vision_model,
            temperature=app_settings.temperature,
            max_tokens=app_settings.max_tokens,
        )
        reveal = RevealEngine(
            app_state,
            hub,
            chunk_size=app_settings.reveal_chunk_size,
            tick_interval=app_settings.reveal_tick_interval,
        )
        speech = speech_output or SpeechOutput(
            language=app_settings.speech_language,
            fallbacks=app_settings.speech_fallback_locales,
            rate=app_settings.speech_rate,
        )

        app.state.settings = app_settings
        app.state.db_initializer = db_initializer
        app.state.conversation_store = store
        app.state.openai_client = client
        app.state.event_hub = hub
        app.state.app_state = app_state
        app.state.completion_service = completions
        app.state.reveal_engine = reveal
        app.state.dispatcher = RequestDispatcher(
            store,
            app_state,
            hub,
            completions,
            reveal,
            context_limit=app_settings.context_limit,
            decoration_probability=app_settings.decoration_probability,
        )
        app.state.transcriber = Transcriber(
            client,
            model=app_settings.transcribe_model,
            language=app_settings.transcribe_language,
        )
        app.state.speech_output = speech
        app.state.frame_encoder = FrameEncoder(quality=app_settings.live_jpeg_quality)
        app.state.media_devices = media_devices or _local_media_devices()

        try:
            yield
        finally:
            dispatcher = app.state.dispatcher
            dispatcher.cancel()
            if dispatcher.current_turn is not None:
                await dispatcher.current_turn.wait()
            await reveal.wait()
            speech.close()
            await persister.close()
            if owns_client:
                await _close_client(client)

    app = FastAPI(lifespan=lifespan)

    # Serve static assets from the public directory, if it exists.
    if PUBLIC_DIR.exists():
        app.mount("/public", StaticFiles(directory=PUBLIC_DIR), name="public")

    @app.get("/", include_in_schema=False)
    async def serve_index():
        """
        Serve the frontend index page from the public directory.
        """
        index_path = PUBLIC_DIR / "index.html"
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="Frontend not found")
        return FileResponse(index_path)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check reporting the state of the core services.
        """
        state = request.app.state
        return {
            "ok": True,
            "db_initialized": hasattr(state, "db_initializer"),
            "api_client_available": getattr(state, "openai_client", None) is not None,
            "conversations": len(state.conversation_store.conversations),
            "busy": state.app_state.busy,
        }

    # Register application routers
    app.include_router(conversation_router)
    app.include_router(chat_router)
    app.include_router(realtime_router)

    return app


app = create_app()
