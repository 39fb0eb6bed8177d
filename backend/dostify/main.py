import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from dostify.core.config import settings
from dostify.core.database import init_db
from dostify.core.errors import register_error_handlers
from dostify.api import chat, mood, planner, sessions
from dostify.services.llm import get_llm_provider
from dostify.services.orchestrator import ChatOrchestrator
from dostify.services.tools.registry import create_default_registry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure logging based on debug setting
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s" if settings.debug
        else "%(levelname)-8s %(name)s: %(message)s",
    )

    init_db()

    if not getattr(app.state, "orchestrator", None):
        app.state.orchestrator = ChatOrchestrator(
            settings, get_llm_provider(settings), create_default_registry()
        )

    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


@app.middleware("http")
async def request_id_logging(request: Request, call_next):
    request.state.request_id = str(uuid.uuid4())
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            f"{request.method} {request.url.path} -> unhandled error [id={request.state.request_id}]"
        )
        raise
    response.headers["X-Request-Id"] = request.state.request_id
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} [id={request.state.request_id}]"
    )
    return response


app.include_router(chat.router, prefix="/api/chat", tags=["chat"])
app.include_router(sessions.router, prefix="/api/sessions", tags=["sessions"])
app.include_router(planner.router, prefix="/api/planner", tags=["planner"])
app.include_router(mood.router, prefix="/api/mood", tags=["mood"])
app.include_router(mood.feedback_router, prefix="/api/feedback", tags=["feedback"])


@app.get("/api/health")
async def health():
    return {"status": "ok", "app": settings.app_name}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("dostify.main:app", host=settings.host, port=settings.port)
