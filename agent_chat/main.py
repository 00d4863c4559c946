from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import punq
from starlette.exceptions import HTTPException as StarletteHTTPException

from agent_chat.api.router import api_router
from agent_chat.api.routers.health import router as health_router
from agent_chat.core.errors import ChatError
from agent_chat.core.logging import configure_logging
from agent_chat.core.settings import Settings, get_settings
from agent_chat.dependency_injection import build_container
from agent_chat.services.contracts import ChatServiceProtocol, ConversationStoreProtocol

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def _validation_message(exc: RequestValidationError) -> str:
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        details.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "Invalid request: " + "; ".join(details) if details else "Invalid request"


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    container: punq.Container = app.state.container
    logger.info(
        "starting agent chat backend",
        extra={"app_env": settings.app_env, "store_backend": settings.store_backend},
    )

    store = container.resolve(ConversationStoreProtocol)
    await store.connect()
    logger.info("conversation store initialized")

    try:
        yield
    finally:
        await container.resolve(ChatServiceProtocol).wait_for_pending_turns()
        await store.disconnect()
        logger.info("agent chat backend shutdown complete")


def create_app(settings: Settings | None = None, container: punq.Container | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.effective_log_level)

    app = FastAPI(
        title="Agent Chat Backend",
        version="0.1.0",
        docs_url="/docs" if settings.enable_swagger else None,
        redoc_url="/redoc" if settings.enable_swagger else None,
        openapi_url="/openapi.json" if settings.enable_swagger else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.container = container or build_container(settings)

    @app.middleware("http")
    async def cors(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)
        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request failed", extra={"path": request.url.path, "error": exc.message})
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": _validation_message(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Not found" if exc.status_code == status.HTTP_404_NOT_FOUND else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled request failure", extra={"path": request.url.path})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
            headers=CORS_HEADERS,
        )

    app.include_router(health_router)
    app.include_router(api_router)
    return app


app = create_app()
