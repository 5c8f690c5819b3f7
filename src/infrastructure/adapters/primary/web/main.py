import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.configuration.config import get_settings
from src.configuration.di_container import DIContainer
from src.infrastructure.adapters.primary.web.middleware import configure_exception_handlers
from src.infrastructure.adapters.primary.web.routers import conversations, webhooks
from src.infrastructure.adapters.secondary.persistence.database import initialize_database
from src.infrastructure.logging_context import configure_logging

logger = logging.getLogger(__name__)


def create_app(container: DIContainer | None = None) -> FastAPI:
    """Build the application.

    A prebuilt ``container`` skips schema creation and is not closed on
    shutdown; the caller owns it.
    """
    settings = container.settings if container is not None else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        configure_logging(settings.log_level)
        logger.info("Starting ChatCommerce application...")

        owns_container = container is None
        if owns_container:
            app.state.container = DIContainer(settings=settings)
            await initialize_database(app.state.container.engine)
        else:
            app.state.container = container
        logger.info("DI container initialized")

        yield

        # Shutdown
        logger.info("Shutting down...")
        if owns_container:
            await app.state.container.close()

    app = FastAPI(
        title="ChatCommerce API",
        description="""
## ChatCommerce API

Conversational commerce over SMS and WhatsApp: inbound webhooks, an AI
assistant backed by each merchant's tool server, and an operator API.

### Authentication

Webhooks are authenticated by provider signature. When `ADMIN_API_KEY` is
set, the operator API requires it in the `X-API-Key` header.

### Error Handling

Operator endpoints return errors in the following format:

```json
{
  "error": {"type": "NotFound", "message": "...", "error_id": "...", "retryable": false}
}
```
        """,
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "webhooks", "description": "Channel and merchant-platform webhooks"},
            {"name": "conversations", "description": "Conversations, messages and stores"},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    configure_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        providers = await app.state.container.gateway.health()
        return {"status": "ok", "version": "0.1.0", "providers": providers}

    # Register Routers
    app.include_router(webhooks.router)
    app.include_router(conversations.router)

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn on API_HOST:API_PORT."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.infrastructure.adapters.primary.web.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
