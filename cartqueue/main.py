import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from cartqueue.api.errors import cart_service_error_handler, request_validation_error_handler
from cartqueue.api.v1 import cart
from cartqueue.bootstrap import (
    CartServices,
    build_cache,
    build_catalog,
    build_database,
    build_publisher,
    build_store,
)
from cartqueue.config import load_settings
from cartqueue.domain.cart.errors import CartServiceError
from cartqueue.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle manager - setup and teardown.
    Connects database, cache and broker unless services were injected.
    """
    if getattr(app.state, "services", None) is not None:
        yield
        return

    settings = load_settings()
    configure_logging(settings.log_level)

    # Startup
    database = build_database(settings)
    cache = build_cache(settings)
    publisher = build_publisher(settings)
    app.state.services = CartServices(
        store=build_store(database),
        products=build_catalog(database),
        cache=cache,
        publisher=publisher,
        cache_ttl_seconds=settings.cart_cache_ttl_seconds,
    )
    logger.info("Cart service started")

    yield

    # Shutdown
    publisher.close()
    cache.close()
    database.close()
    logger.info("Cart service stopped")


def create_app(services: CartServices | None = None) -> FastAPI:
    app = FastAPI(
        title="Cart Service",
        description="Shopping cart with queued writes and cache-aside reads",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_exception_handler(CartServiceError, cart_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.include_router(cart.router)

    @app.get("/health")
    def health():
        """Health check endpoint"""
        return {"status": "ok", "service": "cart"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("cartqueue.main:app", host="0.0.0.0", port=8000)
