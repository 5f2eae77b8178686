import logging

from fastapi import FastAPI

logger = logging.getLogger(__name__)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        engine = app.state.loan_engine
        logger.info(
            "Application startup store=%s notifier=%s",
            type(engine.store).__name__,
            type(engine.notifier).__name__,
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Application shutdown")
