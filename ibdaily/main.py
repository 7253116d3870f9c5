import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from ibdaily.api import cohorts, health, leaderboard, reminders, streaks, subjects, submissions  # noqa: E402
from ibdaily.core.config import settings, validate_config  # noqa: E402
from ibdaily.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from ibdaily.core.logging import configure_logging  # noqa: E402
from ibdaily.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from ibdaily.features.store.memory import get_store  # noqa: E402
from ibdaily.features.subjects.catalogue import seed_catalogue  # noqa: E402

configure_logging(settings.ENV)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("ibdaily")
    logger.info("Starting IBDaily backend...")
    store = get_store()
    logger.info("Record store ready", extra={"store": type(store).__name__})
    if not store.list_subjects():
        seed_catalogue(store)
    try:
        yield
    finally:
        logging.getLogger("ibdaily").info("Stopping IBDaily backend...")


app = FastAPI(title="IBDaily - Backend", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.APP_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["health"])
app.include_router(cohorts.router, tags=["cohorts"])
app.include_router(submissions.router, tags=["submissions"])
app.include_router(streaks.router, tags=["streaks"])
app.include_router(leaderboard.router, tags=["leaderboard"])
app.include_router(reminders.router, tags=["reminders"])
app.include_router(subjects.router, tags=["subjects"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("ibdaily.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=False)
