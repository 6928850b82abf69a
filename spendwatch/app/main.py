import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from spendwatch.app.api.routes.anomalies import router as anomalies_router


logger = logging.getLogger(__name__)

_LOCAL_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


def _configure_logging() -> None:
    level_name = os.getenv("SPENDWATCH_LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise RuntimeError(f"SPENDWATCH_LOG_LEVEL is not a logging level: {level_name}")
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("spendwatch").setLevel(level)


def _cors_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS")
    if raw is None:
        origins = list(_LOCAL_ORIGINS)
    else:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must not be empty.")
    if not any(origin in origins for origin in _LOCAL_ORIGINS):
        logger.warning("CORS allowlist does not include local dev origins: %s", origins)
    return origins


_configure_logging()

app = FastAPI(title="SpendWatch Anomaly API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(anomalies_router)
