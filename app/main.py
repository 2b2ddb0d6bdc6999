import logging
import logging.config

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.routers.resolve import router as resolve_router

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "root": {"level": "INFO", "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Glyphly – Site Icon Resolver API",
    description="Fetches a page and returns its icons, titles and descriptions from HTML and the Web App Manifest.",
    version="1.0.0",
)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(resolve_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": "Hello from Glyphly"}
