import logging

from fastapi import APIRouter, HTTPException

from app.models.request import ResolveRequest
from app.models.response import FetchResult
from app.services.fetcher import FetchTimeout
from app.services.normalizer import InvalidURL
from app.services.resolver import ResolveError, resolve

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/resolve",
    response_model=FetchResult,
    response_model_exclude_none=True,
    summary="Resolve a site's icons, titles and descriptions",
)
async def resolve_endpoint(body: ResolveRequest) -> FetchResult:
    """Fetch *url* and return every icon, title and description that could be found.

    Icons are ordered HTML first, then manifest; when neither source declares
    one, a ``/favicon.ico`` hint is returned.  Non-fatal problems are listed
    in ``errors``.
    """
    logger.info(
        "Resolve request received",
        extra={"url": body.url, "include_metadata": body.include_metadata},
    )

    try:
        return await resolve(body.url, body)
    except InvalidURL as exc:
        logger.warning("Invalid URL: %s", body.url)
        raise HTTPException(status_code=400, detail=str(exc))
    except ResolveError as exc:
        if isinstance(exc.__cause__, FetchTimeout):
            logger.error("Timeout fetching URL: %s", body.url)
            raise HTTPException(status_code=504, detail=str(exc))
        logger.error("Error fetching URL %s: %s", body.url, exc)
        raise HTTPException(status_code=502, detail=str(exc))
