"""Liveness check."""

from datetime import datetime, timezone

from starlette.requests import Request
from starlette.responses import JSONResponse

from gworkspace_gateway import SERVICE_NAME, __version__


async def health(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )
