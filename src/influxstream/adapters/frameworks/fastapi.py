"""FastAPI adapter for the line protocol write endpoint."""

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from influxstream.adapters.frameworks.query_params import precision_from_token
from influxstream.connector import Connector
from influxstream.core.errors import IngestionError, ParseError
from influxstream.core.logs import log_exception


def create_write_router(connector: Connector) -> APIRouter:
    """Create a FastAPI router with /api/v2/write and /write endpoints.

    Args:
        connector: Connector that ingests request bodies.

    Returns:
        APIRouter with the write endpoints configured.
    """
    router = APIRouter()

    async def write(
        request: Request, precision: str | None = Query(default=None)
    ) -> JSONResponse:
        """Ingest a line protocol body.

        Args:
            precision: ``ms``, ``us`` or ``s``; nanoseconds otherwise.
        """
        body = await request.body()
        try:
            await connector.ingest(body, precision_from_token(precision))
        except ParseError as exc:
            return JSONResponse(status_code=400, content={"error": str(exc)})
        except IngestionError as exc:
            log_exception("Error ingesting line protocol", path=request.url.path)
            return JSONResponse(status_code=500, content={"error": str(exc)})
        return JSONResponse(content={"message": "Success"})

    router.add_api_route("/api/v2/write", write, methods=["POST"])
    router.add_api_route("/write", write, methods=["POST"])
    return router
