"""Shared response helpers for the API routes."""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable proxy buffering
}


def error_response(status_code: int, message: str) -> JSONResponse:
    """JSON error body in the ``{"error": message}`` shape API clients expect."""
    return JSONResponse({"error": message}, status_code=status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 400s in the API error shape."""
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return error_response(400, f"Invalid request: {details}")
