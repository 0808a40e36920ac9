# core/errors.py

from fastapi import HTTPException

from core.logging_config import logger


# ============================================================
# Error codes returned alongside `detail`
# ============================================================
ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    402: "CREDITS_EXHAUSTED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    429: "RATE_LIMITED",
}


def error_code_for(status_code: int) -> str:
    if status_code >= 500:
        return "INTERNAL_ERROR"
    return ERROR_CODES.get(status_code, "ERROR")


def not_found(entity: str) -> HTTPException:
    """`HTTPException(404, "<Entity> not found")`. Caller raises it."""
    return HTTPException(status_code=404, detail=f"{entity} not found")


def forbidden(message: str = "Insufficient permissions") -> HTTPException:
    return HTTPException(status_code=403, detail=message)


def extract_supabase_error(error: Exception) -> str:
    """
    Safely extract readable details from Supabase Python client errors.
    Handles:
      • PostgREST APIError (has .message)
      • GoTrue (Auth) errors
      • Generic Python exceptions
    """
    message = getattr(error, "message", None)
    if message:
        return str(message)

    if getattr(error, "args", None):
        return str(error.args[0])

    return str(error) or "Unknown Supabase error"


def handle_supabase_error(error: Exception, operation: str = "Database operation", status_code: int = 500) -> HTTPException:
    """
    Handle Supabase errors with consistent formatting.
    Returns HTTPException (doesn't raise) so caller can customize or re-raise.

    HTTPExceptions raised inside the guarded block pass through unchanged,
    so routers can wrap a whole handler body in one try/except.

    Args:
        error: The exception that occurred
        operation: Description of what operation failed (e.g., "Failed to create permit")
        status_code: HTTP status code (default 500)
    """
    if isinstance(error, HTTPException):
        return error

    error_detail = extract_supabase_error(error)
    logger.error(f"{operation}: {error_detail}")

    error_lower = error_detail.lower()
    if "duplicate" in error_lower or "unique" in error_lower:
        return HTTPException(status_code=400, detail=f"{operation}: Record already exists")
    elif "foreign key" in error_lower:
        return HTTPException(status_code=400, detail=f"{operation}: Invalid reference")
    elif "not found" in error_lower or "does not exist" in error_lower:
        return HTTPException(status_code=404, detail=f"{operation}: Resource not found")
    else:
        return HTTPException(status_code=status_code, detail=f"{operation} failed")
