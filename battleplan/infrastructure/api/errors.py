from __future__ import annotations

from fastapi import HTTPException, status

_STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (PermissionError, status.HTTP_401_UNAUTHORIZED),
    (LookupError, status.HTTP_404_NOT_FOUND),
    (ValueError, status.HTTP_400_BAD_REQUEST),
)


def to_http_error(exc: Exception) -> HTTPException:
    """Map a use case error onto the HTTP status the API documents.

    Anything not listed, including repository ``RuntimeError``s, is a 500.
    """
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Request failed: {exc}")
