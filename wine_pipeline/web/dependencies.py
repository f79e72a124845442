"""Shared helpers for the JSON routes.

Pipeline errors are translated into HTTP errors here so every route
reports them the same way.
"""

from fastapi import HTTPException

from wine_pipeline.core.errors import (
    DuplicateKeyError,
    NotFoundError,
    PersistenceError,
    UpstreamServiceError,
    ValidationError,
    WinePipelineError,
)

ERROR_STATUS: dict[type[WinePipelineError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    DuplicateKeyError: 409,
    UpstreamServiceError: 502,
    PersistenceError: 500,
}


def http_error(error: WinePipelineError) -> HTTPException:
    """Build the HTTPException for a pipeline error.

    Args:
        error: The error raised by the service layer.

    Returns:
        HTTPException carrying the mapped status code and the error message.
    """
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
