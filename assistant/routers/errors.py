from fastapi import HTTPException

from assistant.services.orchestrator import (
    MeetingError,
    NoActiveMeetingError,
    OperationFailedError,
)


def http_error(exc: MeetingError) -> HTTPException:
    """Map an orchestrator error onto the HTTP status the API reports.

    Invalid task references and other rejected requests fall through to 400.
    """
    if isinstance(exc, NoActiveMeetingError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, OperationFailedError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
