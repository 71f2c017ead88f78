from __future__ import annotations

from typing import Mapping, Optional

from fastapi import HTTPException

_ERROR_TYPES = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    500: "internal_error",
}


class FetcherError(HTTPException):
    def __init__(
        self,
        status_code: int,
        err_type: str,
        message: str,
        headers: Optional[Mapping[str, str]] = None,
    ):
        payload = {"error": {"type": err_type, "code": status_code, "message": message}}
        super().__init__(
            status_code=status_code,
            detail=payload,
            headers=dict(headers) if headers else None,
        )


def error_payload(status_code: int, message: str) -> dict:
    err_type = _ERROR_TYPES.get(status_code, "http_error")
    return {"error": {"type": err_type, "code": status_code, "message": message}}


def err_not_found() -> FetcherError:
    return FetcherError(404, "not_found", "Not found")


def err_bad_request(message: str = "Malformed URL") -> FetcherError:
    return FetcherError(400, "bad_request", message)


def err_method_not_allowed() -> FetcherError:
    return FetcherError(
        405, "method_not_allowed", "Method not allowed", headers={"Allow": "GET, HEAD"}
    )
