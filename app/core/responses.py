"""
Uniform response envelope.

Every body has the shape {"code": int, "msg": str, "data": any | null}.
The build_* functions return plain dicts; the others wrap them in a
JSONResponse whose status is the code, or the method's default when the
code is not a valid HTTP status.
"""

import math
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

SUCCESS_MSG = "operation succeeded"
ERROR_MSG = "operation failed"
PAGINATE_MSG = "fetched successfully"
VALIDATION_MSG = "parameter validation failed"
UNAUTHORIZED_MSG = "unauthorized"
FORBIDDEN_MSG = "forbidden"
NOT_FOUND_MSG = "resource not found"
TOO_MANY_REQUESTS_MSG = "too many requests, please try again later"


def transport_status(code: int, default: int) -> int:
    return code if 100 <= code < 600 else default


def build_envelope(code: int, msg: str, data: Any = None) -> dict:
    return {"code": code, "msg": msg, "data": data}


def build_pagination(total: int, page: int, page_size: int) -> dict:
    total_pages = math.ceil(total / page_size) if page_size > 0 else 0
    return {
        "total": total,
        "page": page,
        "pageSize": page_size,
        "totalPages": total_pages,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }


def _respond(body: dict, status_code: int, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        content=jsonable_encoder(body), status_code=status_code, headers=headers
    )


def success(data: Any = None, msg: str = SUCCESS_MSG, code: int = 200) -> JSONResponse:
    return _respond(build_envelope(code, msg, data), transport_status(code, 200))


def error(
    msg: str = ERROR_MSG,
    code: int = 500,
    data: Any = None,
    headers: dict | None = None,
) -> JSONResponse:
    return _respond(
        build_envelope(code, msg, data), transport_status(code, 500), headers
    )


def paginate(
    items: list | None = None,
    total: int = 0,
    page: int = 1,
    page_size: int = 10,
    msg: str = PAGINATE_MSG,
) -> JSONResponse:
    data = {
        "items": items if items is not None else [],
        "pagination": build_pagination(total, page, page_size),
    }
    return _respond(build_envelope(200, msg, data), 200)


def validation_error(errors: list | None = None, msg: str = VALIDATION_MSG) -> JSONResponse:
    return _respond(build_envelope(400, msg, {"errors": errors or []}), 400)


def unauthorized(msg: str = UNAUTHORIZED_MSG) -> JSONResponse:
    return error(msg, 401)


def forbidden(msg: str = FORBIDDEN_MSG) -> JSONResponse:
    return error(msg, 403)


def not_found(msg: str = NOT_FOUND_MSG) -> JSONResponse:
    return error(msg, 404)


def too_many_requests(
    msg: str = TOO_MANY_REQUESTS_MSG, headers: dict | None = None
) -> JSONResponse:
    return error(msg, 429, headers=headers)
