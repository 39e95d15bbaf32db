import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from library_manager.errors import GENERIC_ERROR_MESSAGE, PAGE_NOT_FOUND_MESSAGE
from library_manager.web.templating import templates


logger = logging.getLogger(__name__)


def render_error(request: Request, status: int, message: str):
    return templates.TemplateResponse(
        request, "error.html", {"status": status, "message": message}, status_code=status
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    status = exc.status_code
    if status >= 500:
        message = GENERIC_ERROR_MESSAGE
    elif status == 404 and exc.detail in (None, "", "Not Found"):
        message = PAGE_NOT_FOUND_MESSAGE
    else:
        message = str(exc.detail)
    logger.warning(f"Error Status: {status}, Message: {message} ({request.method} {request.url.path})")
    return render_error(request, status, message)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Only path parameters are typed; a malformed id is an unknown page.
    logger.info(f"Unmatched path parameters for {request.url.path}: {exc.errors()}")
    return render_error(request, 404, PAGE_NOT_FOUND_MESSAGE)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception in {request.method} {request.url.path}: {str(exc)}", exc_info=exc)
    return render_error(request, 500, GENERIC_ERROR_MESSAGE)
