import logging
import time
from typing import Callable

from fastapi import Request


logger = logging.getLogger(__name__)


async def log_requests(request: Request, call_next: Callable):
    start_time = time.time()
    try:
        response = await call_next(request)
        process_time = time.time() - start_time
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, f"{request.method} {request.url.path} {response.status_code} - {process_time * 1000:.1f} ms")
        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(f"{request.method} {request.url.path} - ERROR: {str(e)} - {process_time * 1000:.1f} ms")
        raise
