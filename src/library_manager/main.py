import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from library_manager.config import settings
from library_manager.db import init_db, dispose_db
from library_manager.web.router import router
from library_manager.web.middleware import log_requests
from library_manager.web.handlers import (
    http_exception_handler, validation_exception_handler, unhandled_exception_handler,
)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
    ]
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info(f"Database ready ({settings.ENV})")
    try:
        yield
    finally:
        await dispose_db()

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
app.include_router(router)
app.middleware("http")(log_requests)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

def run():
    uvicorn.run("library_manager.main:app", host=settings.HOST, port=settings.PORT)

if __name__ == "__main__":
    run()
