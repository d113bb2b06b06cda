import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from admin import router as admin_router
from auth import router as auth_router
from core import config, store
from stories import router as stories_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    config.configure_logging()
    # Open the blob store once per process.
    await store.init_store()
    try:
        yield
    finally:
        await store.close_store()


app = FastAPI(lifespan=lifespan)

app.include_router(auth_router.router, tags=["auth"])
app.include_router(stories_router.router, tags=["stories"])
app.include_router(admin_router.router, tags=["admin"])


@app.exception_handler(store.StoreError)
async def store_error_handler(request: Request, exc: store.StoreError) -> JSONResponse:
    logger.error("store_error path=%s error=%s", request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=503, content={"detail": "Storage service not available."})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    # Errors echo the rejected input, which may not be encodable as UTF-8.
    body = json.dumps({"detail": jsonable_encoder(exc.errors())}, ensure_ascii=True)
    return Response(content=body, status_code=422, media_type="application/json")


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/")
def root() -> dict:
    return {"message": "short stories api"}
