from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from todoer.config import settings
from todoer.db import init_models
from todoer.log import get_logger, setup_logging
from todoer.routers.data import router as data_router
from todoer.routers.settings import router as settings_router
from todoer.settings.validation import SettingsValidationError
from todoer.snapshot.document import DocumentCorrupt

log = get_logger("api")

app = FastAPI(title="Todoer API", version="0.1.0")


@app.exception_handler(DocumentCorrupt)
async def _document_corrupt_handler(_, exc: DocumentCorrupt) -> JSONResponse:
  log.warning("import rejected: %s", exc)
  return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(SettingsValidationError)
async def _settings_error_handler(_, exc: SettingsValidationError) -> JSONResponse:
  return JSONResponse(status_code=400, content={"detail": exc.message})


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)

app.include_router(data_router)
app.include_router(settings_router)


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "formatVersion": settings.snapshot_format_version}


@app.on_event("startup")
async def _startup() -> None:
  setup_logging()
  await init_models()
  log.info("todoer api %s ready", settings.app_version)
