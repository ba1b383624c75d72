import logging
import time
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from .core.config import Config
from .core.errors import UploadError
from .core.http import push_json_to_remote
from .core.jsonio import JSONEnvelope, error_json, read_json, write_json
from .core.middleware import global_exception_handler, log_requests, upload_error_handler
from .core.text import slugify
from .schemas import RequestPayload, ResponsePayload, SlugRequest, SlugResponse
from .services.downloads import download_static_file
from .services.uploads import upload_files, upload_one_file

logger = logging.getLogger(__name__)

# Initialize FastAPI
app = FastAPI(title="Upload Toolkit API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

@app.middleware("http")
async def _log_requests(request, call_next):
    return await log_requests(request, call_next)

@app.exception_handler(UploadError)
async def _upload_error_handler(request, exc):
    return await upload_error_handler(request, exc)

@app.exception_handler(Exception)
async def _global_exception_handler(request, exc):
    return await global_exception_handler(request, exc)


async def _read_payload(request: Request, model):
    return await read_json(
        request,
        model,
        max_bytes=Config.MAX_JSON_SIZE,
        allow_unknown_fields=Config.ALLOW_UNKNOWN_FIELDS,
    )


@app.post("/upload")
async def upload(request: Request, rename: bool = True):
    """Store every file of a multipart form in the upload directory.

    Content types are sniffed from the file bytes and checked against
    ALLOWED_FILE_TYPES; the body is capped at MAX_UPLOAD_SIZE.
    """
    files = await upload_files(request, Config.UPLOAD_DIR, rename=rename, config=Config.upload_config())
    message = " ".join(
        f"uploaded [{item.original_file_name}]. renamed to [{item.new_file_name}]" for item in files
    )
    return write_json(JSONEnvelope(error=False, message=message, data=files))


@app.post("/upload-one")
async def upload_one(request: Request, rename: bool = True):
    """Store the first file of a multipart form in the upload directory."""
    item = await upload_one_file(request, Config.UPLOAD_DIR, rename=rename, config=Config.upload_config())
    message = f"uploaded [{item.original_file_name}]. renamed to [{item.new_file_name}]"
    return write_json(JSONEnvelope(error=False, message=message, data=item))


@app.get("/download/{file_name}")
async def download(file_name: str, display_name: Optional[str] = None):
    return download_static_file(Config.DOWNLOAD_DIR, file_name, display_name or file_name)


@app.post("/slugify")
async def make_slug(request: Request):
    payload = await _read_payload(request, SlugRequest)
    try:
        slug = slugify(payload.text)
    except ValueError as e:
        return error_json(e)
    return write_json(SlugResponse(slug=slug))


@app.post("/receive-post")
async def receive_post(request: Request):
    await _read_payload(request, RequestPayload)
    return write_json(ResponsePayload(message="hit handler"))


@app.post("/remote-service")
async def remote_service(request: Request):
    """Forward the JSON payload to REMOTE_SERVICE_URL and report its status."""
    payload = await _read_payload(request, RequestPayload)
    status_code, _ = await run_in_threadpool(push_json_to_remote, Config.REMOTE_SERVICE_URL, payload)
    return write_json(
        ResponsePayload(message="hit handler, sending response", status_code=status_code),
        status=status_code,
    )


@app.post("/simulated-service")
async def simulated_service():
    return write_json(ResponsePayload(message="ok"))


@app.get("/health")
async def health_check():
    """Check configuration sanity."""
    health_start_time = time.time()

    try:
        Config.validate()
        health_duration = time.time() - health_start_time

        return {
            "status": "healthy",
            "service": "upload-toolkit-api",
            "timestamp": datetime.now().isoformat(),
            "response_time_ms": round(health_duration * 1000, 2)
        }
    except ValueError as e:
        health_duration = time.time() - health_start_time
        logger.error(f"Health check failed: {str(e)} - Duration: {health_duration:.1f}s")

        return {
            "status": "unhealthy",
            "service": "upload-toolkit-api",
            "timestamp": datetime.now().isoformat(),
            "error": str(e),
            "response_time_ms": round(health_duration * 1000, 2)
        }


@app.get("/")
async def root():
    """Return basic API information."""

    return {
        "service": "Upload Toolkit API",
        "version": "1.0",
        "endpoints": {
            "upload": "/upload",
            "upload_one": "/upload-one",
            "download": "/download/{file_name}",
            "slugify": "/slugify",
            "receive_post": "/receive-post",
            "remote_service": "/remote-service",
            "health": "/health"
        },
        "timestamp": datetime.now().isoformat(),
        "description": "Multipart upload pipeline with content sniffing, plus JSON, slug and download helpers"
    }
