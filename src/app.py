"""Tattoo Inquiry Service - FastAPI server for the studio website's inquiry form."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.shared.admin.routes import router as admin_router
from src.shared.auth.database import init_db, SessionLocal
from src.shared.auth.routes import router as auth_router
from src.shared.config import get_settings
from src.shared.errors import PayloadTooLargeError, ServiceError
from src.shared.gallery.routes import router as gallery_router
from src.shared.inquiry.rate_limit import get_rate_limiter
from src.shared.inquiry.routes import router as inquiry_router

# Room for the text fields next to a maximum-size image
MULTIPART_OVERHEAD_BYTES = 256 * 1024

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Tattoo Inquiry Service",
    description="Inquiry intake, review and gallery API for the studio website",
    version="0.1.0"
)


# Initialize database on startup
@app.on_event("startup")
async def startup_event():
    init_db()
    # Drop counters left over from closed rate windows
    db = SessionLocal()
    try:
        purged = get_rate_limiter().purge_stale_windows(db)
        if purged:
            logging.info(f"Removed {purged} stale rate windows")
    finally:
        db.close()
    logging.info("Database initialization completed on startup")


app.include_router(inquiry_router)
app.include_router(auth_router)
app.include_router(gallery_router)
app.include_router(admin_router, prefix="/auth/api")
app.include_router(admin_router, prefix="/admin/api", include_in_schema=False)

# Uploaded inquiry attachments and gallery images
settings.uploads_dir.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(settings.uploads_dir)), name="uploads")

# CORS configuration - must be added before exception handlers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def limit_request_size(request: Request, call_next):
    """Reject oversize bodies before they are parsed."""
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit():
        if int(content_length) > settings.max_upload_bytes + MULTIPART_OVERHEAD_BYTES:
            error = PayloadTooLargeError(
                f"Upload too large. Maximum size: {settings.max_upload_bytes // (1024 * 1024)}MB"
            )
            return JSONResponse(status_code=error.status_code, content=error.to_content())
    return await call_next(request)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Render service errors as {"message": ...}."""
    headers = {}
    if exc.status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(status_code=exc.status_code, content=exc.to_content(), headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Framework errors (unmatched routes, wrong method) in the same shape."""
    if exc.status_code == 404:
        message = "Not found."
    elif isinstance(exc.detail, str):
        message = exc.detail
    else:
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": message},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors, reported as 400."""
    errors = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "form")]
        errors[".".join(location) or "request"] = error.get("msg", "Invalid value")
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request.", "errors": errors},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """No internal detail reaches the client."""
    logging.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"message": "Internal server error."},
    )


@app.get("/")
async def root():
    return {"message": "Tattoo Inquiry Service API is running", "status": "ok"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.get("/robots.txt")
async def robots_txt():
    """Keep crawlers out of the API and customer uploads."""
    return Response(
        content="User-agent: *\nDisallow: /uploads/inquiries/\nDisallow: /auth/\nDisallow: /admin/\n",
        media_type="text/plain"
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
