from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
from dotenv import load_dotenv

load_dotenv()

from app.core.config import settings
from app.core.cors_middleware import CORS_HEADERS, permissive_cors_middleware
from app.core.exceptions import MethodNotAllowedError, ServiceError, ValidationError
from app.routers import account, billing

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Smart Review Billing API",
    description="Subscription checkout, management and approval handlers for the review SaaS",
    version="1.0.0",
    redirect_slashes=False
)

app.middleware("http")(permissive_cors_middleware)


def error_response(status_code: int, message: str, code: str) -> JSONResponse:
    # Set here too: the catch-all handler runs outside the CORS middleware
    return JSONResponse(status_code=status_code, content={"error": message, "code": code}, headers=CORS_HEADERS)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return error_response(exc.status_code, str(exc.detail), exc.code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}" for err in errors
    ) or "Invalid request body"
    return error_response(400, message, ValidationError.code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        return error_response(405, "Method not allowed", MethodNotAllowedError.code)
    code = "not_found" if exc.status_code == 404 else "http_error"
    return error_response(exc.status_code, str(exc.detail), code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(500, str(exc), "internal_error")


# Health check endpoint
@app.get("/health")
async def health_check():
    return JSONResponse(content={
        "status": "healthy",
        "service": "Smart Review Billing API",
        "version": "1.0.0",
        "environment": settings.environment,
    })

# Include routers
app.include_router(billing.router, prefix="/api/billing", tags=["Billing"])
app.include_router(account.router, prefix="/api/account", tags=["Account"])

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
