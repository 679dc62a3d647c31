import logging

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from church_approvals.core.config import settings
from church_approvals.core.exceptions import (
    ApprovalFlowError,
    ApprovalMatrixConfigError,
    DirectoryLookupError,
    MissingApproverError,
    NoApplicableRuleError,
    OrganizationNotFoundError,
)
from church_approvals.core.logging import setup_logging

setup_logging()

logger = logging.getLogger(__name__)

# Initialize Sentry error monitoring
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=settings.APP_ENV,
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


app = FastAPI(
    title="Church Approval Routing",
    version="0.1.0",
    docs_url="/api/docs" if settings.APP_ENV != "production" else None,
    redoc_url="/api/redoc" if settings.APP_ENV != "production" else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = {
    NoApplicableRuleError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    OrganizationNotFoundError: status.HTTP_404_NOT_FOUND,
    DirectoryLookupError: status.HTTP_503_SERVICE_UNAVAILABLE,
    MissingApproverError: status.HTTP_409_CONFLICT,
    ApprovalMatrixConfigError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@app.exception_handler(ApprovalFlowError)
async def approval_flow_exception_handler(request: Request, exc: ApprovalFlowError):
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.warning(
        "Approval flow error on %s %s: %s (%s)",
        request.method, request.url.path, exc.message, exc.code,
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception: %s %s - %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error."})


# ─── Routers ───
from church_approvals.api.v1.router import api_router  # noqa: E402

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok", "env": settings.APP_ENV}
