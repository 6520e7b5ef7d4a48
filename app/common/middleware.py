"""
Middleware for handling multi-tenancy
"""
from fastapi import Request, status
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware
from uuid import UUID
import logging

logger = logging.getLogger(__name__)

ORGANIZATION_HEADER = "X-Organization-ID"


class TenantMiddleware(BaseHTTPMiddleware):
    """
    Middleware that extracts organization_id from the X-Organization-ID header
    and sets it on request.state for use in endpoint handlers.

    The header is optional: a context token issued by /auth/select-organization
    already carries the organization. Membership is checked by the auth
    dependencies, not here.
    """

    async def dispatch(self, request: Request, call_next):
        # Skip for OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        organization_header = request.headers.get(ORGANIZATION_HEADER)
        organization_id = None

        if organization_header:
            try:
                organization_id = UUID(organization_header)
            except ValueError:
                return Response(
                    content='{"detail":"Invalid X-Organization-ID format. Must be a valid UUID"}',
                    status_code=status.HTTP_400_BAD_REQUEST,
                    media_type="application/json"
                )
            request.state.organization_id = organization_id
            logger.debug(f"Request to {request.url.path} with organization_id: {organization_id}")

        response = await call_next(request)

        if organization_id:
            response.headers["X-Tenant-ID"] = str(organization_id)

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers for production
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response
