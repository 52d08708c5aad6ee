from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import init_db
from app.core.errors import register_exception_handlers
from app.core.rate_limit import limiter
from app.features.auth.routes import router as auth_router
from app.features.invitations.routes import router as invitation_router
from app.features.permissions.routes import router as permission_router
from app.features.roles.routes import router as role_router
from app.features.super_admin.routes import router as super_admin_router
from app.features.users.routes import router as user_router
from app.utils import get_logger


log = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Initialize database on application startup."""
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")
    yield


log.info("Initializing server")
app = FastAPI(
    title="CRM Access Control",
    description="Multi-tenant authorization and permission resolution for the CRM platform",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None,
    lifespan=lifespan,
)
app.state.limiter = limiter


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.app.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

register_exception_handlers(app)


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "CRM Access Control API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Protected endpoints require Bearer token in Authorization header",
            "tenant_endpoints": ["/auth/*", "/roles/*", "/users/*", "/permissions/*"],
            "super_admin_endpoints": ["/super-admin/*"],
            "public_endpoints": [
                "/auth/login", "/auth/register", "/auth/request-password-reset",
                "/auth/verify-reset-code", "/auth/reset-password",
                "/permissions/catalog", "/super-admin/login",
            ],
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(role_router, prefix="/roles", tags=["roles"])
# Before user_router so /users/invitations is not taken as a user id
app.include_router(invitation_router, prefix="/users", tags=["users"])
app.include_router(user_router, prefix="/users", tags=["users"])
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])
app.include_router(super_admin_router, prefix="/super-admin", tags=["super-admin"])
