from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import AsyncSessionLocal, init_db
from app.core.rate_limit import limiter
from app.features.access.errors import EditSessionClosed, PartialCommitFailure, UnknownKey
from app.features.access.routes import router as access_router
from app.features.access.storage import MemoryKeyValueStore, SqlKeyValueStore
from app.features.access.store import ConfigurationStore
from app.features.users.routes import router as user_router
from app.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="School Console Access API",
    description="Role-scoped feature permissions and section visibility for the school console",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
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


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1]
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.exception_handler(UnknownKey)
async def unknown_key_handler(_request: Request, exc: UnknownKey):
    return JSONResponse(status_code=400, content={exc.kind: str(exc)})


@app.exception_handler(EditSessionClosed)
async def session_closed_handler(_request: Request, exc: EditSessionClosed):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(PartialCommitFailure)
async def partial_commit_handler(_request: Request, exc: PartialCommitFailure):
    log.error("Access configuration is inconsistent after a partial commit: %s", exc)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Access configuration was only partially saved",
            "failed": list(exc.failed),
            "saved": exc.saved,
        },
    )


def create_configuration_store() -> ConfigurationStore:
    if config.ACCESS_STORE_BACKEND == "memory":
        log.warning("Access configuration is kept in memory only")
        return ConfigurationStore(MemoryKeyValueStore())
    return ConfigurationStore(SqlKeyValueStore(AsyncSessionLocal))


@app.on_event("startup")
async def startup():
    """Initialize database and load the access configuration."""
    log.info("Initializing database...")
    await init_db()
    store = create_configuration_store()
    await store.init()
    app.state.access_store = store
    log.info("Database initialized successfully")


@app.on_event("shutdown")
async def shutdown():
    store = getattr(app.state, "access_store", None)
    if store is not None:
        await store.close()


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "School Console Access API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Protected endpoints require Bearer token in Authorization header",
            "protected_endpoints": ["/users/*", "/access/*"],
        },
        "features": {
            "access": "Per-role feature permissions, section visibility and staged configuration edits",
            "users": "School users and their roles, authenticated through Appwrite",
        }
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    store = getattr(app.state, "access_store", None)
    return {"status": "healthy", "access_config_loaded": bool(store and store.loaded)}


app.include_router(user_router, prefix="/users", tags=["users"])
# Alias for singular form (if frontend uses /user/me)
app.include_router(user_router, prefix="/user", tags=["users"], include_in_schema=False)

app.include_router(access_router, prefix="/access", tags=["access"])
