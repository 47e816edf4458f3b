from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from fleetmon import __version__
from fleetmon.api.routes import router as api_router
from fleetmon.app.init import SystemInitializer
from fleetmon.config.settings import Settings
from fleetmon.db.init_db import check_database_health
from fleetmon.errors import DuplicateIdentity, Forbidden, NotFound, ValidationError

logger = logging.getLogger(__name__)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        logger.warning(f"Validation errors: {exc.errors}")
        return JSONResponse(status_code=400, content={"errors": exc.errors})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in e.get("loc", ()) if p != "body"), "message": e.get("msg")}
            for e in exc.errors()
        ]
        logger.warning(f"Validation errors: {errors}")
        return JSONResponse(status_code=400, content={"errors": errors})

    @app.exception_handler(NotFound)
    async def not_found(request: Request, exc: NotFound):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(Forbidden)
    async def forbidden(request: Request, exc: Forbidden):
        return JSONResponse(status_code=403, content={"error": str(exc)})

    @app.exception_handler(DuplicateIdentity)
    async def duplicate_identity(request: Request, exc: DuplicateIdentity):
        return JSONResponse(
            status_code=409,
            content={"error": str(exc), "field": exc.field, "value": exc.value},
        )

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Optional[Settings] = None, system: Optional[SystemInitializer] = None) -> FastAPI:
    system = system or SystemInitializer(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        system.initialize()
        system.start_scheduler()
        try:
            yield
        finally:
            system.shutdown()

    app = FastAPI(title="fleetmon", version=__version__, lifespan=lifespan)
    app.state.system = system
    app.include_router(api_router)
    _register_error_handlers(app)

    @app.get("/healthz")
    def healthz() -> dict:
        healthy = system.initialized and check_database_health(system.db_engine)
        return {"status": "ok" if healthy else "degraded"}

    return app
