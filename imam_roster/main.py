from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from imam_roster.core.config import settings
from imam_roster.core.exceptions import RosterError
from imam_roster.core.rate_limit import InMemoryRateLimiter
from imam_roster.api import admin, bookings, imams, schedule
from imam_roster.api import settings as settings_api
from imam_roster.core.logger import setup_logging, logger
from imam_roster.services.auth_service import AuthService
from imam_roster.services.db_service import db_service
from contextlib import asynccontextmanager
from datetime import datetime

setup_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("🚀 Starting Imam Roster backend")
    await db_service.init_db()
    async with db_service.sessionmaker() as session:
        await AuthService(session).ensure_default_admin()
    app.state.rate_limiter = InMemoryRateLimiter(
        max_attempts=settings.LOGIN_MAX_ATTEMPTS,
        window_seconds=settings.LOGIN_WINDOW_SECONDS,
    )
    yield
    # Shutdown
    await db_service.dispose()
    logger.info("🛑 Shutting down backend")

def validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    error = errors[0]
    field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    return f"Invalid {field}: {error.get('msg')}" if field else f"Invalid request: {error.get('msg')}"

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Domain errors carry their own status and a message meant for the user
@app.exception_handler(RosterError)
async def roster_exception_handler(request: Request, exc: RosterError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

# Malformed payloads (wrong JSON types) get the same 400 shape as service-level validation
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": validation_message(exc)})

@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.opt(exception=exc).error("❌ Database error on {} {}: {}", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"error": "Storage unavailable, please try again later."})

# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error("🔥 UNHANDLED ERROR: {}", exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error", "detail": "An unexpected error occurred. Please contact support."}
    )

# Include routers
app.include_router(admin.router, prefix=settings.API_V1_STR, tags=["Admin"])
app.include_router(settings_api.router, prefix=settings.API_V1_STR, tags=["Settings"])
app.include_router(imams.router, prefix=settings.API_V1_STR, tags=["Imams"])
app.include_router(bookings.router, prefix=settings.API_V1_STR, tags=["Bookings"])
app.include_router(schedule.router, prefix=settings.API_V1_STR, tags=["Schedule"])

@app.get("/health")
async def health_check():
    return {"status": "ok", "environment": settings.ENVIRONMENT, "timestamp": datetime.now().isoformat()}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("imam_roster.main:app", host="0.0.0.0", port=settings.PORT, reload=True)
