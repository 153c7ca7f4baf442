from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from database import engine, Base, SessionLocal, verify_db_connection
from routers import auth, users, trucks, trailers, tires, trips, fuel, maintenance_rules, maintenance_records
from routers import odometer, notifications
from services.exceptions import FleetError
from utils.logger import DatabaseLogger
from init_db import ensure_admin
from config import settings
import traceback
import logging

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Fleet Back Office API",
    description="Trucks, trailers, tires, drivers, trips, fuel and preventive maintenance",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

@app.exception_handler(FleetError)
async def fleet_error_handler(request: Request, exc: FleetError):
    """Business rule rejections: typed status code, message, and error kind"""
    logger.warning(f"{request.method} {request.url.path} rejected ({exc.kind}): {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.kind}
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler to prevent information leakage"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    DatabaseLogger.log_error(
        error_type=type(exc).__name__,
        error_message=str(exc),
        stack_trace=traceback.format_exc(),
        endpoint=request.url.path,
        method=request.method
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal error occurred. Please try again later."}
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(trucks.router)
app.include_router(trailers.router)
app.include_router(tires.router)
app.include_router(trips.router)
app.include_router(fuel.router)
app.include_router(maintenance_rules.router)
app.include_router(maintenance_records.router)
app.include_router(odometer.router)
app.include_router(notifications.router)

@app.on_event("startup")
async def startup_event():
    """Create tables and the bootstrap admin on startup"""
    if engine is None:
        logger.error("DATABASE_URL not configured - database features disabled")
        return

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified")

        db = SessionLocal()
        try:
            ensure_admin(db)
        finally:
            db.close()
    except Exception as e:
        logger.error(f"Startup error: {e}")

@app.get("/")
def root():
    return {
        "message": "Fleet Back Office API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }

@app.get("/health")
def health_check():
    db_status = "connected" if verify_db_connection() else "not connected"
    return {
        "status": "healthy",
        "database": db_status
    }
