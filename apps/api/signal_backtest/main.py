from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
import structlog

from signal_backtest.config import get_settings
from signal_backtest.exceptions import BacktestError, PerformanceNotRecordedError
from signal_backtest.utils.logging import setup_logging
from signal_backtest.routers import health, signals, backtest

settings = get_settings()
setup_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    from signal_backtest.database import engine, Base
    # Import models so they are registered in Base
    from signal_backtest import models

    log.info("Application starting up...", version=settings.VERSION)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield
    # Shutdown
    log.info("Application shutting down...")
    await engine.dispose()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(BacktestError)
async def backtest_error_handler(request: Request, exc: BacktestError):
    body = {"error": {"code": exc.code, "message": exc.message, **exc.extra}}
    if isinstance(exc, PerformanceNotRecordedError) and exc.result is not None:
        from signal_backtest.schemas.backtest import result_response
        body["error"]["result"] = result_response(exc.result).model_dump(mode="json", by_alias=True)
    return JSONResponse(status_code=exc.status_code, content=body)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed or missing input is a bad request, not 422
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

# Routers
app.include_router(health.router, tags=["Health"])
app.include_router(signals.router, prefix=f"{settings.API_V1_STR}/signals", tags=["Signals"])
app.include_router(backtest.router, prefix=f"{settings.API_V1_STR}/backtests", tags=["Backtest"])

@app.get("/healthz")
def healthz():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("signal_backtest.main:app", host="0.0.0.0", port=settings.API_PORT)
