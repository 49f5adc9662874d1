from fastapi import FastAPI, HTTPException, Request, status
from contextlib import asynccontextmanager

import structlog
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from lekha.config import Config
from lekha.db.main import init_db
from lekha.db.redis import redis_client, check_redis_connection
from lekha.errors import LedgerError
from lekha.ledger.memory_store import InMemoryLedgerStore
from lekha.reminders.generator import GeminiReminderGenerator
from lekha.utils.limiter import limiter
from lekha.utils.logging import configure_logging

from lekha.auth.routes import authRouter
from lekha.customers.routes import customer_router
from lekha.transactions.routes import transaction_router
from lekha.reminders.routes import reminder_router
from lekha.analytics.routes import analytics_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("server_started", ledger_backend=Config.LEDGER_BACKEND)

    # 1. Owners always live in the database; so do ledgers unless kept in memory
    await init_db()
    if Config.LEDGER_BACKEND == "memory":
        app.state.ledger_store = InMemoryLedgerStore()

    # 2. Check Redis Connection
    await check_redis_connection()

    app.state.reminder_generator = GeminiReminderGenerator()

    yield

    # 3. Clean up Redis connections on shutdown
    logger.info("closing_redis_connection")
    if redis_client:
        await redis_client.aclose()
    logger.info("server_closed")

app = FastAPI(
    title="Lekha Ledger API",
    description="Customer credit and payment ledger for small businesses",
    lifespan=lifespan
)

# Required for SlowAPI to function correctly on routes
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
def health_check():
    return{
        "status": "Success",
        "message": "Server Working"
    }

@app.exception_handler(LedgerError)
async def ledger_exception_handler(request: Request, exc: LedgerError):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.message,
            "data": None
        }
    )

@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.detail,
            "data": None
        }
    )

@app.exception_handler(RateLimitExceeded)
async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "success": False,
            "message": f"Rate limit exceeded: {exc.detail}",
            "data": None
        }
    )

def format_validation_errors(errors):
    formatted = []
    for err in errors:
        # Skip the first element if it's "body", "query", etc.
        loc = err["loc"]
        field = ".".join(str(l) for l in loc[1:]) if len(loc) > 1 else str(loc[0])
        formatted.append({
            "field": field,
            "message": err["msg"]
        })
    return formatted

@app.exception_handler(RequestValidationError)
async def custom_validation_exception_handler(request:Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content={
            "success": False,
            "message": "Validation error",
            "errors": format_validation_errors(exc.errors()),
            "data": None
        }
    )

# Register all routers
app.include_router(authRouter, prefix="/api/auth", tags=["Authentication"])
app.include_router(customer_router, prefix="/api/customers", tags=["Customers"])
app.include_router(transaction_router, prefix="/api/customers", tags=["Transactions"])
app.include_router(reminder_router, prefix="/api/customers", tags=["Reminders"])
app.include_router(analytics_router, prefix="/api/analytics", tags=["Analytics"])
