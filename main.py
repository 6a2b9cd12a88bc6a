from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import os
import logging
from dotenv import load_dotenv

import models
from database import engine
from routers import credit_cards, statement_analyzer, crawler
from services.exceptions import CardMatchError

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _normalize_prefix(prefix: str) -> str:
    prefix = prefix.strip().rstrip("/")
    if prefix and not prefix.startswith("/"):
        prefix = f"/{prefix}"
    return prefix


API_PREFIX = _normalize_prefix(os.getenv("API_PREFIX", "/api"))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    if origin.strip()
]

# Create tables
models.Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="CardMatch API",
    version="1.0.0",
    description="Credit card statement analysis and card recommendations",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)


@app.exception_handler(CardMatchError)
async def cardmatch_error_handler(request: Request, exc: CardMatchError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Include routers
app.include_router(credit_cards.router, prefix=API_PREFIX, tags=["Credit Cards"])
app.include_router(statement_analyzer.router, prefix=f"{API_PREFIX}/statement-analyzer", tags=["Statement Analyzer"])
app.include_router(crawler.router, prefix=API_PREFIX, tags=["Card Catalog Crawler"])


@app.get("/")
async def root():
    return {"message": "CardMatch API", "version": "1.0.0", "docs": "/docs"}

