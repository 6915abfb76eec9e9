import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from app.db.sql_connector import close_engine, get_engine
from app.db.wallet_store import SqlWalletStore

# Routers
from app.api.routers.wallet import router as wallet_router

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

STATIC_DIR = os.getenv("STATIC_DIR", "static")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup and dispose of the database engine on shutdown."""
    SqlWalletStore(get_engine()).init_schema()
    try:
        yield
    finally:
        close_engine()


app = FastAPI(title="Credential Wallet Sync", version="0.1", lifespan=lifespan)

# Serve the optional front-end under /static
if os.path.isdir(STATIC_DIR):
    app.mount("/static", StaticFiles(directory=STATIC_DIR, html=True), name="static")

app.include_router(wallet_router)
