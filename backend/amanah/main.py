import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from amanah.core.config import settings
from amanah.core.logging import configure_logging
from amanah.database import SessionLocal
from amanah.database_init import ensure_database
from amanah.exceptions import AmanahError, amanah_exception_handler
from amanah.models import user, wallet, transaction  # noqa: F401
from amanah.routes import auth, wallets, transactions, live
from amanah.services.balance_poller import run_balance_poller
from amanah.services.chain import ChainClient
from amanah.services.price_feed import run_price_poller
from amanah.state import AppState

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- ensure database and tables exist ---
    ensure_database()

    state = AppState(chain=ChainClient(settings.RPC_URL))
    app.state.amanah = state

    # --- background loops ---
    if settings.BACKGROUND_TASKS_ENABLED:
        state.tasks.append(asyncio.create_task(run_price_poller(state.price)))
        state.tasks.append(asyncio.create_task(run_balance_poller(SessionLocal, state.chain, state.live)))
        logger.info("Price and balance pollers started")

    try:
        yield
    finally:
        await state.stop()


app = FastAPI(title="Amanah API", lifespan=lifespan)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AmanahError, amanah_exception_handler)

# --- Include routes ---
app.include_router(auth.router)
app.include_router(wallets.router)
app.include_router(transactions.router)
app.include_router(live.router)

# --- Root route ---
@app.get("/")
def root():
    return {"message": "Amanah API is running"}
