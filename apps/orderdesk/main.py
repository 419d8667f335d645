import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from .settings import settings
from .db import open_pool, close_pool, db_ok
from .routes.orders import router as orders_router
from .routes.parties import vendors_router, customers_router
from .routes.totals import router as totals_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    open_pool()
    try:
        yield
    finally:
        close_pool()


app = FastAPI(
    title="OrderDesk API",
    version="0.1.0",
    description="Purchase and sales orders with line-item totals, finalize locking, and a payment/return ledger.",
    lifespan=lifespan,
)

app.include_router(totals_router)
app.include_router(orders_router)
app.include_router(vendors_router)
app.include_router(customers_router)


@app.get("/health", tags=["health"])
def health():
    return {"ok": True, "db": db_ok()}
