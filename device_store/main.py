from contextlib import asynccontextmanager
from fastapi import FastAPI

from device_store.core.error_handler import custom_exception_handler, transaction_failed_handler
from device_store.core.exceptions import BaseAPIException, TransactionFailedException
from device_store.core.log_config import logger

from device_store.api.devices import router as devices_router
from device_store.database.session import initialize_db
from device_store.utils.timing_middleware import TimingMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    await initialize_db()
    logger.info("Database tables ready")
    yield

app = FastAPI(lifespan=lifespan)

app.add_exception_handler(BaseAPIException, custom_exception_handler)
app.add_exception_handler(TransactionFailedException, transaction_failed_handler)
app.add_middleware(TimingMiddleware)

app.include_router(devices_router)
