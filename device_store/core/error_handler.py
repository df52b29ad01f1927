from fastapi import Request, status
from fastapi.responses import JSONResponse
from device_store.core.exceptions import BaseAPIException, TransactionFailedException

async def custom_exception_handler(request: Request, exc: BaseAPIException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=exc.headers,
    )

async def transaction_failed_handler(request: Request, exc: TransactionFailedException):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=exc.to_dict(),
    )
