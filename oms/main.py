from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
import logging

from oms.config import settings
from oms.database import db
from oms.errors import OMSError
from oms.api import orders, assignments, purchase_orders, dispatch, grn, invoices, payments, audit

# Setup Logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    db.connect()
    await db.ensure_indexes()
    yield
    db.close()

app = FastAPI(
    title="Order Management API",
    description="Order fulfilment-to-payment lifecycle: assignments, POs, dispatch, GRN, invoices and payments",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(OMSError)
async def oms_error_handler(request: Request, exc: OMSError):
    logger.warning(f"{request.method} {request.url.path} -> {type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# Router Registration
app.include_router(orders.router)
app.include_router(assignments.router)
app.include_router(purchase_orders.router)
app.include_router(dispatch.router)
app.include_router(grn.router)
app.include_router(invoices.router)
app.include_router(payments.router)
app.include_router(audit.router)

# Health Check
@app.get("/health")
async def health_check():
    return {"status": "ok", "environment": settings.ENVIRONMENT}

if __name__ == "__main__":
    uvicorn.run("oms.main:app", host="0.0.0.0", port=8000, reload=True)
