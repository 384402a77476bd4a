from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from dotenv import load_dotenv

from app.core.config import settings
from app.routers import payments, subscriptions, usage
from app.services.plan_catalog import plan_catalog

load_dotenv()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s - %(message)s',
    handlers=[logging.StreamHandler()]
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    plans = ", ".join(plan.plan_id for plan in plan_catalog.list_plans())
    logger.info(f"Billing API starting ({settings.environment}), plans: {plans}, channel: {settings.payment_channel}")
    yield


app = FastAPI(
    title="Billing API",
    description="Subscription lifecycle, usage metering and payment reconciliation",
    version="1.0.0",
    redirect_slashes=False,
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "development" else [settings.frontend_url],
    allow_credentials=False if settings.environment == "development" else True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Health check endpoint
@app.get("/health")
async def health_check():
    return JSONResponse(content={
        "status": "healthy",
        "service": "Billing API",
        "version": "1.0.0"
    })

# Include routers
app.include_router(subscriptions.router, prefix="/api/subscriptions", tags=["Subscriptions"])
app.include_router(usage.router, prefix="/api/usage", tags=["Usage"])
app.include_router(payments.router, prefix="/api/payments", tags=["Payments"])

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
