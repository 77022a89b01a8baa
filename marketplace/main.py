# marketplace/main.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace.api.v1.api import api_router
from marketplace.core.kafka_producer import close_kafka_singleton

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Marketplace service starting up...")
    yield
    close_kafka_singleton()
    logger.info("Marketplace service shutting down...")


app = FastAPI(
    title="Marketplace Orders Service",
    version="1.0.0",
    description="""
        **Marketplace order and payment service**

        ## Features

        * **Orders**: Buy a quantity of a supplier offer at a frozen price
        * **Fulfilment**: Suppliers accept and ship, buyers confirm delivery
        * **Checkout**: Hosted gateway sessions, one payment attempt per checkout
        * **Webhooks**: Signed gateway callbacks reconciled onto payments
        * **Suppliers**: Offers, onboarding applications and earnings reports

        ## Authentication

        Endpoints require JWT authentication via the `Authorization: Bearer <token>` header,
        except the payment webhook, which is authenticated by its signature.
        """,
    lifespan=lifespan,
)

origins = [
    "http://localhost:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "Marketplace service is running"}


@app.get("/health")
def health():
    return {"status": "ok"}
