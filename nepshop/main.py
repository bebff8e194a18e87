import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from nepshop import __version__
from nepshop.config import CORS_ORIGINS, HOST, PORT, PRODUCT_UPLOAD_DIR, UPLOAD_DIR, configure_logging
from nepshop.database import init_db
from nepshop.errors import register_exception_handlers
from nepshop.routers import auth, cart, categories, orders, products, reports

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    os.makedirs(PRODUCT_UPLOAD_DIR, exist_ok=True)
    init_db()
    logger.info("Database tables ready")
    yield


app = FastAPI(
    title="Nep-Shop API",
    description="Storefront API: users, catalog, cart, orders and sales reports with role-based access control",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

for module in (auth, categories, products, cart, orders, reports):
    app.include_router(module.router, prefix="/api")

# created on startup, or on first image upload
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR, check_dir=False), name="uploads")


@app.get("/", tags=["Root"])
def read_root():
    return {"message": "Nep-Shop API Server is running!"}


def run():
    configure_logging()
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    run()
