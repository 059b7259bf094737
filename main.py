import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pymongo.database import Database

import database
from config import (ALLOWED_ORIGINS, FREE_SHIPPING_THRESHOLD, PRIMARY_CURRENCY, SHIPPING_FLAT, STORE_NAME, TAX_RATE,
                    UPLOAD_DIR, UPLOAD_URL_PREFIX, logger)
from database import ensure_indexes, get_db
from responses import envelope, register_exception_handlers
from routers import admin, auth, categories, orders, products, reviews, users
from seed import seed_database


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        ensure_indexes(database.db)
        logger.info("Connected to database %s", database.db.name)
    else:
        logger.warning("DATABASE_URL / DATABASE_NAME not set; API calls that need the database will fail")
    yield


app = FastAPI(title=f"{STORE_NAME} API", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in ALLOWED_ORIGINS] if ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

for module in (auth, products, categories, orders, reviews, users, admin):
    app.include_router(module.router)

# Locally stored product images
os.makedirs(UPLOAD_DIR, exist_ok=True)
app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=UPLOAD_DIR), name="uploads")


# Health and config
@app.get("/")
def root():
    return {"name": STORE_NAME, "status": "ok"}


@app.get("/config")
def get_config():
    return envelope({
        "store_name": STORE_NAME,
        "currency": PRIMARY_CURRENCY,
        "tax_rate": TAX_RATE,
        "shipping": {"flat": SHIPPING_FLAT, "free_over": FREE_SHIPPING_THRESHOLD},
    })


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    collections = sorted(db.list_collection_names())
    return envelope({
        "backend": "running",
        "database": db.name,
        "collections": collections,
        "counts": {name: db[name].count_documents({}) for name in collections},
    })


# Sample seed endpoint (dev only)
@app.post("/dev/seed")
def seed(db: Database = Depends(get_db)):
    return envelope(seed_database(db), message="Seed complete")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
