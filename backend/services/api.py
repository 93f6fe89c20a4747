from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from backend.services.database.init_db import init_db
from backend.services.logging_config import configure_logging
from backend.services.tariffs.api import router as tariff_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    yield


app = FastAPI(title="Bike Parking Tariff API", version="1.0.0", lifespan=lifespan)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],  # React dev server
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(tariff_router)


@app.get("/")
async def root():
    return {"message": "Bike Parking Tariff API is running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
