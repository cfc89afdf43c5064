import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from run_tracker.api.files import router as files_router
from run_tracker.api.imports import router as imports_router
from run_tracker.core.config import settings
from run_tracker.db import create_database, engine


app = FastAPI(title="Run Tracker")

# Allow CORS for local frontend
origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create DB tables (files, sessions, laps, track_points) on startup
create_database(engine)

# Raw FIT copies and route images are written here
os.makedirs(settings.data_dir, exist_ok=True)

app.include_router(imports_router)
app.include_router(files_router)


@app.get("/")
def root():
    return {"message": "Run tracker backend is running"}
