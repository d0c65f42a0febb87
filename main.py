from __future__ import annotations

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might need env vars
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes.spreadsheets import router as spreadsheets_router
from services.logging_utils import configure_logging
from services.settings import get_viewer_settings


settings = get_viewer_settings()
configure_logging(debug=settings.log_debug, level=settings.log_level, log_path=settings.log_file)

app = FastAPI(title="Spreadsheet Grid Viewer")

# Allow any origin in local dev mode.
# This should be tightened for production.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(spreadsheets_router)


@app.get("/")
async def root():
    return {"status": "ok"}
