"""
FastAPI application for the nixpkgs PR tracker.

Serves the GitHub OAuth endpoints and the PR lookup API consumed by the
browser front end.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from utils.config_loader import get_config
from utils.logger import setup_logger

config = get_config()
logger = setup_logger(config.log_level, name=__name__)

# Create FastAPI app
app = FastAPI(
    title="nixpkgs PR Tracker API",
    description="Track whether nixpkgs pull requests have reached release branches",
    version="1.0.0"
)

# Allow the front end dev server to call the API with its cookies
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and include routes
from backend.auth import router as auth_router
from backend.routes import router
app.include_router(auth_router)
app.include_router(router)

logger.info("FastAPI app initialized")
