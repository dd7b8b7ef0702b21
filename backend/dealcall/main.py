# dealcall/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dealcall.core import config

#Import Routers
from dealcall.api.v1 import actions
from dealcall.api.v1 import calls
from dealcall.api.v1 import meetings
from dealcall.integrations.vapi import webhook

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create FastAPI app
app = FastAPI(
    title="Deal Outreach Call API",
    description="AI voice outreach to seller companies on behalf of bankers",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
#Include routers
app.include_router(webhook.router, prefix="/vapi", tags=["vapi"])
app.include_router(calls.router, prefix="/api", tags=["calls"])
app.include_router(actions.router, prefix="/api", tags=["actions"])
app.include_router(meetings.router, prefix="/api/meetings", tags=["meetings"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Deal Outreach Call API",
        "version": "1.0.0",
        "status": "running"
    }

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "environment": config.APP_ENV
    }
