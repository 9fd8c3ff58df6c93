"""
Lead Routing API - Main Application.

FastAPI application with CORS enabled for the admin and provider dashboards.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__

# Create FastAPI application
app = FastAPI(
    title="Lead Routing API",
    description="Quote request intake, metro rotation and lead lifecycle actions",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS - Allow all origins for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "lead-routing-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Lead Routing API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import leads, quotes, routing

app.include_router(quotes.router, prefix="/api/v1", tags=["Quote Requests"])
app.include_router(leads.router, prefix="/api/v1", tags=["Leads"])
app.include_router(routing.router, prefix="/api/v1", tags=["Routing"])
