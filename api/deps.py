"""Shared FastAPI dependencies."""

from fastapi import HTTPException, Request

from live.hub import LiveHub


def get_hub(request: Request) -> LiveHub:
    """The process-wide live hub created in the app lifespan."""
    hub = getattr(request.app.state, "hub", None)
    if hub is None:
        raise HTTPException(status_code=503, detail="Live hub not running")
    return hub
