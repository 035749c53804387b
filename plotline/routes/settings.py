"""Health check and effective matcher settings."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings(request: Request):
    """Effective config with the API key masked."""
    config = request.app.state.config
    matcher = dict(config["matcher"])
    if matcher.get("api_key"):
        matcher["api_key"] = "***"
    return {
        **config,
        "matcher": matcher,
        "semantic_enabled": request.app.state.semantic_matcher is not None,
    }
