from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI

from plotline.config import build_semantic_matcher, get_config
from plotline.routes import router

load_dotenv(Path(__file__).parent.parent / ".env")


def create_app(config: dict[str, Any] | None = None) -> FastAPI:
    resolved = config if config is not None else get_config()

    app = FastAPI(title="Plotline")
    app.state.config = resolved
    app.state.semantic_matcher = build_semantic_matcher(resolved)
    app.include_router(router, prefix="/api")
    return app
