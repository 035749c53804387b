"""FastAPI API endpoints under /api.

Endpoint groups: health and settings, then the stateless engine surface
(parse, step, options, match). Callers send the script lines and their
variable snapshot with every request.
"""

from fastapi import APIRouter

from .play import router as play_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(play_router)
