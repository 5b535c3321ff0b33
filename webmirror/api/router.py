from fastapi import APIRouter

from webmirror.api.mirror.routes import router as mirror_router

router = APIRouter()
router.include_router(mirror_router)
