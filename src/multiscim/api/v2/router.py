from fastapi import APIRouter
from multiscim.config import settings
from .users import router as users_router
from .groups import router as groups_router

router = APIRouter(prefix=settings.api_prefix)

router.include_router(users_router)
router.include_router(groups_router)
