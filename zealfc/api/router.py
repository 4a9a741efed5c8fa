from fastapi import APIRouter

from zealfc.api import admin, credits, games

router = APIRouter()
router.include_router(games.router)
router.include_router(credits.router)
router.include_router(admin.router)
