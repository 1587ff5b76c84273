"""
HTTP routes for the recipe API.
"""

from fastapi import APIRouter

from recipebox.routes import ai, groups, photos, recipes, shares

router = APIRouter()
router.include_router(recipes.router)
router.include_router(photos.router)
router.include_router(shares.router)
router.include_router(groups.router)
router.include_router(ai.router)
