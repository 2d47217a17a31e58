from fastapi import APIRouter

from mealshare.api.health import router as health_router
from mealshare.api.households import router as households_router
from mealshare.api.parsing import router as parsing_router
from mealshare.api.recipes import router as recipes_router
from mealshare.api.shared import router as shared_router
from mealshare.api.shopping_lists import router as shopping_lists_router
from mealshare.api.tags import router as tags_router

router = APIRouter(prefix="/api")
router.include_router(health_router)
router.include_router(households_router)
router.include_router(parsing_router)
router.include_router(recipes_router)
router.include_router(tags_router)
router.include_router(shopping_lists_router)
router.include_router(shared_router)
