from fastapi import APIRouter, Depends

from mealshare.api.deps import RequestContext, get_context
from mealshare.logging import get_logger
from mealshare.schemas.recipe import ParseImageRequest, ParseResponse, ParseUrlRequest
from mealshare.services.parsing.recipe_import import parse_recipe_from_images, parse_recipe_from_url

router = APIRouter()
logger = get_logger(__name__)


@router.post("/recipes/parse/url", response_model=ParseResponse)
def parse_url(payload: ParseUrlRequest, ctx: RequestContext = Depends(get_context)) -> ParseResponse:
    """Return a recipe draft for the form; nothing is saved."""
    result = parse_recipe_from_url(str(payload.url), payload.title)
    logger.info("recipes.parse.url household_id=%s success=%s", ctx.household_id, result.success)
    return result


@router.post("/recipes/parse/image", response_model=ParseResponse)
def parse_images(payload: ParseImageRequest, ctx: RequestContext = Depends(get_context)) -> ParseResponse:
    result = parse_recipe_from_images(payload.images)
    logger.info(
        "recipes.parse.image household_id=%s images=%s success=%s",
        ctx.household_id,
        len(payload.images),
        result.success,
    )
    return result
