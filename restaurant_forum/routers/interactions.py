from fastapi import APIRouter, Depends

from ..dependencies import require_user
from ..services import interaction_service
from ..services.session_service import RequestContext
from ..utils import redirect_back

router = APIRouter(tags=["favorites", "likes"])


@router.post("/favorite/{restaurant_id}")
async def add_favorite(restaurant_id: int, context: RequestContext = Depends(require_user)):
    await interaction_service.add_favorite(context.db, context.user.id, restaurant_id)
    return redirect_back(context.request)


@router.delete("/favorite/{restaurant_id}")
async def remove_favorite(restaurant_id: int, context: RequestContext = Depends(require_user)):
    await interaction_service.remove_favorite(context.db, context.user.id, restaurant_id)
    return redirect_back(context.request)


@router.post("/like/{restaurant_id}")
async def add_like(restaurant_id: int, context: RequestContext = Depends(require_user)):
    await interaction_service.add_like(context.db, context.user.id, restaurant_id)
    return redirect_back(context.request)


@router.delete("/like/{restaurant_id}")
async def remove_like(restaurant_id: int, context: RequestContext = Depends(require_user)):
    await interaction_service.remove_like(context.db, context.user.id, restaurant_id)
    return redirect_back(context.request)
