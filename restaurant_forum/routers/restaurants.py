from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..dependencies import require_user
from ..services import restaurant_service
from ..services.session_service import RequestContext
from ..templating import render

router = APIRouter(prefix="/restaurants", tags=["restaurants"])


@router.get("")
async def get_restaurants(
    category_id: Optional[int] = Query(None, alias="categoryId"),
    page: int = Query(1, ge=1),
    context: RequestContext = Depends(require_user),
):
    listing = await restaurant_service.get_restaurants(
        context.db, context.user.id, category_id=category_id, page=page)
    return await render(context, "restaurants/index.html", {"listing": listing})


@router.get("/top")
async def get_top_restaurants(context: RequestContext = Depends(require_user)):
    restaurants = await restaurant_service.get_top_restaurants(context.db, context.user.id)
    return await render(context, "restaurants/top.html", {"restaurants": restaurants})


@router.get("/feeds")
async def get_feeds(context: RequestContext = Depends(require_user)):
    feeds = await restaurant_service.get_feeds(context.db)
    return await render(context, "restaurants/feeds.html", {"feeds": feeds})


@router.get("/{restaurant_id}")
async def get_restaurant(restaurant_id: int, context: RequestContext = Depends(require_user)):
    restaurant = await restaurant_service.get_restaurant(context.db, restaurant_id, context.user.id)
    return await render(context, "restaurants/detail.html", {"restaurant": restaurant})


@router.get("/{restaurant_id}/dashboard")
async def get_dashboard(restaurant_id: int, context: RequestContext = Depends(require_user)):
    dashboard = await restaurant_service.get_dashboard(context.db, restaurant_id)
    return await render(context, "restaurants/dashboard.html", {"dashboard": dashboard})
