from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ..dependencies import require_admin
from ..exceptions import ValidationError
from ..schemas import RestaurantForm
from ..services import admin_service
from ..services.session_service import FLASH_SUCCESS, RequestContext
from ..templating import render
from ..utils import redirect

router = APIRouter(prefix="/admin", tags=["admin"])


def restaurant_form(
    name: str = Form(""),
    tel: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    opening_hours: Optional[str] = Form(None, alias="openingHours"),
    description: Optional[str] = Form(None),
    category_id: Optional[str] = Form(None, alias="categoryId"),
) -> RestaurantForm:
    """Collect the restaurant form fields; an empty category select means none."""
    if category_id in (None, ""):
        parsed_category = None
    else:
        try:
            parsed_category = int(category_id)
        except ValueError:
            raise ValidationError("Invalid category!")
    return RestaurantForm(
        name=name,
        tel=tel or None,
        address=address or None,
        opening_hours=opening_hours or None,
        description=description or None,
        category_id=parsed_category,
    )


@router.get("")
async def admin_home(context: RequestContext = Depends(require_admin)):
    return redirect("/admin/restaurants")


# Restaurants

@router.get("/restaurants")
async def get_restaurants(context: RequestContext = Depends(require_admin)):
    restaurants = await admin_service.list_restaurants(context.db)
    return await render(context, "admin/restaurants.html", {"restaurants": restaurants})


@router.get("/restaurants/create")
async def create_restaurant_page(context: RequestContext = Depends(require_admin)):
    categories = await admin_service.list_categories(context.db)
    return await render(context, "admin/restaurant_form.html", {"restaurant": None, "categories": categories})


@router.post("/restaurants")
async def post_restaurant(
    form: RestaurantForm = Depends(restaurant_form),
    image: Optional[UploadFile] = File(None),
    context: RequestContext = Depends(require_admin),
):
    await admin_service.create_restaurant(context.db, form, image)
    await context.flash(FLASH_SUCCESS, "Restaurant was successfully created")
    return redirect("/admin/restaurants")


@router.get("/restaurants/{restaurant_id}")
async def get_restaurant(restaurant_id: int, context: RequestContext = Depends(require_admin)):
    restaurant = await admin_service.get_restaurant(context.db, restaurant_id)
    return await render(context, "admin/restaurant.html", {"restaurant": restaurant})


@router.get("/restaurants/{restaurant_id}/edit")
async def edit_restaurant(restaurant_id: int, context: RequestContext = Depends(require_admin)):
    restaurant = await admin_service.get_restaurant(context.db, restaurant_id)
    categories = await admin_service.list_categories(context.db)
    return await render(context, "admin/restaurant_form.html", {"restaurant": restaurant, "categories": categories})


@router.put("/restaurants/{restaurant_id}")
async def put_restaurant(
    restaurant_id: int,
    form: RestaurantForm = Depends(restaurant_form),
    image: Optional[UploadFile] = File(None),
    context: RequestContext = Depends(require_admin),
):
    await admin_service.update_restaurant(context.db, restaurant_id, form, image)
    await context.flash(FLASH_SUCCESS, "Restaurant was successfully updated")
    return redirect("/admin/restaurants")


@router.delete("/restaurants/{restaurant_id}")
async def delete_restaurant(restaurant_id: int, context: RequestContext = Depends(require_admin)):
    await admin_service.delete_restaurant(context.db, restaurant_id)
    return redirect("/admin/restaurants")


# Categories

@router.get("/categories")
async def get_categories(context: RequestContext = Depends(require_admin)):
    categories = await admin_service.list_categories(context.db)
    return await render(context, "admin/categories.html", {"categories": categories, "category": None})


@router.get("/categories/{category_id}")
async def get_category(category_id: int, context: RequestContext = Depends(require_admin)):
    category = await admin_service.get_category(context.db, category_id)
    categories = await admin_service.list_categories(context.db)
    return await render(context, "admin/categories.html", {"categories": categories, "category": category})


@router.post("/categories")
async def post_category(name: str = Form(""), context: RequestContext = Depends(require_admin)):
    await admin_service.create_category(context.db, name)
    return redirect("/admin/categories")


@router.put("/categories/{category_id}")
async def put_category(category_id: int, name: str = Form(""), context: RequestContext = Depends(require_admin)):
    await admin_service.rename_category(context.db, category_id, name)
    return redirect("/admin/categories")


@router.delete("/categories/{category_id}")
async def delete_category(category_id: int, context: RequestContext = Depends(require_admin)):
    await admin_service.delete_category(context.db, category_id)
    return redirect("/admin/categories")


# Users

@router.get("/users")
async def get_users(context: RequestContext = Depends(require_admin)):
    users = await admin_service.list_users(context.db)
    return await render(context, "admin/users.html", {"users": users})


@router.patch("/users/{user_id}")
async def patch_user(user_id: int, context: RequestContext = Depends(require_admin)):
    user = await admin_service.toggle_admin(context.db, user_id, context.user.id)
    role = "admin" if user.is_admin else "user"
    await context.flash(FLASH_SUCCESS, f"{user.name} is now {role}")
    return redirect("/admin/users")
