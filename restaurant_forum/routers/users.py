from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ..dependencies import require_user
from ..services import user_service
from ..services.session_service import FLASH_SUCCESS, RequestContext
from ..templating import render
from ..utils import redirect

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/top")
async def get_top_users(context: RequestContext = Depends(require_user)):
    """Users ranked by number of followers."""
    users = await user_service.get_top_users(context.db, context.user.id)
    return await render(context, "users/top.html", {"users": users})


@router.get("/{user_id}")
async def get_user(user_id: int, context: RequestContext = Depends(require_user)):
    page = await user_service.get_profile(context.db, user_id, context.user.id)
    return await render(context, "users/profile.html", {
        "user": page.user,
        "filtered_comments": page.filtered_comments,
        "comment_counts": page.comment_counts,
    })


@router.get("/{user_id}/edit")
async def edit_user(user_id: int, context: RequestContext = Depends(require_user)):
    user = await user_service.get_editable_user(context.db, user_id, context.user.id)
    return await render(context, "users/edit.html", {"user": user})


@router.put("/{user_id}")
async def put_user(
    user_id: int,
    name: str = Form(""),
    image: Optional[UploadFile] = File(None),
    context: RequestContext = Depends(require_user),
):
    await user_service.update_profile(context.db, user_id, context.user.id, name, image)
    await context.flash(FLASH_SUCCESS, "Profile updated successfully")
    return redirect(f"/users/{user_id}")
