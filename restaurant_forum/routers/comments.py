from fastapi import APIRouter, Depends, Form

from ..dependencies import require_admin, require_user
from ..services import comment_service
from ..services.session_service import RequestContext
from ..utils import redirect

router = APIRouter(prefix="/comments", tags=["comments"])


@router.post("")
async def post_comment(
    text: str = Form(""),
    restaurant_id: int = Form(..., alias="restaurantId"),
    context: RequestContext = Depends(require_user),
):
    await comment_service.post_comment(context.db, context.user.id, restaurant_id, text)
    return redirect(f"/restaurants/{restaurant_id}")


@router.delete("/{comment_id}")
async def delete_comment(comment_id: int, context: RequestContext = Depends(require_admin)):
    restaurant_id = await comment_service.delete_comment(context.db, comment_id)
    return redirect(f"/restaurants/{restaurant_id}")
