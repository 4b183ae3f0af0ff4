from fastapi import APIRouter, Depends

from ..dependencies import require_user
from ..services import user_service
from ..services.session_service import RequestContext
from ..utils import redirect_back

router = APIRouter(prefix="/following", tags=["follow"])


@router.post("/{user_id}")
async def add_following(user_id: int, context: RequestContext = Depends(require_user)):
    await user_service.add_following(context.db, context.user.id, user_id)
    return redirect_back(context.request)


@router.delete("/{user_id}")
async def remove_following(user_id: int, context: RequestContext = Depends(require_user)):
    await user_service.remove_following(context.db, context.user.id, user_id)
    return redirect_back(context.request)
