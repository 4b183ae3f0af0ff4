from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .database import get_db
from .exceptions import AuthenticationError, AuthorizationError
from .services.session_service import RequestContext, SessionService


async def get_context(request: Request, db: AsyncSession = Depends(get_db)) -> RequestContext:
    """Build the request-scoped context from the signed session cookie."""
    token = request.cookies.get(settings.session_cookie_name)
    session = await SessionService.load(db, token)
    context = RequestContext(request, db, session)
    request.state.context = context
    return context


async def require_user(context: RequestContext = Depends(get_context)) -> RequestContext:
    """
    Dependency for routes that need a signed-in user.
    Raises AuthenticationError for anonymous requests.
    """
    if not context.is_authenticated:
        raise AuthenticationError("Please sign in first.")
    return context


async def require_admin(context: RequestContext = Depends(require_user)) -> RequestContext:
    """
    Dependency to get current admin user.
    Raises AuthorizationError if user is not an admin.
    """
    if not context.user.is_admin:
        raise AuthorizationError("Admin access required")
    return context
