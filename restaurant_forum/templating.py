from pathlib import Path

from fastapi.templating import Jinja2Templates

from .config import settings
from .services.session_service import FLASH_ERROR, FLASH_SUCCESS, RequestContext

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))
templates.env.globals["app_name"] = settings.app_name


async def render(context: RequestContext, name: str, data: dict | None = None, status_code: int = 200):
    """Render a page with the one-shot flash messages and the signed-in user."""
    messages = await context.consume_flash(FLASH_SUCCESS, FLASH_ERROR)
    page = {
        "success_messages": messages[FLASH_SUCCESS],
        "error_messages": messages[FLASH_ERROR],
        "login_user": context.user,
    }
    page.update(data or {})
    return templates.TemplateResponse(context.request, name, page, status_code=status_code)
