from urllib.parse import urlparse

from fastapi import Request
from fastapi.responses import RedirectResponse


def redirect(url: str) -> RedirectResponse:
    # 302 so that browsers follow a POST with a GET
    return RedirectResponse(url, status_code=302)


def redirect_back(request: Request, fallback: str = "/restaurants") -> RedirectResponse:
    """
    Redirect to the page that triggered the request (HTTP Referer).

    Only same-host referers are honoured; anything else falls back.
    """
    referer = request.headers.get("referer")
    if referer:
        parsed = urlparse(referer)
        if not parsed.netloc or parsed.netloc == request.url.netloc:
            return redirect(referer)
    return redirect(fallback)
