from urllib.parse import parse_qs

OVERRIDABLE_METHODS = {"PUT", "PATCH", "DELETE"}


class MethodOverrideMiddleware:
    """Let HTML forms reach PUT/PATCH/DELETE routes via `POST ...?_method=PUT`."""

    def __init__(self, app, param: str = "_method"):
        self.app = app
        self.param = param

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["method"] == "POST":
            query = parse_qs(scope.get("query_string", b"").decode("latin-1"))
            override = (query.get(self.param) or [""])[0].upper()
            if override in OVERRIDABLE_METHODS:
                # in place, so outer middleware and handlers see the same method
                scope["method"] = override
        await self.app(scope, receive, send)
