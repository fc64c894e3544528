"""
CORS responder. Every response echoes the request Origin; OPTIONS requests are answered
here and never reach authentication, authorization or a route handler.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

ALLOW_METHODS = "GET,POST,PUT,DELETE"
ALLOW_HEADERS = "Content-Type, X-CSRF-Token, Authorization"


class CORSResponderMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        origin = request.headers.get("Origin", "")
        if request.method == "OPTIONS":
            response = Response(status_code=200)
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Methods"] = ALLOW_METHODS
            response.headers["Access-Control-Allow-Headers"] = ALLOW_HEADERS
        else:
            response = await call_next(request)
        response.headers["Access-Control-Allow-Origin"] = origin
        return response
