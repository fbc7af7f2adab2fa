"""
Gestionnaires d’exceptions.
- CheckoutError: code porté par l’exception, body {"error": message}.
- HTTPException (401 auth, 429 rate limit, 404 routes inconnues): même format {"error": detail}.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.checkout.errors import CheckoutError

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CheckoutError)
    async def checkout_error(request: Request, exc: CheckoutError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    # Couvre aussi fastapi.HTTPException (sous-classe)
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )
