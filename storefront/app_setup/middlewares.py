"""
Middlewares transverses de l’application.
- CORSMiddleware: API appelée depuis le navigateur de la boutique (origines CORS_ORIGINS, "*" par défaut).
  Le Bearer protège l’API, pas l’origine: pas de cookies, donc pas de credentials.
- Préflight accepté: 204 sans corps (Starlette répond 200 "OK" par défaut).
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.datastructures import Headers
from starlette.responses import Response

from storefront.config import CORS_ORIGINS

ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]
ALLOWED_HEADERS = ["Content-Type", "Authorization", "X-Client-Info", "Apikey", "Idempotency-Key"]


class NoContentPreflightCORSMiddleware(CORSMiddleware):
    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        if response.status_code != 200:
            return response
        headers = {
            k: v for k, v in response.headers.items()
            if k.lower() not in ("content-length", "content-type")
        }
        return Response(status_code=204, headers=headers)


def register_basic_middlewares(app: FastAPI) -> None:
    app.add_middleware(
        NoContentPreflightCORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
    )
