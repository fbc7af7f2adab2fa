# module storefront.checkout.views

"""Endpoints du checkout.
- POST "": panier -> commande pending + session Stripe (authentifié, rate-limité).
- OPTIONS "": préflight CORS (204 vide); autres méthodes: 405.
- /webhook: événements Stripe signés -> statut de paiement de la commande.
- /confirm: alternative sans webhook, relit la session Stripe.
Sécurité:
- Body validé (400) avant require_user (401), comme l’ordre des préconditions du checkout.
- optional_rate_limit: limite la fréquence de création de sessions.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from storefront.utils.security import require_user
from storefront.utils.rate_limit import optional_rate_limit
from storefront.checkout import cart as cart_logic
from storefront.checkout import confirmation
from storefront.checkout import service as checkout_service
from storefront.checkout import stripe_client
from storefront.checkout.errors import CheckoutDependencyError, CheckoutError, CheckoutValidationError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout API"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Client-Info, Apikey",
}


async def checkout_body(request: Request) -> Dict[str, Any]:
    """
    Lit et valide le body avant l’authentification: panier, adresse, URLs (400 sans effet de bord).
    Déclarée avant require_user dans la signature de la route: FastAPI résout les dépendances dans cet ordre.
    """
    try:
        body = await request.json()
    except Exception:
        raise CheckoutValidationError("Corps JSON invalide")
    if not isinstance(body, dict):
        raise CheckoutValidationError("Corps JSON invalide")
    cart_logic.parse_cart(body.get("cart"))
    cart_logic.require_shipping_address(body.get("shipping_address"))
    cart_logic.require_redirect_urls(body.get("success_url"), body.get("cancel_url"))
    return body


@router.post("", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_checkout(
    request: Request,
    body: Dict[str, Any] = Depends(checkout_body),
    user: dict = Depends(require_user),
):
    """
    Crée la commande et la session Stripe Checkout pour l’utilisateur authentifié.
    - Entrée JSON: { "cart": [ { "product": {...}, "quantity": n, "variant": {...} } ],
      "shipping_address": {...}, "success_url": "...", "cancel_url": "...", "idempotency_key": "..." }
    - La clé d’idempotence peut aussi venir de l’en-tête Idempotency-Key.
    - Ordre des contrôles: body (400) puis Authorization (401).
    - Réponse: {"sessionId", "url", "orderId"}
    - Erreurs: 400 body invalide, 401, 409 conflit d’idempotence, 500 échec d’une dépendance
    """
    idempotency_key = body.get("idempotency_key") or request.headers.get("Idempotency-Key") or None
    try:
        result = checkout_service.run_checkout(
            user=user,
            cart=body.get("cart"),
            shipping_address=body.get("shipping_address"),
            success_url=body.get("success_url"),
            cancel_url=body.get("cancel_url"),
            idempotency_key=str(idempotency_key) if idempotency_key else None,
        )
    except (CheckoutError, HTTPException):
        raise
    except Exception:
        logger.exception("Erreur create_checkout user_id=%s", user.get("id"))
        raise CheckoutDependencyError("Erreur interne lors du checkout")
    return JSONResponse(result.to_dict(), headers=CORS_HEADERS)


@router.options("", include_in_schema=False)
async def checkout_preflight():
    return Response(status_code=204, headers=CORS_HEADERS)


@router.api_route("", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def checkout_method_not_allowed(request: Request):
    return JSONResponse(
        {"error": f"Méthode {request.method} non autorisée"},
        status_code=405,
        headers={**CORS_HEADERS, "Allow": "POST, OPTIONS"},
    )


@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(request: Request):
    """Webhook Stripe: applique le résultat du paiement à la commande.
    - parse_event: valide la signature et parse le payload (400 si invalide).
    - Réponse: {"status": "updated"|"noop"|"ignored"|"not_found"}; 200 pour ne pas provoquer de renvoi inutile.
    - Une erreur de base remonte en 500: Stripe renverra l’événement.
    """
    try:
        event = await stripe_client.parse_event(request)
    except Exception:
        logger.exception("Erreur webhook_stripe")
        raise CheckoutValidationError("Invalid Stripe webhook payload")
    result = confirmation.handle_event(event)
    logger.info("checkout.webhook type=%s result=%s", (event or {}).get("type"), result)
    return JSONResponse(result)


@router.get("/confirm")
async def confirm_checkout(session_id: str = "", user: dict = Depends(require_user)):
    """Alternative sans webhook: vérifie la session Stripe et met à jour la commande.
    - 400 si paiement non confirmé, 403 si session d’un autre utilisateur
    """
    result = confirmation.confirm_session(session_id, str(user.get("id") or ""))
    return JSONResponse(result)
