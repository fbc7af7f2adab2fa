"""
Construction de la session Stripe Checkout à partir de la commande persistée.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List

from storefront.config import CHECKOUT_CURRENCY
from . import cart as cart_logic
from . import repository
from . import stripe_client
from .errors import CheckoutDependencyError
from .models import OrderDraft, PricedLine

logger = logging.getLogger(__name__)

SESSION_ID_PLACEHOLDER = "session_id={CHECKOUT_SESSION_ID}"

# module storefront.checkout.sessions
def to_line_items(lines: List[PricedLine], shipping: Decimal, currency: str = CHECKOUT_CURRENCY) -> List[Dict[str, Any]]:
    """
    Construit les line_items Stripe.
    - Une ligne par ligne de commande: unit_amount en centimes, nom, au plus une image.
    - Une ligne « Shipping » (quantité 1) si les frais de port sont non nuls.
    """
    line_items: List[Dict[str, Any]] = []
    for line in lines:
        product_data: Dict[str, Any] = {"name": line.name}
        if line.image:
            product_data["images"] = [line.image]
        line_items.append({
            "price_data": {
                "currency": currency,
                "product_data": product_data,
                "unit_amount": cart_logic.to_minor_units(line.unit_price),
            },
            "quantity": line.quantity,
        })
    if shipping > 0:
        line_items.append({
            "price_data": {
                "currency": currency,
                "product_data": {"name": "Shipping"},
                "unit_amount": cart_logic.to_minor_units(shipping),
            },
            "quantity": 1,
        })
    return line_items

def success_url_with_session(success_url: str) -> str:
    # Stripe remplace {CHECKOUT_SESSION_ID} par l’id de session
    sep = "&" if "?" in success_url else "?"
    return f"{success_url}{sep}{SESSION_ID_PLACEHOLDER}"

def create_checkout_session(
    *,
    customer_id: str,
    order: dict,
    draft: OrderDraft,
    success_url: str,
    cancel_url: str,
) -> Dict[str, Any]:
    """Crée la session (mode paiement) avec metadata {order_id, user_id} pour la confirmation asynchrone."""
    try:
        session = stripe_client.create_session(
            customer=customer_id,
            line_items=to_line_items(draft.lines, draft.shipping),
            success_url=success_url_with_session(success_url),
            cancel_url=cancel_url,
            metadata={"order_id": str(order["id"]), "user_id": draft.user_id},
        )
    except Exception:
        logger.exception("checkout.sessions create_session failed order_id=%s", order.get("id"))
        raise CheckoutDependencyError("Échec de la création de la session de paiement")
    if not session.get("id") or not session.get("url"):
        logger.error("checkout.sessions invalid session order_id=%s session=%s", order.get("id"), session.get("id"))
        raise CheckoutDependencyError("Session de paiement invalide")
    return session

def link_session(order_id: str, session_id: str) -> bool:
    """
    Enregistre l’id de session sur la commande (best-effort).
    La session existe déjà: un échec est journalisé pour réconciliation manuelle, sans faire échouer le checkout.
    """
    try:
        repository.update_order(order_id, {"payment_intent_id": session_id})
        return True
    except Exception:
        logger.exception("checkout.sessions link failed, manual reconciliation needed order_id=%s session_id=%s", order_id, session_id)
        return False
