"""
Cas d'usage 'checkout': transforme le panier du client en commande + session Stripe.
Ordre strict des étapes: client Stripe -> commande -> lignes -> session -> liaison.
Toute étape en échec déclenche la compensation des écritures précédentes
avant que l’erreur ne remonte à la vue.
"""
import logging
from typing import Any, Dict, Optional

from . import cart as cart_logic
from . import customers
from . import orders
from . import pricing
from . import repository
from . import sessions
from . import stripe_client
from .errors import CheckoutConflictError, CheckoutDependencyError
from .models import CheckoutResult
from .saga import Saga

logger = logging.getLogger(__name__)

def replay_idempotent(user_id: str, idempotency_key: str) -> Optional[CheckoutResult]:
    """
    Rejoue une soumission déjà traitée avec la même clé.
    - Aucune commande: None (nouveau checkout).
    - Commande liée à une session encore ouverte: même réponse, aucune écriture.
    - Sinon (en cours, non liée, payée ou expirée): 409.
    """
    try:
        existing = repository.find_order_by_idempotency_key(user_id, idempotency_key)
    except Exception:
        logger.exception("checkout.service find_order_by_idempotency_key failed user_id=%s", user_id)
        raise CheckoutDependencyError("Impossible de vérifier la clé d'idempotence")
    if not existing:
        return None

    session_id = existing.get("payment_intent_id")
    if not session_id:
        raise CheckoutConflictError("Une commande avec cette clé est déjà en cours")
    try:
        session = stripe_client.get_session(session_id)
    except Exception:
        logger.exception("checkout.service get_session failed session_id=%s", session_id)
        raise CheckoutDependencyError("Impossible de récupérer la session de paiement")
    if session.get("status") == "open" and session.get("url"):
        logger.info("checkout.service replay order_id=%s session_id=%s", existing.get("id"), session_id)
        return CheckoutResult(session_id=session_id, url=session["url"], order_id=str(existing["id"]))
    raise CheckoutConflictError("Cette commande a déjà été traitée")

def run_checkout(
    *,
    user: Dict[str, Any],
    cart: Any,
    shipping_address: Any,
    success_url: Any,
    cancel_url: Any,
    idempotency_key: Optional[str] = None,
) -> CheckoutResult:
    """
    Checkout complet pour un utilisateur authentifié.
    - Validation (400, sans effet de bord): panier, adresse, URLs, produits du catalogue.
    - Saga: client Stripe, commande, lignes, session (compensées en ordre inverse).
    - Liaison session -> commande: best-effort, journalisée si elle échoue.
    Retour: CheckoutResult(session_id, url, order_id).
    """
    lines = cart_logic.parse_cart(cart)
    address = cart_logic.require_shipping_address(shipping_address)
    success, cancel = cart_logic.require_redirect_urls(success_url, cancel_url)
    user_id = str(user["id"])

    if idempotency_key:
        replay = replay_idempotent(user_id, idempotency_key)
        if replay:
            return replay

    priced = pricing.price_lines(lines)
    draft = orders.build_draft(
        user_id=user_id,
        lines=priced,
        shipping_address=address,
        idempotency_key=idempotency_key,
    )

    results = (
        Saga("checkout")
        .step("customer", lambda r: customers.resolve_customer(user))
        .step("order", lambda r: orders.insert_order(draft), compensate=lambda r: orders.delete_order(r["order"]))
        .step("items", lambda r: orders.insert_items(r["order"], draft), compensate=lambda r: orders.delete_items(r["order"]))
        .step("session", lambda r: sessions.create_checkout_session(
            customer_id=r["customer"],
            order=r["order"],
            draft=draft,
            success_url=success,
            cancel_url=cancel,
        ))
        .run()
    )

    order_id = str(results["order"]["id"])
    session = results["session"]
    sessions.link_session(order_id, session["id"])
    logger.info("Created checkout session %s for order %s", session["id"], order_id)
    return CheckoutResult(session_id=session["id"], url=session["url"], order_id=order_id)
