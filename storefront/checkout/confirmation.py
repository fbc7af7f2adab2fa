"""
Application du résultat de paiement Stripe sur la commande locale.
Rôles:
- Webhook: traduire les événements Checkout (completed, async_payment_*, expired, charge.refunded)
  en transition de payment_status / status.
- Alternative sans webhook: relire la session Stripe pour l’utilisateur propriétaire.
Idempotence: ré-appliquer le même résultat ne modifie rien; une commande payée
n’est jamais rétrogradée.
"""
import logging
from typing import Any, Dict, Optional, Tuple

from . import repository
from . import stripe_client
from .errors import CheckoutDependencyError, CheckoutForbiddenError, CheckoutValidationError

logger = logging.getLogger(__name__)

# payment_status courant -> payment_status atteignables
PAYMENT_TRANSITIONS = {
    "pending": {"paid", "failed"},
    "paid": {"refunded"},
    "failed": set(),
    "refunded": set(),
}

# module storefront.checkout.confirmation
def outcome_for_session(event_type: str, session: Dict[str, Any]) -> Optional[Tuple[str, Optional[str]]]:
    """
    Retourne (payment_status, status de commande) pour un événement de session, ou None si rien à faire.
    - completed + payé: (paid, processing); completed non payé (paiement différé): None
    - async_payment_succeeded: (paid, processing)
    - async_payment_failed / expired: (failed, cancelled)
    """
    if event_type == "checkout.session.completed":
        if session.get("payment_status") in ("paid", "no_payment_required"):
            return "paid", "processing"
        return None
    if event_type == "checkout.session.async_payment_succeeded":
        return "paid", "processing"
    if event_type in ("checkout.session.async_payment_failed", "checkout.session.expired"):
        return "failed", "cancelled"
    return None

def find_order_for_session(session: Dict[str, Any]) -> Optional[dict]:
    """
    Corrèle la session à la commande:
    - d’abord par orders.payment_intent_id (id de session enregistré au checkout),
    - sinon par metadata.order_id (liaison manquante), en vérifiant metadata.user_id.
    """
    session_id = session.get("id") or ""
    meta = session.get("metadata") or {}
    try:
        order = repository.find_order_by_session_id(session_id) if session_id else None
        if order:
            return order
        order_id = meta.get("order_id")
        if not order_id:
            return None
        order = repository.get_order(str(order_id))
    except Exception:
        logger.exception("checkout.confirmation find_order failed session_id=%s", session_id)
        raise CheckoutDependencyError("Impossible de retrouver la commande")
    if order and meta.get("user_id") and str(order.get("user_id")) != str(meta.get("user_id")):
        logger.warning("checkout.confirmation user mismatch session_id=%s order_id=%s", session_id, order.get("id"))
        return None
    return order

def apply_payment_outcome(session: Dict[str, Any], payment_status: str, order_status: Optional[str] = None) -> Dict[str, Any]:
    """
    Applique un résultat de paiement à la commande liée à la session.
    Retour: {"status": "updated"|"noop"|"ignored"|"not_found", "order_id": ...}
    """
    order = find_order_for_session(session)
    if not order:
        logger.warning("checkout.confirmation order not found session_id=%s", session.get("id"))
        return {"status": "not_found", "order_id": None}

    order_id = str(order["id"])
    current = order.get("payment_status") or "pending"
    fields: Dict[str, Any] = {}
    if current != payment_status:
        if payment_status not in PAYMENT_TRANSITIONS.get(current, set()):
            logger.warning(
                "checkout.confirmation transition refused order_id=%s from=%s to=%s",
                order_id, current, payment_status,
            )
            return {"status": "ignored", "order_id": order_id}
        fields["payment_status"] = payment_status
        if order_status and order.get("status") == "pending":
            fields["status"] = order_status

    # Répare une liaison session -> commande manquante
    if session.get("id") and not order.get("payment_intent_id"):
        fields["payment_intent_id"] = session["id"]

    if not fields:
        return {"status": "noop", "order_id": order_id}
    try:
        repository.update_order(order_id, fields)
    except Exception:
        logger.exception("checkout.confirmation update_order failed order_id=%s fields=%s", order_id, fields)
        raise CheckoutDependencyError("Impossible de mettre à jour la commande")
    logger.info("checkout.confirmation order_id=%s %s", order_id, fields)
    return {"status": "updated", "order_id": order_id}

def _refund_outcome(charge: Dict[str, Any]) -> Dict[str, Any]:
    # Remboursement partiel: la commande reste payée
    if not charge.get("refunded"):
        return {"status": "ignored", "order_id": None}
    payment_intent = charge.get("payment_intent")
    if not payment_intent:
        return {"status": "ignored", "order_id": None}
    try:
        session = stripe_client.find_session_by_payment_intent(str(payment_intent))
    except Exception:
        logger.exception("checkout.confirmation find_session_by_payment_intent failed payment_intent=%s", payment_intent)
        raise CheckoutDependencyError("Impossible de retrouver la session de paiement")
    if not session:
        return {"status": "not_found", "order_id": None}
    return apply_payment_outcome(session, "refunded")

def handle_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Traite un événement Stripe déjà vérifié.
    Retour: résultat de apply_payment_outcome, ou {"status": "ignored"} pour les autres types.
    """
    event_type = (event or {}).get("type") or ""
    data_obj = ((event or {}).get("data") or {}).get("object") or {}
    if event_type == "charge.refunded":
        return _refund_outcome(dict(data_obj))
    if not event_type.startswith("checkout.session."):
        return {"status": "ignored"}
    outcome = outcome_for_session(event_type, data_obj)
    if not outcome:
        return {"status": "ignored"}
    payment_status, order_status = outcome
    return apply_payment_outcome(dict(data_obj), payment_status, order_status)

def confirm_session(session_id: str, current_user_id: str) -> Dict[str, Any]:
    """
    Alternative sans webhook: relit la session Stripe et applique le paiement.
    - 400 si session_id manquant, session introuvable ou paiement non confirmé.
    - 403 si la session appartient à un autre utilisateur (metadata.user_id).
    """
    if not session_id:
        raise CheckoutValidationError("session_id manquant")
    try:
        session = stripe_client.get_session(session_id)
    except Exception:
        logger.exception("checkout.confirmation get_session failed session_id=%s", session_id)
        raise CheckoutValidationError("Session introuvable")

    meta_user_id = (session.get("metadata") or {}).get("user_id")
    if meta_user_id and str(meta_user_id) != str(current_user_id):
        raise CheckoutForbiddenError("Session appartenant à un autre utilisateur")

    if session.get("status") == "expired":
        return apply_payment_outcome(session, "failed", "cancelled")
    outcome = outcome_for_session("checkout.session.completed", session)
    if not outcome:
        raise CheckoutValidationError(f"Paiement non confirmé (payment_status={session.get('payment_status') or ''})")
    payment_status, order_status = outcome
    return apply_payment_outcome(session, payment_status, order_status)
