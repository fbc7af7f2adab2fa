"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
"""
import stripe
from typing import Any, Dict, List, Optional
from fastapi import Request

from storefront.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET

def _as_dict(obj: Any) -> Dict[str, Any]:
    # StripeObject -> dict récursif (les mocks de test sont déjà des dict)
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)

# module storefront.checkout.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l’emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY si disponible.
    - En absence de clé, les appels Stripe échoueront côté SDK (ex: No API key provided).
    """
    if STRIPE_SECRET_KEY:
        stripe.api_key = STRIPE_SECRET_KEY
    return stripe

def create_customer(*, email: Optional[str], user_id: str) -> str:
    """Crée un client Stripe (email + userId en metadata) et retourne son id."""
    require_stripe()
    customer = stripe.Customer.create(email=email, metadata={"userId": user_id})
    return customer["id"]

def delete_customer(customer_id: str) -> None:
    require_stripe()
    stripe.Customer.delete(customer_id)

def create_session(
    *,
    customer: str,
    line_items: List[Dict[str, Any]],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout en mode paiement (jamais abonnement).
    Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
    """
    require_stripe()
    session = stripe.checkout.Session.create(
        customer=customer,
        payment_method_types=["card"],
        line_items=line_items,
        mode="payment",
        success_url=success_url,
        cancel_url=cancel_url,
        metadata=metadata,
    )
    return _as_dict(session)

def get_session(session_id: str) -> Dict[str, Any]:
    """
    Récupère une session Stripe Checkout par son identifiant.
    Retour: dict session incluant "id", "status", "payment_status", "url", "metadata".
    """
    require_stripe()
    session = stripe.checkout.Session.retrieve(session_id)
    return _as_dict(session)

def find_session_by_payment_intent(payment_intent_id: str) -> Optional[Dict[str, Any]]:
    """Session Checkout ayant produit ce PaymentIntent (remboursements)."""
    require_stripe()
    sessions = stripe.checkout.Session.list(payment_intent=payment_intent_id, limit=1)
    data = list(getattr(sessions, "data", None) or [])
    return _as_dict(data[0]) if data else None

async def parse_event(request: Request):
    """
    Parse et valide un événement Stripe signé (webhook).
    - Lit le body brut + en-tête Stripe-Signature
    - Valide la signature via Webhook.construct_event (STRIPE_WEBHOOK_SECRET)
    Retour: l’événement (dict) si la signature est valide.
    """
    require_stripe()
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature") or request.headers.get("Stripe-Signature")
    event = stripe.Webhook.construct_event(payload, sig_header, STRIPE_WEBHOOK_SECRET or "")
    return _as_dict(event)
