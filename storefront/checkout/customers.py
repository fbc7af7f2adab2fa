"""
Résolution du client Stripe d’un utilisateur.
La table stripe_customers fait autorité: elle sert de cache de l’identité Stripe.
"""
import logging
from typing import Any, Dict

from . import repository
from . import stripe_client
from .errors import CheckoutDependencyError
from .saga import Saga

logger = logging.getLogger(__name__)

def _create_stripe_customer(user: Dict[str, Any]) -> str:
    try:
        customer_id = stripe_client.create_customer(email=user.get("email"), user_id=user["id"])
    except Exception:
        logger.exception("checkout.customers create_customer failed user_id=%s", user.get("id"))
        raise CheckoutDependencyError("Impossible de créer le client de paiement")
    logger.info("Created new Stripe customer %s for user %s", customer_id, user.get("id"))
    return customer_id

def _save_mapping(user_id: str, customer_id: str) -> str:
    try:
        repository.insert_customer_mapping(user_id, customer_id)
    except Exception:
        logger.exception("checkout.customers insert_customer_mapping failed user_id=%s customer_id=%s", user_id, customer_id)
        raise CheckoutDependencyError("Impossible d'enregistrer la correspondance client")
    return customer_id

def resolve_customer(user: Dict[str, Any]) -> str:
    """
    Retourne le customer_id Stripe de l’utilisateur, en le créant au premier achat.
    - Correspondance existante: aucun appel Stripe.
    - Sinon: création Stripe puis insertion de la correspondance;
      si l’insertion échoue, le client Stripe est supprimé avant de remonter l’erreur.
    Deux checkouts simultanés du même utilisateur peuvent créer deux clients Stripe.
    """
    user_id = user["id"]
    try:
        existing = repository.get_active_customer_id(user_id)
    except Exception:
        logger.exception("checkout.customers get_active_customer_id failed user_id=%s", user_id)
        raise CheckoutDependencyError("Impossible de récupérer les informations client")
    if existing:
        return existing

    results = (
        Saga("customer")
        .step("stripe_customer", lambda r: _create_stripe_customer(user), compensate=lambda r: stripe_client.delete_customer(r["stripe_customer"]))
        .step("mapping", lambda r: _save_mapping(user_id, r["stripe_customer"]))
        .run()
    )
    return results["mapping"]
