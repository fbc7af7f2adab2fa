"""
Module 'checkout' (feature-first): point d'entrée public.
Réunit validation du panier, tarification catalogue, client Stripe, repository BD,
saga de création de commande et confirmation du paiement.
"""

from .cart import parse_cart, require_shipping_address, require_redirect_urls, subtotal, shipping_surcharge, to_minor_units
from .errors import (
    CheckoutError,
    CheckoutValidationError,
    CheckoutConflictError,
    CheckoutDependencyError,
    CheckoutForbiddenError,
    CheckoutNotFoundError,
)
from .models import CartLine, CheckoutResult, OrderDraft, PricedLine
from .saga import Saga
from .customers import resolve_customer
from .orders import build_draft, insert_order, insert_items
from .sessions import to_line_items, create_checkout_session, link_session
from .confirmation import apply_payment_outcome, handle_event, confirm_session
from .service import run_checkout, replay_idempotent

__all__ = [
    # cart
    "parse_cart",
    "require_shipping_address",
    "require_redirect_urls",
    "subtotal",
    "shipping_surcharge",
    "to_minor_units",
    # errors
    "CheckoutError",
    "CheckoutValidationError",
    "CheckoutConflictError",
    "CheckoutDependencyError",
    "CheckoutForbiddenError",
    "CheckoutNotFoundError",
    # models
    "CartLine",
    "CheckoutResult",
    "OrderDraft",
    "PricedLine",
    # saga
    "Saga",
    "resolve_customer",
    "build_draft",
    "insert_order",
    "insert_items",
    "to_line_items",
    "create_checkout_session",
    "link_session",
    # confirmation
    "apply_payment_outcome",
    "handle_event",
    "confirm_session",
    # services
    "run_checkout",
    "replay_idempotent",
]
