"""
Prix de référence: chaque ligne du panier est recalculée depuis la table products.
Le prix envoyé par le client n’est jamais utilisé pour le total ni pour Stripe.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from storefront.config import CHECKOUT_PRICE_POLICY
from . import repository
from .errors import CheckoutDependencyError, CheckoutValidationError
from .models import CartLine, PricedLine

logger = logging.getLogger(__name__)

def _price_from_product(product: Dict[str, Any]) -> Optional[Decimal]:
    try:
        price = Decimal(str(product.get("price")))
    except (InvalidOperation, TypeError, ValueError):
        return None
    # NaN / Infinity: prix indisponible
    return price if price.is_finite() else None

def _first_image(images: Any) -> Optional[str]:
    if isinstance(images, list) and images:
        return str(images[0])
    if isinstance(images, str) and images:
        return images
    return None

def get_products_map(ids: List[str]) -> Dict[str, Dict[str, Any]]:
    """Retourne {id: produit}; échec Supabase -> CheckoutDependencyError."""
    try:
        products = repository.fetch_products_by_ids(list(dict.fromkeys(ids)))
    except Exception:
        logger.exception("checkout.pricing fetch_products_by_ids failed ids=%s", ids)
        raise CheckoutDependencyError("Impossible de récupérer les produits")
    return {str(p.get("id")): p for p in products}

def price_lines(lines: List[CartLine], policy: Optional[str] = None) -> List[PricedLine]:
    """
    Recalcule chaque ligne avec le prix catalogue.
    - Produit inconnu ou sans prix valide -> 400.
    - Écart client/catalogue: 'reprice' (journalisé, prix catalogue retenu) ou 'reject' (400).
    - Nom et image proviennent du catalogue, à défaut du panier.
    """
    policy = (policy or CHECKOUT_PRICE_POLICY or "reprice").lower()
    products = get_products_map([line.product.id for line in lines])

    priced: List[PricedLine] = []
    for line in lines:
        product = products.get(line.product.id)
        if not product:
            raise CheckoutValidationError(f"Produit introuvable: {line.product.id}")
        unit_price = _price_from_product(product)
        if unit_price is None or unit_price <= 0:
            raise CheckoutValidationError(f"Prix indisponible pour le produit {line.product.id}")

        if line.product.price != unit_price:
            if policy == "reject":
                raise CheckoutValidationError(f"Le prix du produit {line.product.id} a changé")
            logger.warning(
                "checkout.pricing repriced product_id=%s client_price=%s catalog_price=%s",
                line.product.id, line.product.price, unit_price,
            )

        priced.append(PricedLine(
            product_id=line.product.id,
            name=product.get("name") or line.product.name or "Article",
            unit_price=unit_price,
            quantity=line.quantity,
            image=_first_image(product.get("images")) or _first_image(line.product.images),
            variant=line.variant,
        ))
    return priced
