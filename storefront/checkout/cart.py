"""
Logique panier pure (pas de Stripe, pas de DB).
Le panier est toujours reçu en paramètre depuis le corps de la requête.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Tuple

from pydantic import ValidationError

from storefront.config import SHIPPING_FREE_THRESHOLD, SHIPPING_FLAT_FEE
from .errors import CheckoutValidationError
from .models import CartLine, PricedLine

CENT = Decimal("0.01")

# module storefront.checkout.cart
def parse_cart(raw: Any) -> List[CartLine]:
    """
    Valide le panier brut [{product: {id, name, price, images?}, quantity, variant?}, ...].
    - Soulève CheckoutValidationError si le panier est absent, vide ou pas une liste.
    - Soulève CheckoutValidationError pour la première ligne invalide (id vide, quantity < 1).
    - Conserve une ligne par entrée (pas d’agrégation): une ligne de commande par ligne de panier.
    """
    if not raw or not isinstance(raw, list):
        raise CheckoutValidationError("Le panier est requis et ne doit pas être vide")
    lines: List[CartLine] = []
    for index, item in enumerate(raw):
        try:
            lines.append(CartLine.model_validate(item))
        except ValidationError:
            raise CheckoutValidationError(f"Ligne de panier invalide (index {index})")
    return lines

def require_shipping_address(address: Any) -> Dict[str, Any]:
    # Opaque pour le checkout au-delà de sa présence
    if not address or not isinstance(address, dict):
        raise CheckoutValidationError("L'adresse de livraison est requise")
    return address

def require_redirect_urls(success_url: Any, cancel_url: Any) -> Tuple[str, str]:
    success = str(success_url or "").strip()
    cancel = str(cancel_url or "").strip()
    if not success or not cancel:
        raise CheckoutValidationError("Les URLs de succès et d'annulation sont requises")
    return success, cancel

def subtotal(lines: List[PricedLine]) -> Decimal:
    return sum((line.amount for line in lines), Decimal("0"))

def shipping_surcharge(amount: Decimal) -> Decimal:
    """
    Frais de port forfaitaires.
    - Gratuit strictement au-dessus du seuil (500.00 -> frais, 500.01 -> gratuit).
    """
    if amount > Decimal(SHIPPING_FREE_THRESHOLD):
        return Decimal("0")
    return Decimal(SHIPPING_FLAT_FEE)

def to_minor_units(amount: Decimal) -> int:
    """Montant en centimes (arrondi au plus proche, .5 vers le haut)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def format_amount(amount: Decimal) -> str:
    # Même format que les prix stockés: '290.00'
    return str(Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP))
