"""
Écriture de la commande et de ses lignes.
- Totaux calculés côté serveur à partir des lignes recalculées (prix catalogue).
- La commande n’existe durablement qu’avec au moins une ligne: les étapes
  d’insertion sont compensées par la saga du checkout.
"""
import logging
from typing import Any, Dict, List, Optional

from . import cart as cart_logic
from . import repository
from .errors import CheckoutConflictError, CheckoutDependencyError
from .models import OrderDraft, PricedLine

logger = logging.getLogger(__name__)

# module storefront.checkout.orders
def build_draft(
    *,
    user_id: str,
    lines: List[PricedLine],
    shipping_address: Dict[str, Any],
    idempotency_key: Optional[str] = None,
) -> OrderDraft:
    amount = cart_logic.subtotal(lines)
    return OrderDraft(
        user_id=user_id,
        lines=lines,
        shipping_address=shipping_address,
        subtotal=amount,
        shipping=cart_logic.shipping_surcharge(amount),
        idempotency_key=idempotency_key,
    )

def order_payload(draft: OrderDraft) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "user_id": draft.user_id,
        "total_amount": cart_logic.format_amount(draft.total),
        "shipping_address": draft.shipping_address,
        "status": "pending",
        "payment_status": "pending",
    }
    if draft.idempotency_key:
        payload["idempotency_key"] = draft.idempotency_key
    return payload

def item_rows(order_id: str, draft: OrderDraft) -> List[Dict[str, Any]]:
    """Une ligne order_items par ligne de panier, prix figé au moment de l’achat."""
    rows = []
    for line in draft.lines:
        row = {
            "order_id": order_id,
            "product_id": line.product_id,
            "quantity": line.quantity,
            "price": cart_logic.format_amount(line.unit_price),
        }
        if line.variant:
            row["variant"] = line.variant
        rows.append(row)
    return rows

def insert_order(draft: OrderDraft) -> dict:
    try:
        order = repository.insert_order(order_payload(draft))
    except repository.DuplicateKeyError:
        logger.warning("checkout.orders duplicate idempotency_key user_id=%s key=%s", draft.user_id, draft.idempotency_key)
        raise CheckoutConflictError("Une commande avec cette clé d'idempotence existe déjà")
    except Exception:
        logger.exception("checkout.orders insert_order failed user_id=%s", draft.user_id)
        raise CheckoutDependencyError("Échec de la création de la commande")
    logger.info("checkout.orders created order_id=%s user_id=%s total=%s", order.get("id"), draft.user_id, order_payload(draft)["total_amount"])
    return order

def insert_items(order: dict, draft: OrderDraft) -> List[dict]:
    try:
        return repository.insert_order_items(item_rows(str(order["id"]), draft))
    except Exception:
        logger.exception("checkout.orders insert_order_items failed order_id=%s", order.get("id"))
        raise CheckoutDependencyError("Échec de la création des lignes de commande")

def delete_order(order: dict) -> None:
    """Compensation: supprime la commande provisoire."""
    repository.delete_order(str(order["id"]))
    logger.info("checkout.orders deleted provisional order_id=%s", order.get("id"))

def delete_items(order: dict) -> None:
    """Compensation: supprime les lignes de la commande provisoire."""
    repository.delete_order_items(str(order["id"]))
