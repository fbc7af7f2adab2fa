# module storefront.orders.views

"""Lecture des commandes de l'utilisateur connecté.
- GET "": liste (lignes incluses), plus récentes d'abord.
- GET "/{order_id}": détail, 404 si la commande n'appartient pas à l'utilisateur.
Lecture seule: deux appels successifs renvoient le même état.
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from storefront.utils.security import require_user
from storefront.orders import repository as orders_repo
from storefront.checkout.errors import CheckoutDependencyError, CheckoutNotFoundError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])


@router.get("")
async def list_orders(limit: int = 50, user: dict = Depends(require_user)):
    try:
        rows = orders_repo.list_user_orders(user["id"], limit=max(1, min(limit, 100)))
    except Exception:
        logger.exception("Erreur list_orders user_id=%s", user.get("id"))
        raise CheckoutDependencyError("Impossible de récupérer les commandes")
    return JSONResponse({"orders": rows})


@router.get("/{order_id}")
async def get_order(order_id: str, user: dict = Depends(require_user)):
    try:
        order = orders_repo.get_user_order(user["id"], order_id)
    except Exception:
        logger.exception("Erreur get_order order_id=%s", order_id)
        raise CheckoutDependencyError("Impossible de récupérer la commande")
    if not order:
        raise CheckoutNotFoundError("Commande introuvable")
    return JSONResponse(order)
