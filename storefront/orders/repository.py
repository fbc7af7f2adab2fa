from typing import List, Optional
import logging

# Import du module pour rester patchable par les tests
import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

ORDER_COLUMNS = "id, user_id, status, payment_status, total_amount, shipping_address, payment_intent_id, created_at, order_items(product_id, quantity, price, variant)"

def list_user_orders(user_id: str, limit: int = 50) -> List[dict]:
    """
    Commandes de l'utilisateur, plus récentes d'abord, avec leurs lignes.
    """
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .select(ORDER_COLUMNS)
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return res.data or []

def get_user_order(user_id: str, order_id: str) -> Optional[dict]:
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .select(ORDER_COLUMNS)
        .eq("id", order_id)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None
