"""
Accès aux données pour le checkout (tables products, stripe_customers, orders, order_items).
Les erreurs Supabase remontent telles quelles: l’appelant décide de la compensation.
"""
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError

# Import du module pour rester patchable par les tests
import storefront.infra.supabase_client as supabase_client

UNIQUE_VIOLATION = "23505"


class DuplicateKeyError(Exception):
    """Violation d’unicité (ex: même idempotency_key pour un utilisateur)."""


# module storefront.checkout.repository
def fetch_products_by_ids(ids: List[str]) -> List[dict]:
    """Produits du catalogue de référence (prix, nom, images)."""
    if not ids:
        return []
    res = (
        supabase_client.get_service_supabase()
        .table("products")
        .select("id, name, price, images")
        .in_("id", [str(i) for i in ids])
        .execute()
    )
    return res.data or []

def get_active_customer_id(user_id: str) -> Optional[str]:
    """customer_id Stripe de la correspondance non supprimée, ou None."""
    res = (
        supabase_client.get_service_supabase()
        .table("stripe_customers")
        .select("customer_id")
        .eq("user_id", user_id)
        .is_("deleted_at", "null")
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return (rows[0].get("customer_id") or None) if rows else None

def insert_customer_mapping(user_id: str, customer_id: str) -> None:
    (
        supabase_client.get_service_supabase()
        .table("stripe_customers")
        .insert({"user_id": user_id, "customer_id": customer_id})
        .execute()
    )

def find_order_by_idempotency_key(user_id: str, idempotency_key: str) -> Optional[dict]:
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .select("*")
        .eq("user_id", user_id)
        .eq("idempotency_key", idempotency_key)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def insert_order(payload: Dict[str, Any]) -> dict:
    """
    Insère la commande et retourne la ligne créée (avec id).
    - DuplicateKeyError si la contrainte (user_id, idempotency_key) est violée.
    """
    try:
        res = supabase_client.get_service_supabase().table("orders").insert(payload).execute()
    except APIError as e:
        if str(getattr(e, "code", "") or "") == UNIQUE_VIOLATION:
            raise DuplicateKeyError(str(e)) from e
        raise
    rows = res.data or []
    if not rows:
        raise RuntimeError("Insertion orders sans ligne retournée")
    return rows[0]

def delete_order(order_id: str) -> None:
    supabase_client.get_service_supabase().table("orders").delete().eq("id", order_id).execute()

def insert_order_items(rows: List[Dict[str, Any]]) -> List[dict]:
    """Insertion groupée des lignes de commande (une requête)."""
    res = supabase_client.get_service_supabase().table("order_items").insert(rows).execute()
    return res.data or []

def delete_order_items(order_id: str) -> None:
    supabase_client.get_service_supabase().table("order_items").delete().eq("order_id", order_id).execute()

def update_order(order_id: str, fields: Dict[str, Any]) -> Optional[dict]:
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .update(fields)
        .eq("id", order_id)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def get_order(order_id: str) -> Optional[dict]:
    res = supabase_client.get_service_supabase().table("orders").select("*").eq("id", order_id).limit(1).execute()
    rows = res.data or []
    return rows[0] if rows else None

def find_order_by_session_id(session_id: str) -> Optional[dict]:
    """Commande liée à une session Checkout (colonne payment_intent_id)."""
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .select("*")
        .eq("payment_intent_id", session_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None
