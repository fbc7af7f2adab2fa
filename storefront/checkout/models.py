# module storefront.checkout.models
"""Types du checkout: panier reçu du client, commande, statuts."""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")


class CartProduct(BaseModel):
    id: str = Field(min_length=1)
    name: str = ""
    price: Decimal = Decimal("0")
    images: List[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    def id_as_str(cls, v: Any) -> str:
        return str(v or "").strip()

    @field_validator("images", mode="before")
    def images_as_list(cls, v: Any) -> List[str]:
        if not v:
            return []
        if isinstance(v, str):
            return [v]
        return [str(i) for i in v if i]


class CartLine(BaseModel):
    """Ligne de panier telle qu’envoyée par le client (prix non fiable)."""
    product: CartProduct
    quantity: int = Field(ge=1)
    variant: Optional[Dict[str, str]] = None


@dataclass
class PricedLine:
    """Ligne de panier recalculée depuis le catalogue."""
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    image: Optional[str] = None
    variant: Optional[Dict[str, str]] = None

    @property
    def amount(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class CheckoutResult:
    session_id: str
    url: str
    order_id: str

    def to_dict(self) -> Dict[str, str]:
        return {"sessionId": self.session_id, "url": self.url, "orderId": self.order_id}


@dataclass
class OrderDraft:
    """Commande calculée côté serveur, avant écriture."""
    user_id: str
    lines: List[PricedLine]
    shipping_address: Dict[str, Any]
    subtotal: Decimal
    shipping: Decimal
    idempotency_key: Optional[str] = None

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.shipping
