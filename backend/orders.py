"""Order placement: pricing, persistence and the confirmation email."""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from pymongo.errors import PyMongoError

from errors import NotFoundError, PersistenceError, ValidationError
from helpers import isoformat_utc, normalize_object_id_value, safe_float, safe_positive_int
from notifications import build_order_confirmation_email
from pricing import (
    FREE_DELIVERY_THRESHOLD,
    ORDER_DISCOUNT_RATE,
    STANDARD_DELIVERY_CHARGE,
    calculate_order_pricing,
    generate_order_id,
    generate_tracking_id,
)


def normalize_ordered_product(payload) -> Optional[Dict[str, object]]:
    if not isinstance(payload, dict):
        return None

    product_identifier = (
        payload.get("productId") or payload.get("product_id") or payload.get("id")
    )
    product_id = str(product_identifier or "").strip()
    if not product_id:
        return None

    return {
        "product_id": product_id,
        "quantity": safe_positive_int(payload.get("quantity"), 1) or 1,
    }


def serialize_order(order_document) -> Dict[str, object]:
    if not order_document:
        return {}
    return {
        "id": str(order_document.get("_id")),
        "orderId": order_document.get("order_id"),
        "trackingId": order_document.get("tracking_id"),
        "userId": order_document.get("user_id"),
        "email": order_document.get("email") or "",
        "name": order_document.get("name") or "",
        "productIds": list(order_document.get("product_ids") or []),
        "items": list(order_document.get("items") or []),
        "price": order_document.get("price"),
        "discount": order_document.get("discount"),
        "deliveryCharges": order_document.get("delivery_charges"),
        "finalTotal": order_document.get("final_total"),
        "address": order_document.get("address"),
        "date": order_document.get("date"),
        "time": order_document.get("time"),
        "createdAt": isoformat_utc(order_document.get("created_at")),
    }


class OrderService:
    """Prices and records checkouts.

    The notifier is any object with a ``send(payload)`` method returning
    ``(sent, error)``. Storing the order is the success boundary; the
    confirmation email afterwards is best-effort and only shows up in logs
    when it fails.
    """

    def __init__(
        self,
        db,
        notifier,
        *,
        sender: str,
        threshold: float = FREE_DELIVERY_THRESHOLD,
        discount_rate: float = ORDER_DISCOUNT_RATE,
        delivery_charge: float = STANDARD_DELIVERY_CHARGE,
        logger: Optional[logging.Logger] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.sender = sender
        self.threshold = threshold
        self.discount_rate = discount_rate
        self.delivery_charge = delivery_charge
        self.logger = logger or logging.getLogger(__name__)

    def price(self, declared_price: float) -> Dict[str, float]:
        return calculate_order_pricing(
            declared_price,
            threshold=self.threshold,
            discount_rate=self.discount_rate,
            delivery_charge=self.delivery_charge,
        )

    def find_user(self, user_id):
        object_id = normalize_object_id_value(user_id)
        if object_id is None:
            return None
        return self.db.users.find_one({"_id": object_id})

    def resolve_products(self, product_ids: List[str]) -> Dict[str, Dict]:
        try:
            documents = self.db.products.find({"product_id": {"$in": product_ids}})
            return {document["product_id"]: document for document in documents}
        except PyMongoError as exc:
            self.logger.warning("Unable to resolve ordered products %s: %s", product_ids, exc)
            return {}

    def place_order(
        self,
        user_id,
        date,
        time,
        address,
        price,
        products_ordered,
    ) -> Dict[str, object]:
        if user_id in (None, "") or price in (None, "") or not products_ordered:
            raise ValidationError("Missing required fields.")

        declared_price = safe_float(price, None)
        if declared_price is None or declared_price <= 0:
            raise ValidationError("Price must be a number greater than zero.")

        if not isinstance(products_ordered, list):
            raise ValidationError("productsOrdered must be a list of products.")

        items = [
            normalized
            for normalized in (normalize_ordered_product(entry) for entry in products_ordered)
            if normalized
        ]
        if not items:
            raise ValidationError("Include at least one product to place an order.")

        try:
            user = self.find_user(user_id)
        except PyMongoError as exc:
            raise PersistenceError("Error placing order", str(exc)) from exc
        if not user:
            raise NotFoundError("User not found")

        product_ids = [item["product_id"] for item in items]
        product_details = self.resolve_products(product_ids)
        for item in items:
            product = product_details.get(item["product_id"])
            if product:
                item["name"] = product.get("name", "")
                item["price"] = product.get("price")

        pricing = self.price(declared_price)
        # Not checked against existing orders; see DESIGN.md.
        order_document = {
            "order_id": generate_order_id(),
            "tracking_id": generate_tracking_id(),
            "user_id": str(user["_id"]),
            "email": user.get("email", ""),
            "name": user.get("name", ""),
            "product_ids": product_ids,
            "items": items,
            "price": pricing["price"],
            "discount": pricing["discount"],
            "delivery_charges": pricing["delivery_charges"],
            "final_total": pricing["final_total"],
            "address": address,
            "date": date,
            "time": time,
            "created_at": datetime.utcnow(),
        }

        try:
            self.db.orders.insert_one(order_document)
        except PyMongoError as exc:
            raise PersistenceError("Error placing order", str(exc)) from exc

        self.send_confirmation(order_document)

        return {
            "order_id": order_document["order_id"],
            "tracking_id": order_document["tracking_id"],
            "final_total": order_document["final_total"],
        }

    def send_confirmation(self, order_document: Dict[str, object]) -> bool:
        if not order_document.get("email"):
            self.logger.warning(
                "Order %s has no email on file; skipping confirmation.",
                order_document.get("order_id"),
            )
            return False

        try:
            payload = build_order_confirmation_email(self.sender, order_document)
            sent, error_details = self.notifier.send(payload)
        except Exception as exc:
            sent, error_details = False, str(exc)

        if not sent:
            self.logger.error(
                "Order confirmation for %s could not be sent to %s: %s",
                order_document.get("order_id"),
                order_document.get("email"),
                error_details or "Unknown delivery error",
            )
        return sent

    def list_orders(self, user_id) -> List[Dict[str, object]]:
        try:
            cursor = self.db.orders.find({"user_id": str(user_id)}).sort("created_at", -1)
            return [serialize_order(document) for document in cursor]
        except PyMongoError as exc:
            raise PersistenceError("Error fetching orders", str(exc)) from exc
