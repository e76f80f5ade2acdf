import math
from datetime import datetime
from typing import Dict, List, Optional

from errors import ExpiredError, NotFoundError, ValidationError
from helpers import is_number, isoformat_utc, to_naive_utc
from pricing import calculate_coupon_discount


def serialize_coupon(coupon_document) -> Dict[str, object]:
    if not coupon_document:
        return {}
    return {
        "id": str(coupon_document.get("_id")),
        "code": coupon_document.get("code", ""),
        "discountPercentage": coupon_document.get("discount_percentage"),
        "expiryDate": isoformat_utc(coupon_document.get("expiry_date")),
        "createdAt": isoformat_utc(coupon_document.get("created_at")),
    }


def normalize_coupon_code(value) -> str:
    return str(value or "").strip()


def is_expired(coupon_document, now: Optional[datetime] = None) -> bool:
    expiry_date = coupon_document.get("expiry_date")
    if not isinstance(expiry_date, datetime):
        return False
    current_time = to_naive_utc(now) if now else datetime.utcnow()
    return current_time > to_naive_utc(expiry_date)


def apply_coupon(
    coupons_collection, code, cart_total, now: Optional[datetime] = None
) -> Dict[str, float]:
    if not is_number(cart_total) or not math.isfinite(cart_total) or cart_total < 0:
        raise ValidationError("cartTotal must be a non-negative number.")

    coupon = coupons_collection.find_one({"code": normalize_coupon_code(code)})
    if not coupon:
        raise NotFoundError("Invalid coupon code")

    if is_expired(coupon, now):
        raise ExpiredError("Coupon has expired")

    return calculate_coupon_discount(cart_total, float(coupon["discount_percentage"]))


def list_coupons(coupons_collection) -> List[Dict[str, object]]:
    return [serialize_coupon(document) for document in coupons_collection.find().sort("created_at", -1)]
