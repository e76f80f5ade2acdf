import secrets
import string
from typing import Dict

# Orders strictly above the threshold ship free and get the discount rate.
FREE_DELIVERY_THRESHOLD = 499
ORDER_DISCOUNT_RATE = 0.10
STANDARD_DELIVERY_CHARGE = 50

ORDER_ID_MIN = 100000
ORDER_ID_MAX = 999999
TRACKING_ID_LENGTH = 12
BASE36_ALPHABET = string.digits + string.ascii_lowercase


def calculate_order_pricing(
    price: float,
    *,
    threshold: float = FREE_DELIVERY_THRESHOLD,
    discount_rate: float = ORDER_DISCOUNT_RATE,
    delivery_charge: float = STANDARD_DELIVERY_CHARGE,
) -> Dict[str, float]:
    if price > threshold:
        delivery_charges = 0
        discount = price * discount_rate
    else:
        delivery_charges = delivery_charge
        discount = 0

    return {
        "price": price,
        "discount": discount,
        "delivery_charges": delivery_charges,
        "final_total": price - discount + delivery_charges,
    }


def calculate_coupon_discount(cart_total: float, discount_percentage: float) -> Dict[str, float]:
    discount = cart_total * discount_percentage / 100
    return {"discount": discount, "final_total": cart_total - discount}


def generate_order_id() -> str:
    return str(ORDER_ID_MIN + secrets.randbelow(ORDER_ID_MAX - ORDER_ID_MIN + 1))


def generate_tracking_id(length: int = TRACKING_ID_LENGTH) -> str:
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length)).upper()
