"""Outgoing email: the Resend transport and the messages the store sends."""

import logging
from html import escape
from typing import Dict, Optional, Tuple

import resend

brand_colors = {
    "bg_primary": "#0b1020",
    "bg_secondary": "#111a2e",
    "border": "rgba(148, 178, 255, 0.25)",
    "text_primary": "#f3f6ff",
    "text_secondary": "rgba(220, 228, 250, 0.82)",
    "text_muted": "rgba(220, 228, 250, 0.55)",
    "accent": "#7ca9ff",
}


class ResendNotifier:
    """Sends email payloads through Resend with a fixed API key."""

    def __init__(self, api_key: str, logger: Optional[logging.Logger] = None):
        self.api_key = (api_key or "").strip()
        self.logger = logger or logging.getLogger(__name__)

    def send(self, payload: Dict[str, object]) -> Tuple[bool, Optional[str]]:
        if not self.api_key:
            return False, "Resend API key is not configured."

        # resend only reads a module level key
        previous_api_key = getattr(resend, "api_key", None)
        resend.api_key = self.api_key
        try:
            response = resend.Emails.send(payload)
        except Exception as exc:
            return False, str(exc)
        finally:
            resend.api_key = previous_api_key

        if not isinstance(response, dict) or not response.get("id"):
            return False, str(response)

        self.logger.debug("Email %s sent to %s", response.get("id"), payload.get("to"))
        return True, None


def _wrap_html(title: str, body: str) -> str:
    colors = brand_colors
    return f"""<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="UTF-8" />
    <title>{escape(title)}</title>
  </head>
  <body style="margin:0;padding:0;background-color:{colors['bg_primary']};color:{colors['text_primary']};font-family:'Inter','Segoe UI','Helvetica Neue',Arial,sans-serif;">
    <div style="padding:40px 16px;">
      <table width="100%" cellpadding="0" cellspacing="0" role="presentation" style="max-width:560px;margin:0 auto;border-radius:24px;background:{colors['bg_secondary']};border:1px solid {colors['border']};">
        <tr>
          <td style="padding:40px 36px;">
            <h1 style="margin:0 0 16px 0;font-size:24px;color:{colors['text_primary']};">{escape(title)}</h1>
            {body}
            <p style="margin:28px 0 0 0;font-size:13px;color:{colors['text_muted']};">
              Regards,<br />The Storefront Team
            </p>
          </td>
        </tr>
      </table>
    </div>
  </body>
</html>"""


def build_verification_email(
    sender: str, recipient_email: str, otp: str, expiration_minutes: int
) -> Dict[str, object]:
    colors = brand_colors
    body = (
        f'<p style="margin:0 0 24px 0;font-size:15px;line-height:1.7;color:{colors["text_secondary"]};">'
        f"Enter the code below to verify your email address. "
        f"The code is valid for {expiration_minutes} minutes.</p>"
        f'<p style="text-align:center;font-size:34px;letter-spacing:0.4em;font-weight:700;color:{colors["accent"]};">{escape(otp)}</p>'
    )
    return {
        "from": sender,
        "to": [recipient_email],
        "subject": "Storefront • Verify your email",
        "html": _wrap_html("Verify your email address", body),
        "text": (
            f"Your Storefront verification code is {otp}. "
            f"Enter it within {expiration_minutes} minutes to confirm this email."
        ),
    }


def build_seller_verification_email(
    sender: str, recipient_email: str, verification_link: str
) -> Dict[str, object]:
    link = escape(verification_link, quote=True)
    body = (
        f'<p style="font-size:15px;line-height:1.7;color:{brand_colors["text_secondary"]};">'
        f'Click <a href="{link}" style="color:{brand_colors["accent"]};">here</a> '
        f"to verify your email.</p>"
    )
    return {
        "from": sender,
        "to": [recipient_email],
        "subject": "Verify Your Email",
        "html": _wrap_html("Verify your seller account", body),
        "text": f"Click the link to verify your email: {verification_link}",
    }


def build_order_confirmation_email(
    sender: str, order_document: Dict[str, object]
) -> Dict[str, object]:
    name = str(order_document.get("name") or "").strip() or "there"
    rows = [
        ("Order ID", order_document.get("order_id")),
        ("Tracking ID", order_document.get("tracking_id")),
        ("Total Amount", f"₹{order_document.get('price')}"),
        ("Discount", f"₹{order_document.get('discount')}"),
        ("Delivery Charges", f"₹{order_document.get('delivery_charges')}"),
        ("Final Amount", f"₹{order_document.get('final_total')}"),
    ]
    row_html = "".join(
        f'<p style="margin:0 0 8px 0;color:{brand_colors["text_secondary"]};">'
        f"<strong>{label}:</strong> {escape(str(value))}</p>"
        for label, value in rows
    )
    body = (
        f'<p style="margin:0 0 20px 0;font-size:15px;">Thank you for your order, {escape(name)}!</p>'
        f"{row_html}"
    )
    text_lines = "\n".join(f"{label}: {value}" for label, value in rows)
    return {
        "from": sender,
        "to": [order_document.get("email")],
        "subject": "Order Confirmation",
        "html": _wrap_html("Order Confirmation", body),
        "text": f"Thank you for your order, {name}!\n{text_lines}\n\nStorefront Team",
    }


def build_announcement_email(
    sender: str, recipient_email: str, subject: str, message: str
) -> Dict[str, object]:
    return {
        "from": sender,
        "to": [recipient_email],
        "subject": subject,
        "text": message,
    }
