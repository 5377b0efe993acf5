"""
Store-related email templates.
"""

from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.emails.core import send_email


def _money(amount: Decimal | float) -> str:
    return f"${float(amount):,.2f}"


async def send_store_order_confirmation_email(
    to_email: str,
    customer_name: Optional[str],
    order_number: str,
    items: list[dict],  # [{"name": str, "quantity": int, "price": Decimal}]
    subtotal: Decimal,
    shipping_cost: Decimal,
    total: Decimal,
    shipping_address: Optional[str] = None,
    shipping_method_name: Optional[str] = None,
) -> bool:
    """
    Send order confirmation email when payment is successful.
    """
    store_name = get_settings().STORE_NAME
    subject = f"Order Confirmed - #{order_number}"
    greeting = customer_name or "there"

    items_text = "\n".join(
        f"  - {item['name']} x{item['quantity']} - {_money(item['price'])}"
        for item in items
    )
    items_html = "".join(
        f"<tr><td>{item['name']}</td><td style='text-align:center'>{item['quantity']}</td>"
        f"<td style='text-align:right'>{_money(item['price'])}</td></tr>"
        for item in items
    )

    shipping_line = (
        f"Shipping ({shipping_method_name}): {_money(shipping_cost)}"
        if shipping_method_name
        else f"Shipping: {_money(shipping_cost)}"
    )

    body = f"""Hi {greeting},

Thank you for your order! We've received your payment and your order is now being processed.

Order #{order_number}

Items:
{items_text}

Subtotal: {_money(subtotal)}
{shipping_line}
Total: {_money(total)}

{f"Ship to: {shipping_address}" if shipping_address else ""}

We'll let you know as soon as your order ships.

— The {store_name} Team
"""

    html_body = f"""
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: #1e293b; color: white; padding: 30px; border-radius: 12px 12px 0 0; }}
        .content {{ background: #f8fafc; padding: 30px; border-radius: 0 0 12px 12px; }}
        table {{ width: 100%; border-collapse: collapse; }}
        th, td {{ padding: 10px; text-align: left; border-bottom: 1px solid #e2e8f0; }}
        .total-row {{ font-weight: bold; font-size: 18px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1 style="margin: 0;">Order Confirmed</h1>
            <p style="margin: 10px 0 0 0;">Order #{order_number}</p>
        </div>
        <div class="content">
            <p>Hi {greeting},</p>
            <p>Thank you for your order! We've received your payment and your order is now being processed.</p>
            <table>
                <thead><tr><th>Item</th><th style="text-align:center">Qty</th><th style="text-align:right">Price</th></tr></thead>
                <tbody>{items_html}</tbody>
            </table>
            <p>Subtotal: {_money(subtotal)}</p>
            <p>{shipping_line}</p>
            <p class="total-row">Total: {_money(total)}</p>
            {f"<p><strong>Ship to:</strong> {shipping_address}</p>" if shipping_address else ""}
            <p>— The {store_name} Team</p>
        </div>
    </div>
</body>
</html>
"""

    return await send_email(to_email, subject, body, html_body)


async def send_store_order_shipped_email(
    to_email: str,
    customer_name: Optional[str],
    order_number: str,
) -> bool:
    """
    Send notification when an order has been shipped.
    """
    store_name = get_settings().STORE_NAME
    subject = f"Your Order #{order_number} has been Shipped!"

    body = f"""Hi {customer_name or "there"},

Great news! Your order #{order_number} is on its way.

Thank you for shopping with {store_name}!

— The {store_name} Team
"""

    return await send_email(to_email, subject, body)
