# eastlink/utils/email.py
import logging
import smtplib
import time
import uuid
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Callable, Dict, Iterable, List

from eastlink.core.config import settings

logger = logging.getLogger("eastlink.email")

BULK_DELAY_SECONDS = 0.1

BUTTON = ("background-color: #7c3aed; color: white; padding: 12px 24px; "
          "text-decoration: none; border-radius: 6px;")
WRAPPER = "font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;"


def format_currency(amount) -> str:
    return f"ETB {round(float(amount or 0)):,}"


def _status_label(status: str) -> str:
    return status.replace("_", " ").upper()


def _item_name(item: dict) -> str:
    product = item.get("product")
    if isinstance(product, dict):
        return product.get("name", "Item")
    return item.get("name", "Item")


# --- Templates ---

def welcome(data: dict) -> dict:
    name = data.get("name", "")
    return {
        "subject": "Welcome to EastLink Market!",
        "html": f"""
      <div style="{WRAPPER}">
        <h1 style="color: #7c3aed;">Welcome to EastLink Market, {name}!</h1>
        <p>Thank you for joining Ethiopia's premier e-commerce platform.</p>
        <p>You can now:</p>
        <ul>
          <li>Browse thousands of products from local sellers</li>
          <li>Enjoy fast delivery across Harar, Dire Dawa, and Hararge</li>
          <li>Connect with trusted local businesses</li>
        </ul>
        <a href="{settings.CLIENT_URL}/products" style="{BUTTON}">Start Shopping</a>
      </div>
    """,
    }


def order_confirmation(order: dict) -> dict:
    address = order.get("delivery_address", {})
    payment = "Cash on Delivery" if order.get("payment_method") == "cash_on_delivery" else "Online Payment"
    lines = "".join(
        f"<li>{_item_name(item)} - Qty: {item['quantity']} - "
        f"{format_currency(item['price'] * item['quantity'])}</li>"
        for item in order.get("items", [])
    )
    return {
        "subject": f"Order Confirmation - {order['order_number']}",
        "html": f"""
      <div style="{WRAPPER}">
        <h1 style="color: #7c3aed;">Order Confirmed!</h1>
        <p>Thank you for your order. Here are the details:</p>
        <div style="background-color: #f3f4f6; padding: 20px; border-radius: 8px; margin: 20px 0;">
          <h3>Order #{order['order_number']}</h3>
          <p><strong>Total:</strong> {format_currency(order.get('final_amount'))}</p>
          <p><strong>Delivery Address:</strong> {address.get('street', '')}, {address.get('city', '')}</p>
          <p><strong>Payment Method:</strong> {payment}</p>
        </div>
        <h4>Items Ordered:</h4>
        <ul>{lines}</ul>
        <p>We'll send you updates as your order progresses.</p>
        <a href="{settings.CLIENT_URL}/order/{order.get('id', order.get('_id', ''))}" style="{BUTTON}">Track Order</a>
      </div>
    """,
    }


def order_status_update(data: dict) -> dict:
    order, status = data["order"], data["status"]
    extra = ""
    if status == "dispatched":
        agent = data.get("agent")
        agent_html = ""
        if agent:
            agent_html = (f"<p><strong>Delivery Agent:</strong> {agent.get('first_name', '')} "
                          f"{agent.get('last_name', '')}</p><p><strong>Contact:</strong> {agent.get('phone', '')}</p>")
        extra = f"""
        <div style="background-color: #fef3c7; padding: 20px; border-radius: 8px; margin: 20px 0;">
          <h3>Your order is on the way!</h3>
          <p>Your order has been dispatched and is on its way to you.</p>
          {agent_html}
        </div>"""
    elif status == "delivered":
        extra = """
        <div style="background-color: #d1fae5; padding: 20px; border-radius: 8px; margin: 20px 0;">
          <h3>Order Delivered!</h3>
          <p>Your order has been successfully delivered. We hope you enjoy your purchase!</p>
          <p>Please consider leaving a review for the products you purchased.</p>
        </div>"""
    return {
        "subject": f"Order Update - {order['order_number']}",
        "html": f"""
      <div style="{WRAPPER}">
        <h1 style="color: #7c3aed;">Order Status Update</h1>
        <p>Your order #{order['order_number']} status has been updated to: <strong>{_status_label(status)}</strong></p>
        {extra}
        <a href="{settings.CLIENT_URL}/order/{order.get('id', order.get('_id', ''))}" style="{BUTTON}">View Order Details</a>
      </div>
    """,
    }


def seller_approval(seller: dict) -> dict:
    return {
        "subject": "Your Seller Account Has Been Approved!",
        "html": f"""
      <div style="{WRAPPER}">
        <h1 style="color: #7c3aed;">Congratulations! Your seller account is approved!</h1>
        <p>Hello {seller.get('first_name', '')},</p>
        <p>Great news! Your seller account for <strong>{seller.get('business_name', '')}</strong> has been approved.</p>
        <ul>
          <li>Add and manage your products</li>
          <li>Receive and process orders</li>
          <li>Track your sales and earnings</li>
        </ul>
        <a href="{settings.CLIENT_URL}/seller" style="{BUTTON}">Access Seller Dashboard</a>
      </div>
    """,
    }


def password_reset(data: dict) -> dict:
    user, token = data["user"], data["token"]
    return {
        "subject": "Password Reset Request - EastLink Market",
        "html": f"""
      <div style="{WRAPPER}">
        <h1 style="color: #7c3aed;">Password Reset Request</h1>
        <p>Hello {user.get('first_name', '')},</p>
        <p>You requested a password reset for your EastLink Market account.</p>
        <p>Click the button below to reset your password. This link will expire in
           {settings.RESET_TOKEN_EXPIRE_MINUTES} minutes.</p>
        <a href="{settings.CLIENT_URL}/reset-password?token={token}" style="{BUTTON}">Reset Password</a>
        <p>If you didn't request this password reset, please ignore this email.</p>
      </div>
    """,
    }


def low_stock(data: dict) -> dict:
    product, seller = data["product"], data["seller"]
    return {
        "subject": f"Low Stock Alert - {product['name']}",
        "html": f"""
      <div style="{WRAPPER}">
        <h1 style="color: #f59e0b;">Low Stock Alert</h1>
        <p>Hello {seller.get('first_name', '')},</p>
        <p>Your product <strong>{product['name']}</strong> is running low on stock.</p>
        <div style="background-color: #fef3c7; padding: 20px; border-radius: 8px; margin: 20px 0;">
          <p><strong>Current Stock:</strong> {product.get('stock', 0)} units</p>
          <p><strong>Price:</strong> {format_currency(product.get('price'))}</p>
        </div>
        <a href="{settings.CLIENT_URL}/seller/products" style="{BUTTON}">Manage Products</a>
      </div>
    """,
    }


TEMPLATES: Dict[str, Callable[[dict], dict]] = {
    "welcome": welcome,
    "order_confirmation": order_confirmation,
    "order_status_update": order_status_update,
    "seller_approval": seller_approval,
    "password_reset": password_reset,
    "low_stock": low_stock,
}


# --- Sending ---

def render(template_name: str, data: dict) -> dict:
    template = TEMPLATES.get(template_name)
    if template is None:
        raise ValueError(f"Email template '{template_name}' not found")
    return template(data)


def send_email(to: str, template_name: str, data: dict) -> dict:
    """Render and send one email. Never raises; the outcome is in the result dict."""
    try:
        rendered = render(template_name, data)
        if not settings.SMTP_HOST:
            raise RuntimeError("SMTP is not configured")

        message = MIMEMultipart("alternative")
        message["Subject"] = rendered["subject"]
        message["From"] = f"EastLink Market <{settings.EMAIL_FROM}>"
        message["To"] = to
        message_id = f"<{uuid.uuid4().hex}@eastlinkmarket.et>"
        message["Message-ID"] = message_id
        message.attach(MIMEText(rendered["html"], "html"))

        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
            server.starttls()
            if settings.SMTP_USER:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(settings.EMAIL_FROM, to, message.as_string())

        logger.info(f"Email sent successfully to {to}: {message_id}")
        return {"success": True, "message_id": message_id}
    except Exception as e:
        logger.error(f"Failed to send email to {to}: {e}")
        return {"success": False, "error": str(e)}


def send_bulk_email(recipients: Iterable[str], template_name: str, data: dict) -> List[dict]:
    results = []
    for recipient in recipients:
        result = send_email(recipient, template_name, data)
        results.append({"recipient": recipient, **result})
        # keep the SMTP server from being flooded
        time.sleep(BULK_DELAY_SECONDS)
    return results
