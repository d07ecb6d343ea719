# eastlink/services/analytics_service.py
# Dashboard and statistics figures, computed from plain queries.
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List

from pymongo import DESCENDING

from eastlink.core.config import settings
from eastlink.services.orders_service import populate_order
from eastlink.utils.serializers import populate, utcnow

PERIODS = {"7d": 7, "30d": 30, "90d": 90}


def period_start(period: str) -> datetime:
    return utcnow() - timedelta(days=PERIODS.get(period, 30))


def status_counts(orders: Iterable[dict]) -> List[dict]:
    counts = Counter(o.get("order_status") for o in orders)
    return [{"status": status, "count": count} for status, count in counts.most_common()]


def _day(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def seller_lines(db, seller_id, since: datetime = None):
    """Yield ``(order, item)`` for every live order line sold by ``seller_id``."""
    query = {"items.seller": seller_id, "order_status": {"$nin": ["cancelled", "rejected"]}}
    if since:
        query["created_at"] = {"$gte": since}
    for order in db.orders.find(query):
        for item in order.get("items", []):
            if item.get("seller") == seller_id:
                yield order, item


def seller_totals(db, seller_id) -> dict:
    orders, revenue, sales = 0, 0.0, 0
    for _, item in seller_lines(db, seller_id):
        orders += 1
        revenue += item["price"] * item["quantity"]
        sales += item["quantity"]
    return {"total_orders": orders, "total_revenue": round(revenue, 2), "total_sales": sales}


def seller_analytics(db, seller_id, period: str = "30d") -> dict:
    daily: Dict[str, dict] = defaultdict(lambda: {"sales": 0, "revenue": 0.0})
    for order, item in seller_lines(db, seller_id, period_start(period)):
        bucket = daily[_day(order["created_at"])]
        bucket["sales"] += item["quantity"]
        bucket["revenue"] += item["price"] * item["quantity"]

    per_product: Dict = defaultdict(lambda: {"total_sales": 0, "total_revenue": 0.0})
    for _, item in seller_lines(db, seller_id):
        stats = per_product[item["product"]]
        stats["total_sales"] += item["quantity"]
        stats["total_revenue"] += item["price"] * item["quantity"]

    products = {p["_id"]: p for p in db.products.find(
        {"_id": {"$in": list(per_product)}}, {"name": 1, "view_count": 1}
    )}
    performance = [
        {
            "product_id": pid,
            "name": products.get(pid, {}).get("name"),
            "view_count": products.get(pid, {}).get("view_count", 0),
            "total_sales": stats["total_sales"],
            "total_revenue": round(stats["total_revenue"], 2),
        }
        for pid, stats in per_product.items()
    ]
    performance.sort(key=lambda p: p["total_sales"], reverse=True)

    return {
        "sales_data": [{"date": day, **values} for day, values in sorted(daily.items())],
        "product_performance": performance[:10],
        "period": period,
    }


# --- Dashboards ---

def customer_dashboard(db, user: dict) -> dict:
    recent = list(db.orders.find({"customer": user["_id"]}).sort("created_at", DESCENDING).limit(5))
    populate(db, recent, "product", "products", {"name": 1, "price": 1, "images": 1}, many_path="items")
    return {
        "recent_orders": recent,
        "order_stats": status_counts(db.orders.find({"customer": user["_id"]}, {"order_status": 1})),
    }


def seller_dashboard(db, user: dict) -> dict:
    products = list(db.products.find({"seller": user["_id"]}).sort("created_at", DESCENDING))
    recent_orders = list(
        db.orders.find({"items.seller": user["_id"]}).sort("created_at", DESCENDING).limit(5)
    )
    populate_order(db, recent_orders)
    totals = seller_totals(db, user["_id"])
    return {
        "recent_products": products[:5],
        "recent_orders": recent_orders,
        "product_stats": {
            "total_products": len(products),
            "active_products": sum(1 for p in products if p.get("is_active")),
            "total_views": sum(p.get("view_count", 0) for p in products),
            "total_sales": sum(p.get("sales_count", 0) for p in products),
            "low_stock": sum(1 for p in products if p.get("stock", 0) <= settings.LOW_STOCK_THRESHOLD),
        },
        "revenue_stats": {"total_revenue": totals["total_revenue"], "total_orders": totals["total_orders"]},
    }


def agent_dashboard(db, user: dict) -> dict:
    recent = list(db.orders.find({"delivery_agent": user["_id"]}).sort("created_at", DESCENDING).limit(5))
    populate(db, recent, "customer", "users", {"first_name": 1, "last_name": 1, "phone": 1})
    return {
        "recent_deliveries": recent,
        "delivery_stats": status_counts(db.orders.find({"delivery_agent": user["_id"]}, {"order_status": 1})),
        "earnings": user.get("earnings", {"total": 0, "deliveries": 0}),
    }


def admin_dashboard(db, user: dict) -> dict:
    return {
        "platform": {
            "users": db.users.count_documents({}),
            "products": db.products.count_documents({}),
            "orders": db.orders.count_documents({}),
            "pending_approvals": db.users.count_documents(
                {"role": {"$in": ["seller", "delivery_agent"]}, "is_approved": False}
            ),
        }
    }


DASHBOARDS = {
    "customer": customer_dashboard,
    "seller": seller_dashboard,
    "delivery_agent": agent_dashboard,
    "admin": admin_dashboard,
}


# --- Delivery ---

def delivery_stats(db, agent_id, period: str = "30d") -> dict:
    orders = list(db.orders.find({"delivery_agent": agent_id, "created_at": {"$gte": period_start(period)}}))
    daily: Dict[str, dict] = defaultdict(lambda: {"deliveries": 0, "earnings": 0.0})
    for order in orders:
        bucket = daily[_day(order["created_at"])]
        bucket["deliveries"] += 1
        bucket["earnings"] += order.get("delivery_fee", 0) * settings.AGENT_FEE_SHARE

    delivered = [o for o in orders if o.get("order_status") == "delivered"]
    durations = [
        (o["actual_delivery_time"] - o["created_at"]).total_seconds() / 60
        for o in delivered if o.get("actual_delivery_time")
    ]
    return {
        "overview": {
            "total_deliveries": len(orders),
            "completed_deliveries": len(delivered),
            "total_earnings": round(sum(o.get("delivery_fee", 0) for o in delivered) * settings.AGENT_FEE_SHARE, 2),
            "avg_delivery_minutes": round(sum(durations) / len(durations), 1) if durations else 0,
        },
        "status_breakdown": status_counts(orders),
        "daily_stats": [{"date": day, **values} for day, values in sorted(daily.items())],
        "period": period,
    }


def delivery_earnings(db, agent_id, period: str = "30d") -> dict:
    share = settings.AGENT_FEE_SHARE
    daily: Dict[str, dict] = defaultdict(lambda: {"earnings": 0.0, "deliveries": 0})
    total, count = 0.0, 0
    since = period_start(period)
    for order in db.orders.find({"delivery_agent": agent_id, "order_status": "delivered"}):
        earned = order.get("delivery_fee", 0) * share
        total += earned
        count += 1
        if order["created_at"] >= since:
            bucket = daily[_day(order["created_at"])]
            bucket["earnings"] += earned
            bucket["deliveries"] += 1
    return {
        "daily_earnings": [{"date": day, **values} for day, values in sorted(daily.items())],
        "total_earnings": {"total": round(total, 2), "total_deliveries": count},
        "period": period,
    }


# --- Admin ---

def _month_key(value: datetime) -> str:
    return value.strftime("%Y-%m")


def platform_stats(db) -> dict:
    users = list(db.users.find({}, {"role": 1, "created_at": 1}))
    orders = list(db.orders.find({}, {"final_amount": 1, "order_status": 1, "created_at": 1,
                                      "delivery_agent": 1, "items": 1}))
    now = utcnow()

    revenue = sum(o.get("final_amount", 0) for o in orders)
    year_ago = now - timedelta(days=365)
    monthly: Dict[str, dict] = defaultdict(lambda: {"revenue": 0.0, "orders": 0})
    for order in orders:
        if order.get("created_at") and order["created_at"] >= year_ago:
            bucket = monthly[_month_key(order["created_at"])]
            bucket["revenue"] += order.get("final_amount", 0)
            bucket["orders"] += 1

    top_products = list(
        db.products.find({"is_active": True}, {"name": 1, "price": 1, "sales_count": 1, "ratings": 1, "seller": 1})
        .sort("sales_count", DESCENDING).limit(10)
    )
    populate(db, top_products, "seller", "users", {"business_name": 1, "first_name": 1, "last_name": 1})

    per_seller: Dict = defaultdict(lambda: {"total_orders": 0, "total_revenue": 0.0})
    for order in orders:
        for item in order.get("items", []):
            stats = per_seller[item["seller"]]
            stats["total_orders"] += 1
            stats["total_revenue"] += item["price"] * item["quantity"]
    top_sellers = sorted(
        ({"seller": sid, **stats} for sid, stats in per_seller.items()),
        key=lambda s: s["total_orders"], reverse=True,
    )[:10]
    populate(db, top_sellers, "seller", "users",
             {"business_name": 1, "first_name": 1, "last_name": 1, "email": 1})

    assigned = [o for o in orders if o.get("delivery_agent")]
    delivered = sum(1 for o in assigned if o.get("order_status") == "delivered")
    success_rate = round(delivered / len(assigned) * 100, 2) if assigned else 0

    return {
        "user_stats": [{"role": r, "count": c} for r, c in Counter(u.get("role") for u in users).most_common()],
        "order_stats": {
            "total_orders": len(orders),
            "total_revenue": round(revenue, 2),
            "avg_order_value": round(revenue / len(orders), 2) if orders else 0,
        },
        "order_status_stats": status_counts(orders),
        "monthly_revenue": [{"month": m, **v} for m, v in sorted(monthly.items())],
        "top_products": top_products,
        "top_sellers": top_sellers,
        "new_users": {
            "last_7_days": sum(1 for u in users if u.get("created_at") and u["created_at"] >= now - timedelta(days=7)),
            "last_30_days": sum(1 for u in users if u.get("created_at") and u["created_at"] >= now - timedelta(days=30)),
        },
        "delivery_success_rate": success_rate,
    }
