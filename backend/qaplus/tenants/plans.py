from sqlalchemy.orm import Session

from qaplus.tenants.models import Plan

DEFAULT_PLANS = [
    {
        "code": "free",
        "name": "Free",
        "max_chatbots": 1,
        "max_faqs_per_bot": 50,
        "max_queries_per_month": 1000,
        "enable_analytics": False,
        "enable_api": False,
        "enable_export": False,
        "price_usd_monthly": 0,
    },
    {
        "code": "starter",
        "name": "Starter",
        "max_chatbots": 3,
        "max_faqs_per_bot": 200,
        "max_queries_per_month": 5000,
        "enable_analytics": True,
        "enable_api": False,
        "enable_export": True,
        "price_usd_monthly": 29.99,
    },
    {
        "code": "pro",
        "name": "Pro",
        "max_chatbots": 10,
        "max_faqs_per_bot": 1000,
        "max_queries_per_month": 20000,
        "enable_analytics": True,
        "enable_api": True,
        "enable_export": True,
        "price_usd_monthly": 99.99,
    },
    {
        "code": "enterprise",
        "name": "Enterprise",
        "max_chatbots": None,
        "max_faqs_per_bot": None,
        "max_queries_per_month": None,
        "enable_analytics": True,
        "enable_api": True,
        "enable_export": True,
        "price_usd_monthly": 299.99,
    },
]


def seed_plans(db: Session) -> int:
    """Insert missing catalog rows. Existing rows are left untouched."""
    created = 0
    for spec in DEFAULT_PLANS:
        if db.get(Plan, spec["code"]) is None:
            db.add(Plan(**spec))
            created += 1
    if created:
        db.commit()
    return created
