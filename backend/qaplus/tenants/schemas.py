from pydantic import BaseModel, ConfigDict


class PlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    max_chatbots: int | None = None
    max_faqs_per_bot: int | None = None
    max_queries_per_month: int | None = None
    enable_analytics: bool
    enable_api: bool
    enable_export: bool
    price_usd_monthly: float
