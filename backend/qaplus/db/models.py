from qaplus.tenants.models import Plan, Tenant  # noqa: F401
from qaplus.chatbots.models import Chatbot  # noqa: F401
from qaplus.sessions.models import WidgetSession  # noqa: F401
from qaplus.usage.models import QueryLog  # noqa: F401
