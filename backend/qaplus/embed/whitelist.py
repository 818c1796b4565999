import ipaddress
import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

from sqlalchemy.orm import Session

from qaplus.chatbots.models import Chatbot
from qaplus.core.config import settings
from qaplus.core.errors import WHITELIST_MESSAGES, AccessDenied, ChatbotNotFound
from qaplus.core.lookup import with_lookup_retry

logger = logging.getLogger(__name__)

LOCALHOST_NAMES = {"localhost", "0.0.0.0"}

MISSING_ORIGIN = "MissingOrigin"
WHITELIST_NOT_CONFIGURED = "WhitelistNotConfigured"
DOMAIN_FORBIDDEN = "DomainForbidden"


@dataclass
class OriginDecision:
    allowed: bool
    reason: str | None = None
    hostname: str | None = None
    chatbot: Chatbot | None = None

    def raise_for_denial(self) -> None:
        if not self.allowed:
            raise AccessDenied(WHITELIST_MESSAGES[self.reason], code=self.reason)


def _hostname(value: str) -> str | None:
    if "://" not in value:
        value = "//" + value
    try:
        host = urlsplit(value).hostname
    except ValueError:
        return None
    host = (host or "").rstrip(".")
    return host or None


def extract_hostname(origin: str | None, referer: str | None) -> str | None:
    """Hostname from Origin, falling back to Referer (some iframes omit Origin)."""
    for raw in (origin, referer):
        value = (raw or "").strip()
        # Sandboxed frames send the literal "null" origin.
        if not value or value.lower() == "null":
            continue
        host = _hostname(value)
        if host:
            return host.lower()
    return None


def normalize_domain(entry: str) -> str | None:
    value = (entry or "").strip().lower()
    wildcard = value.startswith("*.")
    if wildcard:
        value = value[2:]
    if not value:
        return None
    host = _hostname(value)
    if not host:
        return None
    return f"*.{host}" if wildcard else host


def normalize_whitelist(entries: list[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for entry in entries:
        val = normalize_domain(entry)
        if not val:
            continue
        if val not in seen:
            seen.add(val)
            out.append(val)
    return out


def is_localhost(host: str) -> bool:
    if host in LOCALHOST_NAMES or host.endswith(".localhost"):
        return True
    # Only literal loopback addresses; "127.evil.com" is an ordinary DNS name.
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def host_matches(host: str, entry: str) -> bool:
    if entry.startswith("*."):
        base = entry[2:]
        return host == base or host.endswith("." + base)
    return host == entry


def evaluate_origin(
    whitelist: list[str],
    origin: str | None,
    referer: str | None,
    *,
    allow_localhost: bool = True,
) -> OriginDecision:
    host = extract_hostname(origin, referer)
    if not host:
        return OriginDecision(allowed=False, reason=MISSING_ORIGIN)

    entries = normalize_whitelist(whitelist or [])
    if not entries:
        # Unconfigured whitelist fails closed, localhost included.
        return OriginDecision(allowed=False, reason=WHITELIST_NOT_CONFIGURED, hostname=host)

    if allow_localhost and is_localhost(host):
        return OriginDecision(allowed=True, hostname=host)

    if any(host_matches(host, entry) for entry in entries):
        return OriginDecision(allowed=True, hostname=host)

    return OriginDecision(allowed=False, reason=DOMAIN_FORBIDDEN, hostname=host)


class DomainWhitelistGuard:
    def __init__(self, db: Session, *, allow_localhost: bool | None = None):
        self.db = db
        self.allow_localhost = (
            settings.ALLOW_LOCALHOST_ORIGINS if allow_localhost is None else allow_localhost
        )

    def check_origin(
        self,
        chatbot_id: str,
        origin: str | None,
        referer: str | None = None,
    ) -> OriginDecision:
        if not extract_hostname(origin, referer):
            logger.info("Origin denied: chatbot=%s reason=%s", chatbot_id, MISSING_ORIGIN)
            return OriginDecision(allowed=False, reason=MISSING_ORIGIN)

        chatbot = with_lookup_retry(self.db, "chatbot", lambda: self.db.get(Chatbot, chatbot_id))
        if chatbot is None:
            raise ChatbotNotFound()

        decision = evaluate_origin(
            list(chatbot.domain_whitelist or []),
            origin,
            referer,
            allow_localhost=self.allow_localhost,
        )
        decision.chatbot = chatbot
        if not decision.allowed:
            logger.info(
                "Origin denied: chatbot=%s host=%s reason=%s",
                chatbot_id,
                decision.hostname,
                decision.reason,
            )
        return decision
