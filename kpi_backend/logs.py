import json, logging, time, datetime as dt
from typing import Optional, Tuple, List, Dict, Any

from .client import LocalClient
from .domain.query import QueryResult
from .domain.records import AUDIT_LOGS
from .services.utils import unwrap

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200


class LogContext:
    """Collects one audit event and writes it as a single audit_logs row."""

    def __init__(self, client: LocalClient, action: str, user: str = "Sistema"):
        self.client = client
        self.action = action
        self.user = user
        self.start = time.perf_counter()
        self.details: Optional[str] = None
        self.before = None
        self.after = None
        self.payload = None

    def set_details(self, text: str): self.details = text
    def set_before(self, obj): self.before = obj
    def set_after(self, obj): self.after = obj
    def set_payload(self, obj): self.payload = obj

    def _render_details(self, result: str, err: Optional[str]) -> str:
        parts = []
        if self.details:
            parts.append(self.details)
        if self.before is not None or self.after is not None:
            parts.append(f"before={json.dumps(self.before, ensure_ascii=False, default=str)} "
                         f"after={json.dumps(self.after, ensure_ascii=False, default=str)}")
        elif self.payload is not None:
            parts.append(f"payload={json.dumps(self.payload, ensure_ascii=False, default=str)}")
        if result != "OK":
            parts.append(f"[{result}] {err or ''}".strip())
        return " | ".join(parts)

    async def write(self, result: str = "OK", err: Optional[str] = None) -> QueryResult:
        elapsed_ms = int((time.perf_counter() - self.start) * 1000)
        rec = {
            "action": self.action,
            "user_name": self.user,
            "details": self._render_details(result, err),
            "created_at": dt.datetime.now(dt.timezone.utc).isoformat(),
        }
        res = await self.client.table(AUDIT_LOGS).insert(rec)
        if res.error:
            logger.warning("audit write failed for %s: %s", self.action, res.error)
        else:
            logger.debug("audit %s by %s (%d ms)", self.action, self.user, elapsed_ms)
        return res


async def search_logs(
    client: LocalClient,
    action: str | None = None,
    user_name: str | None = None,
    page: int = 1,
    size: int = 20,
) -> Tuple[int, List[Dict[str, Any]]]:
    q = client.table(AUDIT_LOGS).select()
    if action:
        q = q.eq("action", action)
    if user_name:
        q = q.eq("user_name", user_name)
    rows = unwrap(await q.order("created_at", ascending=False))
    page = max(page, 1)
    size = max(1, min(size, MAX_PAGE_SIZE))
    start = (page - 1) * size
    return len(rows), rows[start:start + size]
