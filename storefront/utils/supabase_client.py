from typing import Any, Dict, Iterable, List, Optional

import httpx

from storefront.core.errors import CatalogFetchError
from storefront.utils.logger import get_logger

logger = get_logger("utils.supabase_client")

_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "in", "is", "not")


def in_filter(values: Iterable[Any]) -> str:
    """Build a PostgREST `in.(...)` filter value."""
    quoted = []
    for v in values:
        text = str(v)
        if any(ch in text for ch in ',()"'):
            text = '"' + text.replace('"', '\\"') + '"'
        quoted.append(text)
    return f"in.({','.join(quoted)})"


class SupabaseClient:
    """
    Lightweight async client for the Supabase REST (PostgREST) API.

    Read errors are raised as CatalogFetchError; callers decide whether
    a failed read aborts their unit of work.
    """
    def __init__(
        self,
        url: str,
        key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        self.client = httpx.AsyncClient(
            base_url=url, headers=self.headers, timeout=timeout, transport=transport
        )

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        select: str = "*",
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Query a Supabase table.
        """
        params = {"select": select}
        if filters:
            for key, val in filters.items():
                if isinstance(val, str) and "." in val and val.split(".")[0] in _OPERATORS:
                    params[key] = val
                elif isinstance(val, bool):
                    params[key] = f"eq.{str(val).lower()}"
                else:
                    params[key] = f"eq.{val}"

        if limit:
            params["limit"] = str(limit)

        if order:
            params["order"] = order

        try:
            response = await self.client.get(f"/rest/v1/{table}", params=params)
            response.raise_for_status()
            rows = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Supabase select failed on {table}: {e}")
            raise CatalogFetchError(f"Supabase select failed on {table}: {e}") from e

        if not isinstance(rows, list):
            raise CatalogFetchError(f"Unexpected response shape from {table}")
        return rows

    async def aclose(self) -> None:
        await self.client.aclose()
