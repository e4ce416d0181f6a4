from __future__ import annotations

"""Explorer (Etherscan-compatible ``module=account``) feed adapter.

``ExplorerClient.fetch_page`` fetches one page of one feed; pages are cached
for a short TTL. ``fetch_paged_account`` walks pages newest-first until the
window start is reached, growing its page budget while the feed keeps
producing in-window rows.
"""
from typing import Any, Dict, List, Optional
import logging

import requests

from zen_activity.services.runtime import CacheService

logger = logging.getLogger(__name__)

# Feed kinds -> explorer action names
ACTION_EXTERNAL = 'txlist'
ACTION_INTERNAL = 'txlistinternal'
ACTION_ERC20 = 'tokentx'
ACTION_ERC721 = 'tokennfttx'
ACTION_ERC1155 = 'token1155tx'

FEED_ACTIONS = (ACTION_EXTERNAL, ACTION_INTERNAL, ACTION_ERC20, ACTION_ERC721, ACTION_ERC1155)


def item_hash(item: Dict[str, Any]) -> str:
    return str(item.get('hash') or item.get('transactionHash') or '').lower()


def item_timestamp(item: Dict[str, Any]) -> int:
    try:
        return max(0, int(item.get('timeStamp') or 0))
    except (TypeError, ValueError, OverflowError):
        return 0


def _item_key(item: Dict[str, Any]) -> tuple:
    # Several internal traces / token transfers may share a tx hash
    sub = item.get('traceId') or item.get('logIndex') or item.get('tokenID') or ''
    return (item_hash(item), str(sub))


class ExplorerClient:
    """Thin ``requests`` wrapper around the explorer account API."""

    def __init__(self, api_base: str, timeout: float = 20.0, page_cache: Optional[CacheService] = None,
                 session: Optional[requests.Session] = None) -> None:
        self.api_base = api_base
        self.timeout = timeout
        self.page_cache = page_cache if page_cache is not None else CacheService('feed-pages', ttl=25.0)
        self._http = session or requests

    def _get(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        headers = {'Accept': 'application/json'}
        r = self._http.get(self.api_base, params=params, timeout=self.timeout, headers=headers)
        r.raise_for_status()
        d = r.json()
        result = d.get('result') if isinstance(d, dict) else None
        # Explorers answer "No transactions found" with a string result
        if not isinstance(result, list):
            return []
        return [x for x in result if isinstance(x, dict)]

    def fetch_page(self, action: str, address: str, page: int, page_size: int) -> List[Dict[str, Any]]:
        """Fetch one page, newest first. Raises on HTTP/timeout errors."""
        params = {
            'module': 'account',
            'action': action,
            'address': address,
            'page': page,
            'offset': page_size,
            'sort': 'desc',
        }
        key = (action, address.lower(), page, page_size)
        return self.page_cache.get_or_populate(key, lambda: self._get(params))


def fetch_paged_account(explorer: ExplorerClient, action: str, address: str, start_ts: int, end_ts: int,
                        page_size: int = 100, max_pages: int = 20, abs_max_pages: int = 300,
                        dynamic: bool = True) -> List[Dict[str, Any]]:
    """Collect one feed for ``address`` within ``[start_ts, end_ts]``.

    A failed page ends pagination for this feed; rows gathered so far are
    kept. Rows without a timestamp are kept rather than dropped.
    """
    if start_ts == 0:
        max_pages = max(max_pages, 250)

    collected: List[Dict[str, Any]] = []
    page = 1
    while True:
        if page > max_pages:
            if dynamic and max_pages < abs_max_pages:
                max_pages = min(abs_max_pages, max_pages + 20)
            else:
                logger.info('%s for %s stopped at page budget %d', action, address, max_pages)
                break
        try:
            items = explorer.fetch_page(action, address, page, page_size)
        except (requests.RequestException, ValueError) as e:
            logger.warning('%s page %d for %s failed, keeping %d rows: %s', action, page, address, len(collected), e)
            break
        if not items:
            break
        collected.extend(items)

        oldest_on_page = min(item_timestamp(x) for x in items)
        if oldest_on_page <= start_ts or len(items) < page_size:
            break
        page += 1

    out: List[Dict[str, Any]] = []
    seen = set()
    for item in collected:
        ts = item_timestamp(item)
        if ts and not (start_ts <= ts <= end_ts):
            continue
        key = _item_key(item)
        if not key[0] or key in seen:
            continue
        seen.add(key)
        out.append(item)
    logger.debug('%s for %s: %d rows in window', action, address, len(out))
    return out
