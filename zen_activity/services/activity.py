from __future__ import annotations

"""Activity orchestration: feeds -> hydration -> classification -> reconcile.

``ActivityService`` owns the explorer client, the chain reader and their
caches. The module-level ``build_activity``/``build_stats`` use a lazily
created process-wide service so repeated calls share caches.
"""
from typing import Any, Dict, List, Mapping, Optional, Tuple
import concurrent.futures
import logging
import re
import threading
import time

from zen_activity.config.settings import Settings
from zen_activity.services import explorer as explorer_mod
from zen_activity.services.classifier import Classifier, FeedHints
from zen_activity.services.explorer import ExplorerClient, fetch_paged_account
from zen_activity.services.hydration import Hydrator
from zen_activity.services.reconcile import feed_rows, reconcile
from zen_activity.services.rpc import ChainReader, RpcClient
from zen_activity.services.runtime import CacheService, RetryPolicy
from zen_activity.services.stats import build_stats_from_activity

logger = logging.getLogger(__name__)

ADDRESS_RE = re.compile(r'^0x[a-fA-F0-9]{40}$')

PERIODS = {
    '24h': 24 * 60 * 60,
    '7d': 7 * 24 * 60 * 60,
    '30d': 30 * 24 * 60 * 60,
}
DEFAULT_PERIOD = '7d'


class InvalidQueryError(ValueError):
    """Bad caller input: malformed address or time window."""


def validate_address(address: Any) -> str:
    addr = str(address or '').strip()
    if not ADDRESS_RE.match(addr):
        raise InvalidQueryError('Please provide a valid wallet address (0x...)')
    return addr.lower()


def validate_window(start_ts: Any, end_ts: Any) -> Tuple[int, int]:
    try:
        start, end = int(start_ts), int(end_ts)
    except (TypeError, ValueError):
        raise InvalidQueryError('start and end must be unix timestamps')
    if start < 0 or end < 0:
        raise InvalidQueryError('start and end must not be negative')
    if start > end:
        raise InvalidQueryError('start must not be after end')
    return start, end


def _parse_ts(value: Any, name: str) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        raise InvalidQueryError(f'{name} must be a unix timestamp')


def parse_range(query: Mapping[str, Any], now: Optional[int] = None) -> Tuple[int, int]:
    """Resolve ``period`` (24h/7d/30d/all) or explicit ``start``/``end`` into a window.

    Without either, the window is the last 7 days.
    """
    now = int(time.time()) if now is None else int(now)
    period = str(query.get('period') or '').strip().lower()
    if period == 'all':
        return 0, now
    if period in PERIODS:
        return now - PERIODS[period], now
    start_raw = query.get('start')
    end_raw = query.get('end')
    start = _parse_ts(start_raw, 'start') if start_raw else now - PERIODS[DEFAULT_PERIOD]
    end = _parse_ts(end_raw, 'end') if end_raw else now
    return validate_window(start, end)


class ActivityService:
    """Builds the reconciled activity list and its stats for one wallet/window."""

    def __init__(self, explorer: ExplorerClient, chain: ChainReader, settings: Optional[Settings] = None) -> None:
        self.explorer = explorer
        self.chain = chain
        self.settings = settings or Settings()
        self.hydrator = Hydrator(chain, internal_limit=self.settings.HYDRATE_INT_LIMIT,
                                 token_limit=self.settings.HYDRATE_TOKEN_LIMIT)
        self.classifier = Classifier(chain, max_candidates=self.settings.MAX_MINTDOMAIN_CANDIDATES)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> 'ActivityService':
        cfg = settings or Settings.from_env()
        page_cache = CacheService('feed-pages', ttl=cfg.FEED_CACHE_TTL_SECONDS)
        explorer = ExplorerClient(cfg.EXPLORER_API, timeout=cfg.EXPLORER_TIMEOUT, page_cache=page_cache)
        rpc = RpcClient(cfg.RPC_URL, timeout=cfg.RPC_TIMEOUT)
        retry = RetryPolicy(retries=cfg.RPC_RETRIES, backoff_seconds=cfg.RPC_BACKOFF_SECONDS)
        chain = ChainReader(rpc, retry=retry, tx_concurrency=cfg.TX_CONCURRENCY,
                            receipt_concurrency=cfg.RECEIPT_CONCURRENCY)
        return cls(explorer, chain, cfg)

    def fetch_feeds(self, address: str, start_ts: int, end_ts: int) -> Dict[str, List[Dict[str, Any]]]:
        """Fetch all five feeds concurrently; a failed feed comes back empty."""
        cfg = self.settings
        feeds: Dict[str, List[Dict[str, Any]]] = {}
        with concurrent.futures.ThreadPoolExecutor(max_workers=len(explorer_mod.FEED_ACTIONS)) as ex:
            future_map = {
                ex.submit(fetch_paged_account, self.explorer, action, address, start_ts, end_ts,
                          cfg.FEED_PAGE_SIZE, cfg.FEED_MAX_PAGES, cfg.FEED_ABS_MAX_PAGES): action
                for action in explorer_mod.FEED_ACTIONS
            }
            for fut in concurrent.futures.as_completed(future_map):
                action = future_map[fut]
                try:
                    feeds[action] = fut.result()
                except Exception as e:
                    logger.warning('%s feed failed for %s: %s', action, address, e)
                    feeds[action] = []
        return feeds

    def build_activity(self, address: str, start_ts: int, end_ts: int) -> List[Dict[str, Any]]:
        address = validate_address(address)
        start_ts, end_ts = validate_window(start_ts, end_ts)
        started = time.monotonic()

        feeds = self.fetch_feeds(address, start_ts, end_ts)
        externals = feeds[explorer_mod.ACTION_EXTERNAL]
        internals = feeds[explorer_mod.ACTION_INTERNAL]
        erc20 = feeds[explorer_mod.ACTION_ERC20]
        erc721 = feeds[explorer_mod.ACTION_ERC721]
        erc1155 = feeds[explorer_mod.ACTION_ERC1155]

        externals = self.hydrator.hydrate(externals, internals, erc20, erc721, erc1155,
                                          include_internals=self.settings.HYDRATE_INTERNALS,
                                          include_tokens=self.settings.HYDRATE_TOKENS)
        hints = FeedHints.build(address, internals, erc721, erc1155)
        native_rows = self.classifier.classify(externals, hints)

        activity = reconcile(native_rows, feed_rows(address, internals, erc20, erc721, erc1155))
        logger.info('activity for %s [%d, %d]: %d rows in %.2fs', address, start_ts, end_ts,
                    len(activity), time.monotonic() - started)
        return activity

    def build_stats(self, address: str, start_ts: int, end_ts: int) -> Dict[str, int]:
        # Derived from the display list so counters never drift from it
        return build_stats_from_activity(self.build_activity(address, start_ts, end_ts))


_default_service: Optional[ActivityService] = None
_default_lock = threading.Lock()


def get_service() -> ActivityService:
    global _default_service
    with _default_lock:
        if _default_service is None:
            _default_service = ActivityService.from_settings()
        return _default_service


def set_service(service: Optional[ActivityService]) -> None:
    """Replace (or with ``None`` reset) the process-wide default service."""
    global _default_service
    with _default_lock:
        _default_service = service


def build_activity(address: str, start_ts: int, end_ts: int) -> List[Dict[str, Any]]:
    return get_service().build_activity(address, start_ts, end_ts)


def build_stats(address: str, start_ts: int, end_ts: int) -> Dict[str, int]:
    return get_service().build_stats(address, start_ts, end_ts)
