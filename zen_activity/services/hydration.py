from __future__ import annotations

"""Recover external transactions missing from the ``txlist`` feed.

The explorer's external feed sometimes omits transactions that do show up
in the internal or token feeds. Those hashes are fetched directly over RPC
and turned into minimal external records so they get classified like any
other transaction.
"""
from typing import Any, Dict, Iterable, List
import logging

from zen_activity.services.explorer import item_hash, item_timestamp
from zen_activity.services.rows import parse_raw_amount
from zen_activity.services.rpc import ChainReader

logger = logging.getLogger(__name__)


def synthesize_external(tx: Dict[str, Any], timestamp: int) -> Dict[str, Any]:
    """Build a minimal explorer-shaped external record from an RPC transaction."""
    return {
        'hash': tx['hash'],
        'blockNumber': str(tx.get('blockNumber') or 0),
        'timeStamp': str(timestamp) if timestamp else None,
        'from': tx.get('from') or '',
        'to': tx.get('to'),
        'value': str(tx.get('value') or 0),
        'input': tx.get('input') or '0x',
        'functionName': '',
    }


class Hydrator:
    def __init__(self, chain: ChainReader, internal_limit: int = 200, token_limit: int = 350) -> None:
        self.chain = chain
        self.internal_limit = internal_limit
        self.token_limit = token_limit

    def _fetch(self, timestamps: Dict[str, int], source: str) -> List[Dict[str, Any]]:
        if not timestamps:
            return []
        txs = self.chain.get_transactions(list(timestamps))
        merged = []
        for h, ts in timestamps.items():
            tx = txs.get(h)
            if not tx:
                continue
            merged.append(synthesize_external(tx, ts))
        logger.info('hydrated %d of %d transactions missing from txlist (%s)', len(merged), len(timestamps), source)
        return merged

    def from_internals(self, externals: List[Dict[str, Any]], internals: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        known = {item_hash(t) for t in externals}
        missing: Dict[str, int] = {}
        for it in internals or []:
            h = item_hash(it)
            if not h or h in known:
                continue
            missing[h] = item_timestamp(it)
        limited = dict(list(missing.items())[:self.internal_limit])
        return externals + self._fetch(limited, 'internal')

    def from_token_feeds(self, externals: List[Dict[str, Any]], *feeds: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        known = {item_hash(t) for t in externals}
        missing: Dict[str, int] = {}
        for feed in feeds:
            for item in feed or []:
                h = item_hash(item)
                if not h or h in known:
                    continue
                ts = item_timestamp(item)
                current = missing.get(h)
                # Keep the earliest non-zero timestamp seen for the hash
                if current is None or (ts and (not current or ts < current)):
                    missing[h] = ts
        limited = dict(list(missing.items())[:self.token_limit])
        return externals + self._fetch(limited, 'token')

    def backfill_timestamps(self, externals: List[Dict[str, Any]]) -> None:
        """Fill ``timeStamp`` from the block header where the feeds had none."""
        pending = [t for t in externals if not item_timestamp(t) and parse_raw_amount(t.get('blockNumber'))]
        if not pending:
            return
        stamps = self.chain.get_block_timestamps({parse_raw_amount(t.get('blockNumber')) for t in pending})
        for t in pending:
            ts = stamps.get(parse_raw_amount(t.get('blockNumber')))
            if ts:
                t['timeStamp'] = str(ts)

    def fill_missing_inputs(self, externals: List[Dict[str, Any]]) -> None:
        """Fetch calldata for feed rows that came without ``input``."""
        missing = [item_hash(t) for t in externals if not t.get('input') and item_hash(t)]
        if not missing:
            return
        txs = self.chain.get_transactions(missing)
        for t in externals:
            if t.get('input'):
                continue
            tx = txs.get(item_hash(t))
            if tx and tx.get('input'):
                t['input'] = tx['input']

    def hydrate(self, externals: List[Dict[str, Any]], internals: List[Dict[str, Any]], erc20: List[Dict[str, Any]],
                erc721: List[Dict[str, Any]], erc1155: List[Dict[str, Any]], include_internals: bool = True,
                include_tokens: bool = True) -> List[Dict[str, Any]]:
        # Copies: feed pages are shared through the page cache
        out = [dict(t) for t in externals]
        if include_internals:
            out = self.from_internals(out, internals)
        if include_tokens:
            out = self.from_token_feeds(out, erc20, erc721, erc1155)
        self.fill_missing_inputs(out)
        self.backfill_timestamps(out)
        return out
