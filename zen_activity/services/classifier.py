from __future__ import annotations

"""Transaction classifier.

Tier 1 labels every external transaction from feed data alone (selectors,
function names, address allow-lists, token-feed mint hints). Tier 2 fetches
receipts only for two bounded candidate sets: plain value transfers that
still need confirming as ``native_send``, and unknown outgoing contract calls
that may be NFT or domain mints. Tier 1 outcomes other than the provisional
``other`` are never changed by Tier 2.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
import logging
import re

from zen_activity.config import signatures
from zen_activity.services import categories, rows
from zen_activity.services.explorer import item_hash
from zen_activity.services.rpc import ChainReader

logger = logging.getLogger(__name__)

CANDIDATE_NATIVE_SEND = 'native_send'
CANDIDATE_MINT_SCAN = 'mint_scan'

_EMPTY_INPUT_RE = re.compile(r'^0x0*$', re.IGNORECASE)


def input_selector(tx: Dict[str, Any]) -> str:
    return str(tx.get('input') or tx.get('methodId') or '0x')[:10].lower()


def function_name(tx: Dict[str, Any]) -> str:
    """Lowercase function name without its argument list ('' when absent)."""
    raw = tx.get('functionName') or ''
    if not isinstance(raw, str):
        return ''
    return raw.split('(')[0].strip().lower()


def is_empty_input(data: Optional[str]) -> bool:
    return bool(_EMPTY_INPUT_RE.match(data or '0x'))


def is_precompile(address: Optional[str]) -> bool:
    return str(address or '').lower().startswith(signatures.PRECOMPILE_PREFIX)


def is_failed_by_feed(tx: Dict[str, Any]) -> bool:
    err = str(tx.get('isError') or '').lower()
    status = str(tx.get('txreceipt_status') or tx.get('status') or '').lower()
    return err == '1' or status in ('0', '0x0', 'reverted')


def is_failed_receipt(rcpt: Dict[str, Any]) -> bool:
    return rcpt.get('status') == 0


def _matches(tx: Dict[str, Any], selectors: Iterable[str], fragments: Iterable[str] = (), exact: Iterable[str] = ()) -> bool:
    fn = function_name(tx)
    if fn and (fn in exact or any(f in fn for f in fragments)):
        return True
    return input_selector(tx) in selectors


def is_stake_call(tx: Dict[str, Any]) -> bool:
    return _matches(tx, signatures.STAKE_SELECTORS, signatures.STAKE_NAME_FRAGMENTS)


def is_swap_call(tx: Dict[str, Any]) -> bool:
    return _matches(tx, signatures.SWAP_SELECTORS, signatures.SWAP_NAME_FRAGMENTS)


def is_add_liquidity_call(tx: Dict[str, Any]) -> bool:
    return _matches(tx, signatures.ADD_LIQUIDITY_SELECTORS, signatures.ADD_LIQUIDITY_NAME_FRAGMENTS)


def is_remove_liquidity_call(tx: Dict[str, Any]) -> bool:
    return _matches(tx, signatures.REMOVE_LIQUIDITY_SELECTORS, signatures.REMOVE_LIQUIDITY_NAME_FRAGMENTS)


def is_gm_call(tx: Dict[str, Any]) -> bool:
    return _matches(tx, signatures.GM_SELECTORS, ('saygm',), ('gm',))


def is_approve_call(tx: Dict[str, Any]) -> bool:
    return _matches(tx, signatures.APPROVE_SELECTORS, signatures.APPROVE_NAME_FRAGMENTS, ('approve',))


def is_native_send_candidate(tx: Dict[str, Any], address: str) -> bool:
    to_addr = str(tx.get('to') or '').lower()
    if str(tx.get('from') or '').lower() != address:
        return False
    if not to_addr or is_precompile(to_addr):
        return False
    if rows.parse_raw_amount(tx.get('value')) <= 0:
        return False
    return is_empty_input(tx.get('input'))


def is_domain_by_sig_or_event(tx: Dict[str, Any], rcpt: Optional[Dict[str, Any]]) -> bool:
    fn = function_name(tx)
    if fn and any(f in fn for f in signatures.DOMAIN_NAME_FRAGMENTS):
        return True
    if input_selector(tx) in signatures.DOMAIN_SELECTORS:
        return True
    for lg in (rcpt or {}).get('logs') or []:
        topics = lg.get('topics') or []
        if topics and str(topics[0]).lower() in signatures.DOMAIN_TOPICS:
            return True
    return False


def looks_like_register(tx: Dict[str, Any]) -> bool:
    return 'register' in function_name(tx) or input_selector(tx) in signatures.DOMAIN_SELECTORS


def address_from_topic(t: Any) -> Optional[str]:
    t = str(t or '').lower()
    if len(t) < 66:
        return None
    return '0x' + t[26:66]


def minted_contracts(rcpt: Dict[str, Any], address: str) -> Set[str]:
    """Contracts that emitted an NFT transfer from the zero address to ``address``."""
    found: Set[str] = set()
    zero = signatures.ZERO_ADDRESS
    for lg in rcpt.get('logs') or []:
        topics = [str(t or '').lower() for t in (lg.get('topics') or [])]
        if not topics:
            continue
        t0 = topics[0]
        if t0 == signatures.TOPIC_ERC721_TRANSFER:
            # ERC-20 Transfer shares this topic but has only 3 topics
            if len(topics) < 4:
                continue
            pair = (address_from_topic(topics[1]), address_from_topic(topics[2]))
        elif t0 == signatures.TOPIC_ERC721A_CONSECUTIVE:
            pair = (address_from_topic(topics[2]), address_from_topic(topics[3])) if len(topics) >= 4 else (None, None)
        elif t0 in (signatures.TOPIC_ERC1155_SINGLE, signatures.TOPIC_ERC1155_BATCH):
            pair = (address_from_topic(topics[2]), address_from_topic(topics[3])) if len(topics) >= 4 else (None, None)
        else:
            continue
        if pair[0] == zero and pair[1] == address:
            found.add(str(lg.get('address') or '').lower())
    found.discard('')
    return found


@dataclass
class FeedHints:
    """Per-call hints derived from the token and internal feeds."""

    address: str
    domain_mints: Set[str] = field(default_factory=set)
    nft_mints: Set[str] = field(default_factory=set)
    internals_by_hash: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    @classmethod
    def build(cls, address: str, internals: Iterable[Dict[str, Any]], erc721: Iterable[Dict[str, Any]],
              erc1155: Iterable[Dict[str, Any]]) -> 'FeedHints':
        address = address.lower()
        hints = cls(address=address)
        for n in erc721 or []:
            if not rows.is_mint_to(n, address):
                continue
            h = item_hash(n)
            hints.nft_mints.add(h)
            if signatures.looks_like_domain_text(n.get('tokenSymbol')) or signatures.looks_like_domain_text(n.get('tokenName')):
                hints.domain_mints.add(h)
        for m in erc1155 or []:
            if rows.is_mint_to(m, address):
                hints.nft_mints.add(item_hash(m))
        for it in internals or []:
            h = item_hash(it)
            if h:
                hints.internals_by_hash.setdefault(h, []).append(it)
        hints.nft_mints.discard('')
        hints.domain_mints.discard('')
        return hints

    def created_contract(self, tx_hash: str) -> bool:
        for it in self.internals_by_hash.get(tx_hash, []):
            typ = str(it.get('type') or '').lower()
            if typ in ('create', 'create2') or it.get('contractAddress'):
                return True
        return False


def classify_quick(tx: Dict[str, Any], hints: FeedHints,
                   domain_contracts: Iterable[str] = signatures.DOMAIN_CONTRACTS) -> Tuple[str, Optional[str]]:
    """Tier 1: return ``(category, candidate)`` without touching the network.

    ``candidate`` names the Tier 2 set the transaction joins, if any.
    """
    address = hints.address
    to_addr = str(tx.get('to') or '').lower()
    from_addr = str(tx.get('from') or '').lower()
    h = item_hash(tx)

    if is_failed_by_feed(tx):
        return categories.FAIL, None
    if to_addr in signatures.CC_CONTRACTS:
        return categories.CC, None
    if to_addr == signatures.CCO_TARGET:
        return categories.CCO, None
    if to_addr in signatures.GM_CONTRACTS:
        return categories.GM, None
    if h in hints.domain_mints:
        return categories.DOMAIN_MINT, None
    if h in hints.nft_mints:
        return categories.NFT_MINT, None
    if is_stake_call(tx):
        return categories.STAKE, None
    if is_swap_call(tx):
        return categories.SWAP, None
    if is_add_liquidity_call(tx):
        return categories.ADD_LIQUIDITY, None
    if is_remove_liquidity_call(tx):
        return categories.REMOVE_LIQUIDITY, None
    if is_gm_call(tx):
        return categories.GM, None
    if is_approve_call(tx):
        return categories.APPROVE, None
    if is_native_send_candidate(tx, address):
        return categories.OTHER, CANDIDATE_NATIVE_SEND

    outgoing = from_addr == address
    if outgoing and hints.created_contract(h):
        return categories.CC, None
    contract_call = bool(to_addr) and not is_precompile(to_addr)
    if outgoing and contract_call and (not is_empty_input(tx.get('input')) or to_addr in domain_contracts):
        return categories.OTHER, CANDIDATE_MINT_SCAN
    return categories.OTHER, None


class Classifier:
    """Runs both tiers over one call's external transactions."""

    def __init__(self, chain: ChainReader, max_candidates: int = 220,
                 domain_contracts: Iterable[str] = signatures.DOMAIN_CONTRACTS) -> None:
        self.chain = chain
        self.max_candidates = max_candidates
        self.domain_contracts = frozenset(str(a).lower() for a in domain_contracts)

    def classify(self, externals: List[Dict[str, Any]], hints: FeedHints) -> List[Dict[str, Any]]:
        """Return one native row per external transaction."""
        address = hints.address
        native_rows: List[Dict[str, Any]] = []
        rows_by_hash: Dict[str, Dict[str, Any]] = {}
        tx_by_hash: Dict[str, Dict[str, Any]] = {}
        native_candidates: List[str] = []
        mint_candidates: List[str] = []

        for tx in externals:
            h = item_hash(tx)
            if not h:
                continue
            category, candidate = classify_quick(tx, hints, self.domain_contracts)
            row = rows.native_row(tx, address, category)
            native_rows.append(row)
            rows_by_hash[h] = row
            tx_by_hash[h] = tx
            if candidate == CANDIDATE_NATIVE_SEND:
                native_candidates.append(h)
            elif candidate == CANDIDATE_MINT_SCAN:
                mint_candidates.append(h)

        self._confirm_with_receipts(address, rows_by_hash, tx_by_hash, native_candidates, mint_candidates)
        return native_rows

    def _confirm_with_receipts(self, address: str, rows_by_hash: Dict[str, Dict[str, Any]],
                               tx_by_hash: Dict[str, Dict[str, Any]], native_candidates: List[str],
                               mint_candidates: List[str]) -> None:
        mint_candidates = list(dict.fromkeys(mint_candidates))
        if len(mint_candidates) > self.max_candidates:
            # Known mint entrypoints are scanned first when the cap bites
            mint_candidates.sort(key=lambda h: input_selector(tx_by_hash[h]) not in signatures.NFT_MINT_SELECTORS)
            logger.info('mint/domain scan capped at %d of %d candidates for %s',
                        self.max_candidates, len(mint_candidates), address)
            mint_candidates = mint_candidates[:self.max_candidates]

        to_fetch = list(dict.fromkeys(native_candidates + mint_candidates))
        if not to_fetch:
            return
        receipts = self.chain.get_receipts(to_fetch)

        for h in native_candidates:
            rcpt = receipts.get(h)
            row = rows_by_hash.get(h)
            if not row or not rcpt or row['category'] != categories.OTHER:
                continue
            if not is_failed_receipt(rcpt) and not rcpt.get('logs'):
                row['category'] = categories.NATIVE_SEND

        minted_by_hash: Dict[str, Set[str]] = {}
        for h in mint_candidates:
            rcpt = receipts.get(h)
            row = rows_by_hash.get(h)
            tx = tx_by_hash.get(h)
            if not row or not rcpt or not tx or is_failed_receipt(rcpt) or row['category'] != categories.OTHER:
                continue
            if is_domain_by_sig_or_event(tx, rcpt):
                row['category'] = categories.DOMAIN_MINT
                continue
            if str(tx.get('to') or '').lower() in self.domain_contracts and looks_like_register(tx):
                row['category'] = categories.DOMAIN_MINT
                continue
            minted = minted_contracts(rcpt, address)
            if minted:
                minted_by_hash[h] = minted

        if not minted_by_hash:
            return
        all_contracts = set().union(*minted_by_hash.values())
        metas = self.chain.get_contract_metas(sorted(all_contracts))
        for h, contracts in minted_by_hash.items():
            is_domain = False
            for c in contracts:
                meta = metas.get(c) or {}
                if signatures.looks_like_domain_text(meta.get('symbol')) or signatures.looks_like_domain_text(meta.get('name')):
                    is_domain = True
                    break
            rows_by_hash[h]['category'] = categories.DOMAIN_MINT if is_domain else categories.NFT_MINT
