from __future__ import annotations

"""Merge rows from every feed into one row per transaction hash.

The same transaction can surface as a native row, one or more internal
traces and several token transfers. Exactly one survives, chosen by the
(kind, category) priority table below.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple

from zen_activity.services import categories, rows

# (kind, category) -> rank; higher wins
ROW_PRIORITY: Dict[Tuple[str, Optional[str]], int] = {
    (categories.KIND_NATIVE, categories.FAIL): 125,
    (categories.KIND_NATIVE, categories.DOMAIN_MINT): 120,
    (categories.KIND_NATIVE, categories.CC): 115,
    (categories.KIND_NATIVE, categories.CCO): 112,
    (categories.KIND_NATIVE, categories.STAKE): 105,
    (categories.KIND_NATIVE, categories.SWAP): 104,
    (categories.KIND_NATIVE, categories.ADD_LIQUIDITY): 103,
    (categories.KIND_NATIVE, categories.REMOVE_LIQUIDITY): 103,
    (categories.KIND_NATIVE, categories.GM): 100,
    (categories.KIND_NATIVE, categories.NATIVE_SEND): 95,
    (categories.KIND_NATIVE, categories.APPROVE): 93,
    (categories.KIND_NATIVE, categories.NFT_MINT): 90,
    # Token-feed mint evidence outranks an unresolved native row
    (categories.KIND_TOKEN, categories.NFT_MINT): 85,
    (categories.KIND_NATIVE, categories.OTHER): 80,
    (categories.KIND_TOKEN, None): 20,
    (categories.KIND_INTERNAL, None): 10,
}
UNKNOWN_NATIVE_PRIORITY = 50


def row_priority(row: Dict[str, Any]) -> int:
    kind = row.get('kind')
    category = row.get('category')
    rank = ROW_PRIORITY.get((kind, category))
    if rank is not None:
        return rank
    if kind == categories.KIND_NATIVE:
        return UNKNOWN_NATIVE_PRIORITY
    if kind == categories.KIND_TOKEN:
        return ROW_PRIORITY[(categories.KIND_TOKEN, None)]
    if kind == categories.KIND_INTERNAL:
        return ROW_PRIORITY[(categories.KIND_INTERNAL, None)]
    return 0


def compare_rows(a: Dict[str, Any], b: Dict[str, Any]) -> int:
    """Comparator over rows for the same hash: positive when ``a`` should win."""
    return row_priority(a) - row_priority(b)


def feed_rows(address: str, internals: Iterable[Dict[str, Any]], erc20: Iterable[Dict[str, Any]],
              erc721: Iterable[Dict[str, Any]], erc1155: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Rows for the non-native feeds, in the order they are offered to ``reconcile``."""
    out: List[Dict[str, Any]] = [rows.internal_row(it, address) for it in internals or []]
    out.extend(rows.erc20_row(e, address) for e in erc20 or [])
    out.extend(rows.nft_row(n, address, categories.STANDARD_ERC721) for n in erc721 or [])
    out.extend(rows.nft_row(m, address, categories.STANDARD_ERC1155) for m in erc1155 or [])
    return out


def reconcile(*row_groups: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Keep the best row per lowercase hash; newest first.

    Ties keep the row offered first, so native rows should be passed first.
    """
    best: Dict[str, Dict[str, Any]] = {}
    for group in row_groups:
        for row in group:
            h = str(row.get('hash') or '').lower()
            if not h:
                continue
            current = best.get(h)
            if current is None or compare_rows(row, current) > 0:
                best[h] = row
    return sorted(best.values(), key=lambda r: r.get('timeMs') or 0, reverse=True)
