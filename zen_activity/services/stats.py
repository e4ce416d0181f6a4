"""Per-category counters derived from the reconciled activity list."""
from typing import Any, Dict, Iterable

from zen_activity.services import categories

# category -> counter key
STAT_KEYS = {
    categories.STAKE: 'stakeActions',
    categories.NATIVE_SEND: 'nativeSends',
    categories.NFT_MINT: 'nftMints',
    categories.DOMAIN_MINT: 'domainMints',
    categories.GM: 'gmCount',
    categories.CC: 'ccCount',
    categories.CCO: 'ccCount',
    categories.SWAP: 'swapCount',
    categories.ADD_LIQUIDITY: 'addLiquidityCount',
    categories.REMOVE_LIQUIDITY: 'removeLiquidityCount',
    categories.APPROVE: 'approveCount',
}


def empty_stats() -> Dict[str, int]:
    return {key: 0 for key in dict.fromkeys(STAT_KEYS.values())}


def counted_rows(activity: Iterable[Dict[str, Any]]):
    """Outgoing, non-failed native rows; the only rows that count toward stats."""
    for row in activity:
        if row.get('kind') != categories.KIND_NATIVE:
            continue
        if str(row.get('direction') or '').lower() != categories.DIRECTION_OUT:
            continue
        if row.get('category') == categories.FAIL:
            continue
        yield row


def build_stats_from_activity(activity: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    stats = empty_stats()
    for row in counted_rows(activity):
        key = STAT_KEYS.get(row.get('category'))
        if key:
            stats[key] += 1
    return stats
