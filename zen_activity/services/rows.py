from __future__ import annotations

"""Builders that turn raw feed items into normalized activity rows.

Rows are plain dicts using the dashboard's camelCase keys. Missing or
malformed fields fall back to zero/empty values; nothing here raises.
"""
from decimal import Context, Decimal, InvalidOperation
from typing import Any, Dict, Optional

from zen_activity.config import signatures
from zen_activity.services import categories
from zen_activity.services.explorer import item_hash, item_timestamp

# Enough precision for uint256 amounts
_DECIMAL_CTX = Context(prec=80)


def parse_raw_amount(value: Any) -> int:
    """Parse a base-unit amount (int, decimal string or hex). Never negative."""
    if value is None:
        return 0
    if isinstance(value, int):
        return max(0, value)
    s = str(value).strip()
    if not s:
        return 0
    try:
        if s.lower().startswith('0x'):
            raw = int(s, 16) if len(s) > 2 else 0
        else:
            raw = int(s)
    except ValueError:
        try:
            raw = int(Decimal(s))
        except (InvalidOperation, ValueError, OverflowError):
            return 0
    return max(0, raw)


def parse_decimals(value: Any, default: int = 18) -> int:
    try:
        d = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return d if 0 <= d <= 77 else default


def format_units(raw: int, decimals: int) -> str:
    """Render base units as a plain decimal string ('1.5', '0', '42')."""
    scaled = _DECIMAL_CTX.multiply(Decimal(raw), Decimal(1).scaleb(-decimals))
    s = format(scaled, 'f')
    if '.' in s:
        s = s.rstrip('0').rstrip('.')
    return s or '0'


def direction_for(from_addr: Any, address: str) -> str:
    return categories.DIRECTION_OUT if str(from_addr or '').lower() == address.lower() else categories.DIRECTION_IN


def is_mint_to(item: Dict[str, Any], address: str) -> bool:
    return (str(item.get('from') or '').lower() == signatures.ZERO_ADDRESS
            and str(item.get('to') or '').lower() == address.lower())


def _base_row(kind: str, item: Dict[str, Any], address: str) -> Dict[str, Any]:
    from_addr = str(item.get('from') or '').lower()
    return {
        'kind': kind,
        'hash': item_hash(item),
        'blockNumber': parse_raw_amount(item.get('blockNumber')),
        'timeMs': item_timestamp(item) * 1000,
        'from': from_addr,
        'to': str(item.get('to') or '').lower() or None,
        'direction': direction_for(from_addr, address),
    }


def native_row(tx: Dict[str, Any], address: str, category: str) -> Dict[str, Any]:
    row = _base_row(categories.KIND_NATIVE, tx, address)
    value = format_units(parse_raw_amount(tx.get('value')), 18)
    row.update({'value': value, 'valueNorm': float(value), 'category': category})
    return row


def internal_row(item: Dict[str, Any], address: str) -> Dict[str, Any]:
    row = _base_row(categories.KIND_INTERNAL, item, address)
    value = format_units(parse_raw_amount(item.get('value')), 18)
    row.update({'value': value, 'valueNorm': float(value), 'category': None})
    return row


def erc20_row(item: Dict[str, Any], address: str) -> Dict[str, Any]:
    row = _base_row(categories.KIND_TOKEN, item, address)
    amount = format_units(parse_raw_amount(item.get('value')), parse_decimals(item.get('tokenDecimal')))
    row.update({
        'standard': categories.STANDARD_ERC20,
        'contract': str(item.get('contractAddress') or '').lower() or None,
        'symbol': item.get('tokenSymbol') or 'TOKEN',
        'amount': amount,
        'value': amount,
        'valueNorm': float(amount),
        'category': None,
    })
    return row


def nft_row(item: Dict[str, Any], address: str, standard: str) -> Dict[str, Any]:
    row = _base_row(categories.KIND_TOKEN, item, address)
    token_id: Optional[Any] = item.get('tokenID', item.get('tokenId'))
    row.update({
        'standard': standard,
        'contract': str(item.get('contractAddress') or '').lower() or None,
        'symbol': item.get('tokenSymbol') or 'NFT',
        'tokenId': '' if token_id is None else str(token_id),
        'value': str(parse_raw_amount(item.get('tokenValue'))) if standard == categories.STANDARD_ERC1155 else '1',
        'valueNorm': 0.0,
        'category': categories.NFT_MINT if is_mint_to(item, address) else None,
    })
    return row
