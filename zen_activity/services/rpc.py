from __future__ import annotations

"""JSON-RPC adapter and the cached chain reader built on top of it.

``RpcClient`` is a raw ``requests`` JSON-RPC client. ``ChainReader`` adds
process-wide caches, retries and bounded fan-out; every lookup the
classifier and hydration stage make goes through it.
"""
from typing import Any, Dict, Iterable, List, Optional
import logging

import requests
from eth_abi import decode as abi_decode_values
from eth_abi.exceptions import DecodingError

from zen_activity.config import signatures
from zen_activity.services.runtime import CacheService, RetryPolicy, fetch_many

logger = logging.getLogger(__name__)


class RpcError(Exception):
    """Raised for JSON-RPC level errors and missing results."""


def hex_to_int(value: Any) -> int:
    if value is None or value == '':
        return 0
    if isinstance(value, int):
        return value
    s = str(value).strip()
    try:
        if s.lower().startswith('0x'):
            return int(s, 16) if len(s) > 2 else 0
        return int(s)
    except ValueError:
        return 0


def _lower_or_none(value: Any) -> Optional[str]:
    return str(value).lower() if value else None


def normalize_transaction(tx: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'hash': str(tx.get('hash') or '').lower(),
        'blockNumber': hex_to_int(tx.get('blockNumber')),
        'from': str(tx.get('from') or '').lower(),
        'to': _lower_or_none(tx.get('to')),
        'value': max(0, hex_to_int(tx.get('value'))),
        'input': tx.get('input') or '0x',
    }


def normalize_receipt(rcpt: Dict[str, Any]) -> Dict[str, Any]:
    status = rcpt.get('status')
    logs = []
    for lg in rcpt.get('logs') or []:
        if not isinstance(lg, dict):
            continue
        logs.append({
            'address': str(lg.get('address') or '').lower(),
            'topics': [str(t or '').lower() for t in (lg.get('topics') or [])],
            'data': lg.get('data') or '0x',
        })
    return {
        'hash': str(rcpt.get('transactionHash') or '').lower(),
        'status': None if status is None else hex_to_int(status),
        'logs': logs,
        'contractAddress': _lower_or_none(rcpt.get('contractAddress')),
    }


def decode_string_result(data_hex: str) -> str:
    """Decode an ``eth_call`` string return; tolerates bytes32-returning tokens."""
    if not data_hex or data_hex == '0x':
        return ''
    hx = data_hex[2:] if data_hex.startswith('0x') else data_hex
    try:
        raw = bytes.fromhex(hx)
    except ValueError:
        return ''
    try:
        (value,) = abi_decode_values(['string'], raw)
        return str(value)
    except (DecodingError, ValueError, OverflowError, TypeError):
        pass
    # Fallback: some older tokens return bytes32
    if len(raw) >= 32:
        return raw[:32].rstrip(b'\x00').decode('utf-8', errors='ignore')
    return ''


class RpcClient:
    """Minimal JSON-RPC 2.0 client over HTTP."""

    def __init__(self, rpc_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None) -> None:
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._http = session or requests

    def call(self, method: str, params: List[Any]) -> Any:
        payload = {'jsonrpc': '2.0', 'method': method, 'params': params, 'id': 1}
        r = self._http.post(self.rpc_url, json=payload, timeout=self.timeout)
        r.raise_for_status()
        jd = r.json()
        if not isinstance(jd, dict):
            raise RpcError(f'{method}: malformed response')
        if jd.get('error'):
            raise RpcError(f"{method}: {jd['error']}")
        return jd.get('result')

    def get_transaction(self, tx_hash: str) -> Dict[str, Any]:
        res = self.call('eth_getTransactionByHash', [tx_hash])
        if not isinstance(res, dict):
            raise RpcError(f'transaction {tx_hash} not found')
        return normalize_transaction(res)

    def get_transaction_receipt(self, tx_hash: str) -> Dict[str, Any]:
        res = self.call('eth_getTransactionReceipt', [tx_hash])
        if not isinstance(res, dict):
            raise RpcError(f'receipt {tx_hash} not found')
        rcpt = normalize_receipt(res)
        rcpt['hash'] = rcpt['hash'] or tx_hash.lower()
        return rcpt

    def get_bytecode(self, address: str) -> str:
        res = self.call('eth_getCode', [address, 'latest'])
        return res if isinstance(res, str) else '0x'

    def get_block(self, block_number: int) -> Dict[str, Any]:
        res = self.call('eth_getBlockByNumber', [hex(int(block_number)), False])
        if not isinstance(res, dict):
            raise RpcError(f'block {block_number} not found')
        return {'number': hex_to_int(res.get('number')), 'timestamp': hex_to_int(res.get('timestamp'))}

    def read_contract(self, address: str, data: str) -> str:
        """``eth_call`` returning a decoded string (``symbol()``/``name()`` style getters)."""
        res = self.call('eth_call', [{'to': address, 'data': data}, 'latest'])
        return decode_string_result(res if isinstance(res, str) else '')


class ChainReader:
    """Cached, retried, concurrency-bounded view over an ``RpcClient``."""

    def __init__(self, rpc: RpcClient, retry: Optional[RetryPolicy] = None,
                 tx_cache: Optional[CacheService] = None, receipt_cache: Optional[CacheService] = None,
                 meta_cache: Optional[CacheService] = None, block_cache: Optional[CacheService] = None,
                 code_cache: Optional[CacheService] = None,
                 tx_concurrency: int = 8, receipt_concurrency: int = 10) -> None:
        self.rpc = rpc
        self.retry = retry or RetryPolicy()
        self.tx_cache = tx_cache or CacheService('transactions')
        self.receipt_cache = receipt_cache or CacheService('receipts')
        self.meta_cache = meta_cache or CacheService('contract-meta')
        self.block_cache = block_cache or CacheService('blocks')
        self.code_cache = code_cache or CacheService('bytecode')
        self.tx_concurrency = tx_concurrency
        self.receipt_concurrency = receipt_concurrency

    def get_transaction(self, tx_hash: str) -> Dict[str, Any]:
        key = tx_hash.lower()
        return self.tx_cache.get_or_populate(key, lambda: self.retry.call(self.rpc.get_transaction, key))

    def get_receipt(self, tx_hash: str) -> Dict[str, Any]:
        key = tx_hash.lower()
        return self.receipt_cache.get_or_populate(key, lambda: self.retry.call(self.rpc.get_transaction_receipt, key))

    def get_transactions(self, hashes: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        keys = [str(h or '').lower() for h in hashes]
        return fetch_many(keys, self.get_transaction, max_workers=self.tx_concurrency, label='eth_getTransactionByHash')

    def get_receipts(self, hashes: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        keys = [str(h or '').lower() for h in hashes]
        return fetch_many(keys, self.get_receipt, max_workers=self.receipt_concurrency, label='eth_getTransactionReceipt')

    def get_block_timestamp(self, block_number: int) -> int:
        block = self.block_cache.get_or_populate(int(block_number), lambda: self.retry.call(self.rpc.get_block, int(block_number)))
        return int(block.get('timestamp') or 0)

    def get_block_timestamps(self, block_numbers: Iterable[int]) -> Dict[int, int]:
        numbers = [int(n) for n in block_numbers if n]
        return fetch_many(numbers, self.get_block_timestamp, max_workers=self.tx_concurrency, label='eth_getBlockByNumber')

    def has_code(self, address: str) -> bool:
        """True unless the node reports empty bytecode; unknown counts as True."""
        key = address.lower()
        try:
            code = self.code_cache.get_or_populate(key, lambda: self.retry.call(self.rpc.get_bytecode, key))
        except Exception as e:
            logger.debug('eth_getCode failed for %s: %s', key, e)
            return True
        return bool(code and code != '0x')

    def _load_meta(self, address: str) -> Dict[str, str]:
        meta = {'symbol': '', 'name': ''}
        if not self.has_code(address):
            return meta
        for field, data in (('symbol', signatures.SYMBOL_SELECTOR), ('name', signatures.NAME_SELECTOR)):
            try:
                meta[field] = self.rpc.read_contract(address, data)
            except Exception as e:
                logger.debug('%s() failed for %s: %s', field, address, e)
        return meta

    def get_contract_meta(self, address: str) -> Dict[str, str]:
        """Best-effort ``symbol()``/``name()``; never raises."""
        key = str(address or '').lower()
        if not key:
            return {'symbol': '', 'name': ''}
        return self.meta_cache.get_or_populate(key, lambda: self._load_meta(key))

    def get_contract_metas(self, addresses: Iterable[str]) -> Dict[str, Dict[str, str]]:
        keys = [str(a or '').lower() for a in addresses]
        return fetch_many(keys, self.get_contract_meta, max_workers=self.receipt_concurrency, label='contract metadata')
