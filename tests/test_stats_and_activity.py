import pytest

from zen_activity.config import signatures
from zen_activity.config.settings import Settings
from zen_activity.services import activity, categories, explorer, stats

WALLET = '0x' + 'a' * 40
OTHER = '0x' + 'b' * 40
NFT_CONTRACT = '0x' + 'c' * 40
MINTER = '0x' + 'e' * 40
CC_TO = sorted(signatures.CC_CONTRACTS)[0]
GM_TO = sorted(signatures.GM_CONTRACTS)[0]


class FakeExplorer:
    def __init__(self, feeds):
        self.feeds = feeds
        self.calls = []

    def fetch_page(self, action, address, page, page_size):
        self.calls.append((action, address, page))
        if page > 1:
            return []
        return list(self.feeds.get(action, []))


class FakeChain:
    def __init__(self, txs=None, receipts=None, metas=None):
        self.txs = txs or {}
        self.receipts = receipts or {}
        self.metas = metas or {}

    def get_transactions(self, hashes):
        return {h: self.txs[h] for h in hashes if h in self.txs}

    def get_receipts(self, hashes):
        return {h: self.receipts[h] for h in hashes if h in self.receipts}

    def get_block_timestamps(self, numbers):
        return {}

    def get_contract_metas(self, addresses):
        return {a: self.metas.get(a, {'symbol': '', 'name': ''}) for a in addresses}


def _ext(h, to, frm=WALLET, value='0', inp='0x', ts=1_700_000_000, **extra):
    tx = {'hash': h, 'timeStamp': str(ts), 'blockNumber': '100', 'from': frm, 'to': to, 'value': value,
          'input': inp, 'isError': '0', 'txreceipt_status': '1'}
    tx.update(extra)
    return tx


def _service():
    feeds = {
        explorer.ACTION_EXTERNAL: [
            _ext('0xs1', OTHER, frm=WALLET.upper().replace('0X', '0x'), value=str(10 ** 18), ts=1_700_000_010),
            _ext('0xg1', GM_TO, inp='0x84a3bb6b', ts=1_700_000_009),
            _ext('0xf1', CC_TO, isError='1', ts=1_700_000_008),
            _ext('0xc1', CC_TO, inp='0x12345678', ts=1_700_000_007),
            _ext('0xc2', signatures.CCO_TARGET, inp='0x12345678', ts=1_700_000_006),
            _ext('0xin1', WALLET, frm=OTHER, value='5', ts=1_700_000_005),
            _ext('0xm1', MINTER, inp='0xa0712d68', ts=1_700_000_004),
        ],
        explorer.ACTION_INTERNAL: [
            {'hash': '0xi9', 'timeStamp': '1700000003', 'from': MINTER, 'to': WALLET, 'value': '0', 'type': 'call', 'traceId': '0'},
        ],
        explorer.ACTION_ERC721: [
            {'hash': '0xm1', 'timeStamp': '1700000004', 'from': signatures.ZERO_ADDRESS, 'to': WALLET,
             'contractAddress': NFT_CONTRACT, 'tokenID': '1', 'tokenSymbol': 'PUNK'},
        ],
    }
    chain = FakeChain(
        txs={'0xi9': {'hash': '0xi9', 'blockNumber': 99, 'from': WALLET, 'to': MINTER, 'value': 0, 'input': '0xdeadbeef'}},
        receipts={'0xs1': {'status': 1, 'logs': []}, '0xi9': {'status': 1, 'logs': []}},
    )
    return activity.ActivityService(FakeExplorer(feeds), chain, Settings())


def test_build_activity_end_to_end():
    rows = _service().build_activity(WALLET.upper().replace('0X', '0x'), 0, 2_000_000_000)
    cats = {r['hash']: r['category'] for r in rows}
    assert cats == {
        '0xs1': categories.NATIVE_SEND,
        '0xg1': categories.GM,
        '0xf1': categories.FAIL,
        '0xc1': categories.CC,
        '0xc2': categories.CCO,
        '0xin1': categories.OTHER,
        '0xm1': categories.NFT_MINT,
        '0xi9': categories.OTHER,
    }
    hashes = [r['hash'] for r in rows]
    assert len(hashes) == len(set(hashes))
    assert [r['timeMs'] for r in rows] == sorted((r['timeMs'] for r in rows), reverse=True)
    by_hash = {r['hash']: r for r in rows}
    assert by_hash['0xs1']['direction'] == categories.DIRECTION_OUT
    assert by_hash['0xs1']['value'] == '1'
    assert by_hash['0xin1']['direction'] == categories.DIRECTION_IN
    # hash seen only in the internal feed is hydrated and classified
    assert by_hash['0xi9']['kind'] == categories.KIND_NATIVE
    assert by_hash['0xm1']['kind'] == categories.KIND_NATIVE


def test_unparseable_amount_and_timestamp_do_not_abort_activity():
    inf_ts = _ext('0xinf', GM_TO)
    inf_ts['timeStamp'] = float('inf')
    feeds = {explorer.ACTION_EXTERNAL: [_ext('0xg1', GM_TO), _ext('0xbad', GM_TO, value='Infinity'), inf_ts]}
    svc = activity.ActivityService(FakeExplorer(feeds), FakeChain(), Settings())
    rows = svc.build_activity(WALLET, 0, 2_000_000_000)
    by_hash = {r['hash']: r for r in rows}
    assert {h: r['category'] for h, r in by_hash.items()} == {
        '0xg1': categories.GM, '0xbad': categories.GM, '0xinf': categories.GM,
    }
    assert by_hash['0xbad']['value'] == '0'
    assert by_hash['0xinf']['timeMs'] == 0


def test_stats_match_activity():
    service = _service()
    rows = service.build_activity(WALLET, 0, 2_000_000_000)
    kpis = service.build_stats(WALLET, 0, 2_000_000_000)
    assert kpis['nativeSends'] == sum(
        1 for r in rows
        if r['kind'] == categories.KIND_NATIVE and r['direction'] == 'out' and r['category'] == categories.NATIVE_SEND
    )
    assert kpis == {
        'stakeActions': 0, 'nativeSends': 1, 'nftMints': 1, 'domainMints': 0, 'gmCount': 1, 'ccCount': 2,
        'swapCount': 0, 'addLiquidityCount': 0, 'removeLiquidityCount': 0, 'approveCount': 0,
    }


def test_stats_ignore_incoming_failed_and_token_rows():
    rows = [
        {'kind': 'native', 'direction': 'OUT', 'category': categories.STAKE},
        {'kind': 'native', 'direction': 'in', 'category': categories.STAKE},
        {'kind': 'native', 'direction': 'out', 'category': categories.FAIL},
        {'kind': 'token', 'direction': 'out', 'category': categories.NFT_MINT},
        {'kind': 'native', 'direction': 'out', 'category': categories.APPROVE},
        {'kind': 'native', 'direction': 'out', 'category': categories.OTHER},
    ]
    kpis = stats.build_stats_from_activity(rows)
    assert kpis['stakeActions'] == 1
    assert kpis['approveCount'] == 1
    assert kpis['nftMints'] == 0
    assert sum(kpis.values()) == 2


def test_feeds_fetched_for_every_action():
    service = _service()
    service.build_activity(WALLET, 0, 2_000_000_000)
    fetched = {action for action, _, _ in service.explorer.calls}
    assert fetched == set(explorer.FEED_ACTIONS)


def test_invalid_input_rejected():
    service = _service()
    with pytest.raises(activity.InvalidQueryError):
        service.build_activity('0x123', 0, 10)
    with pytest.raises(activity.InvalidQueryError):
        service.build_activity(WALLET, 10, 5)
    with pytest.raises(activity.InvalidQueryError):
        service.build_stats(WALLET, -1, 5)
    assert issubclass(activity.InvalidQueryError, ValueError)


def test_parse_range_periods():
    now = 1_700_000_000
    assert activity.parse_range({'period': '24h'}, now=now) == (now - 86400, now)
    assert activity.parse_range({'period': '7D'}, now=now) == (now - 7 * 86400, now)
    assert activity.parse_range({'period': '30d'}, now=now) == (now - 30 * 86400, now)
    assert activity.parse_range({'period': 'all'}, now=now) == (0, now)
    assert activity.parse_range({}, now=now) == (now - 7 * 86400, now)


def test_parse_range_explicit_bounds():
    now = 1_700_000_000
    assert activity.parse_range({'start': '100', 'end': '200.9'}, now=now) == (100, 200)
    assert activity.parse_range({'start': '100'}, now=now) == (100, now)
    with pytest.raises(activity.InvalidQueryError):
        activity.parse_range({'start': 'yesterday'}, now=now)
    with pytest.raises(activity.InvalidQueryError):
        activity.parse_range({'start': '300', 'end': '200'}, now=now)


def test_module_level_functions_use_default_service():
    service = _service()
    activity.set_service(service)
    try:
        assert len(activity.build_activity(WALLET, 0, 2_000_000_000)) == 8
        assert activity.build_stats(WALLET, 0, 2_000_000_000)['gmCount'] == 1
        assert activity.get_service() is service
    finally:
        activity.set_service(None)
