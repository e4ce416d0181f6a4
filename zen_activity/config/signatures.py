"""
Signature and Topic Registry
Selectors, event topics and known contract addresses used to classify
wallet activity. Tables are built once at import time.
"""
import re
from typing import FrozenSet, Iterable

from web3 import Web3


def selector(signature: str) -> str:
    """4-byte method selector ('0x' + 8 hex chars) for a canonical signature."""
    return Web3.to_hex(Web3.keccak(text=signature))[:10]


def topic(signature: str) -> str:
    """32-byte event topic for a canonical event signature."""
    return Web3.to_hex(Web3.keccak(text=signature))


def _lower_set(items: Iterable[str]) -> FrozenSet[str]:
    return frozenset(str(s or '').lower() for s in items)


ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'

# Addresses starting with this prefix are treated as precompiles
PRECOMPILE_PREFIX = '0x0000000000000000000000000000000000000'

# Relay target for contract deployments routed through the onboarding flow
CCO_TARGET = '0x016ef0f56d7344d0e55f6bc2a20618e02dae8be0'

GM_CONTRACTS = _lower_set([
    '0xf617d89a811a39f06f5271f89db346a0ae297f71',
    '0x1290b4f2a419a316467b580a088453a233e9adcc',
])

# Deploy-relay contracts
CC_CONTRACTS = _lower_set([
    '0x2f96d7dd813b8e17071188791b78ea3fab5c109c',
])

# Known domain registrar/controller contracts
DOMAIN_CONTRACTS = _lower_set([])

# NFT transfer events
TOPIC_ERC721_TRANSFER = topic('Transfer(address,address,uint256)')
TOPIC_ERC721A_CONSECUTIVE = topic('ConsecutiveTransfer(uint256,uint256,address,address)')
TOPIC_ERC1155_SINGLE = topic('TransferSingle(address,address,address,uint256,uint256)')
TOPIC_ERC1155_BATCH = topic('TransferBatch(address,address,address,uint256[],uint256[])')

DOMAIN_TOPICS = _lower_set([
    topic('NameRegistered(bytes32,address,uint256)'),
    topic('NameRegistered(string,address,uint256)'),
    topic('NameRegistered(bytes32,address,uint256,uint256)'),
    topic('NameRegistered(string,address,uint256,uint256)'),
    topic('DomainRegistered(address,string,uint256)'),
    topic('DomainRegistered(address,string,uint256,uint256)'),
    topic('NewOwner(bytes32,bytes32,address)'),
    topic('SubnodeCreated(bytes32,bytes32,address)'),
    # Custom registrars
    topic('Register(address,string,uint256)'),
    topic('Registered(address,string,uint256)'),
    topic('NameClaimed(address,string)'),
])

DOMAIN_SELECTORS = frozenset([
    selector('registerDomains(string[],address,uint256)'),
    selector('registerDomains(string[],address)'),
    selector('registerDomain(string,address,uint256)'),
    selector('registerDomain(string,address)'),
    selector('register(string,address,uint256)'),
    selector('register(bytes32,address,uint256)'),
    selector('registerWithConfig(string,address,uint256,address,address)'),
    selector('registerWithConfig(bytes32,address,uint256,address,address)'),
    selector('registerName(string,address,uint256)'),
    selector('claim(string)'),
    selector('claim(bytes32)'),
    selector('commit(bytes32)'),
])

GM_SELECTORS = frozenset([
    selector('sayGM()'),
    selector('gm()'),
    '0x84a3bb6b',  # unverified GM contract entrypoint
])

STAKE_SELECTORS = frozenset([
    selector('stake(uint256)'),
    selector('stake(uint256,address)'),
    selector('deposit(uint256)'),
    selector('deposit(uint256,address)'),
    selector('deposit()'),
    selector('delegate(address,uint256)'),
    selector('delegate(uint256)'),
    selector('bond(uint256)'),
    selector('bondExtra(uint256)'),
    selector('bondExtra()'),
    selector('bondMore(uint256)'),
    selector('nominate(address[])'),
    selector('unbond(uint256)'),
    selector('withdrawUnbonded(uint32)'),
    selector('restake(uint256)'),
    selector('redelegate(address,uint256)'),
])

SWAP_SELECTORS = frozenset([
    # Uniswap V2 style routers
    selector('swapExactTokensForTokens(uint256,uint256,address[],address,uint256)'),
    selector('swapTokensForExactTokens(uint256,uint256,address[],address,uint256)'),
    selector('swapExactETHForTokens(uint256,address[],address,uint256)'),
    selector('swapETHForExactTokens(uint256,address[],address,uint256)'),
    selector('swapExactTokensForETH(uint256,uint256,address[],address,uint256)'),
    selector('swapTokensForExactETH(uint256,uint256,address[],address,uint256)'),
    selector('swapExactTokensForTokensSupportingFeeOnTransferTokens(uint256,uint256,address[],address,uint256)'),
    selector('swapExactETHForTokensSupportingFeeOnTransferTokens(uint256,address[],address,uint256)'),
    selector('swapExactTokensForETHSupportingFeeOnTransferTokens(uint256,uint256,address[],address,uint256)'),
    # Uniswap V3 style routers
    selector('exactInput(bytes)'),
    selector('exactInputSingle((address,address,uint24,address,uint256,uint256,uint256,uint160))'),
    selector('exactOutput(bytes)'),
    selector('exactOutputSingle((address,address,uint24,address,uint256,uint256,uint256,uint160))'),
])

ADD_LIQUIDITY_SELECTORS = frozenset([
    selector('addLiquidity(address,address,uint256,uint256,uint256,uint256,address,uint256)'),
    selector('addLiquidityETH(address,uint256,uint256,uint256,address,uint256)'),
])

REMOVE_LIQUIDITY_SELECTORS = frozenset([
    selector('removeLiquidity(address,address,uint256,uint256,uint256,address,uint256)'),
    selector('removeLiquidityETH(address,uint256,uint256,uint256,address,uint256)'),
    selector('removeLiquidityWithPermit(address,address,uint256,uint256,uint256,address,uint256,bool,uint8,bytes32,bytes32)'),
    selector('removeLiquidityETHWithPermit(address,uint256,uint256,uint256,address,uint256,bool,uint8,bytes32,bytes32)'),
    selector('removeLiquidityETHSupportingFeeOnTransferTokens(address,uint256,uint256,uint256,address,uint256)'),
    selector('removeLiquidityETHWithPermitSupportingFeeOnTransferTokens(address,uint256,uint256,uint256,address,uint256,bool,uint8,bytes32,bytes32)'),
])

NFT_MINT_SELECTORS = frozenset([
    selector('mint()'),
    selector('mint(uint256)'),
    selector('mint(address)'),
    selector('mint(address,uint256)'),
    selector('mintTo(address,uint256)'),
    selector('safeMint(address)'),
    selector('safeMint(address,uint256)'),
    selector('publicMint(uint256)'),
    selector('batchMint(address,uint256)'),
    selector('batchMint(address,uint256[])'),
    selector('claim()'),
    selector('claim(uint256)'),
    selector('claim(address,uint256)'),
])

APPROVE_SELECTORS = frozenset([
    selector('approve(address,uint256)'),
    selector('increaseAllowance(address,uint256)'),
    selector('decreaseAllowance(address,uint256)'),
    selector('setApprovalForAll(address,bool)'),
])

# functionName fragments (lowercase, arguments stripped) per intent
STAKE_NAME_FRAGMENTS = ('bond', 'stake', 'delegate', 'nominate', 'unbond', 'withdraw', 'restake', 'redelegate')
SWAP_NAME_FRAGMENTS = ('swap', 'exactinput', 'exactoutput')
# No bare 'mint' here: that verb belongs to NFT mints
ADD_LIQUIDITY_NAME_FRAGMENTS = ('addliquidity',)
REMOVE_LIQUIDITY_NAME_FRAGMENTS = ('removeliquidity', 'decreaseliquidity')
APPROVE_NAME_FRAGMENTS = ('allowance', 'approval')
DOMAIN_NAME_FRAGMENTS = ('register', 'domain', 'name', 'zns')

# ERC-721 / ERC-20 metadata getters
SYMBOL_SELECTOR = selector('symbol()')
NAME_SELECTOR = selector('name()')

# Domain text heuristic: never matches on a bare 'name' or any dot
DOMAIN_TLD_MARKERS = ('.ztc', '.zen')
_DOMAIN_ACRONYM_RE = re.compile(r'\b(zns|ens)\b')
_DOMAIN_PHRASE_RE = re.compile(r'\b(name service|domain service|domain registrar|registry|name registry)\b')


def looks_like_domain_text(text) -> bool:
    """True when a token symbol/name reads like a naming-system collection."""
    if not text:
        return False
    x = str(text).lower()
    if any(marker in x for marker in DOMAIN_TLD_MARKERS):
        return True
    if _DOMAIN_ACRONYM_RE.search(x):
        return True
    if _DOMAIN_PHRASE_RE.search(x):
        return True
    return False
