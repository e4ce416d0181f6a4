"""Activity categories and row kinds."""

FAIL = 'fail'
DOMAIN_MINT = 'domain_mint'
CC = 'cc'
CCO = 'cco'
STAKE = 'stake'
SWAP = 'swap'
ADD_LIQUIDITY = 'add_liquidity'
REMOVE_LIQUIDITY = 'remove_liquidity'
GM = 'gm'
NATIVE_SEND = 'native_send'
APPROVE = 'approve'
NFT_MINT = 'nft_mint'
OTHER = 'other'

ALL_CATEGORIES = frozenset([
    FAIL, DOMAIN_MINT, CC, CCO, STAKE, SWAP, ADD_LIQUIDITY, REMOVE_LIQUIDITY,
    GM, NATIVE_SEND, APPROVE, NFT_MINT, OTHER,
])

KIND_NATIVE = 'native'
KIND_INTERNAL = 'internal'
KIND_TOKEN = 'token'

STANDARD_ERC20 = 'erc20'
STANDARD_ERC721 = 'erc721'
STANDARD_ERC1155 = 'erc1155'

DIRECTION_IN = 'in'
DIRECTION_OUT = 'out'
