"""Minimal ABIs for the contracts the engine calls."""


def _fn(name, inputs, outputs=(), mutability="view"):
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
    }


ERC20_ABI = [
    _fn("balanceOf", [("account", "address")], [("", "uint256")]),
    _fn("allowance", [("owner", "address"), ("spender", "address")], [("", "uint256")]),
    _fn(
        "approve",
        [("spender", "address"), ("amount", "uint256")],
        [("", "bool")],
        "nonpayable",
    ),
    _fn("decimals", [], [("", "uint8")]),
    _fn("symbol", [], [("", "string")]),
    _fn("name", [], [("", "string")]),
]

FACTORY_ABI = [
    _fn(
        "getPool",
        [("tokenA", "address"), ("tokenB", "address"), ("fee", "uint24")],
        [("pool", "address")],
    ),
]

QUOTER_ABI = [
    _fn(
        "quoteExactInputSingle",
        [
            ("tokenIn", "address"),
            ("tokenOut", "address"),
            ("fee", "uint24"),
            ("amountIn", "uint256"),
            ("sqrtPriceLimitX96", "uint160"),
        ],
        [
            ("amountOut", "uint256"),
            ("sqrtPriceX96After", "uint160"),
            ("initializedTicksCrossed", "uint32"),
            ("gasEstimate", "uint256"),
        ],
        "nonpayable",
    ),
    _fn(
        "quoteExactInput",
        [("path", "bytes"), ("amountIn", "uint256")],
        [
            ("amountOut", "uint256"),
            ("sqrtPriceX96AfterList", "uint160[]"),
            ("initializedTicksCrossedList", "uint32[]"),
            ("gasEstimate", "uint256"),
        ],
        "nonpayable",
    ),
]

SWAP_ROUTER_ABI = [
    {
        "type": "function",
        "name": "exactInputSingle",
        "stateMutability": "payable",
        "inputs": [
            {
                "name": "params",
                "type": "tuple",
                "components": [
                    {"name": "tokenIn", "type": "address"},
                    {"name": "tokenOut", "type": "address"},
                    {"name": "fee", "type": "uint24"},
                    {"name": "recipient", "type": "address"},
                    {"name": "amountIn", "type": "uint256"},
                    {"name": "amountOutMinimum", "type": "uint256"},
                    {"name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
            }
        ],
        "outputs": [{"name": "amountOut", "type": "uint256"}],
    },
]

AI_TRADER_ABI = [
    _fn(
        "executeManualTrade",
        [
            ("tokenIn", "address"),
            ("tokenOut", "address"),
            ("amountIn", "uint256"),
            ("recipient", "address"),
        ],
        [("amountOut", "uint256")],
        "nonpayable",
    ),
    _fn("whitelistedTokens", [("token", "address")], [("", "bool")]),
    _fn(
        "findBestPool",
        [("tokenIn", "address"), ("tokenOut", "address")],
        [("pool", "address"), ("fee", "uint24")],
    ),
    _fn("MIN_TRADE_AMOUNT", [], [("", "uint256")]),
]

PORTFOLIO_MANAGER_ABI = [
    _fn("createPortfolio", [("_riskLevel", "uint256")], (), "nonpayable"),
    _fn("deposit", [("_token", "address"), ("_amount", "uint256")], (), "nonpayable"),
    _fn("withdraw", [("_token", "address"), ("_amount", "uint256")], (), "nonpayable"),
    _fn(
        "userPortfolios",
        [("user", "address")],
        [("totalValue", "uint256"), ("riskLevel", "uint256"), ("isActive", "bool")],
    ),
    _fn(
        "getTokenBalance",
        [("user", "address"), ("token", "address")],
        [("", "uint256")],
    ),
    _fn(
        "updateAutoTrading",
        [
            ("enabled", "bool"),
            ("minConfidence", "uint256"),
            ("maxRiskScore", "uint256"),
            ("tradeAmount", "uint256"),
        ],
        (),
        "nonpayable",
    ),
    _fn(
        "getAutoTradingSettings",
        [("user", "address")],
        [
            ("enabled", "bool"),
            ("minConfidence", "uint256"),
            ("maxRiskScore", "uint256"),
            ("tradeAmount", "uint256"),
        ],
    ),
    _fn("approvedTokens", [("token", "address")], [("", "bool")]),
    _fn("addToken", [("_token", "address")], (), "nonpayable"),
    _fn("owner", [], [("", "address")]),
]

AI_ORACLE_ABI = [
    _fn(
        "getPrediction",
        [("_token", "address")],
        [
            ("confidence", "uint256"),
            ("priceDirection", "int256"),
            ("timestamp", "uint256"),
            ("isHoneypot", "bool"),
            ("riskScore", "uint256"),
        ],
    ),
]

PERMIT2_ABI = [
    _fn(
        "allowance",
        [("user", "address"), ("token", "address"), ("spender", "address")],
        [("amount", "uint160"), ("expiration", "uint48"), ("nonce", "uint48")],
    ),
    _fn(
        "approve",
        [
            ("token", "address"),
            ("spender", "address"),
            ("amount", "uint160"),
            ("expiration", "uint48"),
        ],
        (),
        "nonpayable",
    ),
]

UNIVERSAL_ROUTER_ABI = [
    _fn(
        "execute",
        [("commands", "bytes"), ("inputs", "bytes[]"), ("deadline", "uint256")],
        (),
        "payable",
    ),
]

# Swap event of constant-product pair contracts (sender and to are indexed)
PAIR_SWAP_EVENT = "Swap(address,address,uint256,uint256,uint256,uint256)"
