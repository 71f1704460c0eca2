"""Tests for packed swap-path encoding."""

import pytest

from trader.quoting.path import decode_path, encode_path, encode_single_hop

USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
WETH = "0x4200000000000000000000000000000000000006"
TKN = "0x" + "11" * 20


class TestEncodePath:
    def test_single_hop_layout(self):
        path = encode_single_hop(USDC, 500, TKN)

        assert len(path) == 43
        assert path[:20] == bytes.fromhex(USDC[2:])
        assert path[20:23] == bytes.fromhex("0001f4")
        assert path[23:] == bytes.fromhex("11" * 20)

    def test_multi_hop_decodes_back(self):
        path = encode_path([USDC, WETH, TKN], [500, 3000])

        tokens, fees = decode_path(path)

        assert len(path) == 66
        assert tokens == [USDC.lower(), WETH.lower(), TKN]
        assert fees == [500, 3000]

    @pytest.mark.parametrize(
        "tokens, fees",
        [
            ([USDC], []),
            ([USDC, TKN], [500, 3000]),
            ([USDC, "0x1234"], [500]),
            ([USDC, "0xzz" + "00" * 19], [500]),
            ([USDC, TKN], [2**24]),
        ],
    )
    def test_rejects_malformed_input(self, tokens, fees):
        with pytest.raises(ValueError):
            encode_path(tokens, fees)

    def test_decode_rejects_truncated_path(self):
        with pytest.raises(ValueError, match="Malformed path"):
            decode_path(encode_single_hop(USDC, 500, TKN)[:-1])
