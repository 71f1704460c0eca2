"""Packed swap-path encoding: token (20 bytes) | fee (3 bytes) | token ..."""

ADDRESS_SIZE = 20
FEE_SIZE = 3
MAX_FEE = 2 ** (8 * FEE_SIZE) - 1


def _address_bytes(address: str) -> bytes:
    raw = address[2:] if address.lower().startswith("0x") else address
    try:
        data = bytes.fromhex(raw)
    except ValueError as e:
        raise ValueError(f"Invalid address: {address!r}") from e
    if len(data) != ADDRESS_SIZE:
        raise ValueError(f"Address must be {ADDRESS_SIZE} bytes: {address!r}")
    return data


def encode_path(tokens: list[str], fees: list[int]) -> bytes:
    """Encode a multi-hop path; len(tokens) must be len(fees) + 1."""
    if len(tokens) < 2 or len(tokens) != len(fees) + 1:
        raise ValueError("Path needs n tokens and n-1 fees")

    encoded = bytearray(_address_bytes(tokens[0]))
    for fee, token in zip(fees, tokens[1:]):
        if not 0 <= fee <= MAX_FEE:
            raise ValueError(f"Fee out of range: {fee}")
        encoded += fee.to_bytes(FEE_SIZE, "big")
        encoded += _address_bytes(token)
    return bytes(encoded)


def encode_single_hop(token_in: str, fee: int, token_out: str) -> bytes:
    """Path for one pool: token_in | fee | token_out."""
    return encode_path([token_in, token_out], [fee])


def decode_path(path: bytes) -> tuple[list[str], list[int]]:
    """Inverse of encode_path; addresses come back lowercase."""
    step = ADDRESS_SIZE + FEE_SIZE
    if len(path) < step + ADDRESS_SIZE or (len(path) - ADDRESS_SIZE) % step:
        raise ValueError(f"Malformed path of {len(path)} bytes")

    tokens = ["0x" + path[:ADDRESS_SIZE].hex()]
    fees = []
    offset = ADDRESS_SIZE
    while offset < len(path):
        fees.append(int.from_bytes(path[offset : offset + FEE_SIZE], "big"))
        offset += FEE_SIZE
        tokens.append("0x" + path[offset : offset + ADDRESS_SIZE].hex())
        offset += ADDRESS_SIZE
    return tokens, fees
