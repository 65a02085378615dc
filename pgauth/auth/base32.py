"""
Base32 (RFC 4648) codec for TOTP shared secrets.

The decoder is deliberately lenient: authenticator secrets are typed,
pasted and copied with spaces, dashes, lower case and broken padding, so
anything outside the alphabet is dropped rather than rejected.
"""

BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_INDEX = {ch: i for i, ch in enumerate(BASE32_ALPHABET)}


def decode(secret: str) -> bytes:
    """
    Decode a base32 secret into raw bytes.

    Characters are read case-insensitively as 5-bit groups. Every time at
    least 8 bits are buffered the top 8 are emitted; bits left over at the
    end (fewer than 8) are discarded.

    Args:
        secret: Base32 text, possibly padded or formatted

    Returns:
        Decoded bytes (possibly empty)
    """
    buffer = 0
    bits = 0
    output = bytearray()

    for ch in secret.upper():
        value = _INDEX.get(ch)
        if value is None:
            continue
        buffer = (buffer << 5) | value
        bits += 5
        if bits >= 8:
            bits -= 8
            output.append((buffer >> bits) & 0xFF)
            buffer &= (1 << bits) - 1

    return bytes(output)


def encode(data: bytes) -> str:
    """
    Encode bytes as unpadded base32.

    A final partial group is left-aligned and zero-filled, so
    ``decode(encode(data)) == data`` for any input.
    """
    buffer = 0
    bits = 0
    output = []

    for byte in data:
        buffer = (buffer << 8) | byte
        bits += 8
        while bits >= 5:
            bits -= 5
            output.append(BASE32_ALPHABET[(buffer >> bits) & 0x1F])
        buffer &= (1 << bits) - 1

    if bits:
        output.append(BASE32_ALPHABET[(buffer << (5 - bits)) & 0x1F])

    return "".join(output)
