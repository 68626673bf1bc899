"""Padding modes applied around the raw RSA transform.

The mode numbers are those of OpenSSL, so values obtained from other tooling can be passed through unchanged.
Every function here takes or returns byte strings of exactly the modulus size `k`, the RSA transform itself lives in
`rsakey.state`.

Typical usage example:

    em = pad(PKCS1_OAEP_PADDING, message, k, public=True)
    message = unpad(PKCS1_OAEP_PADDING, em, k, public=False)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import hashlib
from math import ceil
from secrets import token_bytes

PKCS1_PADDING = 1
SSLV23_PADDING = 2
NO_PADDING = 3
PKCS1_OAEP_PADDING = 4
X931_PADDING = 5

PKCS1_PADDING_SIZE = 11
X931_PADDING_SIZE = 2
# Digest length of the OAEP hash (SHA-1).
OAEP_HLEN = 20
OAEP_PADDING_SIZE = 2 * OAEP_HLEN + 2

# Paddings accepted for each direction: signature-style (private transform first) and encryption-style.
SIGNATURE_PADDINGS = frozenset({PKCS1_PADDING, NO_PADDING, X931_PADDING})
ENCRYPTION_PADDINGS = frozenset({PKCS1_PADDING, PKCS1_OAEP_PADDING, NO_PADDING})

_OVERHEAD = {
    PKCS1_PADDING: PKCS1_PADDING_SIZE,
    NO_PADDING: 0,
    PKCS1_OAEP_PADDING: OAEP_PADDING_SIZE,
    X931_PADDING: X931_PADDING_SIZE,
}


def overhead(padding: int) -> int:
    """Number of bytes of the modulus consumed by the padding mode.

    Args:
        padding: The padding mode.

    Returns:
        The overhead, in bytes.

    Raises:
        ValueError: If the padding mode is unknown.
    """
    try:
        return _OVERHEAD[padding]
    except KeyError:
        raise ValueError(f"Unknown padding type: {padding}") from None


def xorbytes(a: bytes, b: bytes) -> bytes:
    """XOR bitwise for two byte strings of equal length."""
    return bytes(x ^ y for x, y in zip(a, b, strict=True))


def mgf1(mgfseed: bytes, masklen: int, hashf=hashlib.sha1) -> bytes:
    """The PKCS#1 v2.2 Mask Generation Function 1.

    Args:
        mgfseed: Seed for mask generation
        masklen: Intended length of mask
        hashf: Hash constructor, SHA-1 unless told otherwise.

    Returns:
        The mask in form of bytes of length masklen.

    Raises:
        ValueError: If mask too long for the combination of values.
    """
    hlen = hashf().digest_size
    if masklen > 2**32 * hlen:
        raise ValueError("Mask too long for the specified hash function")
    t = b""
    for cnt in range(ceil(masklen / hlen)):
        t += hashf(mgfseed + cnt.to_bytes(4, byteorder="big")).digest()
    return t[:masklen]


def _nonzero_bytes(length: int) -> bytes:
    out = bytearray()
    while len(out) < length:
        out.extend(b for b in token_bytes(length - len(out)) if b)
    return bytes(out)


def _pad_pkcs1_type1(message: bytes, k: int) -> bytes:
    if len(message) > k - PKCS1_PADDING_SIZE:
        raise ValueError("Data too large for key size")
    return b"\x00\x01" + b"\xff" * (k - len(message) - 3) + b"\x00" + message


def _pad_pkcs1_type2(message: bytes, k: int) -> bytes:
    if len(message) > k - PKCS1_PADDING_SIZE:
        raise ValueError("Data too large for key size")
    return b"\x00\x02" + _nonzero_bytes(k - len(message) - 3) + b"\x00" + message


def _unpad_pkcs1(em: bytes, block_type: int) -> bytes:
    if len(em) < PKCS1_PADDING_SIZE or em[0] != 0x00 or em[1] != block_type:
        raise ValueError(f"Block type is not {block_type:02}")
    try:
        sep = em.index(b"\x00", 2)
    except ValueError:
        raise ValueError("Null before block missing") from None
    ps = em[2:sep]
    if len(ps) < 8:
        raise ValueError("Bad pad byte count")
    if block_type == 1 and ps.strip(b"\xff"):
        raise ValueError("Bad fixed header decrypt")
    return em[sep + 1:]


def _pad_oaep(message: bytes, k: int) -> bytes:
    if len(message) > k - OAEP_PADDING_SIZE:
        raise ValueError("Data too large for key size")
    lh = hashlib.sha1(b"").digest()
    db = lh + b"\x00" * (k - len(message) - OAEP_PADDING_SIZE) + b"\x01" + message
    seed = token_bytes(OAEP_HLEN)
    mdb = xorbytes(db, mgf1(seed, k - OAEP_HLEN - 1))
    mseed = xorbytes(seed, mgf1(mdb, OAEP_HLEN))
    return b"\x00" + mseed + mdb


def _unpad_oaep(em: bytes, k: int) -> bytes:
    if k < OAEP_PADDING_SIZE:
        raise ValueError("OAEP decoding error")
    lh = hashlib.sha1(b"").digest()
    valid = em[0] == 0
    mseed = em[1:OAEP_HLEN + 1]
    mdb = em[OAEP_HLEN + 1:]
    seed = xorbytes(mseed, mgf1(mdb, OAEP_HLEN))
    db = xorbytes(mdb, mgf1(seed, k - OAEP_HLEN - 1))
    if db[:OAEP_HLEN] != lh:
        valid = False
    mrkr = None
    for by in range(OAEP_HLEN, len(db)):
        if db[by] == 1 and mrkr is None:
            mrkr = by
        if db[by] not in (0, 1) and mrkr is None:
            valid = False
    if mrkr is None or not valid:
        raise ValueError("OAEP decoding error")
    return db[mrkr + 1:]


def _pad_x931(message: bytes, k: int) -> bytes:
    if len(message) > k - X931_PADDING_SIZE:
        raise ValueError("Data too large for key size")
    fill = k - len(message) - X931_PADDING_SIZE
    head = b"\x6a" if fill == 0 else b"\x6b" + b"\xbb" * (fill - 1) + b"\xba"
    return head + message + b"\xcc"


def _unpad_x931(em: bytes) -> bytes:
    if em[-1:] != b"\xcc":
        raise ValueError("Invalid trailer")
    if em[0] == 0x6a:
        return em[1:-1]
    if em[0] != 0x6b:
        raise ValueError("Invalid header")
    body = em[1:-1].lstrip(b"\xbb")
    if not body.startswith(b"\xba"):
        raise ValueError("Invalid padding")
    return body[1:]


def _pad_none(message: bytes, k: int) -> bytes:
    if len(message) != k:
        raise ValueError("Data length does not match key size" if len(message) < k else "Data too large for key size")
    return message


def pad(padding: int, message: bytes, k: int, public: bool) -> bytes:
    """Apply the padding mode to `message`, producing an encoded message of `k` bytes.

    Args:
        padding: The padding mode.
        message: The data to pad.
        k: The modulus size in bytes.
        public: True if the public transform follows (encryption), False for the private transform (signature).

    Returns:
        The encoded message.

    Raises:
        ValueError: If the mode does not apply in this direction or the message does not fit.
    """
    allowed = ENCRYPTION_PADDINGS if public else SIGNATURE_PADDINGS
    if padding not in allowed:
        raise ValueError(f"Unknown padding type: {padding}")
    if padding == NO_PADDING:
        return _pad_none(message, k)
    if padding == PKCS1_OAEP_PADDING:
        return _pad_oaep(message, k)
    if padding == X931_PADDING:
        return _pad_x931(message, k)
    return _pad_pkcs1_type2(message, k) if public else _pad_pkcs1_type1(message, k)


def unpad(padding: int, em: bytes, k: int, public: bool) -> bytes:
    """Strip the padding mode from an encoded message of `k` bytes.

    Args:
        padding: The padding mode.
        em: The encoded message, as produced by the RSA transform.
        k: The modulus size in bytes.
        public: True if the public transform produced `em` (signature recovery), False for the private transform
            (decryption).

    Returns:
        The recovered data.

    Raises:
        ValueError: If the mode does not apply in this direction or the encoded message is malformed.
    """
    allowed = SIGNATURE_PADDINGS if public else ENCRYPTION_PADDINGS
    if padding not in allowed:
        raise ValueError(f"Unknown padding type: {padding}")
    if padding == NO_PADDING:
        return em
    if padding == PKCS1_OAEP_PADDING:
        return _unpad_oaep(em, k)
    if padding == X931_PADDING:
        return _unpad_x931(em)
    return _unpad_pkcs1(em, 1 if public else 2)


def max_input(padding: int, k: int) -> int:
    """Largest plaintext accepted by `pad` for the mode and modulus size."""
    return k - overhead(padding)
