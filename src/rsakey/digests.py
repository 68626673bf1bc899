"""Digest algorithm identifiers and the PKCS #1 DigestInfo encoding used by signatures."""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
from pyasn1.codec.der import encoder
from pyasn1.type import univ
from pyasn1_modules import rfc8017

# name: (algorithm identifier, digest length)
DIGESTS = {
    "md5": (rfc8017.id_md5, 16),
    "sha1": (rfc8017.id_sha1, 20),
    "sha224": (rfc8017.id_sha224, 28),
    "sha256": (rfc8017.id_sha256, 32),
    "sha384": (rfc8017.id_sha384, 48),
    "sha512": (rfc8017.id_sha512, 64),
    "sha512_224": (rfc8017.id_sha512_224, 28),
    "sha512_256": (rfc8017.id_sha512_256, 32),
}

# TLS 1.0/1.1 style signatures over MD5 || SHA-1, signed without a DigestInfo wrapper.
MD5_SHA1 = "md5_sha1"
MD5_SHA1_LENGTH = 36


def encode_digest_info(digest: bytes, dtype: str) -> bytes:
    """Build the byte string a PKCS #1 v1.5 signature covers.

    Args:
        digest: The message digest.
        dtype: The digest algorithm name, a key of DIGESTS or "md5_sha1".

    Returns:
        The DER encoded DigestInfo, or the raw digest for "md5_sha1".

    Raises:
        ValueError: If the algorithm is unknown or the digest has the wrong length.
    """
    if dtype == MD5_SHA1:
        if len(digest) != MD5_SHA1_LENGTH:
            raise ValueError("Invalid digest length")
        return digest
    try:
        ident, dlen = DIGESTS[dtype]
    except KeyError:
        raise ValueError(f"Unknown algorithm type: {dtype}") from None
    if len(digest) != dlen:
        raise ValueError("Invalid digest length")
    algid = rfc8017.DigestAlgorithm()
    algid["algorithm"] = ident
    algid["parameters"] = univ.Null("")
    payload = rfc8017.DigestInfo()
    payload["digestAlgorithm"] = algid
    payload["digest"] = digest
    return encoder.encode(payload)
