"""Symmetric cipher selectors for passphrase protected PEM private keys.

Typical usage example:

    key.write_private_key(stream, AES_256_CBC, passphrase=b"secret")
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import typing

from cryptography.hazmat.primitives.ciphers import algorithms
from cryptography.hazmat.primitives.ciphers import Cipher
from cryptography.hazmat.primitives.ciphers import modes


class CipherAlgorithm(typing.NamedTuple):
    """A CBC block cipher, identified by its OpenSSL name as written in the DEK-Info header.

    Attributes:
        name: The stable identifier, e.g. "AES-256-CBC".
        key_length: Key size in bytes.
        iv_length: IV size in bytes, equal to the block size.
    """
    name: str
    key_length: int
    iv_length: int

    @property
    def block_bits(self) -> int:
        return self.iv_length * 8

    def cipher(self, key: bytes, iv: bytes) -> Cipher:
        """Instantiate the cipher for `key` and `iv`."""
        return Cipher(algorithms.AES(key), modes.CBC(iv))

    @classmethod
    def from_name(cls, name: str) -> "CipherAlgorithm":
        """Look a cipher up by its OpenSSL name, case insensitive.

        Raises:
            ValueError: If the cipher is not supported.
        """
        try:
            return CIPHERS[name.upper()]
        except KeyError:
            raise ValueError(f"Unsupported cipher: {name}") from None


AES_128_CBC = CipherAlgorithm("AES-128-CBC", 16, 16)
AES_192_CBC = CipherAlgorithm("AES-192-CBC", 24, 16)
AES_256_CBC = CipherAlgorithm("AES-256-CBC", 32, 16)

CIPHERS = {c.name: c for c in (AES_128_CBC, AES_192_CBC, AES_256_CBC)}
