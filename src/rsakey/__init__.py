"""RSA key handles with PEM/DER codecs and the raw RSA primitives.

Provides a shared-ownership RSA key handle, the PKCS #1 and X.509 SubjectPublicKeyInfo encodings in PEM and DER
form, passphrase protected private keys, raw encryption/decryption under either key half with the PKCS #1 v1.5, OAEP,
X9.31 and no-padding modes, and PKCS #1 digest signatures.

Typical usage example:

    key = RSAKey.generate_private_key(2048)
    out = bytearray(key.size())
    written = key.public_encrypt(out, b"Hi there!", PKCS1_OAEP_PADDING)
    clear = bytearray(key.size())
    key.private_decrypt(clear, out[:written], PKCS1_OAEP_PADDING)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
from rsakey.cipher import AES_128_CBC
from rsakey.cipher import AES_192_CBC
from rsakey.cipher import AES_256_CBC
from rsakey.cipher import CipherAlgorithm
from rsakey.errors import AllocationError
from rsakey.errors import CryptoError
from rsakey.errors import CryptoOperationError
from rsakey.errors import DecodeError
from rsakey.errors import EncodeError
from rsakey.errors import GenerationFailed
from rsakey.errors import InvalidArgument
from rsakey.errors import ValidationError
from rsakey.errors import VerificationFailed
from rsakey.key import RSAKey
from rsakey.padding import NO_PADDING
from rsakey.padding import PKCS1_OAEP_PADDING
from rsakey.padding import PKCS1_PADDING
from rsakey.padding import X931_PADDING
from rsakey.state import RSAState

__version__ = "0.1.0"
__all__ = [
    "RSAKey",
    "RSAState",
    "CipherAlgorithm",
    "AES_128_CBC",
    "AES_192_CBC",
    "AES_256_CBC",
    "PKCS1_PADDING",
    "NO_PADDING",
    "PKCS1_OAEP_PADDING",
    "X931_PADDING",
    "CryptoError",
    "AllocationError",
    "InvalidArgument",
    "DecodeError",
    "EncodeError",
    "CryptoOperationError",
    "VerificationFailed",
    "ValidationError",
    "GenerationFailed",
]
