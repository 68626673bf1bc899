"""PEM armour: reading and writing labelled base64 blocks, and the traditional OpenSSL private key encryption.

Reading is line based, so a stream is left positioned right after the block that was consumed and several blocks can
be read from the same stream one after another.

Typical usage example:

    write_pem(stream, "RSA PUBLIC KEY", der)
    label, headers, der = read_pem(stream, ("RSA PUBLIC KEY",))
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import base64
import binascii
import hashlib
import io
import logging
from secrets import token_bytes
from typing import BinaryIO, Callable, Iterable, Optional, Union

from cryptography.hazmat.primitives import padding as sympad

from rsakey.cipher import CipherAlgorithm
from rsakey.errors import InvalidArgument

logger = logging.getLogger(__name__)

LINE_LENGTH = 64
MAX_PASSPHRASE = 1024

PKCS1_PRIV = "RSA PRIVATE KEY"
PKCS1_PUB = "RSA PUBLIC KEY"
PKCS8 = "PRIVATE KEY"
ENCRYPTED_PKCS8 = "ENCRYPTED PRIVATE KEY"
SPKI = "PUBLIC KEY"
CERTIFICATE = "CERTIFICATE"

_BEGIN = b"-----BEGIN "
_END = b"-----END "
_DASHES = b"-----"

PassphraseCallback = Callable[[bool], Union[bytes, str, None]]


def _label_of(line: bytes, marker: bytes) -> Optional[str]:
    if not line.startswith(marker) or not line.endswith(_DASHES) or len(line) < len(marker) + len(_DASHES):
        return None
    return line[len(marker):-len(_DASHES)].decode("ascii")


def _readline(stream) -> bytes:
    line = stream.readline()
    if isinstance(line, str):
        line = line.encode("ascii")
    return line


def read_pem(stream, labels: Iterable[str]) -> tuple[str, dict[str, str], bytes]:
    """Read the next PEM block carrying one of `labels` from `stream`.

    Lines before the block and blocks with other labels are skipped.

    Args:
        stream: Readable object with a readline() method, binary or text.
        labels: The acceptable labels, e.g. ("RSA PUBLIC KEY",).

    Returns:
        A tuple (label, headers, payload) with the decoded payload.

    Raises:
        IOError: If no matching block is found or the block is not terminated.
        binascii.Error: If the payload is not valid base64.
    """
    wanted = tuple(labels)
    while True:
        line = _readline(stream)
        if not line:
            raise IOError(f"No start line: expecting {' or '.join(wanted)}")
        label = _label_of(line.strip(), _BEGIN)
        if label is None:
            continue
        headers, payload = _read_body(stream, label)
        if label in wanted:
            logger.debug("Read PEM block %s", label)
            return label, headers, payload
        logger.debug("Skipping PEM block %s", label)


def _read_body(stream, label: str) -> tuple[dict[str, str], bytes]:
    footer = _END + label.encode("ascii") + _DASHES
    headers: dict[str, str] = {}
    parcel = []
    in_headers = True
    while True:
        raw = _readline(stream)
        if not raw:
            raise IOError(f"PEM block does not contain footer: {footer.decode('ascii')}")
        line = raw.strip()
        if line == footer:
            break
        if in_headers and b":" in line:
            name, _, value = line.decode("ascii").partition(":")
            headers[name.strip()] = value.strip()
            continue
        in_headers = False
        if line:
            parcel.append(line)
    return headers, base64.b64decode(b"".join(parcel), validate=True)


def encode_pem(label: str, data: bytes, headers: Optional[dict[str, str]] = None) -> bytes:
    """Armour `data` as a PEM block with 64 column lines."""
    payload = base64.b64encode(data)
    res = [f"-----BEGIN {label}-----\n".encode("ascii")]
    if headers:
        res.extend(f"{name}: {value}\n".encode("ascii") for name, value in headers.items())
        res.append(b"\n")
    res.extend(payload[i:i + LINE_LENGTH] + b"\n" for i in range(0, len(payload), LINE_LENGTH))
    res.append(f"-----END {label}-----\n".encode("ascii"))
    return b"".join(res)


def write_pem(sink, label: str, data: bytes, headers: Optional[dict[str, str]] = None) -> None:
    """Write a PEM block to a binary or text sink."""
    block = encode_pem(label, data, headers)
    if isinstance(sink, io.TextIOBase):
        sink.write(block.decode("ascii"))
    else:
        sink.write(block)


def as_stream(source) -> BinaryIO:
    """Wrap an in-memory buffer as a stream, pass streams through."""
    if isinstance(source, str):
        return io.BytesIO(source.encode("ascii"))
    if isinstance(source, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(source))
    if hasattr(source, "readline"):
        return source
    raise InvalidArgument(f"Cannot read PEM data from {type(source).__name__}")


# Traditional ("Proc-Type: 4,ENCRYPTED") encryption


def bytes_to_key(passphrase: bytes, salt: bytes, key_length: int) -> bytes:
    """OpenSSL EVP_BytesToKey with MD5 and a single iteration."""
    derived = b""
    block = b""
    while len(derived) < key_length:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:key_length]


def get_passphrase(callback: Optional[PassphraseCallback], writing: bool) -> bytes:
    """Obtain a passphrase from `callback`.

    Raises:
        IOError: If there is no callback or it supplies nothing usable.
    """
    if callback is None:
        raise IOError("Bad password read: no passphrase callback")
    value = callback(writing)
    if isinstance(value, str):
        value = value.encode("utf-8")
    if not value:
        raise IOError("Problems getting password")
    if len(value) > MAX_PASSPHRASE:
        raise IOError(f"Passphrase longer than {MAX_PASSPHRASE} bytes")
    return bytes(value)


def encrypt_payload(data: bytes, algorithm: CipherAlgorithm, passphrase: bytes) -> tuple[dict[str, str], bytes]:
    """Encrypt a DER payload, returning the PEM headers and the ciphertext."""
    iv = token_bytes(algorithm.iv_length)
    key = bytes_to_key(passphrase, iv[:8], algorithm.key_length)
    padder = sympad.PKCS7(algorithm.block_bits).padder()
    padded = padder.update(data) + padder.finalize()
    encryptor = algorithm.cipher(key, iv).encryptor()
    headers = {"Proc-Type": "4,ENCRYPTED", "DEK-Info": f"{algorithm.name},{iv.hex().upper()}"}
    return headers, encryptor.update(padded) + encryptor.finalize()


def is_encrypted(headers: dict[str, str]) -> bool:
    return headers.get("Proc-Type", "").replace(" ", "") == "4,ENCRYPTED"


def decrypt_payload(headers: dict[str, str], data: bytes, callback: Optional[PassphraseCallback]) -> bytes:
    """Decrypt a traditional encrypted PEM payload.

    Raises:
        IOError: If the headers are malformed, the passphrase is missing or wrong.
        ValueError: If the cipher is not supported.
    """
    dek = headers.get("DEK-Info")
    if not dek or "," not in dek:
        raise IOError("Missing or malformed DEK-Info header")
    name, _, iv_hex = dek.partition(",")
    algorithm = CipherAlgorithm.from_name(name.strip())
    try:
        iv = binascii.unhexlify(iv_hex.strip())
    except binascii.Error:
        raise IOError("Bad IV in DEK-Info header") from None
    if len(iv) != algorithm.iv_length:
        raise IOError("Bad IV length in DEK-Info header")
    if len(data) % algorithm.iv_length:
        raise IOError("Bad encrypted payload length")
    passphrase = get_passphrase(callback, writing=False)
    key = bytes_to_key(passphrase, iv[:8], algorithm.key_length)
    decryptor = algorithm.cipher(key, iv).decryptor()
    padded = decryptor.update(data) + decryptor.finalize()
    unpadder = sympad.PKCS7(algorithm.block_bits).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError:
        raise IOError("Bad decrypt: wrong passphrase or corrupted data") from None
