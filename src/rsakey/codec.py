"""Translation between key encodings and RSAState.

Three distinct formats are handled: the PKCS #1 RSAPrivateKey, the PKCS #1 RSAPublicKey and the X.509
SubjectPublicKeyInfo ("certificate public key"). Unencrypted PKCS #8 private keys and public keys embedded in X.509
certificates are accepted when reading. Every function raises builtins or pyasn1 errors on failure, the key handle
converts them.

Typical usage example:

    state = read_private_key(stream, callback)
    write_certificate_public_key(sink, state)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import logging
import os
from typing import Optional

from pyasn1.codec.der import decoder
from pyasn1.codec.der import encoder
from pyasn1.codec.native import encoder as localize
from pyasn1.type import univ
from pyasn1_modules import rfc5208
from pyasn1_modules import rfc5280
from pyasn1_modules import rfc8017

from rsakey import pem
from rsakey.cipher import CipherAlgorithm
from rsakey.state import RSAState

logger = logging.getLogger(__name__)


def _decode(der: bytes, spec):
    value, rest = decoder.decode(der, asn1Spec=spec)
    if rest:
        raise IOError("Trailing data after encoded key")
    return value


def _require(state: RSAState, names: tuple[str, ...]) -> None:
    missing = [name for name in names if getattr(state, name) is None]
    if missing:
        raise IOError(f"Value missing: {', '.join(missing)}")


def _rsa_algorithm() -> rfc5280.AlgorithmIdentifier:
    algo = rfc5280.AlgorithmIdentifier()
    algo["algorithm"] = rfc8017.rsaEncryption
    algo["parameters"] = univ.Null("")
    return algo


# DER


def encode_private_der(state: RSAState) -> bytes:
    """Encode the PKCS #1 RSAPrivateKey structure. Requires every private component."""
    _require(state, ("n", "e", "d", "p", "q", "dmp1", "dmq1", "iqmp"))
    interkey = rfc8017.RSAPrivateKey()
    interkey["version"] = 0
    interkey["modulus"] = state.n
    interkey["publicExponent"] = state.e
    interkey["privateExponent"] = state.d
    interkey["prime1"] = state.p
    interkey["prime2"] = state.q
    interkey["exponent1"] = state.dmp1
    interkey["exponent2"] = state.dmq1
    interkey["coefficient"] = state.iqmp
    return encoder.encode(interkey)


def decode_private_der(der: bytes) -> RSAState:
    """Decode a PKCS #1 RSAPrivateKey structure, two-prime keys only."""
    keydata = _decode(der, rfc8017.RSAPrivateKey())
    if keydata["version"] != 0:
        raise IOError("Multi-prime keys are not supported.")
    pykeyd = localize.encode(keydata)
    return RSAState(pykeyd["modulus"], pykeyd["publicExponent"], pykeyd["privateExponent"], pykeyd["prime1"],
                    pykeyd["prime2"], pykeyd["exponent1"], pykeyd["exponent2"], pykeyd["coefficient"])


def decode_pkcs8_der(der: bytes) -> RSAState:
    """Decode an unencrypted PKCS #8 PrivateKeyInfo wrapping an RSA key."""
    decdata = _decode(der, rfc5208.PrivateKeyInfo())
    if decdata["version"] != 0:
        raise IOError("Unsupported version of private key information wrapper")
    if decdata["privateKeyAlgorithm"]["algorithm"] != rfc8017.rsaEncryption:
        raise IOError("Private Key Algorithm not supported.")
    return decode_private_der(decdata["privateKey"].asOctets())


def encode_public_der(state: RSAState) -> bytes:
    """Encode the PKCS #1 RSAPublicKey structure."""
    _require(state, ("n", "e"))
    keydata = rfc8017.RSAPublicKey()
    keydata["modulus"] = state.n
    keydata["publicExponent"] = state.e
    return encoder.encode(keydata)


def decode_public_der(der: bytes) -> RSAState:
    """Decode a PKCS #1 RSAPublicKey structure."""
    pykeyd = localize.encode(_decode(der, rfc8017.RSAPublicKey()))
    return RSAState(pykeyd["modulus"], pykeyd["publicExponent"])


def encode_spki_der(state: RSAState) -> bytes:
    """Encode the X.509 SubjectPublicKeyInfo structure for the key."""
    spki = rfc5280.SubjectPublicKeyInfo()
    spki["algorithm"] = _rsa_algorithm()
    spki["subjectPublicKey"] = univ.BitString.fromOctetString(encode_public_der(state))
    return encoder.encode(spki)


def _state_from_spki(spki) -> RSAState:
    if spki["algorithm"]["algorithm"] != rfc8017.rsaEncryption:
        raise IOError("Public key is not an RSA key")
    return decode_public_der(spki["subjectPublicKey"].asOctets())


def decode_spki_der(der: bytes) -> RSAState:
    """Decode an X.509 SubjectPublicKeyInfo holding an RSA key."""
    return _state_from_spki(_decode(der, rfc5280.SubjectPublicKeyInfo()))


def decode_certificate_der(der: bytes) -> RSAState:
    """Extract the RSA public key embedded in an X.509 certificate."""
    cert = _decode(der, rfc5280.Certificate())
    return _state_from_spki(cert["tbsCertificate"]["subjectPublicKeyInfo"])


# PEM sources


def _read_block(source, labels: tuple[str, ...]) -> tuple[str, dict[str, str], bytes]:
    if isinstance(source, os.PathLike):
        with open(source, "rb") as f:
            return pem.read_pem(f, labels)
    return pem.read_pem(pem.as_stream(source), labels)


def read_private_key(source, callback: Optional[pem.PassphraseCallback] = None) -> RSAState:
    """Read a PKCS #1 (possibly encrypted) or unencrypted PKCS #8 PEM private key.

    Args:
        source: Buffer, stream, open file or path.
        callback: Called when the key is passphrase protected.
    """
    label, headers, payload = _read_block(source, (pem.PKCS1_PRIV, pem.PKCS8, pem.ENCRYPTED_PKCS8))
    if label == pem.ENCRYPTED_PKCS8:
        raise IOError("Encrypted PKCS #8 private keys are not supported")
    if pem.is_encrypted(headers):
        logger.debug("Decrypting %s block", label)
        payload = pem.decrypt_payload(headers, payload, callback)
    if label == pem.PKCS8:
        return decode_pkcs8_der(payload)
    return decode_private_der(payload)


def read_public_key(source, callback: Optional[pem.PassphraseCallback] = None) -> RSAState:
    """Read a PKCS #1 PEM public key.

    Public keys are never encrypted, the callback is accepted for symmetry and only consulted for encrypted blocks.
    """
    _, headers, payload = _read_block(source, (pem.PKCS1_PUB,))
    if pem.is_encrypted(headers):
        payload = pem.decrypt_payload(headers, payload, callback)
    return decode_public_der(payload)


def read_certificate_public_key(source, callback: Optional[pem.PassphraseCallback] = None) -> RSAState:
    """Read an X.509 SubjectPublicKeyInfo PEM public key."""
    _, headers, payload = _read_block(source, (pem.SPKI,))
    if pem.is_encrypted(headers):
        payload = pem.decrypt_payload(headers, payload, callback)
    return decode_spki_der(payload)


def read_certificate(source) -> RSAState:
    """Read the RSA public key embedded in a PEM X.509 certificate."""
    _, _, payload = _read_block(source, (pem.CERTIFICATE,))
    return decode_certificate_der(payload)


# PEM sinks


def write_private_key(sink,
                      state: RSAState,
                      algorithm: Optional[CipherAlgorithm] = None,
                      passphrase: Optional[bytes] = None,
                      callback: Optional[pem.PassphraseCallback] = None) -> None:
    """Write the PKCS #1 PEM private key, encrypted when `algorithm` is given.

    Args:
        sink: Stream or open file, binary or text.
        state: The key.
        algorithm: Cipher protecting the key, None to write it in clear.
        passphrase: Literal passphrase. Mutually exclusive with `callback`.
        callback: Called for the passphrase when none is given literally.
    """
    der = encode_private_der(state)
    headers = None
    if algorithm is not None:
        if passphrase is None:
            passphrase = pem.get_passphrase(callback, writing=True)
        elif isinstance(passphrase, str):
            passphrase = passphrase.encode("utf-8")
        headers, der = pem.encrypt_payload(der, algorithm, bytes(passphrase))
        logger.debug("Encrypted private key with %s", algorithm.name)
    pem.write_pem(sink, pem.PKCS1_PRIV, der, headers)


def write_public_key(sink, state: RSAState) -> None:
    """Write the PKCS #1 PEM public key."""
    pem.write_pem(sink, pem.PKCS1_PUB, encode_public_der(state))


def write_certificate_public_key(sink, state: RSAState) -> None:
    """Write the X.509 SubjectPublicKeyInfo PEM public key."""
    pem.write_pem(sink, pem.SPKI, encode_spki_der(state))
