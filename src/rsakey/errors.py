"""Error taxonomy of the key handle and the conversion from native failures.

The native layer (state, padding, pem, keygen) raises plain builtins, the way the rest of the package always has.
At the handle boundary those are converted into one of the kinds below, keeping the native message as diagnostic.

Typical usage example:

    with boundary(DecodeError):
        state = codec.read_private_key(source)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import binascii
import contextlib
from typing import Iterator, NoReturn

from pyasn1.error import PyAsn1Error

# Builtins the native layer raises on failure.
NATIVE_ERRORS = (ValueError, RuntimeError, OSError, binascii.Error, PyAsn1Error, UnicodeError)


class CryptoError(Exception):
    """Base class of every error reported by the key handle."""


class AllocationError(CryptoError, MemoryError):
    """Native key state could not be allocated."""


class InvalidArgument(CryptoError, ValueError):
    """A constructor or call received an unusable argument."""


class DecodeError(CryptoError, IOError):
    """Malformed encoding, wrong passphrase or mismatching format."""


class EncodeError(CryptoError, IOError):
    """The key could not be written in the requested format."""


class CryptoOperationError(CryptoError, RuntimeError):
    """An encryption, decryption or signing primitive failed."""


class VerificationFailed(CryptoError):
    """The signature does not match the digest.

    An expected outcome of verification, not a program error.
    """


class ValidationError(CryptoError, RuntimeError):
    """The key components are missing or inconsistent."""


class GenerationFailed(CryptoError, RuntimeError):
    """Key generation was refused or did not complete."""


def raise_if_failed(condition: object, kind: type[CryptoError], message: str) -> None:
    """Raise `kind` with `message` unless `condition` is truthy.

    Args:
        condition: The outcome of the native call.
        kind: The error kind to raise.
        message: The diagnostic to carry.

    Raises:
        CryptoError: `kind`, when the condition is falsy.
    """
    if not condition:
        raise kind(message)


def _reraise(kind: type[CryptoError], exc: BaseException) -> NoReturn:
    message = str(exc) or type(exc).__name__
    raise kind(message) from exc


@contextlib.contextmanager
def boundary(kind: type[CryptoError]) -> Iterator[None]:
    """Convert native failures raised inside the block into `kind`.

    Errors that already belong to the taxonomy pass through untouched.

    Args:
        kind: The error kind reported for native failures.
    """
    try:
        yield
    except CryptoError:
        raise
    except MemoryError as exc:
        _reraise(AllocationError, exc)
    except NATIVE_ERRORS as exc:
        _reraise(kind, exc)
