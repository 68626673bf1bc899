"""The RSA key handle.

RSAKey shares ownership of an RSAState: copies of a handle are aliases of the same state, and the state is released
exactly once, when the last alias is garbage collected. The handle makes no difference between public and private keys,
calling a private key operation on a public key fails in the primitive itself.

Typical usage example:

    key = RSAKey.generate_private_key(2048)
    signature = key.sign(hashlib.sha256(b"payload").digest(), "sha256")
    key.to_public_key().verify(signature, hashlib.sha256(b"payload").digest(), "sha256")
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import io
from typing import Optional
import weakref

from rsakey import codec
from rsakey import keygen
from rsakey import padding as pads
from rsakey.cipher import CipherAlgorithm
from rsakey.errors import AllocationError
from rsakey.errors import boundary
from rsakey.errors import CryptoOperationError
from rsakey.errors import DecodeError
from rsakey.errors import EncodeError
from rsakey.errors import GenerationFailed
from rsakey.errors import InvalidArgument
from rsakey.errors import raise_if_failed
from rsakey.errors import ValidationError
from rsakey.errors import VerificationFailed
from rsakey.pem import PassphraseCallback
from rsakey.state import RSAState


def _writable(out) -> memoryview:
    try:
        view = memoryview(out).cast("B")
    except TypeError as exc:
        raise InvalidArgument(f"Output buffer must be a writable buffer, not {type(out).__name__}") from exc
    if view.readonly:
        raise InvalidArgument("Output buffer must be writable")
    return view


class RSAKey:
    """A handle on RSA key material, with or without its private part."""

    def __init__(self, state: RSAState) -> None:
        """Take ownership of `state`.

        Args:
            state: The key state. Cannot be None.

        Raises:
            InvalidArgument: If `state` is None or has already been released.
        """
        if state is None:
            raise InvalidArgument("rsa")
        with boundary(InvalidArgument):
            state.acquire()
        self._state = state
        self._finalizer = weakref.finalize(self, state.release)

    @classmethod
    def new_empty(cls) -> "RSAKey":
        """A key with freshly allocated, empty state."""
        with boundary(AllocationError):
            state = RSAState()
        return cls(state)

    @classmethod
    def adopt(cls, state: RSAState) -> "RSAKey":
        """Take ownership of an existing state, see __init__."""
        return cls(state)

    @classmethod
    def generate_private_key(cls,
                             num: int,
                             exponent: int = keygen.DEFAULT_EXPONENT,
                             callback: Optional[keygen.ProgressCallback] = None) -> "RSAKey":
        """Generate a new RSA private key.

        Args:
            num: Modulus size in bits. Sizes below 1024 bits are insecure and produce a RuntimeWarning.
            exponent: Public exponent, odd, typically 3, 17 or 65537.
            callback: Notified of the generation progress, see rsakey.keygen.

        Returns:
            The generated key.

        Raises:
            GenerationFailed: If the parameters are refused or generation does not complete.
        """
        with boundary(GenerationFailed):
            n, e, d, p, q = keygen.generate_key_pair(num, exponent, callback)
            state = RSAState.from_primes(n, e, d, p, q)
        return cls(state)

    # Decoding

    @classmethod
    def from_private_key(cls, source, callback: Optional[PassphraseCallback] = None) -> "RSAKey":
        """Load a private key from a PEM buffer, stream, open file or path.

        Args:
            source: The PEM data source.
            callback: Called for the passphrase when the key is encrypted. Without it, encrypted keys fail to load.
        """
        with boundary(DecodeError):
            state = codec.read_private_key(source, callback)
        return cls(state)

    @classmethod
    def from_public_key(cls, source, callback: Optional[PassphraseCallback] = None) -> "RSAKey":
        """Load a PKCS #1 public key from a PEM buffer, stream, open file or path."""
        with boundary(DecodeError):
            state = codec.read_public_key(source, callback)
        return cls(state)

    @classmethod
    def from_certificate_public_key(cls, source, callback: Optional[PassphraseCallback] = None) -> "RSAKey":
        """Load a SubjectPublicKeyInfo public key from a PEM buffer, stream, open file or path."""
        with boundary(DecodeError):
            state = codec.read_certificate_public_key(source, callback)
        return cls(state)

    @classmethod
    def from_certificate(cls, source) -> "RSAKey":
        """Load the public key embedded in a PEM X.509 certificate."""
        with boundary(DecodeError):
            state = codec.read_certificate(source)
        return cls(state)

    @classmethod
    def from_der_private_key(cls, buf: bytes) -> "RSAKey":
        with boundary(DecodeError):
            state = codec.decode_private_der(bytes(buf))
        return cls(state)

    @classmethod
    def from_der_public_key(cls, buf: bytes) -> "RSAKey":
        with boundary(DecodeError):
            state = codec.decode_public_der(bytes(buf))
        return cls(state)

    @classmethod
    def from_der_certificate_public_key(cls, buf: bytes) -> "RSAKey":
        with boundary(DecodeError):
            state = codec.decode_spki_der(bytes(buf))
        return cls(state)

    # Encoding

    def write_private_key(self,
                          sink,
                          algorithm: Optional[CipherAlgorithm] = None,
                          passphrase: Optional[bytes] = None,
                          callback: Optional[PassphraseCallback] = None) -> None:
        """Write the private key as PEM.

        Args:
            sink: Stream or open file.
            algorithm: Cipher protecting the key. None writes it in clear and ignores the passphrase arguments.
            passphrase: The passphrase to use.
            callback: Called for the passphrase when none is given.

        Raises:
            InvalidArgument: If both a passphrase and a callback are given.
            EncodeError: If the key lacks private components or no passphrase could be obtained.
        """
        if passphrase is not None and callback is not None:
            raise InvalidArgument("passphrase and callback are mutually exclusive")
        with boundary(EncodeError):
            codec.write_private_key(sink, self._state, algorithm, passphrase, callback)

    def write_public_key(self, sink) -> None:
        """Write the PKCS #1 public key as PEM."""
        with boundary(EncodeError):
            codec.write_public_key(sink, self._state)

    def write_certificate_public_key(self, sink) -> None:
        """Write the SubjectPublicKeyInfo public key as PEM."""
        with boundary(EncodeError):
            codec.write_certificate_public_key(sink, self._state)

    def to_der_private_key(self) -> bytes:
        with boundary(EncodeError):
            return codec.encode_private_der(self._state)

    def to_der_public_key(self) -> bytes:
        with boundary(EncodeError):
            return codec.encode_public_der(self._state)

    def to_der_certificate_public_key(self) -> bytes:
        with boundary(EncodeError):
            return codec.encode_spki_der(self._state)

    # Blinding

    def enable_blinding(self, context=None) -> None:
        """Enable blinding of private key operations to mitigate timing attacks.

        The random source must be properly seeded: a predictable `context` makes blinding useless, this is not
        checked.

        Args:
            context: Object with a randbelow(n) method. Defaults to the system random source.
        """
        with boundary(CryptoOperationError):
            self._state.blinding_on(context)

    def disable_blinding(self) -> None:
        self._state.blinding_off()

    # Introspection

    def raw(self) -> RSAState:
        """The underlying state. Owned by the handle, never release it directly."""
        return self._state

    def size(self) -> int:
        """The modulus size in bytes."""
        return self._state.size()

    def check(self) -> None:
        """Check the key for consistency. The key must hold private components.

        Raises:
            ValidationError: If components are missing or inconsistent.
        """
        with boundary(ValidationError):
            self._state.check()

    def print(self, sink, offset: int = 0) -> None:
        """Print the key components in hexadecimal form.

        Args:
            sink: Stream or open file, binary or text.
            offset: Indentation in spaces.
        """
        with boundary(EncodeError):
            if isinstance(sink, io.TextIOBase):
                self._state.print(sink, offset)
            else:
                text = io.StringIO()
                self._state.print(text, offset)
                sink.write(text.getvalue().encode("ascii"))

    def to_public_key(self) -> "RSAKey":
        """A new, independent key holding only the public components."""
        with boundary(CryptoOperationError):
            state = self._state.public_copy()
        return RSAKey(state)

    def alias(self) -> "RSAKey":
        """Another handle sharing this key's state."""
        return RSAKey(self._state)

    # Primitives

    def _run(self, operation, out, buf, padding: int, minimum: int) -> int:
        view = _writable(out)
        with boundary(CryptoOperationError):
            raise_if_failed(len(view) >= minimum, CryptoOperationError,
                            f"Output buffer too small: {len(view)} < {minimum}")
            result = operation(bytes(buf), padding)
        view[:len(result)] = result
        return len(result)

    def _decrypt_minimum(self, padding: int) -> int:
        with boundary(CryptoOperationError):
            return max(self.size() - pads.overhead(padding), 0)

    def private_encrypt(self, out, buf, padding: int) -> int:
        """Encrypt `buf` with the private key.

        Args:
            out: Writable buffer of at least size() bytes.
            buf: The data. At most size() - 11 bytes with PKCS1_PADDING, exactly size() with NO_PADDING.
            padding: PKCS1_PADDING, NO_PADDING or X931_PADDING.

        Returns:
            The count of bytes written to `out`, size().

        Raises:
            CryptoOperationError: On any failure, the content of `out` is then unspecified.
        """
        return self._run(self._state.private_encrypt, out, buf, padding, self.size())

    def public_decrypt(self, out, buf, padding: int) -> int:
        """Decrypt `buf` with the public key, the inverse of private_encrypt.

        Args:
            out: Writable buffer, at least size() - 11 bytes with PKCS1_PADDING.
            buf: The data, exactly size() bytes.
            padding: The padding mode used by private_encrypt.

        Returns:
            The count of bytes written to `out`.
        """
        return self._run(self._state.public_decrypt, out, buf, padding, self._decrypt_minimum(padding))

    def public_encrypt(self, out, buf, padding: int) -> int:
        """Encrypt `buf` with the public key.

        Args:
            out: Writable buffer of at least size() bytes.
            buf: The data. At most size() - 11 bytes with PKCS1_PADDING, size() - 42 with PKCS1_OAEP_PADDING and
                exactly size() with NO_PADDING.
            padding: PKCS1_PADDING, PKCS1_OAEP_PADDING or NO_PADDING.

        Returns:
            The count of bytes written to `out`, size().
        """
        return self._run(self._state.public_encrypt, out, buf, padding, self.size())

    def private_decrypt(self, out, buf, padding: int) -> int:
        """Decrypt `buf` with the private key, the inverse of public_encrypt.

        Args:
            out: Writable buffer. Its minimum length depends on the padding, size() bytes are always enough.
            buf: The data, exactly size() bytes.
            padding: The padding mode used by public_encrypt.

        Returns:
            The count of bytes written to `out`.
        """
        return self._run(self._state.private_decrypt, out, buf, padding, self._decrypt_minimum(padding))

    def sign_into(self, out, digest, dtype: str) -> int:
        """Sign a message digest, as specified by PKCS #1.

        Args:
            out: Writable buffer of at least size() bytes.
            digest: The message digest. Hashing the message is up to the caller.
            dtype: The digest algorithm that produced `digest`, e.g. "sha256".

        Returns:
            The number of bytes written to `out`.
        """
        view = _writable(out)
        with boundary(CryptoOperationError):
            raise_if_failed(len(view) >= self.size(), CryptoOperationError,
                            f"Output buffer too small: {len(view)} < {self.size()}")
            signature = self._state.sign(bytes(digest), dtype)
        view[:len(signature)] = signature
        return len(signature)

    def sign(self, digest, dtype: str) -> bytes:
        """Sign a message digest, returning the signature."""
        out = bytearray(self.size())
        written = self.sign_into(out, digest, dtype)
        return bytes(out[:written])

    def verify(self, signature, digest, dtype: str) -> None:
        """Verify a message digest signature.

        Args:
            signature: The signature, as produced by sign().
            digest: The message digest.
            dtype: The digest algorithm that produced `digest`.

        Raises:
            VerificationFailed: If the signature does not match. This is a result, not a program error.
            CryptoOperationError: If the key has no public components or the algorithm is unknown.
        """
        with boundary(CryptoOperationError):
            valid = self._state.verify(bytes(signature), bytes(digest), dtype)
        if not valid:
            raise VerificationFailed("Bad signature")

    # Aliasing

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RSAKey):
            return NotImplemented
        return self._state is other._state

    def __hash__(self) -> int:
        return id(self._state)

    def __copy__(self) -> "RSAKey":
        return self.alias()

    def __deepcopy__(self, memo) -> "RSAKey":
        return self.alias()

    def __repr__(self) -> str:
        kind = "private" if self._state.has_private() else "public"
        return f"<RSAKey {self.size() * 8} bit {kind} at {id(self._state):#x}>"
