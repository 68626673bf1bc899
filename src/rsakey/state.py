"""Native RSA key state and the raw operations performed on it.

RSAState plays the part of the native key structure: it holds the integer components, counts the handles owning it
and implements the padded RSA primitives, blinding, the consistency check and the diagnostic dump. Failures are
raised as builtins (ValueError, RuntimeError) and converted by the handle layer.
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import logging
import math
import secrets
import threading
from typing import Optional, TextIO

from rsakey import digests
from rsakey import keygen
from rsakey import padding as pads

logger = logging.getLogger(__name__)

COMPONENTS = ("n", "e", "d", "p", "q", "dmp1", "dmq1", "iqmp")
CRT_COMPONENTS = ("p", "q", "dmp1", "dmq1", "iqmp")


def bytes_to_integer(msg: bytes) -> int:
    """Converts a byte string to an integer, big endian."""
    return int.from_bytes(msg, byteorder="big", signed=False)


def integer_to_bytes(msg: int, fixedlen: int) -> bytes:
    """Converts an integer to a fixed-length big endian byte string."""
    return msg.to_bytes(fixedlen, byteorder="big", signed=False)


class RSAState:
    """The key components and ownership bookkeeping shared by every alias of a key.

    Attributes:
        n: Modulus.
        e: Public exponent.
        d: Private exponent.
        p: Prime 1.
        q: Prime 2.
        dmp1: CRT exponent d mod (p - 1).
        dmq1: CRT exponent d mod (q - 1).
        iqmp: CRT coefficient q^-1 mod p.
        freed: True once the components have been released.
    """

    def __init__(self,
                 n: Optional[int] = None,
                 e: Optional[int] = None,
                 d: Optional[int] = None,
                 p: Optional[int] = None,
                 q: Optional[int] = None,
                 dmp1: Optional[int] = None,
                 dmq1: Optional[int] = None,
                 iqmp: Optional[int] = None) -> None:
        self.n = n
        self.e = e
        self.d = d
        self.p = p
        self.q = q
        self.dmp1 = dmp1
        self.dmq1 = dmq1
        self.iqmp = iqmp
        self.freed = False
        self._owners = 0
        self._lock = threading.Lock()
        self._blinding = None

    @classmethod
    def from_primes(cls, n: int, e: int, d: int, p: int, q: int) -> "RSAState":
        """Build a complete private state, deriving the CRT parameters."""
        return cls(n, e, d, p, q, d % (p - 1), d % (q - 1), pow(q, -1, p))

    def __repr__(self) -> str:
        if self.freed:
            return "<RSAState freed>"
        bits = self.n.bit_length() if self.n else 0
        kind = "private" if self.d is not None else "public"
        return f"<RSAState {bits} bit {kind}>"

    # Ownership

    @property
    def owners(self) -> int:
        return self._owners

    def acquire(self) -> None:
        """Register one more owning handle.

        Raises:
            ValueError: If the state has already been released.
        """
        with self._lock:
            if self.freed:
                raise ValueError("Key state has already been released")
            self._owners += 1

    def release(self) -> None:
        """Drop one owning handle, freeing the components when none is left."""
        with self._lock:
            if self._owners <= 0:
                raise RuntimeError("Key state released more often than acquired")
            self._owners -= 1
            last = self._owners == 0
        if last:
            self.free()

    def free(self) -> None:
        """Wipe the components. Runs once, further calls do nothing."""
        with self._lock:
            if self.freed:
                return
            for name in COMPONENTS:
                setattr(self, name, None)
            self._blinding = None
            self.freed = True
        logger.debug("Released RSA key state %#x", id(self))

    # Introspection

    def size(self) -> int:
        """Modulus size in bytes, 0 when no modulus is set."""
        if not self.n:
            return 0
        return (self.n.bit_length() + 7) // 8

    def has_private(self) -> bool:
        return self.d is not None or all(getattr(self, name) is not None for name in CRT_COMPONENTS)

    def public_copy(self) -> "RSAState":
        """A new state holding copies of the public components only."""
        return RSAState(self.n, self.e)

    # Blinding

    @property
    def blinding(self) -> bool:
        return self._blinding is not None

    def blinding_on(self, source=None) -> None:
        """Blind every following private operation with a random factor drawn from `source`.

        Args:
            source: Object with a randbelow(n) method. Defaults to the secrets module.

        Raises:
            ValueError: If the modulus or the public exponent is missing.
        """
        if not self.n or not self.e:
            raise ValueError("No public exponent or modulus, cannot set up blinding")
        self._blinding = source if source is not None else secrets

    def blinding_off(self) -> None:
        self._blinding = None

    # Raw transforms

    def _require_public(self) -> tuple[int, int]:
        if not self.n or not self.e:
            raise ValueError("Value missing: modulus or public exponent")
        return self.n, self.e

    def _crt(self, c: int) -> int:
        m_1 = pow(c, self.dmp1, self.p)
        m_2 = pow(c, self.dmq1, self.q)
        h = ((m_1 - m_2) * self.iqmp) % self.p
        return m_2 + self.q * h

    def _private_transform(self, c: int) -> int:
        has_crt = all(getattr(self, name) for name in CRT_COMPONENTS)
        if not self.n or (self.d is None and not has_crt):
            raise ValueError("Value missing: private key components")
        unblind = None
        if self._blinding is not None:
            while True:
                r = self._blinding.randbelow(self.n - 1) + 1
                if math.gcd(r, self.n) == 1:
                    break
            c = (c * pow(r, self.e, self.n)) % self.n
            unblind = pow(r, -1, self.n)
        if has_crt:
            m = self._crt(c)
            # Guard against corrupted CRT parameters, falling back to the plain exponent.
            if self.e and self.d is not None and pow(m, self.e, self.n) != c:
                m = pow(c, self.d, self.n)
        else:
            m = pow(c, self.d, self.n)
        if unblind is not None:
            m = (m * unblind) % self.n
        return m

    def _check_input(self, buf: bytes, k: int) -> int:
        if len(buf) > k:
            raise ValueError("Data greater than modulus length")
        value = bytes_to_integer(buf)
        if value >= self.n:
            raise ValueError("Data too large for modulus")
        return value

    def private_encrypt(self, buf: bytes, padding: int) -> bytes:
        """Pad `buf` for a signature-style operation and apply the private transform."""
        if not self.n:
            raise ValueError("Value missing: modulus")
        k = self.size()
        em = pads.pad(padding, buf, k, public=False)
        s = self._private_transform(self._check_input(em, k))
        if padding == pads.X931_PADDING:
            # X9.31 signatures are the smaller of s and n - s.
            s = min(s, self.n - s)
        return integer_to_bytes(s, k)

    def public_decrypt(self, buf: bytes, padding: int) -> bytes:
        """Apply the public transform to `buf` and strip the signature-style padding."""
        n, e = self._require_public()
        k = self.size()
        if len(buf) != k:
            raise ValueError("Data length does not match modulus length")
        r = pow(self._check_input(buf, k), e, n)
        if padding == pads.X931_PADDING and r & 0xF != 0xC:
            r = n - r
        return pads.unpad(padding, integer_to_bytes(r, k), k, public=True)

    def public_encrypt(self, buf: bytes, padding: int) -> bytes:
        """Pad `buf` for encryption and apply the public transform."""
        n, e = self._require_public()
        k = self.size()
        em = pads.pad(padding, buf, k, public=True)
        return integer_to_bytes(pow(self._check_input(em, k), e, n), k)

    def private_decrypt(self, buf: bytes, padding: int) -> bytes:
        """Apply the private transform to `buf` and strip the encryption padding."""
        if not self.n:
            raise ValueError("Value missing: modulus")
        k = self.size()
        if len(buf) != k:
            raise ValueError("Data length does not match modulus length")
        em = integer_to_bytes(self._private_transform(self._check_input(buf, k)), k)
        return pads.unpad(padding, em, k, public=False)

    def sign(self, digest: bytes, dtype: str) -> bytes:
        """PKCS #1 v1.5 signature over an already computed digest."""
        encoded = digests.encode_digest_info(digest, dtype)
        if len(encoded) > self.size() - pads.PKCS1_PADDING_SIZE:
            raise ValueError("Digest too big for RSA key")
        return self.private_encrypt(encoded, pads.PKCS1_PADDING)

    def verify(self, signature: bytes, digest: bytes, dtype: str) -> bool:
        """Check a PKCS #1 v1.5 signature over `digest`.

        Returns:
            True if the signature matches, False otherwise.

        Raises:
            ValueError: If the key has no public components or the algorithm is unknown.
        """
        self._require_public()
        if dtype != digests.MD5_SHA1 and dtype not in digests.DIGESTS:
            raise ValueError(f"Unknown algorithm type: {dtype}")
        try:
            expected = digests.encode_digest_info(digest, dtype)
            recovered = self.public_decrypt(signature, pads.PKCS1_PADDING)
        except ValueError:
            return False
        return secrets.compare_digest(expected, recovered)

    # Validation

    def check(self) -> None:
        """Check the private components for consistency.

        Raises:
            ValueError: If a component is missing.
            RuntimeError: If the components do not form a valid RSA key.
        """
        for name in ("n", "e", "d", "p", "q"):
            if getattr(self, name) is None:
                raise ValueError(f"Value missing: {name}")
        n, e, d, p, q = self.n, self.e, self.d, self.p, self.q
        if e < 3 or e % 2 == 0:
            raise RuntimeError("Bad e value")
        if not keygen.check_prime(p):
            raise RuntimeError("p not prime")
        if not keygen.check_prime(q):
            raise RuntimeError("q not prime")
        if n != p * q:
            raise RuntimeError("n does not equal p q")
        if (d * e) % math.lcm(p - 1, q - 1) != 1:
            raise RuntimeError("d e not congruent to 1")
        if self.dmp1 is not None and self.dmp1 != d % (p - 1):
            raise RuntimeError("dmp1 not congruent to d")
        if self.dmq1 is not None and self.dmq1 != d % (q - 1):
            raise RuntimeError("dmq1 not congruent to d")
        if self.iqmp is not None and (self.iqmp * q) % p != 1:
            raise RuntimeError("iqmp not inverse of q")

    # Diagnostics

    def print(self, out: TextIO, offset: int = 0) -> None:
        """Write a human-readable hexadecimal dump of the present components, OpenSSL RSA_print style.

        Args:
            out: Text sink.
            offset: Number of spaces every line is indented by.
        """
        if not self.n:
            raise ValueError("Value missing: modulus")
        bits = self.n.bit_length()
        lines = []
        if self.d is not None:
            lines.append(f"Private-Key: ({bits} bit, 2 primes)")
            names = (("modulus", "n"), ("publicExponent", "e"), ("privateExponent", "d"), ("prime1", "p"),
                     ("prime2", "q"), ("exponent1", "dmp1"), ("exponent2", "dmq1"), ("coefficient", "iqmp"))
        else:
            lines.append(f"Public-Key: ({bits} bit)")
            names = (("Modulus", "n"), ("Exponent", "e"))
        for label, attr in names:
            value = getattr(self, attr)
            if value is not None:
                lines.extend(_format_number(label, value))
        indent = " " * offset
        out.write("".join(f"{indent}{line}\n" for line in lines))


def _format_number(label: str, value: int) -> list[str]:
    if value.bit_length() <= 64:
        return [f"{label}: {value} ({value:#x})"]
    raw = integer_to_bytes(value, (value.bit_length() + 7) // 8)
    if raw[0] & 0x80:
        raw = b"\x00" + raw
    octets = [f"{b:02x}" for b in raw]
    rows = [octets[i:i + 15] for i in range(0, len(octets), 15)]
    body = [("    " + ":".join(row) + (":" if i < len(rows) - 1 else "")) for i, row in enumerate(rows)]
    return [f"{label}:"] + body
