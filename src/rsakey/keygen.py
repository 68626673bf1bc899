"""Core Key Generation Utility, mainly focusing on the generation of random large primes.

Generates IFC key pairs roughly based on FIPS 186-5, using probable primes. Progress is reported through an optional
callback receiving the same codes OpenSSL hands to its BN_GENCB callbacks:

    0, i: candidate number i was drawn.
    1, j: candidate passed Miller-Rabin round j.
    2, i: candidate i was rejected because it shares a factor with the public exponent.
    3, 0 or 3, 1: prime p, respectively q, was found.

Typical usage example:

    n, e, d, p, q = generate_key_pair(2048)
    check_prime(p)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import logging
import math
import secrets
from typing import Callable, Optional
import warnings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], object]

MIN_MODULUS_BITS: int = 16
MIN_SECURE_BITS: int = 1024
DEFAULT_EXPONENT: int = 65537

_SMALL_PRIMES: list[int] = []
_SMALL_PRIMES_CAP: int = 0
_MINIMUM_PRIME_SEPARATION: int = 100


def _sieve(n: int = 10000) -> list[int]:
    """Implements the Sieve of Eratosthenes.

    Uses the textbook Sieve of Eratosthenes to generate a set of primes up to `n`.
    Includes memory space optimization and sieving until root.

    Args:
        n: The number up to which to generate primes. Defaults to 10000. Must be >= 0.

    Returns:
        A list of primes up to `n`.
    """
    if n < 2:
        return []
    i_size = (n - 1) // 2
    candidate: list[bool] = [True] * i_size
    for i in range(int(n**0.5) // 2):
        if candidate[i]:
            r = 2 * i + 3
            for j in range((r * r - 3) // 2, i_size, r):
                candidate[j] = False
    return [2] + [(no * 2 + 3) for no, ele in enumerate(candidate) if ele]


def get_pre_primes(n: int = 10000, change: bool = False) -> list[int]:
    """Get the small primes, automatically generating if necessary.

    Uses `_SMALL_PRIMES` as a cache. Regeneration occurs if the requested range is greater, forced by `change` or the
    cache is empty.

    Args:
        n: The number up to which to generate primes. Defaults to 10000. Must be >= 0.
        change: Whether to force a recomputation of primes. Defaults to False.

    Returns:
        List of primes in ascending order, all primes at least up to `n` unless `change` is True.
    """
    if n < 0:
        raise ValueError("n must be >= 0")
    global _SMALL_PRIMES
    global _SMALL_PRIMES_CAP
    if n > _SMALL_PRIMES_CAP or change or not _SMALL_PRIMES:
        _SMALL_PRIMES = _sieve(n)
        _SMALL_PRIMES_CAP = n
    return _SMALL_PRIMES


def _trial_division(no: int, n: int = 10000) -> bool:
    """Check the provided `no` against the known small primes.

    Args:
         no: The number to check. Must be integer and non-negative.
         n: The number up to which to generate primes. Defaults to 10000.

    Returns:
        False if `no` cannot be prime, True otherwise.
    """
    if no < 2:
        return False
    for prime in get_pre_primes(n):
        if prime**2 > no:
            return True
        if no % prime == 0:
            return False
    return True


def _miller_rabin(w: int, iters: int, callback: Optional[ProgressCallback] = None) -> bool:
    """Perform Miller-Rabin primality test as specified in FIPS 186-5.

    Args:
        w: Odd integer to be tested.
        iters: Number of Miller-Rabin iterations to perform.
        callback: Notified with code 1 after every passed round.

    Returns:
        True if `w` is probably prime, False otherwise.
    """
    if w <= 3:
        return w in (2, 3)
    tw = w - 1
    a = (tw & -tw).bit_length() - 1
    m = tw >> a
    for rnd in range(iters):
        b = secrets.randbelow(w - 3) + 2
        z = pow(b, m, w)
        if z not in (1, w - 1):
            for _ in range(1, a):
                z = pow(z, 2, w)
                if z == w - 1:
                    break
                if z == 1:
                    return False
            else:
                return False
        if callback is not None:
            callback(1, rnd)
    return True


def _rounds_for(bits: int) -> int:
    # FIPS 186-5 Appendix C.1
    if bits <= 512:
        return 40
    if bits <= 1024:
        return 56
    if bits <= 1536:
        return 64
    if bits <= 2048:
        return 70
    return 74


def check_prime(candidate: int,
                iters: Optional[int] = None,
                n: int = 10000,
                callback: Optional[ProgressCallback] = None) -> bool:
    """Performs a composite Primality test, using a limited amount of trial divisions, before a Miller-Rabin test.

    Args:
        candidate: The candidate prime to test.
        iters: Number of Miller-Rabin iterations to perform.
            If not provided will use defaults as per the FIPS 186-5 Appendix C.1
        n: The number up to which to run trial divisions. Defaults to 10000.
        callback: Optional progress callback, see module documentation.

    Returns:
        True if `candidate` is probably prime, False otherwise.
    """
    if candidate < 2:
        return False
    if not _trial_division(candidate, n):
        return False
    if iters is None:
        iters = _rounds_for(candidate.bit_length())
    return _miller_rabin(candidate, iters, callback)


def _generate_probable_prime(size: int,
                             pub: int = DEFAULT_EXPONENT,
                             prm_p: Optional[int] = None,
                             callback: Optional[ProgressCallback] = None) -> int:
    """Generate a probable prime number of the specified bit size.

    The two top bits are always set, so the product of two such primes has exactly the sum of their sizes in bits.

    Args:
        size: The size of the prime to generate in bits.
        pub: The public exponent the prime must be suitable for.
        prm_p: The other prime in the pair if this is the second generation.
        callback: Optional progress callback, see module documentation.

    Returns:
        A probable prime number.

    Raises:
        RuntimeError: If generation loops way beyond a reasonable time and a bit.
    """
    ml = 1 if prm_p is None else 2
    rep_cap = max(size, 100) * 5 * ml
    msk = (1 << size - 1) | (1 << size - 2)
    for cnt in range(rep_cap):
        byts = secrets.randbits(size) | msk | 1
        if callback is not None:
            callback(0, cnt)
        if prm_p is not None and abs(prm_p - byts) <= (1 << max(size - _MINIMUM_PRIME_SEPARATION, 0)):
            continue
        if math.gcd(byts - 1, pub) != 1:
            if callback is not None:
                callback(2, cnt)
            continue
        if check_prime(byts, callback=callback):
            return byts
    raise RuntimeError(f"Run an improbable {rep_cap} amount of loops with no prime found. "
                       "Check system random number generator.")


def generate_primes(size: int,
                    pub: int = DEFAULT_EXPONENT,
                    callback: Optional[ProgressCallback] = None) -> tuple[int, int]:
    """Generates an IFC-suitable pair of prime numbers.

    For odd sizes p receives the extra bit.

    Args:
        size: The modulus size to generate the prime pair for.
        pub: The public exponent. Must be odd and greater than 1.
        callback: Optional progress callback, see module documentation.

    Returns:
        A pair (p, q) of distinct probable primes, with p > q.

    Raises:
        ValueError: If `size` is below MIN_MODULUS_BITS, the smallest modulus made of two distinct primes
            with their top two bits set, or `pub` does not meet requirements.
    """
    if size < MIN_MODULUS_BITS:
        raise ValueError(f"Key size too small, cannot build a modulus below {MIN_MODULUS_BITS} bits.")
    if pub % 2 == 0 or pub < 3:
        raise ValueError("Public exponent must be odd and greater than 1.")
    if size < MIN_SECURE_BITS:
        warnings.warn(f"Keys with a modulus below {MIN_SECURE_BITS} bits are insecure.", RuntimeWarning)
    pbits = (size + 1) // 2
    p = _generate_probable_prime(pbits, pub, callback=callback)
    if callback is not None:
        callback(3, 0)
    q = _generate_probable_prime(size - pbits, pub, p, callback)
    while p == q:  # (Un)Likely story.
        q = _generate_probable_prime(size - pbits, pub, p, callback)
    if callback is not None:
        callback(3, 1)
    if p < q:
        p, q = q, p
    return p, q


def generate_key_pair(size: int,
                      pub: int = DEFAULT_EXPONENT,
                      callback: Optional[ProgressCallback] = None) -> tuple[int, int, int, int, int]:
    """Generates an RSA key pair.

    Args:
        size: The modulus size in bits.
        pub: The public exponent. Must be odd, typically 3, 17 or 65537.
        callback: Optional progress callback, see module documentation.

    Returns:
        The tuple (modulus, public exponent, private exponent, p, q).
    """
    logger.debug("Generating a %d bit RSA key with exponent %d", size, pub)
    p, q = generate_primes(size, pub, callback)
    n = p * q
    totient = math.lcm(p - 1, q - 1)
    d = pow(pub, -1, totient)
    logger.debug("Generated a %d bit RSA key", n.bit_length())
    return n, pub, d, p, q
