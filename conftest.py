"""Configures pytest further."""
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
import pytest

TARGET_SIZES = [1024, 2048]


def pytest_addoption(parser):
    parser.addoption("--skip-slow", action="store_true", default=False, help="skip slower tests")
    parser.addoption("--run-extreme", action="store_true", default=False, help="run extreme value extremely slow tests")


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: slower tests, skipped with --skip-slow")
    config.addinivalue_line("markers", "extreme: extremely slow tests, run with --run-extreme")


def pytest_collection_modifyitems(config, items):
    skipdict = {}
    if config.getoption("--skip-slow"):
        skipdict["slow"] = pytest.mark.skip(reason="Slow test: needs no --skip-slow option")
    if not config.getoption("--run-extreme"):
        skipdict["extreme"] = pytest.mark.skip(reason="Extreme test: needs --run-extreme option")
    if not skipdict:
        return
    for item in items:
        for k, v in skipdict.items():
            if k in item.keywords:
                item.add_marker(v)


_reference_keys: dict[int, rsa.RSAPrivateKey] = {}


def reference_key(size: int) -> rsa.RSAPrivateKey:
    """A cached key generated by cryptography, the reference implementation for interoperability."""
    if size not in _reference_keys:
        _reference_keys[size] = rsa.generate_private_key(public_exponent=65537, key_size=size)
    return _reference_keys[size]


@pytest.fixture(scope="session", params=TARGET_SIZES)
def crypto_key(request) -> rsa.RSAPrivateKey:
    return reference_key(request.param)


@pytest.fixture
def private_pem(crypto_key) -> bytes:
    return crypto_key.private_bytes(serialization.Encoding.PEM, serialization.PrivateFormat.TraditionalOpenSSL,
                                    serialization.NoEncryption())


@pytest.fixture
def small_crypto_key() -> rsa.RSAPrivateKey:
    return reference_key(1024)


@pytest.fixture
def small_pem(small_crypto_key) -> bytes:
    return small_crypto_key.private_bytes(serialization.Encoding.PEM, serialization.PrivateFormat.TraditionalOpenSSL,
                                          serialization.NoEncryption())
