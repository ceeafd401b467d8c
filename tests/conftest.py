from __future__ import annotations

import pathlib
from typing import Callable

import pytest
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from keysign.common.config import ENV_KEY_PASSWORD, ENV_KEY_URI, ENV_LOG_LEVEL

KEY_PASSWORD = "correct horse battery staple"


@pytest.fixture(autouse=True)
def clean_keysign_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (ENV_KEY_URI, ENV_KEY_PASSWORD, ENV_LOG_LEVEL):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=3072)


@pytest.fixture(scope="session")
def key_dir(tmp_path_factory: pytest.TempPathFactory) -> pathlib.Path:
    return tmp_path_factory.mktemp("keys")


def _write_key(path: pathlib.Path, key, encryption=None, fmt=serialization.PrivateFormat.PKCS8) -> pathlib.Path:
    path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=fmt,
            encryption_algorithm=encryption or serialization.NoEncryption(),
        )
    )
    return path


@pytest.fixture(scope="session")
def key_path(key_dir: pathlib.Path, rsa_key: rsa.RSAPrivateKey) -> pathlib.Path:
    return _write_key(key_dir / "server_private_key.pem", rsa_key)


@pytest.fixture(scope="session")
def traditional_key_path(key_dir: pathlib.Path, rsa_key: rsa.RSAPrivateKey) -> pathlib.Path:
    return _write_key(
        key_dir / "server_rsa_key.pem",
        rsa_key,
        fmt=serialization.PrivateFormat.TraditionalOpenSSL,
    )


@pytest.fixture(scope="session")
def other_key_path(key_dir: pathlib.Path, other_rsa_key: rsa.RSAPrivateKey) -> pathlib.Path:
    return _write_key(key_dir / "client_private_key.pem", other_rsa_key)


@pytest.fixture(scope="session")
def encrypted_key_path(key_dir: pathlib.Path, rsa_key: rsa.RSAPrivateKey) -> pathlib.Path:
    return _write_key(
        key_dir / "encrypted_private_key.pem",
        rsa_key,
        encryption=serialization.BestAvailableEncryption(KEY_PASSWORD.encode()),
    )


@pytest.fixture(scope="session")
def ec_key_path(key_dir: pathlib.Path) -> pathlib.Path:
    return _write_key(key_dir / "ec_private_key.pem", ec.generate_private_key(ec.SECP256R1()))


@pytest.fixture
def key_uri(key_path: pathlib.Path) -> str:
    return f"file:{key_path}"


@pytest.fixture
def verify_pss() -> Callable[[rsa.RSAPublicKey, bytes, bytes], bool]:
    def _verify(public_key: rsa.RSAPublicKey, message: bytes, signature: bytes,
                salt_length=padding.PSS.AUTO) -> bool:
        try:
            public_key.verify(
                signature,
                message,
                padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=salt_length),
                hashes.SHA256(),
            )
        except InvalidSignature:
            return False
        return True

    return _verify


@pytest.fixture
def key_password() -> str:
    return KEY_PASSWORD
