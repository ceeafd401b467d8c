"""
PEM Private Key Loading.

- read_key_file: Reads the raw PEM bytes named by a file URI path.
- load_private_key: Parses (and, with a password, decrypts) an RSA
  private key from PEM bytes.
- load_private_key_file: Both of the above in one call.

All failures are raised as KeysignError carrying the error kind and the
failing step; callers decide how to report them.
"""

import pathlib
from typing import Optional
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import load_pem_private_key

from keysign.common.results import ErrorKind, KeysignError


def _password_bytes(password: Optional[str]) -> Optional[bytes]:
    """An empty password means "not encrypted"."""
    if not password:
        return None
    return password.encode("utf-8")


def read_key_file(path: str) -> bytes:
    """Reads the PEM file at `path`."""
    try:
        with open(pathlib.Path(path), "rb") as f:
            return f.read()
    except (OSError, ValueError) as e:
        # ValueError: the path holds a NUL byte (e.g. from "%00" in the URI)
        raise KeysignError(
            ErrorKind.IO,
            f"read key file {path!r}",
            getattr(e, "strerror", None) or str(e),
        ) from e


def load_private_key(pem_data: bytes, password: Optional[str] = None) -> rsa.RSAPrivateKey:
    """
    Parses an RSA private key from PEM bytes.

    Args:
        pem_data: PKCS#1 or PKCS#8 PEM bytes, possibly encrypted.
        password: The decryption passphrase, "" or None if unencrypted.

    Returns:
        The loaded RSA private key.
    """
    secret = _password_bytes(password)
    try:
        try:
            key = load_pem_private_key(pem_data, password=secret)
        except TypeError:
            if secret is None:
                raise
            # The key is not encrypted; the password is ignored, as OpenSSL does
            key = load_pem_private_key(pem_data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        # ValueError: bad PEM data or wrong password
        # TypeError: no password given for an encrypted key
        raise KeysignError(ErrorKind.FORMAT, "parse PEM private key", str(e)) from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeysignError(
            ErrorKind.FORMAT,
            "parse PEM private key",
            f"non-RSA keys are not supported (got {type(key).__name__})",
        )
    return key


def load_private_key_file(path: str, password: Optional[str] = None) -> rsa.RSAPrivateKey:
    """Reads and parses the PEM private key stored at `path`."""
    return load_private_key(read_key_file(path), password)
