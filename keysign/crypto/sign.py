"""
RSASSA-PSS (SHA-256, MGF1-SHA-256) signing over fragmented messages.

- PssSigningContext: per-call scratch state (digest + padding), one step
  per method so each failure can be reported by name.
- sign_rsassa_pss_mgf1_sha256: runs the whole pipeline and returns a
  SignResult. Never raises.

The message is the in-order concatenation of the non-empty fragments. It
is hashed incrementally and the digest is signed as a prehashed SHA-256
value, which yields the same signature as signing the joined message.

Salt length is PSS.MAX_LENGTH (modulus bytes - 32 - 2 for SHA-256), the
value OpenSSL picks by default when signing. Verifiers should use
PSS.AUTO or the same maximum.
"""

import logging
from typing import Iterable, Optional
from cryptography.exceptions import AlreadyFinalized, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa, utils as asym_utils

from keysign.common.results import ErrorKind, KeysignError, SignResult

logger = logging.getLogger(__name__)

SALT_LENGTH = padding.PSS.MAX_LENGTH


class PssSigningContext:
    """
    Scratch state for a single signature. Not shared between calls.

    Use as a context manager so the digest state is dropped on every exit
    path, including failures part-way through.
    """

    def __init__(self, private_key: rsa.RSAPrivateKey):
        self._private_key = private_key
        self._digest: Optional[hashes.Hash] = None
        self._padding: Optional[padding.PSS] = None
        self._salt_length = None

    def __enter__(self) -> "PssSigningContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._digest = None
        self._padding = None

    def init(self) -> None:
        """Allocates the SHA-256 digest and binds it to the private key."""
        try:
            self._digest = hashes.Hash(hashes.SHA256())
        except UnsupportedAlgorithm as e:
            raise KeysignError(ErrorKind.CRYPTO, "allocate SHA-256 digest context", str(e)) from e

        if not isinstance(self._private_key, rsa.RSAPrivateKey):
            raise KeysignError(
                ErrorKind.CRYPTO,
                "bind digest to private key",
                f"expected an RSA private key, got {type(self._private_key).__name__}",
            )

    def set_rsa_padding(self) -> None:
        """Selects PSS padding with the maximum salt length."""
        # Encoded message length is ceil((modBits - 1) / 8) and must fit
        # the digest plus the 0x01 separator and the 0xbc trailer.
        em_len = (self._private_key.key_size - 1 + 7) // 8
        if em_len < hashes.SHA256.digest_size + 2:
            raise KeysignError(
                ErrorKind.CRYPTO,
                "set RSA PSS padding",
                f"{self._private_key.key_size}-bit key is too small for SHA-256",
            )
        self._salt_length = SALT_LENGTH

    def set_mgf1_digest(self) -> None:
        """Sets MGF1 with SHA-256 as the PSS mask generation function."""
        if self._salt_length is None:
            raise KeysignError(ErrorKind.CRYPTO, "set MGF1 digest", "padding mode not configured")
        try:
            self._padding = padding.PSS(
                mgf=padding.MGF1(hashes.SHA256()),
                salt_length=self._salt_length,
            )
        except (TypeError, ValueError) as e:
            raise KeysignError(ErrorKind.CRYPTO, "set MGF1 digest", str(e)) from e

    def update(self, fragment, index: int = 0) -> None:
        """Feeds one fragment into the digest. Empty fragments are skipped."""
        try:
            if len(fragment) == 0:
                return
            self._digest.update(fragment)
        except (TypeError, AlreadyFinalized) as e:
            raise KeysignError(ErrorKind.CRYPTO, f"digest update (fragment {index})", str(e)) from e

    def signature_length(self) -> int:
        """Size of the signature in bytes, i.e. the modulus size."""
        size = (self._private_key.key_size + 7) // 8
        if size <= 0:
            raise KeysignError(ErrorKind.CRYPTO, "query signature size", f"invalid key size {size}")
        return size

    def final(self, size: int) -> bytes:
        """Produces the signature, which must be exactly `size` bytes."""
        try:
            digest = self._digest.finalize()
            signature = self._private_key.sign(
                digest,
                self._padding,
                asym_utils.Prehashed(hashes.SHA256()),
            )
        except (ValueError, TypeError, AlreadyFinalized, UnsupportedAlgorithm) as e:
            raise KeysignError(ErrorKind.CRYPTO, "final signing", str(e)) from e

        if len(signature) != size:
            raise KeysignError(
                ErrorKind.CRYPTO,
                "final signing",
                f"signature is {len(signature)} bytes, expected {size}",
            )
        return signature


def sign_rsassa_pss_mgf1_sha256(
    private_key: Optional[rsa.RSAPrivateKey],
    fragments: Iterable[bytes],
    log: Optional[logging.Logger] = None,
) -> SignResult:
    """
    Signs the concatenation of `fragments` with RSASSA-PSS-SHA256.

    Args:
        private_key: The RSA private key, or None for an empty handle.
        fragments: Ordered bytes-like message pieces, possibly empty.
        log: Where to report failures (defaults to this module's logger).

    Returns:
        A SignResult holding either the signature or the failed step.
        Exactly one error record is logged on failure.
    """
    log = log or logger

    if private_key is None:
        result = SignResult.failed(ErrorKind.CONFIGURATION, "sign", "no private key loaded")
        log.error(result.failure.describe())
        return result

    try:
        with PssSigningContext(private_key) as ctx:
            ctx.init()
            ctx.set_rsa_padding()
            ctx.set_mgf1_digest()

            try:
                pieces = list(fragments)
            except TypeError as e:
                raise KeysignError(ErrorKind.CRYPTO, "digest update", str(e)) from e
            for i, fragment in enumerate(pieces):
                ctx.update(fragment, i)

            # Two passes: size first, then the signature itself
            size = ctx.signature_length()
            signature = ctx.final(size)
    except KeysignError as e:
        log.error(e.failure.describe())
        return SignResult(failure=e.failure)

    log.debug("Signed %d fragment(s) into a %d-byte signature", len(pieces), len(signature))
    return SignResult(signature=signature)
