"""
Shared-ownership handle around a loaded RSA private key.

- KeyMaterial: a reference-counted cell around one immutable key. The key
  is dropped exactly once, when the last reference is released.
- PrivateKey: the handle callers hold. Loads at most once, shares its
  material on assign()/share(), and signs fragmented messages.
"""

import logging
import threading
from typing import Iterable, Optional
from cryptography.hazmat.primitives.asymmetric import rsa

from keysign.common.results import (
    ErrorKind,
    Failure,
    KeysignError,
    LoadResult,
    SIGN_FAILED,
    SIGN_OK,
    SignResult,
)
from keysign.common.utils import UriScheme, extract_uri_info
from keysign.crypto import pki
from keysign.crypto.sign import sign_rsassa_pss_mgf1_sha256

logger = logging.getLogger(__name__)


class KeyMaterial:
    """
    Reference-counted cell holding a private key.

    Starts with a count of one, owned by whoever created it. The count is
    the only mutable state and is guarded by a lock; the key itself never
    changes once stored.
    """

    def __init__(self, key: rsa.RSAPrivateKey, origin: UriScheme = UriScheme.FILE):
        self._key: Optional[rsa.RSAPrivateKey] = key
        self._refcount = 1
        self._lock = threading.Lock()
        self.origin = origin

    @property
    def key(self) -> Optional[rsa.RSAPrivateKey]:
        return self._key

    @property
    def refcount(self) -> int:
        with self._lock:
            return self._refcount

    @property
    def freed(self) -> bool:
        return self._key is None

    def acquire(self) -> bool:
        """Adds one reference. Returns False if the key was already freed."""
        with self._lock:
            if self._refcount == 0:
                return False
            self._refcount += 1
        return True

    def release(self) -> bool:
        """Drops one reference. Returns True if this freed the key."""
        with self._lock:
            if self._refcount == 0:
                return False
            self._refcount -= 1
            if self._refcount > 0:
                return False
            self._key = None
        return True


class PrivateKey:
    """
    A (possibly shared) RSA private key loaded from a URI.

    Only file: URIs holding PEM data are supported. Loading and signing never
    raise; check `is_loaded` after construction and the return value of
    sign().
    """

    def __init__(self, uri: Optional[str] = None, password: str = "",
                 log: Optional[logging.Logger] = None):
        self._material: Optional[KeyMaterial] = None
        self._lock = threading.Lock()
        self._log = log or logger
        if uri is not None:
            self.load(uri, password)

    # --- Loading ---

    def load(self, uri: str, password: str = "") -> LoadResult:
        """
        Loads the key named by `uri`, unless a key is already held.

        Args:
            uri: e.g. "file:certs/server_private_key.pem"
            password: PEM passphrase, "" when the key is not encrypted.

        Returns:
            A LoadResult. On failure the handle stays empty and one error
            line is logged.
        """
        if self._material is not None:
            return LoadResult()

        info = extract_uri_info(uri)
        if info.scheme is not UriScheme.FILE:
            failure = Failure(
                kind=ErrorKind.CONFIGURATION,
                step="load private key",
                cause=f"unsupported URI scheme '{info.scheme.value}' in '{uri}'",
            )
            self._log.error(failure.describe())
            return LoadResult(failure=failure)

        try:
            key = pki.load_private_key_file(info.path, password)
        except KeysignError as e:
            self._log.error(e.failure.describe())
            return LoadResult(failure=e.failure)

        material = KeyMaterial(key, origin=info.scheme)
        with self._lock:
            if self._material is None:
                self._material = material
                material = None
        if material is not None:
            # Lost a race with another load(); first one wins
            material.release()
        self._log.debug("Loaded %d-bit RSA private key from %s", key.key_size, uri)
        return LoadResult()

    @property
    def is_loaded(self) -> bool:
        return self._material is not None

    def __bool__(self) -> bool:
        return self.is_loaded

    @property
    def material(self) -> Optional[KeyMaterial]:
        return self._material

    @property
    def signature_size(self) -> int:
        """Signature length in bytes for this key, 0 when empty."""
        material = self._material
        if material is None or material.key is None:
            return 0
        return (material.key.key_size + 7) // 8

    # --- Sharing and release ---

    def assign(self, other: "PrivateKey") -> "PrivateKey":
        """
        Makes this handle share `other`'s key (or become empty if `other`
        is). Whatever this handle held before is released.
        """
        if other is self:
            return self

        incoming = other._material
        if incoming is not None and not incoming.acquire():
            incoming = None

        with self._lock:
            previous, self._material = self._material, incoming
        if previous is not None:
            previous.release()
        return self

    def share(self) -> "PrivateKey":
        """Returns a new handle on the same key material."""
        handle = PrivateKey(log=self._log)
        return handle.assign(self)

    def __copy__(self) -> "PrivateKey":
        return self.share()

    def release(self) -> None:
        """Drops this handle's reference. Safe to call more than once."""
        with self._lock:
            material, self._material = self._material, None
        if material is not None and material.release():
            self._log.debug("Private key material freed")

    def __enter__(self) -> "PrivateKey":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __del__(self):
        # The handle may be half-built if __init__ failed
        if getattr(self, "_material", None) is not None:
            self.release()

    # --- Signing ---

    def sign_result(self, fragments: Iterable[bytes]) -> SignResult:
        """Signs the fragments and reports the outcome as a SignResult."""
        material = self._material
        key = material.key if material is not None else None
        return sign_rsassa_pss_mgf1_sha256(key, fragments, self._log)

    def sign(self, fragments: Iterable[bytes], out_signature: bytearray) -> int:
        """
        Signs the concatenation of `fragments` with RSASSA-PSS-SHA256.

        Args:
            fragments: Ordered message pieces; empty ones are skipped.
            out_signature: Receives the signature. Left untouched on failure.

        Returns:
            0 on success, non-zero on any failure (details are in the log).
        """
        result = self.sign_result(fragments)
        if not result.ok:
            return SIGN_FAILED
        out_signature[:] = result.signature
        return SIGN_OK
