"""
Common Utility Helpers.

- URI resolution for key sources (file, data, pkcs11).
- Base64 encoding for printing signatures.
"""

import base64
import enum
import urllib.parse
from pydantic import BaseModel


class UriScheme(str, enum.Enum):
    """The key-source schemes we know how to recognise."""
    FILE = "file"
    DATA = "data"
    PKCS11 = "pkcs11"
    UNKNOWN = "unknown"


class UriInfo(BaseModel):
    """
    A resolved key URI.
    { "scheme": "file", "path": "/etc/keys/server.pem", "uri": "file:..." }
    """
    scheme: UriScheme
    path: str = ""    # Decoded path (file) or raw payload (data)
    uri: str


_KNOWN_SCHEMES = {
    "file": UriScheme.FILE,
    "data": UriScheme.DATA,
    "pkcs11": UriScheme.PKCS11,
}


def extract_uri_info(uri: str) -> UriInfo:
    """
    Splits a key URI into its scheme and path.

    Examples:
        file:certs/server.pem     -> FILE, "certs/server.pem"
        file:///etc/key.pem       -> FILE, "/etc/key.pem"
        data:,-----BEGIN...       -> DATA, ",-----BEGIN..."
        pkcs11:object=foo         -> PKCS11, "object=foo"
        /etc/key.pem              -> UNKNOWN, ""
    """
    scheme_str, sep, rest = uri.partition(":")
    if not sep:
        return UriInfo(scheme=UriScheme.UNKNOWN, uri=uri)

    scheme = _KNOWN_SCHEMES.get(scheme_str.lower(), UriScheme.UNKNOWN)
    if scheme is UriScheme.UNKNOWN:
        return UriInfo(scheme=scheme, uri=uri)

    if scheme is UriScheme.FILE:
        # Drop an (empty) authority: file:///abs -> /abs, file://rel -> rel
        if rest.startswith("//"):
            rest = rest[2:]
        rest = urllib.parse.unquote(rest)

    return UriInfo(scheme=scheme, path=rest, uri=uri)


def b64e(b: bytes) -> str:
    """Encodes bytes into a Base64 string (UTF-8)."""
    return base64.b64encode(b).decode('utf-8')

