"""
Pydantic models describing the outcome of key loading and signing.

- ErrorKind: the closed set of failure categories.
- Failure: one failed step, with its human-readable cause.
- LoadResult / SignResult: what load() and sign_result() hand back.
"""

import enum
from typing import Optional
from pydantic import BaseModel

# Return codes kept for callers that only branch on success/failure
SIGN_OK = 0
SIGN_FAILED = 1


class ErrorKind(str, enum.Enum):
    CONFIGURATION = "configuration"   # Unsupported or malformed URI
    IO = "io"                         # Key file could not be opened/read
    FORMAT = "format"                 # PEM parse failure, wrong password, non-RSA key
    CRYPTO = "crypto"                 # A signing step failed


class Failure(BaseModel):
    """
    A single failed step.
    { "kind": "io", "step": "read key file", "cause": "No such file..." }
    """
    kind: ErrorKind
    step: str
    cause: str = ""

    def describe(self) -> str:
        """The diagnostic line written to the log for this failure."""
        if self.cause:
            return f"{self.step} failed: {self.cause}"
        return f"{self.step} failed"


class LoadResult(BaseModel):
    """Outcome of PrivateKey.load()."""
    failure: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class SignResult(BaseModel):
    """Outcome of a signing call. Exactly one of the fields is set."""
    signature: Optional[bytes] = None
    failure: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.signature is not None

    @property
    def code(self) -> int:
        return SIGN_OK if self.ok else SIGN_FAILED

    @classmethod
    def failed(cls, kind: ErrorKind, step: str, cause: str = "") -> "SignResult":
        return cls(failure=Failure(kind=kind, step=step, cause=cause))


class KeysignError(Exception):
    """
    Raised internally when a load or signing step fails.

    Never escapes PrivateKey.load() or PrivateKey.sign(); those convert it
    into a LoadResult / SignResult and a single log line.
    """

    def __init__(self, kind: ErrorKind, step: str, cause: str = ""):
        self.failure = Failure(kind=kind, step=step, cause=cause)
        super().__init__(self.failure.describe())
