"""
Command-line signer.

Signs the concatenation of one or more files with the configured private
key and prints the Base64 signature (or writes the raw bytes to --out).

    python -m keysign.cli --key file:certs/server_private_key.pem msg.bin
    python -m keysign.cli header.bin body.bin --out body.sig

Defaults for --key and --password come from KEYSIGN_KEY_URI and
KEYSIGN_KEY_PASSWORD (a .env file is honoured).
"""

import argparse
import logging
import pathlib
import sys
from typing import Optional, Sequence
from pydantic import ValidationError

from keysign.common.config import load_settings
from keysign.common.utils import b64e
from keysign.crypto.private_key import PrivateKey

logger = logging.getLogger("keysign.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sign files with RSASSA-PSS (SHA-256, MGF1-SHA-256)."
    )
    parser.add_argument(
        "inputs",
        nargs="+",
        type=pathlib.Path,
        help="Files forming the message, signed in the given order"
    )
    parser.add_argument(
        "--key",
        type=str,
        default=None,
        help="Private key URI (e.g., 'file:certs/server_private_key.pem')"
    )
    parser.add_argument(
        "--password",
        type=str,
        default=None,
        help="Passphrase for an encrypted PEM key"
    )
    parser.add_argument(
        "--out",
        type=pathlib.Path,
        default=None,
        help="Write the raw signature here instead of printing Base64"
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Path to a .env file with KEYSIGN_* settings"
    )
    return parser


def read_fragments(paths: Sequence[pathlib.Path]) -> Optional[list[bytes]]:
    """Reads every input file, or returns None if one cannot be read."""
    fragments = []
    for path in paths:
        try:
            fragments.append(path.read_bytes())
        except OSError as e:
            logger.error("read input '%s' failed: %s", path, e.strerror or e)
            return None
    return fragments


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Parse arguments, load the key and sign the inputs.

    Returns:
        0 on success, 1 if the settings are invalid, the key could not be
        loaded or signing failed.
    """
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.env_file)
    except ValidationError as e:
        print(f"Error: invalid settings. {e}", file=sys.stderr)
        return 1
    logging.basicConfig(
        level=settings.log_level_number,
        format="%(levelname)s %(name)s: %(message)s",
    )

    key_uri = args.key if args.key is not None else settings.key_uri
    password = args.password if args.password is not None else settings.key_password
    if not key_uri:
        print("Error: no key URI given. Use --key or set KEYSIGN_KEY_URI.", file=sys.stderr)
        return 1

    fragments = read_fragments(args.inputs)
    if fragments is None:
        return 1

    with PrivateKey(key_uri, password) as key:
        if not key.is_loaded:
            print(f"Error: could not load private key from '{key_uri}'.", file=sys.stderr)
            return 1

        signature = bytearray()
        if key.sign(fragments, signature) != 0:
            print("Error: signing failed.", file=sys.stderr)
            return 1

    if args.out is not None:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_bytes(bytes(signature))
        print(f"Success: {len(signature)}-byte signature saved to {args.out}")
    else:
        print(b64e(bytes(signature)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
