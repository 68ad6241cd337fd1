"""
Signing identities and the `identity` command.

Three kinds of key material are supported: a PEM file holding either a
secp256k1 or an Ed25519 private key, a key stored on a PKCS#11 hardware
security module, and a freshly generated Ed25519 key. Resolved identities are
cached on the session by name, and the same object is handed to the agent as
the active signer.
"""
from __future__ import annotations

import getpass
import hashlib
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from icrepl.icrepl_ast import Empty, Hsm, IdentityConfig, Pem
from icrepl.icrepl_errors import IdentityError
from icrepl.icrepl_loader import resolve_path
from icrepl.icrepl_principal import Principal
from icrepl.icrepl_values import Value

logger = logging.getLogger(__name__)

PKCS11_LIBPATH_ENV = "PKCS11_LIBPATH"
HSM_PIN_ENV = "DFX_HSM_PIN"

DEFAULT_PKCS11_LIBPATHS = {
    "darwin": "/Library/OpenSC/lib/pkcs11/opensc-pkcs11.so",
    "linux": "/usr/lib/x86_64-linux-gnu/opensc-pkcs11.so",
    "win32": "C:/Program Files/OpenSC Project/OpenSC/pkcs11/opensc-pkcs11.dll",
}


class AnonymousIdentity:
    def sender(self) -> Principal:
        return Principal.anonymous()

    def sign(self, message: bytes) -> bytes:
        return b""


class _KeyIdentity:
    """An identity backed by a `cryptography` private key."""

    def __init__(self, private_key):
        self.private_key = private_key

    def public_key_der(self) -> bytes:
        return self.private_key.public_key().public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def sender(self) -> Principal:
        return Principal.self_authenticating(self.public_key_der())

    @staticmethod
    def _read_key(path: Path):
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise IdentityError(f"Cannot read identity file {str(path)!r}: {e}") from e
        try:
            return serialization.load_pem_private_key(data, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise IdentityError(f"{path} does not hold a usable private key: {e}") from e


class BasicIdentity(_KeyIdentity):
    """Ed25519 key pair."""

    @classmethod
    def generate(cls) -> "BasicIdentity":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_pem_file(cls, path: Path) -> "BasicIdentity":
        key = cls._read_key(path)
        if not isinstance(key, Ed25519PrivateKey):
            raise IdentityError(f"{path} is not an Ed25519 key")
        return cls(key)

    def sign(self, message: bytes) -> bytes:
        return self.private_key.sign(message)


class Secp256k1Identity(_KeyIdentity):
    """ECDSA key pair on the secp256k1 curve."""

    @classmethod
    def from_pem_file(cls, path: Path) -> "Secp256k1Identity":
        key = cls._read_key(path)
        if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, ec.SECP256K1):
            raise IdentityError(f"{path} is not a secp256k1 key")
        return cls(key)

    def sign(self, message: bytes) -> bytes:
        return self.private_key.sign(message, ec.ECDSA(hashes.SHA256()))


class HardwareIdentity:
    """An ECDSA key held by a PKCS#11 token.

    The token session stays open for the lifetime of the identity so later
    signatures don't prompt for the PIN again.
    """

    def __init__(self, lib_path: str, slot_index: int, key_id: str, pin_fn: Callable[[], str]):
        try:
            import pkcs11
            from pkcs11 import Mechanism, ObjectClass
            from pkcs11.exceptions import PKCS11Error
            from pkcs11.util.ec import encode_ec_public_key
        except ImportError as e:
            raise IdentityError("HSM identities need the python-pkcs11 package (pip install icrepl[hsm])") from e

        self.lib_path = lib_path
        self.slot_index = slot_index
        self.key_id = key_id
        self._mechanism = Mechanism.ECDSA
        try:
            key_bytes = bytes.fromhex(key_id)
        except ValueError as e:
            raise IdentityError(f"HSM key id {key_id!r} is not hex") from e
        try:
            slots = pkcs11.lib(lib_path).get_slots(token_present=True)
            if not 0 <= slot_index < len(slots):
                raise IdentityError(f"no HSM token in slot {slot_index} ({len(slots)} slot(s) available)")
            token = slots[slot_index].get_token()
            self._session = token.open(user_pin=pin_fn())
            public = self._session.get_key(object_class=ObjectClass.PUBLIC_KEY, id=key_bytes)
            self._private = self._session.get_key(object_class=ObjectClass.PRIVATE_KEY, id=key_bytes)
            self._public_der = encode_ec_public_key(public)
        except (PKCS11Error, RuntimeError, OSError) as e:
            raise IdentityError(f"HSM initialization failed for {lib_path}: {e}") from e

    def public_key_der(self) -> bytes:
        return self._public_der

    def sender(self) -> Principal:
        return Principal.self_authenticating(self._public_der)

    def sign(self, message: bytes) -> bytes:
        digest = hashlib.sha256(message).digest()
        return self._private.sign(digest, mechanism=self._mechanism)


def default_pkcs11_lib_path(platform: Optional[str] = None) -> str:
    platform = platform or sys.platform
    for prefix, path in DEFAULT_PKCS11_LIBPATHS.items():
        if platform.startswith(prefix):
            return path
    return DEFAULT_PKCS11_LIBPATHS["linux"]


def pkcs11_lib_path() -> str:
    return os.environ.get(PKCS11_LIBPATH_ENV) or default_pkcs11_lib_path()


def hsm_pin() -> str:
    pin = os.environ.get(HSM_PIN_ENV)
    if pin is not None:
        return pin
    return getpass.getpass("HSM PIN: ")


def identity_from_pem(path: Path):
    """Loads a PEM key, trying secp256k1 before Ed25519."""
    try:
        return Secp256k1Identity.from_pem_file(path)
    except IdentityError as secp_error:
        logger.debug("%s is not a secp256k1 key (%s), trying Ed25519", path, secp_error)
    try:
        return BasicIdentity.from_pem_file(path)
    except IdentityError as e:
        raise IdentityError(f"Cannot load identity from {path}: neither a secp256k1 nor an Ed25519 key") from e


def resolve_identity(session, name: str, config: IdentityConfig):
    match config:
        case Hsm(slot_index=slot, key_id=key_id):
            lib_path = pkcs11_lib_path()
            logger.debug("identity %s: HSM slot %d key %s via %s", name, slot, key_id, lib_path)
            return HardwareIdentity(lib_path, slot, key_id, hsm_pin)
        case Pem(path=file):
            path = resolve_path(session.base_path, file)
            logger.debug("identity %s: PEM file %s", name, path)
            return identity_from_pem(path)
        case Empty():
            cached = session.identity_map.get(name)
            if cached is not None:
                logger.debug("identity %s: cache hit", name)
                return cached
            logger.debug("identity %s: generating a new Ed25519 key", name)
            return BasicIdentity.generate()
    raise IdentityError(f"unknown identity configuration {config!r}")


def switch_identity(session, name: str, config: IdentityConfig) -> None:
    """Resolves an identity and makes it the session's active signer."""
    identity = resolve_identity(session, name, config)
    try:
        principal = identity.sender()
    except (ValueError, TypeError) as e:
        raise IdentityError(f"Cannot derive the principal of identity {name}: {e}") from e
    session.identity_map[name] = identity
    session.agent.set_identity(identity)
    session.current_identity = name
    session.env[name] = Value.principal(principal)
    print(f"Current identity {principal}")
