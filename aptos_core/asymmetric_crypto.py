# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Structural interfaces shared by every key and signature scheme.

Concrete schemes live in :mod:`aptos_core.ed25519`, :mod:`aptos_core.secp256k1_ecdsa`
and :mod:`aptos_core.asymmetric_crypto_wrapper`. Each exposes a private key that
signs, a public key that verifies and a signature value, all BCS serializable.

Private keys can be written and read in the AIP-80 text form, which prefixes the
hex with the scheme name so a key is never loaded under the wrong algorithm::

    ed25519-priv-0x4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe
    secp256k1-priv-0x306fa009600e27c09d2659145ce1785249360dd5fb992da01a578fe67ed607f4

See https://github.com/aptos-foundation/AIPs/blob/main/aips/aip-80.md
"""

from __future__ import annotations

import logging
import unittest
from enum import Enum

from typing_extensions import Protocol

from .bcs import Deserializable, Serializable
from .errors import CryptoError


class PrivateKeyVariant(Enum):
    """Signature schemes that have an AIP-80 private key prefix."""

    Ed25519 = "ed25519"
    Secp256k1 = "secp256k1"


class PrivateKey(Deserializable, Serializable, Protocol):
    def hex(self) -> str:
        ...

    def aip80(self) -> str:
        ...

    def public_key(self) -> PublicKey:
        ...

    def sign(self, data: bytes) -> Signature:
        ...

    """
    The AIP-80 compliant prefixes for each private key type. Append this to a private key's hex
    representation to get an AIP-80 compliant string.

    [Read about AIP-80](https://github.com/aptos-foundation/AIPs/blob/main/aips/aip-80.md)
    """
    AIP80_PREFIXES: dict[PrivateKeyVariant, str] = {
        PrivateKeyVariant.Ed25519: "ed25519-priv-",
        PrivateKeyVariant.Secp256k1: "secp256k1-priv-",
    }

    @staticmethod
    def format_private_key(
        private_key: bytes | str, key_type: PrivateKeyVariant
    ) -> str:
        """Render ``private_key`` as an AIP-80 string for ``key_type``.

        Accepts raw bytes, ``0x`` hex, or a string that already carries the
        prefix (which is normalized rather than doubled).

        Raises:
            CryptoError: If the input is not text or bytes, or already carries the
                prefix of a different scheme.
        """
        if key_type not in PrivateKey.AIP80_PREFIXES:
            raise CryptoError(f"Unknown private key type: {key_type}")
        aip80_prefix = PrivateKey.AIP80_PREFIXES[key_type]

        if isinstance(private_key, str):
            for other_type, other_prefix in PrivateKey.AIP80_PREFIXES.items():
                if other_type != key_type and private_key.startswith(other_prefix):
                    raise CryptoError(
                        f"Private key is {other_type.value}, expected {key_type.value}"
                    )
            hex_value = private_key.removeprefix(aip80_prefix).removeprefix("0x")
            _checked_hex(hex_value)
        elif isinstance(private_key, (bytes, bytearray)):
            hex_value = bytes(private_key).hex()
        else:
            raise CryptoError("Input value must be a string or bytes.")

        return f"{aip80_prefix}0x{hex_value}"

    @staticmethod
    def parse_hex_input(
        value: str | bytes, key_type: PrivateKeyVariant, strict: bool | None = None
    ) -> bytes:
        """Turn AIP-80 text, legacy hex, or raw bytes into key bytes.

        Args:
            value: Key material as text or bytes.
            key_type: Scheme the caller expects.
            strict: ``True`` accepts only AIP-80 text; ``False`` accepts legacy hex
                silently; ``None`` accepts legacy hex and logs a recommendation.

        Raises:
            CryptoError: If the text is not valid hex, carries another scheme's
                prefix, or is legacy hex while ``strict`` is set.
        """
        if key_type not in PrivateKey.AIP80_PREFIXES:
            raise CryptoError(f"Unknown private key type: {key_type}")
        aip80_prefix = PrivateKey.AIP80_PREFIXES[key_type]

        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if not isinstance(value, str):
            raise CryptoError("Input value must be a string or bytes.")

        if value.startswith(aip80_prefix):
            return _checked_hex(value[len(aip80_prefix) :].removeprefix("0x"))

        if "-priv-" in value:
            raise CryptoError(
                f"Invalid HexString input, expected the {aip80_prefix} prefix."
            )
        if strict:
            raise CryptoError("Invalid HexString input. Must be AIP-80 compliant string.")
        if strict is None:
            logging.warning(
                "It is recommended that private keys are AIP-80 compliant "
                "(https://github.com/aptos-foundation/AIPs/blob/main/aips/aip-80.md)."
            )
        return _checked_hex(value.removeprefix("0x"))


class PublicKey(Deserializable, Serializable, Protocol):
    def to_crypto_bytes(self) -> bytes:
        """
        A long time ago, someone decided that we should have both bcs and a special representation
        for MultiEd25519, so we use this to let keys self-define a special encoding.
        """
        ...

    def verify(self, data: bytes, signature: Signature) -> bool:
        """Return True only if ``signature`` over ``data`` checks out.

        Implementations never raise: malformed or mismatched signatures yield False.
        """
        ...


class Signature(Deserializable, Serializable, Protocol):
    ...


def _checked_hex(value: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise CryptoError(f"Invalid hex string: {e}")


class Test(unittest.TestCase):
    SEED = "4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe"

    def test_format_private_key(self):
        expected = f"ed25519-priv-0x{self.SEED}"
        self.assertEqual(
            PrivateKey.format_private_key(self.SEED, PrivateKeyVariant.Ed25519),
            expected,
        )
        self.assertEqual(
            PrivateKey.format_private_key(f"0x{self.SEED}", PrivateKeyVariant.Ed25519),
            expected,
        )
        self.assertEqual(
            PrivateKey.format_private_key(expected, PrivateKeyVariant.Ed25519),
            expected,
        )
        self.assertEqual(
            PrivateKey.format_private_key(
                bytes.fromhex(self.SEED), PrivateKeyVariant.Secp256k1
            ),
            f"secp256k1-priv-0x{self.SEED}",
        )

    def test_format_private_key_wrong_scheme(self):
        with self.assertRaises(CryptoError):
            PrivateKey.format_private_key(
                f"secp256k1-priv-0x{self.SEED}", PrivateKeyVariant.Ed25519
            )

    def test_parse_hex_input(self):
        expected = bytes.fromhex(self.SEED)
        self.assertEqual(
            PrivateKey.parse_hex_input(
                f"ed25519-priv-0x{self.SEED}", PrivateKeyVariant.Ed25519, True
            ),
            expected,
        )
        self.assertEqual(
            PrivateKey.parse_hex_input(
                f"0x{self.SEED}", PrivateKeyVariant.Ed25519, False
            ),
            expected,
        )
        self.assertEqual(
            PrivateKey.parse_hex_input(expected, PrivateKeyVariant.Secp256k1),
            expected,
        )

    def test_parse_hex_input_rejects(self):
        with self.assertRaises(CryptoError):
            PrivateKey.parse_hex_input(self.SEED, PrivateKeyVariant.Ed25519, True)
        with self.assertRaises(CryptoError):
            PrivateKey.parse_hex_input(
                f"secp256k1-priv-0x{self.SEED}", PrivateKeyVariant.Ed25519
            )
        with self.assertRaises(CryptoError):
            PrivateKey.parse_hex_input("0xzz", PrivateKeyVariant.Ed25519, False)


if __name__ == "__main__":
    unittest.main()
