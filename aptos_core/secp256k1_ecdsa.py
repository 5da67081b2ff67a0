# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
ECDSA over secp256k1 with SHA3-256 message hashing.

Signatures are the 64 byte compact ``r || s`` form, produced deterministically
(RFC 6979) and normalized to the lower half of the curve order. Verification
rejects the malleable high-S twin of a valid signature. Public keys are written
uncompressed with the ``0x04`` prefix (65 bytes); the bare 64 byte form is
accepted when reading.
"""

from __future__ import annotations

import hashlib
import unittest

from ecdsa import SECP256k1, SigningKey, VerifyingKey, util

from . import asymmetric_crypto
from .bcs import Deserializer, Serializer
from .errors import CryptoError, EncodingError

CURVE_ORDER = SECP256k1.generator.order()


class PrivateKey(asymmetric_crypto.PrivateKey):
    LENGTH: int = 32

    key: SigningKey

    def __init__(self, key: SigningKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self.key.to_string() == other.key.to_string()

    def __str__(self):
        return self.aip80()

    @staticmethod
    def from_hex(value: str | bytes, strict: bool | None = None) -> PrivateKey:
        """
        Parse a HexInput that may be a hex string, bytes, or an AIP-80 compliant string to a private key.

        :param value: A hex string, byte array, or AIP-80 compliant string.
        :param strict: If true, the value MUST be compliant with AIP-80.
        :return: Parsed Secp256k1 private key.
        """
        parsed_value = PrivateKey.parse_hex_input(
            value, asymmetric_crypto.PrivateKeyVariant.Secp256k1, strict
        )
        if len(parsed_value) != PrivateKey.LENGTH:
            raise CryptoError(
                f"Secp256k1 private key must be {PrivateKey.LENGTH} bytes, got {len(parsed_value)}"
            )
        return PrivateKey(
            SigningKey.from_string(parsed_value, SECP256k1, hashlib.sha3_256)
        )

    @staticmethod
    def from_str(value: str, strict: bool | None = None) -> PrivateKey:
        return PrivateKey.from_hex(value, strict)

    def hex(self) -> str:
        return f"0x{self.key.to_string().hex()}"

    def aip80(self) -> str:
        return PrivateKey.format_private_key(
            self.hex(), asymmetric_crypto.PrivateKeyVariant.Secp256k1
        )

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.verifying_key)

    @staticmethod
    def random() -> PrivateKey:
        return PrivateKey(
            SigningKey.generate(curve=SECP256k1, hashfunc=hashlib.sha3_256)
        )

    def sign(self, data: bytes) -> Signature:
        sig = self.key.sign_deterministic(data, hashfunc=hashlib.sha3_256)
        r, s = util.sigdecode_string(sig, CURVE_ORDER)
        # The signature is valid for both s and -s, normalization ensures that only s < n // 2 is valid
        if s > (CURVE_ORDER // 2):
            mod_s = (s * -1) % CURVE_ORDER
            sig = util.sigencode_string(r, mod_s, CURVE_ORDER)
        return Signature(sig)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PrivateKey:
        key = deserializer.to_bytes()
        if len(key) != PrivateKey.LENGTH:
            raise deserializer.fail("Secp256k1 private key length mismatch")

        return PrivateKey(SigningKey.from_string(key, SECP256k1, hashlib.sha3_256))

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.key.to_string())


class PublicKey(asymmetric_crypto.PublicKey):
    LENGTH: int = 64
    LENGTH_WITH_PREFIX_LENGTH: int = 65

    key: VerifyingKey

    def __init__(self, key: VerifyingKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.key.to_string() == other.key.to_string()

    def __str__(self) -> str:
        return self.hex()

    @staticmethod
    def from_bytes_raw(key: bytes) -> PublicKey:
        """Build a key from 64 raw bytes or the 65 byte ``0x04`` prefixed form."""
        if len(key) == PublicKey.LENGTH_WITH_PREFIX_LENGTH:
            if key[0] != 0x04:
                raise CryptoError("Uncompressed secp256k1 key must start with 0x04")
            key = key[1:]
        elif len(key) != PublicKey.LENGTH:
            raise CryptoError(f"Secp256k1 public key length mismatch: {len(key)}")
        try:
            return PublicKey(VerifyingKey.from_string(key, SECP256k1, hashlib.sha3_256))
        except Exception as e:
            raise CryptoError(f"Invalid secp256k1 public key: {e}")

    @staticmethod
    def from_str(value: str) -> PublicKey:
        try:
            raw = bytes.fromhex(value.removeprefix("0x"))
        except ValueError as e:
            raise CryptoError(f"Invalid hex string: {e}")
        return PublicKey.from_bytes_raw(raw)

    def hex(self) -> str:
        return f"0x{self.to_crypto_bytes().hex()}"

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        if not isinstance(signature, Signature):
            return False
        raw = signature.data()
        if len(raw) != Signature.LENGTH:
            return False
        try:
            _, s = util.sigdecode_string(raw, CURVE_ORDER)
            if s > CURVE_ORDER // 2:
                return False
            self.key.verify(raw, data)
        except Exception:
            return False
        return True

    def to_crypto_bytes(self) -> bytes:
        return b"\x04" + self.key.to_string()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PublicKey:
        key = deserializer.to_bytes()
        try:
            return PublicKey.from_bytes_raw(key)
        except CryptoError as e:
            raise deserializer.fail(str(e))

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.to_crypto_bytes())


class Signature(asymmetric_crypto.Signature):
    LENGTH: int = 64

    signature: bytes

    def __init__(self, signature: bytes):
        self.signature = signature

    def __eq__(self, other: object):
        if not isinstance(other, Signature):
            return NotImplemented
        return self.signature == other.signature

    def __str__(self) -> str:
        return self.hex()

    def hex(self) -> str:
        return f"0x{self.signature.hex()}"

    @staticmethod
    def from_str(value: str) -> Signature:
        value = value.removeprefix("0x")
        if len(value) != Signature.LENGTH * 2:
            raise CryptoError("Secp256k1 signature length mismatch")
        return Signature(bytes.fromhex(value))

    def data(self) -> bytes:
        return self.signature

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Signature:
        signature = deserializer.to_bytes()
        if len(signature) != Signature.LENGTH:
            raise deserializer.fail("Secp256k1 signature length mismatch")

        return Signature(signature)

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.signature)


class Test(unittest.TestCase):
    PRIVATE_KEY = "secp256k1-priv-0x306fa009600e27c09d2659145ce1785249360dd5fb992da01a578fe67ed607f4"
    PUBLIC_KEY = "0x04210c9129e35337ff5d6488f90f18d842cf985f06e0baeff8df4bfb2ac4221863e2631b971a237b5db0aa71188e33250732dd461d56ee623cbe0426a5c2db79ef"
    SIGNATURE = "0xa539b0973e76fa99b2a864eebd5da950b4dfb399c7afe57ddb34130e454fc9db04dceb2c3d4260b8cc3d3952ab21b5d36c7dc76277fe3747764e6762d12bd9a9"

    def test_private_key_from_str(self):
        private_key_hex = PrivateKey.from_str(
            "0x306fa009600e27c09d2659145ce1785249360dd5fb992da01a578fe67ed607f4", False
        )
        private_key_with_prefix = PrivateKey.from_str(self.PRIVATE_KEY, True)
        self.assertEqual(private_key_hex, private_key_with_prefix)
        self.assertEqual(str(private_key_with_prefix), self.PRIVATE_KEY)

    def test_vectors(self):
        data = b"Hello world"

        private_key = PrivateKey.from_str(self.PRIVATE_KEY)
        local_public_key = private_key.public_key()
        local_signature = private_key.sign(data)
        self.assertTrue(local_public_key.verify(data, local_signature))

        original_public_key = PublicKey.from_str(self.PUBLIC_KEY)
        self.assertTrue(original_public_key.verify(data, local_signature))
        self.assertEqual(self.PUBLIC_KEY, local_public_key.hex())

        original_signature = Signature.from_str(self.SIGNATURE)
        self.assertTrue(original_public_key.verify(data, original_signature))
        self.assertFalse(original_public_key.verify(b"Hello there", original_signature))

    def test_high_s_rejected(self):
        data = b"malleable"
        private_key = PrivateKey.random()
        signature = private_key.sign(data)

        r, s = util.sigdecode_string(signature.data(), CURVE_ORDER)
        self.assertLessEqual(s, CURVE_ORDER // 2)
        high_s = Signature(util.sigencode_string(r, CURVE_ORDER - s, CURVE_ORDER))
        self.assertFalse(private_key.public_key().verify(data, high_s))

    def test_public_key_serialization(self):
        public_key = PrivateKey.random().public_key()
        serialized = public_key.to_bytes()
        self.assertEqual(len(serialized), 1 + PublicKey.LENGTH_WITH_PREFIX_LENGTH)
        self.assertEqual(public_key, PublicKey.from_bytes(serialized))

    def test_public_key_length_mismatch(self):
        with self.assertRaises(EncodingError):
            PublicKey.from_bytes(b"\x03\x04\x01\x02")
        with self.assertRaises(CryptoError):
            PublicKey.from_str("0x0401")

    def test_signature_key_serialization(self):
        signature = PrivateKey.random().sign(b"another_message")
        self.assertEqual(signature, Signature.from_bytes(signature.to_bytes()))


if __name__ == "__main__":
    unittest.main()
