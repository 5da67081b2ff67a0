# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Ed25519 keys and signatures, plus the legacy k-of-n MultiEd25519 scheme.

Signing and verification are plain RFC 8032 Ed25519 over the message bytes, with
no prehashing, provided by PyNaCl.

A MultiEd25519 public key is up to 32 Ed25519 keys followed by a one byte
threshold. A MultiEd25519 signature is the concatenation of the individual
signatures followed by a 4 byte big-endian bitmap in which bit ``31 - i`` marks
that key ``i`` contributed; signatures appear in ascending key order.
"""

from __future__ import annotations

import unittest
from typing import List, Tuple

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from . import asymmetric_crypto
from .bcs import Deserializer, Serializer
from .errors import BitmapError, CryptoError, EncodingError


class PrivateKey(asymmetric_crypto.PrivateKey):
    LENGTH: int = 32

    key: SigningKey

    def __init__(self, key: SigningKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self.key == other.key

    def __str__(self):
        return self.aip80()

    @staticmethod
    def from_hex(value: str | bytes, strict: bool | None = None) -> PrivateKey:
        """
        Parse a HexInput that may be a hex string, bytes, or an AIP-80 compliant string to a private key.

        :param value: A hex string, byte array, or AIP-80 compliant string.
        :param strict: If true, the value MUST be compliant with AIP-80.
        :return: Parsed Ed25519 private key.
        """
        key = PrivateKey.parse_hex_input(
            value, asymmetric_crypto.PrivateKeyVariant.Ed25519, strict
        )
        if len(key) != PrivateKey.LENGTH:
            raise CryptoError(
                f"Ed25519 private key must be {PrivateKey.LENGTH} bytes, got {len(key)}"
            )
        return PrivateKey(SigningKey(key))

    @staticmethod
    def from_str(value: str, strict: bool | None = None) -> PrivateKey:
        return PrivateKey.from_hex(value, strict)

    def hex(self) -> str:
        return f"0x{self.key.encode().hex()}"

    def aip80(self) -> str:
        return PrivateKey.format_private_key(
            self.hex(), asymmetric_crypto.PrivateKeyVariant.Ed25519
        )

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.verify_key)

    @staticmethod
    def random() -> PrivateKey:
        return PrivateKey(SigningKey.generate())

    def sign(self, data: bytes) -> Signature:
        return Signature(self.key.sign(data).signature)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PrivateKey:
        key = deserializer.to_bytes()
        if len(key) != PrivateKey.LENGTH:
            raise deserializer.fail("Ed25519 private key length mismatch")

        return PrivateKey(SigningKey(key))

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.key.encode())


class PublicKey(asymmetric_crypto.PublicKey):
    LENGTH: int = 32

    key: VerifyKey

    def __init__(self, key: VerifyKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.key == other.key

    def __hash__(self):
        return hash(self.key.encode())

    def __str__(self) -> str:
        return f"0x{self.key.encode().hex()}"

    @staticmethod
    def from_str(value: str) -> PublicKey:
        raw = _parse_hex(value.removeprefix("0x"))
        if len(raw) != PublicKey.LENGTH:
            raise CryptoError(
                f"Ed25519 public key must be {PublicKey.LENGTH} bytes, got {len(raw)}"
            )
        return PublicKey(VerifyKey(raw))

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        if not isinstance(signature, Signature):
            return False
        if len(signature.data()) != Signature.LENGTH:
            return False
        try:
            self.key.verify(data, signature.data())
        except (BadSignatureError, ValueError, TypeError):
            return False
        return True

    def to_crypto_bytes(self) -> bytes:
        return self.key.encode()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PublicKey:
        key = deserializer.to_bytes()
        if len(key) != PublicKey.LENGTH:
            raise deserializer.fail("Ed25519 public key length mismatch")

        return PublicKey(VerifyKey(key))

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.key.encode())


class MultiPublicKey(asymmetric_crypto.PublicKey):
    keys: List[PublicKey]
    threshold: int

    MIN_KEYS = 2
    MAX_KEYS = 32
    MIN_THRESHOLD = 1

    def __init__(self, keys: List[PublicKey], threshold: int):
        if not self.MIN_KEYS <= len(keys) <= self.MAX_KEYS:
            raise CryptoError(
                f"Must have between {self.MIN_KEYS} and {self.MAX_KEYS} keys."
            )
        if not self.MIN_THRESHOLD <= threshold <= len(keys):
            raise CryptoError(
                f"Threshold must be between {self.MIN_THRESHOLD} and {len(keys)}."
            )

        self.keys = keys
        self.threshold = threshold

    def __eq__(self, other: object):
        if not isinstance(other, MultiPublicKey):
            return NotImplemented
        return self.keys == other.keys and self.threshold == other.threshold

    def __str__(self) -> str:
        return f"{self.threshold}-of-{len(self.keys)} Multi-Ed25519 public key"

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        """Check a k-of-n signature.

        The signature's key indices must be strictly increasing and inside the key
        list, the bitmap must mark exactly as many keys as there are signatures,
        and at least ``threshold`` of the signatures must verify.
        """
        if not isinstance(signature, MultiSignature):
            return False
        if len(signature.signatures) < self.threshold:
            return False
        if bin(signature.bitmap()).count("1") != len(signature.signatures):
            return False

        verified = 0
        previous = -1
        for index, inner in signature.signatures:
            if index <= previous or index >= len(self.keys):
                return False
            previous = index
            if self.keys[index].verify(data, inner):
                verified += 1
        return verified >= self.threshold

    @staticmethod
    def from_crypto_bytes(indata: bytes) -> MultiPublicKey:
        if len(indata) < PublicKey.LENGTH + 1:
            raise CryptoError("MultiEd25519 public key too short")
        if (len(indata) - 1) % PublicKey.LENGTH != 0:
            raise CryptoError("MultiEd25519 public key length is invalid")

        total_keys = (len(indata) - 1) // PublicKey.LENGTH
        keys: List[PublicKey] = []
        for idx in range(total_keys):
            start = idx * PublicKey.LENGTH
            end = (idx + 1) * PublicKey.LENGTH
            keys.append(PublicKey(VerifyKey(indata[start:end])))

        threshold = indata[-1]
        return MultiPublicKey(keys, threshold)

    def to_crypto_bytes(self) -> bytes:
        key_bytes = bytearray()
        for key in self.keys:
            key_bytes.extend(key.to_crypto_bytes())
        key_bytes.append(self.threshold)
        return bytes(key_bytes)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiPublicKey:
        indata = deserializer.to_bytes()
        try:
            return MultiPublicKey.from_crypto_bytes(indata)
        except CryptoError as e:
            raise deserializer.fail(f"Invalid MultiEd25519 public key: {e}")

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
        return f"0x{self.signature.hex()}"

    def data(self) -> bytes:
        return self.signature

    @staticmethod
    def from_str(value: str) -> Signature:
        raw = _parse_hex(value.removeprefix("0x"))
        if len(raw) != Signature.LENGTH:
            raise CryptoError(
                f"Ed25519 signature must be {Signature.LENGTH} bytes, got {len(raw)}"
            )
        return Signature(raw)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Signature:
        signature = deserializer.to_bytes()
        if len(signature) != Signature.LENGTH:
            raise deserializer.fail("Ed25519 signature length mismatch")

        return Signature(signature)

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.signature)


class MultiSignature(asymmetric_crypto.Signature):
    """Signatures tagged with the index of the key that produced each one.

    Entries are kept sorted by key index; duplicate indices and indices that do
    not fit the 32 bit bitmap are rejected with :class:`BitmapError`.
    """

    signatures: List[Tuple[int, Signature]]
    BITMAP_NUM_OF_BYTES: int = 4

    def __init__(self, signatures: List[Tuple[int, Signature]]):
        ordered = sorted(signatures, key=lambda entry: entry[0])
        seen = set()
        for index, _ in ordered:
            if index < 0 or index >= self.BITMAP_NUM_OF_BYTES * 8:
                raise BitmapError(f"Bitmap index {index} is out of range")
            if index in seen:
                raise BitmapError(f"Duplicate bitmap index {index}")
            seen.add(index)
        self.signatures = ordered

    def __eq__(self, other: object):
        if not isinstance(other, MultiSignature):
            return NotImplemented
        return self.signatures == other.signatures

    def __str__(self) -> str:
        return f"{self.signatures}"

    def bitmap(self) -> int:
        bitmap = 0
        for index, _ in self.signatures:
            bitmap |= 1 << (31 - index)
        return bitmap

    @staticmethod
    def from_key_map(
        public_key: MultiPublicKey,
        signatures_map: List[Tuple[PublicKey, Signature]],
    ) -> MultiSignature:
        signatures = []

        for entry in signatures_map:
            signatures.append((public_key.keys.index(entry[0]), entry[1]))
        return MultiSignature(signatures)

    def to_crypto_bytes(self) -> bytes:
        signature_bytes = bytearray()
        for _, signature in self.signatures:
            signature_bytes.extend(signature.data())
        signature_bytes.extend(
            self.bitmap().to_bytes(MultiSignature.BITMAP_NUM_OF_BYTES, "big")
        )
        return bytes(signature_bytes)

    @staticmethod
    def from_crypto_bytes(signature_bytes: bytes) -> MultiSignature:
        count = (len(signature_bytes) - MultiSignature.BITMAP_NUM_OF_BYTES) // (
            Signature.LENGTH
        )
        if (
            count < 1
            or count * Signature.LENGTH + MultiSignature.BITMAP_NUM_OF_BYTES
            != len(signature_bytes)
        ):
            raise EncodingError("MultiSignature length is invalid")

        bitmap = int.from_bytes(
            signature_bytes[-MultiSignature.BITMAP_NUM_OF_BYTES :], "big"
        )
        if bin(bitmap).count("1") != count:
            raise BitmapError(
                f"Bitmap marks {bin(bitmap).count('1')} keys but carries {count} signatures"
            )

        signatures = []
        current = 0
        for position in range(MultiSignature.BITMAP_NUM_OF_BYTES * 8):
            if bitmap & (1 << (31 - position)):
                left = current * Signature.LENGTH
                signature = Signature(signature_bytes[left : left + Signature.LENGTH])
                signatures.append((position, signature))
                current += 1

        return MultiSignature(signatures)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiSignature:
        signature_bytes = deserializer.to_bytes()
        try:
            return MultiSignature.from_crypto_bytes(signature_bytes)
        except (EncodingError, BitmapError) as e:
            deserializer.set_error(e)
            raise

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.to_crypto_bytes())


def _parse_hex(value: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise CryptoError(f"Invalid hex string: {e}")


class Test(unittest.TestCase):
    def test_private_key_from_str(self):
        private_key_hex = PrivateKey.from_str(
            "0x4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe", False
        )
        private_key_with_prefix = PrivateKey.from_str(
            "ed25519-priv-0x4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe",
            True,
        )
        private_key_bytes = PrivateKey.from_hex(
            bytes.fromhex(
                "4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe"
            ),
            False,
        )
        self.assertEqual(private_key_hex, private_key_with_prefix)
        self.assertEqual(private_key_hex, private_key_bytes)

    def test_private_key_aip80_formatting(self):
        private_key_with_prefix = "ed25519-priv-0x4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe"
        self.assertEqual(
            str(PrivateKey.from_str(private_key_with_prefix, True)),
            private_key_with_prefix,
        )

    def test_private_key_wrong_length(self):
        with self.assertRaises(CryptoError):
            PrivateKey.from_str("0x0102", False)

    def test_sign_and_verify(self):
        in_value = b"test_message"

        private_key = PrivateKey.random()
        public_key = private_key.public_key()

        signature = private_key.sign(in_value)
        self.assertTrue(public_key.verify(in_value, signature))
        self.assertFalse(public_key.verify(b"other_message", signature))

        tampered = bytearray(signature.data())
        tampered[0] ^= 0x01
        self.assertFalse(public_key.verify(in_value, Signature(bytes(tampered))))
        self.assertFalse(public_key.verify(in_value, Signature(b"\x01" * 63)))

    def test_public_key_serialization(self):
        public_key = PrivateKey.random().public_key()
        self.assertEqual(public_key, PublicKey.from_bytes(public_key.to_bytes()))

    def test_signature_key_serialization(self):
        signature = PrivateKey.random().sign(b"another_message")
        self.assertEqual(signature, Signature.from_bytes(signature.to_bytes()))

    def test_deserialize_length_mismatch(self):
        with self.assertRaises(EncodingError):
            Signature.from_bytes(b"\x02\x01\x02")
        with self.assertRaises(EncodingError):
            PublicKey.from_bytes(b"\x01\x01")

    def test_multisig(self):
        # Generate signatory private keys.
        private_key_1 = PrivateKey.from_str(
            "ed25519-priv-0x4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe"
        )
        private_key_2 = PrivateKey.from_str(
            "ed25519-priv-0x1e70e49b78f976644e2c51754a2f049d3ff041869c669523ba95b172c7329901"
        )

        multisig_public_key = MultiPublicKey(
            [private_key_1.public_key(), private_key_2.public_key()], 1
        )
        expected_public_key_bcs = (
            "41754bb6a4720a658bdd5f532995955db0971ad3519acbde2f1149c3857348006c"
            "1634cd4607073f2be4a6f2aadc2b866ddb117398a675f2096ed906b20e0bf2c901"
        )
        self.assertEqual(multisig_public_key.to_bytes().hex(), expected_public_key_bcs)
        self.assertEqual(
            MultiPublicKey.from_bytes(bytes.fromhex(expected_public_key_bcs)),
            multisig_public_key,
        )

        signature = private_key_2.sign(b"multisig")
        multisig_signature = MultiSignature.from_key_map(
            multisig_public_key, [(private_key_2.public_key(), signature)]
        )
        expected_multisig_signature_bcs = (
            "4402e90d8f300d79963cb7159ffa6f620f5bba4af5d32a7176bfb5480b43897cf"
            "4886bbb4042182f4647c9b04f02dbf989966f0facceec52d22bdcc7ce631bfc0c"
            "40000000"
        )
        self.assertEqual(
            multisig_signature.to_bytes().hex(), expected_multisig_signature_bcs
        )
        self.assertEqual(
            MultiSignature.from_bytes(bytes.fromhex(expected_multisig_signature_bcs)),
            multisig_signature,
        )
        self.assertTrue(multisig_public_key.verify(b"multisig", multisig_signature))
        self.assertFalse(multisig_public_key.verify(b"other", multisig_signature))

    def test_multisig_threshold(self):
        private_keys = [PrivateKey.random() for _ in range(3)]
        public_key = MultiPublicKey([key.public_key() for key in private_keys], 2)
        message = b"threshold"

        one = MultiSignature([(0, private_keys[0].sign(message))])
        self.assertFalse(public_key.verify(message, one))

        two = MultiSignature(
            [(2, private_keys[2].sign(message)), (0, private_keys[0].sign(message))]
        )
        self.assertEqual([index for index, _ in two.signatures], [0, 2])
        self.assertTrue(public_key.verify(message, two))

        # A signature attributed to the wrong key does not count.
        swapped = MultiSignature(
            [(0, private_keys[1].sign(message)), (1, private_keys[0].sign(message))]
        )
        self.assertFalse(public_key.verify(message, swapped))

    def test_multisig_index_out_of_bounds(self):
        private_keys = [PrivateKey.random() for _ in range(2)]
        public_key = MultiPublicKey([key.public_key() for key in private_keys], 1)
        signature = MultiSignature([(5, private_keys[0].sign(b"msg"))])
        self.assertFalse(public_key.verify(b"msg", signature))

    def test_multisig_bitmap_errors(self):
        signature = PrivateKey.random().sign(b"msg")
        with self.assertRaises(BitmapError):
            MultiSignature([(1, signature), (1, signature)])
        with self.assertRaises(BitmapError):
            MultiSignature([(32, signature)])

        # One signature but two bits set in the bitmap.
        raw = signature.data() + bytes.fromhex("c0000000")
        with self.assertRaises(BitmapError):
            MultiSignature.from_crypto_bytes(raw)

    def test_multisig_range_checks(self):
        keys = [
            PrivateKey.random().public_key() for x in range(MultiPublicKey.MAX_KEYS + 1)
        ]

        with self.assertRaisesRegex(CryptoError, "Must have between 2 and 32 keys."):
            MultiPublicKey([keys[0]], 1)

        with self.assertRaisesRegex(CryptoError, "Must have between 2 and 32 keys."):
            MultiPublicKey(keys, 1)

        with self.assertRaisesRegex(
            CryptoError, "Threshold must be between 1 and 4."
        ):
            MultiPublicKey(keys[0:4], 0)

        with self.assertRaisesRegex(
            CryptoError, "Threshold must be between 1 and 4."
        ):
            MultiPublicKey(keys[0:4], 5)

        too_few = keys[0].to_crypto_bytes() + b"\x01"
        with self.assertRaises(EncodingError):
            MultiPublicKey.from_bytes(bytes([len(too_few)]) + too_few)


if __name__ == "__main__":
    unittest.main()
