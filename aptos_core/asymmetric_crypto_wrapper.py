# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Scheme-tagged keys (``AnyPublicKey`` / ``AnySignature``) and the MultiKey scheme.

A tagged key is a ULEB128 variant followed by the inner key, which lets accounts
mix schemes: Ed25519 (0), Secp256k1 (1) and Keyless (3). Keyless material is
carried opaquely; it can be attached to an authenticator but is never verified
locally.

A MultiKey is a sequence of tagged keys plus a one byte threshold. Its signature
is a sequence of tagged signatures followed by a length-prefixed bitmap in which
key ``i`` is bit ``128 >> (i % 8)`` of byte ``i // 8``. The bitmap is at most four
bytes long and signatures appear in ascending key order.
"""

from __future__ import annotations

import random
import unittest
from typing import List, Optional, Tuple

from . import asymmetric_crypto, ed25519, secp256k1_ecdsa
from .bcs import Deserializer, Serializer
from .errors import BitmapError, CryptoError, EncodingError


class KeylessPublicKey(asymmetric_crypto.PublicKey):
    """OIDC issuer plus identity commitment. Verification needs on-chain context."""

    iss_val: str
    idc: bytes

    def __init__(self, iss_val: str, idc: bytes):
        self.iss_val = iss_val
        self.idc = idc

    def __eq__(self, other: object):
        if not isinstance(other, KeylessPublicKey):
            return NotImplemented
        return self.iss_val == other.iss_val and self.idc == other.idc

    def __str__(self) -> str:
        return f"KeylessPublicKey({self.iss_val}, 0x{self.idc.hex()})"

    def to_crypto_bytes(self) -> bytes:
        return self.to_bytes()

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        return False

    @staticmethod
    def deserialize(deserializer: Deserializer) -> KeylessPublicKey:
        iss_val = deserializer.str()
        idc = deserializer.to_bytes()
        return KeylessPublicKey(iss_val, idc)

    def serialize(self, serializer: Serializer):
        serializer.str(self.iss_val)
        serializer.to_bytes(self.idc)


class KeylessSignature(asymmetric_crypto.Signature):
    """Keyless signature body, carried as opaque length-prefixed bytes."""

    raw: bytes

    def __init__(self, raw: bytes):
        self.raw = raw

    def __eq__(self, other: object):
        if not isinstance(other, KeylessSignature):
            return NotImplemented
        return self.raw == other.raw

    def __str__(self) -> str:
        return f"KeylessSignature(0x{self.raw.hex()})"

    @staticmethod
    def deserialize(deserializer: Deserializer) -> KeylessSignature:
        return KeylessSignature(deserializer.to_bytes())

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.raw)


class PublicKey(asymmetric_crypto.PublicKey):
    ED25519: int = 0
    SECP256K1_ECDSA: int = 1
    KEYLESS: int = 3

    variant: int
    public_key: asymmetric_crypto.PublicKey

    def __init__(self, public_key: asymmetric_crypto.PublicKey):
        if isinstance(public_key, ed25519.PublicKey):
            self.variant = PublicKey.ED25519
        elif isinstance(public_key, secp256k1_ecdsa.PublicKey):
            self.variant = PublicKey.SECP256K1_ECDSA
        elif isinstance(public_key, KeylessPublicKey):
            self.variant = PublicKey.KEYLESS
        else:
            raise CryptoError(f"Unsupported public key: {type(public_key)}")
        self.public_key = public_key

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.variant == other.variant and self.public_key == other.public_key

    def __str__(self) -> str:
        return self.public_key.__str__()

    def to_crypto_bytes(self) -> bytes:
        ser = Serializer()
        self.serialize(ser)
        return ser.output()

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        if not isinstance(signature, Signature):
            return False
        if self.variant != signature.variant or self.variant == PublicKey.KEYLESS:
            return False
        return self.public_key.verify(data, signature.signature)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PublicKey:
        variant = deserializer.uleb128()

        if variant == PublicKey.ED25519:
            public_key: asymmetric_crypto.PublicKey = ed25519.PublicKey.deserialize(
                deserializer
            )
        elif variant == PublicKey.SECP256K1_ECDSA:
            public_key = secp256k1_ecdsa.PublicKey.deserialize(deserializer)
        elif variant == PublicKey.KEYLESS:
            public_key = KeylessPublicKey.deserialize(deserializer)
        else:
            raise deserializer.fail(f"Invalid public key type: {variant}")

        return PublicKey(public_key)

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.variant)
        serializer.struct(self.public_key)


class Signature(asymmetric_crypto.Signature):
    ED25519: int = 0
    SECP256K1_ECDSA: int = 1
    KEYLESS: int = 3

    variant: int
    signature: asymmetric_crypto.Signature

    def __init__(self, signature: asymmetric_crypto.Signature):
        if isinstance(signature, ed25519.Signature):
            self.variant = Signature.ED25519
        elif isinstance(signature, secp256k1_ecdsa.Signature):
            self.variant = Signature.SECP256K1_ECDSA
        elif isinstance(signature, KeylessSignature):
            self.variant = Signature.KEYLESS
        else:
            raise CryptoError(f"Unsupported signature: {type(signature)}")
        self.signature = signature

    def __eq__(self, other: object):
        if not isinstance(other, Signature):
            return NotImplemented
        return self.variant == other.variant and self.signature == other.signature

    def __str__(self) -> str:
        return self.signature.__str__()

    def __repr__(self) -> str:
        return self.__str__()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Signature:
        variant = deserializer.uleb128()

        if variant == Signature.ED25519:
            signature: asymmetric_crypto.Signature = ed25519.Signature.deserialize(
                deserializer
            )
        elif variant == Signature.SECP256K1_ECDSA:
            signature = secp256k1_ecdsa.Signature.deserialize(deserializer)
        elif variant == Signature.KEYLESS:
            signature = KeylessSignature.deserialize(deserializer)
        else:
            raise deserializer.fail(f"Invalid signature type: {variant}")

        return Signature(signature)

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.variant)
        serializer.struct(self.signature)


class MultiPublicKey(asymmetric_crypto.PublicKey):
    keys: List[PublicKey]
    threshold: int

    MIN_KEYS = 2
    MAX_KEYS = 32
    MIN_THRESHOLD = 1

    def __init__(self, keys: List[asymmetric_crypto.PublicKey], threshold: int):
        if not self.MIN_KEYS <= len(keys) <= self.MAX_KEYS:
            raise CryptoError(
                f"Must have between {self.MIN_KEYS} and {self.MAX_KEYS} keys."
            )
        if not self.MIN_THRESHOLD <= threshold <= len(keys):
            raise CryptoError(
                f"Threshold must be between {self.MIN_THRESHOLD} and {len(keys)}."
            )

        # Ensure keys are wrapped
        self.keys = []
        for key in keys:
            if isinstance(key, PublicKey):
                self.keys.append(key)
            else:
                self.keys.append(PublicKey(key))

        self.threshold = threshold

    def __eq__(self, other: object):
        if not isinstance(other, MultiPublicKey):
            return NotImplemented
        return self.keys == other.keys and self.threshold == other.threshold

    def __str__(self) -> str:
        return f"{self.threshold}-of-{len(self.keys)} Multi key"

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        """Check the signatures the bitmap selects, in ascending key order.

        Fails when fewer than ``threshold`` signatures are present, when an index
        is repeated, out of order or beyond the key list, or when fewer than
        ``threshold`` of the selected signatures verify.
        """
        if not isinstance(signature, MultiSignature):
            return False
        if len(signature.signatures) < self.threshold:
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
        return MultiPublicKey.from_bytes(indata)

    def to_crypto_bytes(self) -> bytes:
        return self.to_bytes()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiPublicKey:
        keys = deserializer.sequence(PublicKey.deserialize)
        threshold = deserializer.u8()
        try:
            return MultiPublicKey(keys, threshold)
        except CryptoError as e:
            raise deserializer.fail(f"Invalid MultiKey: {e}")

    def serialize(self, serializer: Serializer):
        serializer.sequence(self.keys, Serializer.struct)
        serializer.u8(self.threshold)


class MultiSignature(asymmetric_crypto.Signature):
    """Tagged signatures keyed by the index of the signing key.

    Entries are held in ascending index order. ``bitmap_length`` records the
    number of bitmap bytes written on the wire; when omitted the shortest length
    covering the highest index is used.
    """

    signatures: List[Tuple[int, Signature]]
    bitmap_length: int

    MAX_BITMAP_BYTES: int = 4
    MAX_SIGNATURES: int = MAX_BITMAP_BYTES * 8

    def __init__(
        self,
        signatures: List[Tuple[int, asymmetric_crypto.Signature]],
        bitmap_length: Optional[int] = None,
    ):
        self.signatures = []
        seen = set()
        for index, signature in sorted(signatures, key=lambda entry: entry[0]):
            if index < 0 or index >= self.MAX_SIGNATURES:
                raise BitmapError(f"Bitmap index {index} is out of range")
            if index in seen:
                raise BitmapError(f"Duplicate bitmap index {index}")
            seen.add(index)
            if isinstance(signature, Signature):
                self.signatures.append((index, signature))
            else:
                self.signatures.append((index, Signature(signature)))

        needed = max(1, (self.signatures[-1][0] // 8) + 1) if self.signatures else 1
        if bitmap_length is None:
            bitmap_length = needed
        if bitmap_length < needed or bitmap_length > self.MAX_BITMAP_BYTES:
            raise BitmapError(f"Bitmap length {bitmap_length} cannot hold the indices")
        self.bitmap_length = bitmap_length

    def __eq__(self, other: object):
        if not isinstance(other, MultiSignature):
            return NotImplemented
        return (
            self.signatures == other.signatures
            and self.bitmap_length == other.bitmap_length
        )

    def __str__(self) -> str:
        return f"{self.signatures}"

    def bitmap(self) -> bytes:
        bitmap = bytearray(self.bitmap_length)
        for index, _ in self.signatures:
            bitmap[index // 8] |= 128 >> (index % 8)
        return bytes(bitmap)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiSignature:
        signatures = deserializer.sequence(Signature.deserialize)
        bitmap = deserializer.to_bytes()
        if not 1 <= len(bitmap) <= MultiSignature.MAX_BITMAP_BYTES:
            raise deserializer.fail(f"Invalid MultiKey bitmap length: {len(bitmap)}")

        indices = bitmap_indices(bitmap)
        if len(indices) != len(signatures):
            error = BitmapError(
                f"Bitmap marks {len(indices)} keys but carries {len(signatures)} signatures"
            )
            deserializer.set_error(error)
            raise error

        return MultiSignature(list(zip(indices, signatures)), len(bitmap))

    def serialize(self, serializer: Serializer):
        serializer.sequence([sig for _, sig in self.signatures], Serializer.struct)
        serializer.to_bytes(self.bitmap())


def bitmap_indices(bitmap: bytes) -> List[int]:
    """Key indices set in ``bitmap``, ascending."""
    indices = []
    for position in range(len(bitmap) * 8):
        if bitmap[position // 8] & (128 >> (position % 8)):
            indices.append(position)
    return indices


class Test(unittest.TestCase):
    CROSS_PLATFORM_SIGNATURE = (
        "020140118d6ebe543aaf3a541453f98a5748ab5b9e3f96d781b8c0a43740af2b65c03529fdf"
        "62b7de7aad9150770e0994dc4e0714795fdebf312be66cd0550c607755e00401a90421453aa"
        "53fa5a7aa3dfe70d913823cbf087bf372a762219ccc824d3a0eeecccaa9d34f22db4366aec6"
        "1fb6c204d2440f4ed288bc7cc7e407b766723a60901c0"
    )

    def test_cross_platform_signature(self):
        raw = bytes.fromhex(self.CROSS_PLATFORM_SIGNATURE)
        signature = MultiSignature.from_bytes(raw)
        self.assertEqual([index for index, _ in signature.signatures], [0, 1])
        self.assertEqual(signature.signatures[0][1].variant, Signature.SECP256K1_ECDSA)
        self.assertEqual(signature.signatures[1][1].variant, Signature.ED25519)
        self.assertEqual(signature.to_bytes(), raw)

    def test_multikey_sign_and_verify(self):
        keys = [
            ed25519.PrivateKey.random(),
            ed25519.PrivateKey.random(),
            secp256k1_ecdsa.PrivateKey.random(),
        ]
        multi_key = MultiPublicKey([key.public_key() for key in keys], 2)
        message = b"multikey"

        signature = MultiSignature(
            [(2, keys[2].sign(message)), (0, keys[0].sign(message))]
        )
        self.assertEqual(signature.bitmap(), b"\xa0")
        self.assertTrue(multi_key.verify(message, signature))
        self.assertFalse(multi_key.verify(b"other", signature))

        restored = MultiSignature.from_bytes(signature.to_bytes())
        self.assertEqual(restored, signature)
        self.assertTrue(multi_key.verify(message, restored))

        self.assertEqual(MultiPublicKey.from_bytes(multi_key.to_bytes()), multi_key)

    def test_multikey_below_threshold(self):
        keys = [ed25519.PrivateKey.random() for _ in range(3)]
        multi_key = MultiPublicKey([key.public_key() for key in keys], 2)
        message = b"threshold"

        signature = MultiSignature([(1, keys[1].sign(message))])
        self.assertFalse(multi_key.verify(message, signature))

        # The second signature is attributed to a key that did not produce it.
        wrong = MultiSignature(
            [(0, keys[0].sign(message)), (1, keys[2].sign(message))]
        )
        self.assertFalse(multi_key.verify(message, wrong))

    def test_multikey_out_of_bounds(self):
        keys = [ed25519.PrivateKey.random() for _ in range(2)]
        multi_key = MultiPublicKey([key.public_key() for key in keys], 1)
        signature = MultiSignature([(9, keys[0].sign(b"msg"))])
        self.assertEqual(signature.bitmap(), b"\x00\x40")
        self.assertFalse(multi_key.verify(b"msg", signature))

    def test_mismatched_variant(self):
        private_key = ed25519.PrivateKey.random()
        any_key = PublicKey(private_key.public_key())
        secp_signature = Signature(secp256k1_ecdsa.PrivateKey.random().sign(b"msg"))
        self.assertFalse(any_key.verify(b"msg", secp_signature))
        self.assertTrue(any_key.verify(b"msg", Signature(private_key.sign(b"msg"))))

    def test_bitmap_count_mismatch(self):
        signature = Signature(ed25519.PrivateKey.random().sign(b"msg"))
        ser = Serializer()
        ser.sequence([signature], Serializer.struct)
        ser.to_bytes(b"\xc0")
        with self.assertRaises(BitmapError):
            MultiSignature.from_bytes(ser.output())

        with self.assertRaises(BitmapError):
            MultiSignature([(3, signature), (3, signature)])

    def test_bitmap_too_long(self):
        ser = Serializer()
        ser.sequence([], Serializer.struct)
        ser.to_bytes(b"\x00" * 5)
        with self.assertRaises(EncodingError):
            MultiSignature.from_bytes(ser.output())

    def test_keyless_public_key(self):
        keyless = PublicKey(KeylessPublicKey("https://accounts.google.com", b"\x01" * 32))
        self.assertEqual(PublicKey.from_bytes(keyless.to_bytes()), keyless)
        self.assertEqual(keyless.to_bytes()[0], PublicKey.KEYLESS)
        self.assertFalse(
            keyless.verify(b"msg", Signature(KeylessSignature(b"\x00" * 8)))
        )

    def test_keyless_signature(self):
        signature = Signature(KeylessSignature(b"\x01\x02\x03"))
        self.assertEqual(signature.to_bytes(), bytes.fromhex("0303010203"))
        self.assertEqual(Signature.from_bytes(signature.to_bytes()), signature)

        # Opaque bodies still need their length prefix.
        with self.assertRaises(EncodingError):
            Signature.from_bytes(bytes.fromhex("03030102"))

    def test_unsupported_inner_types(self):
        with self.assertRaises(CryptoError):
            PublicKey(b"\x00" * 32)
        with self.assertRaises(CryptoError):
            Signature(b"\x00" * 64)

    def test_multikey_range_checks(self):
        keys = [ed25519.PrivateKey.random().public_key() for _ in range(3)]
        with self.assertRaisesRegex(CryptoError, "Must have between 2 and 32 keys."):
            MultiPublicKey(keys[:1], 1)
        with self.assertRaisesRegex(CryptoError, "Threshold must be between 1 and 2."):
            MultiPublicKey(keys[:2], 3)
        with self.assertRaises(CryptoError):
            MultiPublicKey(keys, 0)

        ser = Serializer()
        ser.sequence([PublicKey(keys[0])], Serializer.struct)
        ser.u8(1)
        with self.assertRaises(EncodingError):
            MultiPublicKey.from_bytes(ser.output())

        ser = Serializer()
        ser.sequence([PublicKey(key) for key in keys], Serializer.struct)
        ser.u8(4)
        with self.assertRaises(EncodingError):
            MultiPublicKey.from_bytes(ser.output())

    def test_bitmap_length_equality(self):
        signature = Signature(ed25519.PrivateKey.random().sign(b"msg"))
        short = MultiSignature([(1, signature)])
        wide = MultiSignature([(1, signature)], 3)
        self.assertEqual(short.bitmap(), b"\x40")
        self.assertEqual(wide.bitmap(), b"\x40\x00\x00")
        self.assertNotEqual(short, wide)
        self.assertEqual(MultiSignature.from_bytes(wide.to_bytes()), wide)
        self.assertEqual(MultiSignature([(1, signature)], 1), short)

    def test_multisignature_round_trip_random(self):
        rng = random.Random(32)
        signatures = [
            Signature(ed25519.PrivateKey.random().sign(b"msg")),
            Signature(secp256k1_ecdsa.PrivateKey.random().sign(b"msg")),
            Signature(KeylessSignature(b"\x07" * 5)),
        ]
        for _ in range(200):
            count = rng.randint(0, MultiSignature.MAX_SIGNATURES)
            indices = rng.sample(range(MultiSignature.MAX_SIGNATURES), count)
            needed = max(indices) // 8 + 1 if indices else 1
            bitmap_length = rng.randint(needed, MultiSignature.MAX_BITMAP_BYTES)
            signature = MultiSignature(
                [(index, rng.choice(signatures)) for index in indices], bitmap_length
            )
            with self.subTest(indices=sorted(indices), bitmap_length=bitmap_length):
                self.assertEqual(len(signature.bitmap()), bitmap_length)
                self.assertEqual(bitmap_indices(signature.bitmap()), sorted(indices))
                self.assertEqual(MultiSignature.from_bytes(signature.to_bytes()), signature)

            if needed > 1:
                with self.assertRaises(BitmapError):
                    MultiSignature(
                        [(index, signatures[0]) for index in indices], needed - 1
                    )


if __name__ == "__main__":
    unittest.main()
