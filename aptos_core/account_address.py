# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Account addresses, authentication keys and deterministic address derivation.

Addresses are 32 bytes. Their text form follows AIP-40: the special addresses
``0x0`` through ``0xf`` are written in SHORT form, every other address in LONG
form (``0x`` followed by 64 hex characters).

An authentication key is ``SHA3-256(public key bytes || scheme byte)``; a freshly
created account's address equals its authentication key. Object and resource
account addresses are derived the same way from a creator address, a seed and a
domain separating scheme byte, so addresses from different derivations never
collide.

Examples:
    Parsing and printing::

        addr = AccountAddress.from_str("0x1")
        addr.to_long_string()   # "0x000...001"
        AccountAddress.from_str_relaxed("b0b").to_short_string()  # "0xb0b"

    Deriving::

        auth_key = AuthenticationKey.from_public_key(private_key.public_key())
        auth_key.account_address()
        AccountAddress.for_named_object(creator, b"config")
"""

from __future__ import annotations

import hashlib
import unittest
from dataclasses import dataclass

from . import asymmetric_crypto, asymmetric_crypto_wrapper, ed25519, secp256k1_ecdsa
from .bcs import Deserializer, Serializer
from .errors import CryptoError, EncodingError


class AuthKeyScheme:
    """Trailing scheme bytes that separate the address derivation domains."""

    Ed25519: bytes = b"\x00"
    MultiEd25519: bytes = b"\x01"
    SingleKey: bytes = b"\x02"
    MultiKey: bytes = b"\x03"
    DeriveObjectAddressFromObject: bytes = b"\xFC"
    DeriveObjectAddressFromGuid: bytes = b"\xFD"
    DeriveObjectAddressFromSeed: bytes = b"\xFE"
    DeriveResourceAccountAddress: bytes = b"\xFF"


class ParseAddressError(EncodingError):
    """Address text or bytes do not describe a valid 32 byte address."""


class AccountAddress:
    address: bytes
    LENGTH: int = 32

    def __init__(self, address: bytes):
        self.address = address

        if len(address) != AccountAddress.LENGTH:
            raise ParseAddressError(
                f"Expected address of length {AccountAddress.LENGTH}, got {len(address)}"
            )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccountAddress):
            return NotImplemented
        return self.address == other.address

    def __hash__(self) -> int:
        return hash(self.address)

    def __str__(self):
        """AIP-40 form: SHORT for special addresses, LONG for all others.

        See https://github.com/aptos-foundation/AIPs/blob/main/aips/aip-40.md
        """
        if self.is_special():
            return self.to_short_string()
        return self.to_long_string()

    def __repr__(self):
        return self.__str__()

    def to_short_string(self) -> str:
        """``0x`` followed by the hex value without leading zeros (``0x0`` for zero)."""
        return f"0x{self.address.hex().lstrip('0') or '0'}"

    def to_long_string(self) -> str:
        """``0x`` followed by all 64 hex characters."""
        return f"0x{self.address.hex()}"

    def is_special(self):
        """True for 0x0 through 0xf, i.e. the hex form matches ``^0{63}[0-9a-f]$``."""
        return all(b == 0 for b in self.address[:-1]) and self.address[-1] < 0b10000

    @staticmethod
    def from_str(address: str) -> AccountAddress:
        """Parse an address in strict AIP-40 form.

        Accepts ``0x`` plus 64 hex characters, or ``0x0`` through ``0xf`` for the
        special addresses. Anything else, including padded SHORT forms such as
        ``0x0f`` and SHORT forms of non-special addresses such as ``0x10``, is
        rejected.

        Raises:
            ParseAddressError: If the text is not in strict form.
        """
        if not address.startswith("0x"):
            raise ParseAddressError("Hex string must start with a leading 0x.")

        out = AccountAddress.from_str_relaxed(address)

        if len(address) != AccountAddress.LENGTH * 2 + 2:
            if not out.is_special():
                raise ParseAddressError(
                    "The given hex string is not a special address, it must be "
                    "represented as 0x + 64 chars."
                )
            if len(address) != 3:
                raise ParseAddressError(
                    "The given hex string is a special address not in LONG form, "
                    "it must be 0x0 to 0xf without padding zeroes."
                )

        return out

    @staticmethod
    def from_str_relaxed(address: str) -> AccountAddress:
        """Parse 1 to 64 hex characters, with or without ``0x``, left padding with zeros.

        Raises:
            ParseAddressError: If the text is empty, too long, or not hex.
        """
        addr = address.removeprefix("0x")

        if len(addr) < 1:
            raise ParseAddressError(
                "Hex string is too short, must be 1 to 64 chars long, excluding the "
                "leading 0x."
            )
        if len(addr) > AccountAddress.LENGTH * 2:
            raise ParseAddressError(
                "Hex string is too long, must be 1 to 64 chars long, excluding the "
                "leading 0x."
            )

        try:
            raw = bytes.fromhex(addr.rjust(AccountAddress.LENGTH * 2, "0"))
        except ValueError as e:
            raise ParseAddressError(f"Invalid hex string {address!r}: {e}")
        return AccountAddress(raw)

    @staticmethod
    def from_key(key: asymmetric_crypto.PublicKey) -> AccountAddress:
        """Address of an account freshly created with ``key``."""
        return AuthenticationKey.from_public_key(key).account_address()

    @staticmethod
    def for_resource_account(creator: AccountAddress, seed: bytes) -> AccountAddress:
        hasher = hashlib.sha3_256()
        hasher.update(creator.address)
        hasher.update(seed)
        hasher.update(AuthKeyScheme.DeriveResourceAccountAddress)
        return AccountAddress(hasher.digest())

    @staticmethod
    def for_guid_object(creator: AccountAddress, creation_num: int) -> AccountAddress:
        """Address of the object created with GUID ``(creator, creation_num)``."""
        hasher = hashlib.sha3_256()
        serializer = Serializer()
        serializer.u64(creation_num)
        hasher.update(serializer.output())
        hasher.update(creator.address)
        hasher.update(AuthKeyScheme.DeriveObjectAddressFromGuid)
        return AccountAddress(hasher.digest())

    @staticmethod
    def for_named_object(creator: AccountAddress, seed: bytes) -> AccountAddress:
        """Address of the object ``creator`` creates under the name ``seed``."""
        hasher = hashlib.sha3_256()
        hasher.update(creator.address)
        hasher.update(seed)
        hasher.update(AuthKeyScheme.DeriveObjectAddressFromSeed)
        return AccountAddress(hasher.digest())

    @staticmethod
    def for_object_from_object(
        creator: AccountAddress, source: AccountAddress
    ) -> AccountAddress:
        """Address of an object derived from another object owned by ``creator``."""
        hasher = hashlib.sha3_256()
        hasher.update(creator.address)
        hasher.update(source.address)
        hasher.update(AuthKeyScheme.DeriveObjectAddressFromObject)
        return AccountAddress(hasher.digest())

    @staticmethod
    def for_named_token(
        creator: AccountAddress, collection_name: str, token_name: str
    ) -> AccountAddress:
        collection_bytes = collection_name.encode()
        token_bytes = token_name.encode()
        return AccountAddress.for_named_object(
            creator, collection_bytes + b"::" + token_bytes
        )

    @staticmethod
    def for_named_collection(
        creator: AccountAddress, collection_name: str
    ) -> AccountAddress:
        return AccountAddress.for_named_object(creator, collection_name.encode())

    @staticmethod
    def deserialize(deserializer: Deserializer) -> AccountAddress:
        return AccountAddress(deserializer.fixed_bytes(AccountAddress.LENGTH))

    def serialize(self, serializer: Serializer):
        serializer.fixed_bytes(self.address)


class AuthenticationKey:
    """The 32 byte key an account authenticates transactions against."""

    LENGTH: int = 32

    key: bytes

    def __init__(self, key: bytes):
        if len(key) != AuthenticationKey.LENGTH:
            raise CryptoError(
                f"Authentication key must be {AuthenticationKey.LENGTH} bytes, got {len(key)}"
            )
        self.key = key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AuthenticationKey):
            return NotImplemented
        return self.key == other.key

    def __str__(self) -> str:
        return f"0x{self.key.hex()}"

    def __repr__(self) -> str:
        return self.__str__()

    @staticmethod
    def scheme(key: asymmetric_crypto.PublicKey) -> bytes:
        """Scheme byte for ``key``; bare secp256k1 keys are treated as SingleKey."""
        if isinstance(key, ed25519.PublicKey):
            return AuthKeyScheme.Ed25519
        elif isinstance(key, ed25519.MultiPublicKey):
            return AuthKeyScheme.MultiEd25519
        elif isinstance(key, asymmetric_crypto_wrapper.PublicKey):
            return AuthKeyScheme.SingleKey
        elif isinstance(key, asymmetric_crypto_wrapper.MultiPublicKey):
            return AuthKeyScheme.MultiKey
        raise CryptoError(f"Unsupported public key type: {type(key).__name__}")

    @staticmethod
    def from_public_key(key: asymmetric_crypto.PublicKey) -> AuthenticationKey:
        if isinstance(key, secp256k1_ecdsa.PublicKey):
            key = asymmetric_crypto_wrapper.PublicKey(key)
        hasher = hashlib.sha3_256()
        hasher.update(key.to_crypto_bytes())
        hasher.update(AuthenticationKey.scheme(key))
        return AuthenticationKey(hasher.digest())

    def account_address(self) -> AccountAddress:
        return AccountAddress(self.key)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> AuthenticationKey:
        key = deserializer.to_bytes()
        if len(key) != AuthenticationKey.LENGTH:
            raise deserializer.fail("Authentication key length mismatch")
        return AuthenticationKey(key)

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.key)


@dataclass(init=True, frozen=True)
class AddressForms:
    short_with_0x: str
    short_without_0x: str
    long_with_0x: str
    long_without_0x: str
    raw: bytes


ADDRESS_ZERO = AddressForms(
    short_with_0x="0x0",
    short_without_0x="0",
    long_with_0x="0x" + "0" * 64,
    long_without_0x="0" * 64,
    raw=bytes(32),
)

ADDRESS_F = AddressForms(
    short_with_0x="0xf",
    short_without_0x="f",
    long_with_0x="0x" + "0" * 63 + "f",
    long_without_0x="0" * 63 + "f",
    raw=bytes(31) + b"\x0f",
)

ADDRESS_TEN = AddressForms(
    short_with_0x="0x10",
    short_without_0x="10",
    long_with_0x="0x" + "0" * 62 + "10",
    long_without_0x="0" * 62 + "10",
    raw=bytes(31) + b"\x10",
)

ADDRESS_OTHER = AddressForms(
    short_with_0x="0xca843279e3427144cead5e4d5999a3d0ca843279e3427144cead5e4d5999a3d0",
    short_without_0x="ca843279e3427144cead5e4d5999a3d0ca843279e3427144cead5e4d5999a3d0",
    long_with_0x="0xca843279e3427144cead5e4d5999a3d0ca843279e3427144cead5e4d5999a3d0",
    long_without_0x="ca843279e3427144cead5e4d5999a3d0ca843279e3427144cead5e4d5999a3d0",
    raw=bytes.fromhex(
        "ca843279e3427144cead5e4d5999a3d0ca843279e3427144cead5e4d5999a3d0"
    ),
)


class Test(unittest.TestCase):
    BOB = "b0b"

    def test_multi_ed25519(self):
        private_key_1 = ed25519.PrivateKey.from_str(
            "4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe", False
        )
        private_key_2 = ed25519.PrivateKey.from_str(
            "1e70e49b78f976644e2c51754a2f049d3ff041869c669523ba95b172c7329901", False
        )
        multisig_public_key = ed25519.MultiPublicKey(
            [private_key_1.public_key(), private_key_2.public_key()], 1
        )

        expected = AccountAddress.from_str_relaxed(
            "835bb8c5ee481062946b18bbb3b42a40b998d6bf5316ca63834c959dc739acf0"
        )
        self.assertEqual(AccountAddress.from_key(multisig_public_key), expected)

    def test_auth_key_schemes(self):
        private_key = ed25519.PrivateKey.random()
        public_key = private_key.public_key()

        ed25519_key = AuthenticationKey.from_public_key(public_key)
        self.assertEqual(
            ed25519_key.key,
            hashlib.sha3_256(public_key.to_crypto_bytes() + b"\x00").digest(),
        )

        single_key = AuthenticationKey.from_public_key(
            asymmetric_crypto_wrapper.PublicKey(public_key)
        )
        wrapped = asymmetric_crypto_wrapper.PublicKey(public_key).to_bytes()
        self.assertEqual(single_key.key, hashlib.sha3_256(wrapped + b"\x02").digest())
        self.assertNotEqual(single_key, ed25519_key)

        secp_key = secp256k1_ecdsa.PrivateKey.random().public_key()
        self.assertEqual(
            AuthenticationKey.from_public_key(secp_key),
            AuthenticationKey.from_public_key(
                asymmetric_crypto_wrapper.PublicKey(secp_key)
            ),
        )

    def test_auth_key_serialization(self):
        auth_key = AuthenticationKey(bytes(range(32)))
        ser = Serializer()
        auth_key.serialize(ser)
        serialized = ser.output()
        self.assertEqual(serialized[0], 32)
        self.assertEqual(AuthenticationKey.deserialize(Deserializer(serialized)), auth_key)
        self.assertEqual(auth_key.account_address().address, bytes(range(32)))

    def test_resource_account(self):
        base_address = AccountAddress.from_str_relaxed(self.BOB)
        expected = AccountAddress.from_str_relaxed(
            "ee89f8c763c27f9d942d496c1a0dcf32d5eacfe78416f9486b8db66155b163b0"
        )
        actual = AccountAddress.for_resource_account(base_address, b"\x0b\x00\x0b")
        self.assertEqual(actual, expected)

    def test_named_object(self):
        base_address = AccountAddress.from_str_relaxed(self.BOB)
        expected = AccountAddress.from_str_relaxed(
            "f417184602a828a3819edf5e36285ebef5e4db1ba36270be580d6fd2d7bcc321"
        )
        self.assertEqual(
            AccountAddress.for_named_object(base_address, b"bob's collection"),
            expected,
        )
        self.assertEqual(
            AccountAddress.for_named_collection(base_address, "bob's collection"),
            expected,
        )

    def test_token(self):
        base_address = AccountAddress.from_str_relaxed(self.BOB)
        expected = AccountAddress.from_str_relaxed(
            "e20d1f22a5400ba7be0f515b7cbd00edc42dbcc31acc01e31128b2b5ddb3c56e"
        )
        actual = AccountAddress.for_named_token(
            base_address, "bob's collection", "bob's token"
        )
        self.assertEqual(actual, expected)

    def test_guid_and_object_derivations_differ(self):
        base_address = AccountAddress.from_str_relaxed(self.BOB)
        guid = AccountAddress.for_guid_object(base_address, 0)
        expected = hashlib.sha3_256(
            bytes(8) + base_address.address + b"\xfd"
        ).digest()
        self.assertEqual(guid.address, expected)

        from_object = AccountAddress.for_object_from_object(base_address, guid)
        self.assertEqual(
            from_object.address,
            hashlib.sha3_256(base_address.address + guid.address + b"\xfc").digest(),
        )
        self.assertNotEqual(
            AccountAddress.for_named_object(base_address, guid.address), from_object
        )

    def test_short_and_long_strings(self):
        three = AccountAddress.from_str("0x3")
        self.assertEqual(three.to_short_string(), "0x3")
        self.assertEqual(three.to_long_string(), "0x" + "0" * 63 + "3")

        for forms in (ADDRESS_ZERO, ADDRESS_F, ADDRESS_TEN, ADDRESS_OTHER):
            address = AccountAddress(forms.raw)
            self.assertEqual(address.to_short_string(), forms.short_with_0x)
            self.assertEqual(address.to_long_string(), forms.long_with_0x)
            self.assertEqual(
                AccountAddress.from_str_relaxed(address.to_short_string()), address
            )
            self.assertEqual(
                AccountAddress.from_str_relaxed(address.to_long_string()), address
            )

    def test_to_standard_string(self):
        self.assertEqual(str(AccountAddress(ADDRESS_ZERO.raw)), "0x0")
        self.assertEqual(str(AccountAddress(ADDRESS_F.raw)), "0xf")
        self.assertEqual(str(AccountAddress(ADDRESS_TEN.raw)), ADDRESS_TEN.long_with_0x)
        self.assertEqual(
            str(AccountAddress(ADDRESS_OTHER.raw)), ADDRESS_OTHER.long_with_0x
        )

    def test_from_str_relaxed(self):
        for forms in (ADDRESS_ZERO, ADDRESS_F, ADDRESS_TEN, ADDRESS_OTHER):
            for text in (
                forms.short_with_0x,
                forms.short_without_0x,
                forms.long_with_0x,
                forms.long_without_0x,
            ):
                self.assertEqual(
                    AccountAddress.from_str_relaxed(text).address, forms.raw
                )
        self.assertEqual(AccountAddress.from_str_relaxed("0x0f").address, ADDRESS_F.raw)

    def test_from_str_strict(self):
        self.assertEqual(AccountAddress.from_str("0x0").address, ADDRESS_ZERO.raw)
        self.assertEqual(AccountAddress.from_str("0xf").address, ADDRESS_F.raw)
        self.assertEqual(
            AccountAddress.from_str(ADDRESS_TEN.long_with_0x).address, ADDRESS_TEN.raw
        )
        self.assertEqual(
            AccountAddress.from_str(ADDRESS_OTHER.long_with_0x).address,
            ADDRESS_OTHER.raw,
        )

        for text in (
            ADDRESS_ZERO.short_without_0x,
            ADDRESS_ZERO.long_without_0x,
            "0x0f",
            ADDRESS_TEN.short_with_0x,
            ADDRESS_OTHER.long_without_0x,
        ):
            with self.assertRaises(ParseAddressError):
                AccountAddress.from_str(text)

    def test_invalid_text(self):
        for text in ("", "0x", "0x" + "1" * 65, "0xzz"):
            with self.assertRaises(ParseAddressError):
                AccountAddress.from_str_relaxed(text)
        with self.assertRaises(EncodingError):
            AccountAddress(b"\x01" * 31)

    def test_serialization(self):
        address = AccountAddress(ADDRESS_OTHER.raw)
        ser = Serializer()
        address.serialize(ser)
        self.assertEqual(ser.output(), ADDRESS_OTHER.raw)
        self.assertEqual(AccountAddress.deserialize(Deserializer(ser.output())), address)


if __name__ == "__main__":
    unittest.main()
