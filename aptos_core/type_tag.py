# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Move type tags: the runtime description of a Move type.

A :class:`TypeTag` wraps one variant. On the wire it is a ULEB128 discriminant
followed by the variant's payload; primitives have no payload, vectors and
references carry their element tag, structs carry address, module, name and type
parameters, and generics carry their u32 parameter index.

Text form follows Move syntax and is accepted by :meth:`TypeTag.from_str`::

    u64
    vector<0x1::string::String>
    &signer
    T0
    0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>
"""

from __future__ import annotations

import random
import re
import typing
import unittest
from typing import List, Optional

from .account_address import AccountAddress, ParseAddressError
from .bcs import Deserializable, Deserializer, Serializable, Serializer
from .errors import EncodingError, TypeTagError


class TypeTag(Deserializable, Serializable):
    """TypeTag represents a primitive, vector, reference, generic or struct type."""

    BOOL: int = 0
    U8: int = 1
    U64: int = 2
    U128: int = 3
    ACCOUNT_ADDRESS: int = 4
    SIGNER: int = 5
    VECTOR: int = 6
    STRUCT: int = 7
    U16: int = 8
    U32: int = 9
    U256: int = 10
    I8: int = 11
    I16: int = 12
    I32: int = 13
    I64: int = 14
    I128: int = 15
    I256: int = 16
    GENERIC: int = 254
    REFERENCE: int = 255

    value: typing.Any

    def __init__(self, value: typing.Any):
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypeTag):
            return NotImplemented
        return (
            self.value.variant() == other.value.variant() and self.value == other.value
        )

    def __str__(self):
        return self.value.__str__()

    def __repr__(self):
        return self.__str__()

    def variant(self) -> int:
        return self.value.variant()

    @staticmethod
    def from_str(type_tag: str) -> TypeTag:
        """Parse Move type syntax.

        Raises:
            TypeTagError: On empty input, unknown names, primitives given type
                parameters, unbalanced angle brackets, trailing tokens, or a
                struct that is not ``address::module::name``.
        """
        return _TypeTagParser(type_tag).parse()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> TypeTag:
        variant = deserializer.uleb128()
        tag_class = _VARIANTS.get(variant)
        if tag_class is None:
            raise deserializer.fail(f"Unknown TypeTag variant: {variant}")
        return TypeTag(tag_class.deserialize(deserializer))

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.value.variant())
        serializer.struct(self.value)


class PrimitiveTag(Deserializable, Serializable):
    """Payload-free tag; subclasses only name themselves."""

    NAME: str = ""
    VARIANT: int = -1

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PrimitiveTag):
            return NotImplemented
        return self.VARIANT == other.VARIANT

    def __str__(self):
        return self.NAME

    def variant(self):
        return self.VARIANT

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> PrimitiveTag:
        return cls()

    def serialize(self, serializer: Serializer):
        pass


class BoolTag(PrimitiveTag):
    NAME = "bool"
    VARIANT = TypeTag.BOOL


class U8Tag(PrimitiveTag):
    NAME = "u8"
    VARIANT = TypeTag.U8


class U16Tag(PrimitiveTag):
    NAME = "u16"
    VARIANT = TypeTag.U16


class U32Tag(PrimitiveTag):
    NAME = "u32"
    VARIANT = TypeTag.U32


class U64Tag(PrimitiveTag):
    NAME = "u64"
    VARIANT = TypeTag.U64


class U128Tag(PrimitiveTag):
    NAME = "u128"
    VARIANT = TypeTag.U128


class U256Tag(PrimitiveTag):
    NAME = "u256"
    VARIANT = TypeTag.U256


class I8Tag(PrimitiveTag):
    NAME = "i8"
    VARIANT = TypeTag.I8


class I16Tag(PrimitiveTag):
    NAME = "i16"
    VARIANT = TypeTag.I16


class I32Tag(PrimitiveTag):
    NAME = "i32"
    VARIANT = TypeTag.I32


class I64Tag(PrimitiveTag):
    NAME = "i64"
    VARIANT = TypeTag.I64


class I128Tag(PrimitiveTag):
    NAME = "i128"
    VARIANT = TypeTag.I128


class I256Tag(PrimitiveTag):
    NAME = "i256"
    VARIANT = TypeTag.I256


class AccountAddressTag(PrimitiveTag):
    NAME = "address"
    VARIANT = TypeTag.ACCOUNT_ADDRESS


class SignerTag(PrimitiveTag):
    NAME = "signer"
    VARIANT = TypeTag.SIGNER


class VectorTag(Deserializable, Serializable):
    value: TypeTag

    def __init__(self, value: TypeTag):
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VectorTag):
            return NotImplemented
        return self.value == other.value

    def __str__(self):
        return f"vector<{self.value}>"

    def variant(self):
        return TypeTag.VECTOR

    @staticmethod
    def deserialize(deserializer: Deserializer) -> VectorTag:
        return VectorTag(TypeTag.deserialize(deserializer))

    def serialize(self, serializer: Serializer):
        serializer.struct(self.value)


class ReferenceTag(Deserializable, Serializable):
    """``&T``; only meaningful in function signatures."""

    value: TypeTag

    def __init__(self, value: TypeTag):
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReferenceTag):
            return NotImplemented
        return self.value == other.value

    def __str__(self):
        return f"&{self.value}"

    def variant(self):
        return TypeTag.REFERENCE

    @staticmethod
    def deserialize(deserializer: Deserializer) -> ReferenceTag:
        return ReferenceTag(TypeTag.deserialize(deserializer))

    def serialize(self, serializer: Serializer):
        serializer.struct(self.value)


class GenericTag(Deserializable, Serializable):
    """``T<index>``, a placeholder for the function's index-th type argument."""

    index: int

    def __init__(self, index: int):
        self.index = index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GenericTag):
            return NotImplemented
        return self.index == other.index

    def __str__(self):
        return f"T{self.index}"

    def variant(self):
        return TypeTag.GENERIC

    @staticmethod
    def deserialize(deserializer: Deserializer) -> GenericTag:
        return GenericTag(deserializer.u32())

    def serialize(self, serializer: Serializer):
        serializer.u32(self.index)


class StructTag(Deserializable, Serializable):
    address: AccountAddress
    module: str
    name: str
    type_args: List[TypeTag]

    def __init__(self, address, module, name, type_args):
        self.address = address
        self.module = module
        self.name = name
        self.type_args = type_args

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StructTag):
            return NotImplemented
        return (
            self.address == other.address
            and self.module == other.module
            and self.name == other.name
            and self.type_args == other.type_args
        )

    def __str__(self) -> str:
        value = f"{self.address}::{self.module}::{self.name}"
        if len(self.type_args) > 0:
            value += f"<{', '.join(str(type_arg) for type_arg in self.type_args)}>"
        return value

    @staticmethod
    def from_str(type_tag: str) -> StructTag:
        tag = TypeTag.from_str(type_tag)
        if not isinstance(tag.value, StructTag):
            raise TypeTagError(f"Not a struct type: {type_tag}")
        return tag.value

    @staticmethod
    def string() -> StructTag:
        return StructTag(AccountAddress.from_str("0x1"), "string", "String", [])

    @staticmethod
    def option(inner: TypeTag) -> StructTag:
        return StructTag(AccountAddress.from_str("0x1"), "option", "Option", [inner])

    @staticmethod
    def object(inner: TypeTag) -> StructTag:
        return StructTag(AccountAddress.from_str("0x1"), "object", "Object", [inner])

    def _is_framework(self, module: str, name: str) -> bool:
        return (
            self.address == AccountAddress.from_str("0x1")
            and self.module == module
            and self.name == name
        )

    def is_string(self) -> bool:
        return self._is_framework("string", "String")

    def is_object(self) -> bool:
        return self._is_framework("object", "Object")

    def is_option(self) -> bool:
        return self._is_framework("option", "Option")

    def variant(self):
        return TypeTag.STRUCT

    @staticmethod
    def deserialize(deserializer: Deserializer) -> StructTag:
        address = deserializer.struct(AccountAddress)
        module = deserializer.str()
        name = deserializer.str()
        type_args = deserializer.sequence(TypeTag.deserialize)
        return StructTag(address, module, name, type_args)

    def serialize(self, serializer: Serializer):
        self.address.serialize(serializer)
        serializer.str(self.module)
        serializer.str(self.name)
        serializer.sequence(self.type_args, Serializer.struct)


_VARIANTS: typing.Dict[int, typing.Any] = {
    TypeTag.BOOL: BoolTag,
    TypeTag.U8: U8Tag,
    TypeTag.U16: U16Tag,
    TypeTag.U32: U32Tag,
    TypeTag.U64: U64Tag,
    TypeTag.U128: U128Tag,
    TypeTag.U256: U256Tag,
    TypeTag.I8: I8Tag,
    TypeTag.I16: I16Tag,
    TypeTag.I32: I32Tag,
    TypeTag.I64: I64Tag,
    TypeTag.I128: I128Tag,
    TypeTag.I256: I256Tag,
    TypeTag.ACCOUNT_ADDRESS: AccountAddressTag,
    TypeTag.SIGNER: SignerTag,
    TypeTag.VECTOR: VectorTag,
    TypeTag.STRUCT: StructTag,
    TypeTag.GENERIC: GenericTag,
    TypeTag.REFERENCE: ReferenceTag,
}

_PRIMITIVES: typing.Dict[str, typing.Any] = {
    tag_class.NAME: tag_class
    for tag_class in _VARIANTS.values()
    if issubclass(tag_class, PrimitiveTag)
}

APTOS_COIN = TypeTag(
    StructTag(AccountAddress.from_str("0x1"), "aptos_coin", "AptosCoin", [])
)
STRING = TypeTag(StructTag.string())

_TOKEN = re.compile(r"\s*(::|<|>|,|&|[A-Za-z_0-9]+)")
_IDENTIFIER = re.compile(r"[A-Za-z_0-9]+")
_GENERIC = re.compile(r"T([0-9]+)")


class _TypeTagParser:
    """Recursive descent over the token stream of a Move type string."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = self._tokenize(text)
        self.position = 0

    @staticmethod
    def _tokenize(text: str) -> List[str]:
        tokens = []
        index = 0
        while index < len(text):
            if text[index:].strip() == "":
                break
            match = _TOKEN.match(text, index)
            if match is None:
                raise TypeTagError(
                    f"Unexpected character {text[index:].lstrip()[0]!r} in {text!r}"
                )
            tokens.append(match.group(1))
            index = match.end()
        return tokens

    def _peek(self) -> Optional[str]:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def _next(self) -> str:
        token = self._peek()
        if token is None:
            raise TypeTagError(f"Unexpected end of type tag: {self.text!r}")
        self.position += 1
        return token

    def _expect(self, expected: str):
        token = self._next()
        if token != expected:
            raise TypeTagError(
                f"Expected {expected!r} but found {token!r} in {self.text!r}"
            )

    def parse(self) -> TypeTag:
        if not self.tokens:
            raise TypeTagError("Type tag is empty")
        tag = self._type()
        if self._peek() is not None:
            raise TypeTagError(
                f"Unexpected {self._peek()!r} after type in {self.text!r}"
            )
        return tag

    def _type_params(self) -> List[TypeTag]:
        if self._peek() != "<":
            return []
        self._next()
        params = [self._type()]
        while self._peek() == ",":
            self._next()
            params.append(self._type())
        self._expect(">")
        return params

    def _type(self) -> TypeTag:
        token = self._next()

        if token == "&":
            return TypeTag(ReferenceTag(self._type()))
        if _IDENTIFIER.fullmatch(token) is None:
            raise TypeTagError(f"Unexpected {token!r} in {self.text!r}")

        if self._peek() == "::":
            return TypeTag(self._struct(token))

        if token in _PRIMITIVES:
            if self._peek() == "<":
                raise TypeTagError(f"{token} cannot have type parameters")
            return TypeTag(_PRIMITIVES[token]())

        if token == "vector":
            params = self._type_params()
            if len(params) != 1:
                raise TypeTagError(
                    f"vector expects 1 type parameter, got {len(params)}"
                )
            return TypeTag(VectorTag(params[0]))

        generic = _GENERIC.fullmatch(token)
        if generic is not None:
            if self._peek() == "<":
                raise TypeTagError(f"{token} cannot have type parameters")
            return TypeTag(GenericTag(int(generic.group(1))))

        raise TypeTagError(f"Unknown type {token!r} in {self.text!r}")

    def _struct(self, address: str) -> StructTag:
        try:
            self._expect("::")
            module = self._next()
            self._expect("::")
            name = self._next()
        except TypeTagError:
            raise TypeTagError(f"Invalid struct type: {self.text!r}")
        for part in (module, name):
            if _IDENTIFIER.fullmatch(part) is None:
                raise TypeTagError(f"Invalid struct type: {self.text!r}")

        try:
            struct_address = AccountAddress.from_str_relaxed(address)
        except ParseAddressError as e:
            raise TypeTagError(f"Invalid struct address {address!r}: {e}")

        return StructTag(struct_address, module, name, self._type_params())


class Test(unittest.TestCase):
    def test_nested_structs(self):
        l0 = "0x0::l0::L0"
        l10 = "0x1::l10::L10"
        l20 = "0x2::l20::L20"
        l11 = "0x1::l11::L11"
        composite = f"{l0}<{l10}<{l20}>, {l11}>"
        derived = StructTag.from_str(composite)
        self.assertEqual(composite, f"{derived}")
        in_bytes = derived.to_bytes()
        from_bytes = StructTag.from_bytes(in_bytes)
        self.assertEqual(derived, from_bytes)

    def test_coin_store(self):
        text = "0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>"
        tag = TypeTag.from_str(text)
        self.assertEqual(str(tag), text)
        self.assertEqual(tag.value.type_args, [APTOS_COIN])

    def test_round_trip_text(self):
        for text in [
            "bool",
            "u8",
            "u16",
            "u32",
            "u64",
            "u128",
            "u256",
            "i8",
            "i16",
            "i32",
            "i64",
            "i128",
            "i256",
            "address",
            "signer",
            "&signer",
            "T0",
            "T12",
            "vector<u8>",
            "vector<vector<0x1::string::String>>",
            "&vector<T1>",
            "0x1::object::Object<0x1::fungible_asset::Metadata>",
            "0x1::pair::Pair<u8, vector<address>>",
            "0x" + "ab" * 32 + "::m::S",
        ]:
            tag = TypeTag.from_str(text)
            self.assertEqual(str(tag), text)
            self.assertEqual(TypeTag.from_str(str(tag)), tag)
            self.assertEqual(TypeTag.from_bytes(tag.to_bytes()), tag)

    def test_round_trip_random(self):
        rng = random.Random(7)
        names = ["coin", "Coin", "object", "Object", "pool_v2", "Pair"]

        def random_tag(depth: int) -> TypeTag:
            choice = rng.randrange(4) if depth > 0 else 0
            if choice == 0:
                return TypeTag(rng.choice(list(_PRIMITIVES.values()))())
            if choice == 1:
                return TypeTag(GenericTag(rng.randint(0, 2**32 - 1)))
            if choice == 2:
                return TypeTag(VectorTag(random_tag(depth - 1)))
            if rng.random() < 0.5:
                address = AccountAddress(bytes(31) + bytes([rng.randint(0, 15)]))
            else:
                address = AccountAddress(rng.getrandbits(256).to_bytes(32, "big"))
            type_args = [random_tag(depth - 1) for _ in range(rng.randint(0, 3))]
            return TypeTag(
                StructTag(address, rng.choice(names), rng.choice(names), type_args)
            )

        for _ in range(300):
            tag = random_tag(rng.randint(0, 4))
            if rng.random() < 0.2:
                tag = TypeTag(ReferenceTag(tag))
            with self.subTest(tag=str(tag)):
                self.assertEqual(TypeTag.from_str(str(tag)), tag)
                self.assertEqual(TypeTag.from_bytes(tag.to_bytes()), tag)

    def test_whitespace(self):
        tag = TypeTag.from_str("  0x1::pair::Pair< u8 ,vector< bool > >  ")
        self.assertEqual(str(tag), "0x1::pair::Pair<u8, vector<bool>>")

    def test_discriminants(self):
        self.assertEqual(TypeTag.from_str("bool").to_bytes(), b"\x00")
        self.assertEqual(TypeTag.from_str("u64").to_bytes(), b"\x02")
        self.assertEqual(TypeTag.from_str("u16").to_bytes(), b"\x08")
        self.assertEqual(TypeTag.from_str("i8").to_bytes(), b"\x0b")
        self.assertEqual(TypeTag.from_str("i256").to_bytes(), b"\x10")
        self.assertEqual(TypeTag.from_str("vector<u8>").to_bytes(), b"\x06\x01")
        self.assertEqual(TypeTag.from_str("T3").to_bytes(), b"\xfe\x01\x03\x00\x00\x00")
        self.assertEqual(TypeTag.from_str("&address").to_bytes(), b"\xff\x01\x04")
        self.assertEqual(
            STRING.to_bytes(),
            b"\x07" + b"\x00" * 31 + b"\x01" + b"\x06string" + b"\x06String" + b"\x00",
        )

    def test_unknown_variant(self):
        with self.assertRaises(EncodingError):
            TypeTag.from_bytes(b"\x11")

    def test_parse_errors(self):
        for text in [
            "",
            "   ",
            "u8<u8>",
            "T0<u8>",
            "vector",
            "vector<u8",
            "vector<u8, u16>",
            "u8>",
            "u8 u16",
            "0x1::coin",
            "0x1::coin::",
            "0xzz::coin::Coin",
            "0x1::coin::Coin<>",
            "0x1::coin::Coin<u8,>",
            "float",
            "u8$",
        ]:
            with self.assertRaises(TypeTagError, msg=text):
                TypeTag.from_str(text)

    def test_struct_helpers(self):
        self.assertTrue(StructTag.from_str("0x1::string::String").is_string())
        self.assertTrue(
            StructTag.from_str("0x1::object::Object<0x1::object::ObjectCore>").is_object()
        )
        self.assertTrue(StructTag.option(TypeTag(U64Tag())).is_option())
        self.assertFalse(StructTag.from_str("0x2::string::String").is_string())
        with self.assertRaises(TypeTagError):
            StructTag.from_str("u8")


if __name__ == "__main__":
    unittest.main()
