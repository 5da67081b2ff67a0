# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Converts plain Python values into BCS encoded Move arguments.

A Move function declares its parameters as type tags; the node expects each argument
as the BCS bytes of a value of that type. :func:`convert_arg` does the conversion for a
single parameter and :func:`entry_function_from_abi` binds a whole argument list to a
function ABI fetched from a node.

Accepted inputs per declared type:

- integers (``u8`` .. ``u256``, ``i8`` .. ``i256``): ``int``, decimal ``str`` or a
  ``float`` without a fractional part; the range of the declared width is enforced
- ``bool``: ``True``/``False`` or the strings ``"true"``/``"false"``
- ``address``, ``signer`` and ``0x1::object::Object<T>``: an :class:`AccountAddress`
  or address text in relaxed form
- ``vector<u8>``: ``bytes``, a sequence of ints, or a ``str`` which is encoded as its
  UTF-8 bytes (it is *not* decoded as hex)
- ``vector<T>``: a ``list`` or ``tuple`` whose items are converted as ``T``
- ``0x1::string::String``: a ``str``
- ``0x1::option::Option<T>``: ``None`` or a value converted as ``T``

With ``compat_mode`` an ``Option<T>`` also accepts hex text holding the BCS of a
``vector<T>`` with zero or one element, which is re-encoded as the option.
"""

from __future__ import annotations

import numbers
import re
import unittest
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence, Union

from .account_address import AccountAddress
from .bcs import Deserializer, Serializer, encoder
from .errors import EncodingError, TypeTagError, ValueConversionError
from .transactions import EntryFunction, ModuleId, ViewFunctionPayload
from .type_tag import (
    GenericTag,
    ReferenceTag,
    StructTag,
    TypeTag,
    VectorTag,
)

_DECIMAL = re.compile(r"-?[0-9]+")

_INTEGER_WRITERS: Dict[int, Callable[[Serializer, int], None]] = {
    TypeTag.U8: Serializer.u8,
    TypeTag.U16: Serializer.u16,
    TypeTag.U32: Serializer.u32,
    TypeTag.U64: Serializer.u64,
    TypeTag.U128: Serializer.u128,
    TypeTag.U256: Serializer.u256,
    TypeTag.I8: Serializer.i8,
    TypeTag.I16: Serializer.i16,
    TypeTag.I32: Serializer.i32,
    TypeTag.I64: Serializer.i64,
    TypeTag.I128: Serializer.i128,
    TypeTag.I256: Serializer.i256,
}

_INTEGER_READERS: Dict[int, Callable[[Deserializer], int]] = {
    TypeTag.U8: Deserializer.u8,
    TypeTag.U16: Deserializer.u16,
    TypeTag.U32: Deserializer.u32,
    TypeTag.U64: Deserializer.u64,
    TypeTag.U128: Deserializer.u128,
    TypeTag.U256: Deserializer.u256,
    TypeTag.I8: Deserializer.i8,
    TypeTag.I16: Deserializer.i16,
    TypeTag.I32: Deserializer.i32,
    TypeTag.I64: Deserializer.i64,
    TypeTag.I128: Deserializer.i128,
    TypeTag.I256: Deserializer.i256,
}


def convert_type_tag(value: Union[TypeTag, str]) -> TypeTag:
    if isinstance(value, TypeTag):
        return value
    if isinstance(value, str):
        return TypeTag.from_str(value)
    raise TypeTagError(f"Cannot use {type(value).__name__} as a type tag")


def convert_arg(
    type_tag: TypeTag,
    value: Any,
    generics: Sequence[TypeTag] = (),
    compat_mode: bool = False,
) -> bytes:
    """Encode ``value`` as the BCS of ``type_tag``.

    ``generics`` are the concrete type arguments that ``T0``, ``T1``, ... in
    ``type_tag`` refer to.

    Raises:
        ValueConversionError: If the value does not fit the declared type.
        TypeTagError: If a generic cannot be resolved or the type is unsupported.
    """
    ser = Serializer()
    _Marshaller(generics, compat_mode).write(ser, type_tag, value)
    return ser.output()


def convert_args(
    type_tags: Sequence[TypeTag],
    values: Sequence[Any],
    generics: Sequence[TypeTag] = (),
    compat_mode: bool = False,
) -> List[bytes]:
    if len(type_tags) != len(values):
        raise TypeTagError(
            f"Expected {len(type_tags)} arguments, received {len(values)}"
        )
    return [
        convert_arg(type_tag, value, generics, compat_mode)
        for type_tag, value in zip(type_tags, values)
    ]


class _Marshaller:
    generics: Sequence[TypeTag]
    compat_mode: bool

    def __init__(self, generics: Sequence[TypeTag], compat_mode: bool):
        self.generics = generics
        self.compat_mode = compat_mode

    def resolve(self, type_tag: TypeTag) -> TypeTag:
        """Strip references and replace generics with their concrete type."""
        while True:
            inner = type_tag.value
            if isinstance(inner, ReferenceTag):
                type_tag = inner.value
            elif isinstance(inner, GenericTag):
                if inner.index >= len(self.generics):
                    raise TypeTagError(
                        f"Generic T{inner.index} out of bounds for {len(self.generics)} type arguments"
                    )
                type_tag = self.generics[inner.index]
            else:
                return type_tag

    def write(self, ser: Serializer, type_tag: TypeTag, value: Any):
        type_tag = self.resolve(type_tag)
        variant = type_tag.variant()

        if variant in _INTEGER_WRITERS:
            _INTEGER_WRITERS[variant](ser, to_integer(value, str(type_tag)))
        elif variant == TypeTag.BOOL:
            ser.bool(to_bool(value))
        elif variant in (TypeTag.ACCOUNT_ADDRESS, TypeTag.SIGNER):
            ser.struct(to_address(value))
        elif variant == TypeTag.VECTOR:
            self.write_vector(ser, type_tag.value, value)
        elif variant == TypeTag.STRUCT:
            self.write_struct(ser, type_tag.value, value)
        else:
            raise TypeTagError(f"Unsupported argument type: {type_tag}")

    def write_vector(self, ser: Serializer, tag: VectorTag, value: Any):
        if value is None:
            raise ValueConversionError(f"Cannot convert None into {tag}")

        inner = self.resolve(tag.value)
        if inner.variant() == TypeTag.U8:
            if isinstance(value, (bytes, bytearray)):
                ser.to_bytes(bytes(value))
                return
            if isinstance(value, str):
                ser.to_bytes(value.encode("utf-8"))
                return

        if not isinstance(value, (list, tuple)):
            raise ValueConversionError(
                f"Cannot convert {type(value).__name__} into {tag}"
            )
        ser.uleb128(len(value))
        for item in value:
            self.write(ser, inner, item)

    def write_struct(self, ser: Serializer, tag: StructTag, value: Any):
        if tag.is_string():
            if not isinstance(value, str):
                raise ValueConversionError(
                    f"Cannot convert {type(value).__name__} into {tag}"
                )
            ser.str(value)
        elif tag.is_object():
            ser.struct(to_address(value))
        elif tag.is_option():
            if len(tag.type_args) != 1:
                raise TypeTagError(f"Option takes exactly one type argument: {tag}")
            self.write_option(ser, tag.type_args[0], value)
        else:
            raise TypeTagError(f"Unsupported struct argument type: {tag}")

    def write_option(self, ser: Serializer, inner: TypeTag, value: Any):
        if value is None:
            ser.u8(0)
        elif self.compat_mode and isinstance(value, str):
            der = Deserializer(_hex_to_bytes(value))
            length = der.uleb128()
            if length > 1:
                raise der.fail(f"Option holds at most one value, found {length}")
            ser.u8(length)
            if length == 1:
                self.reencode(der, ser, inner)
            der.finish()
        else:
            ser.u8(1)
            self.write(ser, inner, value)

    def reencode(self, der: Deserializer, ser: Serializer, type_tag: TypeTag):
        """Copy one BCS value of ``type_tag`` from ``der`` to ``ser``, validating it."""
        type_tag = self.resolve(type_tag)
        variant = type_tag.variant()

        if variant in _INTEGER_READERS:
            _INTEGER_WRITERS[variant](ser, _INTEGER_READERS[variant](der))
        elif variant == TypeTag.BOOL:
            ser.bool(der.bool())
        elif variant == TypeTag.ACCOUNT_ADDRESS:
            ser.struct(AccountAddress.deserialize(der))
        elif variant == TypeTag.VECTOR:
            length = der.uleb128()
            ser.uleb128(length)
            for _ in range(length):
                self.reencode(der, ser, type_tag.value.value)
        elif variant == TypeTag.STRUCT and type_tag.value.is_string():
            ser.str(der.str())
        elif variant == TypeTag.STRUCT and type_tag.value.is_object():
            ser.struct(AccountAddress.deserialize(der))
        elif variant == TypeTag.STRUCT and type_tag.value.is_option():
            length = der.uleb128()
            if length > 1:
                raise der.fail(f"Option holds at most one value, found {length}")
            ser.u8(length)
            if length == 1:
                self.reencode(der, ser, type_tag.value.type_args[0])
        else:
            raise TypeTagError(f"Unsupported pre-serialized argument type: {type_tag}")


def to_integer(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValueConversionError(f"Cannot convert a bool into {name}")
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueConversionError(
                f"Cannot convert {value} into {name}, it has a fractional part"
            )
        return int(value)
    if isinstance(value, str):
        if not _DECIMAL.fullmatch(value):
            raise ValueConversionError(f"Cannot convert {value!r} into {name}")
        return int(value, 10)
    raise ValueConversionError(f"Cannot convert {type(value).__name__} into {name}")


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value == "true":
        return True
    if value == "false":
        return False
    raise ValueConversionError(f"Cannot convert {value!r} into bool")


def to_address(value: Any) -> AccountAddress:
    if isinstance(value, AccountAddress):
        return value
    if isinstance(value, str):
        return AccountAddress.from_str_relaxed(value)
    raise ValueConversionError(
        f"Cannot convert {type(value).__name__} into an address"
    )


def _hex_to_bytes(value: str) -> bytes:
    if value.startswith("0x"):
        value = value[2:]
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise EncodingError(f"Invalid hex argument: {value!r}") from e


@dataclass
class MoveFunction:
    """A function entry of a module ABI as returned by the node."""

    name: str
    visibility: str = "public"
    is_entry: bool = False
    is_view: bool = False
    generic_type_params: List[Dict[str, Any]] = field(default_factory=list)
    params: List[str] = field(default_factory=list)
    return_types: List[str] = field(default_factory=list)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> MoveFunction:
        return MoveFunction(
            name=data["name"],
            visibility=data.get("visibility", "public"),
            is_entry=data.get("is_entry", False),
            is_view=data.get("is_view", False),
            generic_type_params=list(data.get("generic_type_params", [])),
            params=list(data.get("params", [])),
            return_types=list(data.get("return", [])),
        )

    def parameter_types(self) -> List[TypeTag]:
        """Declared parameters without the leading ``signer`` / ``&signer`` ones."""
        type_tags = [TypeTag.from_str(param) for param in self.params]
        start = 0
        while start < len(type_tags) and _is_signer(type_tags[start]):
            start += 1
        return type_tags[start:]


@dataclass
class MoveModule:
    address: AccountAddress
    name: str
    exposed_functions: List[MoveFunction] = field(default_factory=list)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> MoveModule:
        return MoveModule(
            address=AccountAddress.from_str_relaxed(data["address"]),
            name=data["name"],
            exposed_functions=[
                MoveFunction.from_dict(function)
                for function in data.get("exposed_functions", [])
            ],
        )

    def function(self, name: str) -> MoveFunction:
        for function in self.exposed_functions:
            if function.name == name:
                return function
        raise TypeTagError(f"Function {name} not found in module {self.name}")


def _is_signer(type_tag: TypeTag) -> bool:
    if isinstance(type_tag.value, ReferenceTag):
        type_tag = type_tag.value.value
    return type_tag.variant() == TypeTag.SIGNER


def _bind(
    function: MoveFunction,
    params: List[TypeTag],
    type_args: Sequence[Union[TypeTag, str]],
    args: Sequence[Any],
    compat_mode: bool,
):
    if len(type_args) != len(function.generic_type_params):
        raise TypeTagError(
            f"{function.name} takes {len(function.generic_type_params)} type arguments, received {len(type_args)}"
        )
    generics = [convert_type_tag(type_arg) for type_arg in type_args]

    if len(args) != len(params):
        raise TypeTagError(
            f"{function.name} takes {len(params)} arguments, received {len(args)}"
        )
    return generics, convert_args(params, args, generics, compat_mode)


def _resolve_function(
    abi: Union[MoveFunction, MoveModule], function: str
) -> MoveFunction:
    if isinstance(abi, MoveModule):
        return abi.function(function)
    return abi


def entry_function_from_abi(
    module: Union[ModuleId, str],
    function: str,
    abi: Union[MoveFunction, MoveModule],
    type_args: Sequence[Union[TypeTag, str]],
    args: Sequence[Any],
    compat_mode: bool = False,
) -> EntryFunction:
    """Build an :class:`EntryFunction` by converting ``args`` against the ABI.

    Leading ``signer`` parameters are supplied by the transaction signers and must
    not appear in ``args``.
    """
    if isinstance(module, str):
        module = ModuleId.from_str(module)
    move_function = _resolve_function(abi, function)
    if not move_function.is_entry:
        raise TypeTagError(f"{function} is not an entry function in {module}")

    generics, byte_args = _bind(
        move_function, move_function.parameter_types(), type_args, args, compat_mode
    )
    return EntryFunction(module, function, generics, byte_args)


def view_payload_from_abi(
    module: Union[ModuleId, str],
    function: str,
    abi: Union[MoveFunction, MoveModule],
    type_args: Sequence[Union[TypeTag, str]],
    args: Sequence[Any],
    compat_mode: bool = False,
) -> ViewFunctionPayload:
    if isinstance(module, str):
        module = ModuleId.from_str(module)
    move_function = _resolve_function(abi, function)
    if not move_function.is_view:
        raise TypeTagError(f"{function} is not a view function in {module}")

    params = [TypeTag.from_str(param) for param in move_function.params]
    generics, byte_args = _bind(move_function, params, type_args, args, compat_mode)
    return ViewFunctionPayload(module, function, generics, byte_args)


class Test(unittest.TestCase):
    def test_integers(self):
        u64 = TypeTag.from_str("u64")
        self.assertEqual(convert_arg(u64, 1), bytes.fromhex("0100000000000000"))
        self.assertEqual(convert_arg(u64, "1"), encoder(1, Serializer.u64))
        self.assertEqual(convert_arg(u64, 1.0), encoder(1, Serializer.u64))
        self.assertEqual(
            convert_arg(TypeTag.from_str("u256"), str(2**255)),
            encoder(2**255, Serializer.u256),
        )
        self.assertEqual(
            convert_arg(TypeTag.from_str("i16"), "-2"), encoder(-2, Serializer.i16)
        )

        for tag, value in [
            ("u8", 256),
            ("u8", -1),
            ("u64", 1.5),
            ("u64", "0x10"),
            ("u64", "1e3"),
            ("u64", True),
            ("u64", None),
            ("i8", 128),
        ]:
            with self.subTest(tag=tag, value=value):
                with self.assertRaises(ValueConversionError):
                    convert_arg(TypeTag.from_str(tag), value)

    def test_bool(self):
        bool_tag = TypeTag.from_str("bool")
        self.assertEqual(convert_arg(bool_tag, True), b"\x01")
        self.assertEqual(convert_arg(bool_tag, "false"), b"\x00")
        with self.assertRaises(ValueConversionError):
            convert_arg(bool_tag, "yes")
        with self.assertRaises(ValueConversionError):
            convert_arg(bool_tag, 1)

    def test_address(self):
        expected = AccountAddress.from_str("0x1").address
        for tag in ("address", "signer", "&signer", "0x1::object::Object<0x1::fungible_asset::Metadata>"):
            with self.subTest(tag=tag):
                self.assertEqual(convert_arg(TypeTag.from_str(tag), "0x1"), expected)
                self.assertEqual(
                    convert_arg(TypeTag.from_str(tag), AccountAddress.from_str("0x1")),
                    expected,
                )
        with self.assertRaises(ValueConversionError):
            convert_arg(TypeTag.from_str("address"), 1)

    def test_vector_u8(self):
        tag = TypeTag.from_str("vector<u8>")
        self.assertEqual(convert_arg(tag, b"\x01\x02"), bytes.fromhex("020102"))
        self.assertEqual(convert_arg(tag, [1, 2]), bytes.fromhex("020102"))
        # Text is taken as UTF-8, never as hex.
        self.assertEqual(convert_arg(tag, "abcd"), bytes.fromhex("0461626364"))
        self.assertEqual(convert_arg(tag, "0x01"), bytes.fromhex("0430783031"))

    def test_vectors(self):
        tag = TypeTag.from_str("vector<u64>")
        ser = Serializer()
        ser.sequence([1, 2], Serializer.u64)
        self.assertEqual(convert_arg(tag, [1, "2"]), ser.output())
        self.assertEqual(convert_arg(tag, ()), b"\x00")

        nested = TypeTag.from_str("vector<vector<bool>>")
        self.assertEqual(
            convert_arg(nested, [[True], []]), bytes.fromhex("02010100")
        )

        with self.assertRaises(ValueConversionError):
            convert_arg(tag, None)
        with self.assertRaises(ValueConversionError):
            convert_arg(tag, "12")

    def test_string(self):
        tag = TypeTag(StructTag.string())
        self.assertEqual(convert_arg(tag, "abcd"), bytes.fromhex("0461626364"))
        with self.assertRaises(ValueConversionError):
            convert_arg(tag, b"abcd")

    def test_option(self):
        tag = TypeTag(StructTag.option(TypeTag.from_str("u8")))
        self.assertEqual(convert_arg(tag, None), b"\x00")
        self.assertEqual(convert_arg(tag, 5), b"\x01\x05")
        with self.assertRaises(ValueConversionError):
            convert_arg(tag, "0x0105")

    def test_option_compat_mode(self):
        tag = TypeTag(StructTag.option(TypeTag.from_str("u8")))
        self.assertEqual(convert_arg(tag, "0x0105", compat_mode=True), b"\x01\x05")
        self.assertEqual(convert_arg(tag, "00", compat_mode=True), b"\x00")
        self.assertEqual(convert_arg(tag, 7, compat_mode=True), b"\x01\x07")

        nested = TypeTag.from_str("0x1::option::Option<vector<0x1::string::String>>")
        self.assertEqual(
            convert_arg(nested, "0x01010161", compat_mode=True),
            bytes.fromhex("01010161"),
        )

        with self.assertRaises(EncodingError):
            convert_arg(tag, "0x020102", compat_mode=True)
        with self.assertRaises(EncodingError):
            convert_arg(tag, "0x01", compat_mode=True)
        with self.assertRaises(EncodingError):
            convert_arg(tag, "0xzz", compat_mode=True)

    def test_generics(self):
        tag = TypeTag.from_str("vector<T0>")
        self.assertEqual(
            convert_arg(tag, [1], [TypeTag.from_str("u16")]),
            bytes.fromhex("010100"),
        )
        self.assertEqual(
            convert_arg(TypeTag.from_str("&T1"), 3, [TypeTag.from_str("u8"), TypeTag.from_str("u8")]),
            b"\x03",
        )
        with self.assertRaises(TypeTagError):
            convert_arg(TypeTag.from_str("T1"), 1, [TypeTag.from_str("u8")])

    def test_unsupported_struct(self):
        with self.assertRaises(TypeTagError):
            convert_arg(TypeTag.from_str("0x1::coin::Coin<0x1::aptos_coin::AptosCoin>"), 1)

    def transfer_abi(self) -> MoveModule:
        return MoveModule.from_dict(
            {
                "address": "0x1",
                "name": "coin",
                "exposed_functions": [
                    {
                        "name": "transfer",
                        "visibility": "public",
                        "is_entry": True,
                        "is_view": False,
                        "generic_type_params": [{"constraints": []}],
                        "params": ["&signer", "address", "u64"],
                        "return": [],
                    },
                    {
                        "name": "balance",
                        "visibility": "public",
                        "is_entry": False,
                        "is_view": True,
                        "generic_type_params": [{"constraints": []}],
                        "params": ["address"],
                        "return": ["u64"],
                    },
                ],
            }
        )

    def test_entry_function_from_abi(self):
        entry_function = entry_function_from_abi(
            "0x1::coin",
            "transfer",
            self.transfer_abi(),
            ["0x1::aptos_coin::AptosCoin"],
            ["0x2", "1000"],
        )
        expected = EntryFunction(
            ModuleId.from_str("0x1::coin"),
            "transfer",
            [TypeTag.from_str("0x1::aptos_coin::AptosCoin")],
            [
                AccountAddress.from_str("0x2").address,
                encoder(1000, Serializer.u64),
            ],
        )
        self.assertEqual(entry_function, expected)

    def test_entry_function_arity(self):
        abi = self.transfer_abi()
        with self.assertRaises(TypeTagError):
            entry_function_from_abi("0x1::coin", "transfer", abi, [], ["0x2", 1])
        with self.assertRaises(TypeTagError):
            entry_function_from_abi(
                "0x1::coin", "transfer", abi, ["0x1::aptos_coin::AptosCoin"], ["0x2"]
            )
        with self.assertRaises(TypeTagError):
            entry_function_from_abi(
                "0x1::coin", "balance", abi, ["0x1::aptos_coin::AptosCoin"], ["0x2"]
            )
        with self.assertRaises(TypeTagError):
            entry_function_from_abi("0x1::coin", "missing", abi, [], [])

    def test_only_leading_signers_are_stripped(self):
        function = MoveFunction.from_dict(
            {
                "name": "f",
                "is_entry": True,
                "params": ["signer", "&signer", "u8", "signer"],
            }
        )
        self.assertEqual(
            [str(tag) for tag in function.parameter_types()], ["u8", "signer"]
        )

    def test_view_payload_from_abi(self):
        payload = view_payload_from_abi(
            "0x1::coin",
            "balance",
            self.transfer_abi(),
            [TypeTag.from_str("0x1::aptos_coin::AptosCoin")],
            ["0x1"],
        )
        self.assertEqual(payload.args, [AccountAddress.from_str("0x1").address])
        with self.assertRaises(TypeTagError):
            view_payload_from_abi(
                "0x1::coin",
                "transfer",
                self.transfer_abi(),
                ["0x1::aptos_coin::AptosCoin"],
                ["0x2", 1],
            )


if __name__ == "__main__":
    unittest.main()
