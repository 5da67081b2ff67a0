# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Binary Canonical Serialization (BCS) codec.

BCS is the deterministic byte format used by Aptos for transactions, signing
messages and on-chain values. Every value has exactly one encoding, so two
independent implementations produce identical bytes for the same data.

Learn more at https://github.com/diem/bcs

Encodings implemented here:

- fixed-width integers (u8..u256, i8..i256) in little-endian, signed values in
  two's complement
- ``bool`` as a single byte that must be 0 or 1
- ULEB128 for lengths and enum discriminants
- byte arrays and strings as ULEB128 length followed by the raw bytes
- sequences as ULEB128 length followed by each element
- options as a 0/1 tag byte followed by the value when present
- maps as a sequence of key/value pairs sorted by encoded key

Examples:
    Round-tripping a value::

        from aptos_core.bcs import Serializer, Deserializer

        ser = Serializer()
        ser.str("hello")
        ser.option(5, Serializer.u64)
        data = ser.output()

        der = Deserializer(data)
        der.str()                      # "hello"
        der.option(Deserializer.u64)   # 5

    Structs plug in through ``serialize`` / ``deserialize``::

        class Coin:
            def __init__(self, amount: int):
                self.amount = amount

            def serialize(self, serializer: Serializer):
                serializer.u64(self.amount)

            @staticmethod
            def deserialize(deserializer: Deserializer) -> "Coin":
                return Coin(deserializer.u64())
"""

from __future__ import annotations

import io
import random
import typing
import unittest
from typing import Dict, List, Optional

from typing_extensions import Protocol

from .errors import EncodingError, ValueConversionError

MAX_U8 = 2**8 - 1
MAX_U16 = 2**16 - 1
MAX_U32 = 2**32 - 1
MAX_U64 = 2**64 - 1
MAX_U128 = 2**128 - 1
MAX_U256 = 2**256 - 1

MIN_I8, MAX_I8 = -(2**7), 2**7 - 1
MIN_I16, MAX_I16 = -(2**15), 2**15 - 1
MIN_I32, MAX_I32 = -(2**31), 2**31 - 1
MIN_I64, MAX_I64 = -(2**63), 2**63 - 1
MIN_I128, MAX_I128 = -(2**127), 2**127 - 1
MIN_I256, MAX_I256 = -(2**255), 2**255 - 1

# Largest shift a ULEB128 group may start at and still land inside 64 bits.
MAX_ULEB128_SHIFT = 63


class Deserializable(Protocol):
    """Objects that can be rebuilt from a BCS byte stream.

    Implementers provide a static ``deserialize``; ``from_bytes`` is inherited
    and additionally rejects input with bytes left over after decoding.
    """

    @classmethod
    def from_bytes(cls, indata: bytes) -> Deserializable:
        """Decode a complete value from ``indata``.

        Raises:
            EncodingError: If the bytes are malformed or not fully consumed.
        """
        der = Deserializer(indata)
        value = der.struct(cls)
        der.finish()
        return value

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Deserializable:
        ...


class Serializable(Protocol):
    """Objects that can be written to a BCS byte stream."""

    def to_bytes(self) -> bytes:
        """Encode this object into a fresh buffer and return the bytes."""
        ser = Serializer()
        ser.struct(self)
        return ser.output()

    def serialize(self, serializer: Serializer):
        ...


class Deserializer:
    """Reads BCS values from a byte buffer.

    Errors are sticky. The first failure is recorded and raised as an
    :class:`EncodingError`; if the caller catches it and keeps reading, every
    later read returns the zero value of its type without consuming input, and
    :meth:`error` keeps reporting the first failure. A single deserializer must
    not be shared between threads.

    Attributes:
        _input: Stream over the input bytes.
        _length: Total number of input bytes.
        _error: First error encountered, if any.

    Examples:
        Reading collections::

            der = Deserializer(data)
            names = der.sequence(Deserializer.str)
            balances = der.map(Deserializer.str, Deserializer.u64)
    """

    _input: io.BytesIO
    _length: int
    _error: Optional[Exception]

    def __init__(self, data: bytes):
        self._length = len(data)
        self._input = io.BytesIO(data)
        self._error = None

    def remaining(self) -> int:
        """Number of bytes not yet consumed."""
        return self._length - self._input.tell()

    def error(self) -> Optional[Exception]:
        """The first error recorded on this deserializer, or None."""
        return self._error

    def set_error(self, error: Exception) -> Exception:
        """Record ``error`` unless an earlier one exists; return the kept error.

        Struct decoders use this to report semantic failures (for example an
        unknown enum discriminant) through the same sticky channel as the
        primitive readers.
        """
        if self._error is None:
            self._error = error
        return self._error

    def fail(self, message: str) -> EncodingError:
        """Build an :class:`EncodingError`, record it and hand it back for raising.

        Usage: ``raise deserializer.fail("Invalid variant")``.
        """
        error = EncodingError(message)
        self.set_error(error)
        return error

    def finish(self):
        """Assert that the whole input has been consumed.

        Raises:
            EncodingError: If bytes remain after decoding.
        """
        if self._error is None and self.remaining() != 0:
            raise self.fail(f"Unexpected trailing bytes: {self.remaining()}")

    def bool(self) -> bool:
        """Read a boolean; only the bytes 0 and 1 are valid."""
        value = self._read_int(1)
        if value == 0:
            return False
        elif value == 1:
            return True
        else:
            raise self.fail(f"Unexpected boolean value: {value}")

    def to_bytes(self) -> bytes:
        """Read a ULEB128 length followed by that many raw bytes."""
        return self._read(self._read_length())

    def fixed_bytes(self, length: int) -> bytes:
        """Read exactly ``length`` raw bytes with no length prefix."""
        return self._read(length)

    def map(
        self,
        key_decoder: typing.Callable[[Deserializer], typing.Any],
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> Dict[typing.Any, typing.Any]:
        """Read a length-prefixed map of key/value pairs.

        Examples:
            Reading a map of string keys to u32 values::

                mapping = der.map(Deserializer.str, Deserializer.u32)
        """
        length = self._read_length()
        values: Dict = {}
        for _ in range(length):
            key = key_decoder(self)
            value = value_decoder(self)
            values[key] = value
        return values

    def option(
        self,
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> typing.Any:
        """Read an optional value: a 0/1 tag byte, then the value if the tag is 1.

        Returns:
            The decoded value, or None when the tag is 0.
        """
        tag = self._read_int(1)
        if tag == 0:
            return None
        elif tag == 1:
            return value_decoder(self)
        else:
            raise self.fail(f"Unexpected option tag: {tag}")

    def sequence(
        self,
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> List[typing.Any]:
        """Read a ULEB128 length followed by that many elements.

        Examples:
            Reading a sequence of addresses::

                signers = der.sequence(AccountAddress.deserialize)
        """
        length = self._read_length()
        values: List = []
        for _ in range(length):
            values.append(value_decoder(self))
        return values

    def str(self) -> str:
        """Read length-prefixed bytes and decode them as UTF-8."""
        raw = self.to_bytes()
        try:
            return raw.decode()
        except UnicodeDecodeError as e:
            raise self.fail(f"Invalid UTF-8 string: {e}")

    def struct(self, struct: typing.Any) -> typing.Any:
        """Delegate to ``struct.deserialize``."""
        return struct.deserialize(self)

    def variant_index(self) -> int:
        """Read an enum discriminant (ULEB128 encoded)."""
        return self.uleb128()

    def u8(self) -> int:
        return self._read_int(1)

    def u16(self) -> int:
        return self._read_int(2)

    def u32(self) -> int:
        return self._read_int(4)

    def u64(self) -> int:
        return self._read_int(8)

    def u128(self) -> int:
        return self._read_int(16)

    def u256(self) -> int:
        return self._read_int(32)

    def i8(self) -> int:
        return self._read_int(1, signed=True)

    def i16(self) -> int:
        return self._read_int(2, signed=True)

    def i32(self) -> int:
        return self._read_int(4, signed=True)

    def i64(self) -> int:
        return self._read_int(8, signed=True)

    def i128(self) -> int:
        return self._read_int(16, signed=True)

    def i256(self) -> int:
        return self._read_int(32, signed=True)

    def uleb128(self) -> int:
        """Read a ULEB128 encoded integer.

        Each byte carries 7 bits of payload, least significant group first; the
        high bit marks that another byte follows.

        Raises:
            EncodingError: If a group would start beyond bit 63, if the value does
                not fit in a u64, or if the input ends mid-value.
        """
        value = 0
        shift = 0

        while True:
            if self._error is not None:
                return 0
            byte = self._read_int(1)
            value |= (byte & 0x7F) << shift
            if byte & 0x80 == 0:
                break
            shift += 7
            if shift > MAX_ULEB128_SHIFT:
                raise self.fail("Overflow while parsing uleb128-encoded value")

        if value > MAX_U64:
            raise self.fail(f"Unexpectedly large uleb128 value: {value}")

        return value

    def _read_length(self) -> int:
        length = self.uleb128()
        if length > MAX_U32:
            raise self.fail(f"Length {length} exceeds u32 range")
        return length

    def _read(self, length: int) -> bytes:
        """Read ``length`` bytes, or zero bytes once an error has been recorded."""
        if self._error is not None:
            return b"\x00" * length
        value = self._input.read(length)
        if value is None or len(value) < length:
            actual_length = 0 if value is None else len(value)
            raise self.fail(
                f"Unexpected end of input. Requested: {length}, found: {actual_length}"
            )
        return value

    def _read_int(self, length: int, signed: bool = False) -> int:
        if self._error is not None:
            return 0
        return int.from_bytes(self._read(length), byteorder="little", signed=signed)


class Serializer:
    """Writes BCS values into an in-memory buffer.

    Every integer writer checks the range of its width and raises
    :class:`ValueConversionError` for values that do not fit, including negative
    values passed to unsigned writers. A serializer must not be shared between
    threads; create a new one per encoding.

    Examples:
        Basic usage::

            ser = Serializer()
            ser.bool(True)
            ser.sequence(["a", "b"], Serializer.str)
            data = ser.output()
    """

    _output: io.BytesIO

    def __init__(self):
        self._output = io.BytesIO()

    def output(self) -> bytes:
        """Return all bytes written so far."""
        return self._output.getvalue()

    def bool(self, value: bool):
        if not isinstance(value, bool):
            raise ValueConversionError(f"Cannot encode {value!r} as bool")
        self._write_int(int(value), 1)

    def to_bytes(self, value: bytes):
        """Write a ULEB128 length followed by the raw bytes."""
        self.uleb128(len(value))
        self._output.write(value)

    def fixed_bytes(self, value):
        """Write raw bytes with no length prefix."""
        self._output.write(value)

    def map(
        self,
        values: typing.Dict[typing.Any, typing.Any],
        key_encoder: typing.Callable[[Serializer, typing.Any], None],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        """Write a map, ordering entries by the BCS encoding of their keys.

        Examples:
            Serializing a map of string keys to u32 values::

                ser.map({"a": 1, "b": 2}, Serializer.str, Serializer.u32)
        """
        encoded_values = []
        for key, value in values.items():
            encoded_values.append(
                (encoder(key, key_encoder), encoder(value, value_encoder))
            )
        encoded_values.sort(key=lambda item: item[0])

        self.uleb128(len(encoded_values))
        for key, value in encoded_values:
            self.fixed_bytes(key)
            self.fixed_bytes(value)

    def option(
        self,
        value: typing.Any,
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        """Write ``0`` for None, otherwise ``1`` followed by the encoded value."""
        if value is None:
            self.u8(0)
        else:
            self.u8(1)
            value_encoder(self, value)

    @staticmethod
    def sequence_serializer(
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        """Bind ``value_encoder`` into a reusable ``(serializer, values)`` writer.

        Useful where a sequence is itself an element, e.g. ``vector<vector<u8>>``::

            ser.sequence(rows, Serializer.sequence_serializer(Serializer.u8))
        """
        return lambda self, values: self.sequence(values, value_encoder)

    def sequence(
        self,
        values: typing.Sequence[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        """Write a ULEB128 length followed by each element."""
        self.uleb128(len(values))
        for value in values:
            value_encoder(self, value)

    def str(self, value: str):
        self.to_bytes(value.encode())

    def struct(self, value: typing.Any):
        """Delegate to ``value.serialize``."""
        value.serialize(self)

    def variant_index(self, value: int):
        """Write an enum discriminant (ULEB128 encoded)."""
        self.uleb128(value)

    def u8(self, value: int):
        self._write_checked(value, 0, MAX_U8, 1, "u8")

    def u16(self, value: int):
        self._write_checked(value, 0, MAX_U16, 2, "u16")

    def u32(self, value: int):
        self._write_checked(value, 0, MAX_U32, 4, "u32")

    def u64(self, value: int):
        self._write_checked(value, 0, MAX_U64, 8, "u64")

    def u128(self, value: int):
        self._write_checked(value, 0, MAX_U128, 16, "u128")

    def u256(self, value: int):
        self._write_checked(value, 0, MAX_U256, 32, "u256")

    def i8(self, value: int):
        self._write_checked(value, MIN_I8, MAX_I8, 1, "i8", signed=True)

    def i16(self, value: int):
        self._write_checked(value, MIN_I16, MAX_I16, 2, "i16", signed=True)

    def i32(self, value: int):
        self._write_checked(value, MIN_I32, MAX_I32, 4, "i32", signed=True)

    def i64(self, value: int):
        self._write_checked(value, MIN_I64, MAX_I64, 8, "i64", signed=True)

    def i128(self, value: int):
        self._write_checked(value, MIN_I128, MAX_I128, 16, "i128", signed=True)

    def i256(self, value: int):
        self._write_checked(value, MIN_I256, MAX_I256, 32, "i256", signed=True)

    def uleb128(self, value: int):
        """Write ``value`` (0..2^64-1) as ULEB128.

        Raises:
            ValueConversionError: If the value is negative or exceeds u64.
        """
        if value < 0 or value > MAX_U64:
            raise ValueConversionError(f"Cannot encode {value} into uleb128")

        while value >= 0x80:
            # Write 7 (lowest) bits of data and set the 8th bit to 1.
            byte = value & 0x7F
            self._write_int(byte | 0x80, 1)
            value >>= 7

        # Write the remaining bits of data and set the highest bit to 0.
        self._write_int(value & 0x7F, 1)

    def _write_checked(
        self,
        value: int,
        minimum: int,
        maximum: int,
        length: int,
        name: str,
        signed: bool = False,
    ):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueConversionError(f"Cannot encode {value!r} into {name}")
        if value < minimum or value > maximum:
            raise ValueConversionError(f"Cannot encode {value} into {name}")
        self._write_int(value, length, signed)

    def _write_int(self, value: int, length: int, signed: bool = False):
        self._output.write(value.to_bytes(length, "little", signed=signed))


def encoder(
    value: typing.Any, encoder: typing.Callable[[Serializer, typing.Any], typing.Any]
) -> bytes:
    """Encode a single value with ``encoder`` into a standalone byte string.

    Examples:
        Encoding an argument for an entry function::

            amount = encoder(1_000, Serializer.u64)
    """
    ser = Serializer()
    encoder(ser, value)
    return ser.output()


class Test(unittest.TestCase):
    def test_bool_true(self):
        in_value = True

        ser = Serializer()
        ser.bool(in_value)
        der = Deserializer(ser.output())
        out_value = der.bool()

        self.assertEqual(in_value, out_value)

    def test_bool_error(self):
        ser = Serializer()
        ser.u8(32)
        der = Deserializer(ser.output())
        with self.assertRaises(EncodingError):
            der.bool()

    def test_bytes(self):
        ser = Serializer()
        ser.to_bytes(b"abcd")
        self.assertEqual(ser.output(), bytes.fromhex("0461626364"))
        self.assertEqual(Deserializer(ser.output()).to_bytes(), b"abcd")

    def test_map(self):
        in_value = {"a": 12345, "b": 99234, "c": 23829}

        ser = Serializer()
        ser.map(in_value, Serializer.str, Serializer.u32)
        der = Deserializer(ser.output())
        out_value = der.map(Deserializer.str, Deserializer.u32)

        self.assertEqual(in_value, out_value)

    def test_map_is_sorted_by_encoded_key(self):
        ser = Serializer()
        ser.map({"b": 1, "a": 2}, Serializer.str, Serializer.u8)
        self.assertEqual(ser.output(), bytes.fromhex("02016102016201"))

    def test_sequence(self):
        in_value = ["a", "abc", "def", "ghi"]

        ser = Serializer()
        ser.sequence(in_value, Serializer.str)
        der = Deserializer(ser.output())
        out_value = der.sequence(Deserializer.str)

        self.assertEqual(in_value, out_value)

    def test_nested_sequence(self):
        in_value = [[1, 2], [], [3]]

        ser = Serializer()
        ser.sequence(in_value, Serializer.sequence_serializer(Serializer.u8))
        self.assertEqual(ser.output(), bytes.fromhex("03020102000103"))

    def test_option(self):
        ser = Serializer()
        ser.option(None, Serializer.u8)
        ser.option(7, Serializer.u8)
        self.assertEqual(ser.output(), bytes.fromhex("000107"))

        der = Deserializer(ser.output())
        self.assertIsNone(der.option(Deserializer.u8))
        self.assertEqual(der.option(Deserializer.u8), 7)

        with self.assertRaises(EncodingError):
            Deserializer(b"\x02").option(Deserializer.u8)

    def test_u64_vector(self):
        ser = Serializer()
        ser.u64(1)
        self.assertEqual(ser.output(), bytes.fromhex("0100000000000000"))

    def test_u256(self):
        in_value = 111111111111111111111111111111111111111111111111111111111111111111111111111115

        ser = Serializer()
        ser.u256(in_value)
        der = Deserializer(ser.output())
        out_value = der.u256()

        self.assertEqual(in_value, out_value)

    def test_unsigned_range(self):
        ser = Serializer()
        with self.assertRaises(ValueConversionError):
            ser.u8(256)
        with self.assertRaises(ValueConversionError):
            ser.u64(-1)
        with self.assertRaises(ValueConversionError):
            ser.u128(MAX_U128 + 1)
        with self.assertRaises(ValueConversionError):
            ser.u16(True)

    def test_signed(self):
        ser = Serializer()
        ser.i8(-1)
        ser.i16(-2)
        ser.i64(MIN_I64)
        ser.i128(MAX_I128)
        ser.i256(-5)
        self.assertEqual(ser.output()[:3], bytes.fromhex("fffeff"))

        der = Deserializer(ser.output())
        self.assertEqual(der.i8(), -1)
        self.assertEqual(der.i16(), -2)
        self.assertEqual(der.i64(), MIN_I64)
        self.assertEqual(der.i128(), MAX_I128)
        self.assertEqual(der.i256(), -5)
        der.finish()

        with self.assertRaises(ValueConversionError):
            Serializer().i8(128)
        with self.assertRaises(ValueConversionError):
            Serializer().i32(MIN_I32 - 1)

    def test_uleb128_vectors(self):
        for value, expected in [
            (0, "00"),
            (127, "7f"),
            (128, "8001"),
            (16383, "ff7f"),
            (65535, "ffff03"),
            (MAX_U32, "ffffffff0f"),
            (MAX_U64, "ffffffffffffffffff01"),
        ]:
            ser = Serializer()
            ser.uleb128(value)
            self.assertEqual(ser.output().hex(), expected)
            self.assertEqual(Deserializer(ser.output()).uleb128(), value)

    def test_integer_round_trip_random(self):
        rng = random.Random(20240501)
        for name, low, high in [
            ("u8", 0, MAX_U8),
            ("u16", 0, MAX_U16),
            ("u32", 0, MAX_U32),
            ("u64", 0, MAX_U64),
            ("u128", 0, MAX_U128),
            ("u256", 0, MAX_U256),
            ("i8", MIN_I8, MAX_I8),
            ("i16", MIN_I16, MAX_I16),
            ("i32", MIN_I32, MAX_I32),
            ("i64", MIN_I64, MAX_I64),
            ("i128", MIN_I128, MAX_I128),
            ("i256", MIN_I256, MAX_I256),
        ]:
            values = [low, low + 1, 0, high - 1, high]
            values += [rng.randint(low, high) for _ in range(64)]
            for value in values:
                with self.subTest(name=name, value=value):
                    ser = Serializer()
                    getattr(ser, name)(value)
                    self.assertEqual(len(ser.output()), (high.bit_length() + 7) // 8)
                    der = Deserializer(ser.output())
                    self.assertEqual(getattr(der, name)(), value)
                    der.finish()

            with self.assertRaises(ValueConversionError):
                getattr(Serializer(), name)(high + 1)
            with self.assertRaises(ValueConversionError):
                getattr(Serializer(), name)(low - 1)

    def test_uleb128_round_trip_random(self):
        rng = random.Random(64)
        values = [0, 1, 127, 128, MAX_U32, MAX_U64 - 1, MAX_U64]
        values += [rng.getrandbits(rng.randint(1, 64)) for _ in range(256)]
        for value in values:
            with self.subTest(value=value):
                ser = Serializer()
                ser.uleb128(value)
                self.assertEqual(len(ser.output()), max(1, (value.bit_length() + 6) // 7))
                der = Deserializer(ser.output())
                self.assertEqual(der.uleb128(), value)
                der.finish()

    def test_uleb128_overflow(self):
        # Eleven continuation groups push the shift past 64 bits.
        with self.assertRaises(EncodingError):
            Deserializer(b"\xff" * 10 + b"\x01").uleb128()
        # Ten bytes whose final group carries more than one bit overflow u64.
        with self.assertRaises(EncodingError):
            Deserializer(b"\xff" * 9 + b"\x7f").uleb128()
        with self.assertRaises(ValueConversionError):
            Serializer().uleb128(MAX_U64 + 1)

    def test_sticky_error(self):
        der = Deserializer(b"\x01\x02")
        with self.assertRaises(EncodingError) as first:
            der.u32()
        # Later reads return zero values and keep the first error.
        self.assertEqual(der.u8(), 0)
        self.assertEqual(der.to_bytes(), b"")
        self.assertEqual(der.sequence(Deserializer.u64), [])
        self.assertFalse(der.bool())
        self.assertIs(der.error(), first.exception)

    def test_short_buffer(self):
        with self.assertRaises(EncodingError):
            Deserializer(b"\x05abc").to_bytes()

    def test_finish_rejects_trailing_bytes(self):
        der = Deserializer(b"\x01\x00")
        der.u8()
        with self.assertRaises(EncodingError):
            der.finish()

    def test_str(self):
        in_value = "1234567890"

        ser = Serializer()
        ser.str(in_value)
        der = Deserializer(ser.output())
        out_value = der.str()

        self.assertEqual(in_value, out_value)

    def test_invalid_utf8(self):
        with self.assertRaises(EncodingError):
            Deserializer(b"\x01\xff").str()


if __name__ == "__main__":
    unittest.main()
