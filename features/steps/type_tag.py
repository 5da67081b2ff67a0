# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

import typing

from behave import then, use_step_matcher, when

from aptos_core.bcs import Deserializer, Serializer
from aptos_core.errors import AptosError
from aptos_core.marshaller import convert_arg
from aptos_core.type_tag import TypeTag

# Use regular expressions
use_step_matcher("re")


@when(r"I parse the type tag")
def when_parse_type_tag(context: typing.Any):
    try:
        context.type_tag = TypeTag.from_str(context.input)
        context.output = str(context.type_tag)
    except AptosError as e:
        context.output = e


@when(r"I serialize the type tag")
def when_serialize_type_tag(context: typing.Any):
    ser = Serializer()
    TypeTag.from_str(context.input).serialize(ser)
    context.output = ser.output()


@when(r"I deserialize as type tag")
def when_deserialize_type_tag(context: typing.Any):
    try:
        context.output = str(TypeTag.from_bytes(context.input))
    except AptosError as e:
        context.output = e


@when(r"I convert the value to (?P<type_tag>\S+)")
def when_convert_arg(context: typing.Any, type_tag: str):
    try:
        context.output = convert_arg(TypeTag.from_str(type_tag), context.input)
    except AptosError as e:
        context.output = e


@then(r"the type tag should round trip through bcs")
def then_type_tag_round_trip(context: typing.Any):
    ser = Serializer()
    context.type_tag.serialize(ser)
    der = Deserializer(ser.output())
    assert TypeTag.deserialize(der) == context.type_tag
    der.finish()
