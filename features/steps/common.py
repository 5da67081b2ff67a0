# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

import typing

from behave import given, then, use_step_matcher

from aptos_core.account_address import AccountAddress

# Use regular expressions
use_step_matcher("re")

INTEGER_TYPES = ("u8", "u16", "u32", "u64", "u128", "u256", "uleb128")
SCALAR_TYPES = r"bool|u8|u16|u32|u64|u128|u256|uleb128|address|bytes|string"


@given(rf"(?P<input_type>{SCALAR_TYPES}) (?P<input_value>\S+)")
def given_input(context: typing.Any, input_type: str, input_value: str):
    context.input = parse_value(input_type, input_value)


@given(r"sequence of (?P<input_type>[a-zA-Z0-9]+) \[(?P<input_value>.*)]")
def given_sequence_input(context: typing.Any, input_type: str, input_value: str):
    context.input = parse_sequence(input_type, input_value)


@given(r"text (?P<input_value>.+)")
def given_text(context: typing.Any, input_value: str):
    context.input = parse_string(input_value)


@then(rf"the result should be (?P<expected_type>{SCALAR_TYPES}) (?P<expected_value>\S+)")
def then_result(context: typing.Any, expected_type: str, expected_value: str):
    expected_val = parse_value(expected_type, expected_value)
    assert context.output == expected_val, (
        "Expected " + str(expected_value) + " but got " + str(context.output)
    )


@then(r"the result should be text (?P<expected_value>.+)")
def then_result_text(context: typing.Any, expected_value: str):
    expected_val = parse_string(expected_value)
    assert context.output == expected_val, (
        "Expected " + expected_val + " but got " + str(context.output)
    )


@then(
    r"the result should be sequence of (?P<expected_type>[a-zA-Z0-9]+) \[(?P<expected_value>\S*)]"
)
def then_result_sequence(context: typing.Any, expected_type: str, expected_value: str):
    expected_val = parse_sequence(expected_type, expected_value)
    assert context.output == expected_val, (
        "Expected " + str(expected_val) + " but got " + str(context.output)
    )


@then(r"it should fail with (?P<error_type>[A-Za-z]+)")
def then_fail(context: typing.Any, error_type: str):
    assert isinstance(context.output, Exception), f"Expected failure, got {context.output}"
    assert any(
        base.__name__ == error_type for base in type(context.output).__mro__
    ), f"Expected {error_type} but got {type(context.output).__name__}"


def parse_value(input_type: str, input_value: str) -> typing.Any:
    if input_type == "bool":
        return parse_bool(input_value)
    elif input_type in INTEGER_TYPES:
        return int(input_value)
    elif input_type == "address":
        return AccountAddress.from_str_relaxed(input_value)
    elif input_type == "bytes":
        return parse_hex(input_value)
    elif input_type == "string":
        return parse_string(input_value)
    raise ValueError(f"Unrecognized input type {input_type}")


def parse_sequence(input_type: str, input_value: str) -> typing.List[typing.Any]:
    # Skip early if there are no values
    if len(input_value) == 0:
        return []
    return [parse_value(input_type, val) for val in input_value.split(",")]


def parse_hex(input_value: str) -> bytes:
    return bytes.fromhex(input_value.removeprefix("0x"))


def parse_bool(input_value: str) -> bool:
    return input_value == "true"


def parse_string(input_value: str) -> str:
    return input_value.removeprefix('"').removesuffix('"')
