# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

import typing

from behave import then, use_step_matcher, when

from aptos_core.account_address import AccountAddress
from aptos_core.errors import AptosError

# Use regular expressions
use_step_matcher("re")


@when("I parse the account address strictly")
def when_parse_account_address_strict(context: typing.Any):
    try:
        context.output = AccountAddress.from_str(context.input)
    except AptosError as e:
        context.output = e


@when("I parse the account address")
def when_parse_account_address(context: typing.Any):
    try:
        context.output = AccountAddress.from_str_relaxed(context.input)
    except AptosError as e:
        context.output = e


@when("I convert the address to a string long")
def when_account_address_to_string_long(context: typing.Any):
    context.output = context.input.to_long_string()


@when("I convert the address to a string short")
def when_account_address_to_string_short(context: typing.Any):
    context.output = context.input.to_short_string()


@when("I convert the address to a string")
def when_account_address_to_string(context: typing.Any):
    context.output = str(context.input)


@then("I should fail to parse the account address")
def then_fail_account_address(context: typing.Any):
    assert isinstance(context.output, Exception)
