# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
The boundary between transaction construction and the network.

:class:`Transport` lists the node operations the core depends on. Any object with these
coroutines can be used, :class:`aptos_core.rest_client.RestClient` is the bundled one.
:func:`build_transaction` fills in the fields of a raw transaction that only the chain
knows, the sender's sequence number and the chain id, and picks the multi-agent or
fee-payer wrapper from the options.
"""

from __future__ import annotations

import logging
import time
import unittest
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from typing_extensions import Protocol

from .account_address import AccountAddress
from .errors import ValueConversionError
from .transactions import (
    EntryFunction,
    FeePayerRawTransaction,
    MultiAgentRawTransaction,
    RawTransaction,
    TransactionPayload,
    ViewFunctionPayload,
)


class Transport(Protocol):
    async def get_chain_id(self) -> int:
        ...

    async def get_sequence_number(self, address: AccountAddress) -> int:
        ...

    async def submit_signed_transaction(self, signed_transaction: bytes) -> str:
        """Submit BCS bytes of a signed transaction and return its hash."""
        ...

    async def wait_for_transaction(self, txn_hash: str) -> Dict[str, Any]:
        ...

    async def view(
        self, payload: ViewFunctionPayload, ledger_version: Optional[int] = None
    ) -> List[Any]:
        ...


@dataclass
class TransactionOptions:
    """Options for :func:`build_transaction`.

    Attributes:
        max_gas_amount: Maximum gas units the transaction may use.
        gas_unit_price: Price per gas unit in octas.
        expiration_ttl: Seconds from now until the transaction expires.
        sequence_number: Sender sequence number, fetched from the node when None.
        chain_id: Chain id, fetched from the node when None.
        fee_payer: Builds a fee-payer transaction when set. Use ``0x0`` when the
            payer signs after the sender and is not known yet.
        additional_signers: Secondary signer addresses; a non-empty list builds a
            multi-agent transaction unless a fee payer is set.
    """

    max_gas_amount: int = 100_000
    gas_unit_price: int = 100
    expiration_ttl: int = 300
    sequence_number: Optional[int] = None
    chain_id: Optional[int] = None
    fee_payer: Optional[AccountAddress] = None
    additional_signers: List[AccountAddress] = field(default_factory=list)

    def __post_init__(self):
        if self.expiration_ttl < 0:
            raise ValueConversionError(
                f"Expiration must not be negative: {self.expiration_ttl}"
            )


async def build_transaction(
    transport: Transport,
    sender: AccountAddress,
    payload: Union[TransactionPayload, EntryFunction],
    options: Optional[TransactionOptions] = None,
) -> Union[RawTransaction, MultiAgentRawTransaction, FeePayerRawTransaction]:
    options = options or TransactionOptions()
    if isinstance(payload, EntryFunction):
        payload = TransactionPayload(payload)

    sequence_number = options.sequence_number
    if sequence_number is None:
        sequence_number = await transport.get_sequence_number(sender)
        logging.debug(f"Fetched sequence number {sequence_number} for {sender}")

    chain_id = options.chain_id
    if chain_id is None:
        chain_id = await transport.get_chain_id()

    raw_transaction = RawTransaction(
        sender,
        sequence_number,
        payload,
        options.max_gas_amount,
        options.gas_unit_price,
        int(time.time()) + options.expiration_ttl,
        chain_id,
    )

    if options.fee_payer is not None:
        logging.info(
            f"Built fee payer transaction for {sender} paid by {options.fee_payer}"
        )
        return FeePayerRawTransaction(
            raw_transaction, list(options.additional_signers), options.fee_payer
        )
    if options.additional_signers:
        logging.info(
            f"Built multi-agent transaction for {sender} with {len(options.additional_signers)} secondary signers"
        )
        return MultiAgentRawTransaction(
            raw_transaction, list(options.additional_signers)
        )

    logging.info(f"Built transaction for {sender} with sequence number {sequence_number}")
    return raw_transaction


class Test(unittest.IsolatedAsyncioTestCase):
    class StaticTransport:
        """Answers :class:`Transport` calls from fixed values."""

        chain_id: int
        sequence_numbers: Dict[AccountAddress, int]
        submitted: List[bytes]
        calls: int

        def __init__(self, chain_id: int, sequence_numbers: Dict[AccountAddress, int]):
            self.chain_id = chain_id
            self.sequence_numbers = sequence_numbers
            self.submitted = []
            self.calls = 0

        async def get_chain_id(self) -> int:
            self.calls += 1
            return self.chain_id

        async def get_sequence_number(self, address: AccountAddress) -> int:
            self.calls += 1
            return self.sequence_numbers.get(address, 0)

        async def submit_signed_transaction(self, signed_transaction: bytes) -> str:
            self.submitted.append(signed_transaction)
            return f"0x{len(self.submitted):064x}"

        async def wait_for_transaction(self, txn_hash: str) -> Dict[str, Any]:
            return {"hash": txn_hash, "success": True}

        async def view(
            self, payload: ViewFunctionPayload, ledger_version: Optional[int] = None
        ) -> List[Any]:
            return []

    sender = AccountAddress.from_str_relaxed("0xa11ce")
    payload = EntryFunction.natural("0x1::aptos_account", "create_account", [], [])

    async def test_fetches_missing_fields(self):
        transport = self.StaticTransport(4, {self.sender: 7})
        before = int(time.time())
        transaction = await build_transaction(transport, self.sender, self.payload)

        assert isinstance(transaction, RawTransaction)
        self.assertEqual(transaction.sequence_number, 7)
        self.assertEqual(transaction.chain_id, 4)
        self.assertEqual(transaction.max_gas_amount, 100_000)
        self.assertEqual(transaction.gas_unit_price, 100)
        self.assertGreaterEqual(transaction.expiration_timestamps_secs, before + 300)
        self.assertEqual(transport.calls, 2)

    async def test_explicit_fields_skip_transport(self):
        transport = self.StaticTransport(4, {})
        options = TransactionOptions(
            max_gas_amount=2000, gas_unit_price=1, sequence_number=3, chain_id=2
        )
        transaction = await build_transaction(
            transport, self.sender, self.payload, options
        )
        assert isinstance(transaction, RawTransaction)
        self.assertEqual(transaction.sequence_number, 3)
        self.assertEqual(transaction.chain_id, 2)
        self.assertEqual(transaction.max_gas_amount, 2000)
        self.assertEqual(transport.calls, 0)

    async def test_wrappers(self):
        transport = self.StaticTransport(4, {})
        secondary = AccountAddress.from_str_relaxed("0xb0b")

        multi_agent = await build_transaction(
            transport,
            self.sender,
            self.payload,
            TransactionOptions(additional_signers=[secondary]),
        )
        self.assertIsInstance(multi_agent, MultiAgentRawTransaction)

        fee_payer = await build_transaction(
            transport,
            self.sender,
            self.payload,
            TransactionOptions(
                fee_payer=AccountAddress.from_str("0x0"),
                additional_signers=[secondary],
            ),
        )
        assert isinstance(fee_payer, FeePayerRawTransaction)
        self.assertEqual(fee_payer.secondary_signers, [secondary])

    async def test_wrappers_copy_signers(self):
        transport = self.StaticTransport(4, {})
        secondary = AccountAddress.from_str_relaxed("0xb0b")
        options = TransactionOptions(additional_signers=[secondary])

        multi_agent = await build_transaction(
            transport, self.sender, self.payload, options
        )
        options.fee_payer = AccountAddress.from_str("0x0")
        fee_payer = await build_transaction(
            transport, self.sender, self.payload, options
        )
        options.additional_signers.append(AccountAddress.from_str_relaxed("0xca7"))

        assert isinstance(multi_agent, MultiAgentRawTransaction)
        assert isinstance(fee_payer, FeePayerRawTransaction)
        self.assertEqual(multi_agent.secondary_signers, [secondary])
        self.assertEqual(fee_payer.secondary_signers, [secondary])

    def test_negative_expiration(self):
        with self.assertRaises(ValueConversionError):
            TransactionOptions(expiration_ttl=-1)


if __name__ == "__main__":
    unittest.main()
