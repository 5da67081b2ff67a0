# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
This translates Aptos transactions to and from BCS for signing and submitting to the REST API.

The signing message of a transaction is a 32 byte domain prefix followed by the BCS
of the transaction: ``SHA3-256("APTOS::RawTransaction")`` for a plain
:class:`RawTransaction`, and ``SHA3-256("APTOS::RawTransactionWithData")`` for the
multi-agent and fee-payer wrappers, which prepend their own variant byte.
"""

from __future__ import annotations

import hashlib
import unittest
from typing import Any, Callable, List, Optional, Union, cast

from typing_extensions import Protocol

from . import asymmetric_crypto, asymmetric_crypto_wrapper, ed25519, secp256k1_ecdsa
from .account_address import AccountAddress
from .authenticator import (
    AccountAuthenticator,
    Authenticator,
    Ed25519Authenticator,
    FeePayerAuthenticator,
    MultiAgentAuthenticator,
    MultiEd25519Authenticator,
    MultiKeyAuthenticator,
    SingleKeyAuthenticator,
    SingleSenderAuthenticator,
)
from .bcs import Deserializer, Serializer
from .errors import EncodingError
from .type_tag import StructTag, TypeTag


class RawTransactionInternal(Protocol):
    def keyed(self) -> bytes:
        """The exact bytes a signer signs: domain prefix followed by the BCS body."""
        ser = Serializer()
        self.serialize(ser)
        prehash = bytearray(self.prehash())
        prehash.extend(ser.output())
        return bytes(prehash)

    def prehash(self) -> bytes:
        ...

    def serialize(self, serializer: Serializer):
        ...

    def sign(self, key: asymmetric_crypto.PrivateKey) -> AccountAuthenticator:
        signature = key.sign(self.keyed())
        if isinstance(signature, ed25519.Signature):
            return AccountAuthenticator(
                Ed25519Authenticator(
                    cast(ed25519.PublicKey, key.public_key()), signature
                )
            )
        return AccountAuthenticator(SingleKeyAuthenticator(key.public_key(), signature))

    def sign_simulated(self, key: asymmetric_crypto.PublicKey) -> AccountAuthenticator:
        return AccountAuthenticator.simulated(key)

    def verify(
        self, key: asymmetric_crypto.PublicKey, signature: asymmetric_crypto.Signature
    ) -> bool:
        return key.verify(self.keyed(), signature)


class RawTransactionWithData(RawTransactionInternal, Protocol):
    MULTI_AGENT: int = 0
    FEE_PAYER: int = 1

    raw_transaction: RawTransaction

    def inner(self) -> RawTransaction:
        return self.raw_transaction

    def prehash(self) -> bytes:
        hasher = hashlib.sha3_256()
        hasher.update(b"APTOS::RawTransactionWithData")
        return hasher.digest()

    @staticmethod
    def deserialize(
        deserializer: Deserializer,
    ) -> Union[MultiAgentRawTransaction, FeePayerRawTransaction]:
        variant = deserializer.uleb128()
        raw_transaction = RawTransaction.deserialize(deserializer)
        secondary_signers = deserializer.sequence(AccountAddress.deserialize)

        if variant == RawTransactionWithData.MULTI_AGENT:
            return MultiAgentRawTransaction(raw_transaction, secondary_signers)
        elif variant == RawTransactionWithData.FEE_PAYER:
            fee_payer = AccountAddress.deserialize(deserializer)
            return FeePayerRawTransaction(raw_transaction, secondary_signers, fee_payer)
        raise deserializer.fail(f"Invalid RawTransactionWithData variant: {variant}")


class RawTransaction(RawTransactionInternal):
    # Sender's address
    sender: AccountAddress
    # Sequence number of this transaction. This must match the sequence number in the sender's
    # account at the time of execution.
    sequence_number: int
    # The transaction payload, e.g., a script to execute.
    payload: TransactionPayload
    # Maximum total gas to spend for this transaction
    max_gas_amount: int
    # Price to be paid per gas unit.
    gas_unit_price: int
    # Expiration timestamp for this transaction, represented as seconds from the Unix epoch.
    expiration_timestamps_secs: int
    # Chain ID of the Aptos network this transaction is intended for.
    chain_id: int

    def __init__(
        self,
        sender: AccountAddress,
        sequence_number: int,
        payload: TransactionPayload,
        max_gas_amount: int,
        gas_unit_price: int,
        expiration_timestamps_secs: int,
        chain_id: int,
    ):
        self.sender = sender
        self.sequence_number = sequence_number
        self.payload = payload
        self.max_gas_amount = max_gas_amount
        self.gas_unit_price = gas_unit_price
        self.expiration_timestamps_secs = expiration_timestamps_secs
        self.chain_id = chain_id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RawTransaction):
            return NotImplemented
        return (
            self.sender == other.sender
            and self.sequence_number == other.sequence_number
            and self.payload == other.payload
            and self.max_gas_amount == other.max_gas_amount
            and self.gas_unit_price == other.gas_unit_price
            and self.expiration_timestamps_secs == other.expiration_timestamps_secs
            and self.chain_id == other.chain_id
        )

    def __str__(self):
        return f"""RawTransaction:
    sender: {self.sender}
    sequence_number: {self.sequence_number}
    payload: {self.payload}
    max_gas_amount: {self.max_gas_amount}
    gas_unit_price: {self.gas_unit_price}
    expiration_timestamps_secs: {self.expiration_timestamps_secs}
    chain_id: {self.chain_id}
"""

    def prehash(self) -> bytes:
        hasher = hashlib.sha3_256()
        hasher.update(b"APTOS::RawTransaction")
        return hasher.digest()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> RawTransaction:
        return RawTransaction(
            AccountAddress.deserialize(deserializer),
            deserializer.u64(),
            TransactionPayload.deserialize(deserializer),
            deserializer.u64(),
            deserializer.u64(),
            deserializer.u64(),
            deserializer.u8(),
        )

    def serialize(self, serializer: Serializer):
        self.sender.serialize(serializer)
        serializer.u64(self.sequence_number)
        self.payload.serialize(serializer)
        serializer.u64(self.max_gas_amount)
        serializer.u64(self.gas_unit_price)
        serializer.u64(self.expiration_timestamps_secs)
        serializer.u8(self.chain_id)


class MultiAgentRawTransaction(RawTransactionWithData):
    secondary_signers: List[AccountAddress]

    def __init__(
        self, raw_transaction: RawTransaction, secondary_signers: List[AccountAddress]
    ):
        self.raw_transaction = raw_transaction
        self.secondary_signers = secondary_signers

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultiAgentRawTransaction):
            return NotImplemented
        return (
            self.raw_transaction == other.raw_transaction
            and self.secondary_signers == other.secondary_signers
        )

    def serialize(self, serializer: Serializer):
        serializer.variant_index(RawTransactionWithData.MULTI_AGENT)
        serializer.struct(self.raw_transaction)
        serializer.sequence(self.secondary_signers, Serializer.struct)


class FeePayerRawTransaction(RawTransactionWithData):
    """A transaction whose gas is paid by ``fee_payer``.

    The fee payer may be left as None while the sender and secondary signers sign;
    it is then written as ``0x0`` so they can sign before the payer is known.
    """

    secondary_signers: List[AccountAddress]
    fee_payer: Optional[AccountAddress]

    def __init__(
        self,
        raw_transaction: RawTransaction,
        secondary_signers: List[AccountAddress],
        fee_payer: Optional[AccountAddress],
    ):
        self.raw_transaction = raw_transaction
        self.secondary_signers = secondary_signers
        self.fee_payer = fee_payer

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeePayerRawTransaction):
            return NotImplemented
        return (
            self.raw_transaction == other.raw_transaction
            and self.secondary_signers == other.secondary_signers
            and self._fee_payer_address() == other._fee_payer_address()
        )

    def _fee_payer_address(self) -> AccountAddress:
        if self.fee_payer is None:
            return AccountAddress.from_str("0x0")
        return self.fee_payer

    def serialize(self, serializer: Serializer):
        serializer.variant_index(RawTransactionWithData.FEE_PAYER)
        serializer.struct(self.raw_transaction)
        serializer.sequence(self.secondary_signers, Serializer.struct)
        serializer.struct(self._fee_payer_address())


class TransactionPayload:
    SCRIPT: int = 0
    MODULE_BUNDLE: int = 1
    ENTRY_FUNCTION: int = 2
    MULTISIG: int = 3

    variant: int
    value: Any

    def __init__(self, payload: Any):
        if isinstance(payload, Script):
            self.variant = TransactionPayload.SCRIPT
        elif isinstance(payload, EntryFunction):
            self.variant = TransactionPayload.ENTRY_FUNCTION
        elif isinstance(payload, Multisig):
            self.variant = TransactionPayload.MULTISIG
        else:
            raise EncodingError(f"Unsupported transaction payload: {type(payload)}")
        self.value = payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TransactionPayload):
            return NotImplemented
        return self.variant == other.variant and self.value == other.value

    def __str__(self) -> str:
        return self.value.__str__()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> TransactionPayload:
        variant = deserializer.uleb128()

        if variant == TransactionPayload.SCRIPT:
            payload: Any = Script.deserialize(deserializer)
        elif variant == TransactionPayload.MODULE_BUNDLE:
            raise deserializer.fail("ModuleBundle payloads are no longer supported")
        elif variant == TransactionPayload.ENTRY_FUNCTION:
            payload = EntryFunction.deserialize(deserializer)
        elif variant == TransactionPayload.MULTISIG:
            payload = Multisig.deserialize(deserializer)
        else:
            raise deserializer.fail(f"Invalid transaction payload type: {variant}")

        return TransactionPayload(payload)

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.variant)
        self.value.serialize(serializer)


class ModuleBundle:
    """Deprecated payload; discriminant 1 stays reserved and cannot be built."""

    def __init__(self):
        raise EncodingError("ModuleBundle payloads are no longer supported")


class Script:
    code: bytes
    ty_args: List[TypeTag]
    args: List[ScriptArgument]

    def __init__(self, code: bytes, ty_args: List[TypeTag], args: List[ScriptArgument]):
        self.code = code
        self.ty_args = ty_args
        self.args = args

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Script:
        code = deserializer.to_bytes()
        ty_args = deserializer.sequence(TypeTag.deserialize)
        args = deserializer.sequence(ScriptArgument.deserialize)
        return Script(code, ty_args, args)

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.code)
        serializer.sequence(self.ty_args, Serializer.struct)
        serializer.sequence(self.args, Serializer.struct)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Script):
            return NotImplemented
        return (
            self.code == other.code
            and self.ty_args == other.ty_args
            and self.args == other.args
        )

    def __str__(self):
        return f"<{self.ty_args}>({self.args})"


class ScriptArgument:
    U8: int = 0
    U64: int = 1
    U128: int = 2
    ADDRESS: int = 3
    U8_VECTOR: int = 4
    BOOL: int = 5
    U16: int = 6
    U32: int = 7
    U256: int = 8

    variant: int
    value: Any

    def __init__(self, variant: int, value: Any):
        if variant < ScriptArgument.U8 or variant > ScriptArgument.U256:
            raise EncodingError(f"Invalid ScriptArgument variant {variant}")

        self.variant = variant
        self.value = value

    @staticmethod
    def deserialize(deserializer: Deserializer) -> ScriptArgument:
        variant = deserializer.uleb128()
        if variant == ScriptArgument.U8:
            value: Any = deserializer.u8()
        elif variant == ScriptArgument.U16:
            value = deserializer.u16()
        elif variant == ScriptArgument.U32:
            value = deserializer.u32()
        elif variant == ScriptArgument.U64:
            value = deserializer.u64()
        elif variant == ScriptArgument.U128:
            value = deserializer.u128()
        elif variant == ScriptArgument.U256:
            value = deserializer.u256()
        elif variant == ScriptArgument.ADDRESS:
            value = AccountAddress.deserialize(deserializer)
        elif variant == ScriptArgument.U8_VECTOR:
            value = deserializer.to_bytes()
        elif variant == ScriptArgument.BOOL:
            value = deserializer.bool()
        else:
            raise deserializer.fail(f"Invalid ScriptArgument variant {variant}")
        return ScriptArgument(variant, value)

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.variant)
        if self.variant == ScriptArgument.U8:
            serializer.u8(self.value)
        elif self.variant == ScriptArgument.U16:
            serializer.u16(self.value)
        elif self.variant == ScriptArgument.U32:
            serializer.u32(self.value)
        elif self.variant == ScriptArgument.U64:
            serializer.u64(self.value)
        elif self.variant == ScriptArgument.U128:
            serializer.u128(self.value)
        elif self.variant == ScriptArgument.U256:
            serializer.u256(self.value)
        elif self.variant == ScriptArgument.ADDRESS:
            serializer.struct(self.value)
        elif self.variant == ScriptArgument.U8_VECTOR:
            serializer.to_bytes(self.value)
        elif self.variant == ScriptArgument.BOOL:
            serializer.bool(self.value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ScriptArgument):
            return NotImplemented
        return self.variant == other.variant and self.value == other.value

    def __str__(self):
        return f"[{self.variant}] {self.value}"


class EntryFunction:
    module: ModuleId
    function: str
    ty_args: List[TypeTag]
    args: List[bytes]

    def __init__(
        self, module: ModuleId, function: str, ty_args: List[TypeTag], args: List[bytes]
    ):
        self.module = module
        self.function = function
        self.ty_args = ty_args
        self.args = args

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntryFunction):
            return NotImplemented

        return (
            self.module == other.module
            and self.function == other.function
            and self.ty_args == other.ty_args
            and self.args == other.args
        )

    def __str__(self):
        return f"{self.module}::{self.function}::<{self.ty_args}>({self.args})"

    @staticmethod
    def natural(
        module: str,
        function: str,
        ty_args: List[TypeTag],
        args: List[TransactionArgument],
    ) -> EntryFunction:
        """Build from ``"0x1::coin"`` style module text and self-encoding arguments."""
        module_id = ModuleId.from_str(module)

        byte_args = []
        for arg in args:
            byte_args.append(arg.encode())
        return EntryFunction(module_id, function, ty_args, byte_args)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> EntryFunction:
        module = ModuleId.deserialize(deserializer)
        function = deserializer.str()
        ty_args = deserializer.sequence(TypeTag.deserialize)
        args = deserializer.sequence(Deserializer.to_bytes)
        return EntryFunction(module, function, ty_args, args)

    def serialize(self, serializer: Serializer):
        self.module.serialize(serializer)
        serializer.str(self.function)
        serializer.sequence(self.ty_args, Serializer.struct)
        serializer.sequence(self.args, Serializer.to_bytes)


class ViewFunctionPayload:
    """Body of a BCS view request (``application/x.aptos.view_function+bcs``)."""

    module: ModuleId
    function: str
    ty_args: List[TypeTag]
    args: List[bytes]

    def __init__(
        self, module: ModuleId, function: str, ty_args: List[TypeTag], args: List[bytes]
    ):
        self.module = module
        self.function = function
        self.ty_args = ty_args
        self.args = args

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ViewFunctionPayload):
            return NotImplemented
        return (
            self.module == other.module
            and self.function == other.function
            and self.ty_args == other.ty_args
            and self.args == other.args
        )

    def __str__(self):
        return f"{self.module}::{self.function}::<{self.ty_args}>({self.args})"

    @staticmethod
    def deserialize(deserializer: Deserializer) -> ViewFunctionPayload:
        entry_function = EntryFunction.deserialize(deserializer)
        return ViewFunctionPayload(
            entry_function.module,
            entry_function.function,
            entry_function.ty_args,
            entry_function.args,
        )

    def serialize(self, serializer: Serializer):
        self.module.serialize(serializer)
        serializer.str(self.function)
        serializer.sequence(self.ty_args, Serializer.struct)
        serializer.sequence(self.args, Serializer.to_bytes)


class Multisig:
    """Executes a transaction on behalf of an on-chain multisig account.

    Without a payload the node runs the payload already stored for the next
    pending multisig transaction.
    """

    multisig_address: AccountAddress
    transaction_payload: Optional[MultisigTransactionPayload]

    def __init__(
        self,
        multisig_address: AccountAddress,
        transaction_payload: Optional[MultisigTransactionPayload] = None,
    ):
        self.multisig_address = multisig_address
        self.transaction_payload = transaction_payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Multisig):
            return NotImplemented
        return (
            self.multisig_address == other.multisig_address
            and self.transaction_payload == other.transaction_payload
        )

    def __str__(self):
        return f"Multisig({self.multisig_address}, {self.transaction_payload})"

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Multisig:
        multisig_address = AccountAddress.deserialize(deserializer)
        transaction_payload = deserializer.option(
            MultisigTransactionPayload.deserialize
        )
        return Multisig(multisig_address, transaction_payload)

    def serialize(self, serializer: Serializer):
        self.multisig_address.serialize(serializer)
        serializer.option(self.transaction_payload, Serializer.struct)


class MultisigTransactionPayload:
    """Currently `MultisigTransactionPayload` only supports `EntryFunction` type payload"""

    ENTRY_FUNCTION: int = 0

    payload_variant: int
    transaction_payload: EntryFunction

    def __init__(self, transaction_payload: Any):
        if isinstance(transaction_payload, EntryFunction):
            self.payload_variant = self.ENTRY_FUNCTION
        else:
            raise EncodingError(
                f"Unsupported multisig payload: {type(transaction_payload)}"
            )
        self.transaction_payload = transaction_payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultisigTransactionPayload):
            return NotImplemented
        return self.transaction_payload == other.transaction_payload

    def __str__(self):
        return self.transaction_payload.__str__()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultisigTransactionPayload:
        payload_variant = deserializer.uleb128()
        if payload_variant != MultisigTransactionPayload.ENTRY_FUNCTION:
            raise deserializer.fail(f"Invalid multisig payload type: {payload_variant}")
        return MultisigTransactionPayload(EntryFunction.deserialize(deserializer))

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.payload_variant)
        self.transaction_payload.serialize(serializer)


class ModuleId:
    address: AccountAddress
    name: str

    def __init__(self, address: AccountAddress, name: str):
        self.address = address
        self.name = name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ModuleId):
            return NotImplemented
        return self.address == other.address and self.name == other.name

    def __str__(self) -> str:
        return f"{self.address}::{self.name}"

    @staticmethod
    def from_str(module_id: str) -> ModuleId:
        split = module_id.split("::")
        if len(split) != 2 or not split[1]:
            raise EncodingError(f"Invalid module id: {module_id!r}")
        return ModuleId(AccountAddress.from_str_relaxed(split[0]), split[1])

    @staticmethod
    def deserialize(deserializer: Deserializer) -> ModuleId:
        addr = AccountAddress.deserialize(deserializer)
        name = deserializer.str()
        return ModuleId(addr, name)

    def serialize(self, serializer: Serializer):
        self.address.serialize(serializer)
        serializer.str(self.name)


class TransactionArgument:
    """A value paired with the serializer method that encodes it."""

    value: Any
    encoder: Callable[[Serializer, Any], None]

    def __init__(
        self,
        value: Any,
        encoder: Callable[[Serializer, Any], None],
    ):
        self.value = value
        self.encoder = encoder

    def encode(self) -> bytes:
        ser = Serializer()
        self.encoder(ser, self.value)
        return ser.output()


class SignedTransaction:
    transaction: RawTransaction
    authenticator: Authenticator

    def __init__(
        self,
        transaction: RawTransaction,
        authenticator: Union[AccountAuthenticator, Authenticator],
    ):
        self.transaction = transaction
        if isinstance(authenticator, AccountAuthenticator):
            if authenticator.variant in (
                AccountAuthenticator.ED25519,
                AccountAuthenticator.MULTI_ED25519,
            ):
                authenticator = Authenticator(authenticator.authenticator)
            else:
                authenticator = Authenticator(SingleSenderAuthenticator(authenticator))

        self.authenticator = authenticator

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SignedTransaction):
            return NotImplemented
        return (
            self.transaction == other.transaction
            and self.authenticator == other.authenticator
        )

    def __str__(self) -> str:
        return f"Transaction: {self.transaction}Authenticator: {self.authenticator}"

    def bytes(self) -> bytes:
        ser = Serializer()
        ser.struct(self)
        return ser.output()

    def hash(self) -> bytes:
        """Committed transaction hash: the user transaction variant (0) under the
        ``APTOS::Transaction`` domain prefix."""
        hasher = hashlib.sha3_256()
        hasher.update(hashlib.sha3_256(b"APTOS::Transaction").digest())
        hasher.update(b"\x00")
        hasher.update(self.bytes())
        return hasher.digest()

    def signing_message(self) -> bytes:
        """The bytes every signer of this transaction signed.

        Multi-agent and fee-payer authenticators sign the wrapper built from the
        addresses they carry; the rest sign the raw transaction.
        """
        auth = self.authenticator.authenticator
        if isinstance(auth, MultiAgentAuthenticator):
            transaction: RawTransactionInternal = MultiAgentRawTransaction(
                self.transaction, auth.secondary_addresses()
            )
        elif isinstance(auth, FeePayerAuthenticator):
            transaction = FeePayerRawTransaction(
                self.transaction,
                auth.secondary_addresses(),
                auth.fee_payer_address(),
            )
        else:
            transaction = self.transaction
        return transaction.keyed()

    def signing_message_hash(self) -> bytes:
        """SHA3-256 of :meth:`signing_message`."""
        return hashlib.sha3_256(self.signing_message()).digest()

    def verify(self) -> bool:
        return self.authenticator.verify(self.signing_message())

    @staticmethod
    def deserialize(deserializer: Deserializer) -> SignedTransaction:
        transaction = RawTransaction.deserialize(deserializer)
        authenticator = Authenticator.deserialize(deserializer)
        return SignedTransaction(transaction, authenticator)

    def serialize(self, serializer: Serializer):
        self.transaction.serialize(serializer)
        self.authenticator.serialize(serializer)


class Test(unittest.TestCase):
    SENDER_KEY = "9bf49a6a0755f953811fce125f2683d50429c3bb49e074147e0089a52eae155f"
    RECEIVER_KEY = "0564f879d27ae3c02ce82834acfa8c793a629f2ca0de6919610be82f411326be"

    def corpus_transaction(self, payload: EntryFunction) -> RawTransaction:
        sender = ed25519.PrivateKey.from_str(self.SENDER_KEY, False)
        return RawTransaction(
            AccountAddress.from_key(sender.public_key()),
            11,
            TransactionPayload(payload),
            2000,
            1,
            1234567890,
            4,
        )

    def test_entry_function(self):
        private_key = ed25519.PrivateKey.random()
        public_key = private_key.public_key()
        account_address = AccountAddress.from_key(public_key)

        recipient_address = AccountAddress.from_key(
            ed25519.PrivateKey.random().public_key()
        )

        transaction_arguments = [
            TransactionArgument(recipient_address, Serializer.struct),
            TransactionArgument(5000, Serializer.u64),
        ]

        payload = EntryFunction.natural(
            "0x1::coin",
            "transfer",
            [TypeTag(StructTag.from_str("0x1::aptos_coin::AptosCoin"))],
            transaction_arguments,
        )

        raw_transaction = RawTransaction(
            account_address,
            0,
            TransactionPayload(payload),
            2000,
            0,
            18446744073709551615,
            4,
        )

        authenticator = raw_transaction.sign(private_key)
        self.assertTrue(raw_transaction.verify(public_key, authenticator.authenticator.signature))
        signed_transaction = SignedTransaction(raw_transaction, authenticator)
        self.assertTrue(signed_transaction.verify())
        self.assertEqual(
            signed_transaction.authenticator.variant, Authenticator.ED25519
        )

    def test_secp256k1_single_sender(self):
        private_key = secp256k1_ecdsa.PrivateKey.random()
        raw_transaction = RawTransaction(
            AccountAddress.from_key(private_key.public_key()),
            0,
            TransactionPayload(
                EntryFunction.natural(
                    "0x1::aptos_account",
                    "transfer",
                    [],
                    [
                        TransactionArgument(AccountAddress.from_str("0x1"), Serializer.struct),
                        TransactionArgument(1, Serializer.u64),
                    ],
                )
            ),
            2000,
            100,
            1234567890,
            4,
        )
        signed_transaction = SignedTransaction(
            raw_transaction, raw_transaction.sign(private_key)
        )
        self.assertEqual(
            signed_transaction.authenticator.variant, Authenticator.SINGLE_SENDER
        )
        self.assertTrue(signed_transaction.verify())
        self.assertEqual(
            SignedTransaction.deserialize(Deserializer(signed_transaction.bytes())),
            signed_transaction,
        )

    def test_entry_function_with_corpus(self):
        sender_private_key = ed25519.PrivateKey.from_str(self.SENDER_KEY, False)
        receiver_private_key = ed25519.PrivateKey.from_str(self.RECEIVER_KEY, False)
        receiver_account_address = AccountAddress.from_key(
            receiver_private_key.public_key()
        )

        payload = EntryFunction.natural(
            "0x1::coin",
            "transfer",
            [TypeTag(StructTag.from_str("0x1::aptos_coin::AptosCoin"))],
            [
                TransactionArgument(receiver_account_address, Serializer.struct),
                TransactionArgument(5000, Serializer.u64),
            ],
        )
        raw_transaction_generated = self.corpus_transaction(payload)

        authenticator = raw_transaction_generated.sign(sender_private_key)
        signed_transaction_generated = SignedTransaction(
            raw_transaction_generated, authenticator
        )
        self.assertTrue(signed_transaction_generated.verify())

        raw_transaction_input = "7deeccb1080854f499ec8b4c1b213b82c5e34b925cf6875fec02d4b77adbd2d60b0000000000000002000000000000000000000000000000000000000000000000000000000000000104636f696e087472616e73666572010700000000000000000000000000000000000000000000000000000000000000010a6170746f735f636f696e094170746f73436f696e0002202d133ddd281bb6205558357cc6ac75661817e9aaeac3afebc32842759cbf7fa9088813000000000000d0070000000000000100000000000000d20296490000000004"
        signed_transaction_input = "7deeccb1080854f499ec8b4c1b213b82c5e34b925cf6875fec02d4b77adbd2d60b0000000000000002000000000000000000000000000000000000000000000000000000000000000104636f696e087472616e73666572010700000000000000000000000000000000000000000000000000000000000000010a6170746f735f636f696e094170746f73436f696e0002202d133ddd281bb6205558357cc6ac75661817e9aaeac3afebc32842759cbf7fa9088813000000000000d0070000000000000100000000000000d202964900000000040020b9c6ee1630ef3e711144a648db06bbb2284f7274cfbee53ffcee503cc1a4920040f25b74ec60a38a1ed780fd2bef6ddb6eb4356e3ab39276c9176cdf0fcae2ab37d79b626abb43d926e91595b66503a4a3c90acbae36a28d405e308f3537af720b"

        self.verify_transactions(
            raw_transaction_input,
            raw_transaction_generated,
            signed_transaction_input,
            signed_transaction_generated,
        )

    def test_entry_function_multi_agent_with_corpus(self):
        sender_private_key = ed25519.PrivateKey.from_str(self.SENDER_KEY, False)
        receiver_private_key = ed25519.PrivateKey.from_str(self.RECEIVER_KEY, False)
        receiver_account_address = AccountAddress.from_key(
            receiver_private_key.public_key()
        )

        payload = EntryFunction.natural(
            "0x3::token",
            "direct_transfer_script",
            [],
            [
                TransactionArgument(receiver_account_address, Serializer.struct),
                TransactionArgument("collection_name", Serializer.str),
                TransactionArgument("token_name", Serializer.str),
                TransactionArgument(1, Serializer.u64),
            ],
        )

        raw_transaction_generated = MultiAgentRawTransaction(
            self.corpus_transaction(payload), [receiver_account_address]
        )

        sender_authenticator = raw_transaction_generated.sign(sender_private_key)
        receiver_authenticator = raw_transaction_generated.sign(receiver_private_key)

        authenticator = Authenticator(
            MultiAgentAuthenticator(
                sender_authenticator,
                [(receiver_account_address, receiver_authenticator)],
            )
        )

        signed_transaction_generated = SignedTransaction(
            raw_transaction_generated.inner(), authenticator
        )
        self.assertTrue(signed_transaction_generated.verify())

        raw_transaction_input = "7deeccb1080854f499ec8b4c1b213b82c5e34b925cf6875fec02d4b77adbd2d60b0000000000000002000000000000000000000000000000000000000000000000000000000000000305746f6b656e166469726563745f7472616e736665725f7363726970740004202d133ddd281bb6205558357cc6ac75661817e9aaeac3afebc32842759cbf7fa9100f636f6c6c656374696f6e5f6e616d650b0a746f6b656e5f6e616d65080100000000000000d0070000000000000100000000000000d20296490000000004"
        signed_transaction_input = "7deeccb1080854f499ec8b4c1b213b82c5e34b925cf6875fec02d4b77adbd2d60b0000000000000002000000000000000000000000000000000000000000000000000000000000000305746f6b656e166469726563745f7472616e736665725f7363726970740004202d133ddd281bb6205558357cc6ac75661817e9aaeac3afebc32842759cbf7fa9100f636f6c6c656374696f6e5f6e616d650b0a746f6b656e5f6e616d65080100000000000000d0070000000000000100000000000000d20296490000000004020020b9c6ee1630ef3e711144a648db06bbb2284f7274cfbee53ffcee503cc1a4920040343e7b10aa323c480391a5d7cd2d0cf708d51529b96b5a2be08cbb365e4f11dcc2cf0655766cf70d40853b9c395b62dad7a9f58ed998803d8bf1901ba7a7a401012d133ddd281bb6205558357cc6ac75661817e9aaeac3afebc32842759cbf7fa9010020aef3f4a4b8eca1dfc343361bf8e436bd42de9259c04b8314eb8e2054dd6e82ab408a7f06e404ae8d9535b0cbbeafb7c9e34e95fe1425e4529758150a4f7ce7a683354148ad5c313ec36549e3fb29e669d90010f97467c9074ff0aec3ed87f76608"

        self.verify_transactions(
            raw_transaction_input,
            raw_transaction_generated.inner(),
            signed_transaction_input,
            signed_transaction_generated,
        )

        der = Deserializer(
            bytes.fromhex("00" + raw_transaction_input + "01" + "2d133ddd281bb6205558357cc6ac75661817e9aaeac3afebc32842759cbf7fa9")
        )
        self.assertEqual(RawTransactionWithData.deserialize(der), raw_transaction_generated)
        der.finish()

    def test_fee_payer(self):
        sender = ed25519.PrivateKey.random()
        fee_payer = ed25519.PrivateKey.random()
        fee_payer_address = AccountAddress.from_key(fee_payer.public_key())

        raw_transaction = RawTransaction(
            AccountAddress.from_key(sender.public_key()),
            0,
            TransactionPayload(
                EntryFunction.natural("0x1::aptos_account", "create_account", [], [])
            ),
            2000,
            100,
            1234567890,
            4,
        )

        # The sender signs before the fee payer is known.
        unknown_payer = FeePayerRawTransaction(raw_transaction, [], None)
        self.assertEqual(
            unknown_payer.keyed(),
            FeePayerRawTransaction(
                raw_transaction, [], AccountAddress.from_str("0x0")
            ).keyed(),
        )

        fee_payer_transaction = FeePayerRawTransaction(
            raw_transaction, [], fee_payer_address
        )
        authenticator = Authenticator(
            FeePayerAuthenticator(
                fee_payer_transaction.sign(sender),
                [],
                (fee_payer_address, fee_payer_transaction.sign(fee_payer)),
            )
        )
        signed_transaction = SignedTransaction(raw_transaction, authenticator)
        self.assertTrue(signed_transaction.verify())

        restored = SignedTransaction.deserialize(Deserializer(signed_transaction.bytes()))
        self.assertEqual(restored, signed_transaction)
        self.assertTrue(restored.verify())

        ser = Serializer()
        fee_payer_transaction.serialize(ser)
        self.assertEqual(
            RawTransactionWithData.deserialize(Deserializer(ser.output())),
            fee_payer_transaction,
        )

    def test_sign_simulated(self):
        private_key = ed25519.PrivateKey.random()
        raw_transaction = RawTransaction(
            AccountAddress.from_key(private_key.public_key()),
            0,
            TransactionPayload(
                EntryFunction.natural("0x1::aptos_account", "create_account", [], [])
            ),
            2000,
            100,
            1234567890,
            4,
        )
        simulated = raw_transaction.sign_simulated(private_key.public_key())
        self.assertEqual(simulated.variant, AccountAuthenticator.ED25519)
        self.assertEqual(simulated.authenticator.public_key, private_key.public_key())
        self.assertFalse(SignedTransaction(raw_transaction, simulated).verify())

    def test_hash(self):
        signed = SignedTransaction.deserialize(
            Deserializer(bytes.fromhex(self.corpus_signed()))
        )
        expected = hashlib.sha3_256(
            hashlib.sha3_256(b"APTOS::Transaction").digest()
            + b"\x00"
            + bytes.fromhex(self.corpus_signed())
        ).digest()
        self.assertEqual(signed.hash(), expected)

    def test_signed_transaction_variants(self):
        ed_key = ed25519.PrivateKey.random()
        secp_key = secp256k1_ecdsa.PrivateKey.random()
        other_key = ed25519.PrivateKey.random()
        other_address = AccountAddress.from_key(other_key.public_key())
        raw_transaction = RawTransaction(
            AccountAddress.from_key(ed_key.public_key()),
            3,
            TransactionPayload(
                EntryFunction.natural(
                    "0x1::aptos_account",
                    "transfer",
                    [],
                    [
                        TransactionArgument(other_address, Serializer.struct),
                        TransactionArgument(10, Serializer.u64),
                    ],
                )
            ),
            2000,
            100,
            1234567890,
            4,
        )
        message = raw_transaction.keyed()

        multi_ed_key = ed25519.MultiPublicKey(
            [ed_key.public_key(), other_key.public_key()], 1
        )
        multi_ed = AccountAuthenticator(
            MultiEd25519Authenticator(
                multi_ed_key, ed25519.MultiSignature([(1, other_key.sign(message))])
            )
        )

        multi_key = asymmetric_crypto_wrapper.MultiPublicKey(
            [ed_key.public_key(), secp_key.public_key(), other_key.public_key()], 2
        )
        multi_key_auth = AccountAuthenticator(
            MultiKeyAuthenticator(
                multi_key,
                asymmetric_crypto_wrapper.MultiSignature(
                    [(0, ed_key.sign(message)), (1, secp_key.sign(message))]
                ),
            )
        )

        keyless = AccountAuthenticator(
            SingleKeyAuthenticator(
                asymmetric_crypto_wrapper.PublicKey(
                    asymmetric_crypto_wrapper.KeylessPublicKey(
                        "https://accounts.google.com", b"\x02" * 32
                    )
                ),
                asymmetric_crypto_wrapper.Signature(
                    asymmetric_crypto_wrapper.KeylessSignature(b"\x05" * 16)
                ),
            )
        )

        multi_agent_transaction = MultiAgentRawTransaction(
            raw_transaction, [other_address]
        )
        multi_agent = Authenticator(
            MultiAgentAuthenticator(
                multi_agent_transaction.sign(ed_key),
                [(other_address, multi_agent_transaction.sign(other_key))],
            )
        )

        fee_payer_transaction = FeePayerRawTransaction(
            raw_transaction, [], other_address
        )
        fee_payer = Authenticator(
            FeePayerAuthenticator(
                fee_payer_transaction.sign(ed_key),
                [],
                (other_address, fee_payer_transaction.sign(other_key)),
            )
        )

        cases = [
            ("ed25519", raw_transaction.sign(ed_key), Authenticator.ED25519, True),
            ("multi_ed25519", multi_ed, Authenticator.MULTI_ED25519, True),
            ("multi_agent", multi_agent, Authenticator.MULTI_AGENT, True),
            ("fee_payer", fee_payer, Authenticator.FEE_PAYER, True),
            ("secp256k1", raw_transaction.sign(secp_key), Authenticator.SINGLE_SENDER, True),
            ("multi_key", multi_key_auth, Authenticator.SINGLE_SENDER, True),
            ("keyless", keyless, Authenticator.SINGLE_SENDER, False),
        ]
        for name, authenticator, variant, verifies in cases:
            with self.subTest(name=name):
                signed = SignedTransaction(raw_transaction, authenticator)
                self.assertEqual(signed.authenticator.variant, variant)
                restored = SignedTransaction.deserialize(Deserializer(signed.bytes()))
                self.assertEqual(restored, signed)
                self.assertEqual(restored.bytes(), signed.bytes())
                self.assertEqual(restored.verify(), verifies)

    def test_signing_message_hash(self):
        signed = SignedTransaction.deserialize(
            Deserializer(bytes.fromhex(self.corpus_signed()))
        )
        self.assertEqual(
            signed.signing_message_hash(),
            hashlib.sha3_256(signed.transaction.keyed()).digest(),
        )
        self.assertNotEqual(signed.signing_message_hash(), signed.hash())

        sender = ed25519.PrivateKey.random()
        secondary = ed25519.PrivateKey.random()
        secondary_address = AccountAddress.from_key(secondary.public_key())
        multi_agent_transaction = MultiAgentRawTransaction(
            signed.transaction, [secondary_address]
        )
        multi_agent = SignedTransaction(
            signed.transaction,
            Authenticator(
                MultiAgentAuthenticator(
                    multi_agent_transaction.sign(sender),
                    [(secondary_address, multi_agent_transaction.sign(secondary))],
                )
            ),
        )
        self.assertEqual(
            multi_agent.signing_message_hash(),
            hashlib.sha3_256(multi_agent_transaction.keyed()).digest(),
        )
        self.assertNotEqual(
            multi_agent.signing_message_hash(), signed.signing_message_hash()
        )

    def corpus_signed(self) -> str:
        return "7deeccb1080854f499ec8b4c1b213b82c5e34b925cf6875fec02d4b77adbd2d60b0000000000000002000000000000000000000000000000000000000000000000000000000000000104636f696e087472616e73666572010700000000000000000000000000000000000000000000000000000000000000010a6170746f735f636f696e094170746f73436f696e0002202d133ddd281bb6205558357cc6ac75661817e9aaeac3afebc32842759cbf7fa9088813000000000000d0070000000000000100000000000000d202964900000000040020b9c6ee1630ef3e711144a648db06bbb2284f7274cfbee53ffcee503cc1a4920040f25b74ec60a38a1ed780fd2bef6ddb6eb4356e3ab39276c9176cdf0fcae2ab37d79b626abb43d926e91595b66503a4a3c90acbae36a28d405e308f3537af720b"

    def test_script_arguments(self):
        ser = Serializer()
        ScriptArgument(ScriptArgument.BOOL, True).serialize(ser)
        self.assertEqual(ser.output(), bytes.fromhex("0501"))

        arguments = [
            ScriptArgument(ScriptArgument.U8, 1),
            ScriptArgument(ScriptArgument.U16, 2),
            ScriptArgument(ScriptArgument.U32, 3),
            ScriptArgument(ScriptArgument.U64, 4),
            ScriptArgument(ScriptArgument.U128, 5),
            ScriptArgument(ScriptArgument.U256, 6),
            ScriptArgument(ScriptArgument.ADDRESS, AccountAddress.from_str("0x1")),
            ScriptArgument(ScriptArgument.U8_VECTOR, b"\x01\x02"),
            ScriptArgument(ScriptArgument.BOOL, False),
        ]
        payload = TransactionPayload(
            Script(b"\xa1\x1c\xeb\x0b", [TypeTag.from_str("u64")], arguments)
        )
        ser = Serializer()
        payload.serialize(ser)
        self.assertEqual(TransactionPayload.deserialize(Deserializer(ser.output())), payload)

        with self.assertRaises(EncodingError):
            ScriptArgument(9, 0)
        with self.assertRaises(EncodingError):
            ScriptArgument.deserialize(Deserializer(b"\x09\x00"))

    def test_module_bundle_rejected(self):
        with self.assertRaises(EncodingError):
            ModuleBundle()
        with self.assertRaises(EncodingError):
            TransactionPayload.deserialize(Deserializer(b"\x01\x00"))

    def test_multisig_payload(self):
        entry_function = EntryFunction.natural(
            "0x1::aptos_account",
            "transfer",
            [],
            [TransactionArgument(100, Serializer.u64)],
        )
        multisig_address = AccountAddress.from_str_relaxed("0xabc")
        for inner in (MultisigTransactionPayload(entry_function), None):
            payload = TransactionPayload(Multisig(multisig_address, inner))
            ser = Serializer()
            payload.serialize(ser)
            output = ser.output()
            self.assertEqual(output[0], TransactionPayload.MULTISIG)
            self.assertEqual(output[33], 0 if inner is None else 1)
            self.assertEqual(TransactionPayload.deserialize(Deserializer(output)), payload)

    def test_view_payload(self):
        payload = ViewFunctionPayload(
            ModuleId.from_str("0x1::coin"),
            "balance",
            [APTOS_COIN_TAG],
            [AccountAddress.from_str("0x1").address],
        )
        ser = Serializer()
        payload.serialize(ser)
        entry = EntryFunction(payload.module, payload.function, payload.ty_args, payload.args)
        ser_entry = Serializer()
        entry.serialize(ser_entry)
        self.assertEqual(ser.output(), ser_entry.output())
        self.assertEqual(ViewFunctionPayload.deserialize(Deserializer(ser.output())), payload)

    def test_module_id(self):
        self.assertEqual(str(ModuleId.from_str("0x1::coin")), "0x1::coin")
        with self.assertRaises(EncodingError):
            ModuleId.from_str("0x1")

    def verify_transactions(
        self,
        raw_transaction_input: str,
        raw_transaction_generated: RawTransaction,
        signed_transaction_input: str,
        signed_transaction_generated: SignedTransaction,
    ):
        ser = Serializer()
        ser.struct(raw_transaction_generated)
        raw_transaction_generated_bytes = ser.output().hex()

        ser = Serializer()
        ser.struct(signed_transaction_generated)
        signed_transaction_generated_bytes = ser.output().hex()

        self.assertEqual(raw_transaction_input, raw_transaction_generated_bytes)
        raw_transaction = RawTransaction.deserialize(
            Deserializer(bytes.fromhex(raw_transaction_input))
        )
        self.assertEqual(raw_transaction_generated, raw_transaction)

        self.assertEqual(signed_transaction_input, signed_transaction_generated_bytes)
        signed_transaction = SignedTransaction.deserialize(
            Deserializer(bytes.fromhex(signed_transaction_input))
        )

        self.assertEqual(signed_transaction.transaction, raw_transaction)
        self.assertTrue(signed_transaction.verify())


APTOS_COIN_TAG = TypeTag(StructTag.from_str("0x1::aptos_coin::AptosCoin"))


if __name__ == "__main__":
    unittest.main()
