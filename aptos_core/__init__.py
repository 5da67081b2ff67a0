# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Aptos client core: BCS encoding, account addresses, Move type tags, keys and
authenticators, transaction building and signing, and a small async REST client.

Quick Start:
    Transfer coins with an entry function::

        from aptos_core.account import Account
        from aptos_core.account_address import AccountAddress
        from aptos_core.bcs import Serializer
        from aptos_core.rest_client import RestClient
        from aptos_core.transactions import (
            EntryFunction,
            SignedTransaction,
            TransactionArgument,
        )
        from aptos_core.transport import build_transaction
        from aptos_core.type_tag import TypeTag

        async def transfer(sender: Account, receiver: AccountAddress, amount: int):
            client = RestClient("https://fullnode.devnet.aptoslabs.com/v1")
            payload = EntryFunction.natural(
                "0x1::aptos_account",
                "transfer_coins",
                [TypeTag.from_str("0x1::aptos_coin::AptosCoin")],
                [
                    TransactionArgument(receiver, Serializer.struct),
                    TransactionArgument(amount, Serializer.u64),
                ],
            )
            raw = await build_transaction(client, sender.address(), payload)
            signed = SignedTransaction(raw, sender.sign_transaction(raw))
            txn_hash = await client.submit_signed_transaction(signed.bytes())
            await client.wait_for_transaction(txn_hash)
            await client.close()

Module Organization:
    - **bcs**: Binary Canonical Serialization
    - **account_address**: address parsing, display and derivation
    - **type_tag**: Move type tags and their text syntax
    - **marshaller**: argument conversion driven by type tags and module ABIs
    - **ed25519**, **secp256k1_ecdsa**, **asymmetric_crypto_wrapper**: keys and signatures
    - **authenticator**: transaction and account authenticators
    - **transactions**: raw, multi-agent, fee payer and signed transactions
    - **account**: local accounts and key storage
    - **transport**, **rest_client**: building and submitting transactions
"""
