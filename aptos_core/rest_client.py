# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Asynchronous client for the Aptos full node REST API.

:class:`RestClient` implements :class:`aptos_core.transport.Transport` over httpx, plus the
handful of reads needed around it: node info, account info, module ABIs and transaction
lookups. It does not retry, paginate or cache anything besides the chain id.

Examples:
    Submitting a transfer::

        client = RestClient("https://fullnode.devnet.aptoslabs.com/v1")
        raw_transaction = await build_transaction(client, sender.address(), payload)
        signed = SignedTransaction(raw_transaction, sender.sign_transaction(raw_transaction))
        txn_hash = await client.submit_signed_transaction(signed.bytes())
        await client.wait_for_transaction(txn_hash)
        await client.close()
"""

from __future__ import annotations

import asyncio
import logging
import unittest
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from .account_address import AccountAddress
from .bcs import Serializer
from .errors import ApiError
from .marshaller import MoveModule
from .metadata import Metadata
from .transactions import (
    EntryFunction,
    ModuleId,
    RawTransaction,
    SignedTransaction,
    ViewFunctionPayload,
)
from .transport import Transport, build_transaction

SIGNED_TRANSACTION_CONTENT_TYPE = "application/x.aptos.signed_transaction+bcs"
VIEW_FUNCTION_CONTENT_TYPE = "application/x.aptos.view_function+bcs"


@dataclass
class ClientConfig:
    """Connection settings for :class:`RestClient`.

    Attributes:
        transaction_wait_in_seconds: How long :meth:`RestClient.wait_for_transaction`
            polls before giving up.
        timeout_in_seconds: Connect, read and write timeout of each request.
        http2: Negotiate HTTP/2 with the node.
        api_key: Sent as a bearer token when set.
    """

    transaction_wait_in_seconds: int = 20
    timeout_in_seconds: float = 60.0
    http2: bool = True
    api_key: Optional[str] = None


class RestClient:
    _chain_id: Optional[int]
    client: httpx.AsyncClient
    client_config: ClientConfig
    base_url: str

    def __init__(
        self,
        base_url: str,
        client_config: Optional[ClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        client_config = client_config or ClientConfig()
        self.base_url = base_url.rstrip("/")
        # Default timeouts but do not set a pool timeout, since the idea is that jobs will wait as
        # long as progress is being made.
        timeout = httpx.Timeout(client_config.timeout_in_seconds, pool=None)
        headers = {Metadata.APTOS_HEADER: Metadata.get_aptos_header_val()}
        if client_config.api_key:
            headers["Authorization"] = f"Bearer {client_config.api_key}"
        self.client = httpx.AsyncClient(
            http2=client_config.http2,
            limits=httpx.Limits(),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )
        self.client_config = client_config
        self._chain_id = None

    async def close(self):
        await self.client.aclose()

    #
    # Transport
    #

    async def get_chain_id(self) -> int:
        """Chain id of the node, fetched once and then cached."""
        if self._chain_id is None:
            info = await self.info()
            self._chain_id = int(info["chain_id"])
            logging.info(f"Connected to chain {self._chain_id} at {self.base_url}")
        return self._chain_id

    async def get_sequence_number(self, address: AccountAddress) -> int:
        """Sequence number of ``address``; an account that does not exist yet is at 0."""
        try:
            account = await self.account(address)
        except ApiError as e:
            if e.status_code != 404:
                raise
            logging.debug(f"Account {address} not found, using sequence number 0")
            return 0
        return int(account["sequence_number"])

    async def submit_signed_transaction(self, signed_transaction: bytes) -> str:
        response = await self.client.post(
            f"{self.base_url}/transactions",
            headers={"Content-Type": SIGNED_TRANSACTION_CONTENT_TYPE},
            content=signed_transaction,
        )
        self._check(response)
        txn_hash = response.json()["hash"]
        logging.info(f"Submitted transaction {txn_hash}")
        return txn_hash

    async def wait_for_transaction(self, txn_hash: str) -> Dict[str, Any]:
        """Poll once a second until ``txn_hash`` leaves the pending state.

        Raises:
            ApiError: If the wait times out or the transaction did not succeed.
        """
        count = 0
        while await self.transaction_pending(txn_hash):
            if count >= self.client_config.transaction_wait_in_seconds:
                raise ApiError(f"Transaction {txn_hash} timed out")
            logging.debug(f"Transaction {txn_hash} pending after {count}s")
            await asyncio.sleep(1)
            count += 1

        transaction = await self.transaction_by_hash(txn_hash)
        if not transaction.get("success", False):
            raise ApiError(
                f"Transaction {txn_hash} failed: {transaction.get('vm_status')}"
            )
        return transaction

    async def view(
        self, payload: ViewFunctionPayload, ledger_version: Optional[int] = None
    ) -> List[Any]:
        ser = Serializer()
        payload.serialize(ser)
        response = await self.client.post(
            f"{self.base_url}/view",
            params=_params({"ledger_version": ledger_version}),
            headers={
                "Accept": "application/json",
                "Content-Type": VIEW_FUNCTION_CONTENT_TYPE,
            },
            content=ser.output(),
        )
        self._check(response)
        return response.json()

    #
    # Reads
    #

    async def info(self) -> Dict[str, Any]:
        response = await self.client.get(self.base_url)
        self._check(response)
        return response.json()

    async def account(
        self, address: AccountAddress, ledger_version: Optional[int] = None
    ) -> Dict[str, Any]:
        response = await self._get(
            f"accounts/{address}", {"ledger_version": ledger_version}
        )
        self._check(response, str(address))
        return response.json()

    async def module_abi(self, module: ModuleId) -> MoveModule:
        """ABI of ``module``, usable with :func:`aptos_core.marshaller.entry_function_from_abi`."""
        response = await self._get(f"accounts/{module.address}/module/{module.name}")
        self._check(response, str(module))
        return MoveModule.from_dict(response.json()["abi"])

    async def transaction_pending(self, txn_hash: str) -> bool:
        response = await self._get(f"transactions/by_hash/{txn_hash}")
        # A transaction the node has not indexed yet is still in flight.
        if response.status_code == 404:
            return True
        self._check(response, txn_hash)
        return response.json()["type"] == "pending_transaction"

    async def transaction_by_hash(self, txn_hash: str) -> Dict[str, Any]:
        response = await self._get(f"transactions/by_hash/{txn_hash}")
        self._check(response, txn_hash)
        return response.json()

    async def simulate_transaction(
        self, signed_transaction: SignedTransaction
    ) -> List[Dict[str, Any]]:
        """Simulate a transaction carrying zeroed signatures, see ``sign_simulated``."""
        response = await self.client.post(
            f"{self.base_url}/transactions/simulate",
            headers={"Content-Type": SIGNED_TRANSACTION_CONTENT_TYPE},
            content=signed_transaction.bytes(),
        )
        self._check(response)
        return response.json()

    async def _get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        return await self.client.get(
            url=f"{self.base_url}/{endpoint}",
            params=_params(params),
        )

    def _check(self, response: httpx.Response, context: Optional[str] = None):
        if response.status_code >= 400:
            message = response.text if context is None else f"{response.text} - {context}"
            logging.warning(
                f"{response.request.method} {response.request.url} returned {response.status_code}"
            )
            raise ApiError(message, response.status_code)


def _params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    params = {} if params is None else params
    return {key: val for key, val in params.items() if val is not None}


class Test(unittest.IsolatedAsyncioTestCase):
    base_url = "https://node.test/v1"

    def client(self, handler) -> RestClient:
        return RestClient(
            self.base_url,
            ClientConfig(http2=False, transaction_wait_in_seconds=2, api_key="key"),
            transport=httpx.MockTransport(handler),
        )

    async def test_chain_id_is_cached(self):
        requests: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"chain_id": 4})

        client = self.client(handler)
        self.assertEqual(await client.get_chain_id(), 4)
        self.assertEqual(await client.get_chain_id(), 4)
        self.assertEqual(len(requests), 1)
        self.assertTrue(requests[0].headers[Metadata.APTOS_HEADER].startswith("aptos-core-client/"))
        self.assertEqual(requests[0].headers["Authorization"], "Bearer key")
        await client.close()

    async def test_sequence_number(self):
        known = AccountAddress.from_str_relaxed("0xa")

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith(f"/accounts/{known}"):
                return httpx.Response(200, json={"sequence_number": "12"})
            return httpx.Response(404, json={"error_code": "account_not_found"})

        client = self.client(handler)
        self.assertEqual(await client.get_sequence_number(known), 12)
        self.assertEqual(
            await client.get_sequence_number(AccountAddress.from_str_relaxed("0xb")), 0
        )
        await client.close()

    async def test_errors(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom")

        client = self.client(handler)
        with self.assertRaises(ApiError) as error:
            await client.get_sequence_number(AccountAddress.from_str_relaxed("0xa"))
        self.assertEqual(error.exception.status_code, 500)
        await client.close()

    async def test_submit_and_wait(self):
        submitted: List[bytes] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                self.assertEqual(
                    request.headers["Content-Type"], SIGNED_TRANSACTION_CONTENT_TYPE
                )
                submitted.append(request.content)
                return httpx.Response(202, json={"hash": "0xabc"})
            return httpx.Response(
                200,
                json={"type": "user_transaction", "hash": "0xabc", "success": True},
            )

        client = self.client(handler)
        txn_hash = await client.submit_signed_transaction(b"\x01\x02")
        self.assertEqual(txn_hash, "0xabc")
        self.assertEqual(submitted, [b"\x01\x02"])
        result = await client.wait_for_transaction(txn_hash)
        self.assertTrue(result["success"])
        await client.close()

    async def test_failed_transaction(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "type": "user_transaction",
                    "success": False,
                    "vm_status": "Move abort",
                },
            )

        client = self.client(handler)
        with self.assertRaises(ApiError):
            await client.wait_for_transaction("0xabc")
        await client.close()

    async def test_view(self):
        payload = ViewFunctionPayload(
            ModuleId.from_str("0x1::coin"), "balance", [], [b"\x01"]
        )

        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.url.path, "/v1/view")
            self.assertEqual(request.url.params["ledger_version"], "7")
            self.assertEqual(request.headers["Content-Type"], VIEW_FUNCTION_CONTENT_TYPE)
            ser = Serializer()
            payload.serialize(ser)
            self.assertEqual(request.content, ser.output())
            return httpx.Response(200, json=["100"])

        client = self.client(handler)
        self.assertEqual(await client.view(payload, 7), ["100"])
        await client.close()

    async def test_module_abi(self):
        abi = {
            "address": "0x1",
            "name": "coin",
            "exposed_functions": [
                {
                    "name": "transfer",
                    "is_entry": True,
                    "generic_type_params": [{"constraints": []}],
                    "params": ["&signer", "address", "u64"],
                    "return": [],
                }
            ],
        }

        def handler(request: httpx.Request) -> httpx.Response:
            self.assertTrue(request.url.path.endswith("/module/coin"))
            return httpx.Response(200, json={"abi": abi})

        client = self.client(handler)
        module = await client.module_abi(ModuleId.from_str("0x1::coin"))
        self.assertTrue(module.function("transfer").is_entry)
        await client.close()

    async def test_build_transaction(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1":
                return httpx.Response(200, json={"chain_id": "4"})
            return httpx.Response(200, json={"sequence_number": "3"})

        client = self.client(handler)
        transport: Transport = client
        raw_transaction = await build_transaction(
            transport,
            AccountAddress.from_str_relaxed("0xa"),
            EntryFunction.natural("0x1::aptos_account", "create_account", [], []),
        )
        assert isinstance(raw_transaction, RawTransaction)
        self.assertEqual(raw_transaction.chain_id, 4)
        self.assertEqual(raw_transaction.sequence_number, 3)
        await client.close()


if __name__ == "__main__":
    unittest.main()
