"""EVM ledger gateway: ERC-20 custody on an Ethereum-compatible chain.

The custody account is the address of the configured private key. Escrowed
tokens are pulled into it with transferFrom (the escrower must approve the
custody address first) and paid out of it with transfer. Native currency
is paid with a plain value transfer.

Actual amounts are measured, not assumed: every token movement reads the
receiving balance before and after the transaction, so tokens that charge
a fee or rebase on transfer report what really arrived.

Settings come from the environment, optionally seeded from a .env file:

    EVM_RPC_URL      RPC endpoint
    EVM_PRIVATE_KEY  hex private key of the custody account
    EVM_CHAIN_ID     chain id (default 11155111, Sepolia)
    EVM_TOKENS       denomination=address pairs, comma separated
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from eth_account import Account
from web3 import HTTPProvider, Web3
from web3.exceptions import Web3Exception

from hedgeswap.ledger.gateway import LedgerError

log = logging.getLogger(__name__)

DEFAULT_CHAIN_ID = 11155111  # Sepolia
NATIVE_TRANSFER_GAS = 21_000

# Minimal ERC-20 ABI: only the functions custody needs
ERC20_ABI = [
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "transfer",
        "type": "function",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "transferFrom",
        "type": "function",
        "inputs": [
            {"name": "from", "type": "address"},
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]


@dataclass(frozen=True)
class EvmSettings:
    """Connection and custody settings for Web3LedgerGateway."""
    rpc_url: str
    private_key: str
    chain_id: int = DEFAULT_CHAIN_ID
    tokens: Dict[str, str] = field(default_factory=dict)
    gas: int = 120_000
    gas_price_gwei: str = "2"

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> EvmSettings:
        """Read settings from the environment (after loading env_file if given)."""
        if env_file is not None:
            load_dotenv(env_file)
        rpc_url = os.getenv("EVM_RPC_URL")
        private_key = os.getenv("EVM_PRIVATE_KEY")
        if not rpc_url or not private_key:
            raise ValueError("EVM_RPC_URL and EVM_PRIVATE_KEY must be set")
        return cls(
            rpc_url=rpc_url,
            private_key=private_key,
            chain_id=int(os.getenv("EVM_CHAIN_ID", str(DEFAULT_CHAIN_ID))),
            tokens=parse_token_map(os.getenv("EVM_TOKENS", "")),
        )


def parse_token_map(raw: str) -> Dict[str, str]:
    """Parse 'USDC=0xabc...,DAI=0xdef...' into a denomination map."""
    tokens: Dict[str, str] = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        denomination, sep, address = pair.partition("=")
        if not sep or not denomination.strip() or not address.strip():
            raise ValueError(f"Malformed EVM_TOKENS entry: {pair!r}")
        tokens[denomination.strip()] = address.strip()
    return tokens


class Web3LedgerGateway:
    """LedgerGateway backed by web3 and a locally held custody key.

    Usage:
        gateway = Web3LedgerGateway.from_settings(EvmSettings.from_env(Path(".env")))
        received = gateway.transfer_in("USDC", escrower_address, 1_000_000)
    """

    def __init__(
        self,
        w3: Any,
        private_key: str,
        tokens: Dict[str, str],
        chain_id: int = DEFAULT_CHAIN_ID,
        gas: int = 120_000,
        gas_price_gwei: str = "2",
        receipt_timeout: int = 300,
    ) -> None:
        self._w3 = w3
        self._account = Account.from_key(private_key)
        self._tokens = {
            name: Web3.to_checksum_address(address)
            for name, address in tokens.items()
        }
        self._chain_id = chain_id
        self._gas = gas
        self._gas_price = Web3.to_wei(gas_price_gwei, "gwei")
        self._receipt_timeout = receipt_timeout

    @classmethod
    def from_settings(cls, settings: EvmSettings) -> Web3LedgerGateway:
        return cls(
            Web3(HTTPProvider(settings.rpc_url)),
            settings.private_key,
            settings.tokens,
            chain_id=settings.chain_id,
            gas=settings.gas,
            gas_price_gwei=settings.gas_price_gwei,
        )

    @property
    def custody(self) -> str:
        return self._account.address

    def transfer_in(self, denomination: str, source: str, amount: int) -> int:
        token = self._token(denomination)
        source = Web3.to_checksum_address(source)
        before = self._balance_of(token, self.custody)
        self._send_call(token.functions.transferFrom(source, self.custody, amount))
        return self._balance_of(token, self.custody) - before

    def transfer_out(self, denomination: str, destination: str, amount: int) -> int:
        token = self._token(denomination)
        destination = Web3.to_checksum_address(destination)
        before = self._balance_of(token, destination)
        self._send_call(token.functions.transfer(destination, amount))
        return self._balance_of(token, destination) - before

    def native_transfer(self, destination: str, amount: int) -> bool:
        tx = {
            "to": Web3.to_checksum_address(destination),
            "value": amount,
            "gas": NATIVE_TRANSFER_GAS,
            "gasPrice": self._gas_price,
            "nonce": self._nonce(),
            "chainId": self._chain_id,
        }
        receipt = self._sign_and_send(tx)
        return receipt.status == 1

    def _token(self, denomination: str) -> Any:
        address = self._tokens.get(denomination)
        if address is None:
            raise LedgerError(f"No token contract configured for {denomination}")
        return self._w3.eth.contract(address=address, abi=ERC20_ABI)

    def _balance_of(self, token: Any, owner: str) -> int:
        try:
            return int(token.functions.balanceOf(owner).call())
        except (Web3Exception, ValueError) as e:
            raise LedgerError(f"balanceOf failed: {e}") from e

    def _nonce(self) -> int:
        return self._w3.eth.get_transaction_count(self.custody)

    def _send_call(self, call: Any) -> None:
        try:
            tx = call.build_transaction({
                "from": self.custody,
                "gas": self._gas,
                "gasPrice": self._gas_price,
                "nonce": self._nonce(),
                "chainId": self._chain_id,
            })
        except (Web3Exception, ValueError) as e:
            raise LedgerError(f"Could not build transaction: {e}") from e
        receipt = self._sign_and_send(tx)
        if receipt.status != 1:
            raise LedgerError(f"Token transaction reverted in block {receipt.blockNumber}")

    def _sign_and_send(self, tx: Dict[str, Any]) -> Any:
        tx = {k: v for k, v in tx.items() if k != "from"}
        try:
            signed = self._account.sign_transaction(tx)
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
            log.info("Sent tx %s", tx_hash.hex())
            return self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout,
            )
        except (Web3Exception, ValueError) as e:
            raise LedgerError(f"Transaction failed: {e}") from e
