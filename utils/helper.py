import os
import re
import json
from typing import List

import questionary
from web3 import AsyncWeb3, Web3
from eth_account import Account

from .rpc_provider import RotatingAsyncHTTPProvider
import config


_PRIV_RE = re.compile(r"^(?:0x)?([0-9a-fA-F]{64})$")


class KeyFileError(RuntimeError):
    pass


class PromptAborted(RuntimeError):
    pass


def mask_key(key: str) -> str:
    return f"{key[:6]}...{key[-4:]}" if len(key) > 12 else "****"


class Web3Helper:
    """
    Async Web3 wiring for one chain: rotating provider over the chain's RPC URL
    plus EXTRA_RPC_URLS, the AsyncWeb3 client and the token contract handle.
    """

    def __init__(self, chain_config):
        self.rpc_urls: List[str] = self._build_rpc_urls(chain_config)
        self.provider = RotatingAsyncHTTPProvider(self.rpc_urls)
        self.w3 = AsyncWeb3(self.provider)
        self.erc20_abi = json.loads(chain_config.TOKEN_ABI)

    # ---------- RPC ----------
    def _build_rpc_urls(self, chain_config) -> List[str]:
        urls: List[str] = []
        base = getattr(chain_config, 'RPC_URL', None)
        if base:
            urls.append(str(base))

        extras = [u.strip() for u in (config.EXTRA_RPC_URLS or '').split(',') if u.strip()]
        urls.extend(extras)

        dedup = list(dict.fromkeys(urls))
        if not dedup:
            raise RuntimeError('No RPC URLs configured. Set rpcUrl in the chain catalog or EXTRA_RPC_URLS in .env')
        return dedup

    # ---------- ERC20 ----------
    def token_contract(self, token_address: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=self.erc20_abi)

    async def close(self) -> None:
        # drops the aiohttp sessions cached per endpoint
        await self.provider.disconnect()


def _normalize_private_key(entry) -> str:
    if not isinstance(entry, str):
        raise KeyFileError(f"private key entries must be strings, got {type(entry).__name__}")
    m = _PRIV_RE.match(entry.strip())
    if not m:
        raise KeyFileError(f"invalid private key: {mask_key(entry.strip())}")
    return "0x" + m.group(1).lower()


def load_funding_wallets(key_file: str = config.PRIVATE_KEYS_FILE) -> list:
    """
    Read a JSON array of hex private keys and derive one LocalAccount per entry,
    in file order. Anything unreadable or malformed raises KeyFileError.
    """
    try:
        with open(key_file, "r", encoding="utf-8-sig") as f:
            entries = json.load(f)
    except OSError as e:
        raise KeyFileError(f"Failed to read private keys file {key_file}: {e}") from e
    except json.JSONDecodeError as e:
        raise KeyFileError(f"Private keys file {key_file} is not valid JSON: {e}") from e

    if not isinstance(entries, list):
        raise KeyFileError(f"Private keys file {key_file} must contain a JSON array")
    if not entries:
        raise KeyFileError(f"No private keys found in {key_file}")

    wallets = []
    for entry in entries:
        key = _normalize_private_key(entry)
        try:
            wallets.append(Account.from_key(key))
        except Exception as e:  # eth_keys raises its own ValidationError for out-of-range keys
            raise KeyFileError(f"invalid private key: {mask_key(key)} ({e})") from e
    return wallets


# ---------- Prompts ----------
def _answer(question):
    answer = question.ask()
    if answer is None:
        raise PromptAborted("Prompt cancelled by user")
    return answer


def select_network_type() -> str:
    return _answer(questionary.select("Select network type:", choices=list(config.NETWORK_TYPES)))


def select_chain(chains: list):
    choices = [
        questionary.Choice(title=f"{idx}. {c.CHAIN_NAME} (chain id {c.CHAIN_ID})", value=c)
        for idx, c in enumerate(chains, 1)
    ]
    return _answer(questionary.select("Select chain:", choices=choices))


def select_chain_config():
    network_type = select_network_type()
    chains = config.load_chains(network_type)
    return select_chain(chains)


def ask_token_address() -> str:
    address = _answer(questionary.text(
        "Enter the ERC20 token contract address:",
        validate=lambda v: Web3.is_address(v.strip()) or "Not a valid address",
    ))
    return Web3.to_checksum_address(address.strip())


def ask_transaction_count() -> int:
    count = _answer(questionary.text(
        "Enter the number of transactions you want to send for each address:",
        validate=lambda v: v.strip().isdigit() or "Enter a whole number",
    ))
    return int(count.strip())


def ensure_dir(path) -> str:
    path = os.path.abspath(os.path.normpath(str(path)))
    if not os.path.exists(path):
        os.makedirs(path)
    return path
