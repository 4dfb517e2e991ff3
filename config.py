# config.py
import os
import json
from decimal import Decimal
from dotenv import load_dotenv
from pathlib import Path

load_dotenv()

BASE_PATH = Path(__file__).resolve().parent / "resources"
CHAINS_PATH = BASE_PATH / "chains"
RESULT_PATH = Path(__file__).resolve().parent / "result"

PRIVATE_KEYS_FILE = os.getenv('PRIVATE_KEYS_FILE', 'privateKeys.json')
NETWORK_TYPES = ("mainnet", "testnet")

# Retry policy applied to every RPC call in the distribution loop
RETRY_MAX_ATTEMPTS = int(os.getenv('RETRY_MAX_ATTEMPTS', '5'))
RETRY_DELAY = float(os.getenv('RETRY_DELAY', '1.0'))  # seconds, constant between attempts

# Pause between submitting a transfer and looking up its receipt
CONFIRMATION_PAUSE = float(os.getenv('CONFIRMATION_PAUSE', '0.01'))

# Randomized amount per transfer, in whole tokens
AMOUNT_MIN = Decimal(os.getenv('AMOUNT_MIN', '15'))
AMOUNT_MAX = Decimal(os.getenv('AMOUNT_MAX', '20'))
AMOUNT_PRECISION = 6

TOKEN_DECIMALS = int(os.getenv('TOKEN_DECIMALS', '18'))
MIN_TOKEN_BALANCE = Decimal(os.getenv('MIN_TOKEN_BALANCE', '0.0001'))

EXTRA_RPC_URLS = os.getenv('EXTRA_RPC_URLS', '')
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

TOKEN_ABI = '''[
  {
    "type": "function",
    "name": "balanceOf",
    "stateMutability": "view",
    "inputs": [{"name": "owner", "type": "address"}],
    "outputs": [{"name": "", "type": "uint256"}]
  },
  {
    "type": "function",
    "name": "transfer",
    "stateMutability": "nonpayable",
    "inputs": [
      {"name": "to", "type": "address"},
      {"name": "amount", "type": "uint256"}
    ],
    "outputs": [{"name": "", "type": "bool"}]
  }
]'''


class ChainConfigError(RuntimeError):
    pass


class ChainConfig:
    """
    One entry of the chain catalog, exposed with the same attribute names
    the rest of the tooling reads (CHAIN_NAME, CHAIN_ID, RPC_URL, ...).
    """

    TOKEN_ABI = TOKEN_ABI

    def __init__(self, name: str, rpc_url: str, chain_id: int, explorer_url: str = "", network_type: str = "mainnet"):
        self.CHAIN_NAME = name
        self.RPC_URL = rpc_url
        self.CHAIN_ID = int(chain_id)
        self.EXPLORER_URL = (explorer_url or "").rstrip("/")
        self.NETWORK_TYPE = network_type

    @classmethod
    def from_entry(cls, entry: dict, network_type: str = "mainnet") -> "ChainConfig":
        try:
            return cls(
                name=str(entry["name"]),
                rpc_url=str(entry["rpcUrl"]),
                chain_id=int(entry["chainId"]),
                explorer_url=str(entry.get("explorer") or ""),
                network_type=network_type,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ChainConfigError(f"Invalid chain entry {entry!r}: {e}") from e

    def tx_url(self, tx_hash: str) -> str:
        if not self.EXPLORER_URL:
            return ""
        return f"{self.EXPLORER_URL}/tx/{tx_hash}"

    def __repr__(self) -> str:
        return f"ChainConfig({self.CHAIN_NAME!r}, chain_id={self.CHAIN_ID})"


def load_chains(network_type: str, chains_path: Path = CHAINS_PATH) -> list:
    """
    Read resources/chains/<network_type>.json and return ChainConfig objects
    in catalog order.
    """
    if network_type not in NETWORK_TYPES:
        raise ChainConfigError(f"Unknown network type: {network_type}")
    catalog = Path(chains_path) / f"{network_type}.json"
    try:
        with open(catalog, "r", encoding="utf-8") as f:
            entries = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ChainConfigError(f"Failed to read chain catalog {catalog}: {e}") from e
    if not isinstance(entries, list) or not entries:
        raise ChainConfigError(f"Chain catalog {catalog} must be a non-empty JSON array")
    return [ChainConfig.from_entry(entry, network_type) for entry in entries]


MODULE_PATH = Path(__file__).resolve().parent / "modules"
