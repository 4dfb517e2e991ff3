import json

import pytest
from eth_account import Account

import config
from config import ChainConfig, ChainConfigError, load_chains
from utils.helper import KeyFileError, Web3Helper, load_funding_wallets, mask_key

KEY_1 = "1" * 64
KEY_2 = "0x" + "2" * 64


def write_keys(tmp_path, payload, raw=False):
    path = tmp_path / "privateKeys.json"
    path.write_text(payload if raw else json.dumps(payload))
    return str(path)


def test_load_funding_wallets_keeps_file_order(tmp_path):
    path = write_keys(tmp_path, [KEY_1, KEY_2])
    wallets = load_funding_wallets(path)
    assert [w.address for w in wallets] == [
        Account.from_key("0x" + KEY_1).address,
        Account.from_key(KEY_2).address,
    ]


def test_load_funding_wallets_accepts_whitespace_and_uppercase(tmp_path):
    path = write_keys(tmp_path, ["  0x" + "AB" * 32 + " "])
    wallets = load_funding_wallets(path)
    assert wallets[0].address == Account.from_key("0x" + "ab" * 32).address


def test_missing_key_file_is_fatal(tmp_path):
    with pytest.raises(KeyFileError, match="Failed to read"):
        load_funding_wallets(str(tmp_path / "nope.json"))


@pytest.mark.parametrize("payload,message", [
    ("[not json", "not valid JSON"),
    (json.dumps({"key": KEY_1}), "JSON array"),
    (json.dumps([]), "No private keys"),
    (json.dumps([KEY_1, 123]), "must be strings"),
    (json.dumps([KEY_1, "xyz"]), "invalid private key"),
    (json.dumps(["0" * 64]), "invalid private key"),
])
def test_malformed_key_file_is_fatal(tmp_path, payload, message):
    path = write_keys(tmp_path, payload, raw=True)
    with pytest.raises(KeyFileError, match=message):
        load_funding_wallets(path)


def test_mask_key_hides_middle():
    assert mask_key("0x" + "a" * 64) == "0xaaaa...aaaa"
    assert mask_key("short") == "****"


def test_load_chains_from_bundled_catalogs():
    mainnet = load_chains("mainnet")
    testnet = load_chains("testnet")
    assert any(c.CHAIN_ID == 1 for c in mainnet)
    assert any(c.CHAIN_ID == 11155111 for c in testnet)
    assert all(isinstance(c, ChainConfig) and c.RPC_URL.startswith("http") for c in mainnet + testnet)
    assert {c.NETWORK_TYPE for c in testnet} == {"testnet"}


def test_load_chains_rejects_unknown_network_type():
    with pytest.raises(ChainConfigError):
        load_chains("devnet")


def test_load_chains_rejects_bad_entries(tmp_path):
    (tmp_path / "mainnet.json").write_text(json.dumps([{"name": "X", "chainId": 1}]))
    with pytest.raises(ChainConfigError, match="Invalid chain entry"):
        load_chains("mainnet", chains_path=tmp_path)


def test_load_chains_rejects_unreadable_catalog(tmp_path):
    with pytest.raises(ChainConfigError, match="Failed to read"):
        load_chains("testnet", chains_path=tmp_path)


def test_chain_config_tx_url():
    chain = ChainConfig("Sepolia", "https://rpc.example", 11155111, "https://sepolia.etherscan.io/")
    assert chain.tx_url("0xabc") == "https://sepolia.etherscan.io/tx/0xabc"
    assert ChainConfig("Local", "http://127.0.0.1:8545", 31337).tx_url("0xabc") == ""


def test_web3_helper_merges_extra_rpc_urls(monkeypatch):
    monkeypatch.setattr(config, "EXTRA_RPC_URLS", " https://b.example, https://a.example ,https://b.example")
    chain = ChainConfig("Test", "https://a.example", 1)
    helper = Web3Helper(chain)
    assert helper.rpc_urls == ["https://a.example", "https://b.example"]
    assert helper.provider.current_url == "https://a.example"


def test_web3_helper_token_contract_uses_checksum_address(monkeypatch):
    monkeypatch.setattr(config, "EXTRA_RPC_URLS", "")
    helper = Web3Helper(ChainConfig("Test", "https://a.example", 1))
    token = helper.token_contract("0x" + "ab" * 20)
    assert token.address == helper.w3.to_checksum_address("0x" + "ab" * 20)
    assert {f["name"] for f in helper.erc20_abi} == {"balanceOf", "transfer"}
