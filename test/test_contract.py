import pytest
from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import function_signature_to_4byte_selector, keccak

from deposit_miner.chain.contract import (
    CLAIM,
    DEPOSITED_TOPIC,
    DEPOSIT_NATIVE_TOKEN,
    WITHDRAW,
    decode_deposited_log,
)
from deposit_miner.chain.types import TransactionIntent

SENDER = "0x" + "ab" * 20


def deposited_log(deposit_id=5, amount=10**17, salt_hash=b"\x07" * 32, block=12, log_index=3, as_hex=False):
    topics = [
        DEPOSITED_TOPIC,
        deposit_id.to_bytes(32, "big"),
        b"\x00" * 12 + bytes.fromhex(SENDER[2:]),
        salt_hash,
    ]
    data = abi_encode(["uint32", "uint256", "uint256"], [0, amount, 1_700_000_000])
    log = {
        "topics": topics,
        "data": data,
        "transactionHash": b"\x09" * 32,
        "blockNumber": block,
        "logIndex": log_index,
    }
    if as_hex:
        log = {
            "topics": ["0x" + topic.hex() for topic in topics],
            "data": "0x" + data.hex(),
            "transactionHash": "0x" + ("09" * 32),
            "blockNumber": hex(block),
            "logIndex": hex(log_index),
        }
    return log


def test_function_selectors_and_payability():
    assert DEPOSIT_NATIVE_TOKEN.signature == "depositNativeToken(bytes32)"
    assert DEPOSIT_NATIVE_TOKEN.payable
    assert not WITHDRAW.payable
    assert WITHDRAW.selector == function_signature_to_4byte_selector("withdraw(bytes,bytes)")
    assert CLAIM.selector != WITHDRAW.selector


def test_value_only_attaches_to_payable_functions():
    common = dict(to="0x" + "11" * 20, nonce=0, sender=SENDER, private_key=b"\x01" * 32)

    deposit = TransactionIntent(label="deposit", function=DEPOSIT_NATIVE_TOKEN, args=(b"\x03" * 32,), value=10**17, **common)
    assert deposit.value == 10**17

    with pytest.raises(ValueError, match="not payable"):
        TransactionIntent(label="withdraw", function=WITHDRAW, args=(b"", b""), value=1, **common)
    with pytest.raises(ValueError, match="non-negative"):
        TransactionIntent(label="deposit", function=DEPOSIT_NATIVE_TOKEN, args=(b"\x03" * 32,), value=-1, **common)


def test_encode_deposit_calldata():
    commitment = b"\x03" * 32
    calldata = DEPOSIT_NATIVE_TOKEN.encode((commitment,))

    assert calldata[:4] == DEPOSIT_NATIVE_TOKEN.selector
    assert abi_decode(["bytes32"], calldata[4:]) == (commitment,)
    with pytest.raises(ValueError):
        DEPOSIT_NATIVE_TOKEN.encode(())


def test_encode_withdraw_calldata():
    calldata = WITHDRAW.encode((b"inputs", b"proof-bytes"))

    assert abi_decode(["bytes", "bytes"], calldata[4:]) == (b"inputs", b"proof-bytes")


def test_deposited_topic_is_event_signature_hash():
    assert DEPOSITED_TOPIC == keccak(text="Deposited(uint256,address,bytes32,uint32,uint256,uint256)")


@pytest.mark.parametrize("as_hex", [False, True])
def test_decode_deposited_log(as_hex):
    decoded = decode_deposited_log(deposited_log(as_hex=as_hex))

    assert decoded.deposit_id == 5
    assert decoded.sender.lower() == SENDER
    assert decoded.recipient_salt_hash == "0x" + "07" * 32
    assert decoded.amount == 10**17
    assert decoded.token_index == 0
    assert decoded.deposited_at == 1_700_000_000
    assert decoded.tx_hash == "0x" + "09" * 32
    assert (decoded.block_number, decoded.log_index) == (12, 3)


def test_decode_rejects_other_events():
    log = deposited_log()
    log["topics"][0] = keccak(text="Transfer(address,address,uint256)")

    with pytest.raises(ValueError):
        decode_deposited_log(log)
