import asyncio
import pytest
from ecdsa import SigningKey
from ecdsa.curves import Ed25519

from tonledger.cell import Cell, begin_cell, StateInit, contract_address, state_init_cell
from tonledger.client import (
    TonLedgerClient, Transaction, WalletSpecifiers, PlaintextRequest, AppDataRequest,
    build_transfer_message, build_sign_data, verify_signature,
)
from tonledger.constants import *
from tonledger.errors import (
    ShapeError, TransportError, IntegrityError, HashMismatchError, BadSignatureError,
)
from tonledger.messages import Comment, Unsafe
from tonledger.payload import encode_payload
from tonledger.protocol import TonProtocolPacker, Settings
from tonledger.session import DeviceSession
from tonledger.utils import path_to_bytes, write_uint32, write_uint64

from conftest import FakeTransport, FakeDevice, ok, sig_reply, ADDR_A, ADDR_B

PATH = [44, 607, 0, 0, 0, 0]

WALLET_CODE = begin_cell().store_uint(0xc0de, 16).end_cell()


def wallet_init(chain, public_key):
    data = begin_cell().store_uint(0, 32).store_buffer(public_key).end_cell()
    return StateInit(WALLET_CODE, data)


def run(coro):
    return asyncio.run(coro)


def make_client(public_key, final=b'', **kws):
    t = FakeTransport(FakeDevice(public_key, final))
    return TonLedgerClient(t, **kws), t


def test_accepts_session_or_transport():
    t = FakeTransport()
    assert TonLedgerClient(t).session.transport is t

    s = DeviceSession(t)
    assert TonLedgerClient(s).session is s

    run(TonLedgerClient(t).close())
    assert t.closed


def test_app_queries():
    t = FakeTransport(replies=[
        ok(b'\x01\x03TON\x052.7.0\x01\x00'),
        ok(b'\x01\x05BOLOS\x051.0.0\x01\x00'),
        ok(b'\x02\x07\x01'),
        ok(b'\x02'),
    ])
    c = TonLedgerClient(t)

    assert run(c.is_app_open()) is True
    assert run(c.is_app_open()) is False
    assert run(c.get_version()) == '2.7.1'
    assert run(c.get_settings()) == Settings(blind_signing_enabled=False, expert_mode=True)

    assert t.sent[0][:2] == bytes([LEDGER_SYSTEM, INS_GET_APP_AND_VERSION])
    assert t.sent[2][:2] == bytes([LEDGER_CLA, INS_VERSION])
    assert t.sent[3][:2] == bytes([LEDGER_CLA, INS_SETTINGS])


def test_public_key(public_key):
    c, t = make_client(public_key)

    assert run(c.get_public_key(PATH)) == public_key
    assert t.sent[0] == bytes([LEDGER_CLA, INS_ADDRESS, P1_NON_CONFIRM, 0, 25]) \
                            + path_to_bytes(PATH)

    with pytest.raises(ShapeError):
        run(c.get_public_key([44, 0, 0, 0, 0, 0]))

    c = TonLedgerClient(FakeTransport(replies=[ok(bytes(31))]))
    with pytest.raises(TransportError):
        run(c.get_public_key(PATH))


def test_get_address(public_key):
    c, t = make_client(public_key, wallet_init=wallet_init)

    expect = contract_address(0, wallet_init(0, public_key))
    rv = run(c.get_address(PATH))
    assert rv.public_key == public_key
    assert rv.address == expect.to_string()

    rv = run(c.get_address(PATH, test_only=True, bounceable=False, chain=-1))
    assert rv.address == contract_address(-1, wallet_init(-1, public_key)) \
                                .to_string(bounceable=False, test_only=True)

    # silent requests
    assert all(p[2] == P1_NON_CONFIRM for p in t.sent)


def test_validate_address(public_key):
    c, t = make_client(public_key, wallet_init=wallet_init)

    rv = run(c.validate_address(PATH, test_only=True, chain=-1))
    assert rv.public_key == public_key
    assert t.sent[0][2] == P1_CONFIRM
    assert t.sent[0][3] == ADDR_FLAG_TEST_ONLY | ADDR_FLAG_MASTERCHAIN


def test_no_wallet_init(public_key):
    c, _ = make_client(public_key)
    with pytest.raises(ShapeError):
        run(c.get_address(PATH))


def test_address_proof(public_key, device_key):
    digest = b'\x42' * 32
    c, t = make_client(public_key, sig_reply(device_key.sign(digest), digest))

    rv = run(c.get_address_proof(PATH, 'example.com', 1700000000, b'nonce'))
    assert rv == (device_key.sign(digest), digest)

    assert t.sent[1][:4] == bytes([LEDGER_CLA, INS_PROOF, P1_CONFIRM, 0])
    assert t.sent[1][5:] == TonProtocolPacker.address_proof(PATH, 'example.com',
                                                                1700000000, b'nonce')


def test_address_proof_bad_signature(public_key):
    digest = b'\x42' * 32
    other = SigningKey.from_string(b'\x07' * 32, curve=Ed25519)
    c, _ = make_client(public_key, sig_reply(other.sign(digest), digest))

    with pytest.raises(BadSignatureError):
        run(c.get_address_proof(PATH, 'example.com', 1700000000, b'nonce'))


def signed_data_reply(device_key, schema, timestamp, digest):
    sig = device_key.sign(write_uint32(schema) + write_uint64(timestamp) + digest)
    return sig_reply(sig, digest)


def test_sign_plaintext(public_key, device_key):
    req = PlaintextRequest('Hello TON')
    schema, body, cell = build_sign_data(req)
    assert schema == SCHEMA_PLAINTEXT
    assert body == b'Hello TON'

    c, t = make_client(public_key, signed_data_reply(device_key, schema, 1234, cell.hash))
    rv = run(c.sign_data(PATH, req, timestamp=1234))

    assert rv.cell == cell
    assert rv.timestamp == 1234
    verify_signature(public_key, write_uint32(schema) + write_uint64(1234) + cell.hash,
                        rv.signature)

    # path, then the request in a single final chunk
    assert [p[1] for p in t.sent] == [INS_ADDRESS, INS_SIGN_DATA, INS_SIGN_DATA]
    assert [p[3] for p in t.sent[1:]] == [P2_START, P2_LAST]
    assert t.sent[2][5:] == write_uint32(schema) + write_uint64(1234) + b'Hello TON'


def test_sign_data_hash_mismatch(public_key, device_key):
    c, _ = make_client(public_key,
                        signed_data_reply(device_key, SCHEMA_PLAINTEXT, 1234, b'\x00' * 32))

    with pytest.raises(HashMismatchError):
        run(c.sign_data(PATH, PlaintextRequest('Hello TON'), timestamp=1234))


def test_sign_data_bad_signature(public_key, device_key):
    _, _, cell = build_sign_data(PlaintextRequest('Hello TON'))

    # signed over the wrong timestamp
    c, _ = make_client(public_key,
                        signed_data_reply(device_key, SCHEMA_PLAINTEXT, 9999, cell.hash))

    with pytest.raises(BadSignatureError):
        run(c.sign_data(PATH, PlaintextRequest('Hello TON'), timestamp=1234))


def test_plaintext_must_be_ascii():
    with pytest.raises(ShapeError):
        build_sign_data(PlaintextRequest('naïve'))


def test_app_data(public_key, device_key):
    data = begin_cell().store_uint(7, 8).end_cell()

    with pytest.raises(ShapeError):
        build_sign_data(AppDataRequest(data))

    req = AppDataRequest(data, address=ADDR_A, domain='example.ton')
    schema, body, cell = build_sign_data(req)
    assert schema == SCHEMA_APP_DATA

    s = cell.begin_parse()
    assert s.load_bit() and s.load_address() == ADDR_A
    assert s.load_bit()
    domain = s.load_ref().begin_parse()
    assert domain.load_buffer(domain.remaining_bits // 8) == b'ton\0example\0'
    assert s.load_ref() == data
    assert not s.load_bit()
    s.end_parse()

    c, _ = make_client(public_key, signed_data_reply(device_key, schema, 55, cell.hash))
    rv = run(c.sign_data(PATH, req, timestamp=55))
    assert rv.cell == cell

    # domain only
    schema, body, cell = build_sign_data(AppDataRequest(data, domain='a.ton'))
    assert body[0] == 0
    assert body[1:8] == b'\x01\x05a.ton'


def test_unknown_request():
    with pytest.raises(ShapeError):
        build_sign_data('hello')


def test_transfer_message_layout():
    tx = Transaction(to=ADDR_B, send_mode=3, seqno=5, timeout=1700000000, bounce=True, amount=10)
    c = build_transfer_message(tx)

    s = c.begin_parse()
    assert s.load_uint(32) == DEFAULT_SUBWALLET_ID
    assert s.load_uint(32) == 1700000000
    assert s.load_uint(32) == 5
    assert s.load_uint(8) == 0
    assert s.load_uint(8) == 3
    order = s.load_ref().begin_parse()
    s.end_parse()

    assert order.load_bit() is False
    assert order.load_bit() is True
    assert order.load_bit() is True         # bounce
    assert order.load_bit() is False
    assert order.load_maybe_address() is None
    assert order.load_address() == ADDR_B
    assert order.load_coins() == 10
    assert order.load_bit() is False
    assert order.load_coins() == 0
    assert order.load_coins() == 0
    assert order.load_uint(64) == 0
    assert order.load_uint(32) == 0
    assert order.load_bit() is False        # no state init
    assert order.load_bit() is False        # no body
    order.end_parse()

    # custom subwallet, no op byte
    tx = tx._replace(wallet_specifiers=WalletSpecifiers(False, 42))
    s = build_transfer_message(tx).begin_parse()
    assert s.load_uint(32) == 42
    s.load_uint(64)
    assert s.load_uint(8) == 3
    assert s.remaining_bits == 0


def signed_tx_reply(device_key, digest):
    return sig_reply(device_key.sign(digest), digest)


def test_sign_transaction(public_key, device_key):
    init = wallet_init(0, public_key)
    tx = Transaction(to=ADDR_B, send_mode=3, seqno=5, timeout=1700000000, bounce=True,
                        amount=10, state_init=init, payload=Comment('hi'))

    payload, hints = encode_payload(tx.payload)
    init_cell = state_init_cell(init)
    transfer = build_transfer_message(tx, payload=payload, state_init=init_cell)

    c, t = make_client(public_key, signed_tx_reply(device_key, transfer.hash))
    rv = run(c.sign_transaction(PATH, tx))

    # artifact: signature then the transfer message itself
    s = rv.begin_parse()
    sig = s.load_buffer(64)
    verify_signature(public_key, transfer.hash, sig)
    assert s.as_cell() == transfer

    sent = b''.join(p[5:] for p in t.sent[2:])
    assert sent == TonProtocolPacker.transaction(5, 1700000000, 10, ADDR_B, True, 3,
                            state_init=init_cell, payload=payload, hints=hints)
    assert sent.endswith(b'\x01' + bytes(4) + b'\x00\x02hi')


def test_sign_transaction_unsafe_payload(public_key, device_key):
    raw = begin_cell().store_uint(0xdeadbeef, 32).end_cell()
    tx = Transaction(to=ADDR_A, send_mode=1, seqno=1, timeout=2, bounce=False, amount=3,
                        payload=Unsafe(raw))

    transfer = build_transfer_message(tx, payload=raw)
    c, t = make_client(public_key, signed_tx_reply(device_key, transfer.hash))
    run(c.sign_transaction(PATH, tx))

    sent = b''.join(p[5:] for p in t.sent[2:])
    assert sent.endswith(b'\x01' + b'\x00\x00' + raw.hash + b'\x00')


def test_sign_transaction_hash_mismatch(public_key, device_key):
    tx = Transaction(to=ADDR_B, send_mode=3, seqno=5, timeout=1700000000, bounce=True, amount=10)

    # well-formed and validly signed, but not over what we asked for
    wrong = build_transfer_message(tx._replace(amount=11))
    c, _ = make_client(public_key, signed_tx_reply(device_key, wrong.hash))

    with pytest.raises(HashMismatchError) as ee:
        run(c.sign_transaction(PATH, tx))
    assert ee.value.expected == build_transfer_message(tx).hash
    assert ee.value.got == wrong.hash
    assert isinstance(ee.value, IntegrityError)


def test_sign_transaction_bad_signature(public_key, device_key):
    tx = Transaction(to=ADDR_B, send_mode=3, seqno=5, timeout=1700000000, bounce=True, amount=10)
    transfer = build_transfer_message(tx)

    # right hash, signature over something else
    bad = sig_reply(device_key.sign(b'other'), transfer.hash)
    c, _ = make_client(public_key, bad)

    with pytest.raises(BadSignatureError):
        run(c.sign_transaction(PATH, tx))


def test_short_signature_reply(public_key):
    c, _ = make_client(public_key, b'\x40' + bytes(10))
    tx = Transaction(to=ADDR_B, send_mode=3, seqno=5, timeout=1700000000, bounce=True, amount=10)

    with pytest.raises(IntegrityError):
        run(c.sign_transaction(PATH, tx))


@pytest.mark.parametrize('field, value', [
    ('amount', 2**128),
    ('amount', -1),
    ('seqno', 2**32),
    ('timeout', -1),
    ('send_mode', 256),
])
def test_sign_transaction_bad_fields(public_key, field, value):
    tx = Transaction(to=ADDR_B, send_mode=3, seqno=5, timeout=1700000000, bounce=True, amount=10)
    c, t = make_client(public_key, b'never')

    with pytest.raises(ShapeError):
        run(c.sign_transaction(PATH, tx._replace(**{field: value})))

    # refused before anything reaches the device
    assert t.sent == []


def test_sign_data_bad_request(public_key):
    data = begin_cell().store_uint(7, 8).end_cell()
    c, t = make_client(public_key, b'never')

    with pytest.raises(ShapeError):
        run(c.sign_data(PATH, AppDataRequest(data)))
    assert t.sent == []
