#
# client.py
#
# Host side of the TON app: addresses, proofs, data and transaction signing.
#
# Rule for everything in here: the device's word is never taken for what it
# signed. We rebuild the exact cell (or bytes) the device should have hashed,
# compare hashes, and only then check the signature against the public key
# we fetched at the start of the same operation.
#
# The wallet contract's code is not ours to know: pass wallet_init, a
# function (chain, public_key) => StateInit, to be able to derive addresses.
#
import time
from collections import namedtuple

from ecdsa import VerifyingKey
from ecdsa.curves import Ed25519
from ecdsa.keys import BadSignatureError as EcdsaBadSignature
from ecdsa.errors import MalformedPointError

from .cell import Cell, begin_cell, state_init_cell, contract_address
from .constants import *
from .errors import ShapeError, HashMismatchError, BadSignatureError
from .payload import encode_payload
from .protocol import TonProtocolPacker, TonProtocolUnpacker
from .session import DeviceSession
from .utils import (
    path_to_bytes, address_flags, write_uint8, write_uint32, write_uint64, write_address,
    write_cell_ref,
)

AddressInfo = namedtuple('AddressInfo', 'address public_key')
AddressProof = namedtuple('AddressProof', 'signature hash')
SignedData = namedtuple('SignedData', 'signature cell timestamp')

# sign-data requests
PlaintextRequest = namedtuple('PlaintextRequest', 'text')
AppDataRequest = namedtuple('AppDataRequest', 'data address domain ext', defaults=(None, None, None))

WalletSpecifiers = namedtuple('WalletSpecifiers', 'include_wallet_op subwallet_id', defaults=(None,))
Transaction = namedtuple('Transaction',
                'to send_mode seqno timeout bounce amount state_init payload wallet_specifiers',
                defaults=(None, None, None))


def verify_signature(public_key, message, signature):
    # ed25519; any failure at all is the same answer: don't trust it
    try:
        vk = VerifyingKey.from_string(bytes(public_key), curve=Ed25519)
        vk.verify(bytes(signature), bytes(message))
    except (EcdsaBadSignature, MalformedPointError, ValueError):
        raise BadSignatureError('Received signature is invalid')


def build_sign_data(req):
    # returns (schema, body for the device, cell whose hash the device signs)
    if isinstance(req, PlaintextRequest):
        try:
            data = req.text.encode('ascii')
        except UnicodeEncodeError:
            raise ShapeError('Plaintext to sign must be ASCII')
        cell = begin_cell().store_string_tail(data).end_cell()
        return SCHEMA_PLAINTEXT, data, cell

    if isinstance(req, AppDataRequest):
        if req.address is None and req.domain is None:
            raise ShapeError("At least one of `address` and `domain` must be set "
                                "when using 'app-data' request")
        b = begin_cell()
        d = b''

        if req.address is not None:
            b.store_bit(1).store_address(req.address)
            d += write_uint8(1) + write_address(req.address)
        else:
            b.store_bit(0)
            d += write_uint8(0)

        if req.domain is not None:
            try:
                db = req.domain.encode('ascii')
            except UnicodeEncodeError:
                raise ShapeError('Domain must be ASCII')

            # labels in reverse order, each one zero-terminated
            inner = begin_cell()
            for label in reversed(req.domain.split('.')):
                inner.store_buffer(label.encode('ascii')).store_uint(0, 8)

            b.store_bit(1).store_ref(inner)
            d += write_uint8(1) + write_uint8(len(db)) + db
        else:
            b.store_bit(0)
            d += write_uint8(0)

        b.store_ref(req.data)
        d += write_cell_ref(req.data)

        if req.ext is not None:
            b.store_bit(1).store_ref(req.ext)
            d += write_uint8(1) + write_cell_ref(req.ext)
        else:
            b.store_bit(0)
            d += write_uint8(0)

        return SCHEMA_APP_DATA, d, b.end_cell()

    raise ShapeError('Sign data request type %r not supported' % type(req).__name__)


def _state_init_cell(state_init):
    if state_init is None or isinstance(state_init, Cell):
        return state_init
    return state_init_cell(state_init)


def build_transfer_message(tx, payload=None, state_init=None):
    # The signing message the wallet contract expects for a single internal
    # transfer. This must be bit-identical to what the device hashed.
    #
    # int_msg_info$0 ihr_disabled:Bool bounce:Bool bounced:Bool src dest
    #   value:CurrencyCollection ihr_fee fwd_fee created_lt:uint64 created_at:uint32
    order = begin_cell() \
                .store_bit(0) \
                .store_bit(1) \
                .store_bit(tx.bounce) \
                .store_bit(0) \
                .store_address(None) \
                .store_address(tx.to) \
                .store_coins(tx.amount) \
                .store_bit(0) \
                .store_coins(0) \
                .store_coins(0) \
                .store_uint(0, 64) \
                .store_uint(0, 32)

    if state_init is not None:
        # present, and always in a ref
        order.store_bit(1).store_bit(1).store_ref(state_init)
    else:
        order.store_bit(0)

    if payload is not None:
        order.store_bit(1).store_ref(payload)
    else:
        order.store_bit(0)

    ws = tx.wallet_specifiers
    subwallet_id = DEFAULT_SUBWALLET_ID
    include_op = True
    if ws is not None:
        include_op = ws.include_wallet_op
        if ws.subwallet_id is not None:
            subwallet_id = ws.subwallet_id

    b = begin_cell() \
            .store_uint(subwallet_id, 32) \
            .store_uint(tx.timeout, 32) \
            .store_uint(tx.seqno, 32)

    if include_op:
        b.store_uint(0, 8)          # simple send

    return b.store_uint(tx.send_mode, 8).store_ref(order).end_cell()


class TonLedgerClient:
    def __init__(self, session, wallet_init=None):
        # accept a bare transport too
        if not isinstance(session, DeviceSession):
            session = DeviceSession(session)

        self.session = session
        self.wallet_init = wallet_init

    async def close(self):
        await self.session.close()

    #
    # Apps
    #

    async def get_current_app(self):
        data = await self.session.exchange(INS_GET_APP_AND_VERSION, cla=LEDGER_SYSTEM)
        return TonProtocolUnpacker.current_app(data)

    async def is_app_open(self):
        return (await self.get_current_app()).name == APP_NAME

    async def get_version(self):
        data = await self.session.exchange(INS_VERSION)
        return TonProtocolUnpacker.version(data)

    async def get_settings(self):
        data = await self.session.exchange(INS_SETTINGS)
        return TonProtocolUnpacker.settings(data)

    #
    # Keys and addresses
    #

    async def get_public_key(self, path, display=False, test_only=False, chain=0):
        # with display, the device shows the address and waits for the user
        flags = address_flags(test_only=test_only, chain=chain).flags
        p1 = P1_CONFIRM if display else P1_NON_CONFIRM
        data = await self.session.exchange(INS_ADDRESS, p1, flags if display else 0x00,
                                                path_to_bytes(path))
        return TonProtocolUnpacker.public_key(data)

    def wallet_address(self, public_key, chain=0):
        if self.wallet_init is None:
            raise ShapeError('No wallet_init given: cannot derive wallet addresses')
        return contract_address(chain, self.wallet_init(chain, public_key))

    async def get_address(self, path, test_only=False, bounceable=True, chain=0):
        pubkey = await self.get_public_key(path)
        addr = self.wallet_address(pubkey, chain)
        return AddressInfo(addr.to_string(bounceable=bounceable, test_only=test_only), pubkey)

    async def validate_address(self, path, test_only=False, bounceable=True, chain=0):
        pubkey = await self.get_public_key(path, display=True, test_only=test_only, chain=chain)
        addr = self.wallet_address(pubkey, chain)
        return AddressInfo(addr.to_string(bounceable=bounceable, test_only=test_only), pubkey)

    async def get_address_proof(self, path, domain, timestamp, payload,
                                    test_only=False, bounceable=True, chain=0):
        pubkey = await self.get_public_key(path)
        flags = address_flags(test_only=test_only, bounceable=bounceable, chain=chain).flags

        req = TonProtocolPacker.address_proof(path, domain, timestamp, payload)
        data = await self.session.exchange(INS_PROOF, P1_CONFIRM, flags, req)

        sig, digest = TonProtocolUnpacker.signature(data)
        verify_signature(pubkey, digest, sig)

        return AddressProof(sig, digest)

    #
    # Signing
    #

    async def sign_data(self, path, req, timestamp=None):
        path_data = path_to_bytes(path)

        if timestamp is None:
            timestamp = int(time.time())

        schema, body, cell = build_sign_data(req)
        pkg = TonProtocolPacker.sign_data(schema, timestamp, body)

        pubkey = await self.get_public_key(path)
        data = await self.session.send_chunked(INS_SIGN_DATA, path_data, pkg)
        sig, digest = TonProtocolUnpacker.signature(data)

        if digest != cell.hash:
            raise HashMismatchError(cell.hash, digest)

        # signature covers schema || timestamp || hash
        verify_signature(pubkey, write_uint32(schema) + write_uint64(timestamp) + digest, sig)

        return SignedData(sig, cell, timestamp)

    async def sign_transaction(self, path, tx):
        path_data = path_to_bytes(path)

        state_init = _state_init_cell(tx.state_init)
        payload, hints = encode_payload(tx.payload)

        # What should get signed, from our own inputs. Built before talking to
        # the device, so bad field values fail here and nothing is sent.
        transfer = build_transfer_message(tx, payload=payload, state_init=state_init)

        pkg = TonProtocolPacker.transaction(tx.seqno, tx.timeout, tx.amount, tx.to, tx.bounce,
                        tx.send_mode, state_init=state_init, payload=payload, hints=hints,
                        wallet_specifiers=tx.wallet_specifiers)

        pubkey = await self.get_public_key(path)
        data = await self.session.send_chunked(INS_SIGN_TX, path_data, pkg)
        sig, digest = TonProtocolUnpacker.signature(data)

        if digest != transfer.hash:
            raise HashMismatchError(transfer.hash, digest)

        verify_signature(pubkey, digest, sig)

        # external message body: signature, then the transfer itself
        return begin_cell().store_buffer(sig).store_slice(transfer.begin_parse()).end_cell()

# EOF
