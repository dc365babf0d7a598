#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# Turn a message intent into (cell, hints).
#
# The cell is the exact body the wallet will send; the grammar for each op
# must match the parser (and the device firmware) field for field. The hints
# are a flat, fixed-width description of the same thing, so the device can
# show it without having to parse cells:
#
#   00                                  no hints (blind sign)
#   01 | type:u32 | len:u16 | body      len == len(body), always
#
from collections import namedtuple

from .cell import begin_cell, Cell
from .constants import *
from .errors import ShapeError
from .messages import *
from .utils import (
    normalize_query_id, write_uint8, write_uint16, write_uint32, write_uint48, write_uint64,
    write_varuint, write_address, write_cell_ref, write_cell_inline,
)

EncodedPayload = namedtuple('EncodedPayload', 'cell hints')

NO_HINTS = write_uint8(HINT_ABSENT)


def check_comment(text):
    # what the device is willing to display
    raw = text.encode('utf-8')
    if len(raw) > MAX_COMMENT_LEN:
        raise ShapeError('Comment must be at most %d ASCII characters long' % MAX_COMMENT_LEN)
    if any(not (0x20 <= c <= 0x7e) for c in raw):
        raise ShapeError('Comment must only contain printable ASCII characters')
    return raw


def _query_id(b, qid):
    qid = normalize_query_id(qid)
    if qid is None:
        b.store_uint(0, 64)
        return write_uint8(0)

    b.store_uint(qid, 64)
    return write_uint8(1) + write_uint64(qid)


def _comment(msg):
    raw = check_comment(msg.text)
    b = begin_cell().store_uint(OP_COMMENT, 32).store_buffer(raw)
    return b, raw

def _transfer(msg):
    # jetton and nft transfers differ only in op and the amount field
    is_jetton = isinstance(msg, JettonTransfer)
    b = begin_cell().store_uint(OP_JETTON_TRANSFER if is_jetton else OP_NFT_TRANSFER, 32)
    d = _query_id(b, msg.query_id)

    if is_jetton:
        d += write_varuint(msg.amount)
        b.store_coins(msg.amount)
        d += write_address(msg.destination)
        b.store_address(msg.destination)
    else:
        d += write_address(msg.new_owner)
        b.store_address(msg.new_owner)

    d += write_address(msg.response_destination)
    b.store_address(msg.response_destination)

    if msg.custom_payload is not None:
        d += write_uint8(1) + write_cell_ref(msg.custom_payload)
    else:
        d += write_uint8(0)
    b.store_maybe_ref(msg.custom_payload)

    d += write_varuint(msg.forward_amount)
    b.store_coins(msg.forward_amount)

    if msg.forward_payload is not None:
        d += write_uint8(1) + write_cell_ref(msg.forward_payload)
    else:
        d += write_uint8(0)
    b.store_maybe_ref(msg.forward_payload)

    return b, d

def _burn(msg):
    b = begin_cell().store_uint(OP_JETTON_BURN, 32)
    d = _query_id(b, msg.query_id)

    d += write_varuint(msg.amount)
    b.store_coins(msg.amount)

    d += write_address(msg.response_destination)
    b.store_address(msg.response_destination)

    cp = msg.custom_payload
    if cp is None:
        d += write_uint8(0)
        b.store_maybe_ref(None)
    elif isinstance(cp, Cell):
        d += write_uint8(1) + write_cell_ref(cp)
        b.store_maybe_ref(cp)
    else:
        # raw bytes (an eth address, typically): shown inline on the device
        cp = bytes(cp)
        if len(cp) > 127:
            raise ShapeError('Jetton burn custom payload too long')
        d += write_uint8(2) + write_cell_inline(cp)
        b.store_maybe_ref(begin_cell().store_buffer(cp).end_cell())

    return b, d

def _address_op(msg):
    op = OP_ADD_WHITELIST if isinstance(msg, AddWhitelist) else OP_SINGLE_NOMINATOR_CHANGE_VALIDATOR
    b = begin_cell().store_uint(op, 32)
    d = _query_id(b, msg.query_id)

    d += write_address(msg.address)
    b.store_address(msg.address)
    return b, d

def _withdraw(msg):
    b = begin_cell().store_uint(OP_SINGLE_NOMINATOR_WITHDRAW, 32)
    d = _query_id(b, msg.query_id)

    d += write_varuint(msg.amount)
    b.store_coins(msg.amount)
    return b, d

def _tonstakers(msg):
    b = begin_cell().store_uint(OP_TONSTAKERS_DEPOSIT, 32)
    d = _query_id(b, msg.query_id)

    if msg.app_id is not None:
        d += write_uint8(1) + write_uint64(msg.app_id)
        b.store_uint(msg.app_id, 64)
    else:
        d += write_uint8(0)
    return b, d

def _vote(msg):
    b = begin_cell().store_uint(OP_VOTE_FOR_PROPOSAL, 32)
    d = _query_id(b, msg.query_id)

    d += write_address(msg.voting_address)
    b.store_address(msg.voting_address)

    d += write_uint48(msg.expiration_date)
    b.store_uint(msg.expiration_date, 48)

    d += write_uint8(1 if msg.vote else 0) + write_uint8(1 if msg.need_confirmation else 0)
    b.store_bit(msg.vote).store_bit(msg.need_confirmation)
    return b, d

def _dns(msg):
    b = begin_cell().store_uint(OP_CHANGE_DNS_RECORD, 32)
    d = _query_id(b, msg.query_id)

    rec = msg.record
    is_wallet = isinstance(rec, DnsWalletRecord)
    if not is_wallet and len(rec.key) != 32:
        raise ShapeError('DNS record key length must be 32 bytes long')

    b.store_buffer(DNS_WALLET_KEY if is_wallet else rec.key)
    d += write_uint8(0 if rec.value is None else 1) + write_uint8(0 if is_wallet else 1)

    if is_wallet:
        val = rec.value
        if val is not None:
            caps = val.capabilities
            d += write_address(val.address) + write_uint8(0 if caps is None else 1)

            rb = begin_cell().store_uint(DNS_WALLET_RECORD_TAG, 16) \
                    .store_address(val.address).store_uint(0 if caps is None else 1, 8)
            if caps is not None:
                d += write_uint8(1 if caps.is_wallet else 0)
                if caps.is_wallet:
                    rb.store_bit(1).store_uint(DNS_CAPABILITY_WALLET, 16)
                rb.store_bit(0)
            b.store_ref(rb)
    else:
        d += bytes(rec.key)
        if rec.value is not None:
            d += write_cell_ref(rec.value)
            b.store_ref(rec.value)

    return b, d

def _token_bridge(msg):
    b = begin_cell().store_uint(OP_TOKEN_BRIDGE_PAY_SWAP, 32)
    d = _query_id(b, msg.query_id)

    if len(msg.swap_id) != 32:
        raise ShapeError('Token bridge swap ID must be 32 bytes long')

    d += bytes(msg.swap_id)
    b.store_buffer(msg.swap_id)
    return b, d


# intent class => (hint type, encoder)
ENCODERS = {
    Comment:                        (HINT_COMMENT, _comment),
    JettonTransfer:                 (HINT_JETTON_TRANSFER, _transfer),
    NftTransfer:                    (HINT_NFT_TRANSFER, _transfer),
    JettonBurn:                     (HINT_JETTON_BURN, _burn),
    AddWhitelist:                   (HINT_ADD_WHITELIST, _address_op),
    SingleNominatorWithdraw:        (HINT_SINGLE_NOMINATOR_WITHDRAW, _withdraw),
    SingleNominatorChangeValidator: (HINT_SINGLE_NOMINATOR_CHANGE_VALIDATOR, _address_op),
    TonstakersDeposit:              (HINT_TONSTAKERS_DEPOSIT, _tonstakers),
    VoteForProposal:                (HINT_VOTE_FOR_PROPOSAL, _vote),
    ChangeDnsRecord:                (HINT_CHANGE_DNS_RECORD, _dns),
    TokenBridgePaySwap:             (HINT_TOKEN_BRIDGE_PAY_SWAP, _token_bridge),
}

_missing = set(ALL_INTENTS) - set(ENCODERS) - {Unsafe}
if _missing:
    raise TypeError('No encoder for: %s' % ', '.join(sorted(c.__name__ for c in _missing)))


def encode_payload(msg):
    # None => no payload at all; Unsafe => raw cell, no hints
    if msg is None:
        return EncodedPayload(None, NO_HINTS)

    if isinstance(msg, Unsafe):
        return EncodedPayload(msg.message, NO_HINTS)

    try:
        hint_type, fn = ENCODERS[type(msg)]
    except KeyError:
        raise ShapeError('Unknown payload type: %r' % type(msg).__name__)

    b, body = fn(msg)
    hints = write_uint8(HINT_V1) + write_uint32(hint_type) + write_uint16(len(body)) + body

    return EncodedPayload(b.end_cell(), hints)

# EOF
