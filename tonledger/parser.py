#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# Classify a message body cell into one of the intents in messages.py.
#
# - each op has a strict grammar: fields in order, then the slice must be empty
# - anything that doesn't fit becomes Unsafe(cell), unless the caller asked
#   for strict behaviour, in which case the DecodeError is raised
# - with disallow_modification, we also insist that re-encoding the intent
#   gives back exactly the same cell
#
from collections import namedtuple

from .cell import Cell
from .constants import *
from .errors import DecodeError, ShapeError
from .messages import *
from .payload import encode_payload
from .utils import normalize_query_id

ParseResult = namedtuple('ParseResult', 'intent error')

_Options = namedtuple('_Options', 'disallow_modification burn_as_hex')


def _query_id(s):
    return normalize_query_id(s.load_uint(64))


def _comment(s, opts):
    raw = s.load_snake_bytes()
    s.end_parse()

    if len(raw) > MAX_COMMENT_LEN:
        raise DecodeError('Comment must be at most %d ASCII characters long' % MAX_COMMENT_LEN)
    if any(not (0x20 <= c <= 0x7e) for c in raw):
        raise DecodeError('Comment must only contain printable ASCII characters')

    return Comment(raw.decode('ascii'))

def _forward_payload(s, opts):
    # Either ^Cell or inline; returns (payload, slice to continue with)
    if s.load_bit():
        return s.load_ref(), s

    p = s.as_cell()
    s = Cell().begin_parse()            # rest is consumed
    if p.is_empty():
        return None, s

    if opts.disallow_modification:
        raise DecodeError('Transfer message would be modified')

    # we will re-encode it as a ref
    return p, s

def _jetton_transfer(s, opts):
    query_id = _query_id(s)
    amount = s.load_coins()
    destination = s.load_address()
    response_destination = s.load_address()
    custom_payload = s.load_maybe_ref()
    forward_amount = s.load_coins()
    forward_payload, s = _forward_payload(s, opts)
    s.end_parse()

    return JettonTransfer(query_id, amount, destination, response_destination,
                                custom_payload, forward_amount, forward_payload)

def _nft_transfer(s, opts):
    query_id = _query_id(s)
    new_owner = s.load_address()
    response_destination = s.load_address()
    custom_payload = s.load_maybe_ref()
    forward_amount = s.load_coins()
    forward_payload, s = _forward_payload(s, opts)
    s.end_parse()

    return NftTransfer(query_id, new_owner, response_destination,
                                custom_payload, forward_amount, forward_payload)

def _jetton_burn(s, opts):
    query_id = _query_id(s)
    amount = s.load_coins()
    response_destination = s.load_address()
    custom_payload = s.load_maybe_ref()
    s.end_parse()

    if opts.burn_as_hex and custom_payload is not None \
            and custom_payload.length == 160 and not custom_payload.refs:
        # bridge burns carry a 20-byte ethereum address
        cs = custom_payload.begin_parse()
        custom_payload = cs.load_buffer(20)
        cs.end_parse()

    return JettonBurn(query_id, amount, response_destination, custom_payload)

def _add_whitelist(s, opts):
    query_id = _query_id(s)
    address = s.load_address()
    s.end_parse()
    return AddWhitelist(query_id, address)

def _nominator_withdraw(s, opts):
    query_id = _query_id(s)
    amount = s.load_coins()
    s.end_parse()
    return SingleNominatorWithdraw(query_id, amount)

def _nominator_change_validator(s, opts):
    query_id = _query_id(s)
    address = s.load_address()
    s.end_parse()
    return SingleNominatorChangeValidator(query_id, address)

def _tonstakers_deposit(s, opts):
    query_id = _query_id(s)
    app_id = s.load_uint(64) if s.remaining_bits else None
    s.end_parse()
    return TonstakersDeposit(query_id, app_id)

def _vote_for_proposal(s, opts):
    query_id = _query_id(s)
    voting_address = s.load_address()
    expiration_date = s.load_uint(48)
    vote = s.load_bit()
    need_confirmation = s.load_bit()
    s.end_parse()
    return VoteForProposal(query_id, voting_address, expiration_date, vote, need_confirmation)

def _dns_wallet_value(vs, opts):
    if vs.load_uint(16) != DNS_WALLET_RECORD_TAG:
        raise DecodeError('Wrong DNS record type')

    address = vs.load_address()
    flags = vs.load_uint(8)
    if flags > 1:
        raise DecodeError('DNS wallet record must have flags 0 or 1')

    caps = None
    if flags & 1:
        is_wallet = False
        while vs.load_bit():
            cap = vs.load_uint(16)
            if cap != DNS_CAPABILITY_WALLET:
                raise DecodeError('Unknown DNS wallet record capability')
            if is_wallet and opts.disallow_modification:
                raise DecodeError('DNS change record message would be modified')
            is_wallet = True
        caps = DnsCapabilities(is_wallet)

    vs.end_parse()
    return DnsWalletValue(address, caps)

def _change_dns_record(s, opts):
    query_id = _query_id(s)
    key = s.load_buffer(32)
    value = s.load_ref() if s.remaining_refs else None

    # Tolerate a trailing Maybe bit. It must be set when a value ref was
    # present and clear when none was; same rule for wallet and other keys.
    if s.remaining_bits and not opts.disallow_modification:
        if s.load_bit() != (value is not None):
            raise DecodeError('Incorrect change DNS record message')
    s.end_parse()

    if key != DNS_WALLET_KEY:
        return ChangeDnsRecord(query_id, DnsUnknownRecord(key, value))

    if value is None:
        return ChangeDnsRecord(query_id, DnsWalletRecord(None))

    return ChangeDnsRecord(query_id, DnsWalletRecord(_dns_wallet_value(value.begin_parse(), opts)))

def _token_bridge_pay_swap(s, opts):
    query_id = _query_id(s)
    swap_id = s.load_buffer(32)
    s.end_parse()
    return TokenBridgePaySwap(query_id, swap_id)


# op => (intent class, grammar)
PARSERS = {
    OP_COMMENT:                     (Comment, _comment),
    OP_JETTON_TRANSFER:             (JettonTransfer, _jetton_transfer),
    OP_NFT_TRANSFER:                (NftTransfer, _nft_transfer),
    OP_JETTON_BURN:                 (JettonBurn, _jetton_burn),
    OP_ADD_WHITELIST:               (AddWhitelist, _add_whitelist),
    OP_SINGLE_NOMINATOR_WITHDRAW:   (SingleNominatorWithdraw, _nominator_withdraw),
    OP_SINGLE_NOMINATOR_CHANGE_VALIDATOR: (SingleNominatorChangeValidator, _nominator_change_validator),
    OP_TONSTAKERS_DEPOSIT:          (TonstakersDeposit, _tonstakers_deposit),
    OP_VOTE_FOR_PROPOSAL:           (VoteForProposal, _vote_for_proposal),
    OP_CHANGE_DNS_RECORD:           (ChangeDnsRecord, _change_dns_record),
    OP_TOKEN_BRIDGE_PAY_SWAP:       (TokenBridgePaySwap, _token_bridge_pay_swap),
}

_missing = set(ALL_INTENTS) - {cls for cls, _ in PARSERS.values()} - {Unsafe}
if _missing:
    raise TypeError('No parser for: %s' % ', '.join(sorted(c.__name__ for c in _missing)))


def try_parse_message(cell, disallow_modification=False, encode_jetton_burn_eth_address_as_hex=True):
    # Never raises DecodeError: returns ParseResult(intent, None) or (None, error).
    # The empty cell means "no message" and gives ParseResult(None, None).
    if cell.is_empty():
        return ParseResult(None, None)

    opts = _Options(disallow_modification, encode_jetton_burn_eth_address_as_hex)
    s = cell.begin_parse()
    try:
        op = s.load_uint(32)
        if op not in PARSERS:
            raise DecodeError('Unknown op: 0x%08x' % op)

        _, grammar = PARSERS[op]
        msg = grammar(s, opts)

        if disallow_modification:
            try:
                again = encode_payload(msg).cell
            except ShapeError as exc:
                raise DecodeError('Cannot re-encode message: %s' % exc)
            if again.hash != cell.hash:
                raise DecodeError('Message would be modified by re-encoding')

    except DecodeError as exc:
        return ParseResult(None, exc)

    return ParseResult(msg, None)


def parse_message(cell, disallow_unsafe=False, disallow_modification=False,
                        encode_jetton_burn_eth_address_as_hex=True):
    # Returns an intent, or None for the empty cell. Unknown or malformed
    # messages come back as Unsafe(cell) unless disallow_unsafe is set.
    rv = try_parse_message(cell, disallow_modification=disallow_modification,
                encode_jetton_burn_eth_address_as_hex=encode_jetton_burn_eth_address_as_hex)

    if rv.error is None:
        return rv.intent

    if disallow_unsafe:
        raise rv.error

    return Unsafe(cell)

# EOF
