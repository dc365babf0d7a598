#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# Minimal model of TON cells: enough to build, read and hash the messages we
# exchange with the device.
#
# - a cell is up to 1023 bits plus up to 4 references to other cells
# - cells are immutable; hash and depth are computed once, at construction
# - only ordinary (non-exotic) cells are supported
# - bits are kept as one python int, most significant bit first
#
import base64, binascii, hashlib
from collections import namedtuple

from .errors import DecodeError, ShapeError

MAX_BITS = 1023
MAX_REFS = 4


class CellError(DecodeError):
    # reading past the end, or finding data we don't support
    pass


class Cell:
    __slots__ = ('bits', 'length', 'refs', 'depth', 'hash')

    def __init__(self, bits=0, length=0, refs=()):
        refs = tuple(refs)
        if not (0 <= length <= MAX_BITS):
            raise ShapeError('Cell overflow: %d bits' % length)
        if len(refs) > MAX_REFS:
            raise ShapeError('Cell overflow: %d refs' % len(refs))
        if bits < 0 or (bits >> length):
            raise ShapeError('Cell bits do not fit length')

        self.bits = bits
        self.length = length
        self.refs = refs
        self.depth = (1 + max(r.depth for r in refs)) if refs else 0
        self.hash = hashlib.sha256(self._representation()).digest()

    def _representation(self):
        # d1: ref count (level 0, not exotic); d2: ceil(bits/8) + floor(bits/8)
        d1 = len(self.refs)
        d2 = (self.length + 7) // 8 + self.length // 8

        return bytes([d1, d2]) + self.padded_data() \
                + b''.join(r.depth.to_bytes(2, 'big') for r in self.refs) \
                + b''.join(r.hash for r in self.refs)

    def padded_data(self):
        # data bits, with a completion tag (1 then zeros) if not byte aligned
        nbytes = (self.length + 7) // 8
        pad = nbytes * 8 - self.length
        if not pad:
            return self.bits.to_bytes(nbytes, 'big')

        return (((self.bits << 1) | 1) << (pad - 1)).to_bytes(nbytes, 'big')

    def begin_parse(self):
        return Slice(self)

    def is_empty(self):
        return self.hash == EMPTY_CELL_HASH

    def __eq__(self, other):
        return isinstance(other, Cell) and other.hash == self.hash

    def __hash__(self):
        return int.from_bytes(self.hash[0:8], 'big')

    def __repr__(self):
        return '<Cell %d bits, %d refs, %s>' % (self.length, len(self.refs), self.hash.hex()[0:16])


EMPTY_CELL_HASH = hashlib.sha256(b'\x00\x00').digest()


class Builder:
    # Append-only; every store_ returns self so calls can be chained.

    def __init__(self):
        self._bits = 0
        self._length = 0
        self._refs = []

    @property
    def available_bits(self):
        return MAX_BITS - self._length

    @property
    def available_refs(self):
        return MAX_REFS - len(self._refs)

    def _append(self, value, n):
        if n > self.available_bits:
            raise ShapeError('Cell overflow: need %d bits, have %d' % (n, self.available_bits))
        self._bits = (self._bits << n) | value
        self._length += n
        return self

    def store_uint(self, value, n):
        if value < 0 or (value >> n):
            raise ShapeError('Value %d does not fit in %d bits' % (value, n))
        return self._append(value, n)

    def store_int(self, value, n):
        lim = 1 << (n - 1)
        if not (-lim <= value < lim):
            raise ShapeError('Value %d does not fit in %d signed bits' % (value, n))
        return self._append(value & ((1 << n) - 1), n)

    def store_bit(self, bit):
        return self._append(1 if bit else 0, 1)

    def store_buffer(self, buf):
        buf = bytes(buf)
        if not buf:
            return self
        return self._append(int.from_bytes(buf, 'big'), 8 * len(buf))

    def store_coins(self, amount):
        # VarUInteger 16: 4-bit byte count, then that many bytes
        if amount < 0:
            raise ShapeError('Coins amount must be positive')
        size = (amount.bit_length() + 7) // 8
        if size > 15:
            raise ShapeError('Coins amount too large')
        self.store_uint(size, 4)
        return self._append(amount, 8 * size)

    def store_address(self, addr):
        if addr is None:
            return self.store_uint(0, 2)

        # addr_std$10 anycast:(Maybe Anycast) workchain_id:int8 address:bits256
        self.store_uint(2, 2)
        self.store_bit(0)
        self.store_int(addr.workchain, 8)
        return self.store_buffer(addr.hash_part)

    def store_ref(self, cell):
        if isinstance(cell, Builder):
            cell = cell.end_cell()
        if not self.available_refs:
            raise ShapeError('Cell overflow: too many refs')
        self._refs.append(cell)
        return self

    def store_maybe_ref(self, cell):
        if cell is None:
            return self.store_bit(0)
        self.store_bit(1)
        return self.store_ref(cell)

    def store_slice(self, sl):
        bits, length, refs = sl.remaining()
        self._append(bits, length)
        for r in refs:
            self.store_ref(r)
        return self

    def store_string_tail(self, text):
        # "snake" format: fill this cell, spill the remainder into a chain of refs
        data = text.encode('utf-8') if isinstance(text, str) else bytes(text)
        _store_snake(self, data)
        return self

    def end_cell(self):
        return Cell(self._bits, self._length, self._refs)


def _store_snake(b, data):
    if not data:
        return
    room = b.available_bits // 8
    if len(data) <= room:
        b.store_buffer(data)
        return

    b.store_buffer(data[0:room])
    tail = Builder()
    _store_snake(tail, data[room:])
    b.store_ref(tail.end_cell())


def begin_cell():
    return Builder()


class Slice:
    # Sequential reader over one cell.

    def __init__(self, cell):
        self._cell = cell
        self._pos = 0
        self._ref = 0

    @property
    def remaining_bits(self):
        return self._cell.length - self._pos

    @property
    def remaining_refs(self):
        return len(self._cell.refs) - self._ref

    def remaining(self):
        n = self.remaining_bits
        bits = self._cell.bits & ((1 << n) - 1)
        return bits, n, self._cell.refs[self._ref:]

    def load_uint(self, n):
        if n > self.remaining_bits:
            raise CellError('Not enough bits: need %d, have %d' % (n, self.remaining_bits))
        shift = self._cell.length - self._pos - n
        self._pos += n
        return (self._cell.bits >> shift) & ((1 << n) - 1)

    def load_int(self, n):
        v = self.load_uint(n)
        if v >> (n - 1):
            v -= 1 << n
        return v

    def load_bit(self):
        return bool(self.load_uint(1))

    def load_buffer(self, nbytes):
        return self.load_uint(8 * nbytes).to_bytes(nbytes, 'big')

    def load_coins(self):
        size = self.load_uint(4)
        return self.load_uint(8 * size)

    def load_maybe_address(self):
        tag = self.load_uint(2)
        if tag == 0:
            return None
        if tag != 2:
            raise CellError('Unsupported address type: %d' % tag)
        if self.load_bit():
            raise CellError('Anycast addresses are not supported')

        wc = self.load_int(8)
        return Address(wc, self.load_buffer(32))

    def load_address(self):
        addr = self.load_maybe_address()
        if addr is None:
            raise CellError('Expected an internal address')
        return addr

    def load_ref(self):
        if not self.remaining_refs:
            raise CellError('No more refs')
        self._ref += 1
        return self._cell.refs[self._ref - 1]

    def load_maybe_ref(self):
        return self.load_ref() if self.load_bit() else None

    def load_snake_bytes(self):
        if self.remaining_bits % 8:
            raise CellError('Invalid string length: %d bits' % self.remaining_bits)
        if self.remaining_refs > 1:
            raise CellError('Invalid number of refs in string')

        rv = self.load_buffer(self.remaining_bits // 8)
        if self.remaining_refs:
            rv += self.load_ref().begin_parse().load_snake_bytes()
        return rv

    def load_string_tail(self):
        try:
            return self.load_snake_bytes().decode('utf-8')
        except UnicodeDecodeError:
            raise CellError('String is not valid UTF-8')

    def end_parse(self):
        if self.remaining_bits or self.remaining_refs:
            raise CellError('Slice is not empty: %d bits, %d refs remain'
                                % (self.remaining_bits, self.remaining_refs))

    def as_cell(self):
        bits, n, refs = self.remaining()
        return Cell(bits, n, refs)


class Address(namedtuple('Address', 'workchain hash_part')):
    # Internal (std) address: signed 8-bit workchain plus 32-byte account hash.
    __slots__ = ()

    def __new__(cls, workchain, hash_part):
        hash_part = bytes(hash_part)
        if not (-128 <= workchain <= 127):
            raise ShapeError('Bad workchain: %d' % workchain)
        if len(hash_part) != 32:
            raise ShapeError('Address hash must be 32 bytes')
        return super().__new__(cls, workchain, hash_part)

    @classmethod
    def parse(cls, text):
        # raw "wc:hex" or user-friendly base64; flags of the latter are dropped
        if ':' in text:
            return cls.parse_raw(text)
        return cls.parse_friendly(text)[0]

    @classmethod
    def parse_raw(cls, text):
        wc, _, hx = text.partition(':')
        try:
            return cls(int(wc, 10), bytes.fromhex(hx))
        except ValueError:
            raise ShapeError('Bad raw address: %r' % text)

    @classmethod
    def parse_friendly(cls, text):
        # returns (address, bounceable, test_only)
        try:
            raw = base64.b64decode(text.replace('-', '+').replace('_', '/'), validate=True)
        except (binascii.Error, ValueError):
            raise ShapeError('Bad address encoding: %r' % text)

        if len(raw) != 36:
            raise ShapeError('Bad address length')
        if binascii.crc_hqx(raw[0:34], 0).to_bytes(2, 'big') != raw[34:36]:
            raise ShapeError('Bad address checksum')

        tag = raw[0]
        test_only = bool(tag & 0x80)
        tag &= 0x7f
        if tag not in (0x11, 0x51):
            raise ShapeError('Unknown address tag: 0x%02x' % tag)

        wc = raw[1] - 256 if raw[1] >= 128 else raw[1]
        return cls(wc, raw[2:34]), (tag == 0x11), test_only

    def to_raw_string(self):
        return '%d:%s' % (self.workchain, self.hash_part.hex())

    def to_string(self, bounceable=True, test_only=False, url_safe=True):
        tag = 0x11 if bounceable else 0x51
        if test_only:
            tag |= 0x80

        body = bytes([tag, self.workchain & 0xff]) + self.hash_part
        body += binascii.crc_hqx(body, 0).to_bytes(2, 'big')

        if url_safe:
            return base64.urlsafe_b64encode(body).decode('ascii')
        return base64.b64encode(body).decode('ascii')

    def __str__(self):
        return self.to_string()


TickTock = namedtuple('TickTock', 'tick tock')
StateInit = namedtuple('StateInit', 'code data split_depth special', defaults=(None, None))


def store_state_init(b, init):
    # _ split_depth:(Maybe (## 5)) special:(Maybe TickTock)
    #   code:(Maybe ^Cell) data:(Maybe ^Cell) library:(HashmapE 256 SimpleLib)
    if init.split_depth is not None:
        b.store_bit(1).store_uint(init.split_depth, 5)
    else:
        b.store_bit(0)

    if init.special is not None:
        b.store_bit(1).store_bit(init.special.tick).store_bit(init.special.tock)
    else:
        b.store_bit(0)

    b.store_maybe_ref(init.code)
    b.store_maybe_ref(init.data)
    b.store_bit(0)              # no libraries
    return b

def state_init_cell(init):
    return store_state_init(begin_cell(), init).end_cell()

def contract_address(workchain, init):
    # account id of a contract is the hash of its initial state
    if not isinstance(init, Cell):
        init = state_init_cell(init)
    return Address(workchain, init.hash)

# EOF
