#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
import binascii, struct
from collections import namedtuple

from .constants import (
    PATH_PURPOSE, PATH_COIN_TYPE, PATH_MIN_LEN, HARDENED, MAX_CHUNK_LEN,
    ADDR_FLAG_TEST_ONLY, ADDR_FLAG_MASTERCHAIN,
)
from .errors import ShapeError


B2A = lambda x: binascii.b2a_hex(x).decode('ascii')

AddressFlags = namedtuple('AddressFlags', 'bounceable test_only chain flags')


def validate_path(path):
    # Paths are given un-hardened; we harden every element on the wire.
    if len(path) < PATH_MIN_LEN:
        raise ShapeError('Path is too short')
    if path[0] != PATH_PURPOSE:
        raise ShapeError('First element of a path must be %d' % PATH_PURPOSE)
    if path[1] != PATH_COIN_TYPE:
        raise ShapeError('Second element of a path must be %d' % PATH_COIN_TYPE)
    for p in path:
        if not (0 <= p < HARDENED):
            raise ShapeError('All path elements must be under 0x%08x' % HARDENED)

def path_to_bytes(path):
    validate_path(path)
    return struct.pack('>B', len(path)) + b''.join(struct.pack('>I', p | HARDENED) for p in path)

def parse_path(text):
    # "m/44'/607'/0'/0'/0'/0'" => [44, 607, 0, 0, 0, 0]
    # - every element is hardened anyway, so the ' or h marker is optional
    parts = text.strip().split('/')
    if parts and parts[0] == 'm':
        parts = parts[1:]

    rv = []
    for p in parts:
        p = p.rstrip("'hH")
        try:
            rv.append(int(p, 10))
        except ValueError:
            raise ShapeError('Bad path element: %r' % p)

    validate_path(rv)
    return rv

def chunks(data, size=MAX_CHUNK_LEN):
    # Split into fixed-size pieces; the last one may be short. Always at
    # least one piece, so there is always a final chunk to send.
    data = bytes(data)
    if not data:
        return [b'']
    return [data[i:i+size] for i in range(0, len(data), size)]

def address_flags(test_only=False, bounceable=True, chain=0):
    flags = 0x00
    if test_only:
        flags |= ADDR_FLAG_TEST_ONLY
    if chain == -1:
        flags |= ADDR_FLAG_MASTERCHAIN

    return AddressFlags(bounceable, test_only, chain, flags)

def normalize_query_id(qid):
    return None if qid == 0 else qid

def denormalize_query_id(qid):
    return 0 if qid is None else qid

#
# Fixed-width writers used for hint buffers and request bodies (big-endian).
# Out of range values are a ShapeError, never a struct.error.
#

def _write_uint(v, nbytes):
    if not (0 <= v < (1 << (8 * nbytes))):
        raise ShapeError('Value %d does not fit in %d bytes' % (v, nbytes))
    return v.to_bytes(nbytes, 'big')

def write_uint8(v):
    return _write_uint(v, 1)

def write_uint16(v):
    return _write_uint(v, 2)

def write_uint32(v):
    return _write_uint(v, 4)

def write_uint48(v):
    return _write_uint(v, 6)

def write_uint64(v):
    return _write_uint(v, 8)

def write_varuint(v):
    # length-prefixed big-endian, zero is a lone length byte of 0; same
    # 15-byte limit as coins in a cell
    if v < 0:
        raise ShapeError('Amount must not be negative: %d' % v)
    size = (v.bit_length() + 7) // 8
    if size > 15:
        raise ShapeError('Amount too large: %d bytes' % size)
    return write_uint8(size) + (v.to_bytes(size, 'big') if size else b'')

def write_address(addr):
    # workchain as a single byte (-1 => 0xff), then the 32-byte hash part
    return write_uint8(addr.workchain & 0xff) + addr.hash_part

def write_cell_ref(cell):
    return write_uint16(cell.depth) + cell.hash

def write_cell_inline(buf):
    return write_uint8(len(buf)) + bytes(buf)

# EOF
