#
# (c) Copyright 2021 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# Constants shared between the APDU layer, the message codec and the signing flows.
#

# APDU class bytes
LEDGER_SYSTEM = 0xB0        # device management (dashboard) class
LEDGER_CLA    = 0xE0        # TON application class

# instructions, system class
INS_GET_APP_AND_VERSION = 0x01

# instructions, application class
INS_VERSION   = 0x03
INS_ADDRESS   = 0x05
INS_SIGN_TX   = 0x06
INS_PROOF     = 0x08
INS_SIGN_DATA = 0x09
INS_SETTINGS  = 0x0A

# p1 for address/proof requests
P1_NON_CONFIRM = 0x00
P1_CONFIRM     = 0x01

# p2 chunk roles for the multi-step sign flows
P2_START = 0x03             # carries the hardened derivation path
P2_MORE  = 0x02             # continuation chunk, reply is ignored
P2_LAST  = 0x00             # final chunk, reply holds the result

# address display flags (p2 of address/proof requests)
ADDR_FLAG_TEST_ONLY  = 0x01
ADDR_FLAG_MASTERCHAIN = 0x02

# max data bytes per APDU
MAX_CHUNK_LEN = 255

# status words
SW_OK = 0x9000

SW_DESCRIPTIONS = {
    0x5515: 'Device is locked',
    0x6700: 'Incorrect length',
    0x6985: 'Rejected by user',
    0x6A86: 'Incorrect P1/P2',
    0x6D00: 'Instruction not supported (is the TON app open?)',
    0x6E00: 'Class not supported (is the TON app open?)',
}

# name reported by the device when our app is in the foreground
APP_NAME = 'TON'

# derivation path rules
PATH_PURPOSE   = 44
PATH_COIN_TYPE = 607
PATH_MIN_LEN   = 6
HARDENED       = 0x80000000

# wallet v3/v4 default subwallet id (698983191 = 0x29a9a317)
DEFAULT_SUBWALLET_ID = 698983191

# message op tags (first 32 bits of a message body)
OP_COMMENT                    = 0x00000000
OP_JETTON_TRANSFER            = 0x0f8a7ea5
OP_NFT_TRANSFER               = 0x5fcc3d14
OP_JETTON_BURN                = 0x595f07bc
OP_ADD_WHITELIST              = 0x7258a69b
OP_SINGLE_NOMINATOR_WITHDRAW  = 0x00001000
OP_SINGLE_NOMINATOR_CHANGE_VALIDATOR = 0x00001001
OP_TONSTAKERS_DEPOSIT         = 0x47d54391
OP_VOTE_FOR_PROPOSAL          = 0x69fb306c
OP_CHANGE_DNS_RECORD          = 0x4eb1f0f9
OP_TOKEN_BRIDGE_PAY_SWAP      = 0x00000008

# hint type codes, as understood by the device
HINT_COMMENT                  = 0x00
HINT_JETTON_TRANSFER          = 0x01
HINT_NFT_TRANSFER             = 0x02
HINT_JETTON_BURN              = 0x03
HINT_ADD_WHITELIST            = 0x04
HINT_SINGLE_NOMINATOR_WITHDRAW = 0x05
HINT_SINGLE_NOMINATOR_CHANGE_VALIDATOR = 0x06
HINT_TONSTAKERS_DEPOSIT       = 0x07
HINT_VOTE_FOR_PROPOSAL        = 0x08
HINT_CHANGE_DNS_RECORD        = 0x09
HINT_TOKEN_BRIDGE_PAY_SWAP    = 0x0A

# hint format byte
HINT_ABSENT = 0x00
HINT_V1     = 0x01

# comments
MAX_COMMENT_LEN = 120

# DNS records: key is sha256(b'wallet')
DNS_WALLET_KEY = bytes.fromhex(
    'e8d44050873dba865aa7c170ab4cce64d90839a34dcfd6cf71d14e0205443b1b')
DNS_WALLET_RECORD_TAG  = 0x9fd3
DNS_CAPABILITY_WALLET  = 0x2177

# sign-data schemas
SCHEMA_PLAINTEXT = 0x754bf91b
SCHEMA_APP_DATA  = 0x54b58535

# signature response layout: [len][sig 64][len][hash 32]
SIGNATURE_LEN = 64
HASH_LEN = 32

# EOF
