"""
APDU constants of the Kaspa device application.

Request layout: [CLA][INS][P1][P2][Lc][payload]
Reply layout:   [payload][SW1][SW2]
"""

from __future__ import annotations

from enum import IntEnum

CLA = 0xE0

# Status word returned on success, stripped by the transport
SW_OK = 0x9000

# Single-frame limit of the APDU Lc byte
MAX_APDU_PAYLOAD = 255


class Instruction(IntEnum):
    GET_VERSION = 0x04
    GET_ADDRESS = 0x05
    SIGN_TX = 0x06
    SIGN_MESSAGE = 0x07


# GET_ADDRESS P1
P1_NON_CONFIRM = 0x00
P1_CONFIRM = 0x01

# SIGN_TX P1 (sub-phase tags)
P1_HEADER = 0x00
P1_OUTPUTS = 0x01
P1_INPUTS = 0x02
P1_NEXT_SIGNATURE = 0x03

# P2 continuation flag
P2_LAST = 0x00
P2_MORE = 0x80

# Schnorr signatures are always 64 bytes
SIGNATURE_LENGTH = 64

# Only one derivation path per SIGN_TX call is supported by the device app
SIGN_TX_PATH_COUNT = 1

MAX_INPUTS = 0xFF
MAX_OUTPUTS = 0xFF

MAX_UINT32 = 0xFFFFFFFF
MAX_UINT64 = 0xFFFFFFFFFFFFFFFF
HARDENED_OFFSET = 0x80000000

# Default account 0' (m/44'/111111'/0')
DEFAULT_ACCOUNT = HARDENED_OFFSET

# BIP44 coin type registered for Kaspa
KASPA_COIN_TYPE = 111111

# 20 zero bytes: the native subnetwork
NATIVE_SUBNETWORK_ID = "00" * 20

# signatureScript = OP_DATA_65 <64-byte sig><sighash type>
SIGNATURE_SCRIPT_PUSH = "41"
SIGHASH_ALL = "01"
