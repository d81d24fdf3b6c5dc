"""
rvc_claim.frames

Bit-level helpers for RV-C 29-bit identifiers and ADDRESS_CLAIMED frames.

Identifier layout:
    bits 28-26: priority
    bits 25-8 : DGN
    bits 7-0  : source address

Frames are rendered in the candump text form "IIIIIIII#DDDDDDDDDDDDDDDD",
upper-case hex, e.g. "18EE00DF#8000000000ABCDEF".

Functions:
    - build_identifier: Assemble an identifier from priority, DGN and source address
    - build_claim_identifier: Identifier for an ADDRESS_CLAIMED announcement
    - split_identifier: Extract priority, DGN and source address
    - is_address_claim: Check whether a DGN is ADDRESS_CLAIMED
    - parse_address_claim: Validate a claim frame and return (source address, NAME)
    - format_frame / parse_frame_text: candump text rendering and parsing
    - outgoing_source_address / is_own_frame: helpers for non-claim traffic
"""

from typing import Optional, Tuple

from rvc_claim.exceptions import MalformedCompetitorFrame

DGN_ADDRESS_CLAIMED = 0xEE00
DEFAULT_PRIORITY = 6
NAME_LENGTH = 8

# Source address used before an address has been claimed
NULL_ADDRESS = 0xFE
BROADCAST_ADDRESS = 0xFF

_MAX_DGN = 0x1FFFF


def build_identifier(dgn: int, source_address: int, priority: int = DEFAULT_PRIORITY) -> int:
    """
    Assemble a 29-bit RV-C identifier.

    Args:
        dgn: Data Group Number (up to 17 bits).
        source_address: Sender address, 0-255.
        priority: Message priority, 0-7.

    Returns:
        The integer identifier.

    Raises:
        ValueError: If any field is out of range.
    """
    if not 0 <= priority <= 7:
        raise ValueError(f"Priority {priority} out of range 0-7")
    if not 0 <= dgn <= _MAX_DGN:
        raise ValueError(f"DGN 0x{dgn:X} out of range")
    if not 0 <= source_address <= 0xFF:
        raise ValueError(f"Source address {source_address} out of range 0-255")
    return (priority << 26) | (dgn << 8) | source_address


def build_claim_identifier(address: int) -> int:
    """Identifier for an ADDRESS_CLAIMED announcement from `address`."""
    return build_identifier(DGN_ADDRESS_CLAIMED, address)


def split_identifier(identifier: int) -> Tuple[int, int, int]:
    """Return (priority, dgn, source_address) for a 29-bit identifier."""
    priority = (identifier >> 26) & 0x7
    dgn = (identifier >> 8) & _MAX_DGN
    source_address = identifier & 0xFF
    return priority, dgn, source_address


def is_address_claim(dgn: int) -> bool:
    """
    True if `dgn` is ADDRESS_CLAIMED.

    ADDRESS_CLAIMED is a PDU1 message, so its low byte may carry a destination
    address (EEFF for a global claim) rather than 00.
    """
    return (dgn & 0x1FF00) == DGN_ADDRESS_CLAIMED


def parse_address_claim(identifier: Optional[int], payload: Optional[bytes]) -> Tuple[int, bytes]:
    """
    Validate an inbound ADDRESS_CLAIMED frame.

    Args:
        identifier: The 29-bit identifier the frame arrived with.
        payload: The frame data.

    Returns:
        tuple(source_address, name) where name is the 8-byte NAME.

    Raises:
        MalformedCompetitorFrame: If the identifier is missing, is not a claim,
            or the payload is not exactly 8 bytes.
    """
    if identifier is None:
        raise MalformedCompetitorFrame("missing identifier")
    _, dgn, source_address = split_identifier(identifier)
    if not is_address_claim(dgn):
        raise MalformedCompetitorFrame(f"DGN 0x{dgn:X} is not ADDRESS_CLAIMED", identifier)
    if payload is None:
        raise MalformedCompetitorFrame("missing NAME", identifier)
    name = bytes(payload)
    if len(name) != NAME_LENGTH:
        raise MalformedCompetitorFrame(
            f"NAME must be {NAME_LENGTH} bytes, got {len(name)}", identifier
        )
    return source_address, name


def format_frame(identifier: int, payload: bytes) -> str:
    """Render a frame as candump text, e.g. "18EE00DF#8000000000ABCDEF"."""
    return f"{identifier:08X}#{bytes(payload).hex().upper()}"


def parse_frame_text(text: str) -> Tuple[int, bytes]:
    """
    Parse candump text "CANID#PAYLOAD" into (identifier, payload).

    Raises:
        ValueError: If the text is not in CANID#PAYLOAD form or is not hex.
    """
    if not text or not isinstance(text, str):
        raise ValueError(f"Invalid CAN message: {text!r}")
    parts = text.strip().split("#")
    if len(parts) != 2:
        raise ValueError(f"Invalid CAN message format: {text}")
    can_id_hex, data_hex = parts
    try:
        identifier = int(can_id_hex, 16)
    except ValueError:
        raise ValueError(f"Invalid CAN ID: {can_id_hex}") from None
    if identifier > 0x1FFFFFFF:
        raise ValueError(f"CAN ID {can_id_hex} exceeds 29 bits")
    try:
        payload = bytes.fromhex(data_hex)
    except ValueError:
        raise ValueError(f"Invalid CAN payload: {data_hex}") from None
    return identifier, payload


def name_to_hex(name: bytes) -> str:
    return bytes(name).hex().upper()


def name_from_hex(value: str) -> bytes:
    """
    Convert a 16-hex-character NAME string to bytes.

    Raises:
        ValueError: If the string is not exactly 8 bytes of hex.
    """
    name = bytes.fromhex(value)
    if len(name) != NAME_LENGTH:
        raise ValueError(f"NAME must be {NAME_LENGTH} bytes, got {len(name)}")
    return name


def outgoing_source_address(committed_address: Optional[int]) -> int:
    """Source address for outgoing traffic: the committed address, else the null address."""
    if committed_address is None:
        return NULL_ADDRESS
    return committed_address


def is_own_frame(identifier: int, committed_address: Optional[int]) -> bool:
    """True if the frame was sent from our committed source address."""
    if committed_address is None:
        return False
    return (identifier & 0xFF) == committed_address
