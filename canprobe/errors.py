"""CAN error message frames: error classes, details and error states."""

from __future__ import annotations

from enum import IntEnum, IntFlag
from typing import List

from .frames import CanFrame

CAN_ERR_DLC = 8

CAN_ERROR_WARNING_THRESHOLD = 96
CAN_ERROR_PASSIVE_THRESHOLD = 128
CAN_BUS_OFF_THRESHOLD = 256

ERROR_ACTIVE = "error-active"
ERROR_WARNING = "error-warning"
ERROR_PASSIVE = "error-passive"
BUS_OFF = "bus-off"

CAN_ERR_LOSTARB_UNSPEC = 0x00


class ErrorClass(IntFlag):
    """Error classes carried in the identifier of an error frame."""

    TX_TIMEOUT = 0x00000001
    LOSTARB = 0x00000002
    CRTL = 0x00000004
    PROT = 0x00000008
    TRX = 0x00000010
    ACK = 0x00000020
    BUSOFF = 0x00000040
    BUSERROR = 0x00000080
    RESTARTED = 0x00000100
    CNT = 0x00000200


class ControllerError(IntFlag):
    """Controller status bits in data[1]."""

    UNSPEC = 0x00
    RX_OVERFLOW = 0x01
    TX_OVERFLOW = 0x02
    RX_WARNING = 0x04
    TX_WARNING = 0x08
    RX_PASSIVE = 0x10
    TX_PASSIVE = 0x20
    ACTIVE = 0x40


class ProtocolError(IntFlag):
    """Protocol error type bits in data[2]."""

    UNSPEC = 0x00
    BIT = 0x01
    FORM = 0x02
    STUFF = 0x04
    BIT0 = 0x08
    BIT1 = 0x10
    OVERLOAD = 0x20
    ACTIVE = 0x40
    TX = 0x80


class ProtocolLocation(IntEnum):
    """Location of a protocol error in data[3]."""

    UNSPEC = 0x00
    SOF = 0x03
    ID28_21 = 0x02
    ID20_18 = 0x06
    SRTR = 0x04
    IDE = 0x05
    ID17_13 = 0x07
    ID12_05 = 0x0F
    ID04_00 = 0x0E
    RTR = 0x0C
    RES1 = 0x0D
    RES0 = 0x09
    DLC = 0x0B
    DATA = 0x0A
    CRC_SEQ = 0x08
    CRC_DEL = 0x18
    ACK = 0x19
    ACK_DEL = 0x1B
    EOF = 0x1A
    INTERM = 0x12


class TransceiverError(IntEnum):
    """Transceiver status values in data[4] (CANH in the low, CANL in the high nibble)."""

    UNSPEC = 0x00
    CANH_NO_WIRE = 0x04
    CANH_SHORT_TO_BAT = 0x05
    CANH_SHORT_TO_VCC = 0x06
    CANH_SHORT_TO_GND = 0x07
    CANL_NO_WIRE = 0x40
    CANL_SHORT_TO_BAT = 0x50
    CANL_SHORT_TO_VCC = 0x60
    CANL_SHORT_TO_GND = 0x70
    CANL_SHORT_TO_CANH = 0x80


_CONTROLLER_TEXT = (
    (ControllerError.RX_OVERFLOW, "[RX buffer overflow]"),
    (ControllerError.TX_OVERFLOW, "[TX buffer overflow]"),
    (ControllerError.RX_WARNING, "[RX warning]"),
    (ControllerError.TX_WARNING, "[TX warning]"),
)


def error_state(counter: int) -> str:
    """Return the error state that an error counter value stands for."""
    if counter < 0:
        raise ValueError(f"error counter {counter} is negative")
    if counter < CAN_ERROR_WARNING_THRESHOLD:
        return ERROR_ACTIVE
    if counter < CAN_ERROR_PASSIVE_THRESHOLD:
        return ERROR_WARNING
    if counter < CAN_BUS_OFF_THRESHOLD:
        return ERROR_PASSIVE
    return BUS_OFF


def describe_error_frame(frame: CanFrame) -> List[str]:
    """Return the short descriptions of the errors an error frame reports."""
    classes = ErrorClass(frame.can_id & int(sum(ErrorClass)))
    payload = frame.data.ljust(CAN_ERR_DLC, b"\x00")
    parts: List[str] = []

    if classes & ErrorClass.BUSOFF:
        parts.append("(bus off)")
    if classes & ErrorClass.TX_TIMEOUT:
        parts.append("(tx timeout)")
    if classes & ErrorClass.ACK:
        parts.append("(ack)")
    if classes & ErrorClass.LOSTARB:
        text = "(lost arb)"
        if payload[0]:
            text += f"[{payload[0]}]"
        parts.append(text)
    if classes & ErrorClass.CRTL:
        status = ControllerError(payload[1] & int(sum(ControllerError)))
        parts.append(
            "(crtl)" + "".join(text for flag, text in _CONTROLLER_TEXT if status & flag)
        )
    return parts