"""Encoding of MAC control elements into a fixed-size MAC PDU."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

MAX_MAC_CE_SIZE = 255

# Logical channel identifiers carried in the one-octet subheader.
LCID_SHORT_BSR = 61
LCID_PHR = 57
LCID_CRNTI = 58
LCID_REC_BIT_RATE = 53

# Extended LCID indicators.
LCID_EXT_1BYTE = 34
LCID_EXT_2BYTE = 33

# Extended LCID values carried in the second subheader octet.
ELCID_DSR = 228
ELCID_ENH_PHR = 221
ELCID_SL_LBT = 222
ELCID_ENH_BFR = 235
ELCID_EXT_BSR = 245

__all__ = [
    "MAX_MAC_CE_SIZE",
    "LCID_SHORT_BSR",
    "LCID_PHR",
    "LCID_CRNTI",
    "LCID_REC_BIT_RATE",
    "LCID_EXT_1BYTE",
    "LCID_EXT_2BYTE",
    "ELCID_DSR",
    "ELCID_ENH_PHR",
    "ELCID_SL_LBT",
    "ELCID_ENH_BFR",
    "ELCID_EXT_BSR",
    "Flags",
    "EncodeError",
    "PduOverflowError",
    "MacPdu",
    "format_hex",
    "format_bits",
    "check_range",
]


class EncodeError(ValueError):
    """A control element could not be encoded from the given parameters."""


class PduOverflowError(EncodeError):
    """A control element does not fit in the space left in the PDU."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            f"PDU size exceeded (required: {required} bytes, available: {available} bytes)"
        )
        self.required = required
        self.available = available


@dataclass(frozen=True)
class Flags:
    """Single-bit fields shared by several control elements."""

    mpe: int = 1
    r2: int = 0
    p: int = 1
    r: int = 0
    bt: int = 0
    x: int = 0


def check_range(value: Optional[int], low: int, high: int, name: str) -> int:
    """Return ``value`` if it lies in ``low..high``, otherwise raise EncodeError."""
    if value is None:
        raise EncodeError(f"{name} not provided")
    if value < low or value > high:
        raise EncodeError(f"{name} out of range ({low}-{high})")
    return value


def format_hex(data: Iterable[int]) -> str:
    """Render octets as space-separated upper-case hex pairs."""
    return " ".join(f"{octet:02X}" for octet in data)


def format_bits(data: Iterable[int]) -> str:
    """Render octets as space-separated groups of eight bits, MSB first."""
    return " ".join(f"{octet:08b}" for octet in data)


def _missing_or_negative(value: Optional[int], missing: str, negative: str) -> None:
    if value is None:
        raise EncodeError(missing)
    if value < 0:
        raise EncodeError(negative)


class MacPdu:
    """A MAC PDU of fixed size into which control elements are appended.

    Each encoding method takes the supplied parameters positionally; the
    number of arguments is the number of parameters given, and ``None``
    stands for a parameter that was named but has no value. On success the
    method returns the octets it appended. Nothing is written on failure.
    """

    def __init__(self, size: int) -> None:
        if size < 0 or size > MAX_MAC_CE_SIZE:
            raise ValueError(f"PDU size must be within 0-{MAX_MAC_CE_SIZE}")
        self.size = size
        self.offset = 0
        self._buffer = bytearray(size)

    def _reserve(self, required: int) -> None:
        available = self.size - self.offset
        if required > available:
            raise PduOverflowError(required, available)

    def _write(self, *octets: int) -> bytes:
        data = bytes(octet & 0xFF for octet in octets)
        self._buffer[self.offset:self.offset + len(data)] = data
        self.offset += len(data)
        return data

    def short_bsr(self, *args: Optional[int]) -> bytes:
        """Short BSR: LCG ID (3 bits) and buffer size (5 bits)."""
        if len(args) != 2:
            if len(args) > 2:
                raise EncodeError("short_bsr extra parameters detected")
            if not args:
                raise EncodeError("short_bsr missing parameters (LCGID BUFFER)")
            raise EncodeError(
                "LCGID not provided" if args[0] is None else "BUFFER not provided"
            )
        lcgid, buffer = args
        if lcgid is None:
            raise EncodeError("LCGID not provided")
        if buffer is None:
            raise EncodeError("BUFFER not provided")
        if lcgid < 0 or lcgid > 7:
            raise EncodeError(
                "LCGID cannot be negative" if lcgid < 0 else "LCGID out of range (0-7)"
            )
        if buffer < 0 or buffer > 31:
            raise EncodeError(
                "BUFFER cannot be negative" if buffer < 0 else "BUFFER out of range (0-31)"
            )
        self._reserve(2)
        return self._write(LCID_SHORT_BSR, (lcgid << 5) | buffer)

    def phr(self, *args: Optional[int], flags: Flags = Flags()) -> bytes:
        """Single entry power headroom report: PH and PCMAX, six bits each."""
        if len(args) != 2:
            if not args:
                raise EncodeError("Both parameters missing")
            if len(args) > 2:
                raise EncodeError("phr extra parameters detected")
            raise EncodeError(
                "Missing parameter PH" if args[0] is None else "Missing parameter Pcmax"
            )
        ph, pcmax = args
        if ph is None:
            raise EncodeError("Missing parameter PH")
        if pcmax is None:
            raise EncodeError("Missing parameter Pcmax")
        if ph < 0:
            raise EncodeError("PH cannot be negative")
        if pcmax < 0:
            raise EncodeError("PCMAX cannot be negative")
        check_range(ph, 0, 63, "PH")
        check_range(pcmax, 0, 63, "PCMAX")
        self._reserve(3)
        return self._write(
            LCID_PHR,
            (flags.p << 7) | (ph & 0x3F),
            (flags.mpe << 7) | (pcmax & 0x3F),
        )

    def crnti(self, *args: Optional[int]) -> bytes:
        """C-RNTI: a 16-bit value, most significant octet first."""
        if len(args) != 1:
            raise EncodeError(
                "CRNTI missing parameter(VALUE)"
                if not args
                else "crnti extra parameters detected"
            )
        (value,) = args
        if value is None:
            raise EncodeError("CRNTI value not provided")
        if value < 0:
            raise EncodeError("CRNTI cannot be negative")
        if value > 65535:
            raise EncodeError("CRNTI out of range (0-65535)")
        self._reserve(3)
        return self._write(LCID_CRNTI, (value >> 8) & 0xFF, value & 0xFF)

    def rec_bit_rate(self, *args: Optional[int], flags: Flags = Flags()) -> bytes:
        """Recommended bit rate: LCID, UL/DL bit, six-bit rate and X bit."""
        if len(args) < 1 or len(args) > 3:
            raise EncodeError(
                "Parameter Missing"
                if not args
                else "rec_bit_rate extra parameters detected"
            )
        lcid, rate, ul_dl = (tuple(args) + (None, None, None))[:3]
        _missing_or_negative(lcid, "Missing parameter LCID", "LCID cannot be negative")
        _missing_or_negative(rate, "Missing parameter RATE", "RATE cannot be negative")
        _missing_or_negative(ul_dl, "Missing parameter UL_DL", "UL/DL cannot be negative")
        check_range(lcid, 0, 63, "LCID")
        check_range(rate, 0, 63, "BIT_RATE")
        check_range(ul_dl, 0, 1, "UL/DL")
        self._reserve(3)
        return self._write(
            LCID_REC_BIT_RATE,
            (lcid << 2) | (ul_dl << 1) | ((rate >> 5) & 0x01),
            ((rate & 0x1F) << 3) | (flags.x << 2),
        )

    def dsr(self, params: Sequence[int], flags: Flags = Flags()) -> bytes:
        """Delay status report from a flat sequence of (lcg, rt, buffer) sets."""
        values = list(params)
        if not values or len(values) % 3:
            raise EncodeError(
                "DSR missing parameters"
                if not values
                else "DSR requires (lcg rt buffer) sets"
            )
        entries = list(zip(values[0::3], values[1::3], values[2::3]))
        bitmap = 0
        for lcg, _, _ in entries:
            check_range(lcg, 0, 7, "LCG")
            bitmap |= 1 << lcg
        self._reserve(4 + 2 * len(entries))
        payload = []
        for _, rt, buffer in entries:
            check_range(rt, 0, 63, "RT")
            check_range(buffer, 0, 255, "BUFFER")
            payload += [(flags.bt << 7) | (rt & 0x3F), buffer]
        return self._write(
            LCID_EXT_1BYTE, ELCID_DSR, 1 + 2 * len(entries), bitmap, *payload
        )

    def enhanced_phr(self, *args: Optional[int]) -> bytes:
        """Enhanced single entry PHR for multiple TRP: PH1, PH2 and PCMAX."""
        if len(args) > 3:
            raise EncodeError("Extra parameters detected")
        ph1, ph2, pcmax = (tuple(args) + (None, None, None))[:3]
        problems = []
        for name, value in (("PH1", ph1), ("PH2", ph2), ("PCMAX", pcmax)):
            if value is None:
                problems.append(f"Missing parameter {name}")
            elif value < 0:
                problems.append(f"{name} cannot be negative")
        if problems:
            raise EncodeError(" ".join(problems))
        check_range(ph1, 0, 63, "PH1")
        check_range(ph2, 0, 63, "PH2")
        check_range(pcmax, 0, 63, "PCMAX")
        self._reserve(5)
        return self._write(
            LCID_EXT_1BYTE, ELCID_ENH_PHR, ph1 & 0x3F, ph2 & 0x3F, pcmax & 0x3F
        )

    def sl_lbt(self, *args: Optional[int]) -> bytes:
        """Sidelink LBT failure: a five-bit value."""
        if len(args) != 1:
            raise EncodeError(
                "SL-LBT missing parameter"
                if not args
                else "SL-LBT extra parameters detected"
            )
        (value,) = args
        if value is None:
            raise EncodeError("SL-LBT value missing")
        if value < 0:
            raise EncodeError("SL-LBT cannot be negative")
        check_range(value, 0, 31, "SL-LBT")
        self._reserve(3)
        return self._write(LCID_EXT_1BYTE, ELCID_SL_LBT, value & 0x1F)

    def enhanced_bfr(self, params: Sequence[int]) -> bytes:
        """Enhanced BFR from a flat sequence of (ci, s, ac, id, cid) sets."""
        values = list(params)
        if not values or len(values) % 5:
            raise EncodeError(
                "No parameters" if not values else "Expected (ci s ac id cid) sets"
            )
        entries = [tuple(values[i:i + 5]) for i in range(0, len(values), 5)]
        ci_bitmap = 0
        s_bitmap = 0
        for ci, s, _, _, _ in entries:
            check_range(ci, 0, 7, "CI")
            check_range(s, 0, 7, "S")
            ci_bitmap |= 1 << ci
            if s != 0:
                s_bitmap |= 1 << ci
        self._reserve(5 + len(entries))
        payload = []
        for _, _, ac, ident, cid in entries:
            check_range(ac, 0, 1, "AC")
            check_range(ident, 0, 1, "ID")
            check_range(cid, 0, 63, "CID")
            payload.append((ac << 7) | (ident << 6) | (cid & 0x3F))
        return self._write(
            LCID_EXT_1BYTE,
            ELCID_ENH_BFR,
            2 + len(entries),
            ci_bitmap,
            s_bitmap,
            *payload,
        )

    def extended_bsr(self, *args: Optional[int]) -> bytes:
        """Extended BSR: LCG ID octet and buffer size octet."""
        if len(args) != 2:
            if not args:
                raise EncodeError("extended_bsr missing parameters (LCG BUFFER)")
            if len(args) == 1:
                raise EncodeError(
                    "LCG not provided" if args[0] is None else "BUFFER not provided"
                )
            raise EncodeError("extended_bsr extra parameters detected")
        lcg, buffer = args
        if lcg is None:
            raise EncodeError("LCG not provided")
        if buffer is None:
            raise EncodeError("BUFFER not provided")
        if lcg < 0:
            raise EncodeError("LCG cannot be negative")
        if buffer < 0:
            raise EncodeError("BUFFER cannot be negative")
        check_range(lcg, 0, 255, "LCG")
        check_range(buffer, 0, 255, "BUFFER")
        self._reserve(4)
        return self._write(LCID_EXT_1BYTE, ELCID_EXT_BSR, lcg & 0x07, buffer & 0xFF)

    def pad(self) -> bytes:
        """Fill the rest of the PDU with zero octets and return them."""
        return self._write(*([0] * (self.size - self.offset)))

    def to_bytes(self) -> bytes:
        """Return the whole PDU buffer."""
        return bytes(self._buffer)