"""Reading of MAC CE description files and encoding them into a MAC PDU."""

from __future__ import annotations

import argparse
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence, TextIO, Tuple

from .ce import (
    EncodeError,
    Flags,
    MacPdu,
    PduOverflowError,
    format_bits,
    format_hex,
)

__all__ = [
    "ParseError",
    "CeReport",
    "EncodeResult",
    "validate_input_file",
    "ce_id",
    "parse_and_encode",
    "main",
]

_CE_NAMES = (
    "short_bsr",
    "phr",
    "crnti",
    "rec_bit_rate",
    "dsr",
    "enhanced_phr",
    "sl_lbt",
    "enhanced_bfr",
    "extended_bsr",
)

# Control elements carried behind a two-octet (extended LCID) subheader.
_EXTENDED = {"dsr", "enhanced_phr", "sl_lbt", "enhanced_bfr", "extended_bsr"}

_SIZE_LINE = re.compile(r"Total\s*pdu_size\s*([+-]?\d+)\s*")
_NUM_CE_LINE = re.compile(r"num_ce\s*([+-]?\d+)")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_SOLE_INT = re.compile(r"\s*([+-]?\d+)\s*")
_DIGITS = re.compile(r"[0-9]+")
_BFR_LINE = re.compile(r"([^=]+)=\s*([+-]?\d+)")


class ParseError(ValueError):
    """The input file is invalid or a control element in it cannot be encoded."""


@dataclass(frozen=True)
class CeReport:
    """One control element that was encoded into the PDU."""

    name: str
    octets: bytes
    subheader_size: int

    @property
    def total_size(self) -> int:
        return len(self.octets)

    @property
    def payload_size(self) -> int:
        return self.total_size - self.subheader_size


@dataclass(frozen=True)
class EncodeResult:
    """The padded PDU and the control elements that went into it."""

    pdu: bytes
    reports: Tuple[CeReport, ...]

    @property
    def size(self) -> int:
        return len(self.pdu)

    @property
    def used(self) -> int:
        return sum(report.total_size for report in self.reports)

    @property
    def remaining(self) -> int:
        return self.size - self.used


class _Lines:
    """A cursor over the lines of the input that can give back the last line."""

    def __init__(self, lines: Sequence[str]) -> None:
        self._lines = list(lines)
        self._pos = 0

    def next(self) -> Optional[str]:
        if self._pos >= len(self._lines):
            return None
        line = self._lines[self._pos]
        self._pos += 1
        return line

    def push_back(self) -> None:
        self._pos -= 1

    def until(self, stop: Callable[[str], bool]) -> Iterator[str]:
        """Yield lines up to, but not including, the first one ``stop`` accepts."""
        while (line := self.next()) is not None:
            if stop(line):
                self.push_back()
                return
            yield line


def _has_header(line: str) -> bool:
    return "<" in line


def _put_back_header(lines: _Lines, line: Optional[str]) -> None:
    if line is not None and _has_header(line):
        lines.push_back()


def _scan_int(text: str) -> Optional[int]:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else None


def _atoi(text: str) -> int:
    value = _scan_int(text)
    return 0 if value is None else value


def _counted(values: Tuple[Optional[int], ...], count: int) -> Tuple[Optional[int], ...]:
    """Shape the collected values into an argument tuple of ``count`` items."""
    return (values + (None,) * count)[:count]


def _strict_value(line: str, missing: str, invalid: str) -> int:
    value = line.split("=", 1)[1]
    if not value:
        raise ParseError(missing)
    if not _DIGITS.fullmatch(value):
        raise ParseError(invalid)
    return int(value)


def _short_bsr(lines: _Lines, pdu: MacPdu, flags: Flags) -> bytes:
    lcgid: Optional[int] = None
    buffer: Optional[int] = None
    count = 0
    for line in lines.until(_has_header):
        if "=" not in line:
            continue
        key_part, _, value = line.partition("=")
        key = key_part.lstrip()
        val = _scan_int(value)
        if val is None:
            raise ParseError(f"{key} value missing or invalid")
        count += 1
        if key == "lcgid":
            lcgid = val
        elif key == "buffer":
            buffer = val
        else:
            raise ParseError(f"unknown parameter {key}")
    return pdu.short_bsr(*_counted((lcgid, buffer), count))


def _phr(lines: _Lines, pdu: MacPdu, flags: Flags) -> bytes:
    values: Dict[str, Optional[int]] = {"PH": None, "PCMAX": None}
    count = 0
    for line in lines.until(_has_header):
        if not line or "=" not in line:
            continue
        if line.startswith("ph"):
            name = "PH"
        elif line.startswith("pcmax"):
            name = "PCMAX"
        else:
            raise ParseError("Unknown parameter in PHR")
        value = line.split("=", 1)[1]
        if not value:
            raise ParseError(f"Missing value {name}")
        parsed = _scan_int(value)
        if parsed is None:
            raise ParseError(f"Invalid value {name}")
        values[name] = parsed
        count += 1
    for name, value in values.items():
        if value is None:
            raise ParseError(f"Missing parameter {name}")
    args = _counted((values["PH"], values["PCMAX"]), count)
    return pdu.phr(*args, flags=flags)


def _crnti(lines: _Lines, pdu: MacPdu, flags: Flags) -> bytes:
    line = lines.next()
    if line is None:
        raise ParseError("CRNTI missing parameter(VALUE)")
    if "=" not in line:
        raise ParseError("Invalid CRNTI format")
    value = _strict_value(
        line, "CRNTI value missing", "CRNTI must be a positive integer"
    )
    octets = pdu.crnti(value)
    _put_back_header(lines, line)
    return octets


_BIT_RATE_KEYS = (("lcid", "LCID"), ("bit_rate", "RATE"), ("ul_dl", "UL/DL"))


def _rec_bit_rate(lines: _Lines, pdu: MacPdu, flags: Flags) -> bytes:
    values: Dict[str, Optional[int]] = {prefix: None for prefix, _ in _BIT_RATE_KEYS}
    count = 0
    last: Optional[str] = None
    for _ in range(3):
        line = lines.next()
        if line is None:
            break
        last = line
        if "=" not in line:
            continue
        value = line.split("=", 1)[1]
        for prefix, label in _BIT_RATE_KEYS:
            if line.startswith(prefix):
                if not value:
                    raise ParseError(f"Missing value {label}")
                match = _SOLE_INT.fullmatch(value)
                if not match:
                    raise ParseError(f"{label} Must be a positive integer")
                values[prefix] = int(match.group(1))
                count += 1
                break
    _put_back_header(lines, last)
    args = () if count == 0 else (values["lcid"], values["bit_rate"], values["ul_dl"])
    return pdu.rec_bit_rate(*args, flags=flags)


def _dsr(lines: _Lines, pdu: MacPdu, flags: Flags) -> bytes:
    params: List[int] = []
    for line in lines.until(_has_header):
        if "=" not in line:
            continue
        params.append(
            _strict_value(
                line,
                "Missing value in DSR",
                "DSR values must be positive integers",
            )
        )
    if not params:
        raise ParseError("DSR missing parameters")
    if len(params) % 3:
        raise ParseError("DSR requires (lcg rt buffer) sets")
    return pdu.dsr(params, flags)


def _enhanced_phr(lines: _Lines, pdu: MacPdu, flags: Flags) -> bytes:
    ph: List[Optional[int]] = [None, None]
    pcmax: Optional[int] = None
    for line in lines.until(lambda text: text.startswith("<")):
        if "=" not in line:
            continue
        value = line.split("=", 1)[1]
        if line.startswith("ph"):
            index = 1 if line[2:3] == "=" else _atoi(line[2:])
            if not 1 <= index <= 2:
                raise ParseError("Invalid PH index")
            name = f"PH{index}"
        elif line.startswith("pcmax"):
            index = 0
            name = "PCMAX"
        else:
            continue
        if not value:
            raise ParseError(f"Missing value {name}")
        parsed = _scan_int(value)
        if "." in value or parsed is None:
            raise ParseError("value must be positive integer")
        if index:
            ph[index - 1] = parsed
        else:
            pcmax = parsed
    return pdu.enhanced_phr(ph[0], ph[1], pcmax)


def _sl_lbt(lines: _Lines, pdu: MacPdu, flags: Flags) -> bytes:
    line = lines.next()
    if line is None or "=" not in line:
        raise ParseError("Invalid SL-LBT format")
    value = _strict_value(
        line, "SL-LBT value missing", "SL-LBT must be a positive integer"
    )
    octets = pdu.sl_lbt(value)
    _put_back_header(lines, line)
    return octets


def _enhanced_bfr(lines: _Lines, pdu: MacPdu, flags: Flags) -> bytes:
    fields: Dict[str, Optional[int]] = {"ci": None, "s": None, "ac": None, "id": None}
    params: List[int] = []
    for line in lines.until(_has_header):
        match = _BFR_LINE.match(line)
        if not match:
            continue
        key, val = match.group(1), int(match.group(2))
        if key in fields:
            fields[key] = val
        elif key == "candidate_id":
            if any(value is None for value in fields.values()):
                raise ParseError("incomplete entry")
            params += [fields["ci"], fields["s"], fields["ac"], fields["id"], val]
            # ci and s carry over to the next entry until they are changed
            fields["ac"] = fields["id"] = None
    return pdu.enhanced_bfr(params)


def _extended_bsr(lines: _Lines, pdu: MacPdu, flags: Flags) -> bytes:
    lcg: Optional[int] = None
    buffer: Optional[int] = None
    count = 0
    for line in lines.until(_has_header):
        if "=" not in line:
            continue
        key_part, _, value = line.partition("=")
        key = key_part.lstrip()
        val = _scan_int(value)
        if val is None:
            raise ParseError(f"{key} must be a positive integer")
        count += 1
        if key == "lcgid":
            lcg = val
        elif key == "buffer":
            buffer = val
        else:
            raise ParseError(f"unknown parameter {key}")
    return pdu.extended_bsr(*_counted((lcg, buffer), count))


_Handler = Callable[[_Lines, MacPdu, Flags], bytes]

_HANDLERS: Dict[str, _Handler] = {
    "short_bsr": _short_bsr,
    "phr": _phr,
    "crnti": _crnti,
    "rec_bit_rate": _rec_bit_rate,
    "dsr": _dsr,
    "enhanced_phr": _enhanced_phr,
    "sl_lbt": _sl_lbt,
    "enhanced_bfr": _enhanced_bfr,
    "extended_bsr": _extended_bsr,
}


def validate_input_file(path: "os.PathLike[str] | str") -> Path:
    """Check that ``path`` names an existing ``.txt`` file and return it."""
    name = os.fspath(path)
    dot = name.rfind(".")
    if dot < 0 or name[dot:].lower() != ".txt":
        raise ParseError("Invalid file type. Only .txt allowed")
    source = Path(name)
    if not source.is_file():
        raise ParseError("file not found")
    return source


def ce_id(name: str) -> Optional[int]:
    """Return the numeric identifier of a control element name, or None."""
    try:
        return _CE_NAMES.index(name) + 1
    except ValueError:
        return None


def _parse_size(line: Optional[str]) -> int:
    match = _SIZE_LINE.fullmatch(line) if line is not None else None
    if not match or int(match.group(1)) < 0:
        raise ParseError("Invalid PDU size")
    return int(match.group(1))


def _parse_num_ce(line: Optional[str]) -> int:
    match = _NUM_CE_LINE.match(line) if line is not None else None
    if not match or int(match.group(1)) <= 0:
        raise ParseError("Invalid num_ce")
    return int(match.group(1))


def _ce_name(line: str) -> str:
    end = line.find(">", 1)
    return line[1:] if end < 0 else line[1:end]


def parse_and_encode(
    path: "os.PathLike[str] | str", out: Optional[TextIO] = None
) -> EncodeResult:
    """Encode the control elements described in ``path`` into a padded PDU.

    A report of each element and a final summary are written to ``out``
    (standard output by default). Unknown elements and elements that do not
    fit are reported and skipped; any other problem raises ParseError.
    """
    stream = sys.stdout if out is None else out

    def emit(text: str = "") -> None:
        print(text, file=stream)

    source = validate_input_file(path)
    try:
        text = source.read_text()
    except OSError as exc:
        raise ParseError("Cannot open file") from exc

    lines = _Lines(text.splitlines())
    size = _parse_size(lines.next())
    try:
        pdu = MacPdu(size)
    except ValueError as exc:
        raise ParseError("Invalid PDU size") from exc
    num_ce = _parse_num_ce(lines.next())
    flags = Flags()

    reports: List[CeReport] = []
    while len(reports) < num_ce:
        line = lines.next()
        if line is None:
            break
        if not line.startswith("<"):
            continue
        name = _ce_name(line)
        emit(f"MAC CE : {name}")
        handler = _HANDLERS.get(name)
        if handler is None:
            emit(f"ERROR: Unknown CE {name}\n")
            continue
        try:
            octets = handler(lines, pdu, flags)
        except PduOverflowError as exc:
            emit(
                f"ERROR: PDU size exceeded for {name} "
                f"(Available: {exc.available} bytes)\n"
            )
            continue
        except EncodeError as exc:
            raise ParseError(str(exc)) from exc

        report = CeReport(name, octets, 2 if name in _EXTENDED else 1)
        reports.append(report)
        emit(f"Subheader Size : {report.subheader_size} byte")
        emit(f"Payload Size   : {report.payload_size} bytes")
        emit(f"Total CE Size  : {report.total_size} bytes (Subheader + Payload)")
        emit(f"Encoded Bits : {format_bits(octets)}")
        emit(f"Encoded Hex  : {format_hex(octets)}")
        emit(f"[SUCCESS] {name} Encoded\n")

    used = pdu.offset
    emit("\n===== FINAL SUMMARY =====")
    emit(f"Total PDU Size   : {pdu.size} bytes")
    emit(f"Total Used Bytes : {used} bytes")
    emit(f"Remaining Bytes  : {pdu.size - used} bytes")
    pdu.pad()
    emit("\nRemaining bytes filled with 00.")
    emit("\nFinal MAC Buffer:")
    emit(format_hex(pdu.to_bytes()))
    return EncodeResult(pdu.to_bytes(), tuple(reports))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Encode a MAC CE description file and print the resulting PDU."""
    parser = argparse.ArgumentParser(
        prog="macce", description="Encode MAC control elements into a MAC PDU."
    )
    parser.add_argument("input", nargs="?", default="input.txt", help="input .txt file")
    args = parser.parse_args(argv)
    try:
        parse_and_encode(args.input)
    except ParseError as exc:
        print(f"ERROR: {exc}\n")
        return 1
    return 0