# macce

`macce` encodes 5G NR MAC control elements (MAC CEs) into a fixed-size MAC PDU.
You can use it in two ways:

- Describe the control elements in a small text file and let the `macce`
  command encode them.
- Build a PDU from Python, one element at a time.

## Installation

```
pip install .
```

## Command line

```
macce input.txt
```

If you give no file, the command reads `input.txt` in the current directory.
The input file must have a `.txt` extension.

The input file is laid out as follows:

- The first line gives the total PDU size, from 0 to 255 bytes.
- The second line gives the number of control elements to encode.
- The control element blocks come after those two lines. Each block starts
  with `<name>` and is followed by `key=value` lines.

```
Total pdu_size 30
num_ce 2
<short_bsr>
lcgid=3
buffer=10
<crnti>
crnti=500
```

For each control element that is encoded, the command prints:

- the subheader size, the payload size and the total size;
- the encoded bits and the encoded hex.

At the end it prints a summary: the PDU size, the bytes used and the bytes
remaining. Unused bytes are filled with `00`, and the complete MAC buffer is
printed last.

Supported control elements:

| Block          | Parameters                                                     |
|----------------|----------------------------------------------------------------|
| `short_bsr`    | `lcgid` (0–7), `buffer` (0–31)                                 |
| `phr`          | `ph` (0–63), `pcmax` (0–63)                                    |
| `crnti`        | a single `key=value` line, value 0–65535                       |
| `rec_bit_rate` | `lcid` (0–63), `bit_rate` (0–63), `ul_dl` (0–1)                |
| `dsr`          | values in sets of three: lcg (0–7), rt (0–63), buffer (0–255)  |
| `enhanced_phr` | `ph1` (`ph` also counts as `ph1`), `ph2`, `pcmax` (each 0–63)  |
| `sl_lbt`       | a single `key=value` line, value 0–31                          |
| `enhanced_bfr` | `ci`, `s`, `ac`, `id`, then `candidate_id` to close each entry |
| `extended_bsr` | `lcgid` (0–255, only the low three bits are encoded), `buffer` (0–255) |

The `crnti`, `dsr` and `sl_lbt` values must be written as plain digits.

Some problems are reported and skipped, and the rest of the file is still
read:

- a block with an unknown name;
- a control element that does not fit in the space left in the PDU.

Any other invalid input stops encoding. The command then prints the error and
exits with status 1.

## Python API

```python
from macce.ce import MacPdu, format_hex

pdu = MacPdu(10)
pdu.short_bsr(3, 10)
pdu.crnti(500)
pdu.pad()
print(format_hex(pdu.to_bytes()))
# 3D 6A 3A 01 F4 00 00 00 00 00
```

### Building a PDU with `MacPdu`

`MacPdu(size)` holds a PDU of 0 to 255 bytes. It has one method per control
element:

- `short_bsr`, `phr`, `crnti`, `rec_bit_rate`, `enhanced_phr`, `sl_lbt` and
  `extended_bsr` take their parameters positionally. `None` stands for a
  parameter that was named but given no value.
- `dsr` and `enhanced_bfr` take one flat sequence of values.
- `phr`, `rec_bit_rate` and `dsr` also accept a `flags=Flags(...)` argument,
  which sets the single-bit fields P, MPE, X and BT.

Each method returns the octets it appended and advances `pdu.offset`. Two
more methods finish the PDU:

- `pad()` fills the rest of the PDU with zeros.
- `to_bytes()` returns the whole buffer.

### Errors

If a parameter is invalid, the method raises `EncodeError`. If an element does
not fit in the PDU, it raises `PduOverflowError`, a subclass of `EncodeError`
that carries `required` and `available`. Either way, nothing is written to the
PDU.

### Helper functions

- `format_hex` renders octets as hex.
- `format_bits` renders octets as groups of eight bits.
- `check_range` validates a value against an inclusive range.

### Encoding a whole file

`macce.parser.parse_and_encode(path, out=None)` encodes a whole input file. It
writes the same report as the command to `out`, which is standard output by
default. It returns an `EncodeResult` with:

- the padded `pdu`;
- one `CeReport` per encoded element, each with its name, octets, subheader
  size, payload size and total size;
- the `size`, `used` and `remaining` byte counts.

Invalid input raises `ParseError`. Two more functions are available:

- `validate_input_file` checks the file name and that the file exists.
- `ce_id` maps a control element name to its number.

## Limitations

The package only encodes. It does not decode or parse existing MAC PDUs, and
it does not build MAC SDUs or any other part of a MAC PDU apart from control
elements and zero padding.