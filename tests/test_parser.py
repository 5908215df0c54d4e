import io

import pytest

from macce.parser import (
    CeReport,
    EncodeResult,
    ParseError,
    ce_id,
    main,
    parse_and_encode,
    validate_input_file,
)


def write_input(tmp_path, body, name="test_input.txt"):
    path = tmp_path / name
    path.write_text(body)
    return path


def encode(tmp_path, body):
    out = io.StringIO()
    result = parse_and_encode(write_input(tmp_path, body), out)
    return result, out.getvalue()


# ---- cases carried over from the source's own parse tests ----


def test_sl_lbt_value_missing(tmp_path):
    path = write_input(
        tmp_path, "Total pdu_size 30\nnum_ce 1\n<sl_lbt>\nvalue=\n"
    )
    with pytest.raises(ParseError, match="SL-LBT value missing"):
        parse_and_encode(path, io.StringIO())


def test_short_bsr_buffer_value_missing(tmp_path):
    path = write_input(
        tmp_path, "Total pdu_size 30\nnum_ce 1\n<short_bsr>\nlcgid=1\nbuffer=\n"
    )
    with pytest.raises(ParseError, match="buffer value missing or invalid"):
        parse_and_encode(path, io.StringIO())


def test_phr_pcmax_value_missing(tmp_path):
    path = write_input(tmp_path, "Total pdu_size 30\nnum_ce 1\n<phr>\nph=1\npcmax=\n")
    with pytest.raises(ParseError, match="Missing value PCMAX"):
        parse_and_encode(path, io.StringIO())


def test_crnti_value_missing(tmp_path):
    path = write_input(tmp_path, "Total pdu_size 30\nnum_ce 1\n<crnti>\ncrnti=\n")
    with pytest.raises(ParseError, match="CRNTI value missing"):
        parse_and_encode(path, io.StringIO())


def test_rec_bit_rate_rate_value_missing(tmp_path):
    path = write_input(
        tmp_path,
        "Total pdu_size 30\nnum_ce 1\n<rec_bit_rate>\nlcid=3\nrate=\nul_dl=1\n",
    )
    with pytest.raises(ParseError, match="Missing parameter RATE"):
        parse_and_encode(path, io.StringIO())


def test_dsr_value_missing(tmp_path):
    path = write_input(
        tmp_path, "Total pdu_size 30\nnum_ce 1\n<dsr>\nlcg=3\nrt=\nbuffer=4\n"
    )
    with pytest.raises(ParseError, match="Missing value in DSR"):
        parse_and_encode(path, io.StringIO())


def test_extended_bsr_missing_buffer(tmp_path):
    path = write_input(tmp_path, "Total pdu_size 30\nnum_ce 1\n<extended_bsr>\nlcgid=3\n")
    with pytest.raises(ParseError, match="BUFFER not provided"):
        parse_and_encode(path, io.StringIO())


def test_enhanced_phr_pcmax_missing(tmp_path):
    path = write_input(
        tmp_path, "Total pdu_size 30\nnum_ce 1\n<enhanced_phr>\nph1=10\nph2=20\n"
    )
    with pytest.raises(ParseError, match="Missing parameter PCMAX"):
        parse_and_encode(path, io.StringIO())


# ---- successful encodings ----


@pytest.mark.parametrize(
    "block, size, expected",
    [
        ("<short_bsr>\nlcgid=3\nbuffer=10\n", 4, "3d6a0000"),
        ("<phr>\nph=20\npcmax=15\n", 3, "39948f"),
        ("<crnti>\ncrnti=500\n", 3, "3a01f4"),
        ("<rec_bit_rate>\nlcid=3\nbit_rate=20\nul_dl=1\n", 3, "350ea0"),
        ("<dsr>\nlcg=3\nrt=4\nbuffer=20\n", 6, "22e403080414"),
        ("<enhanced_phr>\nph1=20\nph2=25\npcmax=15\n", 5, "22dd14190f"),
        ("<sl_lbt>\nvalue=10\n", 3, "22de0a"),
        (
            "<enhanced_bfr>\nci=1\ns=1\nac=1\nid=0\ncandidate_id=5\n",
            6,
            "22eb03020285",
        ),
        ("<extended_bsr>\nlcgid=3\nbuffer=100\n", 4, "22f50364"),
    ],
)
def test_single_ce_encoding(tmp_path, block, size, expected):
    result, _ = encode(tmp_path, f"Total pdu_size {size}\nnum_ce 1\n{block}")
    assert result.pdu == bytes.fromhex(expected)
    assert result.size == size


def test_report_sizes_and_output(tmp_path):
    result, text = encode(
        tmp_path, "Total pdu_size 10\nnum_ce 1\n<sl_lbt>\nvalue=10\n"
    )
    (report,) = result.reports
    assert report == CeReport("sl_lbt", bytes.fromhex("22de0a"), 2)
    assert report.payload_size == 1
    assert report.total_size == 3
    assert result.used == 3
    assert result.remaining == 7
    assert "Encoded Hex  : 22 DE 0A" in text
    assert "Encoded Bits : 00100010 11011110 00001010" in text
    assert "[SUCCESS] sl_lbt Encoded" in text
    assert "Remaining Bytes  : 7 bytes" in text
    assert "22 DE 0A 00 00 00 00 00 00 00" in text


def test_normal_lcid_has_one_octet_subheader(tmp_path):
    result, text = encode(tmp_path, "Total pdu_size 3\nnum_ce 1\n<crnti>\ncrnti=500\n")
    assert result.reports[0].subheader_size == 1
    assert result.reports[0].payload_size == 2
    assert "Subheader Size : 1 byte" in text


def test_multiple_ces_are_appended_in_order(tmp_path):
    result, _ = encode(
        tmp_path,
        "Total pdu_size 8\nnum_ce 2\n"
        "<short_bsr>\nlcgid=1\nbuffer=2\n"
        "<crnti>\ncrnti=5\n",
    )
    assert [report.name for report in result.reports] == ["short_bsr", "crnti"]
    assert result.pdu == bytes.fromhex("3d223a0005000000")


def test_num_ce_limits_encoded_elements(tmp_path):
    result, _ = encode(
        tmp_path,
        "Total pdu_size 6\nnum_ce 1\n<crnti>\ncrnti=5\n<sl_lbt>\nvalue=3\n",
    )
    assert len(result.reports) == 1
    assert result.pdu == bytes.fromhex("3a0005000000")


def test_overflow_skips_ce(tmp_path):
    result, text = encode(tmp_path, "Total pdu_size 2\nnum_ce 1\n<crnti>\ncrnti=5\n")
    assert result.reports == ()
    assert result.pdu == bytes(2)
    assert "PDU size exceeded for crnti (Available: 2 bytes)" in text


def test_overflow_then_fitting_ce(tmp_path):
    result, _ = encode(
        tmp_path,
        "Total pdu_size 4\nnum_ce 2\n"
        "<enhanced_phr>\nph1=1\nph2=2\npcmax=3\n"
        "<sl_lbt>\nvalue=1\n",
    )
    assert [report.name for report in result.reports] == ["sl_lbt"]
    assert result.pdu == bytes.fromhex("22de0100")


def test_unknown_ce_is_skipped(tmp_path):
    result, text = encode(
        tmp_path, "Total pdu_size 3\nnum_ce 1\n<bogus>\n<crnti>\ncrnti=1\n"
    )
    assert "ERROR: Unknown CE bogus" in text
    assert result.pdu == bytes.fromhex("3a0001")


def test_dsr_multiple_entries(tmp_path):
    result, _ = encode(
        tmp_path,
        "Total pdu_size 8\nnum_ce 1\n<dsr>\nlcg=1\nrt=10\nbuffer=50\n"
        "lcg=3\nrt=20\nbuffer=60\n",
    )
    assert result.pdu == bytes.fromhex("22e4050a0a32143c")


# ---- failures ----


def test_enhanced_bfr_incomplete_entry(tmp_path):
    path = write_input(
        tmp_path,
        "Total pdu_size 10\nnum_ce 1\n<enhanced_bfr>\nci=1\ns=1\ncandidate_id=5\n",
    )
    with pytest.raises(ParseError, match="incomplete entry"):
        parse_and_encode(path, io.StringIO())


def test_dsr_incomplete_set(tmp_path):
    path = write_input(tmp_path, "Total pdu_size 10\nnum_ce 1\n<dsr>\nlcg=1\nrt=2\n")
    with pytest.raises(ParseError, match="DSR requires"):
        parse_and_encode(path, io.StringIO())


def test_short_bsr_unknown_parameter(tmp_path):
    path = write_input(
        tmp_path, "Total pdu_size 10\nnum_ce 1\n<short_bsr>\nlcg=1\nbuffer=2\n"
    )
    with pytest.raises(ParseError, match="unknown parameter lcg"):
        parse_and_encode(path, io.StringIO())


def test_range_error_from_encoder(tmp_path):
    path = write_input(
        tmp_path, "Total pdu_size 10\nnum_ce 1\n<short_bsr>\nlcgid=9\nbuffer=2\n"
    )
    with pytest.raises(ParseError, match=r"LCGID out of range \(0-7\)"):
        parse_and_encode(path, io.StringIO())


def test_crnti_non_digit(tmp_path):
    path = write_input(tmp_path, "Total pdu_size 10\nnum_ce 1\n<crnti>\ncrnti=-5\n")
    with pytest.raises(ParseError, match="CRNTI must be a positive integer"):
        parse_and_encode(path, io.StringIO())


@pytest.mark.parametrize(
    "header",
    ["Total pdu_size 30 x\nnum_ce 1\n", "Total pdu_size -1\nnum_ce 1\n", "size 30\n"],
)
def test_invalid_pdu_size(tmp_path, header):
    path = write_input(tmp_path, header)
    with pytest.raises(ParseError, match="Invalid PDU size"):
        parse_and_encode(path, io.StringIO())


@pytest.mark.parametrize("line", ["num_ce 0\n", "num_ce x\n", ""])
def test_invalid_num_ce(tmp_path, line):
    path = write_input(tmp_path, "Total pdu_size 30\n" + line)
    with pytest.raises(ParseError, match="Invalid num_ce"):
        parse_and_encode(path, io.StringIO())


# ---- file validation and identifiers ----


def test_validate_rejects_other_extensions(tmp_path):
    path = write_input(tmp_path, "x", name="input.csv")
    with pytest.raises(ParseError, match="Only .txt allowed"):
        validate_input_file(path)


def test_validate_rejects_missing_file(tmp_path):
    with pytest.raises(ParseError, match="file not found"):
        validate_input_file(tmp_path / "absent.txt")


def test_validate_accepts_upper_case_extension(tmp_path):
    path = write_input(tmp_path, "x", name="INPUT.TXT")
    assert validate_input_file(path) == path


@pytest.mark.parametrize(
    "name, expected",
    [("short_bsr", 1), ("phr", 2), ("dsr", 5), ("extended_bsr", 9), ("bogus", None)],
)
def test_ce_id(name, expected):
    assert ce_id(name) == expected


def test_encode_result_properties():
    result = EncodeResult(bytes(5), (CeReport("crnti", b"\x3a\x00\x01", 1),))
    assert (result.size, result.used, result.remaining) == (5, 3, 2)


# ---- command ----


def test_main_success(tmp_path, capsys):
    path = write_input(tmp_path, "Total pdu_size 3\nnum_ce 1\n<crnti>\ncrnti=500\n")
    assert main([str(path)]) == 0
    output = capsys.readouterr().out
    assert "Final MAC Buffer:" in output
    assert "3A 01 F4" in output


def test_main_failure(tmp_path, capsys):
    path = write_input(tmp_path, "Total pdu_size 3\nnum_ce 1\n<crnti>\ncrnti=\n")
    assert main([str(path)]) == 1
    assert "ERROR: CRNTI value missing" in capsys.readouterr().out