"""
Functional Tests - Decoder and encoder behaviour end to end over in-memory buffers.
"""

import io

import pytest

from sexp.errors import (
    LexicalError, PaddingError, SexpIOError, StructuralError, UnexpectedEOFError,
)
from sexp.objects import SexpList, SexpString, SimpleString
from sexp.reader import InputStream, SexpReader, load, loads
from sexp.syntax import MAX_NESTING_DEPTH, PrintMode
from sexp.writer import OutputStream, SexpWriter, dump, dumps


def _abc_list():
    return SexpList([SexpString("abc")])


# =============================================================================
# Decoder: simple strings
# =============================================================================

class TestDecodeStrings:

    @pytest.mark.parametrize("text", [
        "3:abc",
        "abc",
        '"abc"',
        '3"abc"',
        "#616263#",
        "3#616263#",
        "|YWJj|",
        "3|YWJj|",
        "# 61 62\n63 #",
        "|YW Jj|",
        "|YWJj====|",
    ])
    def test_every_form_decodes_to_abc(self, text):
        assert loads(text) == SexpString("abc")

    def test_base64_with_padding(self):
        assert loads("4|YWJjZA==|") == SexpString("abcd")
        assert loads("|QQ|") == SexpString("A")

    def test_verbatim_holds_any_octets(self):
        assert loads(b"4:( \x00)") == SexpString(b"( \x00)")

    def test_empty_forms(self):
        for text in ("0:", '""', "##", "||"):
            assert loads(text) == SexpString(b"")

    def test_token_punctuation(self):
        assert loads("a-b.c/d_e:f*g+h=i") == SexpString("a-b.c/d_e:f*g+h=i")

    def test_hex_lowercase(self):
        assert loads("#ff00#") == SexpString(b"\xff\x00")

    def test_decoded_closer_is_data(self):
        # 0x23 is '#'
        assert loads("#23#") == SexpString(b"#")
        assert loads("|fA==|") == SexpString(b"|")

    def test_hint(self):
        s = loads("[text/plain]abc")
        assert s.presentation_hint == b"text/plain"
        assert s.data == b"abc"

    def test_hint_with_whitespace(self):
        s = loads("[ 4:hint ] 3:abc")
        assert s == SexpString("abc", presentation_hint="hint")


class TestDecodeQuoted:

    def test_named_escapes(self):
        s = loads(r'"\b\t\v\n\f\r\"\'\\"')
        assert s.data == b"\b\t\v\n\f\r\"'\\"

    def test_octal_and_hex_escapes(self):
        assert loads(r'"\101\x41\x4a"').data == b"AAJ"

    def test_line_continuation(self):
        for newline in (b"\n", b"\r", b"\r\n", b"\n\r"):
            assert loads(b'"ab\\' + newline + b'cd"').data == b"abcd"

    def test_unknown_escape(self):
        with pytest.raises(LexicalError):
            loads(r'"\q"')

    def test_short_octal_escape(self):
        with pytest.raises(LexicalError):
            loads(r'"\10"')

    def test_octal_out_of_range(self):
        with pytest.raises(LexicalError):
            loads(r'"\777"')

    def test_bad_hex_escape(self):
        with pytest.raises(LexicalError):
            loads(r'"\xZZ"')

    def test_unterminated(self):
        with pytest.raises(UnexpectedEOFError):
            loads('"abc')

    def test_declared_length_mismatch(self):
        with pytest.raises(StructuralError):
            loads('4"abc"')
        with pytest.raises(StructuralError):
            loads('2"abc"')


# =============================================================================
# Decoder: lists and transport
# =============================================================================

class TestDecodeLists:

    def test_empty_list(self):
        obj = loads("()")
        assert obj == SexpList()
        assert dumps(obj) == b"()"

    def test_nested(self):
        obj = loads("(a (b c) () d)")
        assert obj == SexpList([
            SexpString("a"),
            SexpList([SexpString("b"), SexpString("c")]),
            SexpList(),
            SexpString("d"),
        ])

    def test_canonical_needs_no_separators(self):
        assert loads("(1:a1:b(1:c))") == loads("(a b (c))")

    def test_hint_round_trip(self):
        obj = loads("([hint]3:abc)")
        assert obj == SexpList([SexpString("abc", presentation_hint="hint")])
        assert dumps(obj) == b"([4:hint]3:abc)"
        assert dumps(loads(b"([4:hint]3:abc)")) == b"([4:hint]3:abc)"

    def test_transport(self):
        assert loads("{KDM6YWJjKQ==}") == _abc_list()

    def test_transport_with_whitespace(self):
        assert loads("{KDM6\n  YWJj\n  KQ==}") == _abc_list()

    def test_surrounding_whitespace(self):
        assert loads("  \n(abc)\t ") == _abc_list()


# =============================================================================
# Decoder: malformed input
# =============================================================================

class TestDecodeErrors:

    def test_unterminated_list(self):
        with pytest.raises(StructuralError):
            loads("(abc")

    def test_short_verbatim(self):
        with pytest.raises(SexpIOError):
            loads("5:ab")
        with pytest.raises(StructuralError):
            loads("5:ab")

    def test_bad_hex_digit(self):
        with pytest.raises(LexicalError):
            loads("#1g#")

    def test_nonzero_base64_padding(self):
        with pytest.raises(PaddingError):
            loads("|AB|")

    def test_dangling_base64_digit(self):
        with pytest.raises(PaddingError):
            loads("|Q|")

    def test_odd_hex_digits(self):
        with pytest.raises(PaddingError):
            loads("#123#")

    def test_mismatched_delimiter(self):
        with pytest.raises(StructuralError, match="Mismatched delimiter"):
            loads("(abc]")

    def test_stray_close(self):
        with pytest.raises(StructuralError):
            loads(")")

    def test_hint_without_data(self):
        with pytest.raises(StructuralError, match="Mismatched delimiter"):
            loads("(a [b] )")
        with pytest.raises(StructuralError):
            loads("([] a)")
        with pytest.raises(UnexpectedEOFError):
            loads("[b]")

    def test_missing_colon(self):
        with pytest.raises(StructuralError):
            loads("3abc")

    def test_illegal_character(self):
        with pytest.raises(LexicalError):
            loads("@")

    def test_empty_input(self):
        with pytest.raises(UnexpectedEOFError):
            loads("")
        with pytest.raises(UnexpectedEOFError):
            loads("   \n")

    def test_trailing_data(self):
        with pytest.raises(StructuralError, match="Trailing data"):
            loads("(a) b")

    def test_unterminated_hex(self):
        with pytest.raises(UnexpectedEOFError):
            loads("#6162")

    def test_wrong_region_terminator(self):
        with pytest.raises(LexicalError):
            loads("{KDM6YWJjKQ==|")

    def test_declared_length_hex(self):
        with pytest.raises(StructuralError):
            loads("2#616263#")

    def test_nested_coded_region(self):
        # base64 of "#61#"
        with pytest.raises(StructuralError, match="nested"):
            loads("{IzYxIw==}")

    def test_long_length_prefix(self):
        with pytest.raises(LexicalError):
            loads("1234567890:")

    def test_depth_limit(self):
        deep = "(" * (MAX_NESTING_DEPTH + 1) + ")" * (MAX_NESTING_DEPTH + 1)
        with pytest.raises(StructuralError, match="nesting"):
            loads(deep)

    def test_custom_depth_limit(self):
        stream = InputStream(io.BytesIO(b"(((a)))"), max_depth=2)
        with pytest.raises(StructuralError):
            stream.scan_to_eof()

    def test_error_position(self):
        with pytest.raises(LexicalError) as exc_info:
            loads("#1g#")
        assert exc_info.value.position == 3
        assert "'g'" in exc_info.value.found


# =============================================================================
# Decoder: streams of objects
# =============================================================================

class TestInputStream:

    def test_iter_objects(self):
        stream = InputStream(io.BytesIO(b"(a)\n3:abc {KDM6YWJjKQ==}"))
        objects = list(stream.iter_objects())
        assert objects == [SexpList([SexpString("a")]), SexpString("abc"), _abc_list()]

    def test_iter_empty(self):
        assert list(InputStream(io.BytesIO(b"  ")).iter_objects()) == []

    def test_count_and_position(self):
        stream = InputStream(io.BytesIO(b"#616263#"))
        stream.scan_to_eof()
        assert stream.position == 8
        assert stream.count == 4  # "#", then the three decoded octets

    def test_parse_all(self):
        assert SexpReader.parse_all(b"a b c") == [SexpString("a"), SexpString("b"), SexpString("c")]

    def test_load_file_object(self):
        assert load(io.BytesIO(b"(3:abc)")) == _abc_list()

    def test_size_limit(self):
        with pytest.raises(ValueError, match="exceeds maximum"):
            SexpReader.parse(b"(3:abc)", max_size=4)

    def test_source_failure(self):
        class Broken(io.RawIOBase):
            def read(self, n=-1):
                raise OSError("disk gone")

        with pytest.raises(SexpIOError, match="disk gone"):
            InputStream(Broken()).scan_to_eof()


class TestSniff:

    def test_is_sexp_bytes(self):
        assert SexpReader.is_sexp_bytes(b"(3:abc)")
        assert SexpReader.is_sexp_bytes(b"  {KDM6}")
        assert SexpReader.is_sexp_bytes(b"abc")
        assert not SexpReader.is_sexp_bytes(b"")
        assert not SexpReader.is_sexp_bytes(b")")
        assert not SexpReader.is_sexp_bytes(b"\x00\x01")


# =============================================================================
# Encoder
# =============================================================================

class TestEncodeCanonical:

    def test_list(self):
        assert dumps(_abc_list()) == b"(3:abc)"

    def test_hint(self):
        obj = SexpString("abc", presentation_hint="text")
        assert dumps(obj) == b"[4:text]3:abc"

    def test_binary(self):
        assert dumps(SexpString(b"\x00\xff")) == b"2:\x00\xff"

    def test_no_wrapping(self):
        obj = SexpList([SexpString("x" * 200)])
        out = dumps(obj, max_column=10)
        assert b"\n" not in out
        assert out == b"(200:" + b"x" * 200 + b")"

    def test_mode_by_name(self):
        assert dumps(_abc_list(), "canonical") == b"(3:abc)"

    def test_to_bytes(self):
        assert _abc_list().to_bytes() == b"(3:abc)"

    def test_serialize_does_not_mutate(self):
        obj = SexpList([SexpString("abc", presentation_hint="h")])
        before = SexpList([SexpString("abc", presentation_hint="h")])
        SexpWriter.serialize(obj, PrintMode.ADVANCED)
        SexpWriter.serialize(obj, PrintMode.BASE64)
        assert obj == before


class TestEncodeBase64:

    def test_transport(self):
        assert dumps(_abc_list(), PrintMode.BASE64) == b"{KDM6YWJjKQ==}"

    def test_wraps_long_lines(self):
        obj = _abc_list()
        out = dumps(obj, PrintMode.BASE64, max_column=10)
        assert b"\n" in out
        assert loads(out) == obj

    def test_unlimited_width(self):
        obj = SexpList([SexpString("x" * 300)])
        assert b"\n" not in dumps(obj, PrintMode.BASE64, max_column=0)


class TestEncodeAdvanced:

    @pytest.mark.parametrize("obj,expected", [
        (SexpList([SexpString("abc"), SexpString("def")]), b"(abc def)"),
        (SexpString(b"\x00\x01\x02"), b"3:\x00\x01\x02"),
        (SexpString(b"\x00"), b"1:\x00"),
        (SexpString(b"\xff\xfe"), b"2:\xff\xfe"),
        (SexpString(b"a b c d e f"), b'"a b c d e f"'),
        (SexpString(b"ab c"), b"4:ab c"),
        (SexpString(b""), b"0:"),
        (SexpString(b"3abc"), b"4:3abc"),
        (SexpString("abc", presentation_hint="text/plain"), b"[text/plain]abc"),
        (SexpList(), b"()"),
    ])
    def test_forms(self, obj, expected):
        assert dumps(obj, PrintMode.ADVANCED) == expected

    def test_list_wrapping_and_indent(self):
        obj = SexpList([SexpString("aaaa"), SexpString("bbbb"), SexpString("cccc")])
        out = dumps(obj, PrintMode.ADVANCED, max_column=10)
        assert out == b"(aaaa bbbb\n cccc)"
        assert loads(out) == obj

    def test_nested_indent(self):
        inner = SexpList([SexpString("bbbb"), SexpString("cccc")])
        obj = SexpList([SexpString("aaaa"), inner])
        out = dumps(obj, PrintMode.ADVANCED, max_column=13)
        # "(aaaa" + " (bbbb cccc)" would reach column 17
        assert out == b"(aaaa\n (bbbb cccc))"
        assert loads(out) == obj

    def test_no_wrapping_when_unlimited(self):
        obj = SexpList([SexpString("word%d" % i) for i in range(50)])
        out = dumps(obj, PrintMode.ADVANCED, max_column=0)
        assert b"\n" not in out
        assert loads(out) == obj

    def test_long_quoted_wraps(self):
        obj = SexpList([SexpString(b"x"), SexpString("word " * 40)])
        out = dumps(obj, PrintMode.ADVANCED, max_column=30)
        assert all(len(line) <= 31 for line in out.split(b"\n"))
        assert loads(out) == obj


class TestOutputStream:

    def test_print_quoted(self):
        buf = io.BytesIO()
        os = OutputStream(buf, max_column=0)
        SimpleString(b'a"b\n\x01').print_quoted(os)
        assert buf.getvalue() == b'"a\\"b\\n\\x01"'
        assert loads(buf.getvalue()).data == b'a"b\n\x01'

    def test_print_quoted_continuation(self):
        buf = io.BytesIO()
        os = OutputStream(buf, max_column=6)
        SimpleString(b"abcdefgh").print_quoted(os)
        assert buf.getvalue() == b'"abc\\\ndefg\\\nh"'
        assert loads(buf.getvalue()).data == b"abcdefgh"

    def test_print_decimal_and_column(self):
        buf = io.BytesIO()
        os = OutputStream(buf)
        os.print_decimal(1234)
        assert buf.getvalue() == b"1234"
        assert os.column == 4
        assert os.reset_column() == 0

    def test_indent(self):
        os = OutputStream(io.BytesIO())
        os.inc_indent().inc_indent().dec_indent()
        assert os.indent == 1

    def test_new_line_indents_in_advanced_mode(self):
        buf = io.BytesIO()
        os = OutputStream(buf, max_column=20)
        os.inc_indent().inc_indent()
        os.new_line(PrintMode.ADVANCED)
        assert buf.getvalue() == b"\n  "
        assert os.column == 2

    def test_new_line_canonical_is_noop(self):
        buf = io.BytesIO()
        OutputStream(buf).new_line(PrintMode.CANONICAL)
        assert buf.getvalue() == b""

    def test_hex_region(self):
        buf = io.BytesIO()
        os = OutputStream(buf, max_column=0)
        os.change_output_byte_size(4, PrintMode.ADVANCED)
        for c in b"\x12\xab":
            os.var_put_char(c)
        os.change_output_byte_size(8, PrintMode.ADVANCED)
        assert buf.getvalue() == b"12AB"

    def test_base64_padding(self):
        for data, expected in ((b"a", b"YQ=="), (b"ab", b"YWI="), (b"abc", b"YWJj")):
            buf = io.BytesIO()
            os = OutputStream(buf, max_column=0)
            os.change_output_byte_size(6, PrintMode.BASE64)
            for c in data:
                os.var_put_char(c)
            os.change_output_byte_size(8, PrintMode.BASE64)
            assert buf.getvalue() == expected

    def test_illegal_byte_size(self):
        os = OutputStream(io.BytesIO())
        with pytest.raises(ValueError):
            os.change_output_byte_size(5, PrintMode.ADVANCED)
        os.change_output_byte_size(4, PrintMode.ADVANCED)
        with pytest.raises(ValueError):
            os.change_output_byte_size(6, PrintMode.ADVANCED)

    def test_negative_max_column(self):
        with pytest.raises(ValueError):
            OutputStream(io.BytesIO(), max_column=-1)

    def test_sink_failure(self):
        class Broken(io.RawIOBase):
            def writable(self):
                return True

            def write(self, b):
                raise OSError("sink full")

        with pytest.raises(SexpIOError, match="sink full"):
            dump(_abc_list(), Broken())

    def test_dump_to_file_object(self):
        buf = io.BytesIO()
        dump(_abc_list(), buf, "base64")
        assert buf.getvalue() == b"{KDM6YWJjKQ==}"
