import pytest

from slimparse import Parser, TemplateSyntaxError
from slimparse.parser import LineCursor, measure_indent

NL = ('newline',)


def interp(text):
    return ('slim', 'interpolate', text)


class TestTextBlocks:

    def setup_method(self):
        self.parser = Parser()

    def test_pipe_text_keeps_relative_indentation(self):
        tree = self.parser.parse("|\n  a\n\n    b\n  c")
        assert tree == (
            'multi',
            ('multi',
             NL, interp('a'),
             NL, interp('\n'),
             NL, interp('\n  b'),
             NL, interp('\nc')),
            NL,
        )

    def test_blank_lines_collapse_into_one_fragment(self):
        tree = self.parser.parse("| a\n\n\n  b")
        assert tree[1] == ('multi', interp('a'), NL, NL, interp('\n\n'), NL, interp('\nb'))

    def test_trailing_space_text(self):
        tree = self.parser.parse("' foo")
        assert tree == ('multi', ('multi', interp('foo')), ('static', ' '), NL)

    def test_text_inside_tag(self):
        tree = self.parser.parse("p\n  | Hello\n    world\nbr/")
        assert tree[1][4] == ('multi', NL, ('multi', interp('Hello'), NL, interp('\nworld')), NL)
        assert tree[2] == ('html', 'tag', 'br', ('html', 'attrs'))

    def test_shallower_line_ends_text_block(self):
        with pytest.raises(TemplateSyntaxError, match="Unexpected indentation") as exc:
            self.parser.parse("|\n    a\n  b")
        assert exc.value.lineno == 3


class TestEncoding:

    def test_bytes_are_decoded_with_configured_encoding(self):
        tree = Parser().parse("p Привет".encode('utf-8'))
        assert tree[1][4] == ('multi', interp('Привет'))

    def test_invalid_bytes_fall_back(self):
        source = b"p caf\xe9"
        tree = Parser().parse(source)
        assert tree[1][4] == ('multi', interp('café'))
        assert source == b"p caf\xe9"

    def test_fallback_bytes_do_not_split_lines(self):
        tree = Parser().parse("p Wait\x85 done\n".encode('latin-1'))
        assert tree == ('multi', ('html', 'tag', 'p', ('html', 'attrs'), ('multi', interp('Wait\x85 done'))), NL)

    def test_windows_line_endings(self):
        assert Parser().parse("p\r\n  a\r\n") == Parser().parse("p\n  a\n")


class TestCursor:

    def test_measure_indent(self):
        assert measure_indent("    x") == 4
        assert measure_indent("\t x") == 5
        assert measure_indent("\tx", tabsize=2) == 2
        assert measure_indent("x") == 0

    def test_advance_and_consume(self):
        cursor = LineCursor(["abc", "def"])
        assert cursor.advance() == "abc"
        assert cursor.consume(1) == "a"
        assert cursor.line == "bc"
        assert cursor.orig_line == "abc"
        assert cursor.column == 1
        assert cursor.advance() == "def"
        assert cursor.lineno == 2
        assert cursor.advance() is None
        assert cursor.empty


class TestSyntaxError:

    def test_rendering(self):
        error = TemplateSyntaxError("Malformed indentation", None, "  span", 3, 2)
        assert str(error) == (
            "Malformed indentation\n"
            "  (__TEMPLATE__), Line 3\n"
            "    span\n"
            "    ^\n"
        )

    def test_rendering_with_file_and_column(self):
        error = TemplateSyntaxError("Expected attribute", "views/index.slim", 'a(href="x" !)', 1, 11)
        lines = str(error).splitlines()
        assert lines[1] == "  views/index.slim, Line 1"
        assert lines[3].index('^') == lines[2].index('!')

    def test_caret_on_indented_continuation_line(self):
        with pytest.raises(TemplateSyntaxError, match="Expected attribute") as exc:
            Parser().parse('a(href="x"\n    title="y" !)')
        assert exc.value.lineno == 2
        assert exc.value.column == len('    title="y" ')
        lines = str(exc.value).splitlines()
        assert lines[2] == '    title="y" !)'
        assert lines[3].index('^') == lines[2].index('!')

    def test_file_option_is_reported(self):
        with pytest.raises(TemplateSyntaxError) as exc:
            Parser(file='page.slim').parse("%p")
        assert exc.value.file == 'page.slim'
        assert "page.slim, Line 1" in str(exc.value)

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            Parser().parse("div\n    p\n  span")
