import logging
import re
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Optional, Union

from .errors import TemplateSyntaxError
from .nodes import freeze

logger = logging.getLogger(__name__)

DELIMITERS = {
    '(': ')',
    '[': ']',
    '{': '}',
}

ATTR_SHORTCUT = {
    '#': 'id',
    '.': 'class',
}

DELIMITER_REGEX = re.compile(r"[\(\[\{]")
ATTR_NAME_REGEX = r"\s*(\w[:\w-]*)"
CLASS_ID_REGEX = re.compile(r"(#|\.)(\w[\w-]*\w|\w+)")
TAG_REGEX = re.compile(r"([#\.]|\w[\w:-]*\w|\w+)")

HTML_COMMENT_REGEX = re.compile(r"/!( ?)(.*)\Z")
COND_COMMENT_REGEX = re.compile(r"/\[\s*(.*?)\s*\]\s*\Z")
TEXT_REGEX = re.compile(r"([\|'])( ?)(.*)\Z")
OUTPUT_REGEX = re.compile(r"=(=?)('?)")
EMBEDDED_REGEX = re.compile(r"(\w+):\s*\Z")
DOCTYPE_REGEX = re.compile(r"doctype\s+", re.IGNORECASE)


@dataclass(frozen=True)
class ParserOptions:
    tabsize: int = 4
    encoding: str = 'utf-8'
    default_tag: str = 'div'
    file: Optional[str] = None

    @classmethod
    def from_dict(cls, options: Dict[str, Any]) -> 'ParserOptions':
        known = {f.name for f in fields(cls)}
        unknown = set(options) - known
        if unknown:
            raise ValueError(f"Unknown parser option(s): {', '.join(sorted(unknown))}")
        return cls(**options)


def measure_indent(line: str, tabsize: int = 4) -> int:
    """Width of the leading spaces/tabs of a line, tabs expanded to `tabsize` spaces."""
    leading = re.match(r"[ \t]*", line).group(0)
    return len(leading.replace('\t', ' ' * tabsize))


def is_blank(line: str) -> bool:
    return not line.strip()


def split_lines(text: str) -> List[str]:
    """Splits on LF or CRLF only. A final line break does not open another line."""
    lines = re.split(r"\r?\n", text)
    if lines and not lines[-1]:
        lines.pop()
    return lines


class LineCursor:
    """
    Remaining lines of a document.

    `orig_line` is the raw line as read; `line` is the working copy that the
    parsing routines consume from the left by replacing it with a slice.
    """

    def __init__(self, lines: List[str]):
        self.lines = lines
        self.pos = 0
        self.lineno = 0
        self.orig_line: Optional[str] = None
        self.line: Optional[str] = None

    @property
    def empty(self) -> bool:
        return self.pos >= len(self.lines)

    def peek(self) -> Optional[str]:
        return None if self.empty else self.lines[self.pos]

    def advance(self) -> Optional[str]:
        if self.empty:
            self.orig_line = self.line = None
        else:
            self.orig_line = self.line = self.lines[self.pos]
            self.pos += 1
            self.lineno += 1
        return self.line

    def consume(self, size: int) -> str:
        """Cuts `size` characters off the front of the working line and returns them."""
        taken, self.line = self.line[:size], self.line[size:]
        return taken

    @property
    def column(self) -> int:
        if self.orig_line is None or self.line is None:
            return 0
        return len(self.orig_line) - len(self.line)


class ParseSession:
    """
    State of one parse run.

    Features:
    - Indentation stack with tab expansion and malformed indentation checks
    - Block stack of open containers (one extra while a line expects a block)
    - Comments (/), HTML comments (/!), conditional comments (/[...])
    - Text blocks (| and ' with trailing space)
    - Control (-) and output (=, ==, trailing ') code with broken-line continuation
    - Embedded engines (name:) and doctype
    - Tags with #id/.class shortcuts, block expansion (:), attribute lists in
      (), [] or {}, quoted and dynamic attribute values
    """

    def __init__(self, options: ParserOptions, lines: List[str]):
        self.options = options
        self.result: List[Any] = ['multi']
        # Since you can indent however you like, keep the list of widths that
        # are currently open. For
        #
        #   html          # 0 spaces
        #    head         # 1 space
        #       title     # 4 spaces
        #
        # indents is [0, 1, 4] while processing the last line.
        self.indents: List[int] = [0]
        # Output always goes to the last container. A line that expects an
        # indented block pushes a new one.
        self.stacks: List[List[Any]] = [self.result]
        self.cursor = LineCursor(lines)

    @property
    def line(self) -> str:
        return self.cursor.line

    @line.setter
    def line(self, value: str):
        self.cursor.line = value

    def _syntax_error(self, message: str, orig_line: Optional[str] = None,
                      lineno: Optional[int] = None, column: Optional[int] = None):
        """Raises a fatal parse error located at the current cursor position."""
        if orig_line is None:
            orig_line = self.cursor.orig_line
        if lineno is None:
            lineno = self.cursor.lineno
        if column is None:
            column = self.cursor.column
        raise TemplateSyntaxError(message, self.options.file, orig_line, lineno, column)

    def _get_indent(self, line: str) -> int:
        return measure_indent(line, self.options.tabsize)

    def _next_line(self) -> str:
        """Advances to the next line, failing at end of input."""
        if self.cursor.advance() is None:
            self._syntax_error('Unexpected end of file')
        return self.line

    def run(self) -> List[Any]:
        while self.cursor.advance() is not None:
            self._parse_line()
        return self.result

    def _parse_line(self):
        if is_blank(self.line):
            self.stacks[-1].append(['newline'])
            return

        indent = self._get_indent(self.line)

        # Remove the indentation
        self.line = self.line.lstrip()

        # More stacks than indents: the previous line expects this one to be indented
        expecting_indentation = len(self.stacks) > len(self.indents)

        if indent > self.indents[-1]:
            if not expecting_indentation:
                self._syntax_error('Unexpected indentation')
            self.indents.append(indent)
        else:
            # Not indented, so the block the previous line pushed stays empty
            if expecting_indentation:
                self.stacks.pop()

            # Close every level we dedented out of
            while indent < self.indents[-1]:
                self.indents.pop()
                self.stacks.pop()

            # The line sits "between" two levels:
            #
            #   hello
            #       world
            #     this      # <- not possible
            if indent != self.indents[-1]:
                self._syntax_error('Malformed indentation')

        self._parse_line_indicators()

    def _parse_line_indicators(self):
        line = self.line

        # --- Comments ---
        if line.startswith('/'):
            match = HTML_COMMENT_REGEX.match(line)
            if match:
                text = self._parse_text_block(match.group(2), self.indents[-1] + len(match.group(1)) + 2)
                self.stacks[-1].append(['html', 'comment', text])
            else:
                match = COND_COMMENT_REGEX.match(line)
                if match:
                    block = ['multi']
                    self.stacks[-1].append(['slim', 'condcomment', match.group(1), block])
                    self.stacks.append(block)
                else:
                    self._parse_comment_block()

        # --- Text blocks: | and ' ---
        elif TEXT_REGEX.match(line):
            match = TEXT_REGEX.match(line)
            trailing_ws = match.group(1) == "'"
            self.stacks[-1].append(self._parse_text_block(match.group(3), self.indents[-1] + len(match.group(2)) + 1))
            if trailing_ws:
                self.stacks[-1].append(['static', ' '])

        # --- Control code: the next line is expected to be broken or indented ---
        elif line.startswith('-'):
            block = ['multi']
            self.cursor.consume(1)
            self.stacks[-1].append(['slim', 'control', self._parse_broken_line(), block])
            self.stacks.append(block)

        # --- Output code ---
        elif line.startswith('='):
            match = OUTPUT_REGEX.match(line)
            self.cursor.consume(match.end())
            block = ['multi']
            self.stacks[-1].append(['slim', 'output', not match.group(1), self._parse_broken_line(), block])
            if match.group(2):
                self.stacks[-1].append(['static', ' '])
            self.stacks.append(block)

        # --- Embedded engine, the whole indented block is its body ---
        elif EMBEDDED_REGEX.match(line):
            engine = EMBEDDED_REGEX.match(line).group(1)
            self.stacks[-1].append(['slim', 'embedded', engine, self._parse_text_block()])

        # --- Doctype ---
        elif DOCTYPE_REGEX.match(line):
            match = DOCTYPE_REGEX.match(line)
            self.stacks[-1].append(['html', 'doctype', line[match.end():].strip()])

        # --- Tags ---
        elif TAG_REGEX.match(line):
            self._parse_tag(TAG_REGEX.match(line).group(0))

        else:
            self._syntax_error('Unknown line indicator')

        self.stacks[-1].append(['newline'])

    def _parse_comment_block(self):
        while not self.cursor.empty and (is_blank(self.cursor.peek())
                                         or self._get_indent(self.cursor.peek()) > self.indents[-1]):
            self.cursor.advance()
            self.stacks[-1].append(['newline'])

    def _parse_text_block(self, first_line: Optional[str] = None, text_indent: Optional[int] = None) -> List[Any]:
        result = ['multi']
        if not first_line:
            text_indent = None
        else:
            result.append(['slim', 'interpolate', first_line])

        empty_lines = 0
        while not self.cursor.empty:
            next_line = self.cursor.peek()
            if is_blank(next_line):
                self.cursor.advance()
                result.append(['newline'])
                if text_indent is not None:
                    empty_lines += 1
                continue

            indent = self._get_indent(next_line)
            if indent <= self.indents[-1]:
                break
            # Shallower than the established base: leave it to the caller
            if text_indent is not None and indent < text_indent:
                break

            if empty_lines > 0:
                result.append(['slim', 'interpolate', '\n' * empty_lines])
                empty_lines = 0

            self.cursor.advance()
            self.line = self.line.lstrip()

            offset = indent - text_indent if text_indent is not None else 0
            prefix = '\n' if text_indent is not None else ''
            result.append(['newline'])
            result.append(['slim', 'interpolate', prefix + ' ' * offset + self.line])

            # The first line of the block sets the base indentation
            if text_indent is None:
                text_indent = indent
        return result

    def _parse_broken_line(self) -> str:
        """Code continues on the next line while it ends with ',' or '\\'."""
        broken_line = self.line.strip()
        while broken_line.endswith((',', '\\')):
            self._next_line()
            broken_line += '\n' + self.line.strip()
        return broken_line

    def _parse_tag(self, tag: str):
        if tag in ATTR_SHORTCUT:
            tag = self.options.default_tag
        else:
            self.cursor.consume(len(tag))

        # Attributes may span lines; their newlines go before the tag
        node = ['html', 'tag', tag, self._parse_attributes()]
        self.stacks[-1].append(node)

        # --- Block expansion: "ul: li" ---
        match = re.match(r"\s*:\s*", self.line)
        if match:
            self.line = self.line[match.end():]
            inner = TAG_REGEX.match(self.line)
            if not inner:
                self._syntax_error('Expected tag')
            content = ['multi']
            node.append(content)
            i = len(self.stacks)
            self.stacks.append(content)
            self._parse_tag(inner.group(1))
            del self.stacks[i]
            return

        # --- Output code as content ---
        match = re.match(r"\s*=(=?)('?)", self.line)
        if match:
            block = ['multi']
            self.line = self.line[match.end():]
            node.append(['slim', 'output', match.group(1) != '=', self._parse_broken_line(), block])
            if match.group(2):
                self.stacks[-1].append(['static', ' '])
            self.stacks.append(block)
            return

        # --- Closed tag ---
        if re.match(r"\s*/", self.line):
            return

        # --- Empty content, children follow indented ---
        if is_blank(self.line):
            content = ['multi']
            node.append(content)
            self.stacks.append(content)
            return

        # --- Text content, anchored right after the tag ---
        match = re.match(r"( ?)(.*)\Z", self.line)
        node.append(self._parse_text_block(match.group(2), self.cursor.column + len(match.group(1))))

    def _parse_attributes(self) -> List[Any]:
        attributes = ['html', 'attrs']

        # Literal class/id shortcuts are static, no interpolation in .class or #id
        match = CLASS_ID_REGEX.match(self.line)
        while match:
            attributes.append(['html', 'attr', ATTR_SHORTCUT[match.group(1)], ['static', match.group(2)]])
            self.line = self.line[match.end():]
            match = CLASS_ID_REGEX.match(self.line)

        # Delimiter right after the tag name
        delimiter = None
        if DELIMITER_REGEX.match(self.line):
            delimiter = DELIMITERS[self.cursor.consume(1)]

        if delimiter:
            attr_regex = re.compile(ATTR_NAME_REGEX + r"(=|\s|(?=" + re.escape(delimiter) + r"))")
        else:
            attr_regex = re.compile(ATTR_NAME_REGEX + "=")

        orig_line = self.cursor.orig_line
        lineno = self.cursor.lineno
        while True:
            match = attr_regex.match(self.line)
            while match:
                self.line = self.line[match.end():]
                name = match.group(1)
                if delimiter and match.group(2) != '=':
                    attributes.append(['slim', 'attr', name, False, 'true'])
                elif self.line[:1] in ('"', "'"):
                    quote = self.cursor.consume(1)
                    attributes.append(['html', 'attr', name, ['slim', 'interpolate', self._parse_quoted_attribute(quote)]])
                else:
                    # Dynamic value, "==" disables escaping
                    escape = self.line[:1] != '='
                    if not escape:
                        self.cursor.consume(1)
                    attributes.append(['slim', 'attr', name, escape, self._parse_code_attribute(delimiter)])
                match = attr_regex.match(self.line)

            # No delimiter, attributes end with the line
            if not delimiter:
                break

            closing = re.match(r"\s*" + re.escape(delimiter), self.line)
            if closing:
                self.line = self.line[closing.end():]
                break

            # Something where an attribute should be
            self.line = self.line.lstrip()
            if self.line:
                self._syntax_error('Expected attribute')

            # Attributes span multiple lines
            self.stacks[-1].append(['newline'])
            if self.cursor.advance() is None:
                self._syntax_error(f"Expected closing delimiter {delimiter}",
                                   orig_line=orig_line, lineno=lineno, column=len(orig_line))

        return attributes

    def _parse_code_attribute(self, outer_delimiter: Optional[str]) -> str:
        value, count, opening, closing = '', 0, None, None
        end_chars = outer_delimiter or ''

        # Value ends with whitespace or the delimiter of the attribute list
        while self.line and not (count == 0 and (self.line[0].isspace() or self.line[0] in end_chars)):
            char = self.line[0]
            if count > 0:
                if char == opening:
                    count += 1
                elif char == closing:
                    count -= 1
            elif char in DELIMITERS:
                count = 1
                opening, closing = char, DELIMITERS[char]
            value += self.cursor.consume(1)

        if count != 0:
            self._syntax_error(f"Expected closing attribute delimiter {closing}")
        if not value:
            self._syntax_error('Invalid empty attribute')

        # Strip a wrapper that is not part of the code, e.g. id=[hash[:a] + hash[:b]]
        if value[0] in DELIMITERS and DELIMITERS[value[0]] == value[-1] and len(value) > 1:
            value = value[1:-1]
        return value

    def _parse_quoted_attribute(self, quote: str) -> str:
        value, count = '', 0

        while self.line and not (count == 0 and self.line[0] == quote):
            char = self.line[0]
            if char == '\\' and len(self.line) > 1:
                value += self.cursor.consume(2)
                continue
            if count > 0:
                if char == '{':
                    count += 1
                elif char == '}':
                    count -= 1
            elif self.line.startswith('#{'):
                value += self.cursor.consume(1)
                count = 1
            value += self.cursor.consume(1)

        if count != 0:
            self._syntax_error('Expected closing brace }')
        self.cursor.consume(1)
        return value


class Parser:
    """
    Parses Slim template source into an expression tree.

    The instance only holds its options, every call to `parse` runs in a
    fresh `ParseSession`.
    """

    def __init__(self, options: Optional[ParserOptions] = None, **kwargs):
        options = options or ParserOptions()
        if kwargs:
            options = ParserOptions.from_dict({**asdict(options), **kwargs})
        self.options = options

    def decode(self, source: Union[str, bytes]) -> str:
        """Decodes byte input with the configured encoding, falling back to latin-1 when invalid."""
        if isinstance(source, str):
            return source
        encoding = self.options.encoding or 'utf-8'
        try:
            return source.decode(encoding)
        except UnicodeDecodeError:
            logger.debug("Source is not valid %s, keeping raw bytes as latin-1", encoding)
            return source.decode('latin-1')

    def parse(self, source: Union[str, bytes]) -> tuple:
        lines = split_lines(self.decode(source))
        return freeze(ParseSession(self.options, lines).run())

    __call__ = parse


def parse(source: Union[str, bytes], **options) -> tuple:
    """Parses `source` with a throwaway `Parser` built from keyword options."""
    return Parser(ParserOptions.from_dict(options)).parse(source)
