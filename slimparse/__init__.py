from .errors import TemplateSyntaxError
from .parser import Parser, ParserOptions, parse

__all__ = ['Parser', 'ParserOptions', 'TemplateSyntaxError', 'parse']
