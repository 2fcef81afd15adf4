from typing import Optional


class TemplateSyntaxError(ValueError):
    """
    Raised for any malformed template.

    Carries the message, the document identifier, the offending raw line,
    its 1-based line number and the column where parsing stopped.
    """

    def __init__(self, error: str, file: Optional[str], line: Optional[str], lineno: int, column: int):
        self.error = error
        self.file = file or '(__TEMPLATE__)'
        self.line = line or ''
        self.lineno = lineno
        self.column = column
        super().__init__(error)

    def __str__(self) -> str:
        line = self.line.strip()
        # Shift the caret by whatever strip() removed
        column = self.column + len(line) - len(self.line)
        return (f"{self.error}\n"
                f"  {self.file}, Line {self.lineno}\n"
                f"    {line}\n"
                f"    {' ' * column}^\n")
