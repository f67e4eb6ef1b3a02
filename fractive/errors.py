from typing import Optional


class CompileError(ValueError):
    """
    Base class for author-facing compile errors.

    Carries the file path and a best-effort (line, column) so the message reads
    the same way no matter where in the pipeline the error was raised.
    """

    def __init__(self, message: str, path: Optional[str] = None,
                 line: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.line = line
        self.column = column

    def locate(self, path: Optional[str], position=None) -> "CompileError":
        """Attaches a file path and (line, column) position, keeping any already set."""
        if self.path is None:
            self.path = path
        if position is not None and self.line is None:
            self.line, self.column = position
        return self

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        if self.line is not None:
            return f"{self.path} ({self.line},{self.column}): {self.message}"
        return f"{self.path}: {self.message}"


class UnterminatedMacro(CompileError):
    pass


class UnknownMacro(CompileError):
    pass


class UnrecognizedMacro(CompileError):
    pass


class InvalidSectionPlacement(CompileError):
    pass


class SectionAsImageSource(CompileError):
    pass


class InvalidLinkMacro(CompileError):
    pass


class DuplicateSection(CompileError):
    pass


class ProjectError(Exception):
    """Raised for unusable project files, templates or output paths."""
