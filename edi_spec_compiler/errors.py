"""
Error taxonomy for the compiler.

Extraction errors are local and best-effort: ``ParseSkipped`` is raised by the
line/marker parsers and caught by the extractors, which log and move on.
Generation errors abort the single request that raised them.
"""


class CompilerError(Exception):
    """Base class for every error raised by the compiler core."""


class ParseSkipped(CompilerError):
    """A line or listing entry did not match any recognized pattern."""

    def __init__(self, text: str, reason: str = "no recognized pattern"):
        self.text = text
        self.reason = reason
        super().__init__(f"Skipped '{text.strip()[:60]}': {reason}")


class InvalidModel(CompilerError):
    """The emitter was handed an empty or malformed message structure."""


# Name used by callers that think of it as "no model to emit"
MissingModel = InvalidModel


class UnsupportedDialect(CompilerError):
    """The requested dialect is not in the dialect table."""

    def __init__(self, dialect: str):
        self.dialect = dialect
        super().__init__(f"Unsupported standard: {dialect}")


class AssemblyInvariantViolation(CompilerError):
    """A group would end up nested twice, or never reachable, in the assembled tree."""
