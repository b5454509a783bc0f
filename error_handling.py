"""
Error handling for the Flax interpreter
Error taxonomy shared by the lexer, parser and evaluator, plus diagnostic formatting
"""

from typing import Optional, Any


# ============================================================================
# EXCEPTION HIERARCHY
# ============================================================================

class FlaxError(Exception):
    """Base class for every error surfaced to the caller of the interpreter"""
    kind = "FlaxError"

    def __init__(self, message: str, line: int = 0):
        self.message = message
        self.line = line
        super().__init__(message)

    def __str__(self) -> str:
        return format_diagnostic(self)


class FlaxLexError(FlaxError):
    """Unterminated string literal or unrecognized character"""
    kind = "LexError"


class FlaxParseError(FlaxError):
    """Token stream does not match the grammar at the current position"""
    kind = "ParseError"

    def __init__(self, message: str, token: Optional[Any] = None, line: int = 0):
        self.token = token
        if token is not None and not line:
            line = token.line
        super().__init__(message, line)


class FlaxRuntimeError(FlaxError):
    """Error detected while evaluating a program"""
    kind = "RuntimeError"


class UndefinedVariable(FlaxRuntimeError):
    kind = "UndefinedVariable"

    def __init__(self, name: str, line: int = 0):
        self.name = name
        super().__init__(f"Undefined variable '{name}'", line)


class TypeMismatch(FlaxRuntimeError):
    kind = "TypeMismatch"


class ArityMismatch(FlaxRuntimeError):
    kind = "ArityMismatch"


class NotCallable(FlaxRuntimeError):
    kind = "NotCallable"


class StackOverflow(FlaxRuntimeError):
    kind = "StackOverflow"


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def format_diagnostic(error: FlaxError) -> str:
    """Format an error as '<kind>: <message> (line <n>)'"""
    if error.line:
        return f"{error.kind}: {error.message} (line {error.line})"
    return f"{error.kind}: {error.message}"


def get_context_lines(source_text: str, line_num: int, context_lines: int = 2) -> str:
    """Get numbered source lines around the error line"""
    lines = source_text.split('\n')
    if line_num < 1 or line_num > len(lines):
        return ""

    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    context_parts = []
    for i in range(start_line, end_line):
        line_prefix = f"{i+1:4d}: "
        context_parts.append(f"{line_prefix}{lines[i]}")
        if i == line_num - 1:
            width = max(1, len(lines[i].rstrip()))
            context_parts.append(f"{'':6}{'^' * width} Error here")

    return '\n'.join(context_parts)


def describe_error(error: FlaxError, source_text: Optional[str] = None) -> str:
    """Diagnostic line followed by the surrounding source, when available"""
    diagnostic = format_diagnostic(error)
    if source_text is None or not error.line:
        return diagnostic

    context = get_context_lines(source_text, error.line)
    if not context:
        return diagnostic
    return f"{diagnostic}\n{context}"
