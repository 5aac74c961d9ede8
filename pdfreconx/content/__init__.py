"""Content stream tokenizing and graphics state helpers.

Replay lives in :mod:`pdfreconx.content.replay`; it depends on the font
package, which itself reuses the tokenizer for ToUnicode CMaps.
"""

from .state import GraphicsState, matrix_apply, matrix_multiply
from .tokens import Token, TokenKind, iter_tokens, tokenize

__all__ = [
    "GraphicsState",
    "Token",
    "TokenKind",
    "iter_tokens",
    "matrix_apply",
    "matrix_multiply",
    "tokenize",
]
