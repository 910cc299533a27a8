"""Constant expression evaluation.

Grammar (no whitespace inside an expression):

    expr   := term (('+' | '-') term)*
    term   := factor (('*' | '/' | '//') factor)*
    factor := NUMBER | NAME | '(' expr ')'

`+ - * /` are field operations; `//` is floor division of the canonical
integer values. Names refer to constants declared earlier in the same module.
"""

import re
from typing import Dict, List, Sequence

from primitives.field import GOLDILOCKS_PRIME, MAX_CANONICAL

from .ast import ConstantDecl
from .errors import ConstantError, DuplicateDefinitionError, SourceLocation

_TOKEN_RE = re.compile(r"0x[0-9a-fA-F]+|\d+|[A-Za-z_][A-Za-z0-9_]*|//|[-+*/()]")


def parse_literal(text: str, location: SourceLocation) -> int:
    """Parse a decimal or 0x-prefixed literal and check it is a canonical value."""
    try:
        value = int(text, 16) if text.lower().startswith("0x") else int(text, 10)
    except ValueError:
        raise ConstantError(f"invalid numeric literal '{text}'", location) from None
    if not 0 <= value <= MAX_CANONICAL:
        raise ConstantError(f"value {text} outside [0, 2^64 - 2^32]", location)
    return value


def _tokenize(expr: str, location: SourceLocation) -> List[str]:
    tokens = []
    pos = 0
    while pos < len(expr):
        m = _TOKEN_RE.match(expr, pos)
        if m is None:
            raise ConstantError(f"unexpected character '{expr[pos]}' in '{expr}'", location)
        tokens.append(m.group(0))
        pos = m.end()
    return tokens


class _ExprParser:
    def __init__(self, expr: str, env: Dict[str, int], location: SourceLocation):
        self.expr = expr
        self.env = env
        self.location = location
        self.tokens = _tokenize(expr, location)
        self.pos = 0

    def peek(self):
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> str:
        token = self.peek()
        if token is None:
            raise ConstantError(f"unexpected end of expression '{self.expr}'", self.location)
        self.pos += 1
        return token

    def parse(self) -> int:
        value = self.expr_()
        if self.peek() is not None:
            raise ConstantError(f"unexpected '{self.peek()}' in '{self.expr}'", self.location)
        return value

    def expr_(self) -> int:
        value = self.term()
        while self.peek() in ("+", "-"):
            if self.take() == "+":
                value = (value + self.term()) % GOLDILOCKS_PRIME
            else:
                value = (value - self.term()) % GOLDILOCKS_PRIME
        return value

    def term(self) -> int:
        value = self.factor()
        while self.peek() in ("*", "/", "//"):
            op = self.take()
            rhs = self.factor()
            if op == "*":
                value = value * rhs % GOLDILOCKS_PRIME
                continue
            if rhs == 0:
                raise ConstantError(f"division by zero in '{self.expr}'", self.location)
            if op == "/":
                value = value * pow(rhs, -1, GOLDILOCKS_PRIME) % GOLDILOCKS_PRIME
            else:
                value = value // rhs
        return value

    def factor(self) -> int:
        token = self.take()
        if token == "(":
            value = self.expr_()
            if self.take() != ")":
                raise ConstantError(f"unbalanced parentheses in '{self.expr}'", self.location)
            return value
        if token[0].isdigit():
            return parse_literal(token, self.location)
        if token[0].isalpha() or token[0] == "_":
            if token not in self.env:
                raise ConstantError(
                    f"constant '{token}' is not declared before this point", self.location
                )
            return self.env[token]
        raise ConstantError(f"unexpected '{token}' in '{self.expr}'", self.location)


def evaluate_expression(expr: str, env: Dict[str, int], location: SourceLocation) -> int:
    return _ExprParser(expr, env, location).parse()


def resolve_constants(decls: Sequence[ConstantDecl]) -> Dict[str, int]:
    """Evaluate a module's constants in declaration order.

    Each expression sees only the constants declared before it, so references
    to itself or to later constants fail.
    """
    env: Dict[str, int] = {}
    for decl in decls:
        if decl.name in env:
            raise DuplicateDefinitionError(f"constant '{decl.name}' is already defined", decl.location)
        env[decl.name] = evaluate_expression(decl.expr, env, decl.location)
    return env
