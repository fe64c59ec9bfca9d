"""Recursive-descent parser for bonus formulas.

Grammar::

    expr     := term (("+" | "-") term)*
    term     := unary (("*" | "/") unary)*
    unary    := ("+" | "-") unary | primary
    primary  := NUMBER | "(" expr ")" | "task" "(" TASK_ID ")" | call
    call     := ("min" | "max" | "sum") "(" expr ("," expr)* ")"

A blank formula parses to ``GroupSum``: the sum of every bound task.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import FrozenSet, List

from coursereq.core.errors import ParseError

from .nodes import (
    WHITELISTED_FUNCTIONS,
    BinaryOp,
    Call,
    GroupSum,
    Literal,
    Node,
    TaskRef,
    UnaryOp,
    iter_task_refs,
)

NUMBER_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")
IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
TASK_ID_RE = re.compile(r"[A-Za-z0-9_.\-]+")
MAX_FORMULA_LENGTH = 4096
# Bounds parentheses, calls, unary signs, and chained operators together, which
# also bounds the depth of the tree the evaluator walks.
MAX_NESTING_DEPTH = 100


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.depth = 0

    # ------------------------------------------------------------------
    # Scanning helpers

    def _error(self, message: str, position: int | None = None) -> ParseError:
        return ParseError(message, position=self.pos if position is None else position, formula=self.text)

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _peek(self) -> str:
        self._skip_ws()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _expect(self, char: str) -> int:
        found = self._peek()
        if found != char:
            if not found:
                raise self._error(f"Expected '{char}' but formula ended")
            raise self._error(f"Expected '{char}' but found '{found}'")
        start = self.pos
        self.pos += 1
        return start

    def _enter(self, position: int) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            raise self._error(f"Formula nests too deeply (limit {MAX_NESTING_DEPTH})", position)

    # ------------------------------------------------------------------
    # Grammar

    def parse(self) -> Node:
        if not self.text.strip():
            return GroupSum(position=0)
        node = self._expr()
        trailing = self._peek()
        if trailing:
            if trailing == ")":
                raise self._error("Unbalanced ')'")
            raise self._error(f"Unexpected '{trailing}'")
        return node

    def _expr(self) -> Node:
        node = self._term()
        chained = 0
        while self._peek() in ("+", "-"):
            position = self.pos
            self._enter(position)
            chained += 1
            op = self.text[self.pos]
            self.pos += 1
            node = BinaryOp(op, node, self._term(), position)
        self.depth -= chained
        return node

    def _term(self) -> Node:
        node = self._unary()
        chained = 0
        while self._peek() in ("*", "/"):
            position = self.pos
            self._enter(position)
            chained += 1
            op = self.text[self.pos]
            self.pos += 1
            node = BinaryOp(op, node, self._unary(), position)
        self.depth -= chained
        return node

    def _unary(self) -> Node:
        if self._peek() in ("+", "-"):
            position = self.pos
            self._enter(position)
            op = self.text[self.pos]
            self.pos += 1
            node = UnaryOp(op, self._unary(), position)
            self.depth -= 1
            return node
        return self._primary()

    def _primary(self) -> Node:
        char = self._peek()
        start = self.pos
        if not char:
            raise self._error("Expected an expression but formula ended")
        if char == "(":
            self._enter(start)
            self.pos += 1
            node = self._expr()
            if self._peek() != ")":
                raise self._error("Unbalanced '('", start) if not self._peek() else self._error(
                    f"Expected ')' but found '{self._peek()}'"
                )
            self.pos += 1
            self.depth -= 1
            return node
        number = NUMBER_RE.match(self.text, self.pos)
        if number:
            self.pos = number.end()
            raw = number.group(0)
            value: float | int = float(raw) if "." in raw else int(raw)
            return Literal(value, start)
        ident = IDENT_RE.match(self.text, self.pos)
        if ident:
            name = ident.group(0).lower()
            self.pos = ident.end()
            if name == "task":
                return self._task_ref(start)
            if name in WHITELISTED_FUNCTIONS:
                return self._call(name, start)
            raise self._error(f"Unknown identifier '{ident.group(0)}'", start)
        if char == ")":
            raise self._error("Expected an expression but found ')'")
        raise self._error(f"Unexpected character '{char}'")

    def _task_ref(self, start: int) -> TaskRef:
        self._expect("(")
        self._skip_ws()
        quote = self.text[self.pos] if self.pos < len(self.text) else ""
        if quote in ("'", '"'):
            end = self.text.find(quote, self.pos + 1)
            if end == -1:
                raise self._error("Unterminated task id")
            task_id = self.text[self.pos + 1 : end].strip()
            id_position = self.pos
            self.pos = end + 1
        else:
            match = TASK_ID_RE.match(self.text, self.pos)
            if not match:
                raise self._error("Expected a task id")
            task_id = match.group(0)
            id_position = self.pos
            self.pos = match.end()
        if not task_id:
            raise self._error("Empty task id", id_position)
        self._expect(")")
        return TaskRef(task_id, start)

    def _call(self, name: str, start: int) -> Call:
        self._enter(start)
        self._expect("(")
        args: List[Node] = [self._expr()]
        while self._peek() == ",":
            self.pos += 1
            args.append(self._expr())
        self._expect(")")
        self.depth -= 1
        return Call(name, tuple(args), start)


@lru_cache(maxsize=1024)
def _parse_cached(formula: str) -> Node:
    return _Parser(formula).parse()


def parse(formula: str) -> Node:
    """Parse ``formula`` into an expression tree, raising ``ParseError`` on bad syntax."""
    if not isinstance(formula, str):
        raise ParseError("Formula must be a string", position=0, formula=repr(formula))
    if len(formula) > MAX_FORMULA_LENGTH:
        raise ParseError("Formula is too long", position=MAX_FORMULA_LENGTH, formula=formula)
    return _parse_cached(formula)


def referenced_tasks(formula: str) -> FrozenSet[str]:
    """Return the task ids referenced via ``task(...)`` in ``formula``."""
    return frozenset(ref.task_id for ref in iter_task_refs(parse(formula)))


__all__ = ["MAX_FORMULA_LENGTH", "MAX_NESTING_DEPTH", "parse", "referenced_tasks"]
