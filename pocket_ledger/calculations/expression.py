"""
Arithmetic Expression Evaluator

Users can type amounts like "=50+20*2" instead of doing the sum in
their head. The expression is evaluated by an explicit tokenizer and a
recursive-descent parser. Nothing is ever handed to eval().

GRAMMAR (after sanitizing):

    expression := [sign] term (("+" | "-") term)*
    term       := factor (("*" | "/") factor)*
    factor     := NUMBER

A sign is only accepted at the very start of the expression, so
"-5+3" is valid while "5+-3" and "5**2" are rejected as repeated
operators.
"""

import re
from decimal import Decimal, DecimalException, InvalidOperation
from typing import NamedTuple, Optional

from pocket_ledger.exceptions import ExpressionSyntaxError, ValidationError
from pocket_ledger.models.account import quantize_money


_DISALLOWED = re.compile(r"[^0-9+\-*/.]")
_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")


class Token(NamedTuple):
    kind: str  # "number" or "op"
    text: str
    position: int


class ExpressionEvaluator:
    """
    Parses and evaluates one sanitized arithmetic expression.

    Raises ExpressionSyntaxError on anything it cannot evaluate to a
    finite number. Use evaluate_expression() for the sentinel-returning
    public behaviour.
    """

    def __init__(self, raw: str):
        self.source = self.sanitize(raw)
        self._tokens: list[Token] = []
        self._pos = 0

    @staticmethod
    def sanitize(raw: str) -> str:
        """Drop every character that is not a digit, operator or dot."""
        return _DISALLOWED.sub("", raw or "")

    def tokenize(self) -> list[Token]:
        tokens = []
        i = 0
        text = self.source
        while i < len(text):
            ch = text[i]
            if ch in "+-*/":
                tokens.append(Token("op", ch, i))
                i += 1
                continue
            match = _NUMBER.match(text, i)
            if not match:
                raise ExpressionSyntaxError(f"Unexpected '{ch}'", position=i)
            tokens.append(Token("number", match.group(), i))
            i = match.end()
        return tokens

    def evaluate(self) -> Decimal:
        if not self.source:
            raise ExpressionSyntaxError("Expression is empty")

        self._tokens = self.tokenize()
        self._pos = 0
        try:
            value = self._expression()
        except (DecimalException, ZeroDivisionError) as e:
            raise ExpressionSyntaxError(f"Arithmetic error: {e.__class__.__name__}") from e

        if self._pos != len(self._tokens):
            token = self._tokens[self._pos]
            raise ExpressionSyntaxError(
                f"Unexpected '{token.text}'", position=token.position
            )
        if not value.is_finite():
            raise ExpressionSyntaxError("Result is not a finite number")
        return value

    # -- recursive descent ---------------------------------------------------

    def _peek(self) -> Optional[Token]:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _advance(self) -> Token:
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def _expression(self) -> Decimal:
        negate = False
        token = self._peek()
        if token is not None and token.kind == "op" and token.text in "+-":
            negate = self._advance().text == "-"

        value = self._term()
        if negate:
            value = -value

        while True:
            token = self._peek()
            if token is None or token.text not in "+-":
                return value
            self._advance()
            right = self._term()
            value = value + right if token.text == "+" else value - right

    def _term(self) -> Decimal:
        value = self._factor()
        while True:
            token = self._peek()
            if token is None or token.text not in "*/":
                return value
            self._advance()
            right = self._factor()
            value = value * right if token.text == "*" else value / right

    def _factor(self) -> Decimal:
        token = self._peek()
        if token is None:
            raise ExpressionSyntaxError("Expression ends with an operator")
        if token.kind != "number":
            raise ExpressionSyntaxError(
                f"Expected a number, found '{token.text}'", position=token.position
            )
        self._advance()
        return Decimal(token.text)


def evaluate_expression(raw: str) -> Optional[Decimal]:
    """
    Evaluate a user-typed arithmetic string.

    Returns the value, or None when the sanitized string is empty,
    malformed, or does not evaluate to a finite number.

        >>> evaluate_expression("2+3*4")
        Decimal('14')
        >>> evaluate_expression("10/0") is None
        True
    """
    try:
        return ExpressionEvaluator(raw).evaluate()
    except ExpressionSyntaxError:
        return None


def parse_amount_input(
    raw: str,
    field: str = "amount",
    allow_negative: bool = False,
) -> Decimal:
    """
    Read a money input field.

    Accepts a plain number ("125.50") or an expression prefixed with
    "=" ("=100*4"). The result is rounded to cents.

    Raises:
        ValidationError: If the input is empty, invalid, or negative
            where negatives are not allowed.
    """
    text = (raw or "").strip()
    if not text:
        raise ValidationError(f"{field} is required", field=field)

    if text.startswith("="):
        value = evaluate_expression(text[1:])
        if value is None:
            raise ValidationError(f"Invalid expression for {field}: {text}", field=field)
    else:
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number: {text}", field=field)
        if not value.is_finite():
            raise ValidationError(f"{field} must be a finite number", field=field)

    value = quantize_money(value)
    if value < 0 and not allow_negative:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return value
