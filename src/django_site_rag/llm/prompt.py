from string import Formatter


class TokenDict(dict):
    """Dict where any missing values return their key wrapped in {}.

    This allows Prompt strings with tokens like {name} to be used
    even if a name token is not passed to it.
    """

    def __missing__(self, key):
        return f"{{{key}}}"


class Prompt(str):
    """
    A string subclass representing a prompt template with token rendering.

    Usage:
        Prompt("Question: {query}", query="Rates?") -> str() -> "Question: Rates?"

    Tokens are rendered using Python's str.format on access. Token values are
    inserted as-is, so braces inside a value (e.g. retrieved page content)
    are never treated as further tokens.
    """

    _tokens: dict[str, object]

    def __new__(cls, text: str, /, **tokens):
        obj = super().__new__(cls, text)
        obj._tokens = dict(tokens)
        return obj

    @property
    def token_names(self) -> frozenset[str]:
        """Names of the {tokens} that appear in the template."""
        return frozenset(
            field_name
            for _, field_name, _, _ in Formatter().parse(super().__str__())
            if field_name
        )

    def with_tokens(self, **tokens) -> "Prompt":
        """Return a new Prompt with additional/overridden tokens."""
        merged = {**self._tokens, **tokens}
        return Prompt(super().__str__(), **merged)

    def render(self, **extra_tokens) -> str:
        """Render the prompt by substituting tokens like {foo}."""
        tokens = {**self._tokens, **extra_tokens}
        return super().__str__().format_map(TokenDict(tokens))

    def render_strict(self, **extra_tokens) -> str:
        """Render the prompt, requiring every token to be supplied.

        Raises:
            KeyError: if a token in the template has no value, or a value is
                given for a token the template does not contain.
        """
        tokens = {**self._tokens, **extra_tokens}
        missing = self.token_names - tokens.keys()
        if missing:
            raise KeyError(f"Missing prompt tokens: {sorted(missing)}")
        unknown = tokens.keys() - self.token_names
        if unknown:
            raise KeyError(f"Unknown prompt tokens: {sorted(unknown)}")
        return super().__str__().format_map(tokens)

    def __str__(self) -> str:
        """Return the rendered string with token substitution."""
        return self.render()

    def __eq__(self, other):
        """Compare the rendered string, not the raw string."""
        if isinstance(other, str):
            return str(self) == other

        return super().__eq__(other)

    __hash__ = str.__hash__
