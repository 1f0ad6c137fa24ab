"""Error taxonomy for command parsing and dispatch."""


class CommandError(ValueError):
    """Base class for errors that reject a command before dispatch."""

    code = "COMMAND_ERROR"

    def to_dict(self) -> dict:
        return {"code": self.code, "message": str(self)}


class MalformedCommand(CommandError):
    """Tokenizer-level syntax error."""

    code = "MALFORMED_COMMAND"


class UnknownPrefix(CommandError):
    """Prefix outside the closed registry."""

    code = "UNKNOWN_PREFIX"

    def __init__(self, name: str, suggestion: str | None = None):
        message = f"Unknown prefix '[{name}]'."
        if suggestion:
            message += f" Did you mean '[{suggestion}]'?"
        super().__init__(message)
        self.name = name
        self.suggestion = suggestion

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["suggestion"] = self.suggestion
        return data


class InvalidScope(CommandError):
    """Scope clause that cannot be parsed or does not fit the source tree."""

    code = "INVALID_SCOPE"


class AmbiguousChoice(CommandError):
    """`doit` issued against several options without a selector."""

    code = "AMBIGUOUS_CHOICE"

    def __init__(self, message: str, options: list | None = None):
        super().__init__(message)
        self.options = list(options or [])

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["options"] = [f"{opt.key}) {opt.description}" for opt in self.options]
        return data


class InvalidSessionState(CommandError):
    """Session-bound command issued when the session cannot serve it."""

    code = "INVALID_STATE"
