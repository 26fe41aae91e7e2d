"""Building request and response bodies of a given length."""

FILLER = "1234567890"
DEFAULT_LISTEN_RESPONSE = (
    "<html><head><title>Relay HybridConnection</title></head>"
    "<body>Response Body from Listener</body></html>"
)


def get_message_body(
    value: str | None, length: int | None, default: str | None = None
) -> str | None:
    """Return ``value`` (or ``default``), repeated or cut to ``length``.

    Without a length the text is returned as is. With a length, an empty or
    missing text is replaced by a digit filler first.
    """
    message = value if value is not None else default
    if length is None:
        return message

    if not message:
        message = FILLER

    repeats = -(-length // len(message))
    return (message * repeats)[:length]
