"""Detection of messages addressed to the bot."""

from dataclasses import dataclass

# Characters that may follow the bot's name to address it
ADDRESS_SEPARATORS = (":", ",")


@dataclass(frozen=True)
class TriggerResult:
    """Result of checking a message for direct address."""

    is_addressed: bool
    payload: str | None = None

    def __str__(self) -> str:
        if not self.is_addressed:
            return "Trigger[NO]"
        return f"Trigger[YES]: {self.payload!r}"


NOT_ADDRESSED = TriggerResult(is_addressed=False)


def detect(own_display_name: str, message_text: str) -> TriggerResult:
    """Check whether a message addresses the bot as "name:" or "name,".

    The name comparison is case-insensitive and must start at the first
    character. The payload is everything after the separator, trimmed, and
    is otherwise passed through untouched.
    """
    if not own_display_name:
        return NOT_ADDRESSED

    name_len = len(own_display_name)
    if len(message_text) <= name_len:
        return NOT_ADDRESSED

    if message_text[:name_len].casefold() != own_display_name.casefold():
        return NOT_ADDRESSED

    if message_text[name_len] not in ADDRESS_SEPARATORS:
        return NOT_ADDRESSED

    return TriggerResult(is_addressed=True, payload=message_text[name_len + 1:].strip())
