"""Strip the model's structural tags from a generated reply."""

import logging
import re

logger = logging.getLogger(__name__)

DEFAULT_HIDDEN_TAGS = ("initial_understanding", "thinking", "post_response")

_ANY_TAG = re.compile(r"</?[^>]+>")


class MessageCleanser:
    """
    Removes XML-like tags from generated text.

    Tags listed as hidden are removed together with their content. That
    covers paired tags, self-closing tags, and closing tags with no opening
    tag, which drop everything before them (the opening tag was part of the
    prefill). All remaining tags are then stripped, keeping their text.

    Example:
        >>> MessageCleanser().clean("<test>Hi</test> There")
        'Hi There'
        >>> MessageCleanser().clean("<test>Hi</test> There", ["test"])
        'There'
        >>> MessageCleanser().clean("reasoning...</thinking><response>Yo</response>", ["thinking"])
        'Yo'
    """

    def clean(self, content: str, hide_content_tags: list[str] | tuple[str, ...] = ()) -> str:
        cleaned = content
        for tag in hide_content_tags:
            cleaned = self.remove_tag_with_content(cleaned, tag)
        cleaned = _ANY_TAG.sub("", cleaned)
        return cleaned.strip()

    @staticmethod
    def remove_tag_with_content(content: str, tag: str) -> str:
        name = re.escape(tag)
        paired = re.compile(
            rf"<{name}(?:\s[^>]*)?>.*?</{name}>|<{name}(?:\s[^>]*)?/>",
            re.DOTALL,
        )
        cleaned = paired.sub("", content)

        closing = f"</{tag}>"
        while closing in cleaned:
            cleaned = cleaned.split(closing, 1)[1]
        return cleaned


__all__ = ["DEFAULT_HIDDEN_TAGS", "MessageCleanser"]
