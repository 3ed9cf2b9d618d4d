import re

PERSONA_TAG_PATTERN = re.compile(r"\{\{(char|user)\}\}")


def has_persona_tags(text: str) -> bool:
    return PERSONA_TAG_PATTERN.search(text) is not None


def strip_persona_tags(text: str) -> str:
    """Remove persona tags until none remain, including tags formed by a removal."""
    while has_persona_tags(text):
        text = PERSONA_TAG_PATTERN.sub("", text)
    return text


def substitute_personas(text: str, char_name: str, user_name: str) -> str:
    """Replace {{char}} with the model persona name and {{user}} with the user persona name.

    The result never contains a persona tag: tags inside the names are dropped,
    as is any tag that a name forms with the surrounding text.
    """
    if not text or not has_persona_tags(text):
        return text
    names = {"char": strip_persona_tags(char_name), "user": strip_persona_tags(user_name)}

    def replacer(match: re.Match) -> str:
        return names[match.group(1)]

    return strip_persona_tags(PERSONA_TAG_PATTERN.sub(replacer, text))
