import re
from typing import Any, Dict

_placeholder_re = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def stringify(value: Any) -> str:
    return "" if value is None else str(value)


def substitute_placeholders(text: str, arguments: Dict[str, Any]) -> str:
    """Replace {{name}} with the stringified argument; unknown names stay verbatim."""
    if not isinstance(text, str) or "{{" not in text:
        return text

    def _replace(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name in arguments:
            return stringify(arguments[name])
        return match.group(0)

    return _placeholder_re.sub(_replace, text)


def substitute_value(value: Any, arguments: Dict[str, Any]) -> Any:
    """
    Like substitute_placeholders, but a value that is exactly one placeholder
    receives the argument itself so numbers and lists keep their type.
    """
    if not isinstance(value, str):
        return value
    match = _placeholder_re.fullmatch(value.strip())
    if match and match.group(1) in arguments:
        return arguments[match.group(1)]
    return substitute_placeholders(value, arguments)


def has_unresolved_placeholder(text: Any) -> bool:
    return isinstance(text, str) and "{{" in text


def placeholder_names(text: Any) -> set:
    if not isinstance(text, str):
        return set()
    return set(_placeholder_re.findall(text))
