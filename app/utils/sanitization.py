import html
from typing import Optional


def sanitize_string(value: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
    """
    Sanitize a string by escaping HTML special characters to prevent XSS.
    Surrounding whitespace is stripped and the result is cut to max_length.
    Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    value = value.strip()
    if max_length is not None:
        value = value[:max_length]
    return html.escape(value, quote=True)
