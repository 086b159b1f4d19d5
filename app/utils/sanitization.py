import html
from typing import Any


def escape_html(value: Any) -> str:
    """
    Escape a value for interpolation into an HTML fragment.
    None and empty values render as an empty string.
    """
    if value is None or value == "":
        return ""
    return html.escape(str(value), quote=True)
