"""
URL-safe text codec used for working-set cookies and outbound help links.

`encode` escapes every UTF-8 byte of its input as ``%hh``, so the encoded
form never contains the ``|``, ``&``, ``_`` or ``<`` characters the cookie
format uses as delimiters. `decode` is its inverse and additionally accepts
``+`` as a space and unescaped literal characters.
"""

from __future__ import annotations

import logging
from typing import Optional

logger = logging.getLogger(__name__)

ESCAPE = "%"
SPACE_ALIAS = "+"

# "&" must be replaced first.
_HTML_ESCAPES = (
    ("&", "&amp;"),
    (">", "&gt;"),
    ("<", "&lt;"),
    ('"', "&quot;"),
)


def encode(text: str) -> Optional[str]:
    """
    Encode text for inclusion in URIs and cookie fields.

    The string is converted to UTF-8 and every byte is written as %hh.
    Returns None if the text cannot be represented in UTF-8.
    """
    try:
        data = text.encode("utf-8")
    except UnicodeEncodeError as exc:
        logger.warning("Cannot encode %r as UTF-8: %s", text, exc)
        return None
    return "".join(f"{ESCAPE}{byte:02x}" for byte in data)


def decode(token: str) -> Optional[str]:
    """
    Decode a string produced by `encode` back to text.

    A %-group cut short by the end of the input is dropped. Returns None if
    a group is not hexadecimal or the bytes are not valid UTF-8.
    """
    buf = bytearray()
    length = len(token)
    i = 0
    while i < length:
        ch = token[i]
        if ch == ESCAPE:
            if i + 3 <= length:
                group = token[i + 1 : i + 3]
                try:
                    buf.append(int(group, 16))
                except ValueError:
                    logger.warning("Invalid escape sequence %r in %r", ESCAPE + group, token)
                    return None
            i += 3
        elif ch == SPACE_ALIAS:
            buf.append(0x20)
            i += 1
        else:
            buf.extend(ch.encode("utf-8", errors="surrogatepass"))
            i += 1
    try:
        return buf.decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.warning("Decoded bytes of %r are not valid UTF-8: %s", token, exc)
        return None


def html_encode(text: str) -> str:
    """Escape markup metacharacters for embedding in an HTML document."""
    for raw, escaped in _HTML_ESCAPES:
        text = text.replace(raw, escaped)
    return text


def javascript_encode(text: str) -> str:
    """
    Encode text for embedding in JavaScript source. ASCII letters are kept,
    every other UTF-16 code unit becomes \\uHHHH.
    """
    out = []
    units = text.encode("utf-16-be", errors="surrogatepass")
    for i in range(0, len(units), 2):
        unit = (units[i] << 8) | units[i + 1]
        if 0x41 <= unit <= 0x5A or 0x61 <= unit <= 0x7A:
            out.append(chr(unit))
        else:
            out.append(f"\\u{unit:04X}")
    return "".join(out)


def unescape(token: str) -> Optional[str]:
    """
    Decode strings produced by JavaScript 1.3 ``escape()``: %hh is a Latin-1
    character and %uHHLL a UTF-16 code unit. Truncated groups are dropped.
    """
    units = bytearray()
    length = len(token)
    i = 0
    try:
        while i < length:
            ch = token[i]
            if ch == ESCAPE:
                if i + 1 < length and token[i + 1] != "u":
                    if i + 3 <= length:
                        units.extend(bytes((0, int(token[i + 1 : i + 3], 16))))
                    i += 3
                else:
                    if i + 6 <= length:
                        units.extend(bytes.fromhex(token[i + 2 : i + 6]))
                    i += 6
            elif ch == SPACE_ALIAS:
                units.extend(b"\x00 ")
                i += 1
            else:
                units.extend(ch.encode("utf-16-be", errors="surrogatepass"))
                i += 1
        return units.decode("utf-16-be", errors="surrogatepass")
    except ValueError as exc:
        logger.warning("Cannot unescape %r: %s", token, exc)
        return None


def help_url(url: Optional[str]) -> str:
    """Return a URL the browser can load for a toc or topic href."""
    if not url:
        return "about:blank"
    if url.startswith("http:/"):
        return url
    if url.startswith("file:/"):
        return "../content/" + url
    return "../content/help:" + url
