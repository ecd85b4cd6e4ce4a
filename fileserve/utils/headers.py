"""Response header helpers shared by the download services."""

import mimetypes
from urllib.parse import quote

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _quote_header_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def make_disposition(disposition: str, filename: str, fallback: str) -> str:
    """
    Build a Content-Disposition header value.

    Filenames that are not plain printable ASCII are sent through
    ``filename*`` (RFC 6266) with ``fallback`` as the legacy ``filename``.
    """
    if filename and filename.isascii() and filename.isprintable() and "%" not in filename:
        return f'{disposition}; filename="{_quote_header_value(filename)}"'
    return (
        f'{disposition}; filename="{_quote_header_value(fallback)}"; '
        f"filename*=utf-8''{quote(filename, safe='')}"
    )


def guess_content_type(filename: str) -> str:
    """Extension based MIME lookup with an octet-stream fallback."""
    content_type, _ = mimetypes.guess_type(filename, strict=False)
    return content_type or DEFAULT_CONTENT_TYPE
