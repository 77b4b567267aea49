"""
Raw HTTP request model.

A RawRequest keeps the request target exactly as written (no dot-segment
normalization, no re-escaping of payloads) so traversal and encoding-bypass
vectors reach the server untouched. Cloning goes through the HTTP/1.1 wire
form: the request is serialized and a fresh object is parsed back, so a
clone never shares its header container with the original.

Example raw request file::

    GET /search?q=1 HTTP/1.1
    Host: example.com
    User-Agent: xxx

"""

import re
import string
from pathlib import Path
from typing import List, Optional, Tuple, Union
from urllib.parse import parse_qsl, quote, urlencode, urlsplit

import httpx

from .exceptions import ParseError

_TOKEN_RE = re.compile(r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")
_VERSION_RE = re.compile(r"^HTTP/\d\.\d$")
_HEAD_END_RE = re.compile(rb"\r?\n\r?\n")
# Header whitespace is SP and HTAB only.
_OWS = " \t"

# Only characters that would corrupt the request line are escaped.
_PATH_SAFE = "".join(c for c in string.punctuation if c not in "?#")
_QUERY_SAFE = "".join(c for c in string.punctuation if c != "#")

_FRAMING_HEADERS = {"host", "content-length", "transfer-encoding"}

HeaderItems = Union[httpx.Headers, List[Tuple[Union[str, bytes], Union[str, bytes]]], dict]


def _header_bytes(value: Union[str, bytes]) -> bytes:
    """Header names and values are kept as bytes; text is sent as UTF-8."""
    return value if isinstance(value, bytes) else value.encode("utf-8")


def _raw_header_items(headers: Optional[HeaderItems]) -> List[Tuple[bytes, bytes]]:
    if headers is None:
        return []
    if isinstance(headers, httpx.Headers):
        return list(headers.raw)
    items = headers.items() if isinstance(headers, dict) else headers
    return [(_header_bytes(k), _header_bytes(v)) for k, v in items]


class RawRequest:
    """An outbound HTTP request with a verbatim request target."""

    def __init__(
            self,
            method: str,
            scheme: str,
            host: str,
            path: str = "/",
            query: str = "",
            fragment: str = "",
            headers: Optional[HeaderItems] = None,
            body: bytes = b"",
            http_version: str = "HTTP/1.1"
    ):
        self.method = method.upper()
        self.scheme = scheme
        self.host = host
        self.path = path or "/"
        self.query = query
        self.fragment = fragment
        self.headers = httpx.Headers(_raw_header_items(headers))
        self.body = body
        self.http_version = http_version

    # ── URL views ───────────────────────────────────────────────

    @property
    def target(self) -> str:
        """Origin-form request target sent on the request line."""
        target = quote(self.path, safe=_PATH_SAFE)
        if self.query:
            target += "?" + quote(self.query, safe=_QUERY_SAFE)
        return target

    @property
    def url(self) -> str:
        """Full URL including the fragment."""
        url = f"{self.scheme}://{self.host}{self.path}"
        if self.query:
            url += f"?{self.query}"
        if self.fragment:
            url += f"#{self.fragment}"
        return url

    # ── query helpers ───────────────────────────────────────────

    def query_params(self) -> List[Tuple[str, str]]:
        """Decoded query pairs in request order."""
        return parse_qsl(self.query, keep_blank_values=True)

    def query_keys(self) -> List[str]:
        """Distinct query keys in first-appearance order."""
        return list(dict.fromkeys(key for key, _ in self.query_params()))

    def set_query_value(self, key: str, value: str) -> None:
        """Replace every value of ``key`` with the single ``value`` and re-encode."""
        pairs = []
        replaced = False
        for k, v in self.query_params():
            if k != key:
                pairs.append((k, v))
            elif not replaced:
                pairs.append((k, value))
                replaced = True
        if not replaced:
            pairs.append((key, value))
        self.query = urlencode(pairs)

    # ── header helpers ──────────────────────────────────────────

    def header_names(self) -> List[str]:
        """Distinct header names in first-appearance order, framing headers excluded."""
        names = {}
        for raw_key, _ in self.headers.raw:
            name = raw_key.decode("latin-1")
            if name.lower() not in _FRAMING_HEADERS:
                names.setdefault(name.lower(), name)
        return list(names.values())

    def set_header(self, name: str, value: Union[str, bytes]) -> None:
        """Replace every ``name`` header with one ``value``, kept at the first one's position."""
        wanted = _header_bytes(name).lower()
        raw_value = _header_bytes(value)
        items = []
        replaced = False
        for key, current in self.headers.raw:
            if key.lower() != wanted:
                items.append((key, current))
            elif not replaced:
                items.append((key, raw_value))
                replaced = True
        if not replaced:
            items.append((_header_bytes(name), raw_value))
        self.headers = httpx.Headers(items)

    def append_header_value(self, name: str, suffix: str) -> None:
        """Set ``name`` to its first value followed by ``suffix``."""
        wanted = _header_bytes(name).lower()
        first = next((value for key, value in self.headers.raw if key.lower() == wanted), b"")
        self.set_header(name, first + _header_bytes(suffix))

    # ── wire form ───────────────────────────────────────────────

    def to_wire(self) -> bytes:
        """Serialize to HTTP/1.1 wire bytes."""
        lines = [f"{self.method} {self.target} {self.http_version}".encode("latin-1"),
                 f"Host: {self.host}".encode("latin-1")]
        for key, value in self.headers.raw:
            if key.lower() in (b"host", b"content-length", b"transfer-encoding"):
                continue
            lines.append(key + b": " + value)
        if self.body:
            lines.append(f"Content-Length: {len(self.body)}".encode("latin-1"))
        return b"\r\n".join(lines) + b"\r\n\r\n" + self.body

    def clone(self) -> "RawRequest":
        """Deep copy through the wire form; scheme and fragment are restored."""
        twin = parse_request(self.to_wire(), scheme=self.scheme)
        twin.host = self.host
        twin.fragment = self.fragment
        return twin

    def build_httpx_request(self, client: httpx.Client) -> httpx.Request:
        """Build the httpx request; the ``target`` extension keeps the path verbatim."""
        headers = [(k, v) for k, v in self.headers.raw
                   if k.lower() not in (b"host", b"content-length", b"transfer-encoding")]
        return client.build_request(
            self.method,
            f"{self.scheme}://{self.host}/",
            headers=headers,
            content=self.body or None,
            extensions={"target": self.target.encode("ascii")},
        )

    def __repr__(self) -> str:
        return f"RawRequest({self.method} {self.url})"


def _read_chunked(body: bytes) -> bytes:
    """Decode a chunked transfer-encoded body."""
    out = bytearray()
    rest = body
    while True:
        size_line, sep, rest = rest.partition(b"\n")
        if not sep:
            raise ParseError("Truncated chunked body")
        try:
            size = int(size_line.split(b";", 1)[0].strip(), 16)
        except ValueError:
            raise ParseError(f"Invalid chunk size line: {size_line!r}")
        if size == 0:
            return bytes(out)
        out += rest[:size]
        rest = rest[size:].lstrip(b"\r").lstrip(b"\n")


def parse_request(data: bytes, scheme: str = "http", host: Optional[str] = None) -> RawRequest:
    """
    Parse a raw HTTP/1.x request.

    Args:
        data: Request bytes (CRLF or bare LF line endings)
        scheme: Scheme used when the request target is in origin-form
        host: Host override; otherwise taken from the target or Host header

    Returns:
        The parsed request

    Raises:
        ParseError: If the request line, a header line or the body framing is invalid
    """
    data = data.lstrip(b"\r\n")
    match = _HEAD_END_RE.search(data)
    if match:
        head, body = data[:match.start()], data[match.end():]
    else:
        head, body = data, b""

    # Lines end at LF; high bytes such as \x85 are header data.
    lines = [line.rstrip("\r") for line in head.decode("latin-1").split("\n")]
    if lines and not lines[-1]:
        lines.pop()
    if not lines or not lines[0].strip():
        raise ParseError("Request is empty")

    parts = lines[0].split()
    if len(parts) == 2:
        parts.append("HTTP/1.1")
    if len(parts) != 3:
        raise ParseError(f"Invalid request line: {lines[0]!r}")
    method, raw_target, version = parts
    if not _TOKEN_RE.match(method):
        raise ParseError(f"Invalid method: {method!r}")
    if not _VERSION_RE.match(version):
        raise ParseError(f"Invalid HTTP version: {version!r}")

    header_pairs: List[Tuple[str, str]] = []
    for line in lines[1:]:
        if line[:1] in (" ", "\t") and header_pairs:
            name, value = header_pairs[-1]
            header_pairs[-1] = (name, f"{value} {line.strip(_OWS)}")
            continue
        name, sep, value = line.partition(":")
        if not sep or not _TOKEN_RE.match(name):
            raise ParseError(f"Invalid header line: {line!r}")
        header_pairs.append((name, value.strip(_OWS)))

    header_host = ""
    content_length = None
    chunked = False
    headers = []
    for name, value in header_pairs:
        lowered = name.lower()
        if lowered == "host":
            header_host = header_host or value
        elif lowered == "content-length":
            try:
                content_length = int(value)
            except ValueError:
                raise ParseError(f"Invalid Content-Length: {value!r}")
        elif lowered == "transfer-encoding":
            chunked = "chunked" in value.lower()
        else:
            # latin-1 gives back the exact bytes of the head
            headers.append((name.encode("latin-1"), value.encode("latin-1")))

    if raw_target.startswith("/"):
        before_fragment, _, fragment = raw_target.partition("#")
        path, _, query = before_fragment.partition("?")
        target_host = ""
    elif raw_target.lower().startswith(("http://", "https://")):
        split = urlsplit(raw_target)
        scheme = split.scheme.lower()
        path, query, fragment = split.path, split.query, split.fragment
        target_host = split.netloc
    else:
        raise ParseError(f"Unsupported request target: {raw_target!r}")

    final_host = host or target_host or header_host
    if not final_host:
        raise ParseError("Request has no Host header and no absolute target")

    if chunked:
        body = _read_chunked(body)
    elif content_length is not None:
        if len(body) < content_length:
            raise ParseError(
                f"Body shorter than Content-Length ({len(body)} < {content_length})"
            )
        body = body[:content_length]

    return RawRequest(
        method=method,
        scheme=scheme,
        host=final_host,
        path=path or "/",
        query=query,
        fragment=fragment,
        headers=headers,
        body=body,
        http_version=version,
    )


def load_request_file(
        file_name: Union[str, Path],
        scheme: Optional[str] = None,
        host: Optional[str] = None
) -> RawRequest:
    """Read a saved raw request; scheme defaults to http."""
    try:
        data = Path(file_name).read_bytes()
    except OSError as e:
        raise ParseError(f"Cannot read request file {file_name}: {e}")
    request = parse_request(data, scheme=scheme or "http", host=host)
    if scheme:
        request.scheme = scheme
    return request


def request_from_url(url: str, user_agent: str) -> RawRequest:
    """Synthesize a GET baseline for ``url`` with an identifying User-Agent."""
    split = urlsplit(url)
    if split.scheme not in ("http", "https") or not split.netloc:
        raise ParseError(f"Not an absolute http(s) URL: {url!r}")
    return RawRequest(
        method="GET",
        scheme=split.scheme,
        host=split.netloc,
        path=split.path or "/",
        query=split.query,
        fragment=split.fragment,
        headers=[("User-Agent", user_agent)],
    )
