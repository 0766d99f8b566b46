"""Reading documents from disk and writing them back the way they were found."""

from __future__ import annotations

import codecs
import hashlib
import locale
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

__all__ = [
    "LoadedText",
    "FileChangedError",
    "load_text",
    "write_back",
    "write_text",
    "compute_text_digest",
]

_BOMS: tuple[tuple[bytes, str], ...] = (
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)
_NEWLINES = ("\n", "\r\n")


class FileChangedError(OSError):
    """The file was modified by someone else after it was loaded."""


@dataclass(slots=True, frozen=True)
class LoadedText:
    """Document text with ``\\n`` newlines plus what is needed to save it unchanged.

    ``raw_digest`` fingerprints the bytes that were read so a later save can
    tell whether another program touched the file in the meantime. ``bom`` is
    the byte order mark the file started with, written back verbatim.
    """

    path: Path
    text: str
    encoding: str
    newline: str
    raw_digest: str
    bom: bytes = b""


def load_text(path: Path | str) -> LoadedText:
    target = Path(path)
    raw = target.read_bytes()
    bom, encoding = _sniff_encoding(raw)
    decoded = raw[len(bom) :].decode(encoding)
    return LoadedText(
        path=target,
        text=_to_lf(decoded),
        encoding=encoding,
        newline="\r\n" if "\r\n" in decoded else "\n",
        raw_digest=_digest_bytes(raw),
        bom=bom,
    )


def write_back(loaded: LoadedText, text: str) -> Path:
    """Save ``text`` over ``loaded.path`` with its original encoding and newlines.

    Raises :class:`FileChangedError` instead of overwriting edits made by
    another program since :func:`load_text`.
    """

    try:
        current = loaded.path.read_bytes()
    except FileNotFoundError as exc:
        raise FileChangedError(f"{loaded.path} was removed after it was loaded") from exc
    if _digest_bytes(current) != loaded.raw_digest:
        raise FileChangedError(f"{loaded.path} changed on disk after it was loaded")
    return write_text(loaded.path, text, encoding=loaded.encoding, newline=loaded.newline, bom=loaded.bom)


def write_text(
    path: Path | str,
    content: str,
    *,
    encoding: str = "utf-8",
    newline: str = "\n",
    bom: bytes = b"",
) -> Path:
    """Atomically replace ``path`` with ``content`` using ``newline`` line endings.

    ``bom`` is written before the encoded text, so ``encoding`` should be a
    codec that does not add one itself (``utf-16-le`` rather than ``utf-16``).
    """

    if newline not in _NEWLINES:
        raise ValueError(f"Unsupported newline policy: {newline!r}")
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    body = _to_lf(content)
    if newline != "\n":
        body = body.replace("\n", newline)

    descriptor, tmp_name = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(descriptor, "wb") as handle:
            handle.write(bom + body.encode(encoding))
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):  # pragma: no cover - only when replace failed
            os.unlink(tmp_name)
    return target


def compute_text_digest(text: str) -> str:
    """SHA-256 of ``text`` encoded as UTF-8."""

    return _digest_bytes(text.encode("utf-8"))


def _digest_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _sniff_encoding(raw: bytes) -> tuple[bytes, str]:
    for bom, encoding in _BOMS:
        if raw.startswith(bom):
            return bom, encoding
    candidates = dict.fromkeys(("utf-8", locale.getpreferredencoding(False) or "utf-8", "latin-1"))
    for candidate in candidates:
        try:
            raw.decode(candidate)
        except UnicodeDecodeError:
            continue
        return b"", candidate
    return b"", "utf-8"


def _to_lf(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")
