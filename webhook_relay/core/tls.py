import atexit
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from webhook_relay.core.config import Settings

logger = logging.getLogger(__name__)

PEM_MARKER = "-----BEGIN "

_inline_pem_files: list[Path] = []


class TlsConfigError(Exception):
    pass


@dataclass(frozen=True)
class TlsFiles:
    certfile: str
    keyfile: str
    ca_certs: str | None = None


def resolve_pem(value: str) -> str:
    """Return a file path for ``value``, which is either inline PEM text or a path.

    Inline PEM (often pasted into ``.env`` with literal ``\\n``) is written to a
    private temporary file since the server only accepts paths. Those files are
    removed when the process exits.
    """
    if PEM_MARKER in value:
        pem_text = value.replace("\\n", "\n")
        file_descriptor, path = tempfile.mkstemp(prefix="webhook-relay-", suffix=".pem")
        _inline_pem_files.append(Path(path))
        with os.fdopen(file_descriptor, "w", encoding="utf-8") as handle:
            handle.write(pem_text)
        return path

    pem_path = Path(value).expanduser()
    if not pem_path.is_file():
        raise TlsConfigError(f"TLS file not found: {pem_path}")
    return str(pem_path)


def remove_inline_pem_files() -> None:
    while _inline_pem_files:
        pem_path = _inline_pem_files.pop()
        try:
            pem_path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to remove inline TLS file path=%s error=%s", pem_path, exc)


atexit.register(remove_inline_pem_files)


def load_tls_files(settings: Settings) -> TlsFiles | None:
    if not settings.tls_cert or not settings.tls_key:
        return None

    try:
        return TlsFiles(
            certfile=resolve_pem(settings.tls_cert),
            keyfile=resolve_pem(settings.tls_key),
            ca_certs=resolve_pem(settings.tls_ca) if settings.tls_ca else None,
        )
    except (TlsConfigError, OSError) as exc:
        logger.error("Failed to load TLS config, serving plain HTTP error=%s", exc)
        return None
