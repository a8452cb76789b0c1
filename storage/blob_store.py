from __future__ import annotations

import re
import threading
from pathlib import Path
from typing import Protocol

REGEX_CHAVE_VALIDA = re.compile(r"[A-Za-z0-9_.-]+(?:/[A-Za-z0-9_.-]+)*")


class BlobStoreError(RuntimeError):
    """Raised when a blob cannot be written."""


class BlobStore(Protocol):
    def put(self, chave: str, dados: bytes, content_type: str = "application/octet-stream") -> str: ...

    def get(self, chave: str) -> bytes | None: ...


def validar_chave(chave: str) -> str:
    chave = (chave or "").strip().strip("/")
    if not REGEX_CHAVE_VALIDA.fullmatch(chave) or ".." in chave.split("/"):
        raise BlobStoreError(f"Chave de blob inválida: {chave!r}")
    return chave


class LocalBlobStore:
    """
    Blob store em disco. Cada chave vira um arquivo sob `raiz`; a URL pública
    usa `base_url` quando configurada, senão um URI file://.
    """

    def __init__(self, raiz: Path, base_url: str = "") -> None:
        self.raiz = Path(raiz)
        self.base_url = (base_url or "").rstrip("/")

    def _caminho(self, chave: str) -> Path:
        return self.raiz / validar_chave(chave)

    def url(self, chave: str) -> str:
        chave = validar_chave(chave)
        if self.base_url:
            return f"{self.base_url}/{chave}"
        return self._caminho(chave).resolve().as_uri()

    def put(self, chave: str, dados: bytes, content_type: str = "application/octet-stream") -> str:
        caminho = self._caminho(chave)
        try:
            caminho.parent.mkdir(parents=True, exist_ok=True)
            temporario = caminho.with_name(caminho.name + ".tmp")
            temporario.write_bytes(dados)
            temporario.replace(caminho)
        except OSError as exc:
            raise BlobStoreError(f"Falha ao gravar blob {chave}: {exc}") from exc
        return self.url(chave)

    def get(self, chave: str) -> bytes | None:
        caminho = self._caminho(chave)
        try:
            return caminho.read_bytes()
        except FileNotFoundError:
            return None


class MemoryBlobStore:
    """Blob store em memória, por instância do processo."""

    def __init__(self, base_url: str = "memory://blob") -> None:
        self.base_url = base_url.rstrip("/")
        self._lock = threading.Lock()
        self._blobs: dict[str, tuple[bytes, str]] = {}

    def put(self, chave: str, dados: bytes, content_type: str = "application/octet-stream") -> str:
        chave = validar_chave(chave)
        with self._lock:
            self._blobs[chave] = (bytes(dados), content_type)
        return f"{self.base_url}/{chave}"

    def get(self, chave: str) -> bytes | None:
        chave = validar_chave(chave)
        with self._lock:
            item = self._blobs.get(chave)
        return item[0] if item else None

    def content_type(self, chave: str) -> str | None:
        with self._lock:
            item = self._blobs.get(validar_chave(chave))
        return item[1] if item else None
