from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

RAIZ_PROJETO = Path(__file__).resolve().parent


def _env_int(nome: str, padrao: int) -> int:
    valor = (os.getenv(nome) or "").strip()
    if not valor:
        return padrao
    try:
        return int(valor)
    except ValueError:
        return padrao


def _env_float(nome: str, padrao: float) -> float:
    valor = (os.getenv(nome) or "").strip()
    if not valor:
        return padrao
    try:
        return float(valor)
    except ValueError:
        return padrao


@dataclass(frozen=True)
class Configuracao:
    token_compartilhado: str
    gemini_model: str
    model_timeout_s: float
    templates_dir: Path
    blob_dir: Path
    blob_public_base_url: str
    export_delivery: str
    limite_draft: int
    limite_start: int
    limite_status: int
    limite_export: int
    janela_limite_s: float
    log_level: str


# Lê as variáveis de ambiente (e o .env local) a cada chamada, para os testes poderem trocar valores.
def carregar_configuracao() -> Configuracao:
    entrega = (os.getenv("EXPORT_DELIVERY") or "inline").strip().lower()
    if entrega not in {"inline", "url"}:
        entrega = "inline"

    return Configuracao(
        token_compartilhado=(os.getenv("VALIDALEX_SHARED_TOKEN") or "").strip(),
        gemini_model=(os.getenv("GEMINI_MODEL") or "gemini-2.5-flash").strip(),
        model_timeout_s=_env_float("MODEL_TIMEOUT_S", 30.0),
        templates_dir=Path(os.getenv("TEMPLATES_DIR") or RAIZ_PROJETO / "templates"),
        blob_dir=Path(os.getenv("BLOB_DIR") or RAIZ_PROJETO / ".data" / "blob"),
        blob_public_base_url=(os.getenv("BLOB_PUBLIC_BASE_URL") or "").strip().rstrip("/"),
        export_delivery=entrega,
        limite_draft=_env_int("RATE_LIMIT_DRAFT", 30),
        limite_start=_env_int("RATE_LIMIT_START", 10),
        limite_status=_env_int("RATE_LIMIT_STATUS", 60),
        limite_export=_env_int("RATE_LIMIT_EXPORT", 20),
        janela_limite_s=_env_float("RATE_LIMIT_WINDOW_S", 60.0),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
    )
