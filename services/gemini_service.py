from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_TIMEOUT_S = 30.0
MAX_OUTPUT_CHARS = 25_000  # proteção contra resposta gigante
BACKOFF_TRANSIENTE_S = 1.5
STATUS_TRANSIENTES = {429, 500, 502, 503, 504}

logger = logging.getLogger("peticao_cobranca.modelo")


# Define um tipo de erro específico para falhas de integração com o Gemini.
class GeminiServiceError(RuntimeError):
    """Raised when Gemini generation fails."""

    codigo = "MODEL_ERROR"
    status_http = 502

    def __init__(self, mensagem: str, *, codigo: str | None = None, status_http: int | None = None):
        super().__init__(mensagem)
        if codigo:
            self.codigo = codigo
        if status_http:
            self.status_http = status_http


# Tempo esgotado: não é repetido, para não estourar o prazo total da invocação.
class GeminiTimeoutError(GeminiServiceError):
    codigo = "MODEL_TIMEOUT"
    status_http = 504


# Falha transitória do provedor (HTTP 429/5xx): repetida uma única vez.
class GeminiTransientError(GeminiServiceError):
    codigo = "MODEL_UPSTREAM"
    status_http = 502


@dataclass
class RespostaModelo:
    text: str
    model: str
    meta: dict[str, Any] = field(default_factory=dict)


def _truncar(texto: str, limite: int) -> str:
    return texto if len(texto) <= limite else texto[:limite] + "…"


def _parece_timeout(exc: Exception) -> bool:
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return True
    msg = repr(exc).lower()
    return "timeout" in msg or "timed out" in msg or "deadline" in msg


# Converte exceções do SDK em erros classificados (timeout, transitório ou definitivo).
def _classificar_erro(exc: Exception, modelo: str) -> GeminiServiceError:
    if isinstance(exc, GeminiServiceError):
        return exc

    if _parece_timeout(exc):
        return GeminiTimeoutError(f"Timeout ao chamar Gemini ({modelo}).")

    raw_msg = _truncar(str(exc), 500)
    status = getattr(exc, "code", None) if isinstance(exc, genai_errors.APIError) else None
    if status in STATUS_TRANSIENTES:
        return GeminiTransientError(f"Gemini indisponível ({modelo}, HTTP {status}): {raw_msg}")
    if isinstance(exc, httpx.TransportError):
        return GeminiTransientError(f"Falha de conexão com Gemini ({modelo}): {raw_msg}")

    return GeminiServiceError(f"Falha ao chamar Gemini ({modelo}): {raw_msg}")


def _extrair_texto(response: Any) -> str:
    try:
        return (getattr(response, "text", None) or "").strip()
    except ValueError:
        # response.text levanta quando o candidato foi bloqueado
        return ""


def gerar_rascunho(
    prompt: dict[str, Any],
    model: str | None = None,
    api_key: str | None = None,
    timeout_s: float | None = None,
    *,
    cliente: Any = None,
    dormir: Callable[[float], None] = time.sleep,
) -> RespostaModelo:
    """
    Envia o par system/user ao Gemini e retorna o texto bruto.
    Requer GEMINI_API_KEY ou GOOGLE_API_KEY no ambiente (exceto quando `cliente` é injetado).
    """
    chosen_model = (model or os.getenv("GEMINI_MODEL") or DEFAULT_MODEL).strip()
    timeout = float(timeout_s or DEFAULT_TIMEOUT_S)

    if cliente is None:
        key = (api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or "").strip()
        if not key:
            raise GeminiServiceError(
                "Configure GEMINI_API_KEY (ou GOOGLE_API_KEY) no ambiente.",
                codigo="MODEL_CONFIG",
                status_http=500,
            )
        cliente = genai.Client(
            api_key=key,
            http_options=genai_types.HttpOptions(timeout=int(timeout * 1000)),
        )

    config = genai_types.GenerateContentConfig(
        system_instruction=prompt.get("system") or "",
        temperature=0.2,
        response_mime_type="application/json",
    )

    inicio = time.monotonic()
    tentativas = 0
    while True:
        tentativas += 1
        try:
            response = cliente.models.generate_content(
                model=chosen_model,
                contents=prompt.get("user") or "",
                config=config,
            )
            break
        except Exception as exc:
            erro = _classificar_erro(exc, chosen_model)
            if isinstance(erro, GeminiTransientError) and tentativas == 1:
                logger.warning("Gemini transient failure, retrying once: %s", erro)
                dormir(BACKOFF_TRANSIENTE_S)
                continue
            if erro is exc:
                raise
            raise erro from exc

    elapsed_ms = int((time.monotonic() - inicio) * 1000)
    text = _extrair_texto(response)
    if not text:
        raise GeminiServiceError("Gemini nao retornou texto.")

    final_text = _truncar(text, MAX_OUTPUT_CHARS)
    return RespostaModelo(
        text=final_text,
        model=chosen_model,
        meta={
            "elapsedMs": elapsed_ms,
            "truncated": len(text) > MAX_OUTPUT_CHARS,
            "attempts": tentativas,
        },
    )
