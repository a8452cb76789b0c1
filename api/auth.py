from __future__ import annotations

import hmac
from typing import Mapping

from api.respostas import ErroHttp


def extrair_token(headers: Mapping[str, str]) -> str:
    autorizacao = headers.get("authorization") or ""
    if autorizacao.lower().startswith("bearer "):
        return autorizacao[7:].strip()
    # cabeçalho alternativo para chamadas internas controladas
    return (headers.get("x-validalex-token") or "").strip()


def exigir_token(headers: Mapping[str, str], esperado: str) -> None:
    """Compara o token da requisição com o segredo compartilhado (401 ausente, 403 divergente)."""
    if not esperado:
        raise ErroHttp(500, "AUTH_NOT_CONFIGURED", "VALIDALEX_SHARED_TOKEN não configurado")

    token = extrair_token(headers)
    if not token:
        raise ErroHttp(401, "UNAUTHORIZED", "Token ausente")
    if not hmac.compare_digest(token.encode("utf-8"), esperado.encode("utf-8")):
        raise ErroHttp(403, "FORBIDDEN", "Token inválido")
