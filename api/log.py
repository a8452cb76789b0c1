from __future__ import annotations

import json
import logging
import re
from typing import Any

MAX_STRING = 500
MAX_DEPTH = 3
MAX_ITENS = 20

# Chaves com dados pessoais (sem diferenciar maiúsculas).
CHAVES_PII = re.compile(r"cpf|cnpj|\brg\b|endereco|address|email|telefone|phone|nome|name", re.IGNORECASE)

logger = logging.getLogger("peticao_cobranca")


def configurar_logging(nivel: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, (nivel or "INFO").upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def sanitizar(valor: Any, profundidade: int = 0) -> Any:
    if profundidade > MAX_DEPTH:
        return "[TRUNCATED]"
    if valor is None or isinstance(valor, (bool, int, float)):
        return valor
    if isinstance(valor, str):
        return valor[:MAX_STRING] + "..." if len(valor) > MAX_STRING else valor
    if isinstance(valor, (list, tuple)):
        return [sanitizar(item, profundidade + 1) for item in list(valor)[:MAX_ITENS]]
    if isinstance(valor, dict):
        return {
            str(chave): "[REDACTED]" if CHAVES_PII.search(str(chave)) else sanitizar(item, profundidade + 1)
            for chave, item in valor.items()
        }
    return sanitizar(str(valor), profundidade)


def log_evento(nivel: int, evento: str, **meta: Any) -> None:
    """Emite um evento estruturado em JSON, com PII mascarada. Nunca quebra a requisição."""
    try:
        linha = json.dumps({"event": evento, "meta": sanitizar(meta)}, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        linha = json.dumps({"event": evento, "meta": "[UNSERIALIZABLE]"})
    logger.log(nivel, linha)
