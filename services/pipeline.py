from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from services.gemini_service import GeminiServiceError
from services.montagem import envelope_degradado, montar_resposta
from services.parser_modelo import RespostaModeloInvalida, interpretar_resposta
from services.prompt_builder import TemplateError, montar_prompt
from services.validador import validar_entrada

MAX_DETALHE_ERRO = 300

# Recebe o prompt {system, user, meta} e devolve o texto bruto do modelo (str ou objeto com .text).
GeradorTexto = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True)
class FalhaClassificada:
    status_http: int
    codigo: str
    mensagem: str
    detalhe: str


def _ms_desde(inicio: float) -> int:
    return int((time.monotonic() - inicio) * 1000)


def truncar_detalhe(texto: Any, limite: int = MAX_DETALHE_ERRO) -> str:
    texto = str(texto or "")
    return texto if len(texto) <= limite else texto[:limite] + "…"


# Traduz exceções do pipeline em status HTTP + código, sem vazar a mensagem crua do provedor.
def classificar_falha(exc: BaseException) -> FalhaClassificada:
    detalhe = truncar_detalhe(exc)
    if isinstance(exc, GeminiServiceError):
        if exc.codigo == "MODEL_TIMEOUT":
            mensagem = "Tempo limite excedido ao gerar o rascunho. Tente novamente."
        else:
            mensagem = "Falha no serviço de geração do rascunho."
        return FalhaClassificada(exc.status_http, exc.codigo, mensagem, detalhe)
    if isinstance(exc, RespostaModeloInvalida):
        return FalhaClassificada(500, "MODEL_OUTPUT_INVALID", "O modelo retornou uma resposta inválida.", detalhe)
    if isinstance(exc, TemplateError):
        return FalhaClassificada(500, "TEMPLATE_ERROR", "Template de seções indisponível.", detalhe)
    return FalhaClassificada(500, "DRAFT_COBRANCA_ERR", "Erro inesperado ao gerar o rascunho.", detalhe)


def envelope_de_falha(falha: FalhaClassificada, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    alerta = {"level": "error", "code": falha.codigo, "message": falha.mensagem}
    return envelope_degradado(alerts=[alerta], meta=meta)


def dados_da_requisicao(payload: Any) -> dict[str, Any]:
    dados = payload.get("data") if isinstance(payload, dict) else None
    return dados if isinstance(dados, dict) else {}


def validar_requisicao(payload: Any) -> dict[str, Any]:
    return validar_entrada(dados_da_requisicao(payload))


def envelope_de_validacao(validacao: dict[str, Any], meta: dict[str, Any] | None = None) -> dict[str, Any]:
    return envelope_degradado(
        alerts=validacao.get("alerts"),
        missing=validacao.get("missing"),
        meta={"stage": "validate", **(meta or {})},
    )


def gerar_a_partir_de_valido(
    payload: dict[str, Any],
    gerador: GeradorTexto,
    templates_dir: Path | None = None,
) -> dict[str, Any]:
    """prompt → modelo → parse → montagem. Exceções de geração e parse propagam."""
    inicio = time.monotonic()
    prompt = montar_prompt(payload, templates_dir)
    bruto = gerador(prompt)
    parsed = interpretar_resposta(bruto, templates_dir)
    envelope = montar_resposta(parsed, payload)

    meta_modelo = getattr(bruto, "meta", None)
    meta = {**prompt["meta"], **envelope["meta"]}
    if isinstance(meta_modelo, dict):
        meta["model"] = getattr(bruto, "model", None)
        meta["modelElapsedMs"] = meta_modelo.get("elapsedMs")
        meta["truncated"] = bool(meta_modelo.get("truncated"))
    meta["stage"] = "done"
    meta["ms"] = _ms_desde(inicio)
    envelope["meta"] = meta
    return envelope


def gerar_rascunho_cobranca(
    payload: Any,
    gerador: GeradorTexto,
    templates_dir: Path | None = None,
) -> dict[str, Any]:
    """
    Fluxo síncrono completo: valida → gera → monta.

    Falha de validação não é exceção: devolve o envelope degradado com `ok: False`
    sem chamar o gerador.
    """
    inicio = time.monotonic()
    validacao = validar_requisicao(payload)
    if not validacao["ok"]:
        return envelope_de_validacao(validacao, {"ms": _ms_desde(inicio)})
    return gerar_a_partir_de_valido(payload, gerador, templates_dir)
