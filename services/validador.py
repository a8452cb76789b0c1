from __future__ import annotations

import math
import re
from typing import Any

from services.schema import (
    ORIGEM_POR_CATEGORIA,
    ROTULO_ORIGEM_CATEGORIA,
    ROTULO_ORIGEM_SUBTIPO,
    SCHEMA_COBRANCA,
)

REGEX_DATA_ISO = re.compile(r"\d{4}-\d{2}-\d{2}")
REGEX_TENTATIVA_EXTRAJUDICIAL = re.compile(
    r"whats|e-?mail|carta|cart[oó]rio|notifica|extrajud",
    re.IGNORECASE,
)
TAMANHO_MINIMO_ENDERECO_REU = 12


# Percorre o dicionário por um caminho pontuado ("partes.reu.nome").
def valor_por_caminho(dados: Any, caminho: str) -> Any:
    atual: Any = dados
    for chave in caminho.split("."):
        if not isinstance(atual, dict) or chave not in atual:
            return None
        atual = atual[chave]
    return atual


def esta_vazio(valor: Any) -> bool:
    if valor is None:
        return True
    if isinstance(valor, str):
        return not valor.strip()
    if isinstance(valor, (list, tuple)):
        return len(valor) == 0
    return False


def _texto(valor: Any) -> str:
    if valor is None:
        return ""
    return str(valor).strip()


# Converte números e textos numéricos ("1500.5", "R$ 1.500,50") em float; None se não for número.
def para_numero(valor: Any) -> float | None:
    if isinstance(valor, bool) or valor is None:
        return None
    if isinstance(valor, (int, float)):
        try:
            return float(valor)
        except OverflowError:
            # inteiro JSON grande demais para float
            return None
    if not isinstance(valor, str):
        return None

    texto = valor.strip().replace("R$", "").replace(" ", "")
    if not texto:
        return None
    if "," in texto:
        texto = texto.replace(".", "").replace(",", ".")
    try:
        return float(texto)
    except (ValueError, OverflowError):
        return None


def _numero_finito(valor: Any) -> float | None:
    numero = para_numero(valor)
    if numero is None or not math.isfinite(numero):
        return None
    return numero


def origem_categoria_valida(categoria: str) -> bool:
    return bool(categoria) and categoria in ORIGEM_POR_CATEGORIA


def origem_subtipo_valido(categoria: str, subtipo: str) -> bool:
    if not origem_categoria_valida(categoria) or not subtipo:
        return False
    return subtipo in ORIGEM_POR_CATEGORIA[categoria]


def _alerta(nivel: str, codigo: str, mensagem: str) -> dict[str, str]:
    return {"level": nivel, "code": codigo, "message": mensagem}


def _campo_critico_ausente(dados: Any, item: dict[str, Any]) -> bool:
    if not esta_vazio(valor_por_caminho(dados, item["path"])):
        return False
    for alternativa in item.get("alternativas") or []:
        if not esta_vazio(valor_por_caminho(dados, alternativa)):
            return False
    return True


def validar_entrada(
    dados: Any,
    schema: dict[str, Any] | None = None,
    meta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Validação determinística dos dados da Ação de Cobrança antes do envio ao modelo.

    Retorna {ok, missing, alerts, meta}. `missing` bloqueia a geração;
    `alerts` apenas informam riscos e nunca alteram `ok`.
    """
    schema = schema if isinstance(schema, dict) else SCHEMA_COBRANCA
    missing: list[dict[str, str]] = []
    alerts: list[dict[str, str]] = []

    def _faltando(caminho: str, rotulo: str) -> None:
        if not any(item["path"] == caminho for item in missing):
            missing.append({"path": caminho, "label": rotulo})

    obrigatorios = schema.get("requiredCritical")
    if not isinstance(obrigatorios, list):
        obrigatorios = []

    # ------------------------------------------------------------------
    # Campos críticos obrigatórios
    # ------------------------------------------------------------------
    for item in obrigatorios:
        if not isinstance(item, dict) or not item.get("path"):
            continue
        if _campo_critico_ausente(dados, item):
            _faltando(str(item["path"]), str(item.get("label") or item["path"]))

    # ------------------------------------------------------------------
    # Origem da dívida (categoria + subtipo)
    # ------------------------------------------------------------------
    origem_cat = _texto(valor_por_caminho(dados, "divida.origem_categoria"))
    origem_sub = _texto(valor_por_caminho(dados, "divida.origem_subtipo"))

    if origem_cat and not origem_sub:
        _faltando("divida.origem_subtipo", ROTULO_ORIGEM_SUBTIPO)

    if origem_sub and not origem_cat:
        _faltando("divida.origem_categoria", ROTULO_ORIGEM_CATEGORIA)
        alerts.append(_alerta(
            "error",
            "ORIGEM_INCONSISTENTE",
            "Origem da dívida inconsistente: subtipo informado sem categoria.",
        ))

    if origem_cat and not origem_categoria_valida(origem_cat):
        alerts.append(_alerta(
            "error",
            "ORIGEM_CATEGORIA_INVALIDA",
            "Origem da dívida - Categoria inválida. Selecione uma categoria permitida no formulário.",
        ))

    if (
        origem_cat
        and origem_sub
        and origem_categoria_valida(origem_cat)
        and not origem_subtipo_valido(origem_cat, origem_sub)
    ):
        alerts.append(_alerta(
            "error",
            "ORIGEM_SUBTIPO_INVALIDO",
            "Origem da dívida - Subtipo inválido para a categoria selecionada.",
        ))

    # ------------------------------------------------------------------
    # Endereço do réu
    # ------------------------------------------------------------------
    reu_endereco = _texto(valor_por_caminho(dados, "partes.reu.endereco"))
    if reu_endereco and len(reu_endereco) < TAMANHO_MINIMO_ENDERECO_REU:
        alerts.append(_alerta(
            "warn",
            "REU_ENDERECO_FRACO",
            "Endereço do réu parece incompleto para fins de citação.",
        ))

    # ------------------------------------------------------------------
    # Tentativa extrajudicial
    # ------------------------------------------------------------------
    if valor_por_caminho(dados, "fatos.tentativa_extrajudicial") is True:
        descricao = _texto(valor_por_caminho(dados, "fatos.descricao_orientada"))
        if not REGEX_TENTATIVA_EXTRAJUDICIAL.search(descricao):
            alerts.append(_alerta(
                "info",
                "EXTRAJ_NAO_DESCRITA",
                "Tentativa extrajudicial marcada, mas o texto não descreve como ocorreu.",
            ))

    # ------------------------------------------------------------------
    # Provas
    # ------------------------------------------------------------------
    documentos = valor_por_caminho(dados, "provas.documentos")
    if not isinstance(documentos, list) or not documentos:
        alerts.append(_alerta(
            "warn",
            "SEM_DOCUMENTOS",
            "Nenhum documento fornecido; risco processual elevado.",
        ))

    # ------------------------------------------------------------------
    # Valor da dívida: valor inválido bloqueia a geração
    # ------------------------------------------------------------------
    valor = _numero_finito(valor_por_caminho(dados, "divida.valor"))
    if valor is None or valor <= 0:
        alerts.append(_alerta("error", "VALOR_INVALIDO", "O valor da dívida é inválido."))
        _faltando("divida.valor", "Valor devido")

    # ------------------------------------------------------------------
    # Data de vencimento
    # ------------------------------------------------------------------
    vencimento = _texto(valor_por_caminho(dados, "divida.data_vencimento"))
    if vencimento and not REGEX_DATA_ISO.fullmatch(vencimento):
        alerts.append(_alerta(
            "warn",
            "DATA_FORMATO",
            "Data de vencimento deve seguir o formato YYYY-MM-DD.",
        ))

    # ------------------------------------------------------------------
    # Valor da causa x valor da dívida
    # ------------------------------------------------------------------
    valor_causa = _numero_finito(valor_por_caminho(dados, "config.valor_causa"))
    if valor is not None and valor_causa is not None and valor_causa < valor:
        alerts.append(_alerta(
            "warn",
            "VALOR_CAUSA_MENOR_QUE_DIVIDA",
            "O valor da causa é inferior ao valor da dívida informada; verificar antes do protocolo.",
        ))

    return {
        "ok": not missing,
        "missing": missing,
        "alerts": alerts,
        "meta": dict(meta) if isinstance(meta, dict) else {},
    }
