from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from services.prompt_builder import DEFAULT_TEMPLATE_VERSION, TemplateError, carregar_template
from services.schema import CHAVES_SECOES

NIVEIS_ALERTA = ("info", "warn", "error")
ALIAS_NIVEIS = {"warning": "warn"}

REGEX_BLOCO_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
REGEX_SEPARADOR_PARAGRAFOS = re.compile(r"\n{2,}")


# Erro fatal: não foi possível recuperar um JSON com o objeto `sections`.
class RespostaModeloInvalida(ValueError):
    """Raised when the model output has no usable JSON / sections object."""


def _texto_bruto(resposta: Any) -> str:
    if resposta is None:
        return ""
    if isinstance(resposta, str):
        return resposta.strip()
    if isinstance(resposta, dict) and resposta.get("text") is not None:
        return str(resposta["text"]).strip()
    texto = getattr(resposta, "text", None)
    if texto is not None:
        return str(texto).strip()
    return str(resposta).strip()


def _tentar_json(texto: str) -> Any:
    try:
        return json.loads(texto)
    except (TypeError, ValueError):
        return None


def extrair_json_do_texto(texto: str) -> str:
    bloco = REGEX_BLOCO_JSON.search(texto or "")
    if bloco:
        candidato = bloco.group(1).strip()
        if candidato.startswith("{") and candidato.endswith("}"):
            return candidato

    inicio = (texto or "").find("{")
    fim = (texto or "").rfind("}")
    if inicio >= 0 and fim > inicio:
        return texto[inicio : fim + 1]
    return ""


def normalizar_secoes(origem: Any) -> dict[str, str]:
    origem = origem if isinstance(origem, dict) else {}
    secoes: dict[str, str] = {}
    for chave in CHAVES_SECOES:
        valor = origem.get(chave)
        secoes[chave] = valor.strip() if isinstance(valor, str) else ""
    return secoes


def dividir_paragrafos(texto: str) -> list[str]:
    partes = REGEX_SEPARADOR_PARAGRAFOS.split((texto or "").strip())
    return [parte.strip() for parte in partes if parte.strip()]


# Carrega a orientação de parágrafos sem falhar: template ilegível desativa a checagem.
def carregar_orientacao(versao: str, templates_dir: Path | None = None) -> dict[str, Any]:
    try:
        template = carregar_template(versao, templates_dir)
    except TemplateError:
        return {}
    orientacao = template.get("sectionGuidance")
    return orientacao if isinstance(orientacao, dict) else {}


def _limite(cfg: dict[str, Any], chave: str) -> int | None:
    valor = cfg.get(chave)
    if isinstance(valor, bool) or not isinstance(valor, (int, float)) or valor <= 0:
        return None
    return int(valor)


def alertas_paragrafos(secoes: dict[str, str], orientacao: dict[str, Any]) -> list[dict[str, str]]:
    alertas: list[dict[str, str]] = []
    for chave, texto in secoes.items():
        cfg = orientacao.get(chave) if isinstance(orientacao, dict) else None
        if not isinstance(cfg, dict):
            continue

        total = len(dividir_paragrafos(texto))
        minimo = _limite(cfg, "minParagraphs")
        maximo = _limite(cfg, "maxParagraphs")

        if minimo is not None and total < minimo:
            alertas.append({
                "level": "warn",
                "code": "PARAGRAPH_TOO_SHORT",
                "message": f"A seção '{chave}' possui apenas {total} parágrafos (mínimo: {minimo}).",
            })
        if maximo is not None and total > maximo:
            alertas.append({
                "level": "warn",
                "code": "PARAGRAPH_TOO_LONG",
                "message": f"A seção '{chave}' possui {total} parágrafos (máximo: {maximo}).",
            })
    return alertas


def alertas_secoes_vazias(secoes: dict[str, str]) -> list[dict[str, str]]:
    return [
        {
            "level": "warn",
            "code": "EMPTY_SECTION",
            "message": f"A seção '{chave}' está vazia ou não foi gerada pelo modelo.",
        }
        for chave, texto in secoes.items()
        if not texto
    ]


def normalizar_alerta(alerta: Any) -> dict[str, str]:
    alerta = alerta if isinstance(alerta, dict) else {}
    nivel = str(alerta.get("level") or "info").strip().lower()
    nivel = ALIAS_NIVEIS.get(nivel, nivel)
    return {
        "level": nivel if nivel in NIVEIS_ALERTA else "info",
        "code": str(alerta.get("code") or "MODEL_ALERT"),
        "message": str(alerta.get("message") or "Alerta retornado pelo modelo."),
    }


def interpretar_resposta(resposta_modelo: Any, templates_dir: Path | None = None) -> dict[str, Any]:
    """
    Extrai o JSON retornado pelo modelo e normaliza em {ok, html, sections, alerts, missing, meta}.

    Só levanta RespostaModeloInvalida quando não há JSON válido ou falta o objeto
    `sections`; qualquer outra anomalia vira alerta.
    """
    texto = _texto_bruto(resposta_modelo)
    if not texto:
        raise RespostaModeloInvalida("Modelo retornou resposta vazia.")

    obj = _tentar_json(texto)
    if not isinstance(obj, dict):
        extraido = extrair_json_do_texto(texto)
        obj = _tentar_json(extraido) if extraido else None
    if not isinstance(obj, dict):
        raise RespostaModeloInvalida("Resposta do modelo não é JSON válido.")

    if not isinstance(obj.get("sections"), dict):
        raise RespostaModeloInvalida("JSON inválido — falta 'sections' (objeto).")

    meta = dict(obj["meta"]) if isinstance(obj.get("meta"), dict) else {}
    template_version = str(meta.get("templateVersion") or DEFAULT_TEMPLATE_VERSION)
    meta["templateVersion"] = template_version

    secoes = normalizar_secoes(obj["sections"])
    orientacao = carregar_orientacao(template_version, templates_dir)

    alertas_modelo = [normalizar_alerta(a) for a in obj["alerts"]] if isinstance(obj.get("alerts"), list) else []
    missing = obj["missing"] if isinstance(obj.get("missing"), list) else []
    html = obj["html"] if isinstance(obj.get("html"), str) else ""

    return {
        "ok": True,
        "html": html,
        "sections": secoes,
        "alerts": alertas_modelo + alertas_paragrafos(secoes, orientacao) + alertas_secoes_vazias(secoes),
        "missing": missing,
        "meta": meta,
    }
