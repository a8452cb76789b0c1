from __future__ import annotations

import html as html_lib
from typing import Any

from services.parser_modelo import normalizar_secoes
from services.schema import CHAVES_SECOES, SECOES_PETICAO

# Rótulos dos documentos selecionados no formulário (provas.documentos).
ROTULOS_DOCUMENTOS: dict[str, str] = {
    "contrato": "Contrato Assinado",
    "orcamento": "Orçamento aprovado",
    "pedido_compra": "Pedido de Compra",
    "nota_fiscal": "Nota Fiscal",
    "boleto": "Boleto bancário",
    "planilha": "Planilha de cálculo",
    "canhoto": "Canhoto da Nota Fiscal",
    "aceite": "Termo de Aceite/Entrega",
    "tecno": "Contexto tecnológico",
    "email": "E-mails de cobrança",
    "conversas": "Conversas de WhatsApp/Telegram",
    "envio": "Envio de carta/Telegrama",
    "outros": "Outros",
}

PREFIXO_OUTROS = "outros:"


def secoes_vazias() -> dict[str, str]:
    return {chave: "" for chave in CHAVES_SECOES}


def tem_texto_em_secoes(secoes: Any) -> bool:
    if not isinstance(secoes, dict):
        return False
    return any(isinstance(texto, str) and texto.strip() for texto in secoes.values())


# Envelope com seções vazias, usado em falhas de validação e erros de geração.
def envelope_degradado(
    alerts: list[dict[str, Any]] | None = None,
    missing: list[dict[str, Any]] | None = None,
    meta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "ok": False,
        "html": "",
        "sections": secoes_vazias(),
        "alerts": list(alerts or []),
        "missing": list(missing or []),
        "meta": dict(meta or {}),
    }


def _escapar(texto: str) -> str:
    return html_lib.escape(texto or "", quote=False)


def _nl2br(texto: str) -> str:
    return _escapar(texto).replace("\n", "<br>")


def montar_html_das_secoes(secoes: dict[str, str]) -> str:
    # HTML simples e determinístico; não inventa conteúdo.
    partes = ['<div style="font-family: Arial, sans-serif; font-size: 14px; line-height: 1.5;">']
    for chave, rotulo in SECOES_PETICAO:
        texto = str(secoes.get(chave) or "").strip()
        if not texto:
            continue
        partes.append(f'<h3 style="margin: 18px 0 8px 0;">{_escapar(rotulo)}</h3>')
        partes.append(f'<div style="margin: 0 0 14px 0;">{_nl2br(texto)}</div>')
    partes.append("</div>")
    return "\n".join(partes)


# Remove vazios e duplicados (sem diferenciar maiúsculas), preservando a ordem.
def _normalizar_lista_documentos(documentos: Any) -> list[str]:
    if not isinstance(documentos, list):
        return []
    itens: list[str] = []
    vistos: set[str] = set()
    for item in documentos:
        texto = str(item or "").strip()
        if not texto:
            continue
        chave = texto.lower()
        if chave in vistos:
            continue
        vistos.add(chave)
        itens.append(texto)
    return itens


def documentos_para_rotulos(documentos: list[str]) -> list[str]:
    rotulos: list[str] = []
    detalhe_outros = ""

    for bruto in documentos:
        texto = str(bruto or "").strip()
        if not texto:
            continue
        if texto.lower().startswith(PREFIXO_OUTROS):
            detalhe = texto[len(PREFIXO_OUTROS):].strip()
            if detalhe:
                detalhe_outros = detalhe
            continue
        rotulo = ROTULOS_DOCUMENTOS.get(texto.lower(), texto)
        if rotulo not in rotulos:
            rotulos.append(rotulo)

    rotulo_outros = ROTULOS_DOCUMENTOS["outros"]
    if detalhe_outros and rotulo_outros in rotulos:
        rotulos[rotulos.index(rotulo_outros)] = f"{rotulo_outros} ({detalhe_outros})"
    return rotulos


def paragrafo_provas(payload: Any) -> str:
    dados = payload.get("data") if isinstance(payload, dict) else None
    provas = dados.get("provas") if isinstance(dados, dict) else None
    documentos = provas.get("documentos") if isinstance(provas, dict) else None

    rotulos = documentos_para_rotulos(_normalizar_lista_documentos(documentos))
    if not rotulos:
        return ""
    return (
        "Protesta provar o alegado por todos os meios em direito admitidos, especialmente "
        f"pela prova documental, consistente em: {'; '.join(rotulos)}."
    )


def anexar_paragrafo(texto_base: Any, paragrafo: Any) -> str:
    base = texto_base.strip() if isinstance(texto_base, str) else ""
    novo = paragrafo.strip() if isinstance(paragrafo, str) else ""
    if not novo:
        return base
    # não duplica quando o parágrafo já está presente literalmente
    if base and novo in base:
        return base
    if not base:
        return novo
    return f"{base}\n\n{novo}"


def montar_resposta(parsed: Any, payload: Any = None) -> dict[str, Any]:
    """Monta o envelope final {ok, html, sections, alerts, missing, meta}. Nunca levanta."""
    parsed = parsed if isinstance(parsed, dict) else {}

    secoes = normalizar_secoes(parsed.get("sections"))
    provas = paragrafo_provas(payload)
    if provas:
        secoes["pedidos"] = anexar_paragrafo(secoes["pedidos"], provas)

    html = parsed.get("html") if isinstance(parsed.get("html"), str) else ""
    possui_texto = tem_texto_em_secoes(secoes)
    if not html and possui_texto:
        html = montar_html_das_secoes(secoes)

    meta = dict(parsed["meta"]) if isinstance(parsed.get("meta"), dict) else {}
    meta["hasSections"] = possui_texto

    return {
        "ok": bool(parsed.get("ok")),
        "html": html,
        "sections": secoes,
        "alerts": list(parsed["alerts"]) if isinstance(parsed.get("alerts"), list) else [],
        "missing": list(parsed["missing"]) if isinstance(parsed.get("missing"), list) else [],
        "meta": meta,
    }
