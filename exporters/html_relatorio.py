from __future__ import annotations

import html as html_lib
from typing import Any

from services.schema import SECOES_PETICAO

ESTILO = """
body{font-family:Arial,Helvetica,sans-serif;margin:0;padding:18px;background:#fff;color:#111}
.card{border:1px solid #e6e6e6;border-radius:12px;padding:16px;margin:0 0 14px 0}
h1{font-size:20px;margin:0 0 6px 0}
h2{font-size:14px;margin:18px 0 8px 0}
p{margin:8px 0;line-height:1.45}
.sub{color:#555;font-size:13px;margin:0}
.badge{display:inline-block;font-size:11px;padding:3px 7px;border-radius:999px;margin-right:6px;font-weight:bold}
.badge.error{background:#ffdddd;color:#a30000;border:1px solid #e6a8a8}
.badge.warn{background:#fff4d6;color:#8a5a00;border:1px solid #e6c98a}
.badge.info{background:#e8f0ff;color:#003c8f;border:1px solid #bcd0f7}
.alert{border-radius:10px;padding:10px 12px;margin:8px 0;border:1px solid #ddd;font-size:13px}
.alert.error{border-color:#f2b8b5;background:#fff5f5}
.alert.warn{border-color:#f3d6a5;background:#fffaf2}
.alert.info{border-color:#cfe0ff;background:#f5f9ff}
.muted{color:#666;font-size:12px}
hr{border:none;border-top:1px solid #eee;margin:14px 0}
""".strip()

TITULOS_GRUPOS = (("error", "Erros"), ("warn", "Avisos"), ("info", "Informações"))

AVISO_REVISAO = (
    "Observação: este conteúdo é um rascunho técnico gerado a partir de dados fornecidos "
    "e deve ser revisado por profissional habilitado antes do protocolo."
)


def _esc(valor: Any) -> str:
    return html_lib.escape(str(valor if valor is not None else ""), quote=True)


def agrupar_alertas(alertas: Any) -> dict[str, list[dict[str, Any]]]:
    grupos: dict[str, list[dict[str, Any]]] = {"error": [], "warn": [], "info": []}
    for alerta in alertas if isinstance(alertas, list) else []:
        if not isinstance(alerta, dict):
            continue
        nivel = str(alerta.get("level") or "info").lower()
        grupos[nivel if nivel in grupos else "info"].append(alerta)
    return grupos


def _renderizar_alertas(grupos: dict[str, list[dict[str, Any]]]) -> str:
    if not any(grupos.values()):
        return ""

    partes = ['<div style="margin-top:10px">']
    for nivel, titulo in TITULOS_GRUPOS:
        if not grupos[nivel]:
            continue
        partes.append(f"<h2>{titulo}</h2>")
        for alerta in grupos[nivel]:
            codigo = alerta.get("code")
            badge = f'<span class="badge {nivel}">{_esc(codigo)}</span>' if codigo else ""
            partes.append(f'<div class="alert {nivel}">{badge}{_esc(alerta.get("message"))}</div>')
    partes.append("</div>")
    return "".join(partes)


def _renderizar_secoes(secoes: dict[str, Any]) -> str:
    cards: list[str] = []
    for chave, rotulo in SECOES_PETICAO:
        texto = secoes.get(chave)
        if not isinstance(texto, str) or not texto.strip():
            continue
        corpo = _esc(texto.strip()).replace("\n", "<br>")
        cards.append(f'<div class="card">\n<h2>{_esc(rotulo)}</h2>\n<p>{corpo}</p>\n</div>')
    return "\n".join(cards)


def _renderizar_meta(meta: dict[str, Any]) -> str:
    linhas = "".join(
        f'<div><span class="muted">{_esc(chave)}</span>: <span class="muted">{_esc(valor)}</span></div>'
        for chave, valor in meta.items()
    )
    return f'<hr/><div class="muted">{linhas}</div>' if linhas else ""


def renderizar_relatorio_html(
    titulo: str,
    subtitulo: str = "",
    alertas: Any = None,
    secoes: Any = None,
    meta: Any = None,
) -> str:
    """Relatório HTML autônomo do rascunho: alertas agrupados por nível, seções e metadados."""
    secoes = secoes if isinstance(secoes, dict) else {}
    meta = meta if isinstance(meta, dict) else {}

    return f"""<!doctype html>
<html lang="pt-br">
<head>
  <meta charset="utf-8"/>
  <meta name="viewport" content="width=device-width,initial-scale=1"/>
  <title>{_esc(titulo)}</title>
  <style>
{ESTILO}
  </style>
</head>
<body>
  <div class="card">
    <h1>{_esc(titulo)}</h1>
    <p class="sub">{_esc(subtitulo)}</p>
    {_renderizar_alertas(agrupar_alertas(alertas))}
    {_renderizar_meta(meta)}
  </div>
{_renderizar_secoes(secoes)}
  <div class="card">
    <p class="muted">{AVISO_REVISAO}</p>
  </div>
</body>
</html>"""
