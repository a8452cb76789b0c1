from __future__ import annotations

import io
import re
from typing import Any

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

from services.schema import CHAVES_SECOES, MARCADOR_PENDENTE

TITULO_DOCUMENTO = "PETIÇÃO INICIAL – AÇÃO DE COBRANÇA"
MIME_DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# Caracteres de controle que o XML do DOCX não aceita (tab, quebra de linha e CR ficam).
REGEX_CONTROLE_XML = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

# Seções com título numerado; o endereçamento abre o documento sem título.
TITULOS_SECOES: list[tuple[str, str]] = [
    ("qualificacao", "I – QUALIFICAÇÃO DAS PARTES"),
    ("fatos", "II – DOS FATOS"),
    ("direito", "III – DO DIREITO"),
    ("pedidos", "IV – DOS PEDIDOS"),
    ("valor_causa", "V – DO VALOR DA CAUSA"),
    ("requerimentos_finais", "VI – REQUERIMENTOS FINAIS"),
]


def limpar_controle(texto: str) -> str:
    return REGEX_CONTROLE_XML.sub("", texto)


def _ou_pendente(valor: Any) -> str:
    texto = limpar_controle(valor).strip() if isinstance(valor, str) else ""
    return texto or MARCADOR_PENDENTE


# Confere se doc.sections tem as sete chaves como texto e ao menos uma preenchida; retorna a mensagem de erro.
def validar_secoes_documento(secoes: Any) -> str | None:
    if not isinstance(secoes, dict):
        return "doc.sections ausente ou inválido (esperado OBJETO)"

    for chave in CHAVES_SECOES:
        if chave not in secoes:
            return f"doc.sections inválido: chave ausente '{chave}'"
        if not isinstance(secoes[chave], str):
            return f"doc.sections inválido: '{chave}' deve ser string"

    if not any(secoes[chave].strip() for chave in CHAVES_SECOES):
        return "doc.sections está vazio — gere o rascunho novamente antes de exportar"
    return None


def _adicionar_texto(doc: Any, texto: str) -> None:
    linhas = [linha.strip() for linha in texto.splitlines() if linha.strip()]
    if not linhas:
        doc.add_paragraph("")
        return
    for linha in linhas:
        paragrafo = doc.add_paragraph(linha)
        paragrafo.alignment = WD_ALIGN_PARAGRAPH.JUSTIFY
        paragrafo.paragraph_format.space_after = Pt(10)


def _adicionar_direita(doc: Any, texto: str, negrito: bool = False) -> None:
    paragrafo = doc.add_paragraph()
    paragrafo.alignment = WD_ALIGN_PARAGRAPH.RIGHT
    run = paragrafo.add_run(texto)
    run.bold = negrito


def secoes_para_docx_bytes(
    secoes: dict[str, str],
    local_data: Any = None,
    assinatura: Any = None,
) -> bytes:
    assinatura = assinatura if isinstance(assinatura, dict) else {}

    doc = Document()
    titulo = doc.add_heading(TITULO_DOCUMENTO, level=0)
    titulo.alignment = WD_ALIGN_PARAGRAPH.CENTER

    _adicionar_texto(doc, _ou_pendente(secoes.get("enderecamento")))
    for chave, rotulo in TITULOS_SECOES:
        doc.add_heading(rotulo, level=2)
        _adicionar_texto(doc, _ou_pendente(secoes.get(chave)))

    doc.add_paragraph("")
    _adicionar_direita(doc, _ou_pendente(local_data))
    _adicionar_direita(doc, _ou_pendente(assinatura.get("nome")), negrito=True)
    _adicionar_direita(doc, _ou_pendente(assinatura.get("oab")))

    bio = io.BytesIO()
    doc.save(bio)
    return bio.getvalue()
