from __future__ import annotations

from typing import Any

VERSAO_SCHEMA = "cobranca-form-1.1.0"

# Campos cuja ausência bloqueia a geração do rascunho.
CAMPOS_CRITICOS: list[dict[str, Any]] = [
    {"path": "partes.autor.nome", "label": "Autor - Nome", "tipo": "string"},
    {"path": "partes.autor.cpf_cnpj", "label": "Autor - CPF/CNPJ", "tipo": "string"},
    {"path": "partes.autor.endereco", "label": "Autor - Endereço", "tipo": "string"},
    {"path": "partes.reu.nome", "label": "Réu - Nome/Razão social", "tipo": "string"},
    {"path": "partes.reu.cpf_cnpj", "label": "Réu - CPF/CNPJ", "tipo": "string"},
    {"path": "partes.reu.endereco", "label": "Réu - Endereço", "tipo": "string"},
    {
        "path": "divida.origem",
        "label": "Origem da dívida",
        "tipo": "string",
        # origem estruturada (categoria + subtipo) substitui o texto livre
        "alternativas": ["divida.origem_categoria"],
    },
    {"path": "divida.valor", "label": "Valor devido", "tipo": "number"},
    {"path": "divida.data_vencimento", "label": "Data de vencimento", "tipo": "date"},
    {"path": "fatos.descricao_orientada", "label": "Descrição dos fatos (guiada)", "tipo": "string"},
]

# Campos opcionais com impacto jurídico.
CAMPOS_OPCIONAIS: dict[str, dict[str, str]] = {
    "fatos.tentativa_extrajudicial": {"tipo": "boolean", "impacto": "reduz risco de improcedência"},
    "provas.documentos": {"tipo": "array", "impacto": "prova documental mínima"},
    "config.juizo": {"tipo": "string", "impacto": "adequação do foro"},
    "config.valor_causa": {"tipo": "number", "impacto": "valor atribuído à causa"},
    "config.pedir_juros": {"tipo": "boolean", "impacto": "pedido acessório"},
    "config.pedir_correcao": {"tipo": "boolean", "impacto": "pedido acessório"},
}

ROTULO_ORIGEM_CATEGORIA = "Origem da dívida - Categoria"
ROTULO_ORIGEM_SUBTIPO = "Origem da dívida - Subtipo"

# Categorias e subtipos aceitos para a origem da dívida (espelha o formulário).
ORIGEM_POR_CATEGORIA: dict[str, tuple[str, ...]] = {
    "CONTRATO": (
        "CONTRATO_COMPRA_VENDA",
        "CONTRATO_PRESTACAO_SERVICOS",
        "CONTRATO_EMPREITADA",
        "CONTRATO_LOCACAO",
        "CONTRATO_MUTUO",
        "FORNECIMENTO_PRODUTOS",
        "LICENCIAMENTO_SOFTWARE_SAAS",
        "CONTRATO_MANDATO",
        "CONTRATO_SOCIEDADE",
        "CONTRATO_ATIPICO",
    ),
    "TITULO_PRESCRITO": (
        "CHEQUE_PRESCRITO",
        "NOTA_PROMISSORIA_PRESCRITA",
        "DUPLICATA_PRESCRITA",
    ),
    "ENRIQUECIMENTO_SEM_CAUSA": (
        "PAGAMENTO_INDEVIDO",
        "RETENCAO_INDEVIDA",
        "GESTAO_NEGOCIOS",
    ),
    "ACORDO": ("ACORDO_EXTRAJUDICIAL",),
    "INDENIZACAO": ("INDENIZACAO_CONTRATUAL", "INDENIZACAO_EXTRACONTRATUAL"),
    "CONVERSAO": ("CONVERSAO_PERDAS_DANOS",),
    "CONDOMINIO": ("COTAS_CONDOMINIAIS",),
    "CONSUMO": ("SERVICOS_ESSENCIAIS", "MENSALIDADES"),
    "HONORARIOS": ("HONORARIOS_CONTRATUAIS",),
}

# As sete seções fixas da petição, na ordem de exibição.
SECOES_PETICAO: list[tuple[str, str]] = [
    ("enderecamento", "Endereçamento"),
    ("qualificacao", "Qualificação"),
    ("fatos", "Fatos"),
    ("direito", "Fundamentos Jurídicos"),
    ("pedidos", "Pedidos"),
    ("valor_causa", "Valor da Causa"),
    ("requerimentos_finais", "Requerimentos Finais"),
]

CHAVES_SECOES: tuple[str, ...] = tuple(chave for chave, _ in SECOES_PETICAO)

MARCADOR_PENDENTE = "[PENDENTE – INFORMAÇÃO NÃO FORNECIDA]"

SCHEMA_COBRANCA: dict[str, Any] = {
    "version": VERSAO_SCHEMA,
    "requiredCritical": CAMPOS_CRITICOS,
    "optional": CAMPOS_OPCIONAIS,
}
