from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from config import carregar_configuracao
from services.schema import CHAVES_SECOES, MARCADOR_PENDENTE

DEFAULT_TEMPLATE_VERSION = "cobranca_v1_2"
DEFAULT_PROMPT_VERSION = "2.0"

# Proteção contra payload gigante no prompt.
MAX_FIELD_CHARS = 8_000

# Versões de template viram nome de arquivo; só letras, dígitos, "_", "." e "-".
REGEX_VERSAO_TEMPLATE = re.compile(r"[A-Za-z0-9_.-]+")

PROMPT_SISTEMA = f"""
Voce e um ASSISTENTE JURIDICO SENIOR, especialista em Processo Civil Brasileiro e contencioso civel.
Sua tarefa e redigir um RASCUNHO TECNICO e REVISAVEL de uma ACAO DE COBRANCA.

REGRAS OBRIGATORIAS (nao negociaveis):
- NAO invente fatos, datas, valores, partes, documentos ou eventos.
- NAO estime, calcule ou presuma valores, juros, indices ou datas.
- NAO cite jurisprudencia especifica (REsp, HC, AgInt, numero de processo, relator, data).
- Permitida APENAS referencia generica: "entendimento jurisprudencial consolidado",
  "orientacao dos tribunais superiores".
- Use APENAS as informacoes fornecidas em `inputData`.
- Se faltar algo essencial, escreva literalmente: {MARCADOR_PENDENTE}.

ESTILO DE REDACAO:
- Linguagem formal, tecnica, densa e conservadora.
- Cada paragrafo com 4 a 6 linhas, encadeado logicamente ao anterior.
- Antecipar defesas tipicas (pagamento, inexistencia de debito, excesso de cobranca, prescricao)
  apenas em nivel estrategico, sem inventar fatos.
- Respeitar a quantidade de paragrafos indicada em `sectionGuidance` para cada secao.
- Paragrafos separados por uma linha em branco.

ESTRUTURA OBRIGATORIA (sete secoes, nesta ordem):
- Enderecamento
- Qualificacao das Partes
- Dos Fatos
- Do Direito (titulo EXATAMENTE "DO DIREITO")
- Dos Pedidos
- Do Valor da Causa
- Requerimentos Finais

REFERENCIAS LEGAIS OBRIGATORIAS EM "DO DIREITO":
- CC art. 104 (validade do negocio juridico); CC arts. 421 e 422 apenas em nivel geral.
- CC art. 397 (mora ex re) e CC arts. 389 e 395 (consequencias do inadimplemento).
- CPC art. 373 (onus da prova), CPC art. 319 (requisitos da peticao inicial) e CPC art. 85 (honorarios).
- Nao fixar indice de correcao, taxa de juros ou termo inicial sem dado no input;
  se ausente, usar {MARCADOR_PENDENTE}.

SAIDA OBRIGATORIA (JSON):
- Responda EXCLUSIVAMENTE em JSON VALIDO, sem markdown, comentarios ou texto fora do JSON.
- Estrutura EXATA:
{{
  "sections": {{
    "enderecamento": "string",
    "qualificacao": "string",
    "fatos": "string",
    "direito": "string",
    "pedidos": "string",
    "valor_causa": "string",
    "requerimentos_finais": "string"
  }},
  "alerts": [
    {{ "level": "info|warn|error", "code": "string", "message": "string" }}
  ],
  "meta": {{
    "promptVersion": "string",
    "templateVersion": "string"
  }}
}}

Qualquer violacao das regras acima invalida a resposta e exige regeneracao.
""".strip()

TAREFA = "Gerar rascunho técnico, robusto e juridicamente elaborado de Ação de Cobrança."


# Define um tipo de erro específico para falhas ao carregar o template de seções.
class TemplateError(RuntimeError):
    """Raised when the section guidance template cannot be loaded."""


def caminho_template(versao: str, templates_dir: Path | None = None) -> Path:
    if not REGEX_VERSAO_TEMPLATE.fullmatch(versao or ""):
        raise TemplateError(f"Falha ao carregar template {versao}: versão inválida")
    base = templates_dir or carregar_configuracao().templates_dir
    return Path(base) / f"{versao}.json"


def carregar_template(versao: str, templates_dir: Path | None = None) -> dict[str, Any]:
    caminho = caminho_template(versao, templates_dir)
    try:
        with caminho.open("r", encoding="utf-8") as arquivo:
            template = json.load(arquivo)
    except (OSError, json.JSONDecodeError) as exc:
        raise TemplateError(f"Falha ao carregar template {versao}: {exc}") from exc

    if not isinstance(template, dict):
        raise TemplateError(f"Falha ao carregar template {versao}: conteúdo não é um objeto JSON")
    return template


# Monta a orientação de parágrafos por seção, com valores padrão para seções sem configuração.
def montar_orientacao_secoes(template: dict[str, Any]) -> dict[str, dict[str, Any]]:
    orientacao_bruta = template.get("sectionGuidance")
    if not isinstance(orientacao_bruta, dict):
        orientacao_bruta = {}

    orientacao: dict[str, dict[str, Any]] = {}
    for chave in CHAVES_SECOES:
        cfg = orientacao_bruta.get(chave)
        if not isinstance(cfg, dict):
            cfg = {}
        orientacao[chave] = {
            "minParagraphs": cfg.get("minParagraphs") or 1,
            "maxParagraphs": cfg.get("maxParagraphs") or 5,
            "notes": cfg.get("notes") or "",
            "structure": cfg.get("structure") or [],
        }
    return orientacao


def sanitizar_dados(valor: Any, limite: int = MAX_FIELD_CHARS) -> Any:
    if isinstance(valor, str):
        return valor[:limite] + "…" if len(valor) > limite else valor
    if isinstance(valor, dict):
        return {str(chave): sanitizar_dados(item, limite) for chave, item in valor.items()}
    if isinstance(valor, (list, tuple)):
        return [sanitizar_dados(item, limite) for item in valor]
    return valor


def montar_prompt(payload: dict[str, Any], templates_dir: Path | None = None) -> dict[str, Any]:
    """
    Constrói o par system/user enviado ao modelo.

    `payload` segue o corpo da requisição: {"data": {...}, "templateVersion"?, "promptVersion"?}.
    Falha ao carregar o template é fatal (TemplateError).
    """
    payload = payload if isinstance(payload, dict) else {}
    template_version = str(payload.get("templateVersion") or DEFAULT_TEMPLATE_VERSION)
    prompt_version = str(payload.get("promptVersion") or DEFAULT_PROMPT_VERSION)

    template = carregar_template(template_version, templates_dir)
    orientacao = montar_orientacao_secoes(template)

    dados = payload.get("data")
    dados_seguros = sanitizar_dados(dados if isinstance(dados, dict) else {})

    meta = {"promptVersion": prompt_version, "templateVersion": template_version}
    user = json.dumps(
        {
            "task": TAREFA,
            "inputData": dados_seguros,
            "sectionGuidance": orientacao,
            "meta": meta,
        },
        ensure_ascii=False,
    )

    return {"system": PROMPT_SISTEMA, "user": user, "meta": dict(meta)}
