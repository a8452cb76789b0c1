from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import pytest

SECOES_COMPLETAS = {
    "enderecamento": "EXCELENTÍSSIMO SENHOR DOUTOR JUIZ DE DIREITO DA 1ª VARA CÍVEL DA COMARCA DE SÃO PAULO/SP",
    "qualificacao": "ACME LTDA., inscrita no CNPJ sob o nº 12.345.678/0001-90, vem propor a presente ação.",
    "fatos": "As partes celebraram contrato de prestação de serviços, vencido em 10/01/2024 e não pago.",
    "direito": "A avença configura negócio jurídico válido, nos termos do art. 104 do Código Civil.",
    "pedidos": "Requer a condenação do réu ao pagamento do valor devido.",
    "valor_causa": "Dá-se à causa o valor de R$ 15.000,00.",
    "requerimentos_finais": "Termos em que, pede deferimento.",
}

ENTRADA_VALIDA: dict[str, Any] = {
    "partes": {
        "autor": {
            "nome": "ACME Serviços Ltda.",
            "cpf_cnpj": "12.345.678/0001-90",
            "endereco": "Av. Paulista, 1000, Bela Vista, São Paulo/SP",
        },
        "reu": {
            "nome": "João da Silva",
            "cpf_cnpj": "123.456.789-09",
            "endereco": "Rua das Flores, 123, Centro, Campinas/SP",
        },
    },
    "divida": {
        "origem": "Contrato de prestação de serviços de manutenção",
        "origem_categoria": "CONTRATO",
        "origem_subtipo": "CONTRATO_PRESTACAO_SERVICOS",
        "valor": 15000,
        "data_vencimento": "2024-01-10",
    },
    "fatos": {
        "descricao_orientada": (
            "Os serviços foram prestados integralmente e a fatura venceu sem pagamento. "
            "O réu foi notificado por e-mail e por carta, sem resposta."
        ),
        "tentativa_extrajudicial": True,
    },
    "provas": {"documentos": ["contrato", "nota_fiscal", "email"]},
    "config": {"juizo": "1ª Vara Cível de São Paulo/SP", "valor_causa": 15000},
}


@pytest.fixture
def entrada_valida() -> dict[str, Any]:
    return copy.deepcopy(ENTRADA_VALIDA)


@pytest.fixture
def payload_valido(entrada_valida: dict[str, Any]) -> dict[str, Any]:
    return {"data": entrada_valida, "templateVersion": "teste_v1"}


@pytest.fixture
def secoes_completas() -> dict[str, str]:
    return dict(SECOES_COMPLETAS)


def escrever_template(diretorio: Path, versao: str, orientacao: dict[str, Any]) -> Path:
    caminho = diretorio / f"{versao}.json"
    caminho.write_text(json.dumps({"sectionGuidance": orientacao}), encoding="utf-8")
    return caminho


@pytest.fixture
def templates_dir(tmp_path: Path) -> Path:
    diretorio = tmp_path / "templates"
    diretorio.mkdir()
    # teste_v1: exige ao menos 2 parágrafos em todas as seções
    escrever_template(
        diretorio,
        "teste_v1",
        {chave: {"minParagraphs": 2, "maxParagraphs": 6} for chave in SECOES_COMPLETAS},
    )
    # sem_limites: nenhuma orientação de parágrafos
    escrever_template(diretorio, "sem_limites", {})
    return diretorio


class GeradorFalso:
    """Substitui o cliente do modelo: devolve um texto fixo e registra os prompts recebidos."""

    def __init__(self, resposta: Any = None, erro: Exception | None = None) -> None:
        self.resposta = resposta
        self.erro = erro
        self.prompts: list[dict[str, Any]] = []

    def __call__(self, prompt: dict[str, Any]) -> Any:
        self.prompts.append(prompt)
        if self.erro is not None:
            raise self.erro
        return self.resposta


def resposta_modelo(secoes: dict[str, str], template_version: str = "teste_v1", **extra: Any) -> str:
    return json.dumps(
        {"sections": secoes, "meta": {"templateVersion": template_version, "promptVersion": "2.0"}, **extra},
        ensure_ascii=False,
    )
