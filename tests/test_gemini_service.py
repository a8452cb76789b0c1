from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest

from services.gemini_service import (
    MAX_OUTPUT_CHARS,
    GeminiServiceError,
    GeminiTimeoutError,
    GeminiTransientError,
    gerar_rascunho,
)

PROMPT = {"system": "regras", "user": '{"task": "x"}', "meta": {}}


class ClienteFalso:
    """Imita `genai.Client`: cada chamada consome o próximo item de `respostas`."""

    def __init__(self, *respostas):
        self.respostas = list(respostas)
        self.chamadas = []
        self.models = SimpleNamespace(generate_content=self._generate_content)

    def _generate_content(self, **kwargs):
        self.chamadas.append(kwargs)
        item = self.respostas.pop(0)
        if isinstance(item, Exception):
            raise item
        return SimpleNamespace(text=item)


def test_retorna_texto_e_metadados():
    cliente = ClienteFalso('  {"sections": {}}  ')

    resposta = gerar_rascunho(PROMPT, model="gemini-teste", cliente=cliente)

    assert resposta.text == '{"sections": {}}'
    assert resposta.model == "gemini-teste"
    assert resposta.meta["attempts"] == 1
    assert resposta.meta["truncated"] is False
    chamada = cliente.chamadas[0]
    assert chamada["model"] == "gemini-teste"
    assert chamada["contents"] == PROMPT["user"]
    assert chamada["config"].system_instruction == "regras"
    assert chamada["config"].response_mime_type == "application/json"


def test_falha_transitoria_e_repetida_uma_vez():
    pausas = []
    cliente = ClienteFalso(httpx.ConnectError("conexão recusada"), '{"sections": {}}')

    resposta = gerar_rascunho(PROMPT, cliente=cliente, dormir=pausas.append)

    assert resposta.meta["attempts"] == 2
    assert pausas == [1.5]


def test_segunda_falha_transitoria_propaga():
    cliente = ClienteFalso(httpx.ConnectError("um"), httpx.ConnectError("dois"))

    with pytest.raises(GeminiTransientError) as info:
        gerar_rascunho(PROMPT, cliente=cliente, dormir=lambda _: None)

    assert info.value.codigo == "MODEL_UPSTREAM"
    assert info.value.status_http == 502
    assert len(cliente.chamadas) == 2


def test_timeout_nao_e_repetido():
    pausas = []
    cliente = ClienteFalso(httpx.ReadTimeout("lento"), '{"sections": {}}')

    with pytest.raises(GeminiTimeoutError) as info:
        gerar_rascunho(PROMPT, cliente=cliente, dormir=pausas.append)

    assert info.value.status_http == 504
    assert len(cliente.chamadas) == 1
    assert pausas == []


def test_erro_definitivo_nao_e_repetido():
    cliente = ClienteFalso(ValueError("modelo desconhecido"))

    with pytest.raises(GeminiServiceError, match="modelo desconhecido") as info:
        gerar_rascunho(PROMPT, cliente=cliente, dormir=lambda _: None)

    assert type(info.value) is GeminiServiceError
    assert info.value.codigo == "MODEL_ERROR"


def test_resposta_sem_texto():
    with pytest.raises(GeminiServiceError, match="nao retornou texto"):
        gerar_rascunho(PROMPT, cliente=ClienteFalso(""))


def test_resposta_gigante_e_truncada():
    resposta = gerar_rascunho(PROMPT, cliente=ClienteFalso("a" * (MAX_OUTPUT_CHARS + 10)))

    assert len(resposta.text) == MAX_OUTPUT_CHARS + 1
    assert resposta.meta["truncated"] is True


def test_sem_chave_de_api(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)

    with pytest.raises(GeminiServiceError) as info:
        gerar_rascunho(PROMPT)

    assert info.value.codigo == "MODEL_CONFIG"
    assert info.value.status_http == 500
