from __future__ import annotations

import pytest

from conftest import GeradorFalso, resposta_modelo
from services.gemini_service import GeminiTransientError
from services.jobs import (
    DONE,
    ERROR,
    QUEUED,
    RUNNING,
    GerenciadorJobs,
    JobNaoEncontrado,
    TransicaoInvalida,
    job_id_valido,
    url_status,
)
from services.pipeline import validar_requisicao
from storage.blob_store import MemoryBlobStore
from storage.job_store import JobStore, chave_job


@pytest.fixture
def store() -> JobStore:
    return JobStore(MemoryBlobStore())


def _gerenciador(store, templates_dir, gerador=None):
    return GerenciadorJobs(store, gerador or GeradorFalso(), templates_dir)


def test_job_valido_percorre_fila_execucao_e_conclusao(store, payload_valido, secoes_completas, templates_dir):
    gerador = GeradorFalso(resposta=resposta_modelo(secoes_completas, template_version="sem_limites"))
    jobs = _gerenciador(store, templates_dir, gerador)

    job_id = jobs.criar_na_fila(payload_valido)
    assert job_id_valido(job_id)
    pendente = jobs.consultar(job_id)
    assert pendente["status"] == QUEUED
    assert pendente["ok"] is True
    assert set(pendente["meta"]) == {"createdAt", "updatedAt"}

    jobs.executar(job_id)

    resposta = jobs.consultar(job_id)
    assert resposta["status"] == DONE
    assert resposta["jobId"] == job_id
    assert resposta["ok"] is True
    assert resposta["sections"]["fatos"] == secoes_completas["fatos"]
    assert resposta["html"]
    assert len(gerador.prompts) == 1


def test_job_invalido_nasce_concluido_com_pendencias(store, payload_valido, templates_dir):
    del payload_valido["data"]["divida"]["valor"]
    gerador = GeradorFalso()
    jobs = _gerenciador(store, templates_dir, gerador)

    job_id = jobs.criar_concluido_por_validacao(validar_requisicao(payload_valido))
    resposta = jobs.consultar(job_id)

    assert resposta["status"] == DONE
    assert resposta["ok"] is False
    assert [item["path"] for item in resposta["missing"]] == ["divida.valor"]
    assert resposta["meta"]["stage"] == "validate"
    assert gerador.prompts == []


def test_falha_do_modelo_registra_erro_e_envelope_degradado(store, payload_valido, templates_dir):
    jobs = _gerenciador(store, templates_dir, GeradorFalso(erro=GeminiTransientError("HTTP 503")))
    job_id = jobs.criar_na_fila(payload_valido)

    jobs.executar(job_id)

    resposta = jobs.consultar(job_id)
    assert resposta["status"] == ERROR
    assert resposta["ok"] is False
    assert resposta["statusCode"] == 502
    assert resposta["error"] == "Falha no serviço de geração do rascunho."
    assert set(resposta["sections"].values()) == {""}
    assert resposta["alerts"][0]["code"] == "MODEL_UPSTREAM"
    assert store.ler(job_id)["error"]["code"] == "MODEL_UPSTREAM"


def test_job_concluido_nao_volta_a_executar(store, payload_valido, secoes_completas, templates_dir):
    gerador = GeradorFalso(resposta=resposta_modelo(secoes_completas, template_version="sem_limites"))
    jobs = _gerenciador(store, templates_dir, gerador)
    job_id = jobs.criar_na_fila(payload_valido)
    jobs.executar(job_id)

    jobs.executar(job_id)

    assert len(gerador.prompts) == 1
    assert jobs.consultar(job_id)["status"] == DONE


@pytest.mark.parametrize(("origem", "destino"), [(DONE, RUNNING), (ERROR, DONE), (RUNNING, QUEUED), (QUEUED, ERROR)])
def test_transicoes_proibidas(store, templates_dir, origem, destino):
    jobs = _gerenciador(store, templates_dir)
    store.gravar("job-x", {"status": origem})

    with pytest.raises(TransicaoInvalida):
        jobs.transicionar("job-x", destino)


def test_job_inexistente(store, templates_dir):
    jobs = _gerenciador(store, templates_dir)

    with pytest.raises(JobNaoEncontrado):
        jobs.consultar("00000000-0000-4000-8000-000000000000")


def test_registro_corrompido_conta_como_inexistente(store):
    store.blob.put(chave_job("quebrado"), b"{nao e json")

    assert store.ler("quebrado") is None


def test_atualizar_preserva_campos_existentes(store):
    store.gravar("j1", {"status": QUEUED, "createdAt": "2024-01-01T00:00:00+00:00"})

    novo = store.atualizar("j1", {"status": RUNNING})

    assert novo == {"status": RUNNING, "createdAt": "2024-01-01T00:00:00+00:00"}
    assert store.ler("j1") == novo


def test_ids_e_url_de_status():
    assert not job_id_valido("../../etc/passwd")
    assert not job_id_valido("")
    assert url_status("abc") == "/api/draft/cobrancaStatus?jobId=abc"


class RelogioIso:
    """Substitui `agora_iso`: cada chamada devolve um instante posterior ao anterior."""

    def __init__(self) -> None:
        self.chamadas = 0

    def __call__(self) -> str:
        self.chamadas += 1
        return f"2024-01-01T00:00:{self.chamadas:02d}+00:00"


@pytest.mark.parametrize(
    ("erro", "status_final"),
    [(None, DONE), (GeminiTransientError("HTTP 503"), ERROR)],
)
def test_created_at_fixo_e_updated_at_avanca_a_cada_transicao(
    monkeypatch, store, payload_valido, secoes_completas, templates_dir, erro, status_final
):
    monkeypatch.setattr("services.jobs.agora_iso", RelogioIso())
    durante_execucao = {}

    def gerador(prompt):
        durante_execucao.update(store.ler(job_id))
        if erro is not None:
            raise erro
        return resposta_modelo(secoes_completas, template_version="sem_limites")

    jobs = _gerenciador(store, templates_dir, gerador)
    job_id = jobs.criar_na_fila(payload_valido)
    na_fila = store.ler(job_id)

    jobs.executar(job_id)
    final = store.ler(job_id)

    assert na_fila["createdAt"] == na_fila["updatedAt"]
    assert durante_execucao["status"] == RUNNING
    assert final["status"] == status_final
    assert durante_execucao["createdAt"] == final["createdAt"] == na_fila["createdAt"]
    assert na_fila["updatedAt"] < durante_execucao["updatedAt"] < final["updatedAt"]
