from __future__ import annotations

import logging
import re
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from services.montagem import tem_texto_em_secoes
from services.pipeline import (
    GeradorTexto,
    classificar_falha,
    envelope_de_falha,
    envelope_de_validacao,
    gerar_a_partir_de_valido,
)
from storage.job_store import JobStore

logger = logging.getLogger("peticao_cobranca.jobs")

QUEUED = "queued"
RUNNING = "running"
DONE = "done"
ERROR = "error"

# queued → running → done|error; queued → done quando a validação falha.
TRANSICOES: dict[str, frozenset[str]] = {
    QUEUED: frozenset({RUNNING, DONE}),
    RUNNING: frozenset({DONE, ERROR}),
    DONE: frozenset(),
    ERROR: frozenset(),
}

REGEX_JOB_ID = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}")


class TransicaoInvalida(RuntimeError):
    """Raised when a job would move backwards or leave a terminal state."""


class JobNaoEncontrado(LookupError):
    """Raised when a job id has no stored record."""


def agora_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def novo_job_id() -> str:
    return str(uuid.uuid4())


def job_id_valido(job_id: str) -> bool:
    return bool(REGEX_JOB_ID.fullmatch(job_id or ""))


def url_status(job_id: str) -> str:
    return f"/api/draft/cobrancaStatus?jobId={job_id}"


class GerenciadorJobs:
    """Ciclo de vida dos jobs assíncronos de rascunho, persistidos no JobStore."""

    def __init__(self, store: JobStore, gerador: GeradorTexto, templates_dir: Path | None = None) -> None:
        self.store = store
        self.gerador = gerador
        self.templates_dir = templates_dir

    def criar_concluido_por_validacao(self, validacao: dict[str, Any]) -> str:
        job_id = novo_job_id()
        momento = agora_iso()
        self.store.gravar(job_id, {
            "ok": False,
            "status": DONE,
            "createdAt": momento,
            "updatedAt": momento,
            "result": envelope_de_validacao(validacao),
        })
        return job_id

    def criar_na_fila(self, payload: dict[str, Any]) -> str:
        job_id = novo_job_id()
        momento = agora_iso()
        self.store.gravar(job_id, {
            "ok": True,
            "status": QUEUED,
            "createdAt": momento,
            "updatedAt": momento,
            "payload": payload,
        })
        return job_id

    def transicionar(self, job_id: str, destino: str, **campos: Any) -> dict[str, Any]:
        atual = self.store.ler(job_id)
        if atual is None:
            raise JobNaoEncontrado(job_id)

        origem = atual.get("status") or QUEUED
        if destino not in TRANSICOES.get(origem, frozenset()):
            raise TransicaoInvalida(f"Job {job_id}: transição {origem} → {destino} não permitida")

        return self.store.atualizar(job_id, {**campos, "status": destino, "updatedAt": agora_iso()})

    def executar(self, job_id: str) -> None:
        """Processa um job em fila até um estado terminal. Não levanta."""
        inicio = time.monotonic()
        try:
            job = self.transicionar(job_id, RUNNING, meta={"stage": "running"})
        except (JobNaoEncontrado, TransicaoInvalida) as exc:
            logger.error("Job %s cannot start: %s", job_id, exc)
            return

        try:
            payload = job.get("payload")
            if not isinstance(payload, dict):
                raise ValueError("Job payload ausente")

            envelope = gerar_a_partir_de_valido(payload, self.gerador, self.templates_dir)
            logger.info(
                "Job %s done (hasHtml=%s hasSections=%s ms=%s)",
                job_id,
                bool(envelope["html"]),
                tem_texto_em_secoes(envelope["sections"]),
                envelope["meta"].get("ms"),
            )
            self.transicionar(job_id, DONE, ok=True, result=envelope, meta={"stage": DONE})
        except Exception as exc:
            falha = classificar_falha(exc)
            logger.error("Job %s failed: %s (%s)", job_id, falha.codigo, falha.detalhe)
            ms = int((time.monotonic() - inicio) * 1000)
            try:
                self.transicionar(
                    job_id,
                    ERROR,
                    ok=False,
                    error={"message": falha.mensagem, "code": falha.codigo, "status": falha.status_http},
                    result=envelope_de_falha(falha, {"stage": "handler", "ms": ms}),
                    meta={"stage": ERROR},
                )
            except Exception:
                logger.exception("Job %s: could not record error state", job_id)

    def consultar(self, job_id: str) -> dict[str, Any]:
        """Resposta de polling: envelope quando `done`, erro quando `error`, status nos demais."""
        job = self.store.ler(job_id)
        if job is None:
            raise JobNaoEncontrado(job_id)

        status = job.get("status") or QUEUED
        resultado = job.get("result") if isinstance(job.get("result"), dict) else {}

        if status == DONE:
            return {"jobId": job_id, "status": status, **resultado}

        if status == ERROR:
            erro = job.get("error") if isinstance(job.get("error"), dict) else {}
            return {
                "jobId": job_id,
                "status": status,
                **resultado,
                "ok": False,
                "error": erro.get("message") or "Falha no job",
                "statusCode": erro.get("status") or 500,
            }

        return {
            "ok": True,
            "jobId": job_id,
            "status": status,
            "meta": {"createdAt": job.get("createdAt"), "updatedAt": job.get("updatedAt")},
        }
