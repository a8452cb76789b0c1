from __future__ import annotations

import json
import logging
from typing import Any

from storage.blob_store import BlobStore

logger = logging.getLogger("peticao_cobranca.jobs")


def chave_job(job_id: str) -> str:
    return f"jobs/cobranca/{job_id}.json"


class JobStore:
    """Um registro JSON por job, endereçado por `jobs/cobranca/<job_id>.json`."""

    def __init__(self, blob: BlobStore) -> None:
        self.blob = blob

    def gravar(self, job_id: str, job: dict[str, Any]) -> str:
        conteudo = json.dumps(job or {}, ensure_ascii=False).encode("utf-8")
        return self.blob.put(chave_job(job_id), conteudo, "application/json")

    def ler(self, job_id: str) -> dict[str, Any] | None:
        bruto = self.blob.get(chave_job(job_id))
        if bruto is None:
            return None
        try:
            job = json.loads(bruto.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Job record %s is not valid JSON", job_id)
            return None
        return job if isinstance(job, dict) else None

    def atualizar(self, job_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        atual = self.ler(job_id) or {}
        novo = {**atual, **(patch or {})}
        self.gravar(job_id, novo)
        return novo
