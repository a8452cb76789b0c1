from __future__ import annotations

import base64
import logging
import time
from datetime import datetime
from functools import partial
from typing import Any, Callable

from fastapi import BackgroundTasks, Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from api.auth import exigir_token
from api.log import configurar_logging, log_evento
from api.rate_limit import LimitadorTaxa, identidade_cliente
from api.respostas import ErroHttp, enviar_erro, enviar_json
from config import Configuracao, carregar_configuracao
from exporters.docx_exporter import MIME_DOCX, secoes_para_docx_bytes, validar_secoes_documento
from exporters.html_relatorio import renderizar_relatorio_html
from services.gemini_service import gerar_rascunho
from services.jobs import GerenciadorJobs, JobNaoEncontrado, job_id_valido, url_status
from services.montagem import tem_texto_em_secoes
from services.pipeline import (
    GeradorTexto,
    classificar_falha,
    envelope_de_falha,
    gerar_rascunho_cobranca,
    truncar_detalhe,
    validar_requisicao,
)
from storage.blob_store import BlobStore, BlobStoreError, LocalBlobStore
from storage.job_store import JobStore

# ============================================================================
# CONFIGURAÇÃO E DEPENDÊNCIAS
# ============================================================================

CONFIG_INICIAL = carregar_configuracao()
configurar_logging(CONFIG_INICIAL.log_level)

app = FastAPI(title="Rascunho de Ação de Cobrança")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Validalex-Token"],
    max_age=86400,
)

LIMITADORES: dict[str, LimitadorTaxa] = {
    "draft": LimitadorTaxa(CONFIG_INICIAL.limite_draft, CONFIG_INICIAL.janela_limite_s),
    "start": LimitadorTaxa(CONFIG_INICIAL.limite_start, CONFIG_INICIAL.janela_limite_s),
    "status": LimitadorTaxa(CONFIG_INICIAL.limite_status, CONFIG_INICIAL.janela_limite_s),
    "export": LimitadorTaxa(CONFIG_INICIAL.limite_export, CONFIG_INICIAL.janela_limite_s),
}


def obter_configuracao() -> Configuracao:
    return carregar_configuracao()


def obter_limitadores() -> dict[str, LimitadorTaxa]:
    return LIMITADORES


def obter_gerador(cfg: Configuracao = Depends(obter_configuracao)) -> GeradorTexto:
    return partial(gerar_rascunho, model=cfg.gemini_model, timeout_s=cfg.model_timeout_s)


def obter_blob_store(cfg: Configuracao = Depends(obter_configuracao)) -> BlobStore:
    return LocalBlobStore(cfg.blob_dir, cfg.blob_public_base_url)


def obter_gerenciador_jobs(
    blob: BlobStore = Depends(obter_blob_store),
    gerador: GeradorTexto = Depends(obter_gerador),
    cfg: Configuracao = Depends(obter_configuracao),
) -> GerenciadorJobs:
    return GerenciadorJobs(JobStore(blob), gerador, cfg.templates_dir)


# Rate limit (barato) primeiro, depois o token compartilhado.
def guarda(rota: str) -> Callable[..., None]:
    def _verificar(
        request: Request,
        cfg: Configuracao = Depends(obter_configuracao),
        limitadores: dict[str, LimitadorTaxa] = Depends(obter_limitadores),
    ) -> None:
        cliente = identidade_cliente(
            request.headers.get("x-forwarded-for"),
            request.client.host if request.client else None,
        )
        limitador = limitadores.get(rota)
        if limitador is not None:
            decisao = limitador.verificar(f"{cliente}:{rota}")
            if not decisao.permitido:
                raise ErroHttp(
                    429,
                    "RATE_LIMIT",
                    "Muitas solicitações em pouco tempo. Aguarde alguns segundos e tente novamente.",
                    headers={"Retry-After": str(decisao.retry_after)},
                    extra={"retryAfterSec": decisao.retry_after},
                )
        exigir_token(request.headers, cfg.token_compartilhado)

    return _verificar


def _ms_desde(inicio: float) -> int:
    return int((time.monotonic() - inicio) * 1000)


# ============================================================================
# TRATAMENTO DE ERROS
# ============================================================================


@app.exception_handler(ErroHttp)
async def _tratar_erro_http(request: Request, exc: ErroHttp):
    log_evento(logging.WARNING, "HTTP_ERROR", path=request.url.path, status=exc.status, code=exc.codigo)
    return enviar_erro(exc.status, exc.codigo, exc.mensagem, extra=exc.extra, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def _tratar_corpo_invalido(request: Request, exc: RequestValidationError):
    return enviar_erro(400, "BAD_REQUEST", "Corpo da requisição inválido (esperado objeto JSON).")


@app.exception_handler(Exception)
async def _tratar_erro_inesperado(request: Request, exc: Exception):
    log_evento(logging.ERROR, "UNHANDLED_ERROR", path=request.url.path, error=truncar_detalhe(exc))
    return enviar_erro(500, "INTERNAL_ERROR", "Erro inesperado.")


# ============================================================================
# ROTAS DE RASCUNHO
# ============================================================================


@app.post("/api/draft/cobranca", dependencies=[Depends(guarda("draft"))])
def draft_cobranca(
    payload: dict[str, Any] = Body(default={}),
    gerador: GeradorTexto = Depends(obter_gerador),
    cfg: Configuracao = Depends(obter_configuracao),
):
    inicio = time.monotonic()
    try:
        envelope = gerar_rascunho_cobranca(payload, gerador, cfg.templates_dir)
    except Exception as exc:
        falha = classificar_falha(exc)
        log_evento(logging.ERROR, "DRAFT_COBRANCA_ERR", status=falha.status_http, code=falha.codigo, error=falha.detalhe)
        corpo = envelope_de_falha(falha, {"stage": "handler", "ms": _ms_desde(inicio)})
        corpo.update({"code": falha.codigo, "error": falha.mensagem, "details": falha.detalhe})
        return enviar_json(falha.status_http, corpo)

    log_evento(
        logging.INFO,
        "DRAFT_COBRANCA_OK",
        ok=envelope["ok"],
        stage=envelope["meta"].get("stage"),
        hasHtml=bool(envelope["html"]),
        hasSections=tem_texto_em_secoes(envelope["sections"]),
        missing=len(envelope["missing"]),
        ms=_ms_desde(inicio),
    )
    return enviar_json(200, envelope)


@app.post("/api/draft/cobrancaStart", dependencies=[Depends(guarda("start"))])
def draft_cobranca_start(
    background_tasks: BackgroundTasks,
    payload: dict[str, Any] = Body(default={}),
    jobs: GerenciadorJobs = Depends(obter_gerenciador_jobs),
):
    validacao = validar_requisicao(payload)
    try:
        if not validacao["ok"]:
            # inválido: job já nasce concluído, sem passar por `running`
            job_id = jobs.criar_concluido_por_validacao(validacao)
        else:
            job_id = jobs.criar_na_fila(payload)
            background_tasks.add_task(jobs.executar, job_id)
    except Exception as exc:
        log_evento(logging.ERROR, "DRAFT_COBRANCA_START_ERR", error=truncar_detalhe(exc))
        return enviar_erro(500, "START_ERR", "Falha ao iniciar o rascunho.", truncar_detalhe(exc))

    log_evento(logging.INFO, "DRAFT_COBRANCA_START_OK", jobId=job_id, valid=validacao["ok"])
    return enviar_json(202, {"ok": True, "jobId": job_id, "statusUrl": url_status(job_id)})


@app.get("/api/draft/cobrancaStatus", dependencies=[Depends(guarda("status"))])
def draft_cobranca_status(
    jobId: str | None = None,
    jobs: GerenciadorJobs = Depends(obter_gerenciador_jobs),
):
    job_id = (jobId or "").strip()
    if not job_id:
        return enviar_erro(400, "JOB_ID_MISSING", "jobId ausente")
    if not job_id_valido(job_id):
        return enviar_erro(400, "JOB_ID_INVALID", "jobId inválido")

    try:
        resposta = jobs.consultar(job_id)
    except JobNaoEncontrado:
        return enviar_erro(404, "JOB_NOT_FOUND", "Job não encontrado")
    return enviar_json(200, resposta)


# ============================================================================
# ROTAS DE EXPORTAÇÃO
# ============================================================================


def _nome_arquivo_docx() -> str:
    return f"acao_cobranca_{datetime.now().strftime('%Y%m%d%H%M%S%f')}.docx"


@app.post("/api/export/cobrancaDocx", dependencies=[Depends(guarda("export"))])
def export_cobranca_docx(
    body: dict[str, Any] = Body(default={}),
    blob: BlobStore = Depends(obter_blob_store),
    cfg: Configuracao = Depends(obter_configuracao),
):
    inicio = time.monotonic()
    doc = body.get("doc") if isinstance(body.get("doc"), dict) else {}
    secoes = doc.get("sections")

    erro = validar_secoes_documento(secoes)
    if erro:
        return enviar_erro(400, "INVALID_SECTIONS", erro)

    entrega = str(body.get("delivery") or cfg.export_delivery).lower()
    try:
        conteudo = secoes_para_docx_bytes(secoes, doc.get("localData"), doc.get("signature"))
        nome_arquivo = _nome_arquivo_docx()
        resposta: dict[str, Any] = {"ok": True, "filename": nome_arquivo, "mime": MIME_DOCX, "size": len(conteudo)}
        if entrega == "url":
            resposta["url"] = blob.put(f"cobranca/{nome_arquivo}", conteudo, MIME_DOCX)
        else:
            resposta["base64"] = base64.b64encode(conteudo).decode("ascii")
    except (BlobStoreError, ValueError, OSError) as exc:
        log_evento(logging.ERROR, "EXPORT_DOCX_ERR", error=truncar_detalhe(exc), ms=_ms_desde(inicio))
        return enviar_erro(500, "EXPORT_DOCX_ERR", "Erro ao gerar DOCX", truncar_detalhe(exc))

    resposta["meta"] = {"ms": _ms_desde(inicio), "delivery": "url" if "url" in resposta else "inline"}
    log_evento(logging.INFO, "EXPORT_DOCX_OK", size=resposta["size"], delivery=resposta["meta"]["delivery"])
    return enviar_json(200, resposta)


@app.post("/api/export/cobrancaRelatorio", dependencies=[Depends(guarda("export"))])
def export_cobranca_relatorio(body: dict[str, Any] = Body(default={})):
    html = renderizar_relatorio_html(
        titulo=str(body.get("title") or "Rascunho – Ação de Cobrança"),
        subtitulo=str(body.get("subtitle") or "Rascunho para revisão profissional"),
        alertas=body.get("alerts"),
        secoes=body.get("sections"),
        meta=body.get("meta"),
    )
    return enviar_json(200, {"ok": True, "html": html})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
