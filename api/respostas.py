from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse


# Erro já mapeado para status HTTP; levantado antes de qualquer trabalho de geração.
class ErroHttp(Exception):
    def __init__(
        self,
        status: int,
        codigo: str,
        mensagem: str,
        *,
        headers: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(mensagem)
        self.status = status
        self.codigo = codigo
        self.mensagem = mensagem
        self.headers = headers or {}
        self.extra = extra or {}


def enviar_json(status: int, corpo: dict[str, Any], headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status, content=corpo, headers=headers)


def enviar_erro(
    status: int,
    codigo: str,
    mensagem: str,
    detalhes: str | None = None,
    extra: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    corpo: dict[str, Any] = {"ok": False, "status": status, "code": codigo or "ERROR", "error": mensagem or "Erro"}
    if detalhes:
        corpo["details"] = str(detalhes)
    if extra:
        corpo.update(extra)
    return enviar_json(status, corpo, headers)
