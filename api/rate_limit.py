from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class DecisaoLimite:
    permitido: bool
    restantes: int
    retry_after: int  # segundos até a janela reiniciar


# Acima disso, `verificar` descarta as janelas vencidas antes de contar.
MAX_CHAVES = 10_000


class LimitadorTaxa:
    """
    Janela fixa por chave (identidade do cliente + rota), em memória do processo.

    Best-effort: cada instância tem seus próprios contadores, zerados ao reiniciar.
    Apenas decide; quem chama monta a resposta 429.
    """

    def __init__(self, limite: int, janela_s: float, relogio: Callable[[], float] = time.monotonic) -> None:
        self.limite = max(1, int(limite))
        self.janela_s = float(janela_s)
        self._relogio = relogio
        self._lock = threading.Lock()
        self._baldes: dict[str, tuple[float, int]] = {}

    def verificar(self, chave: str) -> DecisaoLimite:
        agora = self._relogio()
        with self._lock:
            if len(self._baldes) >= MAX_CHAVES:
                self._remover_expirados(agora)
            inicio, contagem = self._baldes.get(chave, (agora, 0))
            if agora - inicio >= self.janela_s:
                inicio, contagem = agora, 0
            contagem += 1
            self._baldes[chave] = (inicio, contagem)

        retry_after = max(1, math.ceil(self.janela_s - (agora - inicio)))
        if contagem > self.limite:
            return DecisaoLimite(permitido=False, restantes=0, retry_after=retry_after)
        return DecisaoLimite(permitido=True, restantes=self.limite - contagem, retry_after=retry_after)

    def _remover_expirados(self, agora: float) -> int:
        expirados = [k for k, (inicio, _) in self._baldes.items() if agora - inicio >= self.janela_s]
        for chave in expirados:
            del self._baldes[chave]
        return len(expirados)

    def limpar_expirados(self) -> int:
        with self._lock:
            return self._remover_expirados(self._relogio())


def identidade_cliente(encaminhado_para: str | None, host: str | None) -> str:
    if encaminhado_para:
        primeiro = encaminhado_para.split(",")[0].strip()
        if primeiro:
            return primeiro
    return host or "unknown"
