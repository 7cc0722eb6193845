# clinic_agenda/services/llm.py
from __future__ import annotations
import logging
from typing import Optional

from openai import OpenAI

from ..config import settings

logger = logging.getLogger(__name__)

_client: Optional[OpenAI] = None

# Instrucciones: reescribir sin alterar hechos (fechas/horas/nombres)
_SYSTEM = (
    "Você é a recepção de uma clínica de estética no Brasil. "
    "Reescreva mensagens para soarem naturais, cordiais e profissionais. "
    "Seja breve e claro, sem exageros de pontuação.\n"
    "MUITO IMPORTANTE: NÃO altere datas, horários, nomes ou valores do texto original. "
    "NÃO invente informação nova nem acrescente perguntas."
)


def _get_client() -> Optional[OpenAI]:
    global _client
    if not settings.OPENAI_API_KEY:
        return None
    if _client is None:
        _client = OpenAI(api_key=settings.OPENAI_API_KEY)
    return _client


def polish_if_enabled(text: str) -> str:
    """
    Pulido opcional con LLM (sólo si OPENAI_API_KEY está presente).
    Si no hay API o hay error, devuelve el texto tal cual.
    """
    if not text:
        return text
    client = _get_client()
    if client is None:
        return text
    try:
        resp = client.chat.completions.create(
            model=settings.OPENAI_LLM_MODEL,
            temperature=0.3,
            messages=[
                {"role": "system", "content": _SYSTEM},
                {"role": "user", "content": f"Reescreva em português do Brasil, sem mudar os dados:\n\n{text}"},
            ],
        )
        out = (resp.choices[0].message.content or "").strip()
        return out if out else text
    except Exception as e:
        logger.warning("LLM polish falló, se usa la plantilla: %s", e)
        return text
