"""
Station Explorer - Question Forwarder
Relays a user question to the third-party application endpoint.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from config import QUESTION_FORM, QUESTION_URL, QuestionFormConfig
from collector.upstream_proxy import reject_json_constant
from core.errors import QuestionDeliveryFailed, ValidationError

logger = logging.getLogger("question_forwarder")


def build_question_payload(email: str, text: str, form: QuestionFormConfig = QUESTION_FORM) -> Dict[str, Any]:
    return {
        "career_application": {
            "name": form.name,
            "email": email,
            "role": form.role,
            "submission_url": form.submission_url,
            "portfolio_url": form.portfolio_url,
            "resume_url": form.resume_url,
            "notes": f"{form.notes_prefix}{text}",
        }
    }


async def forward_question(
    email: Optional[str],
    text: Optional[str],
    client: Optional[httpx.AsyncClient] = None,
    url: str = QUESTION_URL,
) -> Tuple[int, Any]:
    """
    Returns (upstream status, upstream JSON body or {"ok": True}).
    Raises ValidationError on missing fields, QuestionDeliveryFailed on local failure.
    """
    if not email or not text:
        raise ValidationError("email and text required")

    payload = build_question_payload(email, text)
    try:
        if client is not None:
            response = await client.post(url, json=payload)
        else:
            async with httpx.AsyncClient(timeout=15.0) as own_client:
                response = await own_client.post(url, json=payload)
        body_text = response.text
    except Exception as e:
        logger.error(f"Question delivery failed: {e}")
        raise QuestionDeliveryFailed(detail=str(e)) from e

    logger.info(f"Question forwarded (HTTP {response.status_code})")
    try:
        return response.status_code, json.loads(body_text, parse_constant=reject_json_constant)
    except ValueError:
        return response.status_code, {"ok": True}
