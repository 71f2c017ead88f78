"""Decides whether a registry model is usable by the playground.

A model qualifies when its repository serves both ``tokenizer.json`` and
``tokenizer_config.json`` and its metadata carries a chat template. Both
files are probed with HEAD first; nothing is downloaded unless both probes
and the template check pass.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any

from .artifact_store import TOKENIZER_CONFIG_FILE, TOKENIZER_FILE, ArtifactStore
from .models import ModelId, ModelMetadata
from .registry_client import RegistryClient

logger = logging.getLogger(__name__)

_CHAT_TEMPLATE_KEY = re.compile(r'"chat_template(?:_jinja)?"\s*:', re.IGNORECASE)


def has_chat_template(metadata: Any) -> bool:
    """Structural check for a ``chat_template``/``chat_template_jinja`` key anywhere in ``metadata``."""

    try:
        text = json.dumps(metadata)
    except (TypeError, ValueError):
        return False
    return bool(_CHAT_TEMPLATE_KEY.search(text))


class Validator:
    def __init__(self, client: RegistryClient, store: ArtifactStore):
        self.client = client
        self.store = store

    def _reject(self, model_id: ModelId, reason: str) -> bool:
        logger.info("[validator] Rejected %s: %s", model_id, reason)
        return False

    async def validate(self, model_id: ModelId, metadata: ModelMetadata) -> bool:
        tokenizer_url = self.client.resolve_url(model_id, TOKENIZER_FILE)
        config_url = self.client.resolve_url(model_id, TOKENIZER_CONFIG_FILE)

        tok_ok, conf_ok = await asyncio.gather(
            self.client.head_ok(tokenizer_url),
            self.client.head_ok(config_url),
        )
        if not tok_ok or not conf_ok:
            missing = [
                name
                for name, ok in ((TOKENIZER_FILE, tok_ok), (TOKENIZER_CONFIG_FILE, conf_ok))
                if not ok
            ]
            return self._reject(model_id, f"missing {', '.join(missing)}")

        if not has_chat_template(metadata):
            return self._reject(model_id, "no chat template in metadata")

        tokenizer_resp, config_resp = await asyncio.gather(
            self.client.fetch_file(tokenizer_url),
            self.client.fetch_file(config_url),
        )
        if not tokenizer_resp.is_success or not config_resp.is_success:
            return self._reject(
                model_id,
                f"download failed ({tokenizer_resp.status_code}/{config_resp.status_code})",
            )

        try:
            tokenizer = tokenizer_resp.json()
            tokenizer_config = config_resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            return self._reject(model_id, f"unparsable tokenizer file: {exc}")

        await self.store.persist(model_id, tokenizer, tokenizer_config, metadata)
        return True
