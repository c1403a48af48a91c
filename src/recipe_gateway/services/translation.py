"""The business call behind the gateway: turn a payload into a model reply."""

from __future__ import annotations

import logging

from recipe_gateway.schemas.translate import ImagePayload, TranslateRequest, UrlPayload
from recipe_gateway.services import prompts
from recipe_gateway.services.fetcher import SafeFetcher
from recipe_gateway.services.upstream import CompletionOptions, Message, UpstreamClient

logger = logging.getLogger(__name__)


class TranslationService:
    """Build the model prompt for a payload and call the model."""

    def __init__(
        self,
        upstream: UpstreamClient,
        fetcher: SafeFetcher,
        *,
        text_model: str,
        vision_model: str,
    ) -> None:
        self.upstream = upstream
        self.fetcher = fetcher
        self.text_model = text_model
        self.vision_model = vision_model

    async def complete(self, payload: TranslateRequest) -> str:
        """Return the model's raw reply for ``payload``.

        URL payloads are fetched first; the fetch and the model call are the
        only steps that wait on the network.
        """
        messages, model = await self._messages_for(payload)
        reply = await self.upstream.complete(messages, CompletionOptions(model=model))
        logger.info("Model %s answered a %s request (%d chars)", model, payload.type, len(reply))
        return reply

    async def _messages_for(self, payload: TranslateRequest) -> tuple[list[Message], str]:
        system = {"role": "system", "content": prompts.build_system_prompt(payload.target_language)}

        if isinstance(payload, ImagePayload):
            data_uri = f"data:{payload.image_mime};base64,{payload.image}"
            user: Message = {
                "role": "user",
                "content": [
                    {"type": "image_url", "image_url": {"url": data_uri}},
                    {"type": "text", "text": prompts.build_image_prompt(payload.target_language)},
                ],
            }
            return [system, user], self.vision_model

        if isinstance(payload, UrlPayload):
            recipe_text = await self.fetcher.fetch_text(payload.url)
        else:
            recipe_text = prompts.normalize_recipe_text(payload.content)

        user = {
            "role": "user",
            "content": prompts.build_user_prompt(
                recipe_text, payload.target_language, payload.source_language
            ),
        }
        return [system, user], self.text_model
