from abc import ABC, abstractmethod
from typing import Any


class AbstractLLMClient(ABC):
	"""Interface for chat-completion LLM clients."""

	@abstractmethod
	async def generate_text(
		self,
		system_prompt: str,
		messages: list[dict[str, str]],
		**kwargs: Any,
	) -> str:
		"""Generate the assistant's next message.

		Args:
			system_prompt: System-role instruction placed before the conversation.
			messages: Conversation so far as {"role", "content"} dicts, oldest first.
			**kwargs: Provider-specific options (e.g., temperature, max_tokens).

		Returns:
			str: Raw assistant reply, including any LEARNINGS_CANDIDATE block.

		Raises:
			LLMAppError: If the provider call fails or returns no content.
		"""
		...
