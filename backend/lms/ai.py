"""AI lesson assistance: summaries and question answering.

Prompts are built from the lesson record and sent to an OpenAI-compatible
chat completion endpoint.  The ``CompletionClient`` is injected into the
routes as a dependency so it can be swapped out in tests.
"""

import logging
import os

from openai import AsyncOpenAI

from lms.models import Lesson

logger = logging.getLogger(__name__)

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
AI_MODEL = os.getenv("AI_MODEL", "gpt-3.5-turbo")
AI_SUMMARY_MAX_TOKENS = int(os.getenv("AI_SUMMARY_MAX_TOKENS", "300"))
AI_ANSWER_MAX_TOKENS = int(os.getenv("AI_ANSWER_MAX_TOKENS", "500"))
AI_TEMPERATURE = float(os.getenv("AI_TEMPERATURE", "0.7"))

SUMMARY_SYSTEM_PROMPT = (
    "You are an educational assistant helping students understand lesson "
    "content. Provide clear, concise summaries focused on learning objectives."
)


def summary_prompt(lesson: Lesson) -> str:
    if lesson.content_type == "text" and lesson.content:
        return (
            "Summarize the following lesson content in a clear, concise manner "
            "suitable for students. Focus on key concepts, main points, and "
            "important takeaways. Keep it under 200 words and use bullet points "
            f"where appropriate.\n\nLesson content: {lesson.content}"
        )
    if lesson.content_type == "video":
        return (
            "This is a video lesson. Since the video itself is not available, "
            "provide a structure for what students should focus on while "
            "watching it:\n- Key points to watch for\n- Suggested note-taking "
            "approach\n- How to identify important concepts\n\n"
            f"Video title: {lesson.title}"
        )
    return (
        f'Create a brief overview for this {lesson.content_type} lesson titled '
        f'"{lesson.title}". Include what students should focus on and how to '
        "approach this type of content."
    )


def qa_system_prompt(lesson: Lesson) -> str:
    return (
        "You are an educational AI assistant helping a student understand a "
        f'lesson titled "{lesson.title}". Be helpful, clear, and encouraging. '
        "Keep answers concise but comprehensive. Focus on educational value "
        "and helping the student learn."
    )


def qa_prompt(lesson: Lesson, question: str) -> str:
    if lesson.content_type == "text" and lesson.content:
        return (
            f'Based on this lesson content: "{lesson.content}"\n\n'
            f"Student's question: {question}\n\n"
            "Please provide a helpful answer that references the lesson "
            "material when relevant."
        )
    if lesson.content_type == "video":
        return (
            f"This is a video lesson. The student is asking: {question}\n\n"
            "Without a transcript, give a general educational response about "
            f'the topic "{lesson.title}" and suggest where in a typical video '
            "on this topic they might find the answer."
        )
    return (
        f'The student is studying a {lesson.content_type} lesson titled '
        f'"{lesson.title}" and asks: {question}\n\n'
        "Provide a helpful educational response based on common knowledge "
        "about this topic."
    )


class CompletionClient:
    """Thin wrapper around the chat completions API."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = AI_MODEL,
        temperature: float = AI_TEMPERATURE,
    ):
        self._api_key = api_key or OPENAI_API_KEY
        self._client: AsyncOpenAI | None = None
        self.model = model
        self.temperature = temperature

    @property
    def client(self) -> AsyncOpenAI:
        # created lazily; AsyncOpenAI refuses to construct without a key
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def complete(self, system: str, prompt: str, max_tokens: int) -> str:
        logger.info("Requesting completion from %s", self.model)
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens,
            temperature=self.temperature,
        )
        return (response.choices[0].message.content or "").strip()

    async def summarize(self, lesson: Lesson) -> str:
        return await self.complete(
            SUMMARY_SYSTEM_PROMPT, summary_prompt(lesson), AI_SUMMARY_MAX_TOKENS
        )

    async def answer(self, lesson: Lesson, question: str) -> str:
        return await self.complete(
            qa_system_prompt(lesson), qa_prompt(lesson, question), AI_ANSWER_MAX_TOKENS
        )


_client: CompletionClient | None = None


def get_completion_client() -> CompletionClient:
    global _client
    if _client is None:
        _client = CompletionClient()
    return _client
