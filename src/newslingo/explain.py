"""On-demand AI explanation of a subtitle line."""

import logging

from openai import OpenAI, OpenAIError

logger = logging.getLogger(__name__)

EXPLAIN_PROMPT = """You are an expert English teacher helping a Chinese student learn from a news broadcast.

The student has paused on this subtitle: "{text}"
The overall context is a {context}.

Give a concise, friendly explanation in Simplified Chinese:
1. Define any difficult words or idioms in this sentence.
2. Briefly explain any complex grammar.
3. Mention any cultural or political concept the sentence relies on.

Plain text only, at most 150 words."""

NO_EXPLANATION = "抱歉，暂时无法生成解释。"
EXPLAIN_FAILED = "连接 AI 导师时发生错误。"


def explain_text(
    text: str,
    client: OpenAI,
    model: str,
    context: str = "news broadcast",
) -> str:
    """Ask the model to explain ``text`` for a language learner.

    Never raises: an empty reply or an API failure yields a short
    message that can be shown in place of the explanation.
    """
    try:
        response = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "user", "content": EXPLAIN_PROMPT.format(text=text, context=context)},
            ],
        )
    except OpenAIError as e:
        logger.error("Explanation request failed: %s", e)
        return EXPLAIN_FAILED

    content = response.choices[0].message.content
    return content.strip() if content else NO_EXPLANATION
