import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from lms_quiz.catalog import DEFAULT_TIMEOUT, normalize_question
from lms_quiz.config import get_openai_api_key, get_openai_model
from lms_quiz.errors import GenerationError, ValidationError
from lms_quiz.schemas import QuestionDraft

logger = logging.getLogger(__name__)

MIN_GENERATED_QUESTIONS = 5
MAX_GENERATED_QUESTIONS = 10

SYSTEM_PROMPT = (
    "You are a quiz author for a learning management system. Respond only "
    "with raw JSON (no markdown). JSON schema: {questions: [{question: string, "
    "options: [string, string, string, string], correct_option: integer 0-3, "
    "timeout: integer seconds}]}."
)

PROMPT_TEMPLATE = (
    "Generate between {min_questions} and {max_questions} multiple-choice "
    "questions for this topic: {topic}. Each question must have exactly 4 "
    "options and exactly one correct_option given as the 0-based index of the "
    "correct option. Use a timeout of {timeout} seconds unless a question "
    "clearly needs more time. Keep questions factual and concise. Return JSON only."
)

# (system_prompt, user_prompt) -> raw model text
TextGenerator = Callable[[str, str], str]


def build_prompt(topic_description: str) -> str:
    return PROMPT_TEMPLATE.format(
        min_questions=MIN_GENERATED_QUESTIONS,
        max_questions=MAX_GENERATED_QUESTIONS,
        topic=topic_description.strip(),
        timeout=DEFAULT_TIMEOUT,
    )


def _extract_json(payload: str) -> Dict[str, Any]:
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        match = re.search(r"\{.*\}", payload, re.DOTALL)
        if not match:
            raise ValueError("quiz response was not valid JSON")
        return json.loads(match.group(0))


# Send the prompt to the OpenAI chat completions API and return the reply text.
def openai_text_generator(system_prompt: str, user_prompt: str) -> str:
    api_key = get_openai_api_key()
    if not api_key:
        raise GenerationError("OPENAI_API_KEY is not configured", status_code=503)

    from openai import OpenAI

    client = OpenAI(api_key=api_key)
    try:
        response = client.chat.completions.create(
            model=get_openai_model(),
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
    except Exception as exc:
        raise GenerationError(f"OpenAI request failed: {exc}") from exc
    return response.choices[0].message.content or ""


# Turn raw model output into validated question drafts.
def parse_generated_questions(raw_text: str) -> List[QuestionDraft]:
    try:
        payload = _extract_json(raw_text or "")
    except (ValueError, json.JSONDecodeError) as exc:
        raise GenerationError(f"quiz response parse failed: {exc}") from exc

    if not isinstance(payload, dict) or not isinstance(payload.get("questions"), list):
        raise GenerationError("quiz response must be an object with a questions array")
    questions = payload["questions"]
    if not MIN_GENERATED_QUESTIONS <= len(questions) <= MAX_GENERATED_QUESTIONS:
        raise GenerationError(
            f"quiz response must include {MIN_GENERATED_QUESTIONS}-"
            f"{MAX_GENERATED_QUESTIONS} questions, got {len(questions)}"
        )

    drafts: List[QuestionDraft] = []
    for position, question in enumerate(questions, start=1):
        if isinstance(question, dict) and "correct_option" not in question:
            question = dict(question)
            question["correct_option"] = question.pop("correctOption", None)
        try:
            normalized = normalize_question(question, position, question_id="")
        except ValidationError as exc:
            raise GenerationError(f"quiz response invalid: {exc.detail}") from exc
        normalized.pop("id")
        drafts.append(QuestionDraft(**normalized))
    return drafts


def generate_quiz_questions(
    topic_description: str, generator: Optional[TextGenerator] = None
) -> List[QuestionDraft]:
    if not topic_description or not topic_description.strip():
        raise ValidationError("topic description is required")

    generator = generator or openai_text_generator
    raw_text = generator(SYSTEM_PROMPT, build_prompt(topic_description))
    drafts = parse_generated_questions(raw_text)
    logger.info("Generated %d question drafts", len(drafts))
    return drafts
