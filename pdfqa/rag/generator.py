import logging
import re
from typing import Iterator

from ibm_watsonx_ai import Credentials
from ibm_watsonx_ai.foundation_models import ModelInference
from ibm_watsonx_ai.metanames import GenTextParamsMetaNames as GenParams
from ibm_watsonx_ai.wml_client_error import ApiRequestFailure

from pdfqa.config import Settings
from pdfqa.models import QuestionType
from pdfqa.rag.context import NO_CONTEXT
from pdfqa.rag.errors import GenerationError, RateLimitError, is_rate_limit_message

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert academic assistant specializing in technical and engineering topics. "
    "Provide comprehensive, graduate-level answers based only on the provided document context.\n\n"
    "FORMATTING RULES:\n"
    "Use plain text only. Do not use markdown symbols such as #, *, ** or - for formatting. "
    "Use numbers (1, 2, 3) for lists and CAPITAL LETTERS for headings. "
    "Use line breaks and indentation for structure.\n\n"
    "CRITICAL RULES:\n"
    "1. Base ALL answers ONLY on the provided context, never on external knowledge.\n"
    "2. If information is partial, clearly state what IS known from the documents.\n"
    "3. If information is NOT in the documents, say: \"Based on the provided documents, "
    "I don't have specific information about [topic].\"\n"
    "4. Use technical terminology as it is presented in the documents.\n"
    "5. Cite page numbers when referencing specific information (e.g. \"Page 3\").\n\n"
    "RESPONSE FORMAT:\n"
    "Start with a direct answer to the question, follow with detailed explanation and evidence "
    "from the documents, and end with any relevant caveats."
)

ANSWER_INSTRUCTIONS: dict[QuestionType, str] = {
    QuestionType.DEFINITION: (
        "Give a clear, precise definition first, then the key characteristics and properties, "
        "then relevant applications mentioned in the documents."
    ),
    QuestionType.COMPARISON: (
        "Structure the answer as a comparison with clear labels. Cover key differences AND "
        "similarities, explain their practical implications and say which option suits which use case."
    ),
    QuestionType.EXPLANATION: (
        "Break the concept into its components, explain the underlying principles and connect "
        "related concepts, using examples from the context where available."
    ),
    QuestionType.LOCATION: "State where the item is located or described, citing the relevant pages.",
    QuestionType.LISTING: "Answer with a numbered list covering every item the documents mention, one line of explanation each.",
    QuestionType.QUANTITY: "Give the exact figures and units from the documents, and the conditions they apply to.",
    QuestionType.PROCEDURE: "Answer with numbered steps in the order they must be performed, including prerequisites.",
    QuestionType.CAUSE_EFFECT: "Explain the causes and their effects explicitly, following the chain of reasoning in the documents.",
    QuestionType.PROPERTY: "List the relevant properties or characteristics and explain each briefly.",
    QuestionType.EXAMPLE: "Give the concrete examples found in the documents and explain what each illustrates.",
    QuestionType.TIME: "Give the dates, periods or durations stated in the documents and their context.",
    QuestionType.GENERAL: (
        "Provide a comprehensive, well-structured answer. If technical details are available, include them."
    ),
}

NOT_COVERED_INSTRUCTION = (
    "No relevant passages were found. Say that the provided documents do not cover this topic "
    "instead of answering from general knowledge."
)


def build_user_prompt(question: str, context: str, question_type: QuestionType) -> str:
    """Combine assembled context, the question and a type-specific instruction."""
    instruction = ANSWER_INSTRUCTIONS.get(question_type, ANSWER_INSTRUCTIONS[QuestionType.GENERAL])
    if context == NO_CONTEXT:
        instruction = NOT_COVERED_INSTRUCTION
    return (
        f"DOCUMENT CONTEXT:\n{context}\n\n---\n\n"
        f"QUESTION:\n{question}\n\n"
        f"{instruction}"
    )


class GeneratorClient:
    def __init__(self, settings: Settings):
        settings.require_watsonx()
        self.settings = settings
        credentials = Credentials(
            api_key=settings.ibm_cloud_api_key,
            url=settings.watsonx_url,
        )
        self.client = ModelInference(
            model_id=settings.watsonx_gen_model,
            project_id=settings.watsonx_project_id,
            credentials=credentials,
        )

    def _params(self) -> dict:
        return {
            GenParams.TEMPERATURE: float(self.settings.temperature),
            GenParams.MAX_NEW_TOKENS: self.settings.max_new_tokens,
            GenParams.TRUNCATE_INPUT_TOKENS: 0,
        }

    @staticmethod
    def _translate(error: ApiRequestFailure) -> GenerationError:
        message = str(error)
        if is_rate_limit_message(message):
            return RateLimitError(message)
        return GenerationError(message)

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        prompt = f"{system_prompt}\n\n{user_prompt}"
        try:
            raw_answer = self.client.generate_text(prompt=prompt, params=self._params())
        except ApiRequestFailure as e:
            logger.error(f"Generation failed: {e}")
            raise self._translate(e) from e
        return self.clean_output(str(raw_answer or ""))

    def generate_stream(self, system_prompt: str, user_prompt: str) -> Iterator[str]:
        """Yield answer fragments as the model produces them.

        Closing the iterator closes the underlying watsonx.ai stream.
        """
        prompt = f"{system_prompt}\n\n{user_prompt}"
        try:
            stream = self.client.generate_text_stream(prompt=prompt, params=self._params())
            try:
                for chunk in stream:
                    if chunk:
                        yield str(chunk)
            finally:
                close = getattr(stream, "close", None)
                if close is not None:
                    close()
        except ApiRequestFailure as e:
            logger.error(f"Streaming generation failed: {e}")
            raise self._translate(e) from e

    @staticmethod
    def clean_output(text: str) -> str:
        """Remove prompt artifacts from model output."""
        cleaned = text

        # Echoed labels such as "Answer:" at the start of the output
        cleaned = re.sub(r"^\s*(?:answer|response)\s*:\s*", "", cleaned, flags=re.IGNORECASE)

        # Placeholder citations like [Source 1]
        cleaned = re.sub(r"\[Source\s+\d+\]", "", cleaned, flags=re.IGNORECASE)

        # The model sometimes continues with a new "QUESTION:" block
        cleaned = re.split(r"\n\s*QUESTION:\s*", cleaned)[0]

        cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
        return cleaned.strip()
