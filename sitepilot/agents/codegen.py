"""Code generation adapter: prompt, backend call, response validation."""

from __future__ import annotations
import json
from typing import Any, Dict, List, Mapping, Optional, Union

from ..core.errors import MalformedGenerationResponse, UnsupportedModel, UpstreamUnavailable
from ..core.logging import get_logger
from ..core.types import GenerationResult, ModelChoice, SourceFile
from ..services.generation_backends import MODEL_CATALOG, GenerationBackend
from ..services.prompt_library import build_site_edit_prompt

logger = get_logger(__name__)


def extract_first_json_object(text: str) -> Optional[str]:
    """Return the first balanced top-level ``{...}`` in ``text``.

    Braces inside JSON string literals (including escaped quotes) do not
    count toward the balance. Prose before or after the object is ignored.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        # Unbalanced from this brace; try the next opening brace
        start = text.find("{", start + 1)
    return None


def parse_generation_response(raw: str) -> GenerationResult:
    """Validate a backend response against the ``{summary, files}`` contract.

    Raises:
        MalformedGenerationResponse: If no object is found, it does not parse,
            or its fields have the wrong shape
    """
    candidate = extract_first_json_object(raw or "")
    if candidate is None:
        raise MalformedGenerationResponse("No JSON found in response")

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise MalformedGenerationResponse(f"Failed to parse AI response: {e.msg}") from e

    summary = parsed.get("summary")
    files = parsed.get("files")
    if not isinstance(summary, str):
        raise MalformedGenerationResponse("Invalid response structure: summary must be a string")
    if not isinstance(files, Mapping):
        raise MalformedGenerationResponse("Invalid response structure: files must be an object")
    if not all(isinstance(v, str) for v in files.values()):
        raise MalformedGenerationResponse("Invalid response structure: file contents must be strings")

    return GenerationResult(summary=summary, files=dict(files))


def parse_model_choice(model: Union[str, ModelChoice]) -> ModelChoice:
    """Coerce a model id into a supported choice.

    Raises:
        UnsupportedModel: If ``model`` is not a supported id
    """
    if isinstance(model, ModelChoice):
        return model
    try:
        return ModelChoice(model)
    except ValueError:
        raise UnsupportedModel(str(model))


class CodeGenerationAdapter:
    """Turns a snapshot and an instruction into validated file changes."""

    def __init__(self, backends: Dict[ModelChoice, GenerationBackend]):
        self.backends = backends

    def list_models(self) -> List[Dict[str, Any]]:
        return [m for m in MODEL_CATALOG if ModelChoice(m["id"]) in self.backends]

    def generate(
        self,
        files: List[SourceFile],
        instruction: str,
        model: Union[str, ModelChoice],
    ) -> GenerationResult:
        """Generate changes for ``instruction``.

        Args:
            files: Editable snapshot
            instruction: User's natural-language request
            model: Supported model id

        Returns:
            Summary plus changed path -> full content; ``files`` may be empty

        Raises:
            UnsupportedModel: Before any network call, for unknown models
            UpstreamUnavailable: If the backend call fails
            MalformedGenerationResponse: If the response breaks the contract
        """
        choice = parse_model_choice(model)
        backend = self.backends.get(choice)
        if backend is None:
            raise UnsupportedModel(choice.value)

        prompt = build_site_edit_prompt(files, instruction)
        logger.info(
            f"Requesting generation over {len(files)} files",
            extra={"model": choice.value},
        )

        try:
            raw = backend.complete(prompt)
        except Exception as e:
            logger.error(f"Generation backend failed: {e}", extra={"model": choice.value})
            raise UpstreamUnavailable(f"Generation backend {choice.value} failed") from e

        try:
            result = parse_generation_response(raw)
        except MalformedGenerationResponse:
            logger.error(
                "Malformed generation response",
                extra={"model": choice.value},
            )
            logger.debug(f"Raw response: {raw}")
            raise

        logger.info(
            f"Generation proposed {len(result.files)} changed files",
            extra={"model": choice.value},
        )
        return result
