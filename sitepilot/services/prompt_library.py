"""Prompt for website code generation."""

from typing import Iterable

from ..core.types import SourceFile

# Data file preferred for text, color and copy edits
CONTENT_FILE = "content/site.json"

SITE_EDIT_TEMPLATE = """You are an AI that modifies website code based on user requests.

Current files in the repository:
---
{files}
---

User request: "{message}"

RULES:
1. For text/color/content changes, prefer editing {content_file} if it exists
2. NEVER edit: next.config.js, package.json, any files in /api, .env files
3. Return ONLY valid JSON in this format:
{{
  "summary": "Brief description of changes made",
  "files": {{
    "path/to/file.tsx": "full new content...",
    "path/to/other.json": "full new content..."
  }}
}}
4. Only include files that need changes
5. Preserve all existing functionality
6. Do not include any text before or after the JSON object"""


def format_files(files: Iterable[SourceFile]) -> str:
    """Render files as ``FILE: <path>`` blocks with fenced content."""
    return "".join(f"FILE: {f.path}\n```\n{f.content}\n```\n\n" for f in files)


def build_site_edit_prompt(files: Iterable[SourceFile], message: str) -> str:
    """Build the generation prompt for a user's change request.

    Args:
        files: Snapshot of editable files
        message: User instruction

    Returns:
        Prompt text
    """
    return SITE_EDIT_TEMPLATE.format(
        files=format_files(files),
        message=message,
        content_file=CONTENT_FILE,
    )
