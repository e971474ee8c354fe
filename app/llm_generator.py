import logging
import re
from typing import List, Optional, Tuple

import requests

from app.errors import GenerationError
from app.schemas import Attachment

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
REQUEST_TIMEOUT = 120

_FENCE_OPEN = re.compile(r"\A\s*```[\w+-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*\Z")

OUTPUT_RULES = (
    "IMPORTANT:\n"
    "- Return ONE complete, self-contained index.html with embedded CSS and JavaScript\n"
    "- Start with <!DOCTYPE html> and end with </html>\n"
    "- Load libraries only from public CDNs (jsdelivr or cdnjs); no local files\n"
    "- Handle the attachments by embedding them or fetching them as needed\n"
    "- Make it functional, responsive and professional-looking\n"
    "- Add comments explaining key parts\n"
    "Return ONLY the HTML code, no explanations."
)


def extract_base64_data(data_url: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Extract MIME type and base64 data from a data URL.

    Args:
        data_url: Data URL in format "data:mime/type;base64,<base64_data>"

    Returns:
        Tuple of (mime_type, base64_data); (None, None) for anything else.
    """
    if not data_url.startswith("data:") or "," not in data_url:
        return None, None
    header, base64_data = data_url.split(",", 1)
    mime_type = header[len("data:"):].split(";")[0]
    return mime_type or None, base64_data


def strip_code_fences(text: str) -> str:
    """Remove the markdown ``` fence the model wraps around its answer.

    Only a leading ```lang line and a trailing ``` are removed; fences inside
    the document (for example in a JS template string) are left alone.
    """
    text = _FENCE_OPEN.sub("", text, count=1)
    return _FENCE_CLOSE.sub("", text, count=1).strip()


def _describe_checks(checks: Optional[List[str]]) -> str:
    if not checks:
        return ""
    lines = "\n".join(f"{i}. {check}" for i, check in enumerate(checks, 1))
    return f"\n\nRequirements to check:\n{lines}"


def _describe_attachments(attachments: Optional[List[Attachment]]) -> str:
    if not attachments:
        return ""
    lines = "\n".join(f"- {a.name}: {a.url[:100]}..." for a in attachments)
    return f"\n\nAttachments provided:\n{lines}"


def build_generation_prompt(brief: str, checks=None, attachments=None) -> str:
    return (
        "Create a complete, single-file HTML application that does the following:\n\n"
        f"{brief}"
        f"{_describe_checks(checks)}"
        f"{_describe_attachments(attachments)}"
        "\n\n- Ensure all the checks will pass\n"
        f"{OUTPUT_RULES}"
    )


def build_revision_prompt(brief: str, checks=None, attachments=None) -> str:
    return (
        "You are updating an existing single-page web app according to this revision request:\n\n"
        f"{brief}"
        f"{_describe_checks(checks)}"
        f"{_describe_attachments(attachments)}"
        "\n\nOutput the FULL updated index.html including the modifications, "
        "not a diff.\n"
        f"{OUTPUT_RULES}"
    )


class CodeGenerator:
    """Produces index.html documents through the Gemini generateContent API."""

    def __init__(self, api_key: Optional[str], model: str = "gemini-2.0-flash"):
        self.api_key = api_key
        self.model = model

    def generate(self, brief: str, checks: Optional[List[str]] = None,
                 attachments: Optional[List[Attachment]] = None) -> str:
        logger.info(f"🤖 Generating app from brief: {brief[:50]}...")
        return self._complete(build_generation_prompt(brief, checks, attachments), attachments)

    def revise(self, brief: str, checks: Optional[List[str]] = None,
               attachments: Optional[List[Attachment]] = None) -> str:
        logger.info(f"🛠️ Revising app from brief: {brief[:50]}...")
        return self._complete(build_revision_prompt(brief, checks, attachments), attachments)

    def _complete(self, prompt: str, attachments: Optional[List[Attachment]]) -> str:
        if not self.api_key:
            raise GenerationError("GEMINI_API_KEY is not configured")

        parts = [{"text": prompt}]

        # Image attachments also go to the model as inline data
        for attachment in attachments or []:
            mime_type, base64_data = extract_base64_data(attachment.url)
            if mime_type and base64_data and mime_type.startswith("image/"):
                parts.append({"inline_data": {"mime_type": mime_type, "data": base64_data}})
                logger.info(f"📎 Added {mime_type} attachment {attachment.name} to request")

        headers = {"Content-Type": "application/json", "X-Goog-Api-Key": self.api_key}
        payload = {"contents": [{"parts": parts}]}

        try:
            logger.info("📡 Calling Gemini API...")
            response = requests.post(
                GEMINI_URL.format(model=self.model),
                headers=headers,
                json=payload,
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise GenerationError(f"Gemini API request failed: {e}") from e
        except ValueError as e:
            raise GenerationError(f"Failed to parse Gemini response: {e}") from e

        try:
            raw_text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationError(f"Unexpected Gemini response shape: {e}") from e

        document = strip_code_fences(raw_text or "")
        if not document:
            raise GenerationError("Gemini returned empty content")

        logger.info(f"✅ Generated document ({len(document)} chars)")
        return document
