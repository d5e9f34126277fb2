"""
Content Service - AI visit summaries and blog posts generated from check-ins.

Uses Claude when ANTHROPIC_API_KEY is configured and falls back to
template text otherwise, so check-in creation never depends on the AI call.
"""

import json
from html import escape as html_escape
import logging
import threading
from typing import Dict, Any, Optional

import anthropic

from rankitpro.models.check_in import CheckIn
from rankitpro.utils.constants import Settings

logger = logging.getLogger(__name__)


class ContentServiceSingleton:
    _instance = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = ContentService()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._lock:
            cls._instance = None


def _visit_details(check_in: CheckIn, technician_name: str) -> str:
    lines = [
        f"Job type: {check_in.job_type}",
        f"Technician: {technician_name}",
    ]
    location = check_in.full_address()
    if location:
        lines.append(f"Location: {location}")
    if check_in.problem_description:
        lines.append(f"Problem: {check_in.problem_description}")
    if check_in.work_performed:
        lines.append(f"Work performed: {check_in.work_performed}")
    if check_in.solution_description:
        lines.append(f"Solution: {check_in.solution_description}")
    if check_in.materials_used:
        lines.append(f"Materials used: {check_in.materials_used}")
    if check_in.notes:
        lines.append(f"Notes: {check_in.notes}")
    return "\n".join(lines)


class ContentService:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self._client = None

    @property
    def enabled(self) -> bool:
        return bool(self.settings.ANTHROPIC_API_KEY)

    @property
    def client(self) -> anthropic.Anthropic:
        if self._client is None:
            self._client = anthropic.Anthropic(api_key=self.settings.ANTHROPIC_API_KEY)
        return self._client

    def _complete(self, system_prompt: str, prompt: str, max_tokens: int = 1024) -> Optional[str]:
        if not self.enabled:
            return None
        try:
            response = self.client.messages.create(
                model=self.settings.ANTHROPIC_MODEL,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": prompt}],
            )
            return "".join(block.text for block in response.content if getattr(block, "text", None))
        except Exception as e:
            logger.error(f"Content generation failed: {e}")
            return None

    def generate_summary(self, check_in: CheckIn, technician_name: str) -> str:
        details = _visit_details(check_in, technician_name)
        text = self._complete(
            "You summarize field service visits for the company's office staff. "
            "Write two or three plain sentences. Do not invent details.",
            details,
            max_tokens=300,
        )
        if text:
            return text.strip()

        summary = f"{technician_name} completed a {check_in.job_type} visit"
        location = check_in.full_address()
        if location:
            summary += f" at {location}"
        summary += "."
        if check_in.work_performed:
            summary += f" Work performed: {check_in.work_performed}."
        elif check_in.notes:
            summary += f" Notes: {check_in.notes}"
        return summary

    def generate_blog_post(self, check_in: CheckIn, technician_name: str, company_name: str = "") -> Dict[str, Any]:
        """Return ``{"title", "content"}`` for a post describing the visit."""
        details = _visit_details(check_in, technician_name)
        text = self._complete(
            "You write short local-SEO blog posts for a home service company's website. "
            "Respond with JSON containing 'title' and 'content' (HTML paragraphs). "
            "Never include customer names or contact details.",
            f"Company: {company_name}\n{details}",
            max_tokens=1500,
        )
        if text:
            try:
                post = json.loads(text)
                if post.get('title') and post.get('content'):
                    return {'title': post['title'], 'content': post['content']}
            except (ValueError, AttributeError):
                logger.warning("AI blog post was not valid JSON; using template")

        city = check_in.city or check_in.location or ''
        title = f"{check_in.job_type} Service" + (f" in {city}" if city else "")
        paragraphs = [
            f"Our technician {technician_name} recently completed a {check_in.job_type.lower()} job"
            + (f" in {city}" if city else "") + "."
        ]
        if check_in.problem_description:
            paragraphs.append(f"The customer reported: {check_in.problem_description}")
        if check_in.work_performed:
            paragraphs.append(f"What we did: {check_in.work_performed}")
        if check_in.materials_used:
            paragraphs.append(f"Materials used: {check_in.materials_used}")
        if check_in.notes and not check_in.work_performed:
            paragraphs.append(check_in.notes)
        if company_name:
            paragraphs.append(f"Need help with a similar job? Contact {company_name} today.")
        content = "".join(f"<p>{html_escape(p)}</p>" for p in paragraphs)
        return {'title': title, 'content': content}
