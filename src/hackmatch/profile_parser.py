"""Resume text to structured profile extraction.

Parsing is pattern based and line oriented: skills come from a dictionary
scan plus explicit label lines, experience and education from dated lines.
"""

import logging
import re
from datetime import datetime
from typing import Optional

from hackmatch.config import ProfileExtractionConfig
from hackmatch.models import EducationEntry, ExperienceEntry, ParsedProfile, ParseResult
from hackmatch.skills import SKILL_PATTERNS, canonicalize_skill

logger = logging.getLogger(__name__)

INVALID_INPUT_ERROR = "empty or invalid input"

_OPEN_END = r"present|current|now"

_SKILL_LABEL_RE = re.compile(
    r"^[ \t]*(?:technical skills|skills|technologies|technology|tech stack|tools)[ \t]*:[ \t]*(.+?)[ \t.]*$",
    re.IGNORECASE | re.MULTILINE,
)
_SKILL_PHRASE_RE = re.compile(
    r"\b(?:proficient in|experienced (?:with|in)|experience with|skilled in)[ \t]*:?[ \t]*(.+?)(?=\.\s|\.?$)",
    re.IGNORECASE | re.MULTILINE,
)
_AND_RE = re.compile(r"\band\b", re.IGNORECASE)
_ITEM_RE = re.compile(r"[^,;]+")

_DATED_EXPERIENCE_RE = re.compile(
    rf"^(\d{{4}})(?:\s*[-–]\s*(\d{{4}}|{_OPEN_END}))?\s*:\s*(.+?)\s+at\s+(.+?)$",
    re.IGNORECASE,
)
_TRAILING_DATE_EXPERIENCE_RE = re.compile(
    rf"^(?:[-*•]\s*)?(.+?)\s+at\s+(.+?)\s*\((\d{{4}})\s*[-–]\s*(\d{{4}}|{_OPEN_END})\)$",
    re.IGNORECASE,
)
_DATED_EDUCATION_RE = re.compile(r"^(\d{4})\s*:\s*([^,]+?)\s*,\s*(.+?)$")
_TRAILING_DATE_EDUCATION_RE = re.compile(r"^(?:[-*•]\s*)?([^,]+?)\s*,\s*(.+?)\s*\((\d{4})\)$")
_BULLET_RE = re.compile(r"^[-*•]\s*(.+)$")
_YEARS_STATEMENT_RE = re.compile(r"\b(\d{1,2}(?:\.\d+)?)\+?\s+years?\b", re.IGNORECASE)


class ProfileParser:
    """Extracts skills, experience and education from resume text."""

    def __init__(
        self,
        config: Optional[ProfileExtractionConfig] = None,
        current_year: Optional[int] = None,
    ):
        self.config = config or ProfileExtractionConfig()
        self._current_year = current_year

    @property
    def current_year(self) -> int:
        return self._current_year or datetime.now().year

    def parse(
        self,
        content: object,
        mime_type: Optional[str] = "text/plain",
        user_id: Optional[str] = None,
    ) -> ParseResult:
        """Parse a resume into a ParsedProfile.

        Empty content, non-string content and non-text MIME types fail with
        ``"empty or invalid input"`` instead of raising.
        """
        if not isinstance(content, str) or not content.strip():
            return ParseResult(success=False, error=INVALID_INPUT_ERROR)
        if mime_type and not mime_type.lower().startswith("text/"):
            return ParseResult(success=False, error=INVALID_INPUT_ERROR)

        skills = self.extract_skills(content)
        experience = self.extract_experience(content)
        education = self.extract_education(content)

        sections = (skills, experience, education)
        confidence = sum(1 for section in sections if section) / len(sections)

        profile = ParsedProfile(
            user_id=user_id,
            skills=skills,
            experience=experience,
            education=education,
            experience_years=self.estimate_experience_years(content, experience),
            summary=self.extract_summary(content),
            confidence=confidence,
        )

        logger.debug(
            "Parsed profile for %s: %d skills, %d positions, %d degrees",
            user_id or "anonymous", len(skills), len(experience), len(education),
        )
        return ParseResult(success=True, profile=profile, confidence=confidence)

    # ============ Skills ============

    def extract_skills(self, text: str) -> list[str]:
        """Find skills in order of first appearance, de-duplicated and capped."""
        found: list[tuple[int, str]] = []

        for entry, pattern in SKILL_PATTERNS:
            match = pattern.search(text)
            if match:
                found.append((match.start(), canonicalize_skill(entry)))

        for regex in (_SKILL_LABEL_RE, _SKILL_PHRASE_RE):
            for match in regex.finditer(text):
                found.extend(self._split_skill_list(match.group(1), match.start(1)))

        found.sort(key=lambda item: item[0])

        skills: list[str] = []
        seen: set[str] = set()
        for _, skill in found:
            key = skill.lower()
            if skill and key not in seen:
                seen.add(key)
                skills.append(skill)

        return skills[:self.config.max_skills]

    def _split_skill_list(self, segment: str, offset: int) -> list[tuple[int, str]]:
        # Swap "and" for a same-width separator so offsets stay valid.
        segment = _AND_RE.sub(lambda m: "," + " " * (len(m.group()) - 1), segment)

        items = []
        for match in _ITEM_RE.finditer(segment):
            raw = match.group()
            item = raw.strip().rstrip(".")
            if not item or len(item) > 40 or len(item.split()) > 4:
                continue
            position = offset + match.start() + (len(raw) - len(raw.lstrip()))
            items.append((position, canonicalize_skill(item)))
        return items

    # ============ Experience ============

    def extract_experience(self, text: str) -> list[ExperienceEntry]:
        """Dated positions in document order; bullet lines below become the description."""
        entries: list[ExperienceEntry] = []
        current: Optional[ExperienceEntry] = None
        bullets: list[str] = []

        def flush() -> None:
            if current is not None:
                if bullets:
                    current.description = " ".join(bullets)
                entries.append(current)

        for line in text.splitlines():
            stripped = line.strip()
            entry = self._match_experience(stripped)
            if entry is not None:
                flush()
                current, bullets = entry, []
                continue

            bullet = _BULLET_RE.match(stripped)
            if current is not None and bullet:
                bullets.append(bullet.group(1).strip())
                continue

            flush()
            current, bullets = None, []

        flush()
        return entries[:self.config.max_experience_entries]

    def _match_experience(self, line: str) -> Optional[ExperienceEntry]:
        match = _DATED_EXPERIENCE_RE.match(line)
        if match:
            start, end, title, company = match.groups()
            return self._experience_entry(title, company, start, end)

        match = _TRAILING_DATE_EXPERIENCE_RE.match(line)
        if match:
            title, company, start, end = match.groups()
            return self._experience_entry(title, company, start, end)

        return None

    def _experience_entry(self, title: str, company: str, start: str, end: Optional[str]) -> ExperienceEntry:
        start_year = int(start)
        if end is None:
            end_year = start_year
        elif end.isdigit():
            end_year = int(end)
        else:
            end_year = self.current_year

        # A single-year entry counts as one year of work.
        years = float(end_year - start_year) if end is not None else 1.0
        return ExperienceEntry(
            title=_clean(title),
            company=_clean(company),
            start_year=start_year,
            end_year=end_year,
            years=max(years, 0.0),
        )

    def estimate_experience_years(self, text: str, experience: list[ExperienceEntry]) -> float:
        """Larger of the summed position spans and any "N years" statement."""
        summed = sum(entry.years for entry in experience)
        stated = [float(m.group(1)) for m in _YEARS_STATEMENT_RE.finditer(text)]
        return max([summed, *stated])

    # ============ Education ============

    def extract_education(self, text: str) -> list[EducationEntry]:
        entries: list[EducationEntry] = []

        for line in text.splitlines():
            stripped = line.strip()
            if self._match_experience(stripped) is not None:
                continue

            match = _DATED_EDUCATION_RE.match(stripped)
            if match:
                year, degree, institution = match.groups()
            else:
                match = _TRAILING_DATE_EDUCATION_RE.match(stripped)
                if not match:
                    continue
                degree, institution, year = match.groups()

            entries.append(EducationEntry(
                degree=_clean(degree),
                institution=_clean(institution),
                year=int(year),
            ))

        return entries[:self.config.max_education_entries]

    # ============ Summary ============

    def extract_summary(self, text: str) -> str:
        for line in text.splitlines():
            stripped = line.strip()
            if stripped:
                return stripped[:self.config.summary_max_length]
        return ""


def _clean(value: str) -> str:
    return " ".join(value.split()).strip(" ,;:-")
