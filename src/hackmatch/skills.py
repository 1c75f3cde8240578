"""Skill taxonomy: the canonical dictionary, aliases and skill categories."""

import re
from typing import Iterable

# Lowercase dictionary entries scanned for in free text.
SKILL_DICTIONARY: list[str] = [
    # programming
    "javascript", "typescript", "python", "java", "c++", "c#", "golang", "rust",
    "swift", "kotlin", "php", "ruby", "scala", "sql", "html", "css", "sass",
    # frameworks
    "react", "react native", "angular", "vue.js", "svelte", "node.js", "express",
    "fastapi", "django", "flask", "spring boot", "laravel", "asp.net", "flutter",
    # databases
    "mysql", "postgresql", "mongodb", "redis", "elasticsearch", "sqlite",
    "dynamodb", "firebase",
    # cloud and tooling
    "aws", "azure", "gcp", "google cloud", "docker", "kubernetes", "terraform",
    "jenkins", "github actions", "git", "github", "gitlab", "jira", "figma",
    # methodologies and fields
    "agile", "scrum", "devops", "ci/cd", "microservices", "rest api", "graphql",
    "machine learning", "deep learning", "data science", "blockchain", "ui/ux",
]

# Alias spellings that are also worth scanning for.
SCAN_ALIASES: list[str] = [
    "react.js", "reactjs", "vue", "angularjs", "postgres", "k8s", "tensorflow", "pytorch",
]

# Canonical display form -> alternative spellings.
_ALIAS_GROUPS: dict[str, list[str]] = {
    "JavaScript": ["js", "ecmascript", "es6"],
    "TypeScript": ["ts"],
    "React": ["react.js", "reactjs"],
    "React Native": [],
    "Node.js": ["node", "nodejs", "node js"],
    "Vue.js": ["vue", "vuejs"],
    "Angular": ["angularjs", "angular.js"],
    "C++": ["cpp"],
    "C#": ["csharp"],
    "ASP.NET": [],
    ".NET": ["dotnet"],
    "Go": ["golang"],
    "Python": ["python3", "python 3"],
    "PHP": [],
    "HTML": ["html5"],
    "CSS": ["css3"],
    "SQL": [],
    "MySQL": [],
    "PostgreSQL": ["postgres"],
    "MongoDB": ["mongo"],
    "SQLite": [],
    "DynamoDB": [],
    "GraphQL": [],
    "REST API": ["rest", "restful api"],
    "API": [],
    "AWS": ["amazon web services"],
    "GCP": ["google cloud", "google cloud platform"],
    "Azure": ["microsoft azure"],
    "Kubernetes": ["k8s"],
    "GitHub": [],
    "GitHub Actions": [],
    "GitLab": [],
    "FastAPI": [],
    "DevOps": [],
    "CI/CD": [],
    "UI/UX": ["ux/ui"],
    "UI": [],
    "UX": [],
    "iOS": [],
    "NLP": [],
    "SEO": [],
    "TDD": [],
    "JSON": [],
    "XML": [],
    "TensorFlow": [],
    "PyTorch": [],
    "Machine Learning": ["ml"],
    "Artificial Intelligence": ["ai"],
}

_CANONICAL: dict[str, str] = {}
for _display, _aliases in _ALIAS_GROUPS.items():
    _CANONICAL[_display.lower()] = _display
    for _alias in _aliases:
        _CANONICAL[_alias.lower()] = _display

GENERAL_CATEGORY = "General"

SKILL_CATEGORIES: dict[str, set[str]] = {
    "Frontend": {"JavaScript", "TypeScript", "React", "Angular", "Vue.js", "Svelte", "HTML", "CSS", "Sass"},
    "Backend": {
        "Node.js", "Python", "Java", "C#", "C++", "Go", "PHP", "Ruby", "Rust", "Scala",
        "Express", "Django", "Flask", "FastAPI", "Spring Boot", "ASP.NET", ".NET", "Laravel",
        "REST API", "GraphQL", "Microservices",
    },
    "Database": {"SQL", "PostgreSQL", "MySQL", "MongoDB", "Redis", "SQLite", "DynamoDB", "Elasticsearch", "Firebase"},
    "Cloud": {"AWS", "Azure", "GCP", "Docker", "Kubernetes", "Terraform", "Jenkins", "DevOps", "CI/CD", "GitHub Actions"},
    "Mobile": {"React Native", "Flutter", "Swift", "Kotlin", "iOS", "Android"},
    "Data": {
        "Machine Learning", "Deep Learning", "Data Science", "Artificial Intelligence", "NLP",
        "Python", "R", "TensorFlow", "PyTorch", "Pandas",
    },
    "Design": {"Design", "UI/UX", "UI", "UX", "Figma", "Sketch", "Photoshop", "Illustrator"},
    "Business": {"Marketing", "SEO", "Sales", "Business", "Product Management", "Project Management", "Pitching"},
}

_CATEGORY_INDEX: dict[str, list[str]] = {}
for _category, _members in SKILL_CATEGORIES.items():
    for _member in _members:
        _CATEGORY_INDEX.setdefault(_member.lower(), []).append(_category)


def canonicalize_skill(skill: str) -> str:
    """Map a skill spelling to its display form.

    Known spellings use the alias table; anything else gets each word
    capitalized. ``canonicalize_skill(canonicalize_skill(s)) == canonicalize_skill(s)``.
    """
    cleaned = " ".join(str(skill).split()).strip(" ,;:")
    if not cleaned:
        return ""

    known = _CANONICAL.get(cleaned.lower())
    if known:
        return known

    return " ".join(word[:1].upper() + word[1:].lower() for word in cleaned.split(" "))


def skill_key(skill: str) -> str:
    """Case-insensitive comparison key for a skill."""
    return canonicalize_skill(skill).lower()


def normalize_skills(skills: Iterable[str]) -> list[str]:
    """Canonicalize and de-duplicate skills, keeping first occurrence order."""
    normalized: list[str] = []
    seen: set[str] = set()

    for skill in skills:
        canonical = canonicalize_skill(skill)
        key = canonical.lower()
        if canonical and key not in seen:
            seen.add(key)
            normalized.append(canonical)

    return normalized


def categorize_skill(skill: str) -> list[str]:
    """Categories a skill belongs to; uncategorized skills fall under General."""
    return list(_CATEGORY_INDEX.get(skill_key(skill), [GENERAL_CATEGORY]))


def skill_categories(skills: Iterable[str]) -> set[str]:
    categories: set[str] = set()
    for skill in skills:
        categories.update(categorize_skill(skill))
    return categories


def _variants(entry: str) -> list[str]:
    variants = [entry, entry.replace(".", ""), entry.replace(" ", ""), entry.replace(" ", "-")]
    return list(dict.fromkeys(v for v in variants if v))


def _compile_pattern(entry: str) -> re.Pattern:
    alternatives = "|".join(re.escape(v) for v in _variants(entry))
    return re.compile(rf"(?<![\w.+#])(?:{alternatives})(?![\w+#])", re.IGNORECASE)


SKILL_PATTERNS: list[tuple[str, re.Pattern]] = [
    (entry, _compile_pattern(entry)) for entry in SKILL_DICTIONARY + SCAN_ALIASES
]
