"""
Subject catalogue — O-Level subjects and their syllabus topics.

The onboarding wizard sends subject and topic ids; everything downstream
(quiz prompts, study plans, progress records) works from the resolved
Subject / Topic objects here.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field


# ── Data classes ───────────────────────────────────────────────────────

@dataclass
class Topic:
    id: str      # "alg"
    name: str    # "Algebra"


@dataclass
class Subject:
    id: str                       # "math"
    name: str                     # "Mathematics"
    category: str                 # "math"|"science"|"humanities"|"language"
    topics: list[Topic] = field(default_factory=list)

    def topic(self, topic_id: str) -> Topic | None:
        for t in self.topics:
            if t.id == topic_id:
                return t
        return None

    def to_dict(self) -> dict:
        return asdict(self)


def _topics(*pairs: tuple[str, str]) -> list[Topic]:
    return [Topic(id=tid, name=name) for tid, name in pairs]


# ── Catalogue ──────────────────────────────────────────────────────────

SUBJECTS: list[Subject] = [
    Subject("math", "Mathematics", "math", _topics(
        ("arithmetic", "Basic Arithmetic"),
        ("algebra", "Algebra"),
        ("geometry", "Geometry"),
        ("trigonometry", "Trigonometry"),
        ("statistics", "Statistics & Probability"),
        ("mensuration", "Mensuration"),
    )),
    Subject("amath", "Additional Mathematics", "math", _topics(
        ("quadratics", "Quadratic Functions"),
        ("indices", "Indices, Surds & Logarithms"),
        ("calculus", "Differentiation & Integration"),
        ("coordinate", "Coordinate Geometry"),
    )),
    Subject("english", "English Language", "language", _topics(
        ("grammar", "Grammar"),
        ("writing", "Continuous Writing"),
        ("comprehension", "Comprehension"),
        ("summary", "Summary Writing"),
    )),
    Subject("physics", "Physics", "science", _topics(
        ("kinematics", "Kinematics"),
        ("dynamics", "Dynamics"),
        ("energy", "Energy, Work & Power"),
        ("electricity", "Current Electricity"),
        ("waves", "Waves & Light"),
    )),
    Subject("chemistry", "Chemistry", "science", _topics(
        ("atomic", "Atomic Structure"),
        ("bonding", "Chemical Bonding"),
        ("mole", "The Mole Concept"),
        ("acids", "Acids, Bases & Salts"),
        ("organic", "Organic Chemistry"),
    )),
    Subject("biology", "Biology", "science", _topics(
        ("cells", "Cell Structure"),
        ("nutrition", "Nutrition in Humans"),
        ("transport", "Transport in Plants & Humans"),
        ("genetics", "Inheritance"),
        ("ecology", "Ecology"),
    )),
    Subject("history", "History", "humanities", _topics(
        ("ww1", "World War I"),
        ("interwar", "The Interwar Years"),
        ("coldwar", "The Cold War"),
    )),
    Subject("geography", "Geography", "humanities", _topics(
        ("tectonics", "Plate Tectonics"),
        ("weather", "Weather & Climate"),
        ("tourism", "Tourism"),
    )),
]

_BY_ID: dict[str, Subject] = {s.id: s for s in SUBJECTS}


def get_subject(subject_id: str) -> Subject | None:
    """Return a subject by id, or None."""
    return _BY_ID.get(subject_id)


def get_topics(subject_id: str, topic_ids: list[str] | None = None) -> list[Topic]:
    """Topics of a subject, optionally narrowed to ``topic_ids`` (catalogue order)."""
    subject = get_subject(subject_id)
    if subject is None:
        return []
    if topic_ids is None:
        return list(subject.topics)
    wanted = set(topic_ids)
    return [t for t in subject.topics if t.id in wanted]


def catalogue() -> list[dict]:
    """JSON-ready catalogue for the subject picker."""
    return [s.to_dict() for s in SUBJECTS]
