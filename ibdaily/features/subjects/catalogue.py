"""
Built-in IB Diploma subject catalogue.

Seeded into an empty store at startup. Ids are derived from the subject code
so reseeding updates rows in place instead of duplicating them.
"""
import logging
from typing import Dict, List, Tuple

from ibdaily.features.store.base import Store
from ibdaily.models.subject import Subject, Unit

logger = logging.getLogger("ibdaily.subjects")

GROUPS = {
    1: "Studies in Language and Literature",
    2: "Language Acquisition",
    3: "Individuals and Societies",
    4: "Sciences",
    5: "Mathematics",
    6: "The Arts",
}

# (code, transcript name, full name, group, SL available, HL available)
SUBJECTS: List[Tuple[str, str, str, int, bool, bool]] = [
    ("ENG_A_LL", "English A Lang & Lit", "English A: Language and Literature", 1, True, True),
    ("ENG_A_LIT", "English A Lit", "English A: Literature", 1, True, True),
    ("SPANISH_B", "Spanish B", "Spanish B", 2, True, True),
    ("FRENCH_AB", "French ab initio", "French ab initio", 2, True, False),
    ("ECONOMICS", "Economics", "Economics", 3, True, True),
    ("HISTORY", "History", "History", 3, True, True),
    ("PSYCHOLOGY", "Psychology", "Psychology", 3, True, True),
    ("BIOLOGY", "Biology", "Biology", 4, True, True),
    ("CHEMISTRY", "Chemistry", "Chemistry", 4, True, True),
    ("PHYSICS", "Physics", "Physics", 4, True, True),
    ("ESS", "ESS", "Environmental Systems and Societies", 4, True, True),
    ("MATH_AA", "Math AA", "Mathematics: Analysis and Approaches", 5, True, True),
    ("MATH_AI", "Math AI", "Mathematics: Applications and Interpretation", 5, True, True),
    ("VISUAL_ARTS", "Visual Arts", "Visual Arts", 6, True, True),
]

_MATH_TOPICS = [
    ("Number and algebra", "BOTH"),
    ("Functions", "BOTH"),
    ("Geometry and trigonometry", "BOTH"),
    ("Statistics and probability", "BOTH"),
    ("Calculus", "BOTH"),
]

# code -> [(unit name, level scope)] in teaching order
UNITS: Dict[str, List[Tuple[str, str]]] = {
    "BIOLOGY": [
        ("Unity and diversity", "BOTH"),
        ("Form and function", "BOTH"),
        ("Interaction and interdependence", "BOTH"),
        ("Continuity and change", "BOTH"),
    ],
    "CHEMISTRY": [
        ("Models of the particulate nature of matter", "BOTH"),
        ("Models of bonding and structure", "BOTH"),
        ("Classification of matter", "BOTH"),
        ("What drives chemical reactions?", "BOTH"),
        ("How much, how fast and how far?", "BOTH"),
        ("What are the mechanisms of chemical change?", "BOTH"),
    ],
    "PHYSICS": [
        ("Space, time and motion", "BOTH"),
        ("The particulate nature of matter", "BOTH"),
        ("Wave behaviour", "BOTH"),
        ("Fields", "BOTH"),
        ("Nuclear and quantum physics", "BOTH"),
    ],
    "ESS": [
        ("Foundation", "BOTH"),
        ("Ecology", "BOTH"),
        ("Biodiversity and conservation", "BOTH"),
        ("Water", "BOTH"),
        ("Land", "BOTH"),
        ("Atmosphere and climate change", "BOTH"),
        ("Natural resources", "BOTH"),
        ("Human populations and urban systems", "BOTH"),
        ("Environmental law, economics and ethics", "HL_ONLY"),
    ],
    "MATH_AA": _MATH_TOPICS + [("Proof, complex numbers and series", "HL_ONLY")],
    "MATH_AI": _MATH_TOPICS + [("Modelling with technology", "SL_ONLY")],
}


def subject_id_for(code: str) -> str:
    return code.lower()


def catalogue_subjects() -> List[Subject]:
    return [
        Subject(
            id=subject_id_for(code),
            subject_code=code,
            transcript_name=transcript,
            full_name=full,
            group_name=GROUPS[group],
            group_number=group,
            sl_available=sl,
            hl_available=hl,
            has_units=code in UNITS,
        )
        for code, transcript, full, group, sl, hl in SUBJECTS
    ]


def catalogue_units() -> List[Unit]:
    result = []
    for code, entries in UNITS.items():
        subject_id = subject_id_for(code)
        for index, (name, scope) in enumerate(entries, start=1):
            result.append(
                Unit(
                    id=f"{subject_id}-{index}",
                    subject_id=subject_id,
                    name=name,
                    order_index=index,
                    level_scope=scope,
                )
            )
    return result


def seed_catalogue(store: Store) -> int:
    """Upsert every catalogue subject and unit. Returns the subject count."""
    subjects = catalogue_subjects()
    for subject in subjects:
        store.save_subject(subject)
    for unit in catalogue_units():
        store.save_unit(unit)
    logger.info("subjects.seeded", extra={"subjects": len(subjects)})
    return len(subjects)
