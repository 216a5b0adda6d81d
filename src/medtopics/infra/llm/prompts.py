"""Prompt templates for the LLM-backed classifiers.

Every prompt asks for a raw JSON object; replies are still cleaned
and validated by the caller.
"""

from collections.abc import Sequence

from medtopics.models.classifier import TopicCategoryInput, TopicClassifyInput
from medtopics.taxonomy import Category, TopicType

__all__ = [
    "CATEGORY_SYSTEM",
    "CLASSIFY_SYSTEM",
    "COMPARE_SYSTEM",
    "MATCH_SYSTEM",
    "build_extract_system",
    "format_category_batch",
    "format_classify_batch",
    "format_comparison",
    "format_match_batch",
    "format_source",
]

_TYPE_LIST = ", ".join(
    t.value for t in TopicType if t not in (TopicType.OTHER, TopicType.NON_MEDICAL)
)
_CATEGORY_LIST = "\n".join(f"- {c.value}" for c in Category)

CLASSIFY_SYSTEM = f"""You are a medical terminology classifier. You receive health topics,
each with a name and optionally a short description.

Classify each topic into exactly one of these types:
{_TYPE_LIST}

Rules:
- Names describing a sensation, pain, bleeding or swelling are Symptoms.
- Interventions performed by a clinician are Procedures; tests and imaging are Diagnostic Tests.
- Use the description to decide when a name fits several types.
- Answer "{TopicType.NON_MEDICAL.value}" for topics that are not medical (natural disasters,
  economics, politics).
- Answer "{TopicType.OTHER.value}" for medical topics too ambiguous to classify.
- Return the exact type names above, never synonyms. Answer for every topic.

Return ONLY a raw JSON object mapping each topic name, exactly as given, to its type.
Example: {{"Asthma": "Disease", "Ibuprofen": "Drug", "Stock Market": "Non-Medical"}}"""

CATEGORY_SYSTEM = f"""You are a medical category classifier. You receive health topics with
their name, type and a short description. Assign each topic exactly one category:
{_CATEGORY_LIST}

Mandatory mappings by type:
- Drug -> {Category.DRUGS.value}
- Procedure -> {Category.PROCEDURES.value}
- Diagnostic Test -> {Category.DIAGNOSTIC.value}
- Vaccine -> {Category.PREVENTIVE.value}
- Nutrient -> {Category.NUTRITION.value}
- Lifestyle -> {Category.WELLNESS.value}
- Mental Health -> {Category.MENTAL.value}

Return ONLY a raw JSON object mapping each topic name to its category, spelled exactly as above."""

COMPARE_SYSTEM = """You are a medical terminology expert. You receive two health topic names:
a newly discovered CANDIDATE and an EXISTING knowledge-base entry.

Decide whether both names describe the exact same medical subject. Related conditions,
subtypes and different scopes are NOT the same subject ("Acute Bronchitis" and
"Bronchitis" are different). If they are synonyms, prefer the broader term, then plain
English over jargon, then the standard noun form.

Return ONLY a raw JSON object:
{"preferred": "<better name, or 'different' if the subjects differ>",
 "replace": <true if the candidate should replace the existing name, else false>}"""

MATCH_SYSTEM = """You are a medical terminology matcher. You receive normalised topic names
and candidate original names from a data provider. For each normalised name, find the
candidate that refers to the SAME condition. Only match when confident.

Return ONLY a raw JSON object mapping each normalised name to its matching candidate.
Omit names without a match."""

_EXTRACT_BASE = """You are a data extraction system for a health knowledge base.
Extract information ONLY from the source text. Do not add anything from general medical
knowledge that the text does not state. The source may contain several providers
separated by --- under [SourceName] headers; synthesise them into one entry and leave
out claims that contradict each other.

{type_instructions}

{name_instruction}

Field rules:
- "summary": up to 6 sentences paraphrasing only what the text says.
- "observations", "factors", "actions": concise items, each traceable to the text,
  [] when the text does not cover the field.
- "citations": guidelines or bodies explicitly named in the text, else [].
- "tags": up to 8 search terms taken from the text.
- Do not include a "category" field.
- Write in English.

Return raw JSON only with this schema:
{{"name": "", "summary": "", "observations": [], "factors": [], "actions": [],
 "citations": [], "tags": []}}"""

_GENERIC_INSTRUCTIONS = """Interpret the fields with their standard medical meaning:
- "observations": signs and symptoms
- "factors": causes and risk factors
- "actions": treatments and management strategies"""

_TYPE_INSTRUCTIONS: dict[str, str] = {
    TopicType.DRUG: """This topic is a DRUG. Interpret the fields as:
- "actions": uses and indications
- "observations": side effects and adverse reactions
- "factors": contraindications and warnings""",
    TopicType.PROCEDURE: """This topic is a PROCEDURE. Interpret the fields as:
- "actions": conditions it treats
- "observations": risks and complications
- "factors": reasons the procedure is needed""",
    TopicType.DIAGNOSTIC_TEST: """This topic is a DIAGNOSTIC TEST. Interpret the fields as:
- "actions": conditions it tests for
- "observations": risks and complications
- "factors": reasons the test is needed""",
    TopicType.SYMPTOM: """This topic is a SYMPTOM. Interpret the fields as:
- "factors": conditions or factors that cause it
- "actions": management strategies and remedies
- "observations": associated or related symptoms""",
    TopicType.VACCINE: """This topic is a VACCINE. Interpret the fields as:
- "actions": diseases it prevents
- "observations": side effects
- "factors": contraindications""",
    TopicType.ANATOMY: """This topic is an ANATOMY topic. Interpret the fields as:
- "actions": treatments
- "observations": conditions affecting this body part or system
- "factors": risk factors""",
    TopicType.NUTRIENT: """This topic is a NUTRIENT. Interpret the fields as:
- "actions": health benefits and medical uses
- "observations": deficiency or excess symptoms
- "factors": dietary sources and factors affecting levels""",
    TopicType.MENTAL_HEALTH: """This topic is a MENTAL HEALTH topic. Interpret the fields as:
- "actions": therapies and management strategies
- "observations": psychological and behavioural symptoms
- "factors": risk factors and contributing causes""",
    TopicType.LIFESTYLE: """This topic is a LIFESTYLE topic. Interpret the fields as:
- "actions": recommendations and strategies
- "observations": health issues or risks discussed
- "factors": contributing factors""",
}
_TYPE_INSTRUCTIONS_BY_LOWER = {k.lower(): v for k, v in _TYPE_INSTRUCTIONS.items()}

_NAMING_RULES = """Naming rules:
- Use the standard noun form ("Shoulder Dislocation", not "Dislocated Shoulder").
- Drop severity and temporal qualifiers ("Acute Bronchitis" -> "Bronchitis") but keep
  qualifiers naming a distinct condition ("Breast Cancer", "Type 1 Diabetes").
- Prefer plain English a general audience recognises, and well-known abbreviations
  (COPD, HIV, PTSD) over expanded forms.
- Use American English spelling."""


def build_extract_system(topic_type: str | None, discovered_name: str | None) -> str:
    """System prompt for structured extraction of one topic."""
    type_instructions = _TYPE_INSTRUCTIONS_BY_LOWER.get(
        (topic_type or "").strip().lower(), _GENERIC_INSTRUCTIONS
    )
    if discovered_name:
        name_instruction = (
            f'The topic was discovered as "{discovered_name}". Determine the medical '
            "condition this text describes and name it.\n" + _NAMING_RULES
        )
    else:
        name_instruction = "Identify the medical condition this text describes.\n" + _NAMING_RULES
    return _EXTRACT_BASE.format(
        type_instructions=type_instructions,
        name_instruction=name_instruction,
    )


def format_classify_batch(batch: Sequence[TopicClassifyInput], snippets: Sequence[str | None]) -> str:
    lines = [
        f"- {topic.name}: {snippet}" if snippet else f"- {topic.name}"
        for topic, snippet in zip(batch, snippets, strict=True)
    ]
    return "TOPICS:\n" + "\n".join(lines)


def format_category_batch(batch: Sequence[TopicCategoryInput], snippets: Sequence[str | None]) -> str:
    lines = []
    for topic, snippet in zip(batch, snippets, strict=True):
        topic_type = topic.topic_type or TopicType.OTHER.value
        description = f": {snippet}" if snippet else ""
        lines.append(f"- {topic.name} (Type: {topic_type}){description}")
    return "TOPICS:\n" + "\n".join(lines)


def format_comparison(candidate: str, existing: str) -> str:
    return f"CANDIDATE (newly discovered): {candidate}\nEXISTING (already stored): {existing}"


def format_match_batch(batch: Sequence[str], candidates: Sequence[str]) -> str:
    candidate_text = ", ".join(f'"{c}"' for c in candidates)
    names_text = "\n".join(f"- {n}" for n in batch)
    return (
        f"CANDIDATE ORIGINAL NAMES:\n{candidate_text}\n\n"
        f"NORMALISED NAMES TO MATCH:\n{names_text}"
    )


def format_source(raw_text: str) -> str:
    return f"SOURCE TEXT:\n{raw_text}"
