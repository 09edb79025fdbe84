"""
Content Quality Analyzer

Pure scoring of generated article text: readability, structure, keyword
optimization and SEO hygiene rolled into one bounded composite score with
actionable recommendations. No I/O and no hidden state, so analyzing the
same text twice always gives the same report.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from contentops.services.ai.requests import GenerationRequest

WORDS_PER_MINUTE = 200

OPTIMAL_DENSITY_MIN = 0.01
OPTIMAL_DENSITY_MAX = 0.02
DENSITY_ZERO_AT = 0.06

SCORE_WEIGHTS = {
    "seo": 0.3,
    "readability": 0.25,
    "structure": 0.25,
    "keywords": 0.2,
}

CONCLUSION_INDICATORS = (
    "conclusion", "summary", "finally", "in summary",
    "to conclude", "in conclusion", "overall", "takeaway",
)

TRANSITION_WORDS = (
    "however", "therefore", "furthermore", "moreover",
    "additionally", "consequently", "meanwhile", "nevertheless",
)

MAX_RECOMMENDATIONS = 10

_HEADING_LINE = re.compile(r"^(#+)\s+(.+)$", re.MULTILINE)
_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class QualityContext:
    target_keyword: str = ""
    keywords: Tuple[str, ...] = ()
    target_word_count: Optional[int] = None
    template: Optional[str] = None

    @classmethod
    def from_request(cls, request: GenerationRequest) -> "QualityContext":
        return cls(
            target_keyword=request.primary_keyword,
            keywords=request.keywords,
            target_word_count=request.target_word_count,
            template=request.template,
        )


@dataclass
class QualityReport:
    word_count: int
    sentence_count: int
    paragraph_count: int
    reading_time: int
    heading_levels: List[int]
    proper_hierarchy: bool
    has_introduction: bool
    has_conclusion: bool
    has_transitions: bool
    keyword_density: float
    keyword_densities: Dict[str, float]
    density_score: float
    readability_score: int
    structure_score: int
    seo_score: int
    word_count_score: float
    overall_score: int
    issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "word_count": self.word_count,
            "sentence_count": self.sentence_count,
            "paragraph_count": self.paragraph_count,
            "reading_time": self.reading_time,
            "heading_levels": self.heading_levels,
            "proper_hierarchy": self.proper_hierarchy,
            "has_introduction": self.has_introduction,
            "has_conclusion": self.has_conclusion,
            "has_transitions": self.has_transitions,
            "keyword_density": round(self.keyword_density, 4),
            "keyword_densities": {k: round(v, 4) for k, v in self.keyword_densities.items()},
            "density_score": round(self.density_score, 1),
            "readability_score": self.readability_score,
            "structure_score": self.structure_score,
            "seo_score": self.seo_score,
            "word_count_score": round(self.word_count_score, 1),
            "overall_score": self.overall_score,
            "issues": self.issues,
            "recommendations": self.recommendations,
        }


def _clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def count_words(content: str) -> int:
    return len(content.split())


def split_paragraphs(content: str) -> List[str]:
    return [p.strip() for p in _PARAGRAPH_SPLIT.split(content) if p.strip()]


def count_sentences(content: str) -> int:
    # Fragments of ten characters or fewer are list markers and abbreviations
    return len([s for s in _SENTENCE_SPLIT.split(content) if len(s.strip()) > 10])


def heading_levels(content: str) -> List[int]:
    return [len(match.group(1)) for match in _HEADING_LINE.finditer(content)]


def has_proper_hierarchy(levels: Sequence[int]) -> bool:
    """No heading descends more than one level below the one before it"""
    return all(b - a <= 1 for a, b in zip(levels, levels[1:]))


def keyword_occurrences(content: str, keyword: str) -> int:
    keyword = keyword.strip()
    if not keyword:
        return 0
    pattern = r"\b" + r"\s+".join(re.escape(part) for part in keyword.split()) + r"\b"
    return len(re.findall(pattern, content, flags=re.IGNORECASE))


def keyword_density(content: str, keyword: str) -> float:
    """Whole-word, case-insensitive occurrences per word of content (0..1)"""
    words = count_words(content)
    if words == 0:
        return 0.0
    return keyword_occurrences(content, keyword) / words


def density_score(density: float) -> float:
    """Map a keyword density to 0..100.

    1%-2% scores 100. Below 1% the score falls linearly to 0 at 0%; above 2%
    it decays linearly to 0 at 6%.
    """
    if density <= 0:
        return 0.0
    if density < OPTIMAL_DENSITY_MIN:
        return density / OPTIMAL_DENSITY_MIN * 100
    if density <= OPTIMAL_DENSITY_MAX:
        return 100.0
    return _clamp(100 * (DENSITY_ZERO_AT - density) / (DENSITY_ZERO_AT - OPTIMAL_DENSITY_MAX))


def has_introduction(paragraphs: Sequence[str]) -> bool:
    for paragraph in paragraphs:
        if paragraph.startswith("#"):
            continue
        return len(paragraph) >= 100
    return False


def has_conclusion(paragraphs: Sequence[str]) -> bool:
    if not paragraphs:
        return False
    candidates = [paragraphs[-1].lower()]
    headings = [p for p in paragraphs if p.startswith("#")]
    if headings:
        candidates.append(headings[-1].lower())
    return any(indicator in text for text in candidates for indicator in CONCLUSION_INDICATORS)


def has_transitions(content: str) -> bool:
    lowered = content.lower()
    return any(re.search(rf"\b{word}\b", lowered) for word in TRANSITION_WORDS)


def readability_score(content: str, words: int, sentences: int, paragraphs: int, headings: int) -> int:
    if words == 0:
        return 0
    score = 100

    avg_sentence_length = words / max(sentences, 1)
    if avg_sentence_length > 25:
        score -= 15
    elif avg_sentence_length < 8:
        score -= 10

    if words / max(paragraphs, 1) > 150:
        score -= 10

    if headings / max(paragraphs, 1) < 0.2:
        score -= 15

    complex_words = sum(1 for word in content.split() if len(re.sub(r"[^a-zA-Z]", "", word)) > 6)
    if complex_words / words > 0.2:
        score -= 10

    return int(_clamp(score))


def structure_score(intro: bool, conclusion: bool, hierarchy: bool, paragraphs: int, transitions: bool) -> int:
    score = 100
    if not intro:
        score -= 15
    if not conclusion:
        score -= 15
    if not hierarchy:
        score -= 10
    if paragraphs < 3:
        score -= 20
    if not transitions:
        score -= 10
    return int(_clamp(score))


def word_count_score(words: int, target: Optional[int]) -> float:
    if not target:
        return 100.0
    return _clamp(100 - abs(words - target) / target * 100)


def template_recommendations(template: Optional[str], content: str) -> List[str]:
    lowered = content.lower()
    if template == "Product Showcase" and "benefit" not in lowered:
        return ["Highlight product benefits and value propositions"]
    if template == "How-to Guide" and "1." not in content and "step" not in lowered:
        return ["Use numbered steps or a clear step-by-step format"]
    if template == "Buying Guide" and ("pros" not in lowered or "cons" not in lowered):
        return ["Include a pros and cons comparison"]
    if template == "Review Article" and "rating" not in lowered and "score" not in lowered:
        return ["Add a rating or scoring summary"]
    if template == "Industry Trends" and not re.search(r"\d+%|\d{4}", content):
        return ["Support trends with data points and dates"]
    return []


def analyze(content: str, context: Optional[QualityContext] = None) -> QualityReport:
    """Score article text against the given keyword and length targets"""
    context = context or QualityContext()
    content = content or ""

    words = count_words(content)
    sentences = count_sentences(content)
    paragraphs = split_paragraphs(content)
    levels = heading_levels(content)
    hierarchy = has_proper_hierarchy(levels)
    intro = has_introduction(paragraphs)
    conclusion = has_conclusion(paragraphs)
    transitions = has_transitions(content)

    keywords = tuple(dict.fromkeys(k for k in (context.target_keyword, *context.keywords) if k))
    densities = {keyword: keyword_density(content, keyword) for keyword in keywords}
    target_density = densities.get(context.target_keyword, 0.0) if context.target_keyword else 0.0
    target_density_score = density_score(target_density) if context.target_keyword else 0.0

    readability = readability_score(content, words, sentences, len(paragraphs), len(levels))
    structure = structure_score(intro, conclusion, hierarchy, len(paragraphs), transitions)
    length_score = word_count_score(words, context.target_word_count)

    issues: List[str] = []
    recommendations: List[str] = []

    missing = [k for k, d in densities.items() if d == 0]
    over_optimized = [k for k, d in densities.items() if d > OPTIMAL_DENSITY_MAX]
    for keyword, density in densities.items():
        if density == 0:
            issues.append(f"Keyword \"{keyword}\" does not appear")
            recommendations.append(f"Add keyword \"{keyword}\" naturally in the content")
        elif density > OPTIMAL_DENSITY_MAX:
            issues.append(f"Keyword \"{keyword}\" is over-optimized ({density:.1%})")
            recommendations.append(f"Reduce frequency of \"{keyword}\" (current: {density:.1%})")
        elif density < OPTIMAL_DENSITY_MIN:
            recommendations.append(f"Consider using \"{keyword}\" more frequently (current: {density:.1%})")

    seo = 100 - 15 * len(missing) - 10 * len(over_optimized)
    if len(levels) < 2:
        seo -= 10
        recommendations.append("Add more headings to improve content structure")
    if length_score < 90:
        seo -= 10
    seo = int(_clamp(seo))

    if readability < 70:
        issues.append("Readability below target")
        recommendations.append("Break down long sentences for better readability")
        recommendations.append("Use simpler language where possible")

    if not intro:
        issues.append("Missing introduction")
        recommendations.append("Add a clear introduction paragraph")
    if not conclusion:
        issues.append("Missing conclusion")
        recommendations.append("Include a conclusion summarizing key points")
    if not hierarchy:
        issues.append("Heading levels skip a level")
        recommendations.append("Nest headings one level at a time")
    if not transitions:
        recommendations.append("Use transition words to connect sections")

    target = context.target_word_count
    if target and abs(words - target) / target > 0.1:
        if words < target:
            recommendations.append(f"Expand content to reach target word count ({target} words)")
        else:
            recommendations.append(f"Consider condensing content (current: {words}, target: {target})")

    recommendations.extend(template_recommendations(context.template, content))

    keyword_component = target_density_score if context.target_keyword else 0.0
    overall = (
        seo * SCORE_WEIGHTS["seo"]
        + readability * SCORE_WEIGHTS["readability"]
        + structure * SCORE_WEIGHTS["structure"]
        + keyword_component * SCORE_WEIGHTS["keywords"]
    )

    return QualityReport(
        word_count=words,
        sentence_count=sentences,
        paragraph_count=len(paragraphs),
        reading_time=math.ceil(words / WORDS_PER_MINUTE),
        heading_levels=levels,
        proper_hierarchy=hierarchy,
        has_introduction=intro,
        has_conclusion=conclusion,
        has_transitions=transitions,
        keyword_density=target_density,
        keyword_densities=densities,
        density_score=target_density_score,
        readability_score=readability,
        structure_score=structure,
        seo_score=seo,
        word_count_score=length_score,
        overall_score=int(round(_clamp(overall))),
        issues=issues,
        recommendations=recommendations[:MAX_RECOMMENDATIONS],
    )
