"""
Prompt rendering for both request schemas.
"""

from contentops.services.ai.requests import (
    GenerationRequest,
    LegacyGenerationRequest,
    ProviderRequest
)

SYSTEM_PROMPT = (
    "You are an expert content writer producing original, well-structured "
    "articles for an e-commerce blog."
)

TEMPLATE_INSTRUCTIONS = {
    "How-to Guide": [
        "Create clear, step-by-step instructions",
        "Use numbered lists and bullet points",
        "Include practical examples and tips",
        "Add troubleshooting sections where relevant",
    ],
    "Product Showcase": [
        "Focus on product benefits and unique value propositions",
        "Highlight key features, benefits, and use cases",
        "Include comparison opportunities with alternatives",
    ],
    "Artist Showcase": [
        "Focus on cultural significance and artistic value",
        "Include historical context and background",
        "Create engaging storytelling around the artist or artwork",
    ],
    "Buying Guide": [
        "Create a structured comparison framework",
        "Include pros and cons analysis",
        "Provide clear recommendations and guidance",
    ],
    "Industry Trends": [
        "Focus on current market developments",
        "Include data-driven insights and statistics",
        "Connect trends to practical business impact",
    ],
    "Review Article": [
        "Include detailed evaluation criteria",
        "Provide a balanced assessment with pros and cons",
        "Provide a clear recommendation and conclusion",
    ],
}


def _bullets(lines) -> str:
    return "\n".join(f"- {line}" for line in lines)


def build_topic_prompt(request: GenerationRequest) -> str:
    keywords = ", ".join(request.keywords) if request.keywords else request.title
    words = request.target_word_count

    prompt = f"""Create a comprehensive {words}-word article about "{request.title}".

**Content Requirements:**
- Topic: {request.title}
- Target Keywords: {keywords}
- Tone: {request.tone}
- Word Count: {words} words
- Template Style: {request.template}

**Response Format:**
Please provide your response in this EXACT format:

TITLE: [An engaging, SEO-optimized title (30-60 characters) that includes the main keyword naturally]

META_DESCRIPTION: [A compelling meta description (150-160 characters) that includes the primary keyword]

CONTENT:
[The article body in markdown with clear headings - about {words} words]

**Writing Guidelines:**
- Include target keywords naturally with a density of 1-2%
- Create clear, engaging headings for each section
- Write an engaging introduction and a conclusion
- Structure content logically with smooth transitions"""

    instructions = TEMPLATE_INSTRUCTIONS.get(request.template)
    if instructions:
        prompt += f"\n\n**Template Requirements ({request.template}):**\n{_bullets(instructions)}"

    if request.optimize_for_seo:
        secondary = ", ".join(request.keywords[1:5]) or "none"
        prompt += f"""

**SEO Requirements:**
- Primary keyword: "{request.primary_keyword}"
- Use the primary keyword in the title, the first 100 words and one H2 heading
- Secondary keywords: {secondary}
- Keep keyword density between 1% and 2%"""

    return prompt


def build_prompt(request: ProviderRequest) -> str:
    """Render the provider-facing prompt for either request schema"""
    if isinstance(request, LegacyGenerationRequest):
        return request.prompt
    return build_topic_prompt(request)
