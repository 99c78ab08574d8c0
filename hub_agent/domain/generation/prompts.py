from langchain_core.prompts import PromptTemplate


CAPTION_GENERATION_PROMPT = PromptTemplate.from_template(
    """You are an expert social media copywriter. Write a single post caption about the topic below.

**Brand Voice Rules (ONLY follow these rules, do not add any additional requirements):**
{rules}

**Topic:**
{topic}

Write an engaging caption that fits the topic and meets ALL brand voice rules listed above. Output only the caption.
"""
)

CAPTION_REFINEMENT_PROMPT = PromptTemplate.from_template(
    """You are an expert social media copywriter. Your task is to refine a post caption that failed to meet brand voice guidelines.

**Brand Voice Rules (ONLY follow these rules, do not add any additional requirements):**
{rules}

**Original Caption:**
{failed_caption}

**Feedback & Issues:**
{feedback}

**Original Post Details:**
- Topic: {topic}

Rewrite the caption to fix the issues, meet ALL brand voice rules listed above, and fulfill the original post topic. Only follow the rules explicitly listed above - do not include any requirements, styles, or elements that are not mentioned in the rules. Output only the new caption.
"""
)

APPLY_SUGGESTIONS_PROMPT = PromptTemplate.from_template(
    """You are an expert social media copywriter. Your task is to rewrite a post caption to incorporate a specific list of suggestions.

**Original Caption:**
{caption}

**Suggestions to Apply:**
{suggestions}

Rewrite the caption to apply all suggestions. Output only the new, improved caption.
"""
)

BRAND_GRADER_PROMPT = PromptTemplate.from_template(
    """You are an expert brand voice analyst. Your task is to grade a post caption against a set of brand voice rules.

Provide a score (0-100) and a brief justification for each rule. The score should reflect how well the caption adheres to the rule.
Then, provide an overall score (0-100) and 2-3 actionable suggestions for improvement.

**Brand Rules:**
{rules}

**Post Caption:**
{caption}
"""
)

BRAND_RULE_EXTRACTION_PROMPT = PromptTemplate.from_template(
    """You are an expert brand strategist. Your task is to analyze the provided brand guidelines document and extract a structured list of actionable brand voice rules.

The rules will be used to grade social media content before publishing. Ignore any rules that cannot be validated by reading the post content.

**Input Text:**

{text}

Extract distinct, actionable rules. Each rule must have a clear title and a description explaining how to apply it. Ignore administrative text or filler.
"""
)
