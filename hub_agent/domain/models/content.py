from typing import Dict, Any, List, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from datetime import datetime


class CamelModel(BaseModel):
    """Base model accepting both snake_case and camelCase keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BrandRule(CamelModel):
    """A brand voice rule owned by a calendar"""
    id: str
    calendar_id: str
    title: str
    description: str
    enabled: bool = True


class Post(CamelModel):
    """A scheduled social media post"""
    id: str
    calendar_id: str
    date: datetime
    caption: str = ""
    images: List[str] = Field(default_factory=list)
    platform: Literal["instagram", "twitter", "linkedin"] = "instagram"
    status: Literal["draft", "awaiting_approval", "approved", "rejected", "published"] = "draft"
    author_id: Optional[str] = None
    author_name: Optional[str] = None


class Note(CamelModel):
    """A rich-text note; content is a list of editor nodes"""
    id: str
    calendar_id: str
    title: str = ""
    content: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class MediaItem(CamelModel):
    """An uploaded media file"""
    id: str
    calendar_id: str
    url: str
    filename: str
    size: int = 0
    type: str = "image/png"
    created_at: datetime = Field(default_factory=datetime.utcnow)


class RuleScore(CamelModel):
    """Score for a single brand rule"""
    rule_id: str = Field(description="The ID of the brand rule being evaluated.")
    score: float = Field(ge=0, le=100, description="The score (0-100) for this specific rule.")
    feedback: str = Field(description="The justification for the score, explaining how the caption met or failed the rule.")


class BrandScore(CamelModel):
    """Grade of a caption against the enabled brand rules"""
    overall: float = Field(ge=0, le=100, description="The overall weighted score (0-100) for the caption.")
    rules: List[RuleScore] = Field(default_factory=list, description="The breakdown of scores for each individual brand rule.")
    suggestions: List[str] = Field(default_factory=list, description="Specific, actionable suggestions for improving the caption to better match the brand voice.")


class CaptionGenerationRequest(CamelModel):
    """Input for the reflect-refine generator"""
    topic: str = Field(description="The main topic of the post.")
    existing_caption: Optional[str] = Field(None, description="An existing caption to edit or refine.")


class GeneratedCaption(CamelModel):
    """One draft produced during generation"""
    caption: str
    score: Optional[BrandScore] = None
    refined: bool = False


class CaptionResult(CamelModel):
    """Best caption plus every draft that was graded"""
    caption: str
    score: Optional[BrandScore] = None
    drafts: List[GeneratedCaption] = Field(default_factory=list)


class ExtractedRule(CamelModel):
    """A rule extracted from a brand guidelines document"""
    title: str = Field(description="Short title of the rule.")
    description: str = Field(description="How to apply the rule when writing a post.")


class ExtractedBrandRules(CamelModel):
    """Rules extracted from a brand guidelines document"""
    rules: List[ExtractedRule] = Field(default_factory=list, description="Distinct, actionable brand voice rules.")
