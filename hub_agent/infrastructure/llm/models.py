from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI, OpenAIEmbeddings

from hub_agent.infrastructure.config.settings import Settings


def build_chat_model(settings: Settings) -> BaseChatModel:
    """Main conversational model; streams tokens to the client"""
    return ChatOpenAI(model=settings.chat_model, temperature=settings.chat_temperature, streaming=True)


def build_creative_model(settings: Settings) -> BaseChatModel:
    """Higher-temperature model used for caption drafts"""
    return ChatOpenAI(model=settings.creative_model, temperature=settings.creative_temperature)


def build_embeddings(settings: Settings) -> Embeddings:
    return OpenAIEmbeddings(model=settings.embedding_model)
