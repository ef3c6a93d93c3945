"""Collection property definitions and provider module settings."""

from __future__ import annotations

from typing import Any, Dict, List

from weaviate.classes.config import Configure, DataType, Property

from .config import ModelProvider, SourceKind

HISTORY_PROPERTIES: List[Property] = [
    Property(name="timestamp", data_type=DataType.TEXT, description="The timestamp of the message"),
    Property(name="role", data_type=DataType.TEXT, description="The role of the message sender (user or assistant)"),
    Property(name="content", data_type=DataType.TEXT, description="The message content"),
]

# Discord message payloads.  The store's auto-schema picks up any additional
# fields a payload carries.
DISCORD_PROPERTIES: List[Property] = [
    Property(name="messageID", data_type=DataType.TEXT, description="Discord snowflake of the message"),
    Property(name="channel_id", data_type=DataType.TEXT, description="Channel the message was posted in"),
    Property(name="guild_id", data_type=DataType.TEXT, description="Guild the channel belongs to"),
    Property(name="role", data_type=DataType.TEXT, description="The role of the message sender (user or assistant)"),
    Property(name="content", data_type=DataType.TEXT, description="The message content"),
    Property(name="timestamp", data_type=DataType.TEXT, description="When the message was sent"),
    Property(name="edited_timestamp", data_type=DataType.TEXT, description="When the message was last edited"),
    Property(name="type", data_type=DataType.INT, description="Discord message type"),
    Property(name="tts", data_type=DataType.BOOL, description="Whether this was a text-to-speech message"),
    Property(name="mention_everyone", data_type=DataType.BOOL, description="Whether the message mentions everyone"),
    Property(name="pinned", data_type=DataType.BOOL, description="Whether the message is pinned"),
    Property(
        name="author",
        data_type=DataType.OBJECT,
        description="User who sent the message",
        nested_properties=[
            Property(name="id", data_type=DataType.TEXT),
            Property(name="username", data_type=DataType.TEXT),
            Property(name="global_name", data_type=DataType.TEXT),
            Property(name="bot", data_type=DataType.BOOL),
        ],
    ),
]

SCHEMAS: Dict[SourceKind, Dict[str, Any]] = {
    SourceKind.HISTORY: {"description": "Dialog history collection", "properties": HISTORY_PROPERTIES},
    SourceKind.DISCORD: {"description": "Discord message collection", "properties": DISCORD_PROPERTIES},
}

GENERATIVE_MAX_TOKENS = 1024
GENERATIVE_TEMPERATURE = 0.8


def vectorizer_config(provider: ModelProvider) -> Any:
    """text2vec module bound to ``provider``."""
    if provider is ModelProvider.MISTRAL:
        return Configure.Vectorizer.text2vec_mistral(
            model="mistral-embed",
            vectorize_collection_name=True,
        )
    return Configure.Vectorizer.text2vec_openai(
        model="text-embedding-3-large",
        dimensions=512,
        vectorize_collection_name=True,
    )


def generative_config(provider: ModelProvider) -> Any:
    """Generative module bound to ``provider``."""
    if provider is ModelProvider.MISTRAL:
        return Configure.Generative.mistral(
            model="mistral-small-latest",
            max_tokens=GENERATIVE_MAX_TOKENS,
            temperature=GENERATIVE_TEMPERATURE,
        )
    return Configure.Generative.openai(
        model="gpt-3.5-turbo",
        max_tokens=GENERATIVE_MAX_TOKENS,
        temperature=GENERATIVE_TEMPERATURE,
    )
