"""Search and chat result models"""

from typing import Any

from pydantic import BaseModel, Field

from autodocops.models.artifact import SourceType


class SimilarityMatch(BaseModel):
    """A stored document matching a similarity query"""

    document_id: str = Field(description="Matching document id")
    similarity: float = Field(ge=-1.0, le=1.0, description="Cosine similarity to the query")
    type: SourceType = Field(description="Corpus the document belongs to (api, database)")
    project_id: str | None = Field(default=None, description="Owning project")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Document metadata")
    content: str = Field(default="", description="Stored document content")


class QueryInfo(BaseModel):
    """Metadata about the query execution"""

    original_query: str = Field(description="The query that was executed")
    total_results: int = Field(ge=0, description="Number of results above the threshold")
    query_time_ms: float = Field(ge=0.0, description="Query execution time in milliseconds")


class SemanticSearchOutput(BaseModel):
    """Complete output from the semantic_search tool"""

    results: list[SimilarityMatch] = Field(description="Ranked matches, best first")
    query_info: QueryInfo = Field(description="Metadata about the query")


class ChatAnswer(BaseModel):
    """Answer to a semantic chat question"""

    answer: str = Field(description="Generated answer")
    context: str = Field(description="Context the answer was grounded on")
    matches: list[SimilarityMatch] = Field(
        default_factory=list, description="Documents retrieved as context"
    )
    from_cache: bool = Field(default=False)
