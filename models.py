from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime
from typing import NamedTuple, Optional, Literal, List, Union


TradeType = Literal["win", "loss", "breakeven"]


class EconomicEvent(BaseModel):
    """Economic calendar event attached to a trade."""
    name: str
    impact: str
    currency: str


class TradeRecord(BaseModel):
    """A journaled trade, the source of a searchable embedding."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    calendar_id: Optional[str] = None
    trade_type: TradeType
    amount: float
    date: datetime
    name: Optional[str] = None
    session: Optional[str] = None
    entry: Optional[Union[str, float]] = None
    exit: Optional[Union[str, float]] = None
    risk_to_reward: Optional[float] = None
    partials_taken: bool = False
    tags: List[str] = []
    notes: Optional[str] = None
    economic_events: List[EconomicEvent] = []


class EmbeddingKey(NamedTuple):
    """Composite identity of a stored trade embedding."""
    trade_id: str
    calendar_id: str
    user_id: str


class DateRange(BaseModel):
    """Inclusive trade date window."""
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def check_order(self):
        if self.end < self.start:
            raise ValueError("date_range end must not be before start")
        return self


class SearchOptions(BaseModel):
    """Options for similarity search over trade embeddings."""
    similarity_threshold: Optional[float] = Field(None, ge=-1.0, le=1.0)
    max_results: Optional[int] = Field(None, ge=1)
    trade_types: Optional[List[TradeType]] = None
    date_range: Optional[DateRange] = None
    tags: Optional[List[str]] = None


class StoredEmbedding(BaseModel):
    """A row of the trade_embeddings table."""
    model_config = ConfigDict(from_attributes=True)

    trade_id: str
    calendar_id: str
    user_id: str
    trade_type: Optional[str] = None
    trade_amount: Optional[float] = None
    trade_date: Optional[datetime] = None
    trade_session: Optional[str] = None
    tags: List[str] = []
    embedding: List[float] = []
    embedded_content: str
    updated_at: Optional[datetime] = None


class TradeSearchResult(BaseModel):
    """A ranked similarity search hit."""
    trade_id: str
    similarity: float
    trade_type: Optional[str] = None
    trade_amount: Optional[float] = None
    trade_date: Optional[datetime] = None
    trade_session: Optional[str] = None
    tags: List[str] = []
    embedded_content: str


class EmbeddingStats(BaseModel):
    """Embedding coverage of a calendar."""
    total_embeddings: int
    last_updated: Optional[datetime] = None
