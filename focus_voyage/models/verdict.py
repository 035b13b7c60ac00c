from pydantic import BaseModel, Field


class Verdict(BaseModel):
    """Classifier answer for one snapshot"""
    relevant: bool = Field(description="True when the snapshot shows engaged, on-goal work")
    confidence: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Classifier confidence (0-1)"
    )
    reasoning: str = Field(default="", description="Short explanation from the classifier")
