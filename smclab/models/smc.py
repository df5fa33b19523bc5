"""Pydantic models for SMC analysis configuration."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SMCConfig(BaseModel):
    """Options recognised by the SMC engine.

    Field names are snake_case; the chart front-end sends camelCase, so both
    spellings are accepted. Out-of-range values fail at construction time.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    swing_length: int = Field(50, ge=1)
    internal_length: int = Field(5, ge=1)
    show_internal_structure: bool = True
    show_swing_structure: bool = True
    show_order_blocks: bool = True
    max_order_blocks: int = Field(5, ge=1)
    order_block_retention_multiplier: int = Field(4, ge=1)  # cap = max_order_blocks * this
    show_fvg: bool = Field(True, alias="showFVG")
    max_fair_value_gaps: int | None = Field(None, ge=1)  # None = keep every gap
    show_equal_hl: bool = Field(True, alias="showEqualHL")
    equal_hl_length: int = Field(3, ge=1, alias="equalHLLength")
    equal_hl_threshold: float = Field(0.1, ge=0.0, alias="equalHLThreshold")
    show_premium_discount: bool = True
    order_block_filter: Literal["atr", "range"] = "atr"
    order_block_mitigation: Literal["close", "highlow"] = "highlow"
    atr_period: int = Field(200, ge=1)

    @property
    def order_block_cap(self) -> int:
        return self.max_order_blocks * self.order_block_retention_multiplier
