import datetime as dt

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PriceBar(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: dt.date
    open: float = Field(ge=0)
    high: float = Field(ge=0)
    low: float = Field(ge=0)
    close: float = Field(gt=0)
    volume: int = Field(ge=0)

    @model_validator(mode="after")
    def check_range(self) -> "PriceBar":
        if not (self.low <= self.open <= self.high and self.low <= self.close <= self.high):
            raise ValueError(
                f"Bar {self.date}: open/close must lie within [low, high]"
            )
        return self


class PriceSeries(BaseModel):
    """Daily bars ordered by strictly increasing date.

    Length floors are checked by each consuming operation, not here.
    """

    model_config = ConfigDict(frozen=True)

    bars: list[PriceBar] = Field(default_factory=list)

    @field_validator("bars")
    @classmethod
    def check_order(cls, bars: list[PriceBar]) -> list[PriceBar]:
        for prev, cur in zip(bars, bars[1:]):
            if cur.date <= prev.date:
                raise ValueError(
                    f"Bars must have strictly increasing dates: {prev.date} -> {cur.date}"
                )
        return bars

    def __len__(self) -> int:
        return len(self.bars)

    @property
    def closes(self) -> pd.Series:
        return pd.Series([b.close for b in self.bars], dtype="float64")

    @property
    def highs(self) -> pd.Series:
        return pd.Series([b.high for b in self.bars], dtype="float64")

    @property
    def lows(self) -> pd.Series:
        return pd.Series([b.low for b in self.bars], dtype="float64")

    @property
    def volumes(self) -> pd.Series:
        return pd.Series([b.volume for b in self.bars], dtype="float64")

    @property
    def last_close(self) -> float:
        return self.bars[-1].close

    def tail(self, n: int) -> "PriceSeries":
        return PriceSeries(bars=self.bars[-n:] if n > 0 else [])

    def truncated(self, n: int = 1) -> "PriceSeries":
        """Series with the last ``n`` bars dropped."""
        return PriceSeries(bars=self.bars[:-n] if n > 0 else list(self.bars))
