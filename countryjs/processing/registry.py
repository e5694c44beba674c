from typing import Dict, Iterable, Iterator, List

import pandas as pd
from pydantic import BaseModel, validator


class Country(BaseModel):
    code: str
    name: str

    @validator("code", "name")
    def check_not_empty(cls, v):
        if not v:
            raise ValueError("must not be empty")
        return v


def by_code(countries: Iterable[Country]) -> List[Country]:
    # sorted() is stable; str comparison is code point order
    return sorted(countries, key=lambda c: c.code)


def by_name(countries: Iterable[Country]) -> List[Country]:
    return sorted(countries, key=lambda c: c.name)


class CountryRegistry:
    """ISO code -> display name mapping for a single locale.

    Built once from a parsed locale file, read by the emitters, then thrown
    away. Orderings return fresh lists so one emitter never sees another's
    sort.
    """

    COLUMNS = ["code", "name"]

    def __init__(self, locale: str, frame: pd.DataFrame):
        self.locale = locale
        self._df = frame[self.COLUMNS].reset_index(drop=True)

    @classmethod
    def from_countries(
        cls, locale: str, countries: Iterable[Country]
    ) -> "CountryRegistry":
        rows = [{"code": c.code, "name": c.name} for c in countries]
        df = pd.DataFrame(rows, columns=cls.COLUMNS, dtype=object)
        # duplicate codes: the last occurrence wins
        df = df.drop_duplicates(subset="code", keep="last")
        df = df.sort_values("code", kind="mergesort")
        return cls(locale, df)

    def __len__(self) -> int:
        return len(self._df)

    def __iter__(self) -> Iterator[Country]:
        return iter(self.by_code())

    def __contains__(self, code: object) -> bool:
        return code in set(self._df["code"])

    def _to_countries(self, df: pd.DataFrame) -> List[Country]:
        return [
            Country(code=code, name=name)
            for code, name in zip(df["code"], df["name"])
        ]

    def by_code(self) -> List[Country]:
        return self._to_countries(self._df.sort_values("code", kind="mergesort"))

    def by_name(self) -> List[Country]:
        return self._to_countries(self._df.sort_values("name", kind="mergesort"))

    def codes(self) -> List[str]:
        return [c.code for c in self.by_code()]

    def mapping(self) -> Dict[str, str]:
        return dict(zip(self._df["code"], self._df["name"]))

    def to_frame(self) -> pd.DataFrame:
        return self._df.copy()
