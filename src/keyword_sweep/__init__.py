"""keyword-sweep — Pick money-losing keywords out of an ad report."""

__version__ = "0.1.0"

CANONICAL_FIELDS: list[str] = [
    "campaign",
    "keyword",
    "spend",
    "sales_14d",
    "impressions",
    "clicks",
]
