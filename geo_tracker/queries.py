"""
GEO Queries
===========

The queries tracked on every run. Each query carries several
natural-language search terms that are sent as prompts to each
LLM source, giving varied angles on the same topic.

Edit DEFAULT_QUERIES to add, remove, or change tracked queries.
"""

from dataclasses import dataclass
from enum import Enum

from .exceptions import ConfigurationError


class QueryCategory(str, Enum):
    """Grouping used for filtering in the analytics dashboard"""

    PRODUCT = "product"
    TECHNOLOGY = "technology"
    TREND = "trend"
    USE_CASE = "use-case"
    COMPETITOR = "competitor"
    ORGANIZATION = "organization"


@dataclass(frozen=True)
class Query:
    """A tracked query"""
    id: str  # kebab-case, stable across runs
    name: str
    search_terms: tuple[str, ...]
    category: QueryCategory

    def __post_init__(self):
        if not self.id:
            raise ConfigurationError("Query id must not be empty")
        if isinstance(self.search_terms, str):
            raise ConfigurationError(f"Query {self.id!r}: search_terms must be a sequence of strings")
        # Accept any sequence but store a tuple so the query stays immutable
        object.__setattr__(self, "search_terms", tuple(self.search_terms))
        if not self.search_terms:
            raise ConfigurationError(f"Query {self.id!r} needs at least one search term")
        try:
            object.__setattr__(self, "category", QueryCategory(self.category))
        except ValueError:
            raise ConfigurationError(f"Query {self.id!r}: unknown category {self.category!r}") from None


DEFAULT_QUERIES: tuple[Query, ...] = (
    # === Development Seed Products ===
    Query(
        id="lonboard",
        name="lonboard",
        search_terms=(
            "What is lonboard and how do I use it?",
            "What Python libraries can I use to create a dynamic map tile server?",
            "How can I view large vector datasets in a jupyter notebook?",
        ),
        category=QueryCategory.PRODUCT,
    ),
    Query(
        id="titiler",
        name="titiler",
        search_terms=(
            "What is titiler and how does it serve map tiles from cloud-optimized geotiffs?",
            "How do I serve COG tiles on the fly without pre-generating a tile cache?",
            "Best open source tools for dynamic raster tile serving",
        ),
        category=QueryCategory.PRODUCT,
    ),

    # === Geospatial Technologies ===
    Query(
        id="stac",
        name="STAC",
        search_terms=(
            "Open source tools for working with lots of geospatial data",
            "How do I implement STAC?",
            "What tools and libraries exist for working with STAC APIs?",
            "Best practices for organizing and cataloging geospatial data",
        ),
        category=QueryCategory.TECHNOLOGY,
    ),
    Query(
        id="cng",
        name="Cloud Native Geospatial",
        search_terms=(
            "What is Cloud Native Geospatial and why should I use it?",
            "How do I store and serve geospatial data in the cloud?",
            "Experts in Cloud Native Geospatial",
            "Best practices for storing raster data in the cloud",
        ),
        category=QueryCategory.TECHNOLOGY,
    ),

    # === Industry Trends ===
    Query(
        id="satellite-imagery",
        name="Satellite Imagery",
        search_terms=(
            "What are the best open source tools for processing satellite imagery?",
            "How do I analyze Landsat or Sentinel satellite data with Python?",
            "What companies and organizations build tools for satellite imagery analysis?",
            "How is satellite imagery being used for climate change monitoring?",
        ),
        category=QueryCategory.TREND,
    ),
    Query(
        id="climate-data",
        name="Climate Data",
        search_terms=(
            "What tools are available for analyzing climate and environmental geospatial data?",
            "How can I visualize and explore climate datasets using open source tools?",
            "What organizations are building platforms for climate data analysis?",
            "Best approaches for working with large-scale climate datasets in the cloud",
        ),
        category=QueryCategory.TREND,
    ),

    # === Organization ===
    Query(
        id="development-seed",
        name="Development Seed",
        search_terms=(
            "What is Development Seed and what products do they build?",
            "What open source geospatial tools has Development Seed created?",
            "Which companies are leaders in open source geospatial technology?",
        ),
        category=QueryCategory.ORGANIZATION,
    ),
)
