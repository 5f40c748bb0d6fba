"""
Type-specific configuration payloads.

Data source and transformation configs are tagged unions keyed by their
`type` discriminator, so each variant carries its own typed fields instead of
a free-form string-keyed map.
"""

import enum
from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any, Union, Literal
from typing_extensions import Annotated


# ============================================================================
# Data Source Configs
# ============================================================================

class FileFormat(str, enum.Enum):
    CSV = "csv"
    JSON = "json"


class DatabaseSourceConfig(BaseModel):
    """Connection parameters for database-like sources"""
    type: Literal["database"] = "database"
    host: str = Field(..., min_length=1)
    port: int = Field(5432, ge=1, le=65535)
    database: str = Field(..., min_length=1)
    user: str = Field(..., min_length=1)
    password: Optional[str] = None
    table: Optional[str] = None
    query: Optional[str] = None


class FileSourceConfig(BaseModel):
    """Local file sources read and written with pandas"""
    type: Literal["file"] = "file"
    file_path: str = Field(..., min_length=1)
    format: FileFormat = FileFormat.CSV


class ApiSourceConfig(BaseModel):
    """REST endpoint sources"""
    type: Literal["api"] = "api"
    url: str = Field(..., min_length=1)
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    params: Dict[str, Any] = Field(default_factory=dict)
    records_path: Optional[str] = Field(None, description="Key holding the record list in a JSON object response")
    timeout: float = Field(30.0, gt=0)

    @validator("method")
    def normalize_method(cls, v):
        return v.upper()


class FtpSourceConfig(BaseModel):
    """FTP server sources"""
    type: Literal["ftp"] = "ftp"
    host: str = Field(..., min_length=1)
    port: int = Field(21, ge=1, le=65535)
    path: str = "/"
    user: Optional[str] = None
    password: Optional[str] = None


class MemorySourceConfig(BaseModel):
    """In-process sources holding their records inline"""
    type: Literal["memory"] = "memory"
    data: List[Dict[str, Any]] = Field(default_factory=list)


DataSourceConfig = Annotated[
    Union[
        DatabaseSourceConfig,
        FileSourceConfig,
        ApiSourceConfig,
        FtpSourceConfig,
        MemorySourceConfig,
    ],
    Field(discriminator="type"),
]


class ExtractionConfig(BaseModel):
    """Extraction options applied by connectors"""
    limit: Optional[int] = Field(None, ge=0, description="Maximum number of records to fetch")
    fields: Optional[List[str]] = Field(None, description="Fields to keep on each record")
    filters: Dict[str, Any] = Field(default_factory=dict, description="Equality filters applied on extraction")


# ============================================================================
# Transformation Configs
# ============================================================================

class FilterOperator(str, enum.Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUALS = "greater_than_or_equals"
    LESS_THAN_OR_EQUALS = "less_than_or_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IN = "in"
    NOT_IN = "not_in"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    BETWEEN = "between"
    REGEX = "regex"


class FilterLogic(str, enum.Enum):
    AND = "and"
    OR = "or"


class FilterCondition(BaseModel):
    field: str
    operator: FilterOperator = FilterOperator.EQUALS
    value: Any = None


class FilterConfig(BaseModel):
    """Keep records for which the combined conditions hold"""
    type: Literal["filter"] = "filter"
    conditions: List[FilterCondition] = Field(default_factory=list)
    logic: FilterLogic = FilterLogic.AND


class FieldMapping(BaseModel):
    source: str
    target: str


class MapConfig(BaseModel):
    """Copy/rename fields on every record"""
    type: Literal["map"] = "map"
    mappings: List[FieldMapping] = Field(default_factory=list)
    include_original: bool = True


class AggregateFunction(str, enum.Enum):
    COUNT = "COUNT"
    SUM = "SUM"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"
    FIRST = "FIRST"
    LAST = "LAST"
    ARRAY_AGG = "ARRAY_AGG"


class Aggregation(BaseModel):
    function: AggregateFunction
    field: str = ""
    as_: str = Field(..., alias="as")

    @validator("function", pre=True)
    def upper_function(cls, v):
        return v.upper() if isinstance(v, str) else v

    class Config:
        populate_by_name = True


class AggregateConfig(BaseModel):
    """Group records and reduce each group to one summary record"""
    type: Literal["aggregate"] = "aggregate"
    group_by: List[str] = Field(default_factory=list)
    aggregations: List[Aggregation] = Field(default_factory=list)


class JoinCondition(BaseModel):
    left_field: str
    right_field: str


class JoinField(BaseModel):
    field: str
    as_: Optional[str] = Field(None, alias="as")

    class Config:
        populate_by_name = True


class JoinConfig(BaseModel):
    """
    Enrich records from a reference dataset (left join, first match wins).

    The reference dataset is either inline (reference_data) or extracted from
    a registered data source (reference_source_id).
    """
    type: Literal["join"] = "join"
    reference_source_id: Optional[str] = None
    reference_data: List[Dict[str, Any]] = Field(default_factory=list)
    conditions: List[JoinCondition] = Field(default_factory=list)
    include_fields: List[JoinField] = Field(default_factory=list)


class CustomConfig(BaseModel):
    """Apply a function registered on the transformation engine by name"""
    type: Literal["custom"] = "custom"
    function: str = Field(..., min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)


TransformationConfig = Annotated[
    Union[
        FilterConfig,
        MapConfig,
        AggregateConfig,
        JoinConfig,
        CustomConfig,
    ],
    Field(discriminator="type"),
]


def with_type_tag(config: Any, type_value: Any) -> Any:
    """Attach the owning entity's type to a raw config mapping so the union can discriminate."""
    if type_value is None:
        return config
    if config is None:
        return {"type": type_value}
    if isinstance(config, dict) and "type" not in config:
        return {**config, "type": type_value}
    return config
