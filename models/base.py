from sqlalchemy import JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# ENUMS
# ============================================================================

class DataSourceType(str, enum.Enum):
    """Data source types"""
    DATABASE = "database"
    FILE = "file"
    API = "api"
    FTP = "ftp"
    MEMORY = "memory"


class DataSourceStatus(str, enum.Enum):
    """Data source availability"""
    ACTIVE = "active"
    INACTIVE = "inactive"


class TransformationType(str, enum.Enum):
    """Transformation types"""
    FILTER = "filter"
    MAP = "map"
    AGGREGATE = "aggregate"
    JOIN = "join"
    CUSTOM = "custom"


class JobStatus(str, enum.Enum):
    """Job run status"""
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    ABORTED = "aborted"


TERMINAL_STATUSES = frozenset({JobStatus.SUCCESS, JobStatus.ERROR, JobStatus.ABORTED})


class JobFrequency(str, enum.Enum):
    """Schedule frequency descriptor (scheduling itself is not performed)"""
    MANUAL = "manual"
    ONCE = "once"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class LogLevel(str, enum.Enum):
    """Job run log levels"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AlertSeverity(str, enum.Enum):
    """Alert severity"""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    DESTRUCTIVE = "destructive"


class AlertCategory(str, enum.Enum):
    """Alert category"""
    IMPORT = "import"
    EXPORT = "export"
    DATA_QUALITY = "data_quality"
    CONNECTION = "connection"
    TRANSFORM = "transform"
    VALIDATION = "validation"
    PERFORMANCE = "performance"
    SYSTEM = "system"
    JOB = "job"
    DATA_SOURCE = "data_source"
    TRANSFORMATION = "transformation"


class SystemStatus(str, enum.Enum):
    """System / scheduler health"""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    STARTING = "starting"
    ONLINE = "online"
    RUNNING = "running"
