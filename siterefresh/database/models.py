"""
SQLAlchemy Models for the Redesign Pipeline

Design Principles:
1. One profile per canonical URL (unique, upserted)
2. One run per pipeline execution, updated stage by stage
3. Terminal runs are immutable
4. Skills are versioned, never edited in place
5. Store raw prompts/responses (debugging)
"""

import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, Text,
    ForeignKey, Enum, Index, UniqueConstraint, JSON, Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Naive UTC timestamp (all columns store UTC without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# ENUMS
# =============================================================================

class RunStatus(enum.Enum):
    """Lifecycle of a pipeline run."""
    PENDING = "pending"        # Placeholder created, nothing fetched yet
    RUNNING = "running"        # Raw page stored, agents in progress
    COMPLETE = "complete"      # All stages finished
    FAILED = "failed"          # Fatal error, see error_message
    TIMED_OUT = "timed_out"    # Deadline hit, partial result kept


TERMINAL_STATUSES = (RunStatus.COMPLETE, RunStatus.FAILED, RunStatus.TIMED_OUT)

# Statuses that leave a viewable result behind
RESULT_STATUSES = (RunStatus.COMPLETE, RunStatus.TIMED_OUT)

MAX_LAYOUT_SLOTS = 6


# =============================================================================
# PROFILES
# =============================================================================

class UrlProfile(Base):
    """One row per canonical target URL"""
    __tablename__ = "url_profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    # Canonical identity (host + path + sorted query, no scheme)
    url = Column(String(2048), nullable=False)
    domain = Column(String(255), nullable=False)

    # Detected context; locked fields are never overwritten automatically
    industry = Column(String(100))
    industry_locked = Column(Boolean, default=False, nullable=False)
    cms = Column(String(50))
    cms_locked = Column(Boolean, default=False, nullable=False)

    # Tracking
    analysis_count = Column(Integer, default=0, nullable=False)
    first_analyzed_at = Column(DateTime)
    last_analyzed_at = Column(DateTime)
    latest_score = Column(Integer)
    best_score = Column(Integer)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    runs = relationship("AnalysisRun", back_populates="profile", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("url", name="uq_profile_url"),
        Index("idx_profile_domain", "domain"),
    )


# =============================================================================
# RUNS
# =============================================================================

class AnalysisRun(Base):
    """Each pipeline execution - the central entity"""
    __tablename__ = "analysis_runs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    profile_id = Column(Uuid(as_uuid=True), ForeignKey("url_profiles.id"), nullable=False)
    target_url = Column(String(2048), nullable=False)

    # Shared with the requester to view the result
    access_token = Column(String(64), nullable=False)

    # Status tracking
    status = Column(Enum(RunStatus), default=RunStatus.PENDING, nullable=False)
    current_stage = Column(String(30))

    # Raw input snapshot
    html = Column(Text, default="")
    css = Column(Text, default="")
    screenshot_url = Column(String(2048))

    # Skill versions used, {"score": 3, ...}
    skill_versions = Column(JSONType, default=dict)

    # Stage 1 outputs
    screenshot_analysis = Column(JSONType)
    industry_seo = Column(JSONType)
    brand_assets = Column(JSONType)
    industry = Column(String(100))
    industry_confidence = Column(Float)

    # Stage 2 outputs (0-100)
    overall_score = Column(Integer, default=0)
    clarity_score = Column(Integer, default=0)
    visual_score = Column(Integer, default=0)
    hierarchy_score = Column(Integer, default=0)
    trust_score = Column(Integer, default=0)
    conversion_score = Column(Integer, default=0)
    content_score = Column(Integer, default=0)
    mobile_score = Column(Integer, default=0)
    performance_score = Column(Integer, default=0)
    scoring_details = Column(JSONType, default=list)
    creative_brief = Column(JSONType)

    # Stage 4
    benchmark_comparison = Column(JSONType)

    # Timing
    started_at = Column(DateTime, default=utcnow)
    completed_at = Column(DateTime)
    duration_seconds = Column(Float)

    error_message = Column(Text)

    created_at = Column(DateTime, default=utcnow)

    profile = relationship("UrlProfile", back_populates="runs")
    layouts = relationship(
        "RunLayout",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="RunLayout.slot",
    )

    __table_args__ = (
        UniqueConstraint("access_token", name="uq_run_access_token"),
        Index("idx_run_profile_time", "profile_id", "created_at"),
        Index("idx_run_status", "status"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class RunLayout(Base):
    """One generated layout variant per slot"""
    __tablename__ = "run_layouts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    run_id = Column(Uuid(as_uuid=True), ForeignKey("analysis_runs.id"), nullable=False)

    slot = Column(Integer, nullable=False)  # 1..MAX_LAYOUT_SLOTS
    direction = Column(String(50), nullable=False)  # creative-modern, ...
    html = Column(Text, nullable=False)
    css = Column(Text, default="")
    rationale = Column(Text, default="")

    # Advisory leak scan findings
    leak_matches = Column(JSONType, default=list)

    # How the document was recovered from the response
    extraction_method = Column(String(20), default="tagged")
    truncated = Column(Boolean, default=False)

    created_at = Column(DateTime, default=utcnow)

    run = relationship("AnalysisRun", back_populates="layouts")

    __table_args__ = (
        UniqueConstraint("run_id", "slot", name="uq_run_layout_slot"),
    )


# =============================================================================
# CONFIGURATION & REFERENCE DATA
# =============================================================================

class AgentSkill(Base):
    """Versioned agent configuration (system prompt, model, sampling)"""
    __tablename__ = "agent_skills"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    slug = Column(String(50), nullable=False)
    version = Column(Integer, nullable=False, default=1)

    system_prompt = Column(Text, nullable=False)
    model = Column(String(100))        # None = client default
    temperature = Column(Float)        # None = agent default
    max_tokens = Column(Integer)       # None = agent default

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("slug", "version", name="uq_skill_version"),
        Index("idx_skill_active", "slug", "is_active"),
    )


class IndustryBenchmark(Base):
    """A scored reference site within an industry (read-only here)"""
    __tablename__ = "industry_benchmarks"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    industry = Column(String(100), nullable=False)
    url = Column(String(2048), nullable=False)

    overall_score = Column(Integer, nullable=False)
    clarity_score = Column(Integer, default=0)
    visual_score = Column(Integer, default=0)
    hierarchy_score = Column(Integer, default=0)
    trust_score = Column(Integer, default=0)
    conversion_score = Column(Integer, default=0)
    content_score = Column(Integer, default=0)
    mobile_score = Column(Integer, default=0)
    performance_score = Column(Integer, default=0)

    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_benchmark_industry", "industry"),
    )


class PromptLog(Base):
    """Log of every provider call - for debugging prompt regressions"""
    __tablename__ = "prompt_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    run_id = Column(Uuid(as_uuid=True), ForeignKey("analysis_runs.id", ondelete="SET NULL"), nullable=True)

    step = Column(String(50), nullable=False)
    model = Column(String(100))
    prompt = Column(Text)
    response = Column(Text)

    input_tokens = Column(Integer, default=0)
    output_tokens = Column(Integer, default=0)
    latency_ms = Column(Integer)

    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_prompt_log_run", "run_id", "created_at"),
    )
