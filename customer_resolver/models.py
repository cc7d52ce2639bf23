"""Customer Resolver Data Models.

This module defines the Pydantic models for customer reconciliation:
- KnownCustomer: A customer from the customer master
- CustomerMatch: A scored candidate for one report name
- ReportCustomerGroup: One distinct report name within an import batch
- PersistentMapping: Durable mapping from normalized name to customer ID
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MatchType(str, Enum):
    """How a candidate matched the report name."""
    EXACT = "exact"    # Normalized names are equal
    FUZZY = "fuzzy"    # Close by edit distance or token overlap


class GroupStatus(str, Enum):
    """Resolution state of a report customer group."""
    UNVERIFIED = "unverified"  # Operator must confirm or create
    VERIFIED = "verified"      # Resolved to a customer
    ERROR = "error"            # Resolution failed


class MappingOrigin(str, Enum):
    """Who created a persistent mapping."""
    USER_MAPPED = "user_mapped"      # Operator picked an existing customer
    AUTO_CREATED = "auto_created"    # Customer was created from the report name


class KnownCustomer(BaseModel):
    """A customer from the customer master.

    Attributes:
        id: Customer identifier, unique within a company
        report_customer: Name as it appears on sales reports (used for matching)
        tally_customer: Name used in the bookkeeping system
        gst_no: GST registration number, if known
        state_code: State code, if known
        category_id: Customer category
        company_id: Company this customer belongs to
    """
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    report_customer: str = Field(..., description="Name used for report matching")
    tally_customer: str = Field(default="", description="Bookkeeping name")
    gst_no: Optional[str] = None
    state_code: Optional[str] = None
    category_id: Optional[int] = None
    company_id: Optional[int] = None


class CustomerMatch(BaseModel):
    """A candidate customer for one report name."""
    customer_id: int = Field(..., description="Candidate customer ID")
    name: str = Field(..., description="Candidate report name")
    match_type: MatchType
    confidence: float = Field(..., ge=0.0, le=1.0, description="Match confidence (0-1)")


class ReportRow(BaseModel):
    """A report row as seen by the resolver.

    Only the customer name is read; everything else rides along in payload.
    """
    cust_name: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class ReportCustomerGroup(BaseModel):
    """All rows of a batch sharing one normalized customer name.

    Created by batch analysis and mutated only by the resolution step.

    Attributes:
        report_customer_id: Correlation ID, unique within the batch
        name: First raw spelling seen in the batch
        normalized_name: Normalized form shared by every row in the group
        sample_rows_count: Number of rows in the group
        detected_matches: Candidates, exact first then fuzzy by confidence
        status: Resolution state
        mapped_customer_id: Customer the group resolved to
        created_customer_id: Customer created from this name, if any
        error_message: Why resolution failed (status == error)
    """
    report_customer_id: str
    name: str
    normalized_name: str
    sample_rows_count: int = 0
    detected_matches: List[CustomerMatch] = Field(default_factory=list)
    status: GroupStatus = GroupStatus.UNVERIFIED
    mapped_customer_id: Optional[int] = None
    created_customer_id: Optional[int] = None
    error_message: Optional[str] = None


class PersistentMapping(BaseModel):
    """Durable mapping from a normalized report name to a customer.

    At most one mapping exists per (company_id, normalized_name); a later
    write for the same key replaces the earlier one.
    """
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    company_id: int
    report_customer_name: str = Field(..., description="Raw name as last written")
    normalized_name: str = Field(..., description="Normalized name used for lookup")
    customer_id: int
    mapping_type: MappingOrigin = MappingOrigin.USER_MAPPED
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DuplicateCheckResult(BaseModel):
    """Outcome of checking a new customer against the customer master."""
    has_duplicates: bool = False
    duplicates: List[KnownCustomer] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# =============================================================================
# Matching Configuration
# =============================================================================

class MatchingConfig(BaseModel):
    """Thresholds for the fuzzy pass.

    A candidate qualifies when either threshold is met.
    """
    max_levenshtein_distance: int = Field(
        default=2,
        ge=0,
        description="Max edit distance for a fuzzy candidate",
    )
    min_token_similarity: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        description="Min token Jaccard similarity for a fuzzy candidate",
    )


# Default matching config
DEFAULT_MATCHING_CONFIG = MatchingConfig()
