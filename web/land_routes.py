"""
Land Routes - JSON API over the land matching store

Conditions editor, upstream document ingestion, property listings,
matching and alert follow-up. Bodies and responses use the camelCase
record shapes produced by the models' ``to_dict``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from core.land import (
    AlertStatus,
    ConditionsValidationError,
    LandProperty,
    LandRepository,
    LandSearchConditions,
    PropertyStatus,
    UpdateSource,
    calculate_land_match,
    get_land_repository,
)
from core.land.models import to_snake


logger = logging.getLogger(__name__)


# =============================================================================
# Router Setup
# =============================================================================

router = APIRouter(prefix="/api/land", tags=["land"])


def get_repository() -> LandRepository:
    """Repository dependency (overridden in tests)."""
    return get_land_repository()


# =============================================================================
# Request Bodies
# =============================================================================


class RunMatchingRequest(BaseModel):
    """Optional customer display names for new alerts."""

    model_config = ConfigDict(populate_by_name=True)

    customer_names: dict[str, str] = Field(default_factory=dict, alias="customerNames")


class ContactRequest(BaseModel):
    """Staff contact record for an alert."""

    model_config = ConfigDict(populate_by_name=True)

    contacted_by: str = Field(..., min_length=1, alias="contactedBy")
    notes: Optional[str] = None


# =============================================================================
# Helpers
# =============================================================================


def _not_found(what: str, ident: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{what} {ident} not found")


def _unprocessable(error: Exception) -> HTTPException:
    if isinstance(error, ConditionsValidationError):
        return HTTPException(status_code=422, detail=error.errors)
    return HTTPException(status_code=422, detail=str(error))


def _parse_source(source: str) -> UpdateSource:
    try:
        parsed = UpdateSource(source)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown document source: {source}")
    if parsed == UpdateSource.MANUAL:
        raise HTTPException(status_code=422, detail="Manual edits go through the conditions endpoints")
    return parsed


# =============================================================================
# Conditions
# =============================================================================


@router.get("/customers/{customer_id}/conditions")
def get_conditions(customer_id: str, repo: LandRepository = Depends(get_repository)):
    """Get a customer's conditions, creating defaults on first access."""
    return repo.get_or_create_conditions(customer_id).to_dict()


@router.put("/customers/{customer_id}/conditions")
def save_conditions(
    customer_id: str,
    payload: dict[str, Any] = Body(...),
    repo: LandRepository = Depends(get_repository),
):
    """Replace a customer's conditions with an edited record."""
    existing = repo.get_or_create_conditions(customer_id)
    data = {**payload, "id": existing.id, "customerId": customer_id, "lastUpdatedFrom": "manual"}
    data.setdefault("createdAt", existing.created_at.isoformat())
    data.pop("lastUpdatedAt", None)

    try:
        conditions = LandSearchConditions.from_dict(data)
        saved = repo.save_conditions(conditions)
    except (ValueError, TypeError) as e:
        raise _unprocessable(e)
    return saved.to_dict()


@router.patch("/customers/{customer_id}/conditions")
def edit_conditions(
    customer_id: str,
    payload: dict[str, Any] = Body(...),
    repo: LandRepository = Depends(get_repository),
):
    """Apply field-level operator edits."""
    try:
        edited = repo.edit_conditions(customer_id, payload)
    except (ValueError, TypeError) as e:
        raise _unprocessable(e)
    return edited.to_dict()


@router.post("/customers/{customer_id}/documents/{source}")
def ingest_document(
    customer_id: str,
    source: str,
    payload: dict[str, Any] = Body(...),
    repo: LandRepository = Depends(get_repository),
):
    """Extract conditions from a hearing sheet, reception record or negotiation note."""
    update_source = _parse_source(source)
    document = {**payload, "customerId": customer_id}

    try:
        merged = repo.apply_document(update_source, document)
    except (ValueError, TypeError) as e:
        raise _unprocessable(e)

    logger.info("Applied %s document to customer %s", update_source.value, customer_id)
    return merged.to_dict()


# =============================================================================
# Properties
# =============================================================================


@router.get("/properties")
def list_properties(
    status: Optional[PropertyStatus] = Query(None),
    repo: LandRepository = Depends(get_repository),
):
    return [p.to_dict() for p in repo.list_properties(status)]


@router.post("/properties", status_code=201)
def add_properties(
    payload: list[dict[str, Any]] = Body(...),
    repo: LandRepository = Depends(get_repository),
):
    """Add listings; ids already stored are skipped."""
    try:
        properties = [LandProperty.from_dict(item) for item in payload]
    except (KeyError, ValueError, TypeError) as e:
        raise _unprocessable(e)

    added = repo.add_properties(properties)
    return {
        "added": [p.id for p in added],
        "skipped": len(properties) - len(added),
    }


@router.get("/properties/{property_id}")
def get_property(property_id: str, repo: LandRepository = Depends(get_repository)):
    land = repo.get_property(property_id)
    if land is None:
        raise _not_found("Property", property_id)
    return land.to_dict()


@router.patch("/properties/{property_id}")
def update_property(
    property_id: str,
    payload: dict[str, Any] = Body(...),
    repo: LandRepository = Depends(get_repository),
):
    updates = {to_snake(k): v for k, v in payload.items() if to_snake(k) != "id"}
    try:
        updated = repo.update_property(property_id, **updates)
    except (ValueError, TypeError) as e:
        raise _unprocessable(e)
    if updated is None:
        raise _not_found("Property", property_id)
    return updated.to_dict()


@router.delete("/properties/{property_id}", status_code=204)
def delete_property(property_id: str, repo: LandRepository = Depends(get_repository)):
    if not repo.delete_property(property_id):
        raise _not_found("Property", property_id)


# =============================================================================
# Matching
# =============================================================================


@router.get("/customers/{customer_id}/properties/{property_id}/match")
def match_one(
    customer_id: str,
    property_id: str,
    repo: LandRepository = Depends(get_repository),
):
    """Score a single property for a customer on demand."""
    conditions = repo.get_conditions(customer_id)
    if conditions is None:
        raise _not_found("Conditions for customer", customer_id)
    land = repo.get_property(property_id)
    if land is None:
        raise _not_found("Property", property_id)
    return calculate_land_match(conditions, land).to_dict()


@router.post("/match/run")
def run_matching(
    request: Optional[RunMatchingRequest] = None,
    repo: LandRepository = Depends(get_repository),
):
    """Run batch matching over all customers and available properties."""
    names = request.customer_names if request else {}
    results = repo.run_matching(names)
    return {
        "results": [r.to_dict() for r in results],
        "count": len(results),
        "lastMatchedAt": repo.last_matched_at.isoformat() if repo.last_matched_at else None,
    }


@router.get("/customers/{customer_id}/matches")
def customer_matches(customer_id: str, repo: LandRepository = Depends(get_repository)):
    return [m.to_dict() for m in repo.get_matches_for_customer(customer_id)]


@router.get("/properties/{property_id}/matches")
def property_matches(property_id: str, repo: LandRepository = Depends(get_repository)):
    return [m.to_dict() for m in repo.get_matches_for_property(property_id)]


# =============================================================================
# Alerts
# =============================================================================


@router.get("/alerts")
def list_alerts(
    status: Optional[AlertStatus] = Query(None),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    repo: LandRepository = Depends(get_repository),
):
    if customer_id:
        alerts = [a for a in repo.get_alerts(status) if a.customer_id == customer_id]
    else:
        alerts = repo.get_alerts(status)
    return [a.to_dict() for a in alerts]


@router.post("/alerts/{alert_id}/notify")
def notify_alert(alert_id: str, repo: LandRepository = Depends(get_repository)):
    alert = repo.mark_alert_notified(alert_id)
    if alert is None:
        raise _not_found("Alert", alert_id)
    return alert.to_dict()


@router.post("/alerts/{alert_id}/contact")
def contact_alert(
    alert_id: str,
    request: ContactRequest,
    repo: LandRepository = Depends(get_repository),
):
    alert = repo.mark_alert_contacted(alert_id, request.contacted_by, request.notes)
    if alert is None:
        raise _not_found("Alert", alert_id)
    return alert.to_dict()


@router.post("/alerts/{alert_id}/dismiss")
def dismiss_alert(alert_id: str, repo: LandRepository = Depends(get_repository)):
    alert = repo.dismiss_alert(alert_id)
    if alert is None:
        raise _not_found("Alert", alert_id)
    return alert.to_dict()


@router.delete("/alerts", status_code=204)
def clear_alerts(repo: LandRepository = Depends(get_repository)):
    repo.clear_alerts()
