"""
Land Repository - In-Memory Store for Conditions, Properties and Alerts

Keeps one conditions record per customer, the current property listings,
the latest batch match results and the alerts raised from them.
State can optionally be persisted to a JSON file after every change.
"""

from __future__ import annotations

import copy
import dataclasses
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from core.land.extractors import extract_for_source, merge_conditions
from core.land.matching import LandMatcher
from core.land.models import (
    AlertLevel,
    AlertStatus,
    LandAlert,
    LandMatchResult,
    LandProperty,
    LandSearchConditions,
    PropertyStatus,
    UpdateSource,
    create_default_land_conditions,
    parse_timestamp,
    to_snake,
    utc_now,
)
from core.land.validation import ConditionsValidationError, validate_conditions


logger = logging.getLogger(__name__)


# =============================================================================
# Repository
# =============================================================================


class LandRepository:
    """
    Repository for land search conditions, properties, matches and alerts.

    Uses in-memory storage with optional file persistence.
    """

    def __init__(
        self,
        persist_path: Optional[str] = None,
        matcher: Optional[LandMatcher] = None,
    ):
        """
        Initialise repository.

        Args:
            persist_path: Optional path to persist data to JSON file
            matcher: Matcher used by run_matching (default LandMatcher())
        """
        self._conditions: dict[str, LandSearchConditions] = {}
        self._properties: dict[str, LandProperty] = {}
        self._match_results: list[LandMatchResult] = []
        self._alerts: list[LandAlert] = []
        self._last_matched_at: Optional[datetime] = None

        self._matcher = matcher or LandMatcher()
        self._persist_path = Path(persist_path) if persist_path else None

        if self._persist_path and self._persist_path.exists():
            self._load_from_file()

    @property
    def last_matched_at(self) -> Optional[datetime]:
        return self._last_matched_at

    def _save_to_file(self) -> None:
        """Persist data to file."""
        if not self._persist_path:
            return

        data = {
            "conditions": [c.to_dict() for c in self._conditions.values()],
            "properties": [p.to_dict() for p in self._properties.values()],
            "matchResults": [m.to_dict() for m in self._match_results],
            "alerts": [a.to_dict() for a in self._alerts],
            "lastMatchedAt": self._last_matched_at.isoformat() if self._last_matched_at else None,
            "savedAt": utc_now().isoformat(),
        }

        self._persist_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._persist_path.with_name(self._persist_path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(self._persist_path)

    def _load_from_file(self) -> None:
        """Load data from file, moving an unreadable file aside."""
        try:
            data = json.loads(self._persist_path.read_text(encoding="utf-8"))
            for item in data.get("conditions", []):
                conditions = LandSearchConditions.from_dict(item)
                self._conditions[conditions.customer_id] = conditions
            for item in data.get("properties", []):
                land = LandProperty.from_dict(item)
                self._properties[land.id] = land
            self._match_results = [LandMatchResult.from_dict(m) for m in data.get("matchResults", [])]
            self._alerts = [LandAlert.from_dict(a) for a in data.get("alerts", [])]
            self._last_matched_at = parse_timestamp(data.get("lastMatchedAt"))
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            backup = self._persist_path.with_name(
                f"{self._persist_path.name}.corrupt-{utc_now().strftime('%Y%m%d%H%M%S')}"
            )
            self._persist_path.replace(backup)
            logger.warning(
                "Could not load land repository data from %s (%s); moved it to %s",
                self._persist_path,
                e,
                backup,
            )
            self._conditions.clear()
            self._properties.clear()
            self._match_results = []
            self._alerts = []
            self._last_matched_at = None

    # =========================================================================
    # Conditions
    # =========================================================================

    def get_conditions(self, customer_id: str) -> Optional[LandSearchConditions]:
        return self._conditions.get(customer_id)

    def get_or_create_conditions(self, customer_id: str) -> LandSearchConditions:
        """
        Get a customer's conditions, creating the default record on first access.

        Args:
            customer_id: Customer ID

        Returns:
            Existing or newly created LandSearchConditions
        """
        conditions = self._conditions.get(customer_id)
        if conditions is None:
            conditions = create_default_land_conditions(customer_id)
            self._conditions[customer_id] = conditions
            logger.info("Created default land conditions for customer %s", customer_id)
            self._save_to_file()
        return conditions

    def save_conditions(self, conditions: LandSearchConditions) -> LandSearchConditions:
        """
        Replace a customer's conditions with an operator-edited record.

        Raises:
            ConditionsValidationError: If ranges are inconsistent
        """
        errors = validate_conditions(conditions)
        if errors:
            raise ConditionsValidationError(errors)

        self._conditions[conditions.customer_id] = conditions
        self._save_to_file()
        return conditions

    def edit_conditions(self, customer_id: str, changes: dict[str, Any]) -> LandSearchConditions:
        """
        Apply an operator's field-level edits.

        Unlike automated updates, edits replace values outright (no list
        union, no field protection) and mark the record as MANUAL.

        Args:
            customer_id: Customer ID
            changes: Field values, snake_case or camelCase keys

        Returns:
            The saved conditions

        Raises:
            ConditionsValidationError: If the edited record is inconsistent
            ValueError: For unknown fields or invalid enum/priority values
        """
        existing = self.get_or_create_conditions(customer_id)
        known = {f.name for f in dataclasses.fields(LandSearchConditions)}
        fixed = {"id", "customer_id", "created_at", "last_updated_from", "last_updated_at"}

        clean: dict[str, Any] = {}
        for key, value in changes.items():
            name = to_snake(key)
            if name not in known:
                raise ValueError(f"Unknown conditions field '{key}'")
            if name in fixed:
                continue
            if name == "priorities" and isinstance(value, dict):
                value = dataclasses.replace(existing.priorities, **value)
            clean[name] = value

        edited = dataclasses.replace(
            existing,
            **clean,
            last_updated_from=UpdateSource.MANUAL,
            last_updated_at=utc_now(),
        )
        return self.save_conditions(edited)

    def update_conditions(
        self,
        customer_id: str,
        updates: dict[str, Any],
    ) -> Optional[LandSearchConditions]:
        """
        Merge a partial update into a customer's conditions.

        Args:
            customer_id: Customer ID
            updates: Partial update (see merge_conditions)

        Returns:
            Merged conditions, or None if the customer has no record
        """
        existing = self._conditions.get(customer_id)
        if existing is None:
            return None

        merged = merge_conditions(existing, updates)
        problems = validate_conditions(merged)
        if problems:
            logger.warning(
                "Conditions for customer %s are inconsistent after merge: %s",
                customer_id,
                "; ".join(problems),
            )

        self._conditions[customer_id] = merged
        self._save_to_file()
        return merged

    def apply_document(self, source: UpdateSource, document: Any) -> LandSearchConditions:
        """
        Extract conditions from an upstream document and merge them in.

        Args:
            source: Which upstream process produced the document
            document: The document (dataclass or camelCase dict)

        Returns:
            The customer's merged conditions

        Raises:
            ValueError: If the document carries no customer ID
        """
        if isinstance(document, dict):
            customer_id = document.get("customerId") or document.get("customer_id")
        else:
            customer_id = document.customer_id
        if not customer_id:
            raise ValueError("Document has no customer ID")

        source = UpdateSource(source)
        updates = extract_for_source(source, document)
        if customer_id not in self._conditions:
            # A record first created from a document is not operator-maintained
            self._conditions[customer_id] = dataclasses.replace(
                create_default_land_conditions(customer_id),
                last_updated_from=source,
            )
            logger.info("Created land conditions for customer %s from %s", customer_id, source.value)
        return self.update_conditions(customer_id, updates)

    def delete_conditions(self, customer_id: str) -> bool:
        if customer_id in self._conditions:
            del self._conditions[customer_id]
            self._save_to_file()
            return True
        return False

    def list_conditions(self) -> list[LandSearchConditions]:
        return list(self._conditions.values())

    # =========================================================================
    # Properties
    # =========================================================================

    def set_properties(self, properties: Iterable[LandProperty]) -> None:
        """Replace all properties."""
        self._properties = {p.id: p for p in properties}
        self._save_to_file()

    def add_properties(self, properties: Iterable[LandProperty]) -> list[LandProperty]:
        """
        Add properties, skipping ids that already exist.

        Returns:
            The properties that were actually added
        """
        added = []
        for land in properties:
            if land.id in self._properties:
                continue
            self._properties[land.id] = land
            added.append(land)

        if added:
            self._save_to_file()
        return added

    def update_property(self, property_id: str, **updates: Any) -> Optional[LandProperty]:
        """
        Update fields of a property.

        Returns:
            Updated LandProperty, or None if not found
        """
        land = self._properties.get(property_id)
        if land is None:
            return None

        updates.setdefault("updated_at", utc_now())
        if ("price" in updates or "land_area" in updates) and "price_per_tsubo" not in updates:
            updates["price_per_tsubo"] = None
        updated = dataclasses.replace(land, **updates)
        self._properties[property_id] = updated
        self._save_to_file()
        return updated

    def delete_property(self, property_id: str) -> bool:
        if property_id in self._properties:
            del self._properties[property_id]
            self._save_to_file()
            return True
        return False

    def get_property(self, property_id: str) -> Optional[LandProperty]:
        return self._properties.get(property_id)

    def list_properties(self, status: Optional[PropertyStatus] = None) -> list[LandProperty]:
        if status is None:
            return list(self._properties.values())
        return [p for p in self._properties.values() if p.status == status]

    # =========================================================================
    # Matching
    # =========================================================================

    def run_matching(self, customer_names: Optional[dict[str, str]] = None) -> list[LandMatchResult]:
        """
        Match all customers against all available properties.

        Replaces the stored match results and raises a new alert for every
        high-level match whose customer/property pair has no alert yet. Each
        alert keeps a copy of the property and conditions it was raised on.

        Args:
            customer_names: Optional customer ID -> display name map

        Returns:
            The new match results (score-descending)
        """
        names = customer_names or {}
        results = self._matcher.batch(
            list(self._conditions.values()),
            list(self._properties.values()),
        )

        alerted = {(a.customer_id, a.property_id) for a in self._alerts}
        new_alerts = []
        for result in results:
            if result.alert_level != AlertLevel.HIGH:
                continue
            key = (result.customer_id, result.property_id)
            if key in alerted:
                continue
            alerted.add(key)
            new_alerts.append(LandAlert.create(
                result,
                copy.deepcopy(self._properties[result.property_id]),
                copy.deepcopy(self._conditions[result.customer_id]),
                names.get(result.customer_id),
            ))

        self._match_results = results
        self._alerts.extend(new_alerts)
        self._last_matched_at = utc_now()

        logger.info(
            "Land matching produced %d results and %d new alerts",
            len(results),
            len(new_alerts),
        )
        self._save_to_file()
        return results

    def list_match_results(self) -> list[LandMatchResult]:
        return list(self._match_results)

    def get_matches_for_customer(self, customer_id: str) -> list[LandMatchResult]:
        return sorted(
            (m for m in self._match_results if m.customer_id == customer_id),
            key=lambda m: m.match_score,
            reverse=True,
        )

    def get_matches_for_property(self, property_id: str) -> list[LandMatchResult]:
        return sorted(
            (m for m in self._match_results if m.property_id == property_id),
            key=lambda m: m.match_score,
            reverse=True,
        )

    # =========================================================================
    # Alerts
    # =========================================================================

    def get_alert(self, alert_id: str) -> Optional[LandAlert]:
        for alert in self._alerts:
            if alert.id == alert_id:
                return alert
        return None

    def get_alerts(self, status: Optional[AlertStatus] = None) -> list[LandAlert]:
        """Get alerts, newest first, optionally filtered by status."""
        alerts = self._alerts if status is None else [a for a in self._alerts if a.status == status]
        return sorted(alerts, key=lambda a: a.created_at, reverse=True)

    def get_alerts_for_customer(self, customer_id: str) -> list[LandAlert]:
        return [a for a in self._alerts if a.customer_id == customer_id]

    def mark_alert_notified(self, alert_id: str) -> Optional[LandAlert]:
        alert = self.get_alert(alert_id)
        if alert is None:
            return None

        now = utc_now()
        alert.status = AlertStatus.NOTIFIED
        alert.notified_at = now
        alert.match_result.notified_at = now
        self._save_to_file()
        return alert

    def mark_alert_contacted(
        self,
        alert_id: str,
        contacted_by: str,
        notes: Optional[str] = None,
    ) -> Optional[LandAlert]:
        """
        Record that staff contacted the customer about an alert.

        Args:
            alert_id: Alert ID
            contacted_by: Staff member who made contact
            notes: Optional note (keeps existing notes when omitted)

        Returns:
            Updated LandAlert, or None if not found
        """
        alert = self.get_alert(alert_id)
        if alert is None:
            return None

        alert.status = AlertStatus.CONTACTED
        alert.contacted_at = utc_now()
        alert.contacted_by = contacted_by
        alert.match_result.assigned_to = contacted_by
        if notes:
            alert.notes = notes
        self._save_to_file()
        return alert

    def dismiss_alert(self, alert_id: str) -> Optional[LandAlert]:
        alert = self.get_alert(alert_id)
        if alert is None:
            return None

        alert.status = AlertStatus.DISMISSED
        self._save_to_file()
        return alert

    def clear_alerts(self) -> None:
        self._alerts = []
        self._save_to_file()


# =============================================================================
# Singleton Instance
# =============================================================================

_repository_instance: Optional[LandRepository] = None


def get_land_repository(persist_path: Optional[str] = None) -> LandRepository:
    """
    Get the land repository singleton.

    Args:
        persist_path: Optional path for persistence (only used on first call)

    Returns:
        LandRepository instance
    """
    global _repository_instance
    if _repository_instance is None:
        if persist_path is None:
            from utils.config import Config

            persist_path = str(Path(Config.load().data_dir) / "land.json")
        _repository_instance = LandRepository(persist_path)
    return _repository_instance


def reset_land_repository() -> None:
    """Drop the singleton (used by tests)."""
    global _repository_instance
    _repository_instance = None
