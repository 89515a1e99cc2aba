"""
Ritual management service.
Creates rituals from validated definitions and manages per-day schedule overrides.
"""
import json
import logging
from datetime import datetime, date
from typing import Iterable, List, Optional, Union
from pydantic import TypeAdapter
from sqlalchemy.orm import Session

from dayflow.constants import FREQUENCY_WEEKLY, FREQUENCY_CUSTOM
from dayflow.exceptions import InvalidFrequencyConfig, RitualNotFoundException
from dayflow.models import Ritual, RitualFrequency, ScheduleOverride
from dayflow.recurrence import parse_recurrence_rule
from dayflow.repositories.ritual_repository import RitualRepository
from dayflow.services.date_service import DateService, DateLike
from dayflow.steps import RitualDefinition, StepDefinition, required_step_fraction

logger = logging.getLogger("dayflow.rituals")

_steps_adapter = TypeAdapter(List[StepDefinition])


class RitualService:
    """Service for ritual management"""

    def __init__(self, db: Session):
        self.db = db
        self.ritual_repo = RitualRepository()
        self.date_service = DateService()

    def get_ritual(self, ritual_id: str) -> Ritual:
        """
        Raises:
            RitualNotFoundException: If the ritual does not exist
        """
        ritual = self.ritual_repo.get_by_id(self.db, ritual_id)
        if not ritual:
            raise RitualNotFoundException(ritual_id)
        return ritual

    def create_ritual(
        self,
        user_id: str,
        definition: Union[dict, RitualDefinition],
        created_on: Optional[date] = None
    ) -> Ritual:
        """
        Validate a ritual definition and store it.

        Weekly and custom frequencies without an anchor date are anchored
        to the creation date.

        Args:
            user_id: Owner
            definition: Raw definition or an already validated RitualDefinition
            created_on: Creation date, defaults to today

        Returns:
            Created Ritual

        Raises:
            InvalidFrequencyConfig: If the frequency is invalid
            AmbiguousDate: If a frequency date is malformed
            InvalidStepDefinition: If a step does not match its type
            ConflictingMeasurementType: If an exercise is measured two ways
        """
        created_on = created_on or date.today()

        if not isinstance(definition, RitualDefinition):
            definition = dict(definition)
            frequency = definition.get("frequency")
            if not isinstance(frequency, dict):
                raise InvalidFrequencyConfig("frequency", "a frequency is required")
            frequency = dict(frequency)
            if (
                frequency.get("frequency_type") in (FREQUENCY_WEEKLY, FREQUENCY_CUSTOM)
                and not frequency.get("anchor_date")
            ):
                frequency["anchor_date"] = created_on
            definition["frequency"] = parse_recurrence_rule(frequency)
            definition = RitualDefinition.model_validate(definition)

        options = definition.frequency.to_options()
        ritual = Ritual(
            user_id=user_id,
            name=definition.name,
            description=definition.description,
            category=definition.category,
            location=definition.location,
            gear=json.dumps(definition.gear),
            is_public=definition.is_public,
            is_active=definition.is_active,
            default_time=definition.default_time,
            step_definitions=json.dumps(
                _steps_adapter.dump_python(definition.step_definitions, mode="json")
            ),
            created_at=datetime.combine(created_on, datetime.min.time())
        )
        frequency = RitualFrequency(
            frequency_type=options["frequency_type"],
            interval=options.get("interval"),
            days_of_week=json.dumps(options["days_of_week"]) if options.get("days_of_week") else None,
            specific_dates=json.dumps(options["specific_dates"]) if options.get("specific_dates") else None,
            exclude_dates=json.dumps(options["exclude_dates"]) if options.get("exclude_dates") else None,
            # once rules expose their date as anchor_date but do not store it
            anchor_date=(
                definition.frequency.anchor_date
                if "anchor_date" in type(definition.frequency).model_fields else None
            )
        )

        ritual = self.ritual_repo.create(self.db, ritual, frequency)
        logger.info(f"Created ritual {ritual.id} ({ritual.name}) for {user_id}")
        return ritual

    def get_definition(self, ritual_id: str) -> RitualDefinition:
        """Rebuild the validated definition of a stored ritual"""
        ritual = self.get_ritual(ritual_id)
        frequency = self.ritual_repo.get_frequency(self.db, ritual_id)
        return RitualDefinition(
            name=ritual.name,
            description=ritual.description,
            category=ritual.category,
            location=ritual.location,
            gear=json.loads(ritual.gear) if ritual.gear else [],
            is_public=ritual.is_public,
            is_active=ritual.is_active,
            default_time=ritual.default_time,
            frequency=parse_recurrence_rule(self.ritual_repo.frequency_options(frequency)),
            step_definitions=json.loads(ritual.step_definitions)
        )

    def get_step_definitions(self, ritual_id: str) -> List[StepDefinition]:
        ritual = self.get_ritual(ritual_id)
        return _steps_adapter.validate_python(json.loads(ritual.step_definitions))

    def step_completion(self, ritual_id: str, completed_indexes: Iterable[int]) -> float:
        """Fraction of the ritual's required steps among completed_indexes"""
        return required_step_fraction(self.get_step_definitions(ritual_id), completed_indexes)

    def set_override(
        self,
        ritual_id: str,
        target_date: DateLike,
        removed: bool = False,
        scheduled_time: Optional[str] = None
    ) -> ScheduleOverride:
        """
        Remove a ritual from one day, or move it to another time that day.

        An override never makes a ritual due on a day its rule does not produce.

        Raises:
            RitualNotFoundException: If the ritual does not exist
            InvalidTimeFormatException: If scheduled_time is not HH:MM
        """
        self.get_ritual(ritual_id)
        target = self.date_service.parse_iso_date(target_date)
        if scheduled_time is not None:
            self.date_service.parse_time(scheduled_time)

        override = self.ritual_repo.get_override(self.db, ritual_id, target)
        if not override:
            override = ScheduleOverride(ritual_id=ritual_id, date=target)
        override.removed = removed
        override.scheduled_time = scheduled_time
        return self.ritual_repo.save_override(self.db, override)

    def clear_override(self, ritual_id: str, target_date: DateLike) -> bool:
        """Drop the override of one day; returns False if there was none"""
        override = self.ritual_repo.get_override(
            self.db, ritual_id, self.date_service.parse_iso_date(target_date)
        )
        if not override:
            return False
        self.ritual_repo.delete_override(self.db, override)
        return True

    def deactivate_ritual(self, ritual_id: str) -> Ritual:
        """Stop scheduling a ritual; its ledger is kept"""
        ritual = self.get_ritual(ritual_id)
        ritual.is_active = False
        return self.ritual_repo.update(self.db, ritual)
