"""
Conflict detection for a resolved day.
Two or more occurrences with the identical HH:MM slot form a conflict group.
"""
from typing import Dict, Iterable, List

from dayflow.schemas import ConflictGroup, RitualOccurrence


class ConflictDetector:
    """Stateless detector; re-run after every reorder or time edit"""

    @staticmethod
    def detect(occurrences: Iterable[RitualOccurrence]) -> List[ConflictGroup]:
        """
        Group scheduled occurrences by exact time string.

        No tolerance window: 08:00 and 08:01 do not conflict.
        Unscheduled occurrences never conflict.

        Returns:
            Conflict groups ordered by time, members in list order
        """
        slots: Dict[str, List[str]] = {}
        for occurrence in occurrences:
            if occurrence.scheduled_time is None:
                continue
            slots.setdefault(occurrence.scheduled_time, []).append(occurrence.ritual_id)

        return [
            ConflictGroup(scheduled_time=slot, ritual_ids=tuple(ritual_ids))
            for slot, ritual_ids in sorted(slots.items())
            if len(ritual_ids) >= 2
        ]

    @staticmethod
    def annotate(occurrences: Iterable[RitualOccurrence]) -> List[RitualOccurrence]:
        """Copy occurrences, pointing each conflicting one at the other members"""
        occurrences = list(occurrences)
        groups = {group.scheduled_time: group for group in ConflictDetector.detect(occurrences)}

        annotated = []
        for occurrence in occurrences:
            group = groups.get(occurrence.scheduled_time) if occurrence.scheduled_time else None
            conflict_group = frozenset(
                ritual_id for ritual_id in group.ritual_ids if ritual_id != occurrence.ritual_id
            ) if group else None
            annotated.append(occurrence.model_copy(update={"conflict_group": conflict_group}))
        return annotated


def detect_conflicts(occurrences: Iterable[RitualOccurrence]) -> List[ConflictGroup]:
    return ConflictDetector.detect(occurrences)


def annotate_conflicts(occurrences: Iterable[RitualOccurrence]) -> List[RitualOccurrence]:
    return ConflictDetector.annotate(occurrences)


def has_conflicts(occurrences: Iterable[RitualOccurrence]) -> bool:
    return bool(ConflictDetector.detect(occurrences))
