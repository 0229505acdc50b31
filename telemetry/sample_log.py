"""
Журнал вимірів (кільцевий буфер на 800 записів).
"""

from dataclasses import replace

from database.models import Sample
from telemetry.ring_log import SequencedLog


SAMPLE_LOG_CAPACITY = 800


class SampleLog(SequencedLog[Sample]):
    """Журнал вимірів з власним лічильником seq."""

    def __init__(self, capacity: int = SAMPLE_LOG_CAPACITY):
        super().__init__(capacity)

    def append(self, sample: Sample) -> Sample:
        """Призначити seq виміру та додати його в журнал."""
        return self.push(replace(sample, seq=self.next_seq()))
