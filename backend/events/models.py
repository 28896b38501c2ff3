# events/models.py
"""
Event Store models for Bebop.

Four append-only record kinds make up one logical event:
- Event: the parent row (name, creation time, insertion sequence)
- EventParameter: one row per parameter, value stored as text with its
  kind, plus a float copy for numeric values
- EventTrace: zero or more opaque JSON trace payloads
- EventClaim: identity claims captured at ingestion time

All four are written together in one transaction by events.store and are
immutable once created. There are no update or delete paths: an event's
history is permanent, which is what makes the watermark-based change feed
correct.

EventCounter allocates the global insertion sequence and a non-decreasing
creation time under a row lock.
"""

import uuid

from django.db import models, transaction, IntegrityError
from django.db.models import F
from django.utils import timezone


class ImmutableModel(models.Model):
    """Rows can be inserted once and never modified or deleted."""

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError(f"{self.__class__.__name__} records are immutable and cannot be modified.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError(f"{self.__class__.__name__} records are immutable and cannot be deleted.")


class EventCounter(models.Model):
    """Single-row allocator for Event.sequence and Event.created_at."""

    name = models.CharField(max_length=50, unique=True, default="events")
    last_sequence = models.BigIntegerField(default=0)
    last_created_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Event Counter"

    def __str__(self):
        return f"{self.name}: {self.last_sequence}"

    @classmethod
    def allocate(cls, name: str = "events"):
        """
        Allocate the next (sequence, created_at) pair.

        Must run inside a transaction: the counter row stays locked until
        the surrounding ingest commits, so sequence order and creation
        order both follow commit order.
        """
        try:
            counter, _ = cls.objects.select_for_update().get_or_create(name=name)
        except IntegrityError:
            # Race: someone created it between get_or_create attempts
            counter = cls.objects.select_for_update().get(name=name)

        created_at = timezone.now()
        if counter.last_created_at and created_at < counter.last_created_at:
            # Clock stepped backwards; keep creation time non-decreasing
            created_at = counter.last_created_at

        counter.last_sequence = F("last_sequence") + 1
        counter.last_created_at = created_at
        counter.save(update_fields=["last_sequence", "last_created_at"])
        counter.refresh_from_db(fields=["last_sequence"])
        return counter.last_sequence, created_at


class Event(ImmutableModel):
    """
    Immutable event record.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    event_name = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Event name; equals an EventTypeDefinition.type when types are configured",
    )

    # Global monotonic insertion ordinal (tie-break for created_at)
    sequence = models.BigIntegerField(
        unique=True,
        editable=False,
        help_text="Monotonic insertion sequence",
    )

    created_at = models.DateTimeField(
        db_index=True,
        editable=False,
    )

    class Meta:
        ordering = ["created_at", "sequence"]
        indexes = [
            models.Index(fields=["created_at", "sequence"], name="event_created_seq_idx"),
            models.Index(fields=["event_name", "created_at"], name="event_name_created_idx"),
        ]

    def __str__(self):
        return f"{self.event_name} #{self.sequence} @{self.created_at}"

    def save(self, *args, **kwargs):
        if self._state.adding and not self.sequence:
            with transaction.atomic():
                self.sequence, self.created_at = EventCounter.allocate()
                super().save(*args, **kwargs)
            return
        super().save(*args, **kwargs)


class EventParameter(ImmutableModel):
    id = models.BigAutoField(primary_key=True)

    event = models.ForeignKey(
        Event,
        on_delete=models.CASCADE,
        related_name="params",
    )

    class ParameterKind(models.TextChoices):
        """Type of the ingested value."""
        STRING = 'string', 'String'
        NUMERIC = 'numeric', 'Numeric'

    param_name = models.CharField(max_length=255)

    param_value = models.TextField(
        help_text="Value as text; numeric values use canonical text form",
    )

    param_kind = models.CharField(
        max_length=10,
        choices=ParameterKind.choices,
        default=ParameterKind.STRING,
        help_text="Whether the value was ingested as a string or a number",
    )

    # Set only for numeric values; range filters compare this column
    numeric_value = models.FloatField(null=True, blank=True)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["param_name", "event"], name="event_param_name_idx"),
        ]

    def __str__(self):
        return f"{self.param_name}={self.param_value}"


class EventTrace(ImmutableModel):
    id = models.BigAutoField(primary_key=True)

    event = models.ForeignKey(
        Event,
        on_delete=models.CASCADE,
        related_name="traces",
    )

    trace_data = models.JSONField(
        null=True,
        help_text="Opaque trace payload",
    )

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"Trace for {self.event_id}"


class EventClaim(ImmutableModel):
    id = models.BigAutoField(primary_key=True)

    event = models.ForeignKey(
        Event,
        on_delete=models.CASCADE,
        related_name="claims",
    )

    claim_name = models.CharField(max_length=255)
    claim_value = models.TextField()

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["claim_name", "event"], name="event_claim_name_idx"),
        ]

    def __str__(self):
        return f"{self.claim_name}={self.claim_value}"
