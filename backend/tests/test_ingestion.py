# tests/test_ingestion.py
"""
Tests for event ingestion.

Tests cover:
- Validation against the catalog (all problems reported at once)
- Atomic writes: a failing child insert leaves nothing behind
- Concurrent ingestion from several threads
- Trace handling for event types with tracing disabled
- Claim filtering
- Collector payloads ($event / $params / $trace)
"""

import threading
from unittest import mock

import pytest
from django.db import DatabaseError, connection

from events.errors import PersistenceError, ValidationError
from events.ingestion import IngestionPipeline
from events.models import Event, EventClaim, EventParameter, EventTrace
from events.store import EventStore


# =============================================================================
# Validation
# =============================================================================

@pytest.mark.django_db
class TestValidation:
    def test_unknown_event_type(self, pipeline):
        with pytest.raises(ValidationError, match="Unknown event type 'refund'"):
            pipeline.ingest("refund", {"amount": 1})
        assert Event.objects.count() == 0

    def test_kind_mismatch(self, pipeline):
        with pytest.raises(ValidationError) as excinfo:
            pipeline.ingest("purchase", {"amount": "12", "sku": 7})

        assert excinfo.value.event_name == "purchase"
        assert excinfo.value.errors == [
            "Parameter 'amount': expected numeric, got str",
            "Parameter 'sku': expected string, got int",
        ]
        assert Event.objects.count() == 0

    def test_all_problems_are_reported_together(self, pipeline):
        with pytest.raises(ValidationError) as excinfo:
            pipeline.ingest("refund", {"x": [1]}, trace="not-a-list", claims=["tenant"])

        assert len(excinfo.value.errors) == 4

    @pytest.mark.parametrize("value", [None, True, [1], {"a": 1}, float("nan"), float("inf")])
    def test_non_scalar_or_non_finite_values(self, pipeline, value):
        with pytest.raises(ValidationError):
            pipeline.ingest("purchase", {"note": value})

    def test_empty_event_name(self, pipeline):
        with pytest.raises(ValidationError, match="non-empty string"):
            pipeline.ingest("", {})

    def test_parameters_must_be_a_mapping(self, pipeline):
        with pytest.raises(ValidationError, match="Parameters must be a mapping"):
            pipeline.ingest("purchase", [("amount", 1)])

    def test_trace_must_be_json(self, pipeline):
        with pytest.raises(ValidationError, match="not JSON serializable"):
            pipeline.ingest("purchase", {}, trace=[object()])

    def test_undeclared_parameters_are_accepted(self, pipeline, store):
        event_id = pipeline.ingest("purchase", {"amount": 3, "coupon": "SPRING"})
        event = store.get(event_id)
        assert {p.param_name: p.param_value for p in event.params.all()} == {
            "amount": "3",
            "coupon": "SPRING",
        }

    def test_declared_parameters_are_optional(self, pipeline):
        pipeline.ingest("purchase", {})
        assert Event.objects.count() == 1

    def test_free_form_catalog_accepts_any_event(self, free_form_catalog, store):
        pipeline = IngestionPipeline(free_form_catalog, store)
        event_id = pipeline.ingest("anything", {"n": 1}, [{"t": 1}])

        event = store.get(event_id)
        assert event.event_name == "anything"
        assert event.traces.count() == 1


# =============================================================================
# Atomicity
# =============================================================================

@pytest.mark.django_db(transaction=True)
class TestAtomicity:
    def test_failing_child_insert_leaves_nothing(self, pipeline):
        with mock.patch.object(EventStore, "_write_claims", side_effect=DatabaseError("disk full")):
            with pytest.raises(PersistenceError, match="disk full") as excinfo:
                pipeline.ingest("purchase", {"amount": 5, "sku": "A"}, [{"t": 1}], {"tenant": "acme"})

        assert isinstance(excinfo.value.__cause__, DatabaseError)
        assert Event.objects.count() == 0
        assert EventParameter.objects.count() == 0
        assert EventTrace.objects.count() == 0
        assert EventClaim.objects.count() == 0

    def test_store_is_usable_after_a_failure(self, pipeline):
        with mock.patch.object(EventStore, "_write_parameters", side_effect=DatabaseError("boom")):
            with pytest.raises(PersistenceError):
                pipeline.ingest("purchase", {"amount": 5})

        pipeline.ingest("purchase", {"amount": 6})
        assert Event.objects.count() == 1


@pytest.mark.django_db(transaction=True)
class TestConcurrentIngestion:
    def test_parallel_ingests_are_serialized(self, service):
        threads_count, per_thread = 8, 10
        stored = []
        errors = []
        lock = threading.Lock()

        def worker(n):
            try:
                for i in range(per_thread):
                    event_id = service.ingest("purchase", {"amount": n * per_thread + i, "sku": f"T-{n}"})
                    with lock:
                        stored.append(event_id)
            except Exception as e:
                with lock:
                    errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert errors == []
        assert len(stored) == threads_count * per_thread
        sequences = list(Event.objects.order_by("sequence").values_list("sequence", flat=True))
        assert len(set(sequences)) == threads_count * per_thread
        created = list(Event.objects.order_by("sequence").values_list("created_at", flat=True))
        assert created == sorted(created)
        assert EventParameter.objects.count() == 2 * threads_count * per_thread


# =============================================================================
# Traces and claims
# =============================================================================

@pytest.mark.django_db
class TestTracesAndClaims:
    def test_traces_dropped_when_tracing_disabled(self, pipeline, store):
        with mock.patch("events.ingestion.logger") as logger:
            event_id = pipeline.ingest("login", {"method": "sso"}, [{"step": 1}])

        assert store.get(event_id).traces.count() == 0
        assert "tracing disabled" in logger.debug.call_args[0][0]

    def test_traces_kept_when_tracing_enabled(self, pipeline, store):
        event_id = pipeline.ingest("purchase", {}, [{"step": 1}, {"step": 2}])
        assert [t.trace_data for t in store.get(event_id).traces.all()] == [{"step": 1}, {"step": 2}]

    def test_only_recognized_claims_are_stored(self, pipeline, store):
        event_id = pipeline.ingest(
            "purchase",
            {},
            claims={"tenant": "acme", "sub": 42, "email": "a@b.c", "role": None},
        )
        claims = {c.claim_name: c.claim_value for c in store.get(event_id).claims.all()}
        assert claims == {"tenant": "acme", "sub": "42"}

    def test_none_claim_value_is_skipped(self, pipeline, store):
        event_id = pipeline.ingest("purchase", {}, claims={"tenant": None})
        assert store.get(event_id).claims.count() == 0

    def test_accepted_event_is_logged(self, pipeline):
        with mock.patch("events.ingestion.logger") as logger:
            pipeline.ingest("signup")
        assert "Stored event" in logger.info.call_args[0][0]
        assert logger.info.call_args.kwargs["extra"]["event_name"] == "signup"


# =============================================================================
# Collector payloads
# =============================================================================

@pytest.mark.django_db
class TestCollectPayload:
    def test_payload_is_ingested(self, service, store):
        event_id = service.ingest_payload(
            {"$event": "purchase", "$params": {"amount": 9.5}, "$trace": [{"ua": "x"}]},
            claims={"tenant": "acme"},
        )
        event = store.get(event_id)
        assert event.event_name == "purchase"
        assert event.params.get().param_value == "9.5"
        assert event.claims.get().claim_value == "acme"

    def test_params_and_trace_default_to_empty(self, service, store):
        event_id = service.ingest_payload({"$event": "signup"})
        event = store.get(event_id)
        assert event.params.count() == 0
        assert event.traces.count() == 0

    def test_missing_event(self, service):
        with pytest.raises(ValidationError, match=r"\$event"):
            service.ingest_payload({"$params": {}})

    def test_trace_must_be_a_list(self, service):
        with pytest.raises(ValidationError, match=r"\$trace"):
            service.ingest_payload({"$event": "purchase", "$trace": {"ua": "x"}})
