# events/serializers.py
"""
Serializers for events.

- EventSerializer: read-side representation of a stored event with its
  parameters, traces and claims (camelCase keys). Numeric parameters come
  back as numbers, whatever the current catalog declares.
- CollectPayloadSerializer: the collector body shape
  {"$event": ..., "$params": {...}, "$trace": [...]}.
"""

from rest_framework import serializers

from events.models import Event, EventParameter
from events.serialization import datetime_to_epoch, parse_numeric


class EventSerializer(serializers.ModelSerializer):
    """Full representation of one event, children included."""

    eventName = serializers.CharField(source='event_name', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    timestamp = serializers.SerializerMethodField()
    params = serializers.SerializerMethodField()
    traces = serializers.SerializerMethodField()
    claims = serializers.SerializerMethodField()

    class Meta:
        model = Event
        fields = [
            'id',
            'eventName',
            'createdAt',
            'timestamp',
            'sequence',
            'params',
            'traces',
            'claims',
        ]

    def get_timestamp(self, obj):
        return datetime_to_epoch(obj.created_at)

    def get_params(self, obj):
        params = {}
        # .all() uses the prefetch cache populated by the store
        for param in obj.params.all():
            value = param.param_value
            if param.param_kind == EventParameter.ParameterKind.NUMERIC:
                value = parse_numeric(value)
            params[param.param_name] = value
        return params

    def get_traces(self, obj):
        return [trace.trace_data for trace in obj.traces.all()]

    def get_claims(self, obj):
        return {claim.claim_name: claim.claim_value for claim in obj.claims.all()}


class CollectPayloadSerializer(serializers.Serializer):
    """
    Validates the outer shape of a collected event.

    Field names start with "$", so they are declared in get_fields().
    Parameter values and the event name are checked against the catalog
    later, by the ingestion pipeline.
    """

    def get_fields(self):
        return {
            '$event': serializers.CharField(source='event_name', max_length=255),
            '$params': serializers.DictField(source='parameters', default=dict),
            '$trace': serializers.ListField(source='traces', default=list),
        }
