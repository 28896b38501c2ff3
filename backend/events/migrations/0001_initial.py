# Initial event store schema

from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='EventCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(default='events', max_length=50, unique=True)),
                ('last_sequence', models.BigIntegerField(default=0)),
                ('last_created_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'verbose_name': 'Event Counter',
            },
        ),
        migrations.CreateModel(
            name='Event',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('event_name', models.CharField(
                    db_index=True,
                    help_text='Event name; equals an EventTypeDefinition.type when types are configured',
                    max_length=255,
                )),
                ('sequence', models.BigIntegerField(
                    editable=False,
                    help_text='Monotonic insertion sequence',
                    unique=True,
                )),
                ('created_at', models.DateTimeField(db_index=True, editable=False)),
            ],
            options={
                'ordering': ['created_at', 'sequence'],
                'indexes': [
                    models.Index(fields=['created_at', 'sequence'], name='event_created_seq_idx'),
                    models.Index(fields=['event_name', 'created_at'], name='event_name_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='EventParameter',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('param_name', models.CharField(max_length=255)),
                ('param_value', models.TextField(
                    help_text='Value as text; numeric values use canonical text form',
                )),
                ('param_kind', models.CharField(
                    choices=[('string', 'String'), ('numeric', 'Numeric')],
                    default='string',
                    help_text='Whether the value was ingested as a string or a number',
                    max_length=10,
                )),
                ('numeric_value', models.FloatField(blank=True, null=True)),
                ('event', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='params',
                    to='events.event',
                )),
            ],
            options={
                'ordering': ['id'],
                'indexes': [
                    models.Index(fields=['param_name', 'event'], name='event_param_name_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='EventTrace',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('trace_data', models.JSONField(help_text='Opaque trace payload', null=True)),
                ('event', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='traces',
                    to='events.event',
                )),
            ],
            options={
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='EventClaim',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('claim_name', models.CharField(max_length=255)),
                ('claim_value', models.TextField()),
                ('event', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='claims',
                    to='events.event',
                )),
            ],
            options={
                'ordering': ['id'],
                'indexes': [
                    models.Index(fields=['claim_name', 'event'], name='event_claim_name_idx'),
                ],
            },
        ),
    ]
