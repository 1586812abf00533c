"""
DRF serializers for API request/response validation.
Separates API contract from DB models.
"""
from django.conf import settings
from django.core.validators import FileExtensionValidator
from rest_framework import serializers

from canvassing.models import CanvassingCycle, CycleStatus, InteractionOutcome, Message, Prospect, QualityCheck
from canvassing.services.upload_pipeline import ALLOWED_EXTENSIONS, CHANNELS, FINAL_STAGE


# ─── Upload Serializers ──────────────────────────────────────────────────────

class UploadSerializer(serializers.Serializer):
    """Multipart payload for a screenshot upload."""
    screenshot = serializers.FileField(validators=[FileExtensionValidator(ALLOWED_EXTENSIONS)])
    staff_id = serializers.IntegerField(min_value=1)
    stage = serializers.IntegerField(min_value=0, max_value=FINAL_STAGE)
    category = serializers.CharField()
    channel = serializers.ChoiceField(choices=CHANNELS, required=False, allow_null=True, allow_blank=True)
    interaction_status = serializers.ChoiceField(
        choices=InteractionOutcome.choices, required=False, allow_null=True, allow_blank=True
    )
    contact_number = serializers.CharField(max_length=50, required=False, allow_null=True, allow_blank=True)
    business_type = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    external_link = serializers.URLField(required=False, allow_null=True, allow_blank=True)

    def validate_category(self, value):
        if value not in settings.CANVASSING_CATEGORIES:
            raise serializers.ValidationError(
                f"Must be one of: {', '.join(settings.CANVASSING_CATEGORIES)}"
            )
        return value

    def validate_screenshot(self, value):
        if value.size > settings.MAX_SCREENSHOT_MB * 1024 * 1024:
            raise serializers.ValidationError(f"Screenshot is larger than {settings.MAX_SCREENSHOT_MB}MB")
        return value


# ─── Message Serializers ─────────────────────────────────────────────────────

class ProspectSerializer(serializers.ModelSerializer):
    class Meta:
        model = Prospect
        fields = [
            'id', 'handle', 'category', 'business_type', 'channel',
            'external_link', 'contact_number', 'created_at', 'updated_at',
        ]


class CycleSerializer(serializers.ModelSerializer):
    prospect = ProspectSerializer(read_only=True)

    class Meta:
        model = CanvassingCycle
        fields = [
            'id', 'prospect', 'staff_id', 'start_date', 'current_stage', 'status',
            'last_followup_date', 'next_followup_date', 'next_action',
            'failure_reason', 'failure_notes', 'created_at', 'updated_at',
        ]


class QualityCheckSerializer(serializers.ModelSerializer):
    class Meta:
        model = QualityCheck
        fields = ['id', 'message_id', 'supervisor_id', 'status', 'notes', 'created_at']


class MessageSerializer(serializers.ModelSerializer):
    cycle = CycleSerializer(read_only=True)
    quality_check = QualityCheckSerializer(read_only=True)

    class Meta:
        model = Message
        fields = [
            'id', 'cycle', 'stage', 'category', 'channel', 'interaction_status',
            'screenshot_path', 'ocr_handle', 'ocr_message_snippet', 'ocr_date',
            'submitted_at', 'validation_status', 'invalid_reason', 'quality_check',
            'created_at',
        ]


class MessageSummarySerializer(serializers.ModelSerializer):
    """Lightweight listing row for the staff history and the review queue."""
    handle = serializers.CharField(source='cycle.prospect.handle', read_only=True)
    staff_id = serializers.IntegerField(source='cycle.staff_id', read_only=True)
    cycle_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Message
        fields = [
            'id', 'cycle_id', 'handle', 'staff_id', 'stage', 'category', 'channel',
            'interaction_status', 'ocr_handle', 'ocr_date', 'submitted_at',
            'validation_status', 'invalid_reason',
        ]


# ─── Review / Status Serializers ─────────────────────────────────────────────

class ReviewSerializer(serializers.Serializer):
    supervisor_id = serializers.IntegerField(min_value=1)
    status = serializers.ChoiceField(choices=QualityCheck.Verdict.choices)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class CycleStatusUpdateSerializer(serializers.Serializer):
    """Accepts canonical statuses and their legacy synonyms ("completed", "gagal", ...)."""
    status = serializers.CharField()
    changed_by = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    failure_reason = serializers.CharField(max_length=255, required=False, allow_null=True, allow_blank=True)

    def validate_status(self, value):
        try:
            return CycleStatus.normalize(value)
        except ValueError:
            raise serializers.ValidationError(
                f"Unknown status. Expected one of: {', '.join(CycleStatus.values)}"
            )


class TemplateValidateSerializer(serializers.Serializer):
    text = serializers.CharField()
    stage = serializers.IntegerField(min_value=0, max_value=FINAL_STAGE, required=False, allow_null=True)
