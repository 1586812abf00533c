"""
Message API: screenshot upload (the pipeline entrypoint), staff history
and withdrawal.
"""
import logging

from rest_framework import status
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from canvassing.exceptions import OperationNotAllowed, UploadPipelineError
from canvassing.models import Message
from canvassing.serializers import MessageSerializer, MessageSummarySerializer, UploadSerializer
from canvassing.services.message_admin import withdraw_message
from canvassing.services.upload_pipeline import process_upload

logger = logging.getLogger(__name__)


class MessageUploadView(APIView):
    """Submit one screenshot as evidence for a canvassing/follow-up day."""

    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        serializer = UploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = process_upload(
                screenshot=data["screenshot"],
                staff_id=data["staff_id"],
                stage=data["stage"],
                category=data["category"],
                channel=data.get("channel") or None,
                interaction_status=data.get("interaction_status") or None,
                contact_number=data.get("contact_number") or None,
                business_type=data.get("business_type") or None,
                external_link=data.get("external_link") or None,
            )
        except UploadPipelineError:
            return Response(
                {"detail": "Something went wrong while processing the screenshot. Please try again."},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        if not result.valid:
            code = (
                status.HTTP_409_CONFLICT if result.error_type == "duplicate_upload"
                else status.HTTP_422_UNPROCESSABLE_ENTITY
            )
            return Response({"detail": result.error, **result.to_dict()}, status=code)

        return Response(
            {
                **result.to_dict(),
                "message": MessageSerializer(result.message).data,
            },
            status=status.HTTP_201_CREATED,
        )


class MessageListView(APIView):
    """List uploaded messages, newest first."""

    def get(self, request):
        queryset = Message.objects.select_related("cycle__prospect")

        staff_id = request.query_params.get("staff_id")
        if staff_id:
            queryset = queryset.filter(cycle__staff_id=staff_id)

        stage = request.query_params.get("stage")
        if stage not in (None, ""):
            queryset = queryset.filter(stage=stage)

        validation_status = request.query_params.get("validation_status")
        if validation_status:
            queryset = queryset.filter(validation_status=validation_status)

        on_date = request.query_params.get("date")
        if on_date:
            queryset = queryset.filter(submitted_at__date=on_date)

        # ─── Pagination ──────────────────────────────────────────────
        limit = min(int(request.query_params.get("limit", 50)), 200)
        offset = int(request.query_params.get("offset", 0))
        queryset = queryset.order_by("-submitted_at")[offset:offset + limit]

        return Response(MessageSummarySerializer(queryset, many=True).data)


class MessageDetailView(APIView):

    def get(self, request, message_id):
        try:
            message = Message.objects.select_related("cycle__prospect", "quality_check").get(id=message_id)
        except Message.DoesNotExist:
            return Response({"detail": "Message not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(MessageSerializer(message).data)

    def delete(self, request, message_id):
        """Withdraw an unreviewed upload. Only the staff member who made it may do so."""
        staff_id = request.query_params.get("staff_id")
        if not staff_id:
            return Response({"detail": "staff_id is required"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            result = withdraw_message(message_id, int(staff_id))
        except Message.DoesNotExist:
            return Response({"detail": "Message not found"}, status=status.HTTP_404_NOT_FOUND)
        except OperationNotAllowed as e:
            return Response({"detail": e.message}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

        return Response(result)
