"""
Quality Check API: the supervisor's review queue.
"""
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from canvassing.exceptions import OperationNotAllowed
from canvassing.models import Message, ValidationStatus
from canvassing.serializers import MessageSummarySerializer, QualityCheckSerializer, ReviewSerializer
from canvassing.services.message_admin import review_message


class QualityCheckQueueView(APIView):
    """Messages still awaiting review, oldest first."""

    def get(self, request):
        queryset = (
            Message.objects.select_related("cycle__prospect")
            .filter(validation_status=ValidationStatus.PENDING)
        )

        staff_id = request.query_params.get("staff_id")
        if staff_id:
            queryset = queryset.filter(cycle__staff_id=staff_id)

        stage = request.query_params.get("stage")
        if stage not in (None, ""):
            queryset = queryset.filter(stage=stage)

        category = request.query_params.get("category")
        if category:
            queryset = queryset.filter(category=category)

        username = request.query_params.get("username")
        if username:
            queryset = queryset.filter(cycle__prospect__handle__icontains=username)

        limit = min(int(request.query_params.get("limit", 50)), 200)
        queryset = queryset.order_by("submitted_at")[:limit]
        return Response(MessageSummarySerializer(queryset, many=True).data)


class QualityCheckReviewView(APIView):

    def post(self, request, message_id):
        serializer = ReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            check = review_message(
                message_id,
                supervisor_id=data["supervisor_id"],
                verdict=data["status"],
                notes=data.get("notes") or None,
            )
        except Message.DoesNotExist:
            return Response({"detail": "Message not found"}, status=status.HTTP_404_NOT_FOUND)
        except OperationNotAllowed as e:
            return Response({"detail": e.message}, status=status.HTTP_409_CONFLICT)

        return Response(QualityCheckSerializer(check).data, status=status.HTTP_201_CREATED)
