"""
Cycle API: supervisor status override.
"""
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from canvassing.models import CanvassingCycle
from canvassing.serializers import CycleSerializer, CycleStatusUpdateSerializer
from canvassing.services.message_admin import update_cycle_status


class CycleStatusView(APIView):

    def patch(self, request, cycle_id):
        serializer = CycleStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            cycle = update_cycle_status(
                cycle_id,
                status=data["status"],
                changed_by=data["changed_by"],
                notes=data.get("notes") or None,
                failure_reason=data.get("failure_reason") or None,
            )
        except CanvassingCycle.DoesNotExist:
            return Response({"detail": "Cycle not found"}, status=status.HTTP_404_NOT_FOUND)

        return Response(CycleSerializer(cycle).data)
