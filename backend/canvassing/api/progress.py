"""
Progress API: a staff member's day at a glance.
"""
from datetime import date

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from canvassing.services.progress_service import check_daily_targets, determine_expected_stage


class StaffProgressView(APIView):

    def get(self, request, staff_id):
        on_date = request.query_params.get("date")
        if on_date:
            try:
                on_date = date.fromisoformat(on_date)
            except ValueError:
                return Response({"detail": "date must be YYYY-MM-DD"}, status=status.HTTP_400_BAD_REQUEST)

        return Response({
            "staff_id": staff_id,
            "targets": check_daily_targets(staff_id, on_date or None),
            "suggested_stage": determine_expected_stage(staff_id),
        })
