"""
Template API: dry-run a message text against the day templates.
"""
from rest_framework.response import Response
from rest_framework.views import APIView

from canvassing.serializers import TemplateValidateSerializer
from canvassing.services.template_matcher import TemplateMatcher


class TemplateValidateView(APIView):
    """With a stage: validate against it. Without: just detect the stage."""

    def post(self, request):
        serializer = TemplateValidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        matcher = TemplateMatcher()
        stage = data.get("stage")
        if stage is None:
            return Response({"detected_stage": matcher.detect_stage(data["text"])})
        return Response(matcher.validate_for_stage(data["text"], stage).to_dict())
