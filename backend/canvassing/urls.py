"""
App URL configuration.
"""
from django.urls import path
from canvassing.api import cycles, messages, progress, quality_checks, templates

urlpatterns = [
    # Messages (screenshot evidence)
    path('messages/upload', messages.MessageUploadView.as_view()),
    path('messages', messages.MessageListView.as_view()),
    path('messages/<int:message_id>', messages.MessageDetailView.as_view()),

    # Supervisor review
    path('quality-checks', quality_checks.QualityCheckQueueView.as_view()),
    path('quality-checks/<int:message_id>/review', quality_checks.QualityCheckReviewView.as_view()),

    # Cycles
    path('cycles/<int:cycle_id>/status', cycles.CycleStatusView.as_view()),

    # Staff progress
    path('staff/<int:staff_id>/progress', progress.StaffProgressView.as_view()),

    # Templates
    path('templates/validate', templates.TemplateValidateView.as_view()),
]
