"""
Staff progress: daily upload targets and which day to upload next.
"""
from datetime import date, timedelta

from django.conf import settings
from django.db.models import Max
from django.utils import timezone

from canvassing.models import ACTIVE_LIKE_STATUSES, CanvassingCycle, Message

FINAL_STAGE = 7


def check_daily_targets(staff_id: int, on_date: date = None) -> dict:
    on_date = on_date or timezone.localdate()
    target = settings.DAILY_UPLOAD_TARGET

    todays = Message.objects.filter(cycle__staff_id=staff_id, submitted_at__date=on_date)
    canvassing = todays.filter(stage=0).count()
    follow_up = todays.filter(stage__gt=0).count()

    return {
        "date": on_date.isoformat(),
        "canvassing": {"count": canvassing, "target": target, "met": canvassing >= target},
        "follow_up": {"count": follow_up, "target": target, "met": follow_up >= target},
    }


def determine_expected_stage(staff_id: int, today: date = None) -> int:
    """
    Suggest the next day to upload: a cycle whose latest message went out
    yesterday is due its next follow-up. Otherwise it is time to canvass (0).
    """
    today = today or timezone.localdate()
    yesterday = today - timedelta(days=1)

    cycles = (
        CanvassingCycle.objects.filter(staff_id=staff_id, status__in=ACTIVE_LIKE_STATUSES)
        .annotate(top_stage=Max("messages__stage"), last_submitted=Max("messages__submitted_at"))
        .filter(top_stage__isnull=False)
        .order_by("created_at")
    )
    for cycle in cycles:
        if cycle.top_stage >= FINAL_STAGE:
            continue
        if timezone.localtime(cycle.last_submitted).date() == yesterday:
            return cycle.top_stage + 1
    return 0
