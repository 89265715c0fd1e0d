import logging
from typing import Optional
from ..models import AuditLog, Company

logger = logging.getLogger(__name__)


def log_action(
    *,
    action: str,
    instance,
    user=None,
    company: Optional[Company] = None,
    changes: dict | None = None,
):
    """
    Central audit logger.
    Safe to call multiple times (caller ensures idempotency).
    """

    if not company:
        company = getattr(instance, "company", None)

    # AnonymousUser can't be stored on the FK
    if user is not None and not getattr(user, "is_authenticated", False):
        user = None

    logger.info(
        "%s %s(%s) company=%s user=%s %s",
        action,
        instance.__class__.__name__,
        instance.pk,
        getattr(company, "pk", None),
        getattr(user, "pk", None),
        changes or {},
    )

    return AuditLog.objects.create(
        company=company,
        user=user,
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(instance.pk),
        changes=changes,
    )
