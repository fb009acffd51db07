from django.contrib.auth.signals import user_logged_in
from django.dispatch import receiver
from apps.activity.audit_service import log_action, AuditAction
from apps.core.middleware import get_client_ip

@receiver(user_logged_in)
def log_user_login(sender, user, request, **kwargs):
    """
    Record login events in the audit log.
    """
    log_action(
        action=AuditAction.USER_LOGIN,
        target_type="User",
        target_id=user.id,
        target_label=str(user),
        performed_by=user,
        context={
            "ip": get_client_ip(request) if request else "Unknown",
            "user_agent": request.headers.get('User-Agent', '') if request else "",
        },
    )
