"""
Tareas asíncronas de Celery para el envío de correos electrónicos.
"""
import logging
from app.core.celery import celery_app
from app.modules.email.service import email_service

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    pass


@celery_app.task(bind=True, max_retries=3)
def send_invitation_email_task(
    self,
    invitee_email: str,
    inviter_name: str,
    organization_name: str,
    invitation_token: str,
    role: str
):
    """
    Enviar correo de invitación a una organización.
    """
    invitation_url = email_service.invitation_url(invitation_token)
    context = {
        "invitee_email": invitee_email,
        "inviter_name": inviter_name,
        "organization_name": organization_name,
        "invitation_url": invitation_url,
        "role": role,
        "support_email": email_service.from_email
    }
    text_content = (
        f"{inviter_name} te invitó a unirte a {organization_name} en FacturaSaaS.\n"
        f"Acepta la invitación aquí: {invitation_url}"
    )

    try:
        success = email_service.send_template_email(
            to_emails=[invitee_email],
            subject=f"Te han invitado a {organization_name} en FacturaSaaS",
            template_name="invitation_email.html",
            context=context,
            text_content=text_content
        )
        if not success:
            raise EmailDeliveryError(f"Failed to send invitation email to {invitee_email}")
    except EmailDeliveryError as exc:
        logger.error(f"Invitation email failed: {str(exc)}")
        if self.request.retries < self.max_retries:
            raise self.retry(exc=exc, countdown=60 * (2 ** self.request.retries))
        return {"status": "failed", "error": str(exc), "email": invitee_email}

    logger.info(f"Invitation email sent to {invitee_email} for {organization_name}")
    return {"status": "success", "email": invitee_email}
