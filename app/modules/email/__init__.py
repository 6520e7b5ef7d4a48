"""
Módulo de email para FacturaSaaS.
"""

from .service import email_service
from .tasks import send_invitation_email_task

__all__ = [
    'email_service',
    'send_invitation_email_task'
]
