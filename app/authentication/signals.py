"""
Signal receivers for the authentication app, connected in AuthenticationConfig.ready().
"""

import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def ensure_profile(sender, instance, created, **kwargs):
    """Every account gets a Profile row as soon as it exists."""
    if not created:
        return

    from authentication.models import Profile

    _, made = Profile.objects.get_or_create(user=instance)
    if made:
        logger.debug("Profile created", extra={"user_id": instance.pk, "role": instance.role})
