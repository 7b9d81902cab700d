from django.contrib.auth.models import AbstractUser
from django.db import models


class CustomUser(AbstractUser):
    ROLE_CHOICES = (
        ('admin', 'Administrator'),
        ('coordinator', 'Transplant Coordinator'),
        ('physician', 'Physician'),
        ('viewer', 'Read-only Viewer'),
    )

    role = models.CharField(
        max_length=15,
        choices=ROLE_CHOICES,
        default='viewer'
    )
    email = models.EmailField(unique=True)

    def __str__(self):
        return f"{self.username} ({self.role})"

    @property
    def audit_label(self):
        """Identity recorded against engine writes"""
        return self.email or self.username
