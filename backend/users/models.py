from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models

from core.text import normalize_email


class CertmintUserManager(UserManager):
    def create_user(self, username=None, email=None, password=None, **extra_fields):
        email = normalize_email(email)
        return super().create_user(username or email, email, password, **extra_fields)

    def create_superuser(self, username=None, email=None, password=None, **extra_fields):
        email = normalize_email(email)
        extra_fields.setdefault("role", User.Role.ADMIN)
        return super().create_superuser(username or email, email, password, **extra_fields)


class User(AbstractUser):
    class Role(models.TextChoices):
        STUDENT = "STUDENT", "Student"
        INSTITUTION = "INSTITUTION", "Institution"
        ADMIN = "ADMIN", "Admin"

    name = models.CharField(max_length=255, blank=True, default="")
    email = models.EmailField(unique=True, verbose_name="Email address")
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.STUDENT, db_index=True)
    banned = models.BooleanField(default=False)
    must_change_password = models.BooleanField(default=False)

    objects = CertmintUserManager()

    REQUIRED_FIELDS = ["email", "role"]

    class Meta:
        ordering = ["-date_joined", "-id"]

    def save(self, *args, **kwargs):
        self.email = normalize_email(self.email)
        if not self.username:
            self.username = self.email
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.email} ({self.get_role_display()})"


class StudentProfile(models.Model):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="student_profile")
    date_of_birth = models.DateField(null=True, blank=True)
    course_name = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"StudentProfile({self.user_id})"
