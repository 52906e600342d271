"""
User model for MHAR-BSI.

Accounts belong to one participating hospital and carry one of two roles.
Regular users enter and maintain their own case reports; administrators see
every hospital's data, manage accounts and review delete requests.
"""

from datetime import timedelta

from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.contrib.auth.models import AbstractUser, UserManager as DjangoUserManager
from django.db import models
from django.utils import timezone


class UserRole(models.TextChoices):
    USER = 'user', 'User'
    ADMIN = 'admin', 'Administrator'


class Hospital(models.TextChoices):
    """Participating hospitals (labels are the canonical Chinese names)."""
    NEIHU = '內湖總院', '內湖總院'
    SONGSHAN = '松山分院', '松山分院'
    PENGHU = '澎湖分院', '澎湖分院'
    TAOYUAN = '桃園總院', '桃園總院'
    TAICHUNG = '台中總院', '台中總院'
    KAOHSIUNG = '高雄總院', '高雄總院'
    ZUOYING = '左營總院', '左營總院'
    HUALIEN = '花蓮總院', '花蓮總院'


def _study_config():
    return getattr(settings, 'MHAR_BSI', {})


def _normalize_answer(raw):
    return (raw or '').strip().lower()


class UserManager(DjangoUserManager):
    """Manager enforcing the role defaults for regular users and superusers."""

    def create_user(self, username, email=None, password=None, **extra_fields):
        if not username:
            raise ValueError('The username must be set')
        extra_fields.setdefault('role', UserRole.USER)
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        return self._create_user(username, email, password, **extra_fields)

    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault('role', UserRole.ADMIN)
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('hospital', _study_config().get('DEFAULT_ADMIN_HOSPITAL', Hospital.NEIHU))

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self._create_user(username, email, password, **extra_fields)


class User(AbstractUser):
    """Study account: a data-entry user or an administrator."""

    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.USER,
        db_index=True,
    )
    hospital = models.CharField(
        max_length=20,
        choices=Hospital.choices,
        help_text="Hospital the account reports for",
    )

    # Profile
    display_name = models.CharField(max_length=100, blank=True, default='')
    phone = models.CharField(max_length=30, blank=True, default='')
    address = models.CharField(max_length=255, blank=True, default='')
    gender = models.CharField(max_length=10, blank=True, default='')
    line_id = models.CharField(max_length=100, blank=True, default='')

    # Self-service password reset
    security_question = models.CharField(max_length=255, blank=True, default='')
    security_answer_hash = models.CharField(max_length=128, blank=True, default='')

    # Account locking
    failed_login_attempts = models.PositiveIntegerField(default=0)
    account_locked_until = models.DateTimeField(null=True, blank=True)

    objects = UserManager()

    class Meta:
        db_table = 'users'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['-date_joined']
        indexes = [
            models.Index(fields=['role', 'hospital'], name='users_role_hospital_idx'),
        ]

    def __str__(self):
        return f"{self.username} ({self.hospital or '-'}, {self.get_role_display()})"

    # ------------------------------------------------------------------
    # Roles and permissions
    # ------------------------------------------------------------------

    def is_admin_role(self):
        return self.role == UserRole.ADMIN or self.is_superuser

    def can_view_all_submissions(self):
        return self.is_admin_role()

    def can_manage_users(self):
        return self.is_admin_role()

    def can_review_delete_requests(self):
        return self.is_admin_role()

    def can_edit_guide(self):
        return self.is_admin_role()

    def owns(self, submission):
        return submission.user_id is not None and submission.user_id == self.pk

    def can_view_submission(self, submission):
        return self.can_view_all_submissions() or self.owns(submission)

    # ------------------------------------------------------------------
    # Security question
    # ------------------------------------------------------------------

    def set_security_answer(self, raw_answer):
        normalized = _normalize_answer(raw_answer)
        self.security_answer_hash = make_password(normalized) if normalized else ''

    def check_security_answer(self, raw_answer):
        normalized = _normalize_answer(raw_answer)
        if not normalized or not self.security_answer_hash:
            return False
        return check_password(normalized, self.security_answer_hash)

    # ------------------------------------------------------------------
    # Account locking
    # ------------------------------------------------------------------

    def is_account_locked(self):
        return bool(self.account_locked_until and self.account_locked_until > timezone.now())

    def increment_failed_login(self):
        conf = _study_config()
        self.failed_login_attempts += 1
        if self.failed_login_attempts >= conf.get('MAX_FAILED_LOGINS', 5):
            self.account_locked_until = timezone.now() + timedelta(
                minutes=conf.get('LOCKOUT_MINUTES', 30),
            )
        self.save(update_fields=['failed_login_attempts', 'account_locked_until'])

    def reset_failed_login(self):
        self.failed_login_attempts = 0
        self.account_locked_until = None
        self.save(update_fields=['failed_login_attempts', 'account_locked_until'])


def ensure_default_admin():
    """Create the bootstrap administrator if it does not exist yet.

    Returns (user, created).
    """
    conf = _study_config()
    username = conf.get('DEFAULT_ADMIN_USERNAME', 'admin')
    existing = User.objects.filter(username=username).first()
    if existing is not None:
        return existing, False
    user = User.objects.create_superuser(
        username=username,
        password=conf.get('DEFAULT_ADMIN_PASSWORD', 'admin123'),
        hospital=conf.get('DEFAULT_ADMIN_HOSPITAL', Hospital.NEIHU),
    )
    return user, True
