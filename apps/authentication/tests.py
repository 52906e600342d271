"""
Tests for Authentication models and management commands.

Tests cover:
- UserRole / Hospital enum values
- UserManager.create_user() and create_superuser()
- Role and permission methods
- Security question hashing
- Account locking (is_account_locked, increment/reset_failed_login)
- ensure_default_admin() and its management command
"""

from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from .models import User, UserRole, Hospital, ensure_default_admin


def _make_user(role=UserRole.USER, username=None, **kwargs):
    """Helper to create a user with a given role."""
    if username is None:
        username = f'user_{role}'
    kwargs.setdefault('hospital', Hospital.NEIHU)
    return User.objects.create_user(
        username=username,
        email=f'{username}@test.com',
        password='testpass123',
        role=role,
        **kwargs,
    )


# =============================================================================
# Enum Tests
# =============================================================================


class UserRoleTests(TestCase):

    def test_two_roles_exist(self):
        self.assertEqual(len(UserRole.choices), 2)

    def test_values(self):
        self.assertEqual(UserRole.USER, 'user')
        self.assertEqual(UserRole.ADMIN, 'admin')

    def test_admin_label(self):
        self.assertEqual(UserRole.ADMIN.label, 'Administrator')


class HospitalTests(TestCase):

    def test_eight_hospitals(self):
        self.assertEqual(len(Hospital.choices), 8)

    def test_values_are_chinese_names(self):
        self.assertIn('內湖總院', Hospital.values)
        self.assertIn('花蓮總院', Hospital.values)


# =============================================================================
# UserManager Tests
# =============================================================================


class UserManagerTests(TestCase):
    """Test UserManager.create_user() and create_superuser()."""

    def test_create_user_basic(self):
        user = User.objects.create_user(
            username='nurse', password='pass123', hospital=Hospital.TAOYUAN,
        )
        self.assertTrue(user.check_password('pass123'))
        self.assertEqual(user.hospital, '桃園總院')
        self.assertFalse(user.is_staff)
        self.assertFalse(user.is_superuser)

    def test_create_user_default_role_is_user(self):
        user = User.objects.create_user(username='u1', password='pass123')
        self.assertEqual(user.role, UserRole.USER)

    def test_create_user_requires_username(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(username='', password='p')

    def test_create_superuser(self):
        su = User.objects.create_superuser(username='root', password='adminpass')
        self.assertTrue(su.is_staff)
        self.assertTrue(su.is_superuser)
        self.assertEqual(su.role, UserRole.ADMIN)
        self.assertEqual(su.hospital, Hospital.NEIHU)

    def test_create_superuser_rejects_non_staff(self):
        with self.assertRaises(ValueError):
            User.objects.create_superuser(username='bad', password='p', is_staff=False)


# =============================================================================
# Role / Permission Tests
# =============================================================================


class PermissionMethodTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.user = _make_user(UserRole.USER, 'plain')
        cls.admin = _make_user(UserRole.ADMIN, 'boss')

    def test_admin_role(self):
        self.assertTrue(self.admin.is_admin_role())
        self.assertFalse(self.user.is_admin_role())

    def test_superuser_counts_as_admin(self):
        su = User.objects.create_superuser(username='su', password='p', role=UserRole.USER)
        self.assertTrue(su.is_admin_role())

    def test_admin_permissions(self):
        for method in ('can_view_all_submissions', 'can_manage_users',
                       'can_review_delete_requests', 'can_edit_guide'):
            self.assertTrue(getattr(self.admin, method)(), method)
            self.assertFalse(getattr(self.user, method)(), method)

    def test_str(self):
        self.assertIn('plain', str(self.user))
        self.assertIn('內湖總院', str(self.user))


# =============================================================================
# Security Question Tests
# =============================================================================


class SecurityAnswerTests(TestCase):

    def setUp(self):
        self.user = _make_user(UserRole.USER, 'sq')
        self.user.security_question = '你最喜歡的顏色？'
        self.user.set_security_answer('  Blue ')
        self.user.save()

    def test_answer_is_hashed(self):
        self.assertNotIn('blue', self.user.security_answer_hash.lower().split('$')[-1])
        self.assertTrue(self.user.security_answer_hash)

    def test_match_is_trimmed_and_case_insensitive(self):
        self.assertTrue(self.user.check_security_answer('blue'))
        self.assertTrue(self.user.check_security_answer('BLUE  '))

    def test_wrong_answer(self):
        self.assertFalse(self.user.check_security_answer('red'))

    def test_empty_answer_never_matches(self):
        self.assertFalse(self.user.check_security_answer(''))
        self.user.set_security_answer('')
        self.assertFalse(self.user.check_security_answer(''))


# =============================================================================
# Account Locking Tests
# =============================================================================


class AccountLockingTests(TestCase):
    """Test account locking after failed login attempts."""

    def setUp(self):
        self.user = _make_user(UserRole.USER, 'locktest')

    def test_not_locked_by_default(self):
        self.assertFalse(self.user.is_account_locked())

    def test_increment_failed_login(self):
        self.user.increment_failed_login()
        self.user.refresh_from_db()
        self.assertEqual(self.user.failed_login_attempts, 1)
        self.assertIsNone(self.user.account_locked_until)

    def test_account_locks_after_5_failures(self):
        for _ in range(5):
            self.user.increment_failed_login()
        self.user.refresh_from_db()
        self.assertEqual(self.user.failed_login_attempts, 5)
        self.assertTrue(self.user.is_account_locked())

    def test_lock_duration_30_minutes(self):
        for _ in range(5):
            self.user.increment_failed_login()
        expected = timezone.now() + timedelta(minutes=30)
        self.assertAlmostEqual(
            self.user.account_locked_until, expected, delta=timedelta(seconds=5)
        )

    @override_settings(MHAR_BSI={'MAX_FAILED_LOGINS': 2, 'LOCKOUT_MINUTES': 5})
    def test_thresholds_come_from_settings(self):
        self.user.increment_failed_login()
        self.user.increment_failed_login()
        self.assertTrue(self.user.is_account_locked())
        expected = timezone.now() + timedelta(minutes=5)
        self.assertAlmostEqual(
            self.user.account_locked_until, expected, delta=timedelta(seconds=5)
        )

    def test_expired_lock_not_locked(self):
        self.user.account_locked_until = timezone.now() - timedelta(minutes=1)
        self.user.save()
        self.assertFalse(self.user.is_account_locked())

    def test_reset_failed_login(self):
        for _ in range(5):
            self.user.increment_failed_login()
        self.user.reset_failed_login()
        self.user.refresh_from_db()
        self.assertEqual(self.user.failed_login_attempts, 0)
        self.assertIsNone(self.user.account_locked_until)


# =============================================================================
# Default Admin Tests
# =============================================================================


class EnsureDefaultAdminTests(TestCase):

    def test_creates_admin(self):
        user, created = ensure_default_admin()
        self.assertTrue(created)
        self.assertEqual(user.username, 'admin')
        self.assertEqual(user.role, UserRole.ADMIN)
        self.assertEqual(user.hospital, '內湖總院')
        self.assertTrue(user.check_password('admin123'))

    def test_idempotent(self):
        ensure_default_admin()
        user, created = ensure_default_admin()
        self.assertFalse(created)
        self.assertEqual(User.objects.filter(username='admin').count(), 1)

    def test_existing_password_untouched(self):
        user, _ = ensure_default_admin()
        user.set_password('changed-pw')
        user.save()
        ensure_default_admin()
        user.refresh_from_db()
        self.assertTrue(user.check_password('changed-pw'))

    def test_management_command(self):
        out = StringIO()
        call_command('ensure_default_admin', stdout=out)
        self.assertIn('Created default admin', out.getvalue())
        out = StringIO()
        call_command('ensure_default_admin', stdout=out)
        self.assertIn('already exists', out.getvalue())
