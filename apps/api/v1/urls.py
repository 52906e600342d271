"""
MHAR-BSI API v1 URL configuration.

Resource ViewSets are registered on a single DefaultRouter; the
auth, export, statistics and guide endpoints are plain views.
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .forms.views import SubmissionViewSet
from .users.views import UserViewSet
from .delete_requests.views import DeleteRequestViewSet
from .export.views import ExportCSVView
from .statistics.views import StatisticsView
from .guide.views import ProjectGuideView
from .auth.views import (
    LoginView,
    LogoutView,
    CurrentUserView,
    ChangePasswordView,
    RegisterView,
    ForgotUsernameView,
    SecurityQuestionView,
    ResetPasswordView,
    ObtainTokenView,
)

router = DefaultRouter()
router.register(r'forms', SubmissionViewSet, basename='submission')
router.register(r'users', UserViewSet, basename='user')
router.register(r'delete-requests', DeleteRequestViewSet, basename='delete-request')

app_name = 'api-v1'

urlpatterns = [
    path('', include(router.urls)),
    path('auth/login/', LoginView.as_view(), name='auth-login'),
    path('auth/logout/', LogoutView.as_view(), name='auth-logout'),
    path('auth/me/', CurrentUserView.as_view(), name='auth-me'),
    path('auth/change-password/', ChangePasswordView.as_view(), name='auth-change-password'),
    path('auth/register/', RegisterView.as_view(), name='auth-register'),
    path('auth/forgot-username/', ForgotUsernameView.as_view(), name='auth-forgot-username'),
    path('auth/security-question/', SecurityQuestionView.as_view(), name='auth-security-question'),
    path('auth/reset-password/', ResetPasswordView.as_view(), name='auth-reset-password'),
    path('auth/token/', ObtainTokenView.as_view(), name='auth-token'),
    path('export/csv/', ExportCSVView.as_view(), name='export-csv'),
    path('statistics/', StatisticsView.as_view(), name='statistics'),
    path('guide/', ProjectGuideView.as_view(), name='guide'),
]
