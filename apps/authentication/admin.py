from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('username', 'display_name', 'hospital', 'role',
                    'is_active', 'failed_login_attempts', 'date_joined')
    list_filter = ('role', 'hospital', 'is_active')
    search_fields = ('username', 'display_name', 'email')
    readonly_fields = ('last_login', 'date_joined', 'security_answer_hash')
    fieldsets = BaseUserAdmin.fieldsets + (
        ('MHAR-BSI', {
            'fields': ('role', 'hospital', 'display_name', 'phone', 'address',
                       'gender', 'line_id', 'security_question', 'security_answer_hash'),
        }),
        ('Account locking', {
            'fields': ('failed_login_attempts', 'account_locked_until'),
        }),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('MHAR-BSI', {'fields': ('role', 'hospital')}),
    )
